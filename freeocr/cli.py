"""CLI entry point for FreeOCR."""

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

from .config.settings import Settings
from .offline.router import CacheRouter
from .offline.store import CacheStorage
from .relay.errors import RelayError
from .relay.handler import RelayHandler


async def transcribe(settings: Settings, image_path: str, mime_type: Optional[str] = None) -> int:
    """Run the relay in-process and print the streamed text."""
    path = Path(image_path)
    body = {
        "base64": base64.b64encode(path.read_bytes()).decode("ascii"),
        "mime_type": mime_type or mimetypes.guess_type(path.name)[0] or "image/jpeg",
    }

    async with httpx.AsyncClient(timeout=settings.upstream_timeout) as client:
        relay = RelayHandler(client, settings)
        try:
            stream = await relay.handle(body)
            async for fragment in stream:
                print(fragment, end='', flush=True)
            print()
        except RelayError as e:
            print(f"Error ({e.status_code}): {e.to_body()}", file=sys.stderr)
            return 1
        except httpx.HTTPError as e:
            print(f"\nError: stream interrupted ({e})", file=sys.stderr)
            return 1
    return 0


async def precache(settings: Settings) -> int:
    """Pre-cache the static shell and prune older cache generations."""
    storage = CacheStorage(settings.cache_path)
    router = CacheRouter.from_settings(settings, storage)
    try:
        installed = await router.install()
        deleted = await router.activate()
    finally:
        await router.aclose()
        storage.close()

    print(f"Generation {settings.build_version}: {len(router.manifest)} assets, "
          f"{'installed' if installed else 'not installed'}")
    for name in deleted:
        print(f"Deleted {name}")
    return 0 if installed else 1


async def fetch_url(settings: Settings, url: str, navigate: bool = False) -> int:
    """Fetch one URL through the offline cache router."""
    storage = CacheStorage(settings.cache_path)
    router = CacheRouter.from_settings(settings, storage)
    headers = {"Sec-Fetch-Mode": "navigate"} if navigate else {}
    try:
        async with httpx.AsyncClient(transport=router) as client:
            request = client.build_request("GET", url, headers=headers)
            strategy = router.classify(request)
            response = await client.send(request)
            print(f"{response.status_code} {url} "
                  f"({strategy.value if strategy else 'pass-through'}, {len(response.content)} bytes)")
    except httpx.HTTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        storage.close()
    return 0


def serve(settings: Settings):
    """Run the HTTP app under uvicorn."""
    import uvicorn

    from .http.app import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def main():
    """Main CLI function."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="FreeOCR CLI")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the relay HTTP server')
    serve_parser.add_argument('--host', help='Bind address')
    serve_parser.add_argument('--port', type=int, help='Bind port')

    # OCR command
    ocr_parser = subparsers.add_parser('ocr', help='Extract text from an image file')
    ocr_parser.add_argument('image', help='Path to the image')
    ocr_parser.add_argument('--mime-type', help='Image media type (guessed from the file name)')

    # Cache commands
    subparsers.add_parser('precache', help='Pre-cache the static shell and prune old generations')
    fetch_parser = subparsers.add_parser('fetch', help='Fetch a URL through the offline cache')
    fetch_parser.add_argument('url', help='Absolute URL')
    fetch_parser.add_argument('--navigate', action='store_true', help='Send as a page navigation')

    args = parser.parse_args()

    settings = Settings.from_env()
    if getattr(args, 'host', None):
        settings.host = args.host
    if getattr(args, 'port', None):
        settings.port = args.port

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == 'serve':
        serve(settings)
    elif args.command == 'ocr':
        sys.exit(asyncio.run(transcribe(settings, args.image, args.mime_type)))
    elif args.command == 'precache':
        sys.exit(asyncio.run(precache(settings)))
    elif args.command == 'fetch':
        sys.exit(asyncio.run(fetch_url(settings, args.url, args.navigate)))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
