"""Shared pytest fixtures for FreeOCR tests."""

import pytest
import httpx

from freeocr.config.settings import Settings
from freeocr.offline.manifest import AssetManifest
from freeocr.offline.router import CacheRouter
from freeocr.offline.store import CacheStorage
from tests.helpers.upstream_mocks import RecordingTransport

ORIGIN = "http://app.test"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests going through the HTTP app")


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Mock environment variables for testing."""
    env_vars = {
        "FREEOCR_API_KEY": "test-upstream-key",
        "FREEOCR_UPSTREAM_URL": "https://upstream.test/openai",
        "FREEOCR_MODEL": "test-vision-model",
        "FREEOCR_BUILD_VERSION": "build-2",
        "FREEOCR_ORIGIN": ORIGIN + "/",
        "FREEOCR_NETWORK_TIMEOUT": "0.5",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def settings():
    """Settings pointing at a fake upstream."""
    return Settings(
        api_key="test-upstream-key",
        upstream_url="https://upstream.test/openai",
        model="test-vision-model",
        build_version="build-1",
        origin=ORIGIN,
        network_timeout=0.05,
    )


@pytest.fixture
def storage():
    """In-memory cache database."""
    storage = CacheStorage()
    yield storage
    storage.close()


@pytest.fixture
def manifest():
    return AssetManifest.from_paths(["/_app/app.js", "/_app/app.css", "/favicon.png"], ORIGIN)


@pytest.fixture
def network():
    """Network that answers every request with 200 ``network``."""
    return RecordingTransport()


@pytest.fixture
def make_router(storage, manifest):
    """Factory for a cache router over the shared storage."""

    def factory(transport: httpx.AsyncBaseTransport, generation: str = "build-1",
                network_timeout: float = 0.05) -> CacheRouter:
        return CacheRouter(
            transport=transport,
            storage=storage,
            generation=generation,
            manifest=manifest,
            origin=ORIGIN,
            network_timeout=network_timeout,
        )

    return factory
