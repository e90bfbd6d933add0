from pydantic import BaseModel, Field, field_validator
from typing import Optional
import os

from .constants import (
    DEFAULT_CACHE_PATH,
    DEFAULT_HOST,
    DEFAULT_MODEL,
    DEFAULT_ORIGIN,
    DEFAULT_PORT,
    DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
    DEFAULT_UPSTREAM_URL,
    NETWORK_TIMEOUT_SECONDS,
)


def _default_build_version() -> str:
    from .. import __version__
    return __version__


class Settings(BaseModel):
    """
    Runtime configuration for the relay, the HTTP app and the offline cache.

    Values normally come from the environment (optionally via a .env file
    loaded by the CLI); see ``Settings.from_env``.
    """
    # Upstream
    api_key: Optional[str] = Field(None, description="Bearer secret for the upstream model service")
    upstream_url: str = Field(DEFAULT_UPSTREAM_URL, description="Chat completions endpoint")
    model: str = Field(DEFAULT_MODEL, description="Upstream model identifier")
    upstream_timeout: float = Field(DEFAULT_UPSTREAM_TIMEOUT_SECONDS, gt=0)

    # Offline cache
    build_version: str = Field(default_factory=_default_build_version, description="Cache generation tag")
    origin: str = Field(DEFAULT_ORIGIN, description="Origin the application shell is served from")
    network_timeout: float = Field(NETWORK_TIMEOUT_SECONDS, gt=0, description="NetworkFirst time budget")
    cache_path: str = Field(DEFAULT_CACHE_PATH, description="SQLite database for cached responses")
    static_dir: Optional[str] = Field(None, description="Built application shell directory")

    # Server
    host: str = DEFAULT_HOST
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    log_level: str = "INFO"

    @field_validator("log_level")
    def validate_log_level(cls, v):
        return v.upper()

    @field_validator("origin")
    def validate_origin(cls, v):
        return v.rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from FREEOCR_* environment variables."""
        env = {
            "api_key": os.getenv("FREEOCR_API_KEY") or os.getenv("API_KEY"),
            "upstream_url": os.getenv("FREEOCR_UPSTREAM_URL"),
            "model": os.getenv("FREEOCR_MODEL"),
            "upstream_timeout": os.getenv("FREEOCR_UPSTREAM_TIMEOUT"),
            "build_version": os.getenv("FREEOCR_BUILD_VERSION"),
            "origin": os.getenv("FREEOCR_ORIGIN"),
            "network_timeout": os.getenv("FREEOCR_NETWORK_TIMEOUT"),
            "cache_path": os.getenv("FREEOCR_CACHE_PATH"),
            "static_dir": os.getenv("FREEOCR_STATIC_DIR"),
            "host": os.getenv("FREEOCR_HOST"),
            "port": os.getenv("FREEOCR_PORT"),
            "log_level": os.getenv("FREEOCR_LOG_LEVEL"),
        }
        # Unset variables fall back to field defaults
        return cls(**{key: value for key, value in env.items() if value})
