"""Configuration management for the bhajan signup API.

Settings come from environment variables with defaults that work out of the
box.  ``AppConfig.from_env()`` is read once when ``api.app`` is imported.
"""

import os as _os
from pathlib import Path
from typing import Any, Dict


class Config:
    """Base configuration class for organizing application settings."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}


def _env_int(name: str, default: int) -> int:
    raw = _os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    Environment variables:
        APP_DB_PATH: Path to the SQLite datastore (default: bhajans.sqlite)
        APP_PORT: API server port; PORT is honoured too (default: 3000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        RATE_LIMIT_MAX: Requests allowed per window, all clients together (default: 100)
        RATE_LIMIT_WINDOW_SECONDS: Length of the rate-limit window (default: 900)
        APP_VOCABULARY_PATH: JSON file overriding the default vocabulary
    """

    def __init__(self) -> None:
        super().__init__()
        self.db_path = Path(_os.getenv("APP_DB_PATH", "bhajans.sqlite"))
        self.api_port = _env_int("APP_PORT", _env_int("PORT", 3000))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.rate_limit_max = _env_int("RATE_LIMIT_MAX", 100)
        self.rate_limit_window = _env_int("RATE_LIMIT_WINDOW_SECONDS", 15 * 60)
        raw_vocab = _os.getenv("APP_VOCABULARY_PATH", "")
        self.vocabulary_path: Path | None = Path(raw_vocab) if raw_vocab else None

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
