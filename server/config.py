"""Process settings for the orchestrator server.

Everything about access rules lives in the JSON config file; these settings
only cover the process itself and where to find that file.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from root directory if present."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except OSError as e:
        logging.getLogger(__name__).warning(f"Could not read {env_path}: {e}")


_load_env_file()


DEFAULT_APP_NAME = "UniFi Access Orchestrator"
DEFAULT_APP_VERSION = "0.1.0"
DEFAULT_CONFIG_PATH = "config/config.json"


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


class Settings(BaseModel):
    """Application settings read from the environment."""

    # App metadata
    app_name: str = Field(default=DEFAULT_APP_NAME)
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # Server runtime
    server_host: str = Field(default=os.getenv("ORCHESTRATOR_HOST", "0.0.0.0"))
    server_port: int = Field(default=_env_int("ORCHESTRATOR_PORT", 3000))

    # Environment
    env: str = Field(default=os.getenv("ENV", "dev"))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))

    # HTTP behaviour
    cors_allow_origins_raw: str = Field(default=os.getenv("CORS_ORIGINS", "*"))
    enable_docs: bool = Field(default=os.getenv("ORCHESTRATOR_ENABLE_DOCS", "1") != "0")
    docs_url: Optional[str] = Field(default=os.getenv("DOCS_URL", "/docs"))

    # Orchestrator config file
    config_path: str = Field(
        default=os.getenv("MIDDLEWARE_CONFIG_PATH") or os.getenv("CONFIG_PATH") or DEFAULT_CONFIG_PATH
    )

    @property
    def cors_allow_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_allow_origins_raw.strip() in {"", "*"}:
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins_raw.split(",") if origin.strip()]

    @property
    def resolved_docs_url(self) -> Optional[str]:
        """Return documentation URL when docs are enabled."""
        return (self.docs_url or "/docs") if self.enable_docs else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
