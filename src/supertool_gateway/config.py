"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables     (SUPERTOOL__GATEWAY__VERSION=super-tool-v2)
  2. supertool-gateway.yaml    (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. Bumping
``gateway.version`` is the only supported way to invalidate the cache.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from supertool_gateway.classifier import (
    DEFAULT_API_SEGMENTS,
    DEFAULT_STATIC_EXTENSIONS,
    DEFAULT_STATIC_SEGMENTS,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("supertool-gateway")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")

DEFAULT_MANIFEST = ["/", "/manifest.json", "/icon-192x192.png", "/icon-512x512.png"]


def _find_config_file() -> str | None:
    """Return the path of the first supertool-gateway.yaml found, or None."""
    candidates = [
        Path("supertool-gateway.yaml"),
        Path(platformdirs.user_config_dir("supertool-gateway")) / "supertool-gateway.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class GatewaySettings(BaseModel):
    version: str = "super-tool-v1"
    # Public origin the application shell is served from
    origin: str = "http://localhost:8080"
    manifest: list[str] = DEFAULT_MANIFEST


class RoutingSettings(BaseModel):
    static_segments: list[str] = list(DEFAULT_STATIC_SEGMENTS)
    static_extensions: list[str] = list(DEFAULT_STATIC_EXTENSIONS)
    api_segments: list[str] = list(DEFAULT_API_SEGMENTS)


class UpstreamSettings(BaseModel):
    url: str = "http://localhost:3000"
    # None waits indefinitely; the network stack owns lower-level timeouts
    timeout_seconds: float | None = None


class CacheSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SUPERTOOL__SERVER__PORT=9090
        env_prefix="SUPERTOOL__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    gateway: GatewaySettings = GatewaySettings()
    routing: RoutingSettings = RoutingSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
