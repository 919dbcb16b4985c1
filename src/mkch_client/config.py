from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

DEFAULT_BASE_URL = "https://mkch.pooziqo.xyz"


class CacheTTLConfig(BaseModel):
    """TTL table in seconds, one entry per cached resource type."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    boards: float = Field(default=600.0, ge=0)
    threads: float = Field(default=300.0, ge=0)
    thread_detail: float = Field(default=180.0, ge=0)
    comments: float = Field(default=180.0, ge=0)


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: str = "data/cache/responses"
    sweep_interval_seconds: float = Field(default=300.0, gt=0)
    ttl: CacheTTLConfig = Field(default_factory=CacheTTLConfig)

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("cache.directory must not be empty")
        return normalized


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = DEFAULT_BASE_URL
    api_url: str | None = None
    timeout_seconds: float = Field(default=20.0, gt=0)
    user_agent: str = "mkch-client/0.1.0"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("api.base_url must be an http(s) URL")
        return normalized

    @property
    def resolved_api_url(self) -> str:
        if self.api_url:
            return self.api_url.rstrip("/")
        return f"{self.base_url}/api"


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    probe_enabled: bool = True
    probe_host: str = "mkch.pooziqo.xyz"
    probe_port: int = Field(default=443, ge=1, le=65535)
    probe_interval_seconds: float = Field(default=10.0, gt=0)
    probe_timeout_seconds: float = Field(default=3.0, gt=0)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api: ApiConfig = Field(default_factory=ApiConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    settings_path: str = "data/settings.json"


def load_config(path: str | Path) -> AppConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ValueError(f"Configuration is neither JSON nor YAML: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
