"""
Configuration loading and validation.

Loads relay configuration from an optional YAML file. The shared secret is
resolved from an environment variable and is never stored in the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 4001
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    send_timeout_seconds: float = Field(default=5.0, gt=0)
    send_queue_size: int = Field(default=256, ge=1)


class AuthConfig(BaseModel):
    secret_env: str = "RELAY_SHARED_SECRET"

    @property
    def secret(self) -> str | None:
        return os.environ.get(self.secret_env) or None


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class MetricsConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 9091


class RelayConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def load_config(path: str | Path | None = None) -> RelayConfig:
    """Load and validate relay configuration. No path means all defaults."""
    if path is None:
        return RelayConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return RelayConfig.model_validate(raw)
