"""
Configuration loading and validation.

Loads client configuration from a YAML file. Credentials are resolved from
environment variables named in the config; they are never stored in it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    url: str = "http://localhost:1337"
    socketio_path: str = "ws/socket.io"
    verify_tls: bool = True
    request_timeout_seconds: int = 30


class CredentialsConfig(BaseModel):
    email_env: str = "TASKLANE_EMAIL"
    password_env: str = "TASKLANE_PASSWORD"

    @property
    def email(self) -> str | None:
        return os.environ.get(self.email_env)

    @property
    def password(self) -> str | None:
        return os.environ.get(self.password_env)


class SearchConfig(BaseModel):
    debounce_ms: int = Field(default=300, ge=0)


class StateConfig(BaseModel):
    db_path: str = "./data/tasklane_client.db"


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "text"


class ClientConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> ClientConfig:
    """Load and validate client configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return ClientConfig.model_validate(raw)
