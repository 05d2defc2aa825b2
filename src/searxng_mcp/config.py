"""Configuration loading for SearXNG-MCP server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field


DEFAULT_DATA_DIR = Path.home() / ".searxng-mcp"

# Environment variable -> ServerConfig field
ENV_OVERRIDES: dict[str, str] = {
    "SEARXNG_URL": "searxng_url",
    "AUTH_USERNAME": "auth_username",
    "AUTH_PASSWORD": "auth_password",
    "USER_AGENT": "user_agent",
    "MCP_HTTP_PORT": "http_port",
    "MCP_HTTP_HOST": "http_host",
    "MCP_HTTP_JSON_RESPONSE": "json_response",
    "LOG_LEVEL": "log_level",
}


class ServerConfig(BaseModel):
    """Server-level configuration."""
    # SearXNG instance
    searxng_url: str | None = None
    auth_username: str | None = None
    auth_password: str | None = None
    user_agent: str | None = None

    # Transport: stdio unless an HTTP port is configured
    http_port: int | None = Field(default=None, ge=1, le=65535)
    http_host: str = "0.0.0.0"
    json_response: bool = False

    # URL content cache
    cache_ttl_ms: int = Field(default=60_000, ge=1)
    cache_sweep_interval_ms: int | None = Field(default=None, ge=1)  # Defaults to TTL

    # Outbound request timeouts
    fetch_timeout_ms: int = Field(default=10_000, ge=1)
    search_timeout_ms: int = Field(default=30_000, ge=1)

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    structured_logging: bool = True  # JSON format vs human-readable
    log_file: str | None = None  # Optional file path for logs

    @property
    def has_auth(self) -> bool:
        return bool(self.auth_username and self.auth_password)

    @property
    def transport(self) -> str:
        return "http" if self.http_port else "stdio"


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ServerConfig:
    """Load server configuration from YAML file and environment.

    Environment variables win over values from the file.

    Args:
        config_path: Path to config file. Defaults to ~/.searxng-mcp/config.yaml
        env: Environment mapping. Defaults to os.environ

    Returns:
        ServerConfig instance
    """
    if config_path is None:
        config_path = DEFAULT_DATA_DIR / "config.yaml"
    if env is None:
        env = os.environ

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    for var, field_name in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[field_name] = value

    return ServerConfig(**data)


def validate_config(config: ServerConfig) -> str | None:
    """Check configuration for problems worth reporting at startup.

    Returns:
        Human readable description of the issues, or None when valid
    """
    issues: list[str] = []

    if not config.searxng_url:
        issues.append("SEARXNG_URL not set")
    else:
        parts = urlsplit(config.searxng_url)
        if not parts.scheme or not parts.netloc:
            issues.append(f"SEARXNG_URL invalid format: {config.searxng_url}")
        elif parts.scheme not in ("http", "https"):
            issues.append(f"SEARXNG_URL invalid protocol: {parts.scheme}")

    if config.auth_username and not config.auth_password:
        issues.append("AUTH_USERNAME set but AUTH_PASSWORD missing")
    if config.auth_password and not config.auth_username:
        issues.append("AUTH_PASSWORD set but AUTH_USERNAME missing")

    if not issues:
        return None

    return (
        f"Configuration Issues: {', '.join(issues)}. "
        "Set SEARXNG_URL to your SearXNG instance (e.g. http://localhost:8080)."
    )
