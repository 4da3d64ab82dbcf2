"""Pydantic configuration models shared across vimeonet.

A single :class:`ClientConfig` describes how a
:class:`~vimeonet.client.VimeoClient` talks to the API: the base URL and
API version, where the access token comes from, transport settings
(:class:`RequestConfig`) and response caching (:class:`CacheConfig`).

The config is serialised as JSON in the user's config directory by
:mod:`vimeonet.config`. Unknown keys are rejected so that typos in a
hand-edited config file surface as a :class:`~vimeonet.exceptions.ConfigError`
instead of being silently ignored.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://api.vimeo.com"
DEFAULT_API_VERSION = "3.4"


class RequestConfig(BaseModel):
    """Transport and retry defaults applied to every API call."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_connections: int = Field(
        default=4, ge=1, description="Concurrent in-flight HTTP requests"
    )
    retry_attempts: int = Field(
        default=1, ge=1, description="Attempts per request (1 disables retry)"
    )
    retry_initial_delay: float = Field(
        default=1.0, ge=0.0, description="Delay before the first retry, doubled per retry"
    )


class CacheConfig(BaseModel):
    """Response cache settings.

    ``memory`` and ``disk`` select the storage layers. With both enabled,
    reads are served from memory first and fall back to disk.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Enable response caching")
    memory: bool = Field(default=True, description="Keep responses in process memory")
    disk: bool = Field(default=True, description="Persist responses with diskcache")
    ttl_seconds: Optional[int] = Field(
        default=None, description="Expiry for disk entries; None keeps them until removed"
    )
    directory: Optional[str] = Field(
        default=None, description="Cache directory (defaults to the XDG cache dir)"
    )


class ClientConfig(BaseModel):
    """Top-level client configuration persisted at ``~/.config/vimeonet/config.json``.

    Example::

        ClientConfig(
            base_url="https://api.vimeo.com",
            access_token_source="env:VIMEO_ACCESS_TOKEN",
            cache=CacheConfig(disk=False),
        )
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API base URL")
    api_version: str = Field(
        default=DEFAULT_API_VERSION, description="Version requested in the Accept header"
    )
    access_token_source: Optional[str] = Field(
        default=None, description="Credential source for the bearer token: env:VAR or file:/path"
    )
    user_agent: Optional[str] = Field(default=None, description="User-Agent header override")
    worker_threads: int = Field(
        default=4, ge=1, description="Threads interpreting responses and reading the cache"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @property
    def accept_header(self) -> str:
        """The versioned ``Accept`` header sent with every request."""
        return f"application/vnd.vimeo.*+json;version={self.api_version}"
