"""Configuration structures of the quota backend.

This module defines:
- Connection settings of the Lustre executor and identity services
- Per-cluster service addresses
- The complete service configuration loaded from YAML
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, ValidationError, field_validator

from lustre_quota_backend.backend.exceptions import ConfigurationError
from lustre_quota_backend.common.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServiceSettings(BaseModel):
    """Connection settings of an HTTP service."""

    scheme: str = Field(default="http", description="URL scheme of the service")
    timeout: float = Field(default=5.0, description="Request timeout in seconds")

    @field_validator("scheme")
    @classmethod
    def validate_scheme(cls, v: str) -> str:
        """Only http and https are supported."""
        v = v.lower()
        if v not in ("http", "https"):
            msg = "scheme must be http or https"
            raise ValueError(msg)
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Timeout must be positive."""
        if v <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        return v


class ClusterConfig(BaseModel):
    """Addresses of the services of a cluster."""

    lustre_server: str = Field(..., description="host:port of the Lustre command executor")
    identity_server: str = Field(default="", description="host:port of the identity service")

    @field_validator("lustre_server")
    @classmethod
    def validate_lustre_server(cls, v: str) -> str:
        """Address must not be blank."""
        if not v.strip():
            msg = "lustre_server must not be empty"
            raise ValueError(msg)
        return v.strip()


class ServiceConfiguration(BaseModel):
    """Complete configuration of the quota backend.

    YAML Configuration Fields:
        clusters: Mapping of cluster name to service addresses
        database_url: SQLAlchemy URL of the applications database
        lustre: Settings of the Lustre command executor client
        identity: Settings of the identity service client
        log_level: Logging level
        sentry_dsn: Sentry DSN URL for error reporting (optional)
        page_size: Default number of items per page
        max_page_size: Upper bound of items per page
    """

    clusters: dict[str, ClusterConfig] = Field(default_factory=dict)
    database_url: str = Field(default="sqlite:///lustre-quota.db")
    lustre: ServiceSettings = Field(default_factory=ServiceSettings)
    identity: ServiceSettings = Field(default_factory=ServiceSettings)
    log_level: str = Field(default="INFO")
    sentry_dsn: Optional[str] = Field(default=None)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1)

    # Runtime fields
    config_file_path: str = ""

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Log level must be a standard logging level."""
        v = v.upper()
        if v not in LOG_LEVELS:
            msg = f"log_level must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return v

    @field_validator("sentry_dsn")
    @classmethod
    def validate_sentry_dsn(cls, v: Optional[str]) -> Optional[str]:
        """Validate that sentry_dsn is a valid URL when provided."""
        if v is None or v == "":
            return None
        try:
            HttpUrl(v)
            return v
        except ValidationError as e:
            msg = f"sentry_dsn must be a valid URL: {e}"
            raise ValueError(msg) from e


class ClusterResolver:
    """Resolves cluster names to service addresses."""

    def __init__(self, clusters: dict[str, ClusterConfig]) -> None:
        """Inits the resolver with the configured clusters."""
        self.clusters = clusters

    def get(self, cluster: str) -> ClusterConfig:
        """Returns the configuration of the cluster."""
        cluster = (cluster or "").strip()
        if not cluster:
            msg = "missing cluster name"
            raise ConfigurationError(msg)
        try:
            return self.clusters[cluster]
        except KeyError:
            msg = f"Unknown cluster: {cluster}"
            raise ConfigurationError(msg) from None

    def lustre_server(self, cluster: str) -> str:
        """Returns the address of the Lustre command executor of the cluster."""
        return self.get(cluster).lustre_server

    def identity_server(self, cluster: str) -> str:
        """Returns the address of the identity service of the cluster."""
        address = self.get(cluster).identity_server
        if not address:
            msg = f"No identity service configured for cluster {cluster}"
            raise ConfigurationError(msg)
        return address
