"""
StockConfiguration schema.

Frozen dataclasses the loader parses YAML configuration sets into.  Each
section validates itself in ``__post_init__`` so an invalid set fails at
load time, never at first use.
"""

from __future__ import annotations

from dataclasses import dataclass, field

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        for name in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
            if getattr(self, name) < 0:
                raise ValueError(f"database.{name} must not be negative")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}")


@dataclass(frozen=True)
class AuthorizationConfig:
    """Tenant roles whose holders act as super-administrators."""

    super_admin_role_names: tuple[str, ...] = ("Admin", "super-admin")

    def __post_init__(self) -> None:
        if not self.super_admin_role_names:
            raise ValueError("authorization.super_admin_role_names must not be empty")


@dataclass(frozen=True)
class MigrationConfig:
    actor_id: str = "SYSTEM_MIGRATION"
    chunk_size: int = 100

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("migration.actor_id must not be empty")
        if self.chunk_size < 1:
            raise ValueError("migration.chunk_size must be at least 1")


@dataclass(frozen=True)
class ListingConfig:
    default_page_size: int = 20
    max_page_size: int = 100

    def __post_init__(self) -> None:
        if self.default_page_size < 1:
            raise ValueError("listing.default_page_size must be at least 1")
        if self.max_page_size < self.default_page_size:
            raise ValueError("listing.max_page_size must be >= default_page_size")


@dataclass(frozen=True)
class NumberingConfig:
    transfer_prefix: str = "TRF"
    request_prefix: str = "REQ"

    def __post_init__(self) -> None:
        for name in ("transfer_prefix", "request_prefix"):
            value = getattr(self, name)
            if not value or not value.isalnum():
                raise ValueError(f"numbering.{name} must be a non-empty alphanumeric string")


@dataclass(frozen=True)
class StockConfiguration:
    """One named configuration set."""

    config_id: str
    version: int
    database: DatabaseConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    authorization: AuthorizationConfig = field(default_factory=AuthorizationConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    checksum: str = ""
