"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``stock_config.schema`` dataclasses.  Runtime callers go through
``stock_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from the schema's ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    AuthorizationConfig,
    DatabaseConfig,
    ListingConfig,
    LoggingConfig,
    MigrationConfig,
    NumberingConfig,
    StockConfiguration,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
    )


def parse_authorization(data: dict[str, Any]) -> AuthorizationConfig:
    names = data.get("super_admin_role_names")
    if names is None:
        return AuthorizationConfig()
    return AuthorizationConfig(super_admin_role_names=tuple(str(n) for n in names))


def parse_config(data: dict[str, Any]) -> StockConfiguration:
    """Parse a whole configuration set.  Sections other than database are optional."""
    return StockConfiguration(
        config_id=data["config_id"],
        version=int(data["version"]),
        database=parse_database(data["database"]),
        logging=LoggingConfig(**(data.get("logging") or {})),
        authorization=parse_authorization(data.get("authorization") or {}),
        migration=MigrationConfig(**(data.get("migration") or {})),
        listing=ListingConfig(**(data.get("listing") or {})),
        numbering=NumberingConfig(**(data.get("numbering") or {})),
        checksum=compute_checksum(data),
    )
