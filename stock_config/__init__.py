"""
stock_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits beside ``stock_kernel`` and below
    ``stock_services``.  The kernel MUST NEVER import from ``stock_config``;
    the service layer passes the relevant values into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` -- a section failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STOCK_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import StockConfiguration

_logger = logging.getLogger("stock_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "STOCK_DATABASE_URL"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> StockConfiguration:
    """The only public configuration entrypoint.

    Loads ``<config_dir>/<name>.yaml`` (``stock_config/sets`` by default).
    ``STOCK_DATABASE_URL``, when set, replaces ``database.url``.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No configuration set named {name!r} in {sets_dir}")

    config = parse_config(load_yaml_file(path))

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=override),
        )

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "database_url_overridden": bool(override),
        },
    )
    return config


__all__ = ["StockConfiguration", "get_active_config"]
