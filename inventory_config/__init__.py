"""
inventory_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``inventory_kernel``.  The kernel MUST NEVER
    import from ``inventory_config``; bridges in this package translate
    configuration into kernel objects.

Resolution order:
    1. ``path`` argument
    2. ``INVENTORY_CONFIG`` environment variable
    3. ``inventory_config/sets/default.yaml``

    ``INVENTORY_DATABASE_URL`` overrides ``database.url`` in every case.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- schema validation failures, all listed.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the config_id and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_engine_config
from inventory_config.schema import EngineConfig

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "INVENTORY_CONFIG"
DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"


def get_active_config(path: str | Path | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit configuration file.  Falls back to the
            ``INVENTORY_CONFIG`` environment variable, then the bundled
            default set.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    resolved = Path(path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_FILE)
    if not resolved.is_file():
        raise FileNotFoundError(f"Configuration file not found: {resolved}")

    config = parse_engine_config(
        load_yaml_file(resolved),
        database_url=os.environ.get(DATABASE_URL_ENV),
    )

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_id": config.config_id,
            "checksum": config.checksum,
            "source": str(resolved),
            "dialect": config.database.url.split(":", 1)[0],
        },
    )
    return config


__all__ = [
    "EngineConfig",
    "get_active_config",
]
