"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``inventory_config.schema`` dataclasses.  The single public entry point
for runtime config is ``inventory_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database`` section or bad values  -> ``ValueError`` listing
  every problem found.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from inventory_config.schema import (
    CatalogConfig,
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
    PaginationConfig,
    RetryConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _uuids(values: Any, name: str, errors: list[str]) -> tuple[UUID, ...]:
    parsed = []
    for value in values or ():
        try:
            parsed.append(UUID(str(value)))
        except ValueError:
            errors.append(f"catalog.{name}: '{value}' is not a UUID")
    return tuple(parsed)


def _min_stock(values: Any, errors: list[str]) -> tuple[tuple[UUID, int], ...]:
    if values and not isinstance(values, dict):
        errors.append("catalog.min_stock: must map product UUIDs to integers")
        return ()
    parsed = []
    for product, minimum in (values or {}).items():
        try:
            product_id = UUID(str(product))
        except ValueError:
            errors.append(f"catalog.min_stock: '{product}' is not a UUID")
            continue
        if isinstance(minimum, bool) or not isinstance(minimum, int) or minimum < 0:
            errors.append(f"catalog.min_stock.{product}: must be a non-negative integer")
            continue
        parsed.append((product_id, minimum))
    return tuple(parsed)


def parse_engine_config(data: dict[str, Any], database_url: str | None = None) -> EngineConfig:
    """
    Parse an EngineConfig from a dict.

    Args:
        data: Parsed YAML document.
        database_url: Overrides ``database.url`` when given.

    Raises:
        ValueError: With every problem found, one per line.
    """
    errors: list[str] = []

    db = dict(data.get("database") or {})
    if database_url:
        db["url"] = database_url
    catalog = data.get("catalog") or {}

    try:
        config = EngineConfig(
            config_id=str(data.get("config_id", "")),
            database=DatabaseConfig(
                url=db.get("url", ""),
                echo=bool(db.get("echo", False)),
                pool_size=int(db.get("pool_size", 20)),
                max_overflow=int(db.get("max_overflow", 10)),
                pool_timeout=int(db.get("pool_timeout", 30)),
            ),
            retry=RetryConfig(**(data.get("retry") or {})),
            pagination=PaginationConfig(**(data.get("pagination") or {})),
            catalog=CatalogConfig(
                inactive_products=_uuids(catalog.get("inactive_products"), "inactive_products", errors),
                inactive_variants=_uuids(catalog.get("inactive_variants"), "inactive_variants", errors),
                inactive_warehouses=_uuids(
                    catalog.get("inactive_warehouses"), "inactive_warehouses", errors
                ),
                min_stock=_min_stock(catalog.get("min_stock"), errors),
            ),
            logging=LoggingConfig(**(data.get("logging") or {})),
            checksum=compute_checksum(data),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Configuration validation failed:\n  - {exc}") from exc

    errors += config.problems()
    if errors:
        raise ValueError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
