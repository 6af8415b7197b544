"""
Config -> Kernel Bridges.

Functions that convert an EngineConfig into kernel objects.  These live in
inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_movement_service

    config = get_active_config()
    engine = build_engine_from_config(config)
    service = build_movement_service(config, sessionmaker(bind=engine))
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import EngineConfig
from inventory_kernel.db.engine import build_engine
from inventory_kernel.db.transaction import RetryPolicy
from inventory_kernel.domain.catalog import StaticCatalog
from inventory_kernel.domain.clock import Clock
from inventory_kernel.logging_config import configure_logging
from inventory_kernel.services.movement_service import MovementService, MovementServiceConfig


def build_retry_policy(config: EngineConfig) -> RetryPolicy:
    r = config.retry
    return RetryPolicy(
        max_attempts=r.max_attempts,
        base_delay_ms=r.base_delay_ms,
        max_delay_ms=r.max_delay_ms,
        lock_timeout_ms=r.lock_timeout_ms,
    )


def build_service_config(config: EngineConfig) -> MovementServiceConfig:
    return MovementServiceConfig(
        retry_policy=build_retry_policy(config),
        default_page_size=config.pagination.default_page_size,
        max_page_size=config.pagination.max_page_size,
    )


def build_catalog(config: EngineConfig) -> StaticCatalog:
    """StaticCatalog with the configured inactive resources and minimum stock."""
    return StaticCatalog(
        inactive_products=config.catalog.inactive_products,
        inactive_variants=config.catalog.inactive_variants,
        inactive_warehouses=config.catalog.inactive_warehouses,
        min_stock=dict(config.catalog.min_stock),
    )


def build_engine_from_config(config: EngineConfig) -> Engine:
    db = config.database
    return build_engine(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        lock_timeout_ms=config.retry.lock_timeout_ms,
    )


def apply_logging_config(config: EngineConfig) -> None:
    configure_logging(level=logging.getLevelName(config.logging.level.upper()))


def build_movement_service(
    config: EngineConfig,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
) -> MovementService:
    """Wire a MovementService from configuration."""
    return MovementService(
        session_factory,
        build_catalog(config),
        clock=clock,
        config=build_service_config(config),
    )
