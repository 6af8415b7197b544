"""
Inventory engine configuration schema.

Frozen dataclasses that the loader fills from YAML.  Each section validates
its own values and reports every problem, not just the first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the ledger database."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30

    def problems(self) -> list[str]:
        errors = []
        if not self.url:
            errors.append("database.url is required")
        if self.pool_size < 1:
            errors.append("database.pool_size must be at least 1")
        if self.max_overflow < 0:
            errors.append("database.max_overflow must be >= 0")
        if self.pool_timeout < 1:
            errors.append("database.pool_timeout must be at least 1")
        return errors


@dataclass(frozen=True)
class RetryConfig:
    """Retry and lock-wait settings for transient storage failures."""

    max_attempts: int = 3
    base_delay_ms: int = 20
    max_delay_ms: int = 500
    lock_timeout_ms: int = 5000

    def problems(self) -> list[str]:
        errors = []
        if self.max_attempts < 1:
            errors.append("retry.max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            errors.append("retry.base_delay_ms must be >= 0")
        if self.max_delay_ms < self.base_delay_ms:
            errors.append("retry.max_delay_ms must be >= retry.base_delay_ms")
        if self.lock_timeout_ms <= 0:
            errors.append("retry.lock_timeout_ms must be positive")
        return errors


@dataclass(frozen=True)
class PaginationConfig:
    """Movement history page sizes."""

    default_page_size: int = 50
    max_page_size: int = 500

    def problems(self) -> list[str]:
        if not 1 <= self.default_page_size <= self.max_page_size:
            return ["pagination requires 1 <= default_page_size <= max_page_size"]
        return []


@dataclass(frozen=True)
class CatalogConfig:
    """Resources the static catalog reports as inactive, plus minimum stock levels."""

    inactive_products: tuple[UUID, ...] = ()
    inactive_variants: tuple[UUID, ...] = ()
    inactive_warehouses: tuple[UUID, ...] = ()
    min_stock: tuple[tuple[UUID, int], ...] = ()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def problems(self) -> list[str]:
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return [f"logging.level '{self.level}' is not a valid level"]
        return []


@dataclass(frozen=True)
class EngineConfig:
    """
    The complete runtime configuration of the movement engine.

    ``checksum`` is the SHA-256 of the parsed source document and identifies
    exactly which configuration governed a process.
    """

    config_id: str
    database: DatabaseConfig
    retry: RetryConfig = field(default_factory=RetryConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""

    def problems(self) -> list[str]:
        errors = [] if self.config_id else ["config_id is required"]
        errors += self.database.problems()
        errors += self.retry.problems()
        errors += self.pagination.problems()
        errors += self.logging.problems()
        return errors
