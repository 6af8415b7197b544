"""Database layer - engine, base classes, transactions, and immutability."""

from inventory_kernel.db.base import UUID, Base, UTCDateTime, UUIDString
from inventory_kernel.db.engine import build_engine, create_tables, drop_tables

__all__ = [
    "build_engine",
    "create_tables",
    "drop_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
