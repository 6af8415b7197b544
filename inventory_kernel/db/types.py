"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases and key helpers shared by models,
    domain, services, and selectors.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/, or selectors/.

Invariants enforced:
    Balance-key uniqueness for the base product.  SQL unique constraints treat
    NULLs as distinct, so a nullable variant_id alone would allow two balance
    rows for (warehouse, product, NULL).  Every row therefore also stores a
    non-null variant_key, derived here and nowhere else.
"""

from typing import Annotated
from uuid import UUID

from sqlalchemy import BigInteger, String

# Whole-unit stock quantity
Quantity = Annotated[int, BigInteger]

# Free-text external document id (purchase order, delivery note, ...)
Reference = Annotated[str, String(100)]

# Movement notes / adjustment reason
Notes = Annotated[str, String(1000)]

# Caller-supplied idempotency token
IdempotencyToken = Annotated[str, String(200)]

# SHA-256 hash as hex string (64 characters)
PayloadHash = Annotated[str, String(64)]

REFERENCE_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 1000
IDEMPOTENCY_TOKEN_MAX_LENGTH = 200

# Largest value a BigInteger quantity column can hold
MAX_QUANTITY = 2**63 - 1

# variant_key value for balances and movements of the base product
BASE_VARIANT_KEY = "-"


def variant_key_for(variant_id: UUID | None) -> str:
    """
    Return the non-null key column value for a variant id.

    Args:
        variant_id: Variant UUID, or None for the base product.

    Returns:
        The variant UUID as a string, or BASE_VARIANT_KEY.
    """
    if variant_id is None:
        return BASE_VARIANT_KEY
    return str(variant_id)
