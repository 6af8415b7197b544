"""
Keyset pagination over the movement ledger.

Pages are ordered by (created_at, id), both descending.  The cursor is an
opaque url-safe token encoding the last row returned, so a page fetched
after new movements arrive resumes exactly where the previous page ended
without skipping or repeating rows.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from inventory_kernel.domain.dtos import CommittedMovement, MovementPage
from inventory_kernel.exceptions import MovementValidationError
from inventory_kernel.models.movement import StockMovement


def encode_cursor(created_at: datetime, movement_id: UUID) -> str:
    raw = json.dumps([created_at.isoformat(), str(movement_id)]).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, UUID]:
    """
    Raises:
        MovementValidationError: The cursor was not issued by paginate().
    """
    try:
        created_at, movement_id = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        parsed = datetime.fromisoformat(created_at)
        if parsed.tzinfo is None:
            raise ValueError("naive cursor timestamp")
        return parsed, UUID(movement_id)
    except (ValueError, TypeError, UnicodeError) as exc:
        raise MovementValidationError(
            [{"field": "cursor", "code": "invalid_cursor", "message": "cursor is malformed"}]
        ) from exc


def paginate(session: Session, stmt: Select, cursor: str | None, limit: int) -> MovementPage:
    """Apply keyset pagination to a StockMovement query and run it."""
    if limit < 1:
        raise ValueError("limit must be at least 1")

    if cursor is not None:
        after_ts, after_id = decode_cursor(cursor)
        stmt = stmt.where(
            or_(
                StockMovement.created_at < after_ts,
                and_(StockMovement.created_at == after_ts, StockMovement.id < after_id),
            )
        )

    rows = session.execute(
        stmt.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit + 1)
    ).scalars().all()

    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = encode_cursor(rows[-1].created_at, rows[-1].id) if has_more else None
    return MovementPage(
        items=tuple(CommittedMovement.from_model(r) for r in rows),
        next_cursor=next_cursor,
    )
