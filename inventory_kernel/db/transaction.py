"""
Module: inventory_kernel.db.transaction
Responsibility: Run one unit of work as a single database transaction and
    retry it when the failure was contention rather than a real fault.
Architecture position: Kernel > DB.  Used by services; MUST NOT import from
    services/ or selectors/.

Invariants enforced:
    ATOMICITY -- work(session) runs inside ``session.begin()``.  Any
        exception rolls the whole transaction back, so no partial balance
        update or orphan movement record is ever committed.

Failure classification:

    Cause                                   | Raised as              | Retried
    ----------------------------------------|------------------------|--------
    Lock wait exceeded (PG 55P03,           | LockTimeoutError       | yes
      SQLite "database is locked")          |                        |
    Deadlock (40P01), serialization (40001) | TransientStorageError  | yes
    Stale balance version (StaleDataError)  | OptimisticLockError    | yes
    Any other SQLAlchemy error              | StorageFaultError      | no
    InventoryKernelError from the work      | unchanged              | no
      (InsufficientStock, validation, ...)  |                        |

    When retries are exhausted a lock timeout surfaces as LockTimeoutError
    (the caller may retry later) and any other transient cause as
    StorageFaultError.

Failure modes:
    - Exceptions that are neither kernel errors nor SQLAlchemy errors are
      re-raised unchanged after rollback.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.domain.cancellation import CancellationToken
from inventory_kernel.exceptions import (
    ConcurrencyError,
    InventoryKernelError,
    LockTimeoutError,
    OptimisticLockError,
    StorageFaultError,
    TransientStorageError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.transaction")

T = TypeVar("T")

# PostgreSQL SQLSTATE codes
_PG_LOCK_NOT_AVAILABLE = "55P03"
_PG_DEADLOCK_DETECTED = "40P01"
_PG_SERIALIZATION_FAILURE = "40001"

_SQLITE_LOCKED_MESSAGES = ("database is locked", "database table is locked")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff for transient storage failures."""

    max_attempts: int = 3
    base_delay_ms: int = 20
    max_delay_ms: int = 500
    lock_timeout_ms: int = 5000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < self.base_delay_ms:
            raise ValueError("require 0 <= base_delay_ms <= max_delay_ms")
        if self.lock_timeout_ms <= 0:
            raise ValueError("lock_timeout_ms must be positive")

    def delay_seconds(self, attempt: int, rng: random.Random | None = None) -> float:
        """Backoff before the retry that follows ``attempt`` (1-based), with jitter."""
        ceiling = min(self.max_delay_ms, self.base_delay_ms * (2 ** (attempt - 1)))
        jitter = (rng or random).uniform(0.5, 1.0)
        return ceiling * jitter / 1000.0


def classify_storage_error(
    exc: Exception, operation: str, lock_timeout_ms: int
) -> InventoryKernelError:
    """
    Map a SQLAlchemy exception onto the kernel taxonomy.

    Returns:
        A ConcurrencyError for contention, StorageFaultError otherwise.
    """
    if isinstance(exc, StaleDataError):
        return OptimisticLockError(operation)

    if isinstance(exc, DBAPIError):
        orig = exc.orig
        pgcode = getattr(orig, "pgcode", None)
        message = str(orig).lower()
        if pgcode == _PG_LOCK_NOT_AVAILABLE or any(
            m in message for m in _SQLITE_LOCKED_MESSAGES
        ):
            return LockTimeoutError(operation, lock_timeout_ms)
        if pgcode in (_PG_DEADLOCK_DETECTED, _PG_SERIALIZATION_FAILURE):
            return TransientStorageError(operation, message.splitlines()[0] if message else pgcode)

    return StorageFaultError(operation, str(exc).splitlines()[0])


class TransactionRunner:
    """
    Executes callables as atomic, retryable units of work.

    Contract:
        ``run(work, operation=...)`` opens a fresh session per attempt,
        begins a transaction, calls ``work(session)``, and commits.  The
        return value of ``work`` is returned on success.

    Guarantees:
        - All-or-nothing: a failed attempt leaves no trace in the database.
        - Only ConcurrencyError causes are retried, at most
          ``policy.max_attempts`` times in total.
        - The cancellation token, if given, is checked before every attempt.

    Non-goals:
        - Does NOT decide what is a business error; work raises those.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def run(
        self,
        work: Callable[[Session], T],
        *,
        operation: str,
        cancellation: CancellationToken | None = None,
    ) -> T:
        """
        Run ``work`` in a transaction, retrying transient failures.

        Raises:
            LockTimeoutError: Lock waits kept timing out on every attempt.
            StorageFaultError: Non-transient failure, or transient failures
                exhausted the attempts.
            InventoryKernelError: Whatever business error ``work`` raised.
        """
        policy = self._policy
        last_error: ConcurrencyError | None = None

        for attempt in range(1, policy.max_attempts + 1):
            if cancellation is not None:
                cancellation.raise_if_cancelled("before_transaction")

            try:
                return self._run_once(work, operation)
            except ConcurrencyError as exc:
                last_error = exc

            if attempt < policy.max_attempts:
                delay = policy.delay_seconds(attempt)
                logger.warning(
                    "transaction_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "error_code": last_error.code,
                        "delay_ms": round(delay * 1000, 2),
                    },
                )
                self._sleep(delay)

        assert last_error is not None
        logger.error(
            "transaction_retries_exhausted",
            extra={
                "operation": operation,
                "attempts": policy.max_attempts,
                "error_code": last_error.code,
            },
        )
        if isinstance(last_error, LockTimeoutError):
            raise LockTimeoutError(
                operation, policy.lock_timeout_ms, attempts=policy.max_attempts
            ) from last_error
        raise StorageFaultError(
            operation, str(last_error), attempts=policy.max_attempts
        ) from last_error

    def _run_once(self, work: Callable[[Session], T], operation: str) -> T:
        session = self._session_factory()
        try:
            with session.begin():
                self._apply_lock_timeout(session)
                return work(session)
        except InventoryKernelError:
            raise
        except SQLAlchemyError as exc:
            classified = classify_storage_error(
                exc, operation, self._policy.lock_timeout_ms
            )
            if not classified.retryable:
                logger.error(
                    "storage_fault",
                    extra={"operation": operation, "error": str(exc).splitlines()[0]},
                )
            raise classified from exc
        finally:
            session.close()

    def _apply_lock_timeout(self, session: Session) -> None:
        if session.get_bind().dialect.name == "postgresql":
            # SET LOCAL does not accept bind parameters.
            session.execute(
                text(f"SET LOCAL lock_timeout = '{int(self._policy.lock_timeout_ms)}ms'")
            )
