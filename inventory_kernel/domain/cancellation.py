"""
Cooperative cancellation for in-flight movements.

A caller may cancel a movement until the applicator starts persisting it.
After that point the token is no longer consulted, so the movement always
resolves to committed or failed, never half-applied.
"""

import threading

from inventory_kernel.exceptions import MovementCancelledError


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """
        Raises:
            MovementCancelledError: If cancel() has been called.
        """
        if self._event.is_set():
            raise MovementCancelledError(stage)
