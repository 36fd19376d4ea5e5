"""Cooperative cancellation shared by long-running operations."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import OperationCancelled


class CancelToken:
    """Cancellation flag with an optional deadline.

    Operations call `raise_if_cancelled()` at safe points (between embeddings,
    before each batch upsert) so a cancelled call returns promptly without
    writing a half-built batch.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelled(f"{operation} was cancelled")
        if self.cancelled:
            raise OperationCancelled(f"{operation} exceeded its deadline")
