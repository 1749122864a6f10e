"""
OrderLockRegistry -- in-process guard against overlapping order actions.

Responsibility:
    Reject a second lifecycle action (ship, settle, edit, delete) on an
    order while an earlier one is still running.  The guard never waits:
    contention is reported to the caller as ``OrderBusyError``.

Architecture position:
    Kernel > Services.  Shared by every service instance that writes orders
    in one process; pass the same registry to each service.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from groupbuy_kernel.exceptions import OrderBusyError
from groupbuy_kernel.logging_config import get_logger

logger = get_logger("services.order_lock")


class OrderLockRegistry:
    """Non-blocking per-order mutual exclusion."""

    def __init__(self) -> None:
        self._held: set[UUID] = set()
        self._lock = threading.Lock()

    def is_held(self, order_id: UUID) -> bool:
        with self._lock:
            return order_id in self._held

    @contextmanager
    def hold(self, order_id: UUID) -> Iterator[None]:
        with self._lock:
            if order_id in self._held:
                logger.warning("order_busy", extra={"order_id": str(order_id)})
                raise OrderBusyError(order_id)
            self._held.add(order_id)
        try:
            yield
        finally:
            with self._lock:
                self._held.discard(order_id)
