"""
Cancellation token for user-initiated lifecycle actions.

A lifecycle action may be aborted by the user only before its first write is
issued.  The action checks the token once, immediately before handing its
write sequence to the store; once writes have started the sequence runs to
completion and reports its real outcome.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from groupbuy_kernel.exceptions import OperationCancelledError
from groupbuy_kernel.logging_config import get_logger

logger = get_logger("domain.cancel")


class CancelToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self, operation: str = "action"):
        self.operation = operation
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._cancelled_at: datetime | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "user_abort") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._cancelled_at = datetime.now(timezone.utc)
            self._event.set()
        logger.info(
            "operation_cancel_requested",
            extra={"cancel_operation": self.operation, "reason": reason},
        )

    def raise_if_cancelled(self, operation: str | None = None) -> None:
        """Raise ``OperationCancelledError`` if the token has been cancelled."""
        if self._event.is_set():
            raise OperationCancelledError(operation or self.operation, self._reason)
