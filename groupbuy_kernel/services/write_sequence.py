"""
WriteSequence -- the transaction boundary for multi-record writes.

Responsibility:
    Run the ordered writes of one lifecycle action (create, ship, settle,
    delete) so that the caller either sees all of them or gets a typed error
    describing exactly what was left behind.

Architecture position:
    Kernel > Services -- imperative shell over a ``RecordStore``.

Execution paths:
    Transactional (``store.supports_transactions``)
        Every step runs inside ``store.transaction()``.  Any failure rolls
        the whole block back and raises ``StoreWriteError`` naming the step.

    Compensating (stores without transactions)
        Steps run in order.  A failing first step leaves nothing behind and
        raises ``StoreWriteError``.  A failing later step is retried once;
        if the retry fails, the completed steps are compensated in reverse
        order and ``PartialWriteError`` reports the failed step, the
        completed steps and whether every compensation succeeded.

Invariants enforced:
    - The cancel token is checked once, before the first write.  After that
      the sequence runs to completion and reports truthfully.
    - No step is attempted more than twice.

Usage:
    seq = WriteSequence(store, "settle", cancel_token=token)
    seq.add(
        "update_order",
        lambda results: store.update("orders", order_id, changes),
        compensate=lambda _: store.update("orders", order_id, previous),
    )
    results = seq.run()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from groupbuy_kernel.domain.cancel import CancelToken
from groupbuy_kernel.exceptions import PartialWriteError, StoreWriteError
from groupbuy_kernel.logging_config import get_logger
from groupbuy_kernel.store.contract import RecordStore

logger = get_logger("services.write_sequence")

StepAction = Callable[[dict[str, Any]], Any]
StepCompensation = Callable[[Any], None]


@dataclass(frozen=True)
class WriteStep:
    """One named write.  ``action`` receives the results of earlier steps."""
    name: str
    action: StepAction
    compensate: StepCompensation | None = None


class WriteSequence:
    """Ordered, all-or-report write steps for one operation."""

    def __init__(
        self,
        store: RecordStore,
        operation: str,
        cancel_token: CancelToken | None = None,
    ):
        self._store = store
        self._operation = operation
        self._cancel_token = cancel_token
        self._steps: list[WriteStep] = []

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._steps)

    def add(
        self,
        name: str,
        action: StepAction,
        compensate: StepCompensation | None = None,
    ) -> WriteSequence:
        self._steps.append(WriteStep(name, action, compensate))
        return self

    def run(self) -> dict[str, Any]:
        """Execute every step; return step results keyed by step name."""
        if self._cancel_token is not None:
            self._cancel_token.raise_if_cancelled(self._operation)

        logger.info(
            "write_sequence_started",
            extra={
                "write_operation": self._operation,
                "steps": list(self.step_names),
                "transactional": self._store.supports_transactions,
            },
        )
        if self._store.supports_transactions:
            results = self._run_transactional()
        else:
            results = self._run_compensating()
        logger.info(
            "write_sequence_completed",
            extra={"write_operation": self._operation, "steps": list(self.step_names)},
        )
        return results

    def _run_transactional(self) -> dict[str, Any]:
        results: dict[str, Any] = {}
        current = None
        try:
            with self._store.transaction():
                for step in self._steps:
                    current = step.name
                    results[step.name] = step.action(results)
        except Exception as exc:
            failed = current or "begin"
            logger.error(
                "write_sequence_rolled_back",
                extra={
                    "write_operation": self._operation,
                    "failed_step": failed,
                    "error": str(exc),
                },
            )
            raise StoreWriteError(self._operation, failed, str(exc)) from exc
        return results

    def _run_compensating(self) -> dict[str, Any]:
        results: dict[str, Any] = {}
        completed: list[tuple[WriteStep, Any]] = []
        for step in self._steps:
            try:
                result = step.action(results)
            except Exception as exc:
                if not completed:
                    logger.error(
                        "write_sequence_first_step_failed",
                        extra={
                            "write_operation": self._operation,
                            "failed_step": step.name,
                            "error": str(exc),
                        },
                    )
                    raise StoreWriteError(self._operation, step.name, str(exc)) from exc
                logger.warning(
                    "write_step_retrying",
                    extra={
                        "write_operation": self._operation,
                        "step": step.name,
                        "error": str(exc),
                    },
                )
                try:
                    result = step.action(results)
                except Exception as retry_exc:
                    rolled_back = self._compensate(completed)
                    completed_names = tuple(s.name for s, _ in completed)
                    logger.error(
                        "write_sequence_partial_failure",
                        extra={
                            "write_operation": self._operation,
                            "failed_step": step.name,
                            "completed_steps": list(completed_names),
                            "rolled_back": rolled_back,
                            "error": str(retry_exc),
                        },
                    )
                    raise PartialWriteError(
                        self._operation,
                        step.name,
                        completed_names,
                        rolled_back,
                        str(retry_exc),
                    ) from retry_exc
            completed.append((step, result))
            results[step.name] = result
        return results

    def _compensate(self, completed: list[tuple[WriteStep, Any]]) -> bool:
        """Undo completed steps newest-first; True if every undo succeeded."""
        ok = True
        for step, result in reversed(completed):
            if step.compensate is None:
                logger.warning(
                    "write_step_not_compensable",
                    extra={"write_operation": self._operation, "step": step.name},
                )
                ok = False
                continue
            try:
                step.compensate(result)
            except Exception as exc:
                ok = False
                logger.error(
                    "write_step_compensation_failed",
                    extra={
                        "write_operation": self._operation,
                        "step": step.name,
                        "error": str(exc),
                    },
                )
        return ok
