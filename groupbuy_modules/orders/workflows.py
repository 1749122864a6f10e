"""
Order and Procurement Workflows (``groupbuy_modules.orders.workflows``).

Responsibility
--------------
Declares the two lifecycle state machines and the one function that moves
both of them together when an order ships.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.  Imports canonical
Guard, Transition, Workflow from ``groupbuy_kernel.domain.workflow``.

Invariants enforced
-------------------
* ``on_order_ship`` is the only code that decides new statuses for an
  order and its procurement lines in the same step.
* Ship and settle fire only from the states their transitions declare.
  Every other status change is a manual edit and is not checked here.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from groupbuy_kernel.domain.workflow import Guard, Transition, Workflow
from groupbuy_kernel.exceptions import TransitionError
from groupbuy_kernel.logging_config import get_logger
from groupbuy_modules.orders.models import (
    Order,
    OrderStatus,
    ProcurementLine,
    ProcurementStatus,
)

logger = get_logger("modules.orders.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ALL_ARRIVED_CN = Guard(
    name="all_arrived_cn",
    description="Every procurement line has arrived in China before shipping",
    blocking=False,
)


# -----------------------------------------------------------------------------
# Order Workflow
# -----------------------------------------------------------------------------

_O = OrderStatus

ORDER_WORKFLOW = Workflow(
    name="order",
    description="Customer order lifecycle",
    initial_state=_O.UNPAID.value,
    states=tuple(s.value for s in OrderStatus),
    terminal_states=(_O.SETTLED.value, _O.REFUNDED.value),
    transitions=(
        Transition(_O.UNPAID.value, _O.PAID_HAS_DEPOSIT.value, action="pay_with_deposit"),
        Transition(_O.UNPAID.value, _O.PAID_NO_DEPOSIT.value, action="pay_without_deposit"),
        Transition(_O.PAID_HAS_DEPOSIT.value, _O.SHIPPED.value, action="ship", guard=ALL_ARRIVED_CN),
        Transition(_O.PAID_NO_DEPOSIT.value, _O.SHIPPED.value, action="ship", guard=ALL_ARRIVED_CN),
        Transition(_O.SHIPPED.value, _O.CONFIRMED.value, action="confirm"),
        Transition(_O.SHIPPED.value, _O.REFUND_PENDING.value, action="request_refund"),
        Transition(_O.CONFIRMED.value, _O.REFUND_PENDING.value, action="request_refund"),
        Transition(_O.SHIPPED.value, _O.PARTIAL_REFUND_PENDING.value, action="request_partial_refund"),
        Transition(_O.CONFIRMED.value, _O.PARTIAL_REFUND_PENDING.value, action="request_partial_refund"),
        Transition(_O.REFUND_PENDING.value, _O.REFUNDED.value, action="refund"),
        Transition(_O.PARTIAL_REFUND_PENDING.value, _O.REFUNDED.value, action="refund"),
        Transition(_O.SHIPPED.value, _O.SETTLED.value, action="settle"),
        Transition(_O.CONFIRMED.value, _O.SETTLED.value, action="settle"),
        Transition(_O.PARTIAL_REFUND_PENDING.value, _O.SETTLED.value, action="settle"),
    ),
)


# -----------------------------------------------------------------------------
# Procurement Workflow
# -----------------------------------------------------------------------------

_P = ProcurementStatus

_PROCUREMENT_FLOW = (
    Transition(_P.NOT_ORDERED.value, _P.ORDERED_PARTIAL.value, action="order_partial"),
    Transition(_P.NOT_ORDERED.value, _P.ORDERED_FULL.value, action="order_full"),
    Transition(_P.ORDERED_PARTIAL.value, _P.ORDERED_FULL.value, action="order_full"),
    Transition(_P.ORDERED_PARTIAL.value, _P.ARRIVED_JP_PARTIAL.value, action="arrive_jp_partial"),
    Transition(_P.ORDERED_FULL.value, _P.ARRIVED_JP_PARTIAL.value, action="arrive_jp_partial"),
    Transition(_P.ORDERED_FULL.value, _P.ARRIVED_JP_FULL.value, action="arrive_jp_full"),
    Transition(_P.ARRIVED_JP_PARTIAL.value, _P.ARRIVED_JP_FULL.value, action="arrive_jp_full"),
    Transition(_P.ARRIVED_JP_PARTIAL.value, _P.ARRIVED_CN.value, action="arrive_cn"),
    Transition(_P.ARRIVED_JP_FULL.value, _P.ARRIVED_CN.value, action="arrive_cn"),
    Transition(_P.ARRIVED_CN.value, _P.SHIPPED.value, action="ship"),
)

_PROCUREMENT_TERMINAL = (_P.SHIPPED.value, _P.CANCELLED.value)

PROCUREMENT_WORKFLOW = Workflow(
    name="procurement",
    description="Procurement line lifecycle",
    initial_state=_P.NOT_ORDERED.value,
    states=tuple(s.value for s in ProcurementStatus),
    terminal_states=_PROCUREMENT_TERMINAL,
    transitions=_PROCUREMENT_FLOW + tuple(
        Transition(s.value, _P.CANCELLED.value, action="cancel")
        for s in ProcurementStatus
        if s.value not in _PROCUREMENT_TERMINAL
    ),
)

logger.info(
    "order_workflows_registered",
    extra={
        "workflows": [ORDER_WORKFLOW.name, PROCUREMENT_WORKFLOW.name],
        "order_transition_count": len(ORDER_WORKFLOW.transitions),
        "procurement_transition_count": len(PROCUREMENT_WORKFLOW.transitions),
    },
)


# -----------------------------------------------------------------------------
# Coupling
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ShipPlan:
    """Target statuses for an order and its lines when the order ships."""
    order_status: OrderStatus
    procurement_updates: tuple[tuple[UUID, ProcurementStatus], ...]
    warnings: tuple[str, ...]


def require_action(order: Order, action: str) -> Transition:
    """Return the order transition for ``action`` or raise ``TransitionError``."""
    transition = ORDER_WORKFLOW.find(action, order.status.value)
    if transition is None:
        raise TransitionError(
            entity="order",
            entity_id=order.id,
            current_status=order.status.value,
            action=action,
            allowed_from=ORDER_WORKFLOW.allowed_from(action),
        )
    return transition


def on_order_ship(order: Order, lines: Sequence[ProcurementLine]) -> ShipPlan:
    """
    Decide the statuses an order and all of its lines move to on shipping.

    Every line moves to ``shipped``.  Lines not yet ``arrived_cn`` do not
    block the order; each one produces a warning instead.

    Raises:
        TransitionError: the order is not in a paid state.
    """
    transition = require_action(order, "ship")
    warnings: list[str] = []
    if transition.guard is not None:
        pending = [line for line in lines if line.status is not ProcurementStatus.ARRIVED_CN]
        for line in pending:
            warnings.append(
                f"procurement {line.id} is '{line.status.value}', not "
                f"'{ProcurementStatus.ARRIVED_CN.value}'"
            )
        if pending and transition.guard.blocking:
            raise TransitionError(
                entity="order",
                entity_id=order.id,
                current_status=order.status.value,
                action="ship",
                allowed_from=ORDER_WORKFLOW.allowed_from("ship"),
            )
    return ShipPlan(
        order_status=OrderStatus(transition.to_state),
        procurement_updates=tuple((line.id, ProcurementStatus.SHIPPED) for line in lines),
        warnings=tuple(warnings),
    )
