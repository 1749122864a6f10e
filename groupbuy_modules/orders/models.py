"""
Order Domain Models (``groupbuy_modules.orders.models``).

Responsibility
--------------
Frozen value objects for customer orders and their procurement lines, the
two status enums, and the result objects returned by the lifecycle
operations.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.  Services build these
from store records with ``from_record`` and hand them to the engines.

Invariants enforced
-------------------
* Monetary fields are ``Decimal``; ``from_record`` coerces stored values.
* All dataclasses are ``frozen=True``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from groupbuy_engines.aggregation import CostLine, OrderInput
from groupbuy_engines.settlement import Payment, SettlementInput
from groupbuy_kernel.domain.values import ZERO, to_decimal


class OrderStatus(str, Enum):
    """Order lifecycle states.  Must align with ``workflows.ORDER_WORKFLOW.states``."""
    UNPAID = "unpaid"
    PAID_HAS_DEPOSIT = "paid_has_deposit"
    PAID_NO_DEPOSIT = "paid_no_deposit"
    SHIPPED = "shipped"
    CONFIRMED = "confirmed"
    REFUND_PENDING = "refund_pending"
    PARTIAL_REFUND_PENDING = "partial_refund_pending"
    REFUNDED = "refunded"
    SETTLED = "settled"


class ProcurementStatus(str, Enum):
    """Procurement line states.  Must align with ``workflows.PROCUREMENT_WORKFLOW.states``."""
    NOT_ORDERED = "not_ordered"
    ORDERED_PARTIAL = "ordered_partial"
    ORDERED_FULL = "ordered_full"
    ARRIVED_JP_PARTIAL = "arrived_jp_partial"
    ARRIVED_JP_FULL = "arrived_jp_full"
    ARRIVED_CN = "arrived_cn"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


# Default worklist filters: everything not yet closed out.
OPEN_ORDER_STATUSES = frozenset(
    s for s in OrderStatus if s not in (OrderStatus.REFUNDED, OrderStatus.SETTLED)
)
OPEN_PROCUREMENT_STATUSES = frozenset(
    s for s in ProcurementStatus
    if s not in (ProcurementStatus.SHIPPED, ProcurementStatus.CANCELLED)
)


class Payer(str, Enum):
    """Who fronted a procurement payment.  ``None`` on a line means unset."""
    RICO = "Rico"
    DOROTHY = "Dorothy"


def _status(enum: type[Enum], value: Any):
    return value if isinstance(value, enum) else enum(value)


@dataclass(frozen=True)
class ProcurementLine:
    """
    One product line of an order.

    ``procurement_amount`` is the JPY cost frozen when the line was created
    (``quantity_needed * price_jpy`` at that moment).  Later product price
    edits never change it.
    """
    id: UUID
    order_id: UUID
    project_id: UUID | None
    product_id: UUID
    quantity_needed: int
    quantity_purchased: int
    procurement_amount: Decimal
    status: ProcurementStatus
    payer: Payer | None = None
    pay_amount: Decimal = ZERO
    notes: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ProcurementLine:
        payer = record.get("payer")
        return cls(
            id=record["id"],
            order_id=record["order_id"],
            project_id=record.get("project_id"),
            product_id=record["product_id"],
            quantity_needed=int(record["quantity_needed"]),
            quantity_purchased=int(record.get("quantity_purchased") or 0),
            procurement_amount=to_decimal(record.get("procurement_amount")),
            status=_status(ProcurementStatus, record["status"]),
            payer=Payer(payer) if payer else None,
            pay_amount=to_decimal(record.get("pay_amount")),
            notes=record.get("notes"),
        )

    def cost_line(self) -> CostLine:
        return CostLine(
            amount_jpy=self.procurement_amount,
            quantity=self.quantity_needed,
            status=self.status.value,
        )

    def payment(self) -> Payment:
        return Payment(
            payer=self.payer.value if self.payer else None,
            amount_jpy=self.pay_amount,
        )


@dataclass(frozen=True)
class Order:
    """A customer order.  ``fee_amount`` is derived and never taken from input."""
    id: UUID
    project_id: UUID
    order_no: str
    status: OrderStatus
    amount_total: Decimal
    exchange_rate: Decimal
    order_date: date | None = None
    order_name: str | None = None
    is_xianyu: bool = False
    high_fee_flag: bool = False
    fee_amount: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    postage_amount: Decimal = ZERO
    cost_correction: Decimal = ZERO
    cost_correction_name: str | None = None
    rico_receive: Decimal = ZERO
    dorothy_receive: Decimal = ZERO
    notes: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Order:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            order_no=record["order_no"],
            status=_status(OrderStatus, record["status"]),
            amount_total=to_decimal(record.get("amount_total")),
            exchange_rate=to_decimal(record.get("exchange_rate")),
            order_date=record.get("order_date"),
            order_name=record.get("order_name"),
            is_xianyu=bool(record.get("is_xianyu")),
            high_fee_flag=bool(record.get("high_fee_flag")),
            fee_amount=to_decimal(record.get("fee_amount")),
            deposit_amount=to_decimal(record.get("deposit_amount")),
            postage_amount=to_decimal(record.get("postage_amount")),
            cost_correction=to_decimal(record.get("cost_correction")),
            cost_correction_name=record.get("cost_correction_name"),
            rico_receive=to_decimal(record.get("rico_receive")),
            dorothy_receive=to_decimal(record.get("dorothy_receive")),
            notes=record.get("notes"),
        )

    def figures_input(self, lines: tuple[ProcurementLine, ...]) -> OrderInput:
        return OrderInput(
            status=self.status.value,
            amount_total=self.amount_total,
            exchange_rate=self.exchange_rate,
            postage_amount=self.postage_amount,
            cost_correction=self.cost_correction,
            is_xianyu=self.is_xianyu,
            high_fee_flag=self.high_fee_flag,
            lines=tuple(line.cost_line() for line in lines),
        )

    def settlement_input(
        self, lines: tuple[ProcurementLine, ...], fee_amount: Decimal,
    ) -> SettlementInput:
        return SettlementInput(
            amount_total=self.amount_total,
            fee_amount=fee_amount,
            exchange_rate=self.exchange_rate,
            postage_amount=self.postage_amount,
            cost_correction=self.cost_correction,
            payments=tuple(line.payment() for line in lines),
        )


@dataclass(frozen=True)
class LineItem:
    """A product selection on order creation."""
    product_id: UUID
    quantity: int


@dataclass(frozen=True)
class CreateOrderResult:
    order_id: UUID
    procurement_ids: tuple[UUID, ...]


@dataclass(frozen=True)
class ShipResult:
    order_id: UUID
    order_status: OrderStatus
    procurement_statuses: tuple[ProcurementStatus, ...]
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class SettleResult:
    order_id: UUID
    rico_receivable: Decimal
    dorothy_receivable: Decimal
    order_status: OrderStatus
    correction_payer: str
