"""
Module: groupbuy_engines.aggregation
Responsibility:
    Cost, revenue, profit and ROI figures for one order, and the same
    figures rolled up over a project or the whole portfolio together with
    order and procurement completion rates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import groupbuy_kernel/domain and logging.

Formulas (per order):
    jpy_cost        = sum of procurement line costs (JPY)
    cny_goods_cost  = jpy_cost * exchange_rate
    total_cost      = cny_goods_cost + postage_amount + cost_correction
    fee_amount      = amount_total * rate    (rate 0 off-platform)
    net_income      = amount_total - fee_amount
    profit          = net_income - total_cost
    roi             = profit / total_cost * 100, 0 unless total_cost > 0

Invariants enforced:
    - Decimal-only arithmetic.
    - Refunded orders contribute zero to every financial figure but still
      count in the order and procurement-quantity denominators.
    - Zero denominators give 0, never an exception.
    - Rollups sum unrounded per-order values; rounding happens once, on
      the way out.

Failure modes:
    - ValueError from ``FeeSchedule`` for a rate outside [0, 1).

Usage:
    engine = AggregationEngine()
    figures = engine.order_figures(order=OrderInput(...))
    portfolio = engine.rollup(orders=[OrderInput(...), ...])
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from groupbuy_engines.tracer import traced_engine
from groupbuy_kernel.domain.values import (
    ZERO,
    jpy_to_cny,
    percentage,
    round_money,
    round_percent,
    to_decimal,
)
from groupbuy_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

REFUNDED = "refunded"
CLOSED_ORDER_STATUSES = frozenset({"settled", "refunded"})
PENDING_PROCUREMENT_STATUS = "not_ordered"


def _roi(profit: Decimal, total_cost: Decimal) -> Decimal:
    """Return on cost in percent; 0 unless the total cost is positive."""
    if total_cost <= ZERO:
        return ZERO
    return round_percent(percentage(profit, total_cost))


@dataclass(frozen=True)
class FeeSchedule:
    """
    Platform fee rates.

    Orders placed through the marketplace channel pay ``standard_rate`` of
    the order total, or ``high_rate`` when the order carries the high-fee
    flag.  Orders outside the marketplace pay nothing.
    """

    standard_rate: Decimal = Decimal("0.006")
    high_rate: Decimal = Decimal("0.016")

    def __post_init__(self) -> None:
        for name in ("standard_rate", "high_rate"):
            rate = getattr(self, name)
            if not isinstance(rate, Decimal):
                object.__setattr__(self, name, to_decimal(rate, field=name))
                rate = getattr(self, name)
            if rate < ZERO or rate >= Decimal("1"):
                raise ValueError(f"{name} must be in [0, 1), got {rate}")

    def rate_for(self, is_xianyu: bool, high_fee_flag: bool) -> Decimal:
        if not is_xianyu:
            return ZERO
        return self.high_rate if high_fee_flag else self.standard_rate


@dataclass(frozen=True)
class CostLine:
    """One procurement line as the engine sees it."""
    amount_jpy: Decimal
    quantity: int
    status: str


@dataclass(frozen=True)
class OrderInput:
    """The order fields the figures depend on."""
    status: str
    amount_total: Decimal
    exchange_rate: Decimal
    postage_amount: Decimal = ZERO
    cost_correction: Decimal = ZERO
    is_xianyu: bool = False
    high_fee_flag: bool = False
    lines: tuple[CostLine, ...] = ()

    @property
    def is_refunded(self) -> bool:
        return self.status == REFUNDED


@dataclass(frozen=True)
class OrderFigures:
    """Per-order figures.  CNY amounts at 2 dp, ROI in percent at 2 dp."""
    jpy_cost: Decimal
    cny_goods_cost: Decimal
    total_cost: Decimal
    fee_amount: Decimal
    net_income: Decimal
    profit: Decimal
    roi: Decimal
    excluded: bool = False


@dataclass(frozen=True)
class RollupFigures:
    """Figures summed over a set of orders (a project or the portfolio)."""
    order_count: int
    pending_order_count: int
    procurement_quantity: int
    pending_procurement_quantity: int
    amount_total: Decimal
    fee_amount: Decimal
    total_cost: Decimal
    net_income: Decimal
    profit: Decimal
    roi: Decimal
    order_completion_rate: Decimal
    procurement_completion_rate: Decimal


@dataclass(frozen=True)
class _Raw:
    jpy_cost: Decimal
    cny_goods_cost: Decimal
    total_cost: Decimal
    fee_amount: Decimal
    net_income: Decimal
    profit: Decimal


_ZERO_RAW = _Raw(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)


class AggregationEngine:
    """
    Pure figures calculator shared by the order, project and portfolio views.

    Contract:
        Stateless apart from the fee schedule.  The same inputs always give
        the same outputs.
    """

    def __init__(self, fee_schedule: FeeSchedule | None = None):
        self._fees = fee_schedule or FeeSchedule()

    @property
    def fee_schedule(self) -> FeeSchedule:
        return self._fees

    def fee_amount(
        self,
        amount_total: Decimal,
        is_xianyu: bool,
        high_fee_flag: bool,
    ) -> Decimal:
        """Platform fee for an order total, rounded to 2 dp."""
        rate = self._fees.rate_for(is_xianyu, high_fee_flag)
        return round_money(to_decimal(amount_total) * rate)

    def _raw(self, order: OrderInput) -> _Raw:
        if order.is_refunded:
            return _ZERO_RAW
        jpy_cost = sum((to_decimal(line.amount_jpy) for line in order.lines), ZERO)
        cny_goods_cost = jpy_to_cny(jpy_cost, order.exchange_rate)
        total_cost = (
            cny_goods_cost
            + to_decimal(order.postage_amount)
            + to_decimal(order.cost_correction)
        )
        fee = self.fee_amount(order.amount_total, order.is_xianyu, order.high_fee_flag)
        net_income = to_decimal(order.amount_total) - fee
        return _Raw(
            jpy_cost=jpy_cost,
            cny_goods_cost=cny_goods_cost,
            total_cost=total_cost,
            fee_amount=fee,
            net_income=net_income,
            profit=net_income - total_cost,
        )

    @traced_engine("aggregation", "1.0", fingerprint_fields=("order",))
    def order_figures(self, *, order: OrderInput) -> OrderFigures:
        raw = self._raw(order)
        return OrderFigures(
            jpy_cost=raw.jpy_cost,
            cny_goods_cost=round_money(raw.cny_goods_cost),
            total_cost=round_money(raw.total_cost),
            fee_amount=raw.fee_amount,
            net_income=round_money(raw.net_income),
            profit=round_money(raw.profit),
            roi=_roi(raw.profit, raw.total_cost),
            excluded=order.is_refunded,
        )

    @traced_engine("aggregation", "1.0", fingerprint_fields=("orders",))
    def rollup(self, *, orders: Sequence[OrderInput]) -> RollupFigures:
        """
        Sum figures over ``orders``.

        Refunded orders add nothing to the money totals but are counted in
        ``order_count`` and their line quantities in ``procurement_quantity``.
        """
        amount_total = fee = total_cost = net_income = profit = ZERO
        order_count = pending_orders = 0
        quantity = pending_quantity = 0

        for order in orders:
            order_count += 1
            if order.status not in CLOSED_ORDER_STATUSES:
                pending_orders += 1
            for line in order.lines:
                quantity += line.quantity
                if line.status == PENDING_PROCUREMENT_STATUS:
                    pending_quantity += line.quantity

            if order.is_refunded:
                continue
            raw = self._raw(order)
            amount_total += to_decimal(order.amount_total)
            fee += raw.fee_amount
            total_cost += raw.total_cost
            net_income += raw.net_income
            profit += raw.profit

        logger.debug(
            "rollup_computed",
            extra={"order_count": order_count, "procurement_quantity": quantity},
        )
        return RollupFigures(
            order_count=order_count,
            pending_order_count=pending_orders,
            procurement_quantity=quantity,
            pending_procurement_quantity=pending_quantity,
            amount_total=round_money(amount_total),
            fee_amount=round_money(fee),
            total_cost=round_money(total_cost),
            net_income=round_money(net_income),
            profit=round_money(profit),
            roi=_roi(profit, total_cost),
            order_completion_rate=round_percent(
                percentage(Decimal(order_count - pending_orders), Decimal(order_count))
            ),
            procurement_completion_rate=round_percent(
                percentage(Decimal(quantity - pending_quantity), Decimal(quantity))
            ),
        )
