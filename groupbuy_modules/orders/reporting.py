"""
Reporting Service (``groupbuy_modules.orders.reporting``).

Read-only figures for one order, one project or the whole portfolio.  All
three go through the same ``AggregationEngine`` so the formulas cannot
drift between views.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from groupbuy_engines.aggregation import AggregationEngine, OrderFigures, OrderInput, RollupFigures
from groupbuy_kernel.exceptions import RecordNotFoundError
from groupbuy_kernel.logging_config import get_logger
from groupbuy_kernel.store.contract import Filter, RecordStore
from groupbuy_modules.orders.config import OrdersConfig
from groupbuy_modules.orders.models import Order, ProcurementLine

logger = get_logger("modules.orders.reporting")


@dataclass(frozen=True)
class OrderReportRow:
    order: Order
    figures: OrderFigures


class ReportingService:

    def __init__(self, store: RecordStore, config: OrdersConfig | None = None):
        self._store = store
        self._engine = AggregationEngine((config or OrdersConfig.with_defaults()).fee_schedule)

    def _inputs(self, orders: Sequence[Order]) -> list[OrderInput]:
        if not orders:
            return []
        records = self._store.list(
            "procurements", [Filter.in_("order_id", [o.id for o in orders])],
        )
        by_order: dict[UUID, list[ProcurementLine]] = defaultdict(list)
        for record in records:
            line = ProcurementLine.from_record(record)
            by_order[line.order_id].append(line)
        return [o.figures_input(tuple(by_order[o.id])) for o in orders]

    def _orders(self, project_id: UUID | None = None) -> list[Order]:
        filters = [Filter.eq("project_id", project_id)] if project_id is not None else []
        return [Order.from_record(r) for r in self._store.list("orders", filters)]

    def order_figures(self, order_id: UUID) -> OrderFigures:
        record = self._store.get("orders", order_id)
        if record is None:
            raise RecordNotFoundError("order", order_id)
        (order_input,) = self._inputs([Order.from_record(record)])
        return self._engine.order_figures(order=order_input)

    def order_rows(self, project_id: UUID | None = None) -> list[OrderReportRow]:
        """Per-order figures, as listed on the orders page."""
        orders = self._orders(project_id)
        inputs = self._inputs(orders)
        return [
            OrderReportRow(order=o, figures=self._engine.order_figures(order=i))
            for o, i in zip(orders, inputs)
        ]

    def project_figures(self, project_id: UUID) -> RollupFigures:
        figures = self._engine.rollup(orders=self._inputs(self._orders(project_id)))
        logger.info(
            "project_figures_computed",
            extra={"project_id": str(project_id), "order_count": figures.order_count},
        )
        return figures

    def portfolio_figures(self) -> RollupFigures:
        figures = self._engine.rollup(orders=self._inputs(self._orders()))
        logger.info(
            "portfolio_figures_computed",
            extra={
                "order_count": figures.order_count,
                "order_completion_rate": str(figures.order_completion_rate),
            },
        )
        return figures
