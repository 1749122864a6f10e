"""
Orders Module.

Customer orders and their procurement lines: the two lifecycle state
machines, creation, shipping, settlement between the two stakeholders,
edits, and the figures reported per order, per project and overall.
"""

from groupbuy_modules.orders.config import OrdersConfig
from groupbuy_modules.orders.models import (
    CreateOrderResult,
    LineItem,
    OPEN_ORDER_STATUSES,
    OPEN_PROCUREMENT_STATUSES,
    Order,
    OrderStatus,
    Payer,
    ProcurementLine,
    ProcurementStatus,
    SettleResult,
    ShipResult,
)
from groupbuy_modules.orders.reporting import OrderReportRow, ReportingService
from groupbuy_modules.orders.service import OrderLifecycleService
from groupbuy_modules.orders.workflows import (
    ORDER_WORKFLOW,
    PROCUREMENT_WORKFLOW,
    on_order_ship,
)

__all__ = [
    "CreateOrderResult",
    "LineItem",
    "Order",
    "OrderLifecycleService",
    "OrderReportRow",
    "OrderStatus",
    "OrdersConfig",
    "OPEN_ORDER_STATUSES",
    "OPEN_PROCUREMENT_STATUSES",
    "ORDER_WORKFLOW",
    "Payer",
    "PROCUREMENT_WORKFLOW",
    "ProcurementLine",
    "ProcurementStatus",
    "ReportingService",
    "SettleResult",
    "ShipResult",
    "on_order_ship",
]
