"""
Pure calculation engines.

Engines take frozen input dataclasses, do Decimal arithmetic and return
frozen result dataclasses.  They never touch the record store.
"""

from groupbuy_engines.aggregation import (
    AggregationEngine,
    CostLine,
    FeeSchedule,
    OrderFigures,
    OrderInput,
    RollupFigures,
)
from groupbuy_engines.settlement import (
    Payment,
    SettlementAllocator,
    SettlementInput,
    SettlementPolicy,
    SettlementResult,
)

__all__ = [
    "AggregationEngine",
    "CostLine",
    "FeeSchedule",
    "OrderFigures",
    "OrderInput",
    "RollupFigures",
    "Payment",
    "SettlementAllocator",
    "SettlementInput",
    "SettlementPolicy",
    "SettlementResult",
]
