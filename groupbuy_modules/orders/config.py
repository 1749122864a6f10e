"""
Orders Configuration Schema (``groupbuy_modules.orders.config``).

Responsibility
--------------
Declarative configuration for the orders module: platform fee rates, the
two-party settlement policy, the order-number prefix, and how the service
treats over-purchased lines.

Architecture position
---------------------
**Modules layer** -- configuration schema only.  Loaded at runtime via
``groupbuy_config.get_active_config()``; no service reads files or
environment variables directly.

Invariants enforced
-------------------
* Rates and shares are ``Decimal`` (never ``float``).
* ``__post_init__`` validates nested values and logs the effective policy.

Failure modes
-------------
* ``ValueError`` at construction if any constraint is violated.
* ``ValueError`` when the settlement stakeholders are not exactly the
  known payers, in either order.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from groupbuy_engines.aggregation import FeeSchedule
from groupbuy_engines.settlement import SettlementPolicy
from groupbuy_kernel.logging_config import get_logger
from groupbuy_modules.orders.models import Payer

logger = get_logger("modules.orders.config")


@dataclass
class OrdersConfig:
    """
    Configuration schema for the orders module.

    Field defaults are the business's standing rules:

        config = OrdersConfig(
            fee_schedule=FeeSchedule(standard_rate=Decimal("0.006")),
            order_no_prefix="GB-",
        )
    """

    fee_schedule: FeeSchedule = field(default_factory=FeeSchedule)
    settlement_policy: SettlementPolicy = field(default_factory=SettlementPolicy)

    # Prefix of generated order numbers; a timestamp follows it.
    order_no_prefix: str = "ORD-"

    # Log quantity_purchased > quantity_needed instead of rejecting it.
    warn_on_over_purchase: bool = True

    def __post_init__(self):
        if not isinstance(self.fee_schedule, FeeSchedule):
            raise ValueError("fee_schedule must be a FeeSchedule")
        if not isinstance(self.settlement_policy, SettlementPolicy):
            raise ValueError("settlement_policy must be a SettlementPolicy")
        payers = {p.value for p in Payer}
        if set(self.settlement_policy.stakeholders) != payers:
            # order rows carry one receivable column per payer
            raise ValueError(
                f"settlement_policy stakeholders must be {sorted(payers)}, "
                f"got {list(self.settlement_policy.stakeholders)}"
            )
        if not self.order_no_prefix or not self.order_no_prefix.strip():
            raise ValueError("order_no_prefix cannot be empty")

        logger.info(
            "orders_config_initialized",
            extra={
                "standard_fee_rate": str(self.fee_schedule.standard_rate),
                "high_fee_rate": str(self.fee_schedule.high_rate),
                "stakeholders": list(self.settlement_policy.stakeholders),
                "first_profit_share": str(self.settlement_policy.first_profit_share),
                "postage_payer": self.settlement_policy.postage_payer,
                "default_correction_payer": self.settlement_policy.default_correction_payer,
                "order_no_prefix": self.order_no_prefix,
                "warn_on_over_purchase": self.warn_on_over_purchase,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standing business defaults."""
        logger.info("orders_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a parsed policy file).

        Preconditions:
            - ``data`` keys match ``OrdersConfig`` field names.
        Postconditions:
            - Nested ``FeeSchedule`` and ``SettlementPolicy`` hydrated.
        Raises:
            ValueError: if validation fails.
            TypeError: for unknown keys.
        """
        logger.info(
            "orders_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if isinstance(data.get("fee_schedule"), dict):
            fees = data["fee_schedule"]
            data["fee_schedule"] = FeeSchedule(
                **{k: Decimal(str(v)) for k, v in fees.items()}
            )
        if isinstance(data.get("settlement_policy"), dict):
            policy = dict(data["settlement_policy"])
            if "stakeholders" in policy:
                policy["stakeholders"] = tuple(policy["stakeholders"])
            if "first_profit_share" in policy:
                policy["first_profit_share"] = Decimal(str(policy["first_profit_share"]))
            data["settlement_policy"] = SettlementPolicy(**policy)
        return cls(**data)
