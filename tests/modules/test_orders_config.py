"""Tests for OrdersConfig construction."""

from decimal import Decimal

import pytest

from groupbuy_engines.aggregation import FeeSchedule
from groupbuy_engines.settlement import SettlementPolicy
from groupbuy_modules.orders.config import OrdersConfig


class TestOrdersConfig:

    def test_defaults(self):
        config = OrdersConfig.with_defaults()
        assert config.fee_schedule == FeeSchedule()
        assert config.settlement_policy == SettlementPolicy()
        assert config.warn_on_over_purchase is True

    def test_from_dict_hydrates_nested(self):
        config = OrdersConfig.from_dict({
            "fee_schedule": {"standard_rate": "0.01", "high_rate": 0.02},
            "settlement_policy": {"stakeholders": ["Dorothy", "Rico"], "postage_payer": "Dorothy",
                                  "default_correction_payer": "Rico", "first_profit_share": "0.4"},
            "order_no_prefix": "GB-",
        })
        assert config.fee_schedule.high_rate == Decimal("0.02")
        assert config.settlement_policy.stakeholders == ("Dorothy", "Rico")
        assert config.settlement_policy.first_profit_share == Decimal("0.4")
        assert config.order_no_prefix == "GB-"

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError):
            OrdersConfig(order_no_prefix="  ")

    def test_unknown_key(self):
        with pytest.raises(TypeError):
            OrdersConfig.from_dict({"colour": "red"})

    def test_wrong_nested_type(self):
        with pytest.raises(ValueError):
            OrdersConfig(fee_schedule={"standard_rate": "0.01"})

    def test_unknown_stakeholders_rejected(self):
        policy = SettlementPolicy(
            stakeholders=("A", "B"), postage_payer="B", default_correction_payer="A",
        )
        with pytest.raises(ValueError, match="stakeholders"):
            OrdersConfig(settlement_policy=policy)
