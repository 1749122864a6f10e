"""Tests for CancelToken and OrderLockRegistry."""

from uuid import uuid4

import pytest

from groupbuy_kernel.domain.cancel import CancelToken
from groupbuy_kernel.exceptions import OperationCancelledError, OrderBusyError
from groupbuy_kernel.services.order_lock import OrderLockRegistry


class TestCancelToken:

    def test_not_cancelled_by_default(self):
        token = CancelToken("ship")
        token.raise_if_cancelled()
        assert not token.is_cancelled

    def test_cancel_raises_with_reason(self):
        token = CancelToken("ship")
        token.cancel("user closed dialog")
        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.operation == "ship"
        assert exc_info.value.reason == "user closed dialog"
        assert exc_info.value.code == "OPERATION_CANCELLED"

    def test_first_reason_wins(self):
        token = CancelToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"


class TestOrderLockRegistry:

    def test_second_hold_rejected(self):
        locks = OrderLockRegistry()
        order_id = uuid4()
        with locks.hold(order_id):
            assert locks.is_held(order_id)
            with pytest.raises(OrderBusyError) as exc_info:
                with locks.hold(order_id):
                    pass
            assert exc_info.value.order_id == str(order_id)
        assert not locks.is_held(order_id)

    def test_other_orders_unaffected(self):
        locks = OrderLockRegistry()
        with locks.hold(uuid4()):
            with locks.hold(uuid4()):
                pass

    def test_released_on_error(self):
        locks = OrderLockRegistry()
        order_id = uuid4()
        with pytest.raises(RuntimeError):
            with locks.hold(order_id):
                raise RuntimeError("boom")
        assert not locks.is_held(order_id)
