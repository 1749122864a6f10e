"""
Tests for OrderLifecycleService.

Every test runs against both the SQLite store (transactional writes) and
the in-memory store (compensating writes) through the ``store`` fixture.

Reference order (see conftest.make_order): 1000 CNY on the marketplace,
rate 0.05, postage 20, correction 30, lines 1 x 2000 JPY and 2 x 500 JPY.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from groupbuy_engines.settlement import SettlementPolicy
from groupbuy_kernel.domain.cancel import CancelToken
from groupbuy_kernel.exceptions import (
    OperationCancelledError,
    OrderBusyError,
    PartialWriteError,
    ProductReferencedError,
    RecordNotFoundError,
    TransitionError,
    ValidationError,
)
from groupbuy_kernel.store.memory_store import MemoryRecordStore
from groupbuy_modules.catalog.service import CatalogService
from groupbuy_modules.orders.config import OrdersConfig
from groupbuy_modules.orders.models import (
    LineItem,
    OrderStatus,
    Payer,
    ProcurementStatus,
)
from groupbuy_modules.orders.service import OrderLifecycleService


def _line_for(orders, order_id, product):
    (line,) = [p for p in orders.get_procurements(order_id) if p.product_id == product.id]
    return line


def _fund_reference_lines(orders, order_id, products):
    """Rico fronts the stand, Dorothy the keychains."""
    orders.auto_fill_procurement(_line_for(orders, order_id, products[0]).id)
    orders.update_procurement(
        _line_for(orders, order_id, products[1]).id,
        {"payer": "Dorothy", "pay_amount": "1000", "quantity_purchased": 2},
    )


class TestCreateOrder:

    def test_creates_order_and_lines(self, orders, make_order, products):
        order_id = make_order()

        order = orders.get_order(order_id)
        assert order.status is OrderStatus.PAID_HAS_DEPOSIT
        assert order.fee_amount == Decimal("6.00")
        assert order.rico_receive == Decimal("0")

        lines = orders.get_procurements(order_id)
        assert len(lines) == 2
        assert all(line.status is ProcurementStatus.NOT_ORDERED for line in lines)
        assert all(line.payer is None and line.quantity_purchased == 0 for line in lines)
        assert _line_for(orders, order_id, products[0]).procurement_amount == Decimal("2000")
        assert _line_for(orders, order_id, products[1]).procurement_amount == Decimal("1000")

    def test_result_lists_procurement_ids(self, orders, project, products):
        result = orders.create_order(
            {"project_id": project.id, "amount_total": "300", "exchange_rate": "0.05"},
            [{"product_id": products[0].id, "quantity": 1}],
        )
        assert {p.id for p in orders.get_procurements(result.order_id)} == set(
            result.procurement_ids
        )

    def test_fee_rates(self, orders, make_order):
        assert orders.get_order(make_order(high_fee_flag=True)).fee_amount == Decimal("16.00")
        assert orders.get_order(make_order(is_xianyu=False)).fee_amount == Decimal("0")

    def test_deposit_credited_to_second_stakeholder(self, orders, make_order):
        order = orders.get_order(make_order(deposit_amount=Decimal("50")))
        assert order.deposit_amount == Decimal("50")
        assert order.dorothy_receive == Decimal("50")

    def test_deposit_forced_to_zero_without_deposit(self, orders, make_order):
        order = orders.get_order(
            make_order(status="paid_no_deposit", deposit_amount=Decimal("50"))
        )
        assert order.deposit_amount == Decimal("0")
        assert order.dorothy_receive == Decimal("0")

    def test_defaults_order_no_and_date(self, orders, make_order, clock):
        order = orders.get_order(make_order())
        assert order.order_no == f"ORD-{clock.now():%Y%m%d%H%M%S}"
        assert order.order_date == clock.today()

    def test_line_amount_frozen_after_price_change(self, orders, catalog, make_order, products):
        order_id = make_order()
        catalog.update_product(products[0].id, {"price_jpy": Decimal("3500")})
        assert _line_for(orders, order_id, products[0]).procurement_amount == Decimal("2000")

    @pytest.mark.parametrize(
        "fields, field_name",
        [
            ({"exchange_rate": Decimal("0")}, "exchange_rate"),
            ({"exchange_rate": Decimal("-0.05")}, "exchange_rate"),
            ({"exchange_rate": None}, "exchange_rate"),
            ({"amount_total": "abc"}, "amount_total"),
            ({"status": "lost"}, "status"),
            ({"fee_amount": Decimal("1")}, "fee_amount"),
            ({"rico_receive": Decimal("1")}, "rico_receive"),
            ({"colour": "red"}, "colour"),
        ],
    )
    def test_rejects_bad_order_fields(self, orders, make_order, store, fields, field_name):
        with pytest.raises(ValidationError) as exc_info:
            make_order(**fields)
        assert exc_info.value.field == field_name
        assert store.count("orders") == 0
        assert store.count("procurements") == 0

    def test_rejects_empty_line_items(self, orders, make_order, store):
        with pytest.raises(ValidationError) as exc_info:
            make_order(lines=[])
        assert exc_info.value.field == "line_items"
        assert store.count("orders") == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5])
    def test_rejects_bad_quantity(self, make_order, products, store, quantity):
        with pytest.raises(ValidationError):
            make_order(lines=[LineItem(product_id=products[0].id, quantity=quantity)])
        assert store.count("orders") == 0

    def test_unknown_product(self, make_order, store):
        with pytest.raises(RecordNotFoundError):
            make_order(lines=[LineItem(product_id=uuid4(), quantity=1)])
        assert store.count("orders") == 0

    def test_unknown_project(self, orders, products):
        with pytest.raises(RecordNotFoundError):
            orders.create_order(
                {"project_id": uuid4(), "amount_total": "10", "exchange_rate": "0.05"},
                [LineItem(product_id=products[0].id, quantity=1)],
            )

    def test_product_from_another_project(self, catalog, make_order):
        other = catalog.create_project("Autumn box", ["rico"])
        stray = catalog.create_product(other.id, "Poster", Decimal("800"))
        with pytest.raises(ValidationError) as exc_info:
            make_order(lines=[LineItem(product_id=stray.id, quantity=1)])
        assert exc_info.value.field == "product_id"

    def test_order_no_unique_per_channel(self, orders, make_order):
        make_order(order_no="X-1", is_xianyu=True)
        with pytest.raises(ValidationError) as exc_info:
            make_order(order_no="X-1", is_xianyu=True)
        assert exc_info.value.field == "order_no"

        other_channel = make_order(order_no="X-1", is_xianyu=False)
        assert orders.get_order(other_channel).order_no == "X-1"

    def test_cancelled_before_any_write(self, orders, project, products, store):
        token = CancelToken("create_order")
        token.cancel()
        with pytest.raises(OperationCancelledError):
            orders.create_order(
                {"project_id": project.id, "amount_total": "10", "exchange_rate": "0.05"},
                [LineItem(product_id=products[0].id, quantity=1)],
                cancel_token=token,
            )
        assert store.count("orders") == 0


class TestShip:

    def test_ships_order_and_all_lines(self, orders, make_order, captured_logs):
        order_id = make_order()

        result = orders.ship(order_id)

        assert result.order_status is OrderStatus.SHIPPED
        assert orders.get_order(order_id).status is OrderStatus.SHIPPED
        assert all(
            line.status is ProcurementStatus.SHIPPED
            for line in orders.get_procurements(order_id)
        )
        assert len(result.warnings) == 2
        messages = [r["message"] for r in captured_logs()]
        assert messages.count("order_ship_line_not_arrived") == 2
        assert "order_shipped" in messages

    def test_arrived_lines_ship_without_warning(self, orders, make_order):
        order_id = make_order(status="paid_no_deposit")
        for line in orders.get_procurements(order_id):
            orders.update_procurement(line.id, {"status": "arrived_cn"})

        result = orders.ship(order_id)

        assert result.warnings == ()
        assert result.procurement_statuses == (ProcurementStatus.SHIPPED,) * 2

    def test_cancelled_line_is_shipped_with_warning(self, orders, make_order, products):
        order_id = make_order()
        cancelled = _line_for(orders, order_id, products[1])
        orders.update_procurement(cancelled.id, {"status": "cancelled"})

        result = orders.ship(order_id)

        assert any(str(cancelled.id) in w for w in result.warnings)
        assert _line_for(orders, order_id, products[1]).status is ProcurementStatus.SHIPPED

    def test_order_without_lines_ships(self, orders, make_order, store):
        order_id = make_order()
        for line in orders.get_procurements(order_id):
            store.delete("procurements", line.id)

        result = orders.ship(order_id)

        assert result.order_status is OrderStatus.SHIPPED
        assert result.procurement_statuses == ()

    @pytest.mark.parametrize("status", ["unpaid", "shipped", "settled", "refunded"])
    def test_rejects_unpaid_or_later_states(self, orders, make_order, status):
        order_id = make_order(status=status)
        with pytest.raises(TransitionError) as exc_info:
            orders.ship(order_id)
        err = exc_info.value
        assert err.current_status == status
        assert err.allowed_from == ("paid_has_deposit", "paid_no_deposit")
        assert orders.get_order(order_id).status.value == status
        assert all(
            line.status is ProcurementStatus.NOT_ORDERED
            for line in orders.get_procurements(order_id)
        )

    def test_busy_order(self, orders, make_order, locks):
        order_id = make_order()
        with locks.hold(order_id):
            with pytest.raises(OrderBusyError):
                orders.ship(order_id)
        assert orders.get_order(order_id).status is OrderStatus.PAID_HAS_DEPOSIT
        assert not locks.is_held(order_id)

    def test_unknown_order(self, orders):
        with pytest.raises(RecordNotFoundError):
            orders.ship(uuid4())


class TestSettle:

    def test_reference_settlement(self, orders, make_order, products):
        order_id = make_order()
        _fund_reference_lines(orders, order_id, products)
        orders.ship(order_id)

        result = orders.settle(order_id, correction_payer="Rico")

        assert result.rico_receivable == Decimal("527")
        assert result.dorothy_receivable == Decimal("467")
        assert result.order_status is OrderStatus.SETTLED
        order = orders.get_order(order_id)
        assert order.status is OrderStatus.SETTLED
        assert order.rico_receive == Decimal("527")
        assert order.dorothy_receive == Decimal("467")
        assert order.fee_amount == Decimal("6.00")

    def test_default_correction_payer(self, orders, make_order, products):
        order_id = make_order()
        _fund_reference_lines(orders, order_id, products)
        orders.ship(order_id)

        result = orders.settle(order_id)

        assert result.correction_payer == "Rico"
        assert result.rico_receivable == Decimal("527")

    def test_correction_paid_by_second(self, orders, make_order, products):
        order_id = make_order()
        _fund_reference_lines(orders, order_id, products)
        orders.ship(order_id)

        result = orders.settle(order_id, correction_payer=Payer.DOROTHY)

        assert result.rico_receivable == Decimal("497")
        assert result.dorothy_receivable == Decimal("497")

    def test_preview_writes_nothing(self, orders, make_order, products):
        order_id = make_order()
        _fund_reference_lines(orders, order_id, products)

        preview = orders.preview_settlement(order_id)

        assert preview.rico_receivable == Decimal("527")
        assert orders.get_order(order_id).status is OrderStatus.PAID_HAS_DEPOSIT
        assert orders.get_order(order_id).rico_receive == Decimal("0")

    def test_reordered_stakeholders(self, store, clock, orders, make_order, products):
        policy = SettlementPolicy(
            stakeholders=("Dorothy", "Rico"),
            postage_payer="Dorothy",
            default_correction_payer="Rico",
        )
        reordered = OrderLifecycleService(
            store, config=OrdersConfig(settlement_policy=policy), clock=clock,
        )
        order_id = make_order()
        _fund_reference_lines(orders, order_id, products)
        orders.ship(order_id)

        result = reordered.settle(order_id)

        assert result.rico_receivable == Decimal("527")
        assert result.dorothy_receivable == Decimal("467")
        order = orders.get_order(order_id)
        assert order.rico_receive == Decimal("527")
        assert order.dorothy_receive == Decimal("467")

    @pytest.mark.parametrize("status", ["confirmed", "partial_refund_pending"])
    def test_settles_from_manual_states(self, orders, make_order, status):
        order_id = make_order(status=status)
        assert orders.settle(order_id).order_status is OrderStatus.SETTLED

    @pytest.mark.parametrize("status", ["paid_has_deposit", "unpaid", "refund_pending", "settled"])
    def test_rejects_illegal_states(self, orders, make_order, status):
        order_id = make_order(status=status)
        with pytest.raises(TransitionError):
            orders.settle(order_id)
        assert orders.get_order(order_id).status.value == status

    def test_unknown_correction_payer(self, orders, make_order):
        order_id = make_order(status="shipped")
        with pytest.raises(ValidationError) as exc_info:
            orders.settle(order_id, correction_payer="Bob")
        assert exc_info.value.field == "correction_payer"
        assert orders.get_order(order_id).status is OrderStatus.SHIPPED

    def test_cancelled_settle_keeps_order(self, orders, make_order):
        order_id = make_order(status="shipped")
        token = CancelToken("settle")
        token.cancel()
        with pytest.raises(OperationCancelledError):
            orders.settle(order_id, cancel_token=token)
        assert orders.get_order(order_id).status is OrderStatus.SHIPPED


class TestEdits:

    def test_update_recomputes_fee(self, orders, make_order):
        order_id = make_order()
        order = orders.update_order(order_id, {"amount_total": Decimal("2000")})
        assert order.fee_amount == Decimal("12.00")

    def test_manual_status_edit_from_any_state(self, orders, make_order):
        order_id = make_order(status="settled")
        order = orders.update_order(order_id, {"status": "unpaid"})
        assert order.status is OrderStatus.UNPAID

    def test_switch_to_no_deposit_clears_deposit(self, orders, make_order):
        order_id = make_order(deposit_amount=Decimal("50"))
        order = orders.update_order(order_id, {"status": "paid_no_deposit"})
        assert order.deposit_amount == Decimal("0")

    def test_derived_fields_rejected(self, orders, make_order):
        order_id = make_order()
        with pytest.raises(ValidationError, match="derived"):
            orders.update_order(order_id, {"dorothy_receive": Decimal("1")})

    def test_order_no_clash_on_edit(self, orders, make_order):
        make_order(order_no="A-1")
        second = make_order(order_no="A-2")
        with pytest.raises(ValidationError):
            orders.update_order(second, {"order_no": "A-1"})

    def test_list_orders_filters(self, orders, make_order, project):
        make_order(order_no="SPRING-1")
        make_order(order_no="SPRING-2", status="shipped")
        make_order(order_no="OTHER-1")

        assert {o.order_no for o in orders.list_orders(order_no_contains="spring")} == {
            "SPRING-1", "SPRING-2",
        }
        assert [o.order_no for o in orders.list_orders(statuses="shipped")] == ["SPRING-2"]
        assert len(orders.list_orders(project_id=project.id)) == 3

    def test_list_orders_defaults_to_open_statuses(self, orders, make_order):
        make_order(order_no="OPEN-1")
        make_order(order_no="OPEN-2", status="confirmed")
        make_order(order_no="DONE-1", status="settled")
        make_order(order_no="DONE-2", status="refunded")

        assert {o.order_no for o in orders.list_orders()} == {"OPEN-1", "OPEN-2"}
        assert {o.order_no for o in orders.list_orders(statuses=None)} == {
            "OPEN-1", "OPEN-2", "DONE-1", "DONE-2",
        }
        picked = orders.list_orders(statuses=[OrderStatus.SETTLED, "confirmed"])
        assert {o.order_no for o in picked} == {"OPEN-2", "DONE-1"}

    def test_list_orders_unknown_status(self, orders):
        with pytest.raises(ValidationError):
            orders.list_orders(statuses=["lost"])

    def test_list_procurements_worklist(self, orders, make_order, products):
        spring = make_order(order_no="SPRING-1")
        other = make_order(order_no="OTHER-1")
        orders.update_procurement(_line_for(orders, spring, products[0]).id, {"status": "arrived_cn"})
        orders.update_procurement(_line_for(orders, other, products[0]).id, {"status": "cancelled"})

        worklist = orders.list_procurements()
        assert len(worklist) == 3
        assert all(line.status is not ProcurementStatus.CANCELLED for line in worklist)
        # status descending puts not_ordered ahead of arrived_cn
        assert worklist[-1].status is ProcurementStatus.ARRIVED_CN

        assert len(orders.list_procurements(statuses=None)) == 4
        assert [line.order_id for line in orders.list_procurements(statuses="cancelled")] == [other]

    def test_list_procurements_by_order_no_and_project(self, orders, catalog, make_order, project):
        spring = make_order(order_no="SPRING-1")
        make_order(order_no="OTHER-1")

        matched = orders.list_procurements(order_no_contains="spring")
        assert {line.order_id for line in matched} == {spring}
        assert orders.list_procurements(order_no_contains="nothing") == []
        assert len(orders.list_procurements(project_id=project.id)) == 4
        elsewhere = catalog.create_project("Autumn box", ["rico"])
        assert orders.list_procurements(project_id=elsewhere.id) == []

    def test_update_procurement(self, orders, make_order, products):
        order_id = make_order()
        line = _line_for(orders, order_id, products[1])

        updated = orders.update_procurement(
            line.id,
            {"quantity_purchased": 1, "status": "ordered_partial", "payer": "Dorothy", "pay_amount": "500"},
        )

        assert updated.quantity_purchased == 1
        assert updated.status is ProcurementStatus.ORDERED_PARTIAL
        assert updated.payer is Payer.DOROTHY
        assert updated.pay_amount == Decimal("500")
        assert updated.procurement_amount == Decimal("1000")

    def test_procurement_status_edit_is_unchecked(self, orders, make_order):
        order_id = make_order()
        line = orders.get_procurements(order_id)[0]
        updated = orders.update_procurement(line.id, {"status": "arrived_cn"})
        assert updated.status is ProcurementStatus.ARRIVED_CN

    @pytest.mark.parametrize(
        "fields",
        [
            {"status": "lost"},
            {"payer": "Bob"},
            {"pay_amount": "-1"},
            {"quantity_needed": 0},
            {"procurement_amount": "1"},
        ],
    )
    def test_update_procurement_rejects(self, orders, make_order, fields):
        line = orders.get_procurements(make_order())[0]
        with pytest.raises(ValidationError):
            orders.update_procurement(line.id, fields)

    def test_over_purchase_warns(self, orders, make_order, products, captured_logs):
        line = _line_for(orders, make_order(), products[0])
        updated = orders.update_procurement(line.id, {"quantity_purchased": 3})
        assert updated.quantity_purchased == 3
        assert any(r["message"] == "procurement_over_purchased" for r in captured_logs())

    def test_over_purchase_rejected_when_configured(self, store, clock, make_order, products):
        strict = OrderLifecycleService(
            store, config=OrdersConfig(warn_on_over_purchase=False), clock=clock,
        )
        order_id = make_order()
        line = [p for p in strict.get_procurements(order_id) if p.product_id == products[0].id][0]
        with pytest.raises(ValidationError):
            strict.update_procurement(line.id, {"quantity_purchased": 3})

    def test_auto_fill(self, orders, make_order, products):
        line = _line_for(orders, make_order(), products[1])

        filled = orders.auto_fill_procurement(line.id)

        assert filled.quantity_purchased == 2
        assert filled.status is ProcurementStatus.ORDERED_FULL
        assert filled.payer is Payer.RICO
        assert filled.pay_amount == Decimal("1000")

    def test_auto_fill_pays_as_first_stakeholder(self, store, clock, make_order, products):
        policy = SettlementPolicy(stakeholders=("Dorothy", "Rico"), postage_payer="Rico")
        service = OrderLifecycleService(
            store, config=OrdersConfig(settlement_policy=policy), clock=clock,
        )
        line = _line_for(service, make_order(), products[0])
        assert service.auto_fill_procurement(line.id).payer is Payer.DOROTHY

    def test_auto_fill_unknown_line(self, orders):
        with pytest.raises(RecordNotFoundError):
            orders.auto_fill_procurement(uuid4())


class TestDeleteOrder:

    def test_deletes_order_and_lines(self, orders, make_order, store, products):
        keep = make_order()
        order_id = make_order()

        orders.delete_order(order_id)

        with pytest.raises(RecordNotFoundError):
            orders.get_order(order_id)
        assert orders.get_procurements(order_id) == ()
        assert len(orders.get_procurements(keep)) == 2
        assert store.count("products") == 2

    def test_products_referenced_until_order_deleted(self, orders, catalog, make_order, products):
        order_id = make_order()
        with pytest.raises(ProductReferencedError):
            catalog.delete_product(products[0].id)
        orders.delete_order(order_id)
        catalog.delete_product(products[0].id)


class FailingLineStore(MemoryRecordStore):
    """Memory store whose procurement inserts always fail."""

    def create(self, entity, record):
        if entity == "procurements":
            raise RuntimeError("disk full")
        return super().create(entity, record)


class TestPartialWrites:

    def setup_method(self):
        self.store = FailingLineStore()
        catalog = CatalogService(self.store)
        project = catalog.create_project("Spring box", ["rico", "dorothy"])
        self.project_id = project.id
        self.product = catalog.create_product(project.id, "Stand", Decimal("2000"))
        self.service = OrderLifecycleService(self.store)

    def test_failed_lines_remove_the_order(self):
        with pytest.raises(PartialWriteError) as exc_info:
            self.service.create_order(
                {"project_id": self.project_id, "amount_total": "10", "exchange_rate": "0.05"},
                [LineItem(product_id=self.product.id, quantity=1)],
            )
        err = exc_info.value
        assert err.failed_step == "insert_procurements"
        assert err.completed_steps == ("insert_order",)
        assert err.rolled_back is True
        assert self.store.count("orders") == 0


class FailingBulkUpdateStore(MemoryRecordStore):
    """Memory store whose bulk updates always fail."""

    def __init__(self):
        super().__init__()
        self.bulk_update_calls = 0

    def update_where(self, entity, filters, partial):
        self.bulk_update_calls += 1
        raise RuntimeError("connection reset")


class TestShipPartialWrites:

    def setup_method(self):
        self.store = FailingBulkUpdateStore()
        catalog = CatalogService(self.store)
        project = catalog.create_project("Spring box", ["rico", "dorothy"])
        product = catalog.create_product(project.id, "Stand", Decimal("2000"))
        self.service = OrderLifecycleService(self.store)
        self.order_id = self.service.create_order(
            {
                "project_id": project.id,
                "amount_total": "10",
                "exchange_rate": "0.05",
                "status": "paid_has_deposit",
            },
            [LineItem(product_id=product.id, quantity=1)],
        ).order_id

    def test_failed_line_update_restores_the_order(self):
        with pytest.raises(PartialWriteError) as exc_info:
            self.service.ship(self.order_id)

        err = exc_info.value
        assert err.failed_step == "update_procurements"
        assert err.completed_steps == ("update_order",)
        assert err.rolled_back is True
        # one retry before compensating
        assert self.store.bulk_update_calls == 2
        assert self.service.get_order(self.order_id).status is OrderStatus.PAID_HAS_DEPOSIT
        lines = self.service.get_procurements(self.order_id)
        assert [line.status for line in lines] == [ProcurementStatus.NOT_ORDERED]
