"""Tests for ReportingService figures over stored orders."""

from decimal import Decimal
from uuid import uuid4

import pytest

from groupbuy_kernel.exceptions import RecordNotFoundError
from groupbuy_modules.orders.models import LineItem


class TestOrderFigures:

    def test_reference_order(self, reporting, make_order):
        figures = reporting.order_figures(make_order())
        assert figures.jpy_cost == Decimal("3000")
        assert figures.cny_goods_cost == Decimal("150.00")
        assert figures.total_cost == Decimal("200.00")
        assert figures.fee_amount == Decimal("6.00")
        assert figures.net_income == Decimal("994.00")
        assert figures.profit == Decimal("794.00")
        assert figures.roi == Decimal("397.00")
        assert figures.excluded is False

    def test_refunded_order_is_zero(self, reporting, make_order):
        figures = reporting.order_figures(make_order(status="refunded"))
        assert figures.excluded is True
        assert figures.profit == Decimal("0")
        assert figures.roi == Decimal("0")

    def test_unknown_order(self, reporting):
        with pytest.raises(RecordNotFoundError):
            reporting.order_figures(uuid4())

    def test_order_rows(self, reporting, make_order, project):
        make_order()
        make_order(status="refunded")
        rows = reporting.order_rows(project.id)
        assert len(rows) == 2
        assert sorted(r.figures.excluded for r in rows) == [False, True]


class TestRollups:

    def test_project_excludes_refunded_money(self, reporting, make_order, project):
        make_order()
        make_order(status="refunded")

        figures = reporting.project_figures(project.id)

        assert figures.order_count == 2
        assert figures.pending_order_count == 1
        assert figures.procurement_quantity == 6
        assert figures.pending_procurement_quantity == 6
        assert figures.amount_total == Decimal("1000.00")
        assert figures.profit == Decimal("794.00")
        assert figures.roi == Decimal("397.00")
        assert figures.order_completion_rate == Decimal("50.00")
        assert figures.procurement_completion_rate == Decimal("0")

    def test_empty_project(self, reporting, catalog):
        empty = catalog.create_project("Empty", ["rico"])
        figures = reporting.project_figures(empty.id)
        assert figures.order_count == 0
        assert figures.roi == Decimal("0")
        assert figures.order_completion_rate == Decimal("0")

    def test_portfolio_spans_projects(self, reporting, catalog, orders, make_order):
        make_order()
        other = catalog.create_project("Autumn box", ["rico"])
        poster = catalog.create_product(other.id, "Poster", Decimal("1000"))
        orders.create_order(
            {
                "project_id": other.id,
                "order_no": "AUT-1",
                "amount_total": "500",
                "exchange_rate": "0.05",
                "status": "settled",
            },
            [LineItem(product_id=poster.id, quantity=1)],
        )

        figures = reporting.portfolio_figures()

        assert figures.order_count == 2
        assert figures.pending_order_count == 1
        assert figures.amount_total == Decimal("1500.00")
        # second order: 500 net of no fee, minus 50 CNY of goods
        assert figures.profit == Decimal("1244.00")
