"""
Pytest fixtures for the group-buy ledger test suite.

Provides:
- An in-memory SQLite record store (fresh schema per test)
- A dict-backed record store for the compensating write path
- Services wired to a deterministic clock
- A small catalog (one project, two products) and an order factory
- Structured-log capture
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from typing import Any
from uuid import UUID

import pytest

from groupbuy_kernel.db.engine import get_session_factory, init_engine_from_url, reset_engine
from groupbuy_kernel.domain.clock import DeterministicClock
from groupbuy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from groupbuy_kernel.services.order_lock import OrderLockRegistry
from groupbuy_kernel.store.memory_store import MemoryRecordStore
from groupbuy_kernel.store.sql_store import SqlRecordStore
from groupbuy_modules._orm_registry import create_all_tables, entity_models
from groupbuy_modules.catalog.service import CatalogService
from groupbuy_modules.orders.models import LineItem
from groupbuy_modules.orders.reporting import ReportingService
from groupbuy_modules.orders.service import OrderLifecycleService

SQLITE_MEMORY_URL = "sqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture groupbuy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orders):
            orders.ship(order_id)
            logs = captured_logs()
            assert any(r["message"] == "order_shipped" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("groupbuy_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def sql_store():
    """SqlRecordStore over a fresh in-memory SQLite schema."""
    init_engine_from_url(SQLITE_MEMORY_URL)
    create_all_tables()
    yield SqlRecordStore(get_session_factory(), entity_models())
    reset_engine()


@pytest.fixture
def memory_store():
    return MemoryRecordStore()


@pytest.fixture(params=["sql", "memory"])
def store(request):
    """Every service test runs against both the transactional and the
    compensating store."""
    return request.getfixturevalue(f"{request.param}_store")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def locks():
    return OrderLockRegistry()


@pytest.fixture
def catalog(store):
    return CatalogService(store)


@pytest.fixture
def orders(store, clock, locks):
    return OrderLifecycleService(store, clock=clock, locks=locks)


@pytest.fixture
def reporting(store):
    return ReportingService(store)


# =============================================================================
# Data
# =============================================================================


@pytest.fixture
def project(catalog):
    return catalog.create_project("Spring box", ["rico", "dorothy"])


@pytest.fixture
def products(catalog, project):
    """Two products: 2000 JPY and 500 JPY."""
    return (
        catalog.create_product(project.id, "Acrylic stand", Decimal("2000")),
        catalog.create_product(project.id, "Keychain", Decimal("500")),
    )


@pytest.fixture
def make_order(orders, project, products, clock):
    """
    Factory for orders built on the two fixture products.

    Defaults reproduce the reference order: 1000 CNY on the marketplace at
    the standard fee, rate 0.05, postage 20, correction 30, one stand and
    two keychains.  Each call advances the clock so generated order
    numbers stay unique.
    """

    def _make(
        lines: list[LineItem] | None = None,
        **fields: Any,
    ) -> UUID:
        order_fields = {
            "project_id": project.id,
            "amount_total": Decimal("1000"),
            "exchange_rate": Decimal("0.05"),
            "postage_amount": Decimal("20"),
            "cost_correction": Decimal("30"),
            "is_xianyu": True,
            "status": "paid_has_deposit",
        }
        order_fields.update(fields)
        if lines is None:
            lines = [
                LineItem(product_id=products[0].id, quantity=1),
                LineItem(product_id=products[1].id, quantity=2),
            ]
        clock.advance(1)
        return orders.create_order(order_fields, lines).order_id

    return _make
