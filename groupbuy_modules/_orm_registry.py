"""
Module ORM Registry (``groupbuy_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` holds the four tables (``projects``, ``products``,
``orders``, ``procurements``) before they are created, and expose the
entity-name -> model map the SQL record store is built with.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``groupbuy_modules``
packages and from ``groupbuy_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``groupbuy_kernel``.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()`` and build
their store with ``SqlRecordStore(factory, entity_models())``.
"""


def import_all_orm_models() -> None:
    """Import every ``groupbuy_modules.*.orm`` module.  Idempotent."""
    # fmt: off
    import groupbuy_modules.catalog.orm  # noqa: F401
    import groupbuy_modules.orders.orm  # noqa: F401
    # fmt: on


def entity_models() -> dict[str, type]:
    """Entity name -> ORM model, as used by the record store contract."""
    from groupbuy_modules.catalog.orm import ProductModel, ProjectModel
    from groupbuy_modules.orders.orm import OrderModel, ProcurementModel

    return {
        "projects": ProjectModel,
        "products": ProductModel,
        "orders": OrderModel,
        "procurements": ProcurementModel,
    }


def create_all_tables() -> None:
    """Register all module ORM models, then create every table.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from groupbuy_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
