"""
Catalog Module Service (``groupbuy_modules.catalog.service``).

Responsibility
--------------
Create, edit, list and delete projects and their products through the
record store.

Architecture position
---------------------
**Modules layer** -- ``CatalogService`` is the sole public entry point for
catalog writes.  Multi-record deletes go through ``WriteSequence``.

Invariants enforced
-------------------
* A project needs a name and at least one member.
* ``price_jpy >= 0``.
* Editing a product price never touches procurement lines; their amounts
  were frozen when they were created.
* A product referenced by any procurement line cannot be deleted.
* A project that still owns orders cannot be deleted.

Failure modes
-------------
* ``ValidationError`` for rejected input, before any write.
* ``RecordNotFoundError`` for an unknown project or product id.
* ``ProductReferencedError`` on deleting a product in use.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from groupbuy_kernel.domain.values import ZERO, to_decimal
from groupbuy_kernel.exceptions import (
    ProductReferencedError,
    RecordNotFoundError,
    ValidationError,
)
from groupbuy_kernel.logging_config import LogContext, get_logger
from groupbuy_kernel.services.write_sequence import WriteSequence
from groupbuy_kernel.store.contract import Filter, Page, RecordStore, Sort
from groupbuy_modules.catalog.models import Product, Project, ProjectStatus

logger = get_logger("modules.catalog.service")

_PROJECT_FIELDS = frozenset({"name", "members", "status", "notes"})
_PRODUCT_FIELDS = frozenset({"name", "price_jpy", "product_url", "image_url"})


class CatalogService:
    """Projects and products."""

    def __init__(self, store: RecordStore):
        self._store = store

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @staticmethod
    def _project_values(fields: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - _PROJECT_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not an editable project field")
        values = dict(fields)
        if "name" in values and not (values["name"] or "").strip():
            raise ValidationError("name", "project name is required")
        if "members" in values:
            members = [str(m).strip() for m in (values["members"] or ()) if str(m).strip()]
            if not members:
                raise ValidationError("members", "at least one member is required")
            values["members"] = list(dict.fromkeys(members))
        if "status" in values:
            try:
                values["status"] = ProjectStatus(values["status"]).value
            except ValueError:
                raise ValidationError("status", f"unknown project status {values['status']!r}") from None
        return values

    def create_project(
        self,
        name: str,
        members: Sequence[str],
        status: ProjectStatus | str = ProjectStatus.NOT_STARTED,
        notes: str | None = None,
    ) -> Project:
        values = self._project_values(
            {"name": name, "members": members, "status": status, "notes": notes}
        )
        record = self._store.create("projects", values)
        logger.info(
            "project_created",
            extra={"project_id": str(record["id"]), "members": values["members"]},
        )
        return Project.from_record(record)

    def get_project(self, project_id: UUID) -> Project:
        record = self._store.get("projects", project_id)
        if record is None:
            raise RecordNotFoundError("project", project_id)
        return Project.from_record(record)

    def list_projects(
        self,
        name_contains: str | None = None,
        status: ProjectStatus | str | None = None,
        page: Page | None = None,
    ) -> list[Project]:
        filters: list[Filter] = []
        if name_contains:
            filters.append(Filter.contains("name", name_contains))
        if status is not None:
            filters.append(Filter.eq("status", ProjectStatus(status).value))
        records = self._store.list("projects", filters, (Sort("name"),), page)
        return [Project.from_record(r) for r in records]

    def update_project(self, project_id: UUID, fields: Mapping[str, Any]) -> Project:
        values = self._project_values(fields)
        self.get_project(project_id)
        record = self._store.update("projects", project_id, values)
        logger.info(
            "project_updated",
            extra={"project_id": str(project_id), "fields": sorted(values)},
        )
        return Project.from_record(record)

    def delete_project(self, project_id: UUID) -> None:
        """Delete a project and its products.  Rejected while it owns orders."""
        with LogContext.bind(project_id=project_id, operation="delete_project"):
            project = self._store.get("projects", project_id)
            if project is None:
                raise RecordNotFoundError("project", project_id)
            order_count = self._store.count("orders", [Filter.eq("project_id", project_id)])
            if order_count:
                logger.warning(
                    "project_delete_rejected",
                    extra={"order_count": order_count},
                )
                raise ValidationError(
                    "project_id", f"project still owns {order_count} order(s)",
                )
            products = self._store.list("products", [Filter.eq("project_id", project_id)])

            seq = WriteSequence(self._store, "delete_project")
            seq.add(
                "delete_products",
                lambda _: self._store.delete_where(
                    "products", [Filter.eq("project_id", project_id)],
                ),
                compensate=lambda _: [self._store.create("products", p) for p in products],
            )
            seq.add(
                "delete_project",
                lambda _: self._store.delete("projects", project_id),
            )
            seq.run()
            logger.info("project_deleted", extra={"product_count": len(products)})

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @staticmethod
    def _product_values(fields: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - _PRODUCT_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "not an editable product field")
        values = dict(fields)
        if "name" in values and not (values["name"] or "").strip():
            raise ValidationError("name", "product name is required")
        if "price_jpy" in values:
            try:
                price = to_decimal(values["price_jpy"], field="price_jpy")
            except ValueError as exc:
                raise ValidationError("price_jpy", str(exc)) from exc
            if price < ZERO:
                raise ValidationError("price_jpy", "must be >= 0")
            values["price_jpy"] = price
        return values

    def create_product(
        self,
        project_id: UUID,
        name: str,
        price_jpy: Decimal | int | str,
        product_url: str | None = None,
        image_url: str | None = None,
    ) -> Product:
        values = self._product_values({
            "name": name,
            "price_jpy": price_jpy,
            "product_url": product_url,
            "image_url": image_url,
        })
        self.get_project(project_id)
        values["project_id"] = project_id
        record = self._store.create("products", values)
        logger.info(
            "product_created",
            extra={
                "product_id": str(record["id"]),
                "project_id": str(project_id),
                "price_jpy": str(values["price_jpy"]),
            },
        )
        return Product.from_record(record)

    def get_product(self, product_id: UUID) -> Product:
        record = self._store.get("products", product_id)
        if record is None:
            raise RecordNotFoundError("product", product_id)
        return Product.from_record(record)

    def list_products(
        self,
        project_id: UUID | None = None,
        name_contains: str | None = None,
        page: Page | None = None,
    ) -> list[Product]:
        filters: list[Filter] = []
        if project_id is not None:
            filters.append(Filter.eq("project_id", project_id))
        if name_contains:
            filters.append(Filter.contains("name", name_contains))
        records = self._store.list("products", filters, (Sort("name"),), page)
        return [Product.from_record(r) for r in records]

    def update_product(self, product_id: UUID, fields: Mapping[str, Any]) -> Product:
        values = self._product_values(fields)
        before = self.get_product(product_id)
        record = self._store.update("products", product_id, values)
        if "price_jpy" in values and values["price_jpy"] != before.price_jpy:
            logger.info(
                "product_price_changed",
                extra={
                    "product_id": str(product_id),
                    "old_price_jpy": str(before.price_jpy),
                    "new_price_jpy": str(values["price_jpy"]),
                },
            )
        return Product.from_record(record)

    def delete_product(self, product_id: UUID) -> None:
        self.get_product(product_id)
        references = self._store.count("procurements", [Filter.eq("product_id", product_id)])
        if references:
            logger.warning(
                "product_delete_rejected",
                extra={"product_id": str(product_id), "reference_count": references},
            )
            raise ProductReferencedError(product_id, references)
        self._store.delete("products", product_id)
        logger.info("product_deleted", extra={"product_id": str(product_id)})
