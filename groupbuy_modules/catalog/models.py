"""
Catalog Domain Models (``groupbuy_modules.catalog.models``).

Frozen value objects for projects and the JPY-priced products offered in
them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from groupbuy_kernel.domain.values import to_decimal


class ProjectStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Project:
    """A group purchase.  ``members`` lists the stakeholder identifiers."""
    id: UUID
    name: str
    members: tuple[str, ...]
    status: ProjectStatus = ProjectStatus.NOT_STARTED
    notes: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Project:
        return cls(
            id=record["id"],
            name=record["name"],
            members=tuple(record.get("members") or ()),
            status=ProjectStatus(record.get("status") or ProjectStatus.NOT_STARTED.value),
            notes=record.get("notes"),
        )


@dataclass(frozen=True)
class Product:
    """A catalog item priced in JPY."""
    id: UUID
    project_id: UUID
    name: str
    price_jpy: Decimal
    product_url: str | None = None
    image_url: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Product:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            name=record["name"],
            price_jpy=to_decimal(record.get("price_jpy"), field="price_jpy"),
            product_url=record.get("product_url"),
            image_url=record.get("image_url"),
        )
