"""
Record store contract (``groupbuy_kernel.store.contract``).

Responsibility
--------------
The narrow interface the engine uses to read and write the four persisted
entities (``projects``, ``products``, ``orders``, ``procurements``).  Records
cross the boundary as plain dicts keyed by column name; services turn them
into frozen DTOs.

Architecture position
---------------------
**Kernel > Store** -- contract only.  Services depend on ``RecordStore``;
concrete stores live beside it (``sql_store``, ``memory_store``).

Invariants enforced
-------------------
* ``get`` returns ``None`` for a missing id; ``update`` and ``delete`` raise
  ``RecordNotFoundError``.
* ``create`` assigns an ``id`` when the record has none and returns the
  stored record.
* Filter operators are limited to ``eq``, ``contains`` and ``in``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from uuid import UUID

Record = dict[str, Any]

FILTER_OPS = frozenset({"eq", "contains", "in"})


@dataclass(frozen=True)
class Filter:
    """A single field predicate: ``field <op> value``."""
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            raise ValueError(
                f"Unsupported filter op {self.op!r}; expected one of {sorted(FILTER_OPS)}"
            )
        if self.op == "in" and isinstance(self.value, (str, bytes)):
            raise ValueError("'in' filter needs a collection of values")

    @classmethod
    def eq(cls, field: str, value: Any) -> Filter:
        return cls(field, "eq", value)

    @classmethod
    def contains(cls, field: str, value: str) -> Filter:
        return cls(field, "contains", value)

    @classmethod
    def in_(cls, field: str, values: Sequence[Any]) -> Filter:
        return cls(field, "in", tuple(values))

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Evaluate the predicate against an in-memory record."""
        actual = record.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "contains":
            return actual is not None and str(self.value).lower() in str(actual).lower()
        return actual in self.value


@dataclass(frozen=True)
class Sort:
    """Ordering key.  Records with a ``None`` value sort last in either direction."""
    field: str
    direction: str = "asc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Sort direction must be 'asc' or 'desc', got {self.direction!r}")

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


@dataclass(frozen=True)
class Page:
    """1-based page number and page size."""
    page: int = 1
    page_size: int = 50

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class RecordStore(ABC):
    """
    Contract for entity record persistence.

    Implementations that can run several calls atomically set
    ``supports_transactions`` and override ``transaction()``.  Callers never
    open transactions directly; the write sequence decides how to run.
    """

    supports_transactions: bool = False

    @abstractmethod
    def list(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        sort: Sequence[Sort] = (),
        page: Page | None = None,
    ) -> list[Record]:
        ...

    @abstractmethod
    def get(self, entity: str, record_id: UUID) -> Record | None:
        ...

    @abstractmethod
    def create(self, entity: str, record: Mapping[str, Any]) -> Record:
        ...

    @abstractmethod
    def update(self, entity: str, record_id: UUID, partial: Mapping[str, Any]) -> Record:
        ...

    @abstractmethod
    def update_where(
        self,
        entity: str,
        filters: Sequence[Filter],
        partial: Mapping[str, Any],
    ) -> int:
        """Apply ``partial`` to every matching record; return the match count."""

    @abstractmethod
    def delete(self, entity: str, record_id: UUID) -> None:
        ...

    @abstractmethod
    def delete_where(self, entity: str, filters: Sequence[Filter]) -> int:
        ...

    def count(self, entity: str, filters: Sequence[Filter] = ()) -> int:
        return len(self.list(entity, filters))

    @contextmanager
    def transaction(self) -> Iterator[RecordStore]:
        raise NotImplementedError(
            f"{type(self).__name__} does not support transactions"
        )
        yield self  # pragma: no cover
