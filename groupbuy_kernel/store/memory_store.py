"""
In-process ``RecordStore`` holding records in dicts.

Has no transactions, so multi-record writes through it take the
compensating path of ``WriteSequence``.  Tests use it to exercise that
path and to inject store failures.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID, uuid4

from groupbuy_kernel.exceptions import RecordNotFoundError, ValidationError
from groupbuy_kernel.store.contract import Filter, Page, Record, RecordStore, Sort


class MemoryRecordStore(RecordStore):

    supports_transactions = False

    def __init__(self, entities: Sequence[str] = ("projects", "products", "orders", "procurements")):
        self._tables: dict[str, dict[UUID, Record]] = {name: {} for name in entities}
        self._lock = threading.RLock()

    def _table(self, entity: str) -> dict[UUID, Record]:
        try:
            return self._tables[entity]
        except KeyError:
            raise ValidationError("entity", f"unknown entity '{entity}'") from None

    def _matching(self, entity: str, filters: Sequence[Filter]) -> list[Record]:
        return [
            r for r in self._table(entity).values()
            if all(f.matches(r) for f in filters)
        ]

    def list(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        sort: Sequence[Sort] = (),
        page: Page | None = None,
    ) -> list[Record]:
        with self._lock:
            rows = self._matching(entity, filters)
            # Stable sorts applied last-key-first give multi-key ordering.
            # None sorts last in both directions.
            for s in reversed(tuple(sort)):
                present = [r for r in rows if r.get(s.field) is not None]
                missing = [r for r in rows if r.get(s.field) is None]
                present.sort(key=lambda r, f=s.field: r[f], reverse=s.descending)
                rows = present + missing
            if page is not None:
                rows = rows[page.offset:page.offset + page.page_size]
            return [copy.deepcopy(r) for r in rows]

    def get(self, entity: str, record_id: UUID) -> Record | None:
        with self._lock:
            row = self._table(entity).get(record_id)
            return None if row is None else copy.deepcopy(row)

    def create(self, entity: str, record: Mapping[str, Any]) -> Record:
        with self._lock:
            row = copy.deepcopy(dict(record))
            row.setdefault("id", uuid4())
            self._table(entity)[row["id"]] = row
            return copy.deepcopy(row)

    def update(self, entity: str, record_id: UUID, partial: Mapping[str, Any]) -> Record:
        with self._lock:
            row = self._table(entity).get(record_id)
            if row is None:
                raise RecordNotFoundError(entity, record_id)
            row.update(copy.deepcopy(dict(partial)))
            return copy.deepcopy(row)

    def update_where(
        self,
        entity: str,
        filters: Sequence[Filter],
        partial: Mapping[str, Any],
    ) -> int:
        with self._lock:
            rows = self._matching(entity, filters)
            for row in rows:
                row.update(copy.deepcopy(dict(partial)))
            return len(rows)

    def delete(self, entity: str, record_id: UUID) -> None:
        with self._lock:
            if self._table(entity).pop(record_id, None) is None:
                raise RecordNotFoundError(entity, record_id)

    def delete_where(self, entity: str, filters: Sequence[Filter]) -> int:
        with self._lock:
            rows = self._matching(entity, filters)
            table = self._table(entity)
            for row in rows:
                del table[row["id"]]
            return len(rows)
