"""
Module: groupbuy_kernel.store.sql_store
Responsibility: ``RecordStore`` backed by SQLAlchemy ORM models.
Architecture position: Kernel > Store.  Imports db/ and the store contract.
    The entity -> model map is injected so the kernel never imports modules.

Transactions:
    Outside ``transaction()`` every call runs in its own session and commits
    before returning.  Inside ``transaction()`` all calls share one session;
    writes are flushed immediately so constraint violations surface at the
    failing step, and the whole block commits or rolls back together.

Failure modes:
    - ``StoreError`` wraps any ``SQLAlchemyError`` raised by a call.
    - ``RecordNotFoundError`` on update/delete of a missing id.
    - ``ValidationError`` for an unknown entity or column name.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from groupbuy_kernel.exceptions import RecordNotFoundError, StoreError, ValidationError
from groupbuy_kernel.logging_config import get_logger
from groupbuy_kernel.store.contract import Filter, Page, Record, RecordStore, Sort

logger = get_logger("store.sql")


class SqlRecordStore(RecordStore):
    """Record store over a SQLAlchemy session factory."""

    supports_transactions = True

    def __init__(self, session_factory: sessionmaker[Session], models: Mapping[str, type]):
        self._session_factory = session_factory
        self._models = dict(models)
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    @property
    def _active(self) -> Session | None:
        return getattr(self._local, "session", None)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = self._active
        if active is not None:
            yield active
            return
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[SqlRecordStore]:
        if self._active is not None:
            yield self
            return
        session = self._session_factory()
        self._local.session = session
        logger.debug("store_transaction_started")
        try:
            yield self
            session.commit()
            logger.debug("store_transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("store_transaction_rolled_back")
            raise
        finally:
            self._local.session = None
            session.close()

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def _model(self, entity: str) -> type:
        try:
            return self._models[entity]
        except KeyError:
            raise ValidationError("entity", f"unknown entity '{entity}'") from None

    def _column(self, model: type, entity: str, name: str):
        columns = inspect(model).columns
        if name not in columns:
            raise ValidationError(name, f"unknown field on {entity}")
        return getattr(model, name)

    @staticmethod
    def _to_record(obj: Any) -> Record:
        mapper = inspect(obj).mapper
        return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}

    def _where(self, stmt, model: type, entity: str, filters: Sequence[Filter]):
        for f in filters:
            column = self._column(model, entity, f.field)
            if f.op == "eq":
                stmt = stmt.where(column.is_(None) if f.value is None else column == f.value)
            elif f.op == "contains":
                stmt = stmt.where(column.icontains(str(f.value), autoescape=True))
            else:
                stmt = stmt.where(column.in_(list(f.value)))
        return stmt

    def _wrap(self, operation: str, entity: str, exc: SQLAlchemyError) -> StoreError:
        logger.error(
            "store_call_failed",
            extra={"store_operation": operation, "entity": entity, "error": str(exc)},
        )
        return StoreError(operation, entity, str(exc.__cause__ or exc))

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def list(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        sort: Sequence[Sort] = (),
        page: Page | None = None,
    ) -> list[Record]:
        model = self._model(entity)
        stmt = self._where(select(model), model, entity, filters)
        for s in sort:
            column = self._column(model, entity, s.field)
            ordered = column.desc() if s.descending else column.asc()
            stmt = stmt.order_by(ordered.nulls_last())
        if page is not None:
            stmt = stmt.offset(page.offset).limit(page.page_size)
        try:
            with self._session() as session:
                return [self._to_record(obj) for obj in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._wrap("list", entity, exc) from exc

    def get(self, entity: str, record_id: UUID) -> Record | None:
        model = self._model(entity)
        try:
            with self._session() as session:
                obj = session.get(model, record_id)
                return None if obj is None else self._to_record(obj)
        except SQLAlchemyError as exc:
            raise self._wrap("get", entity, exc) from exc

    def create(self, entity: str, record: Mapping[str, Any]) -> Record:
        model = self._model(entity)
        values = dict(record)
        for name in values:
            self._column(model, entity, name)
        values.setdefault("id", uuid4())
        try:
            with self._session() as session:
                obj = model(**values)
                session.add(obj)
                session.flush()
                session.refresh(obj)
                return self._to_record(obj)
        except SQLAlchemyError as exc:
            raise self._wrap("create", entity, exc) from exc

    def update(self, entity: str, record_id: UUID, partial: Mapping[str, Any]) -> Record:
        model = self._model(entity)
        for name in partial:
            self._column(model, entity, name)
        try:
            with self._session() as session:
                obj = session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(entity, record_id)
                for name, value in partial.items():
                    setattr(obj, name, value)
                session.flush()
                session.refresh(obj)
                return self._to_record(obj)
        except SQLAlchemyError as exc:
            raise self._wrap("update", entity, exc) from exc

    def update_where(
        self,
        entity: str,
        filters: Sequence[Filter],
        partial: Mapping[str, Any],
    ) -> int:
        model = self._model(entity)
        for name in partial:
            self._column(model, entity, name)
        stmt = self._where(select(model), model, entity, filters)
        try:
            with self._session() as session:
                matched = list(session.scalars(stmt))
                for obj in matched:
                    for name, value in partial.items():
                        setattr(obj, name, value)
                session.flush()
                return len(matched)
        except SQLAlchemyError as exc:
            raise self._wrap("update_where", entity, exc) from exc

    def delete(self, entity: str, record_id: UUID) -> None:
        model = self._model(entity)
        try:
            with self._session() as session:
                obj = session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(entity, record_id)
                session.delete(obj)
                session.flush()
        except SQLAlchemyError as exc:
            raise self._wrap("delete", entity, exc) from exc

    def delete_where(self, entity: str, filters: Sequence[Filter]) -> int:
        model = self._model(entity)
        stmt = self._where(select(model), model, entity, filters)
        try:
            with self._session() as session:
                matched = list(session.scalars(stmt))
                for obj in matched:
                    session.delete(obj)
                session.flush()
                return len(matched)
        except SQLAlchemyError as exc:
            raise self._wrap("delete_where", entity, exc) from exc
