"""
Document store adapter.

The operator workflow talks to its backend through four operations
(`query`, `get`, `create`, `update`) over schemaless documents. The default
adapter maps each collection onto an ORM table; documents are plain dicts
keyed by column name and every timestamp comes back as an aware UTC instant.
"""

from __future__ import annotations

import datetime
import logging
import operator
from typing import Any, Callable, Iterable, Optional, Sequence

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.dates import ensure_utc
from ..core.errors import MissingReferenceError, StoreError, log_exception
from ..models.company import Company
from ..models.turnstile_record import TurnstileRecord
from ..models.turnstile_record_log import TurnstileRecordLog
from ..models.vehicle import Vehicle


COMPANIES = "companies"
VEHICLES = "vehicles"
RECORDS = "turnstile_records"
RECORD_LOGS = "turnstile_records_logs"

Filter = tuple[str, str, Any]

_OPS: dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda column, value: column.in_(list(value)),
}


class DocumentStore:
    """Minimal document-store contract used by the operator workflow."""

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
    ) -> list[dict]:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def create(self, collection: str, fields: dict) -> str:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        raise NotImplementedError


def _to_storage(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    return value


def _from_storage(value: Any) -> Any:
    # SQLite drops tzinfo; everything is written in UTC.
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    return value


class SqlDocumentStore(DocumentStore):
    """Document store backed by the SQLAlchemy models of this package."""

    COLLECTIONS = {
        COMPANIES: Company,
        VEHICLES: Vehicle,
        RECORDS: TurnstileRecord,
        RECORD_LOGS: TurnstileRecordLog,
    }

    def __init__(self, session_factory: Callable[[], Session], *, logger: Optional[logging.Logger] = None) -> None:
        self._session_factory = session_factory
        self.logger = logger or logging.getLogger("DocumentStore")

    def _model(self, collection: str):
        try:
            return self.COLLECTIONS[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}")

    @staticmethod
    def _fields(model) -> set[str]:
        return {attr.key for attr in sa_inspect(model).column_attrs}

    def _column(self, model, field: str):
        if field not in self._fields(model):
            raise StoreError(f"Unknown field {model.__tablename__}.{field}")
        return getattr(model, field)

    def _to_document(self, model, row) -> dict:
        return {key: _from_storage(getattr(row, key)) for key in self._fields(model)}

    def _clean_fields(self, model, fields: dict) -> dict:
        known = self._fields(model)
        dropped = sorted(set(fields) - known)
        if dropped:
            self.logger.debug("Ignoring unknown fields collection=%s fields=%s", model.__tablename__, dropped)
        return {key: _to_storage(value) for key, value in fields.items() if key in known}

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
    ) -> list[dict]:
        model = self._model(collection)
        try:
            with self._session_factory() as db:
                q = db.query(model)
                for field, op, value in filters:
                    if op not in _OPS:
                        raise StoreError(f"Unsupported filter operator: {op}")
                    q = q.filter(_OPS[op](self._column(model, field), _to_storage(value)))
                if order_by:
                    descending = order_by.startswith("-")
                    column = self._column(model, order_by.lstrip("-"))
                    q = q.order_by(column.desc() if descending else column.asc())
                return [self._to_document(model, row) for row in q.all()]
        except SQLAlchemyError as exc:
            log_exception(self.logger, "Store query failed", extra={"collection": collection}, exc=exc)
            raise StoreError(f"Query on {collection} failed") from exc

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        model = self._model(collection)
        try:
            with self._session_factory() as db:
                row = db.get(model, doc_id)
                return self._to_document(model, row) if row is not None else None
        except SQLAlchemyError as exc:
            log_exception(self.logger, "Store get failed", extra={"collection": collection, "id": doc_id}, exc=exc)
            raise StoreError(f"Lookup of {collection}/{doc_id} failed") from exc

    def create(self, collection: str, fields: dict) -> str:
        model = self._model(collection)
        try:
            with self._session_factory() as db:
                row = model(**self._clean_fields(model, fields))
                db.add(row)
                db.commit()
                return str(row.id)
        except SQLAlchemyError as exc:
            log_exception(self.logger, "Store create failed", extra={"collection": collection}, exc=exc)
            raise StoreError(f"Create in {collection} failed") from exc

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        model = self._model(collection)
        try:
            with self._session_factory() as db:
                row = db.get(model, doc_id)
                if row is None:
                    raise MissingReferenceError(collection, doc_id)
                for key, value in self._clean_fields(model, fields).items():
                    setattr(row, key, value)
                db.add(row)
                db.commit()
        except SQLAlchemyError as exc:
            log_exception(self.logger, "Store update failed", extra={"collection": collection, "id": doc_id}, exc=exc)
            raise StoreError(f"Update of {collection}/{doc_id} failed") from exc


class ReferenceResolver:
    """
    Memoised per-id lookups for one load.

    Each distinct reference is fetched once, sequentially. A missing document
    or a failing lookup resolves to None so that a single dangling reference
    never fails the whole batch.
    """

    def __init__(self, store: DocumentStore, *, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.logger = logger or logging.getLogger("ReferenceResolver")
        self._cache: dict[tuple[str, str], Optional[dict]] = {}

    def get(self, collection: str, doc_id: Optional[str]) -> Optional[dict]:
        if not doc_id:
            return None
        key = (collection, doc_id)
        if key in self._cache:
            return self._cache[key]
        try:
            doc = self.store.get(collection, doc_id)
        except StoreError as exc:
            self.logger.warning("Reference lookup failed %s/%s: %s", collection, doc_id, exc)
            doc = None
        else:
            if doc is None:
                self.logger.warning("Missing reference %s/%s", collection, doc_id)
        self._cache[key] = doc
        return doc

    def prime(self, collection: str, docs: Iterable[dict]) -> None:
        for doc in docs:
            if doc.get("id"):
                self._cache[(collection, str(doc["id"]))] = doc
