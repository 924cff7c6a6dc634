"""
Entity Store Module

Typed document-store client over SQLModel tables. Every collection (tasks,
comments, companies, users, notifications) is reached through the same small
set of primitives:

- get / get_many / query: reads, returned as validated read schemas
- add / set / update: writes, validated against the table model first
- delete / delete_where: removals
- live_query: push-based subscription that re-delivers the full matching
  result set after every committed write to the collection

Rows that do not pass their read schema are dropped from results with a
warning instead of reaching service code. Transient database failures are
retried a bounded number of times and then surface as StoreUnavailable;
constraint violations surface as Conflict.
"""
import logging
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from taskflow.core.config import settings
from taskflow.core.errors import Conflict, NotFound, StoreUnavailable, ValidationFailed
from taskflow.models import READ_MODELS

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Placeholder replaced by the store's clock when a write is committed."""

    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class Subscription:
    """
    Handle for a live query.

    Every delivery is the full current result set, never a diff. Once cancel()
    returns, the callback is never invoked again. cancel() is idempotent and
    safe to call from inside the callback.
    """

    def __init__(
        self,
        store: "EntityStore",
        model: Type[SQLModel],
        callback: Callable[[List[Any]], None],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.id = uuid.uuid4().hex
        self._store = store
        self.model = model
        self.callback = callback
        self.filters = dict(filters or {})
        self.order_by = order_by
        self.descending = descending
        self.limit = limit
        self.on_error = on_error
        self.active = True

    def cancel(self) -> None:
        self._store._unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.cancel()
        return False

    def __repr__(self):
        return f"<Subscription {self.model.__tablename__} {self.filters} active={self.active}>"


class EntityStore:
    """
    Document-store client bound to one SQLAlchemy engine.

    Args:
        engine: Engine the tables live on
        read_models: Mapping of table model to read schema (defaults to READ_MODELS)
        retry_attempts: Total attempts for one operation before StoreUnavailable
        retry_delay: Seconds to wait between attempts
    """

    def __init__(self, engine, read_models=None, retry_attempts: int = None, retry_delay: float = None):
        self.engine = engine
        self.read_models = read_models or READ_MODELS
        self.retry_attempts = max(1, retry_attempts or settings.STORE_RETRY_ATTEMPTS)
        self.retry_delay = settings.STORE_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self._subscriptions: List[Subscription] = []
        self._lock = threading.RLock()
        self._last_timestamp: Optional[datetime] = None

    # === Helpers ===

    def server_timestamp(self) -> str:
        """Return a strictly increasing UTC ISO timestamp."""
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_timestamp is not None and now <= self._last_timestamp:
                now = self._last_timestamp + timedelta(microseconds=1)
            self._last_timestamp = now
            return now.isoformat(timespec="microseconds")

    @staticmethod
    def primary_key(model: Type[SQLModel]) -> str:
        return list(model.__table__.primary_key.columns)[0].name

    def _run(self, operation: Callable[[Session], Any], description: str) -> Any:
        for attempt in range(1, self.retry_attempts + 1):
            try:
                with Session(self.engine, expire_on_commit=False) as db:
                    return operation(db)
            except OperationalError as e:
                logger.warning(
                    "Store operation '%s' failed (attempt %d/%d): %s",
                    description, attempt, self.retry_attempts, e,
                )
                if attempt == self.retry_attempts:
                    raise StoreUnavailable(f"Store unavailable while trying to {description}") from e
                time.sleep(self.retry_delay)
            except IntegrityError as e:
                logger.info("Store operation '%s' rejected: %s", description, e.orig)
                raise Conflict(f"Could not {description}: conflicts with an existing document") from e
            except SQLAlchemyError as e:
                logger.error("Store operation '%s' failed: %s", description, e)
                raise StoreUnavailable(f"Store failed while trying to {description}") from e

    @staticmethod
    def _row_data(row: SQLModel) -> Dict[str, Any]:
        # Column values as stored; enum columns come back as plain strings
        return {column.name: getattr(row, column.name) for column in row.__table__.columns}

    def _resolve(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        resolved = {}
        timestamp = None
        for key, value in fields.items():
            if value is SERVER_TIMESTAMP:
                timestamp = timestamp or self.server_timestamp()
                value = timestamp
            resolved[key] = value
        return resolved

    @staticmethod
    def _validate(model: Type[SQLModel], data: Dict[str, Any]) -> SQLModel:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise ValidationFailed(f"Invalid {model.__tablename__} document: {messages}") from e

    def _to_read(self, model: Type[SQLModel], row: SQLModel) -> Optional[Any]:
        read_model = self.read_models.get(model, model)
        try:
            return read_model.model_validate(self._row_data(row))
        except ValidationError as e:
            logger.warning(
                "Dropping malformed %s document %s: %s",
                model.__tablename__, getattr(row, self.primary_key(model), None), e,
            )
            return None

    def _statement(self, model, filters=None, order_by=None, descending=False, limit=None):
        statement = select(model)
        for field, value in (filters or {}).items():
            statement = statement.where(getattr(model, field) == value)
        if order_by:
            column = getattr(model, order_by)
            statement = statement.order_by(column.desc() if descending else column)
        if limit:
            statement = statement.limit(limit)
        return statement

    # === Reads ===

    def get(self, model: Type[SQLModel], doc_id: str) -> Optional[Any]:
        """Return one document by id, or None when it does not exist."""
        row = self._run(lambda db: db.get(model, doc_id), f"get {model.__tablename__}")
        if row is None:
            return None
        return self._to_read(model, row)

    def get_many(self, model: Type[SQLModel], doc_ids: Iterable[str]) -> List[Any]:
        """Return the documents that exist for doc_ids, in the given order."""
        ids = list(doc_ids)
        if not ids:
            return []
        pk = getattr(model, self.primary_key(model))
        rows = self._run(
            lambda db: db.exec(select(model).where(pk.in_(ids))).all(),
            f"get many {model.__tablename__}",
        )
        by_id = {getattr(row, self.primary_key(model)): row for row in rows}
        results = []
        for doc_id in ids:
            if doc_id in by_id:
                doc = self._to_read(model, by_id[doc_id])
                if doc is not None:
                    results.append(doc)
        return results

    def query(
        self,
        model: Type[SQLModel],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Return every document matching the equality filters."""
        statement = self._statement(model, filters, order_by, descending, limit)
        rows = self._run(lambda db: db.exec(statement).all(), f"query {model.__tablename__}")
        results = []
        for row in rows:
            doc = self._to_read(model, row)
            if doc is not None:
                results.append(doc)
        return results

    # === Writes ===

    def add(self, model: Type[SQLModel], fields: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        pk = self.primary_key(model)
        data = self._resolve(fields)
        data.setdefault(pk, None)
        if data[pk] is None:
            data[pk] = uuid.uuid4().hex
        obj = self._validate(model, data)

        def operation(db):
            db.add(obj)
            db.commit()
            return data[pk]

        doc_id = self._run(operation, f"add {model.__tablename__}")
        self._broadcast(model)
        return doc_id

    def set(self, model: Type[SQLModel], doc_id: str, fields: Dict[str, Any]) -> None:
        """Create or overwrite the document stored under doc_id."""
        pk = self.primary_key(model)
        data = self._resolve(fields)
        data[pk] = doc_id
        obj = self._validate(model, data)

        def operation(db):
            existing = db.get(model, doc_id)
            if existing is not None:
                db.delete(existing)
                db.flush()
            db.add(obj)
            db.commit()

        self._run(operation, f"set {model.__tablename__}")
        self._broadcast(model)

    def update(self, model: Type[SQLModel], doc_id: str, fields: Dict[str, Any]) -> Any:
        """
        Merge fields into an existing document and return the updated document.

        Raises:
            NotFound: If no document exists under doc_id
            ValidationFailed: If the merged document does not fit the model
        """
        pk = self.primary_key(model)
        data = self._resolve(fields)
        data.pop(pk, None)

        def operation(db):
            row = db.get(model, doc_id)
            if row is None:
                raise NotFound(f"{model.__tablename__} document {doc_id} not found")
            merged = self._validate(model, {**self._row_data(row), **data})
            for key in data:
                setattr(row, key, getattr(merged, key))
            db.add(row)
            db.commit()
            db.refresh(row)
            return row

        row = self._run(operation, f"update {model.__tablename__}")
        self._broadcast(model)
        return self._to_read(model, row)

    def delete(self, model: Type[SQLModel], doc_id: str) -> bool:
        """Remove a document. Returns False when it did not exist."""

        def operation(db):
            row = db.get(model, doc_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

        deleted = self._run(operation, f"delete {model.__tablename__}")
        if deleted:
            self._broadcast(model)
        return deleted

    def delete_where(self, model: Type[SQLModel], filters: Dict[str, Any]) -> int:
        """Remove every document matching the equality filters; returns the count."""
        statement = self._statement(model, filters)

        def operation(db):
            rows = db.exec(statement).all()
            for row in rows:
                db.delete(row)
            db.commit()
            return len(rows)

        count = self._run(operation, f"delete {model.__tablename__}")
        if count:
            self._broadcast(model)
        return count

    # === Live queries ===

    def live_query(
        self,
        model: Type[SQLModel],
        callback: Callable[[List[Any]], None],
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """
        Subscribe to the documents matching filters.

        The callback is invoked immediately with the current result set and
        again after every committed write to the collection.
        """
        subscription = Subscription(
            self, model, callback, filters=filters, order_by=order_by,
            descending=descending, limit=limit, on_error=on_error,
        )
        with self._lock:
            self._subscriptions.append(subscription)
            self._deliver(subscription)
        return subscription

    def active_subscriptions(self, model: Type[SQLModel] = None) -> List[Subscription]:
        with self._lock:
            return [s for s in self._subscriptions if model is None or s.model is model]

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _broadcast(self, model: Type[SQLModel]) -> None:
        # Broadcasts are serialized so a later delivery always carries a fresher snapshot
        with self._lock:
            for subscription in [s for s in self._subscriptions if s.model is model]:
                self._deliver(subscription)

    def _deliver(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        try:
            snapshot = self.query(
                subscription.model,
                filters=subscription.filters,
                order_by=subscription.order_by,
                descending=subscription.descending,
                limit=subscription.limit,
            )
        except StoreUnavailable as e:
            logger.error("Live query %r could not be refreshed: %s", subscription, e)
            if subscription.on_error is not None:
                subscription.on_error(e)
            return
        try:
            subscription.callback(snapshot)
        except Exception:
            logger.exception("Subscriber callback for %r raised", subscription)
