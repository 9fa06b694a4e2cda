"""
Entity store interface and the SQLite-backed implementation.

Jobs only talk to an ``EntityStore``. The managed backend is reached through
``recordsweep.remote.HttpEntityStore``; ``SqlEntityStore`` serves local
copies (restored backups) and tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import ENTITY_MODELS, get_engine, init_database
from .errors import PermanentStoreError, RecordNotFound, StoreError, ThrottledError
from .logger import get_logger

logger = get_logger()

Record = Dict[str, Any]


class EntityStore(ABC):
    """Narrow CRUD surface the reconciliation jobs depend on."""

    @abstractmethod
    def list(self, entity: str, sort: str, limit: int, offset: int = 0) -> List[Record]:
        """Return one page of records ordered by ``sort`` (``-field`` = descending)."""

    @abstractmethod
    def filter(self, entity: str, **criteria) -> List[Record]:
        """Return every record whose fields exactly match ``criteria``."""

    @abstractmethod
    def update(self, entity: str, record_id: str, fields: Record) -> None:
        pass

    @abstractmethod
    def delete(self, entity: str, record_id: str) -> None:
        pass

    @abstractmethod
    def create(self, entity: str, record: Record) -> Record:
        pass


def parse_sort(sort: str):
    """Split a '-field' sort key into (field, descending)."""
    if sort.startswith("-"):
        return sort[1:], True
    return sort, False


def _parse_timestamp(value):
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.now()


class SqlEntityStore(EntityStore):
    """EntityStore over a SQLite database file."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)
        self._engine = get_engine(self.db_path)
        self._Session = sessionmaker(bind=self._engine)

    def _model(self, entity: str):
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise PermanentStoreError(f"Unknown entity type: {entity}")

    @staticmethod
    def _columns(model):
        return [c.name for c in model.__table__.columns]

    def _to_dict(self, row) -> Record:
        record = {}
        for name in self._columns(type(row)):
            value = getattr(row, name)
            if name == "data" and value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            record[name] = value
        return record

    def _translate(self, e: SQLAlchemyError, action: str) -> StoreError:
        message = f"{action} failed: {e.__class__.__name__}: {e.orig if hasattr(e, 'orig') else e}"
        if isinstance(e, OperationalError) and "locked" in str(e).lower():
            return ThrottledError(message)
        if isinstance(e, IntegrityError):
            return PermanentStoreError(message)
        return StoreError(message)

    def list(self, entity, sort, limit, offset=0):
        logger.record_store_call()
        model = self._model(entity)
        field, descending = parse_sort(sort)
        if field not in self._columns(model):
            raise PermanentStoreError(f"Cannot sort {entity} by {field}")
        column = getattr(model, field)
        order = desc(column) if descending else asc(column)
        try:
            with self._Session() as session:
                rows = (
                    session.query(model)
                    .order_by(order, asc(model.id))
                    .offset(offset)
                    .limit(limit)
                    .all()
                )
                return [self._to_dict(r) for r in rows]
        except SQLAlchemyError as e:
            raise self._translate(e, f"list {entity}")

    def filter(self, entity, **criteria):
        logger.record_store_call()
        model = self._model(entity)
        unknown = set(criteria) - set(self._columns(model))
        if unknown:
            raise PermanentStoreError(f"Cannot filter {entity} by {sorted(unknown)}")
        try:
            with self._Session() as session:
                rows = session.query(model).filter_by(**criteria).order_by(asc(model.id)).all()
                return [self._to_dict(r) for r in rows]
        except SQLAlchemyError as e:
            raise self._translate(e, f"filter {entity}")

    def update(self, entity, record_id, fields):
        logger.record_store_call()
        model = self._model(entity)
        unknown = set(fields) - set(self._columns(model))
        if unknown or "id" in fields:
            raise PermanentStoreError(f"Cannot update {entity} fields {sorted(unknown or {'id'})}")
        try:
            with self._Session() as session:
                row = session.get(model, record_id)
                if row is None:
                    raise RecordNotFound(f"{entity} {record_id} not found")
                for name, value in fields.items():
                    setattr(row, name, value)
                session.commit()
        except SQLAlchemyError as e:
            raise self._translate(e, f"update {entity} {record_id}")

    def delete(self, entity, record_id):
        logger.record_store_call()
        model = self._model(entity)
        try:
            with self._Session() as session:
                row = session.get(model, record_id)
                if row is None:
                    raise RecordNotFound(f"{entity} {record_id} not found")
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise self._translate(e, f"delete {entity} {record_id}")

    def create(self, entity, record):
        """Insert a record. Keys the table has no column for are dropped."""
        logger.record_store_call()
        model = self._model(entity)
        if not record.get("id"):
            raise PermanentStoreError(f"Cannot create {entity} without an id")
        columns = set(self._columns(model))
        values = {k: v for k, v in record.items() if k in columns}
        values["created_date"] = _parse_timestamp(record.get("created_date"))
        try:
            with self._Session() as session:
                row = model(**values)
                session.add(row)
                session.commit()
                return self._to_dict(row)
        except SQLAlchemyError as e:
            raise self._translate(e, f"create {entity}")

    def count(self, entity: str) -> int:
        logger.record_store_call()
        model = self._model(entity)
        with self._Session() as session:
            return session.query(model).count()
