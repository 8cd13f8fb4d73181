"""Base class for the gateway's persistent stores.

Stores own a session handed in by the caller and commit per operation.
Storage failures are rolled back and re-raised as
:class:`~payrecon.errors.PersistenceError`.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from payrecon.errors import PersistenceError
from payrecon.services.common import get_column_value

T = TypeVar("T")


class BaseStore(Generic[T]):
    model_class: type[T]

    def __init__(self, db: Session):
        self.db = db

    def _first(self, stmt: Select) -> T | None:
        try:
            return self.db.scalars(stmt.limit(1)).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {self.model_class.__name__}: {exc}") from exc

    def _all(self, stmt: Select) -> list[T]:
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {self.model_class.__name__}: {exc}") from exc

    def _value(self, stmt: Select) -> Any:
        try:
            return get_column_value(self.db, stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {self.model_class.__name__}: {exc}") from exc

    def _commit(self, obj: T | None = None) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to write {self.model_class.__name__}: {exc}") from exc
        if obj is not None:
            self.db.refresh(obj)
