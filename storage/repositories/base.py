"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Shared plumbing of every analytics repository:
- Injected session (repositories flush, callers commit)
- One logger per repository: repository.<Name>
- SQLAlchemy errors mapped onto repository exceptions

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.base import Base
from storage.repositories.exceptions import (
    ConstraintViolationError,
    DatabaseOperationError,
    DuplicateRecordError,
    QueryError,
    RepositoryConnectionError,
)


ModelT = TypeVar("ModelT", bound=Base)


def classify_database_error(error: SQLAlchemyError) -> Type[DatabaseOperationError]:
    """Repository exception class for a SQLAlchemy error."""
    if isinstance(error, OperationalError):
        return RepositoryConnectionError
    if isinstance(error, IntegrityError):
        message = str(error.orig).lower()
        if "unique" in message or "duplicate" in message:
            return DuplicateRecordError
        return ConstraintViolationError
    return QueryError


class BaseRepository(Generic[ModelT]):
    """
    Base class for all repositories.

        class WalletRepository(BaseRepository[Wallet]):
            def __init__(self, session: Session):
                super().__init__(session, Wallet, "WalletRepository")
    """

    def __init__(self, session: Session, model_class: Type[ModelT], repository_name: str) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def _guard(self, operation: str) -> Generator[None, None, None]:
        """Re-raise SQLAlchemy errors from the block as repository exceptions."""
        try:
            yield
        except SQLAlchemyError as e:
            original = getattr(e, "orig", None) or e
            self._logger.error(f"Database error in {operation}: {original}", exc_info=True)
            error_class = classify_database_error(e)
            raise error_class(self._repository_name, operation, str(original)) from e

    # =========================================================
    # WRITE HELPERS
    # =========================================================

    def _add(self, entity: ModelT) -> ModelT:
        with self._guard("add"):
            self._session.add(entity)
            self._session.flush()
        self._logger.debug(f"Added {self._model_class.__name__}")
        return entity

    def _flush(self, operation: str) -> None:
        with self._guard(operation):
            self._session.flush()

    # =========================================================
    # READ HELPERS
    # =========================================================

    def _get_by_id(self, record_id: UUID) -> Optional[ModelT]:
        with self._guard("get_by_id"):
            return self._session.get(self._model_class, record_id)

    def _execute_query(self, stmt: Any) -> List[ModelT]:
        """All ORM entities selected by stmt."""
        with self._guard("query"):
            return list(self._session.execute(stmt).scalars().all())

    def _execute_scalar(self, stmt: Any) -> Optional[Any]:
        """Single value (or entity) selected by stmt, None when empty."""
        with self._guard("query_scalar"):
            return self._session.execute(stmt).scalar_one_or_none()

    def _execute_rows(self, stmt: Any) -> List[Any]:
        """Plain result rows, for aggregates and column tuples."""
        with self._guard("query_rows"):
            return list(self._session.execute(stmt).all())
