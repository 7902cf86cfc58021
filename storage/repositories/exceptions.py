"""
Repository Layer Exceptions.

Every SQLAlchemy error raised inside a repository surfaces as a
RepositoryException subclass naming the repository and the
operation. Engines let them propagate; transaction_scope rolls
back on any of them.
"""

from typing import Any, Dict, Optional


class RepositoryException(Exception):
    """Base class; catch this for any storage failure."""

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(f"[{repository_name}] {operation}: {message}")


class DatabaseOperationError(RepositoryException):
    """A statement or flush failed; `summary` prefixes the driver message."""

    summary = "Database operation failed"

    def __init__(self, repository_name: str, operation: str, original_error: str) -> None:
        super().__init__(
            f"{self.summary}: {original_error}",
            repository_name,
            operation,
            {"original_error": original_error},
        )
        self.original_error = original_error


class DuplicateRecordError(DatabaseOperationError):
    """Unique constraint violated, e.g. a second rollup for the same day."""

    summary = "Duplicate record"


class ConstraintViolationError(DatabaseOperationError):
    """Foreign key, not-null or check constraint violated."""

    summary = "Constraint violated"


class RepositoryConnectionError(DatabaseOperationError):
    summary = "Database connection lost"


class QueryError(DatabaseOperationError):
    summary = "Query failed"
