"""
Centralized exceptions for the data-access layer.

Usage:
    from shared.utils.exceptions import SchemaCapabilityError, DatabaseError

    raise SchemaCapabilityError("clientes", "soft_delete", "deleted_at")

Not-found is never an exception here: repository reads return None and the
caller decides what that means.
"""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from shared.config.logging import get_logger

logger = get_logger(__name__)


# Driver failures (constraint violations, connection loss, statement timeout)
# are re-raised unchanged; callers inspect `.orig` for driver-specific codes.
DatabaseError = SQLAlchemyError


class RepositoryError(Exception):
    """
    Base exception with automatic logging.

    All data-access errors raised by this layer inherit from this class
    so they carry the table and operation that failed.
    """

    def __init__(
        self,
        detail: str,
        *,
        table: str | None = None,
        operation: str | None = None,
        log_level: str = "warning",
        **log_context: Any,
    ):
        self.detail = detail
        self.table = table
        self.operation = operation

        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, table=table, operation=operation, **log_context)

        super().__init__(detail)


class SchemaCapabilityError(RepositoryError):
    """
    The live table lacks a column the operation needs.

    Signals a deployment/schema mismatch, so it is always surfaced and never
    downgraded to a no-op.

    Usage:
        raise SchemaCapabilityError("clientes", "soft_delete", "deleted_at")
        raise SchemaCapabilityError("clientes", "filter", "cidade")
    """

    def __init__(self, table: str, operation: str, column: str, **log_context: Any):
        self.column = column
        super().__init__(
            f"Table '{table}' has no column '{column}' required by {operation}",
            table=table,
            operation=operation,
            column=column,
            **log_context,
        )
