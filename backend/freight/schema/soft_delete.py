"""
Soft-Delete Policy Resolver.

Decides, per table, whether row visibility must exclude soft-deleted rows
and which operations the table supports because of it.
"""

from __future__ import annotations

from sqlalchemy import ColumnElement, FromClause

from freight.schema.descriptors import TableDescriptor
from shared.config.constants import Columns
from shared.utils.exceptions import SchemaCapabilityError


class SoftDeletePolicy:
    """
    Visibility rules for one table.

    Reads always AND `not_deleted_clause()` into their WHERE; writes use it
    as a precondition so an update never touches a soft-deleted row.
    """

    def __init__(self, descriptor: TableDescriptor):
        self._descriptor = descriptor

    @property
    def enabled(self) -> bool:
        return self._descriptor.soft_deletes

    def not_deleted_clause(self, selectable: FromClause) -> ColumnElement[bool]:
        """`<alias>.deleted_at IS NULL`, or a tautology when the table has no deleted_at."""
        return self._descriptor.not_deleted_clause(selectable)

    def deleted_clause(self, selectable: FromClause, operation: str) -> ColumnElement[bool]:
        """Only soft-deleted rows. Raises for `operation` when the table has no deleted_at."""
        self.require(operation)
        return selectable.c[Columns.DELETED_AT].is_not(None)

    def require(self, operation: str) -> None:
        """Raise SchemaCapabilityError unless the table soft-deletes."""
        if not self.enabled:
            raise SchemaCapabilityError(
                self._descriptor.name, operation, Columns.DELETED_AT
            )
