"""
Schema metadata value objects.

A TableDescriptor is the only source of SQL identifiers in this package:
table and column objects are built from the column names the live catalog
reported, so a caller-supplied string can never become part of the
identifier space without first matching one of them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import ColumnElement, FromClause, column, table, true

from shared.config.constants import Columns


@dataclass(frozen=True)
class TableDescriptor:
    """
    Name and live column set of one table.

    An empty column set means the table does not exist in this deployment.
    """

    name: str
    columns: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, name: str, columns: Iterable[str]) -> TableDescriptor:
        """Build a descriptor from any iterable of column names."""
        return cls(name=name, columns=frozenset(columns))

    @property
    def exists(self) -> bool:
        return bool(self.columns)

    @property
    def soft_deletes(self) -> bool:
        """True when rows are hidden through deleted_at instead of removed."""
        return Columns.DELETED_AT in self.columns

    def has(self, column_name: str) -> bool:
        return column_name in self.columns

    def first_of(self, candidates: Iterable[str]) -> str | None:
        """First candidate column present in this table, in priority order."""
        for candidate in candidates:
            if candidate in self.columns:
                return candidate
        return None

    def table_clause(self, alias: str | None = None) -> FromClause:
        """
        Lightweight table construct carrying every live column.

        Columns are sorted so that statements render deterministically.
        """
        clause = table(self.name, *(column(name) for name in sorted(self.columns)))
        if alias and alias != self.name:
            return clause.alias(alias)
        return clause

    def not_deleted_clause(self, selectable: FromClause) -> ColumnElement[bool]:
        """
        `<alias>.deleted_at IS NULL` when the table soft-deletes, else a tautology.

        The tautology lets callers AND the result into any WHERE clause
        without branching; SQLAlchemy drops it from rendered conjunctions.
        """
        if self.soft_deletes:
            return selectable.c[Columns.DELETED_AT].is_(None)
        return true()


@dataclass(frozen=True)
class RelationDescriptor:
    """
    Live shape of a one-to-many relation, resolved from candidate names.

    Attributes:
        table: Descriptor of the related table that matched
        foreign_key_column: Column in `table` pointing at the owning row
        fields: Output key -> physical column, only for columns that exist
        order_columns: Physical columns used to order aggregated items
    """

    table: TableDescriptor
    foreign_key_column: str
    fields: tuple[tuple[str, str], ...] = ()
    order_columns: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.table.name

    @property
    def columns(self) -> frozenset[str]:
        return self.table.columns

    @property
    def reference_column(self) -> str:
        """Column guaranteed non-null on a real related row."""
        return Columns.ID if self.table.has(Columns.ID) else self.foreign_key_column

    @property
    def soft_delete_clause(self) -> str:
        """Textual form of the visibility predicate, for logs and debugging."""
        if self.table.soft_deletes:
            return f"{self.table.name}.{Columns.DELETED_AT} IS NULL"
        return "1=1"

    def not_deleted_clause(self, selectable: FromClause) -> ColumnElement[bool]:
        return self.table.not_deleted_clause(selectable)
