"""
Schema Catalog Probe.

Answers "does table T exist / have column C?" against the live database and
caches the answer per table for the lifetime of the probe instance.

On PostgreSQL the answer comes from information_schema, with the schema and
table names passed as bound parameters. Other dialects (SQLite in the test
suite) are answered through SQLAlchemy's runtime inspection API.

Failures propagate: if the column set of a table cannot be determined, no
statement built on it can be proven safe.
"""

from __future__ import annotations

from sqlalchemy import bindparam, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freight.schema.descriptors import TableDescriptor
from shared.config.logging import schema_logger as logger
from shared.config.settings import settings


COLUMNS_QUERY = text(
    """
    SELECT column_name
    FROM information_schema.columns
    WHERE table_schema = :schema AND table_name = :table_name
    ORDER BY ordinal_position
    """
).bindparams(bindparam("schema"), bindparam("table_name"))


class SchemaCatalog:
    """
    Per-instance cache of table shapes.

    Concurrent first access for the same table may query twice; the result
    is deterministic, so the last write wins harmlessly.
    """

    def __init__(self, db: Session, schema: str | None = None):
        self._db = db
        self._schema = schema or settings.database_schema
        self._cache: dict[str, TableDescriptor] = {}

    @property
    def schema(self) -> str:
        return self._schema

    def describe(self, table_name: str) -> TableDescriptor:
        """Descriptor for `table_name`; empty column set when the table is absent."""
        cached = self._cache.get(table_name)
        if cached is not None:
            return cached

        try:
            columns = self._fetch_columns(table_name)
        except SQLAlchemyError:
            logger.error(
                "Failed to read table columns from catalog",
                table=table_name,
                schema=self._schema,
                exc_info=True,
            )
            raise

        descriptor = TableDescriptor.of(table_name, columns)
        self._cache[table_name] = descriptor
        logger.debug(
            "Schema discovered",
            table=table_name,
            exists=descriptor.exists,
            columns=len(descriptor.columns),
        )
        return descriptor

    def get_columns(self, table_name: str) -> frozenset[str]:
        return self.describe(table_name).columns

    def has_table(self, table_name: str) -> bool:
        return self.describe(table_name).exists

    def has_column(self, table_name: str, column_name: str) -> bool:
        return self.describe(table_name).has(column_name)

    def invalidate(self, table_name: str | None = None) -> None:
        """Drop cached shapes. Table shape is assumed stable; call this after a migration."""
        if table_name is None:
            self._cache.clear()
        else:
            self._cache.pop(table_name, None)

    def _fetch_columns(self, table_name: str) -> list[str]:
        bind = self._db.get_bind()
        if bind.dialect.name == "postgresql":
            rows = self._db.execute(
                COLUMNS_QUERY,
                {"schema": self._schema, "table_name": table_name},
            )
            return [row.column_name for row in rows]

        inspector = inspect(self._db.connection())
        if not inspector.has_table(table_name):
            return []
        return [col["name"] for col in inspector.get_columns(table_name)]
