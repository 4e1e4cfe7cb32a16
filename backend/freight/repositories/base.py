"""
Base Repository implementation.
Provides the generic CRUD contract over tables whose shape is discovered at runtime.

Identifiers (table and column names) only ever come from the live
TableDescriptor; values only ever travel as bound parameters. Concrete
repositories supply `table_name` and compose these primitives.
"""

from __future__ import annotations

from collections.abc import Generator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import sqlalchemy as sa
from sqlalchemy import ColumnElement, FromClause
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freight.query.filters import FilterCompiler
from freight.query.pagination import (
    PageRequest,
    PageResult,
    PaginationMeta,
    QueryBase,
    build_page,
    resolve_order,
)
from freight.schema.catalog import SchemaCatalog
from freight.schema.descriptors import RelationDescriptor, TableDescriptor
from freight.schema.relations import (
    LookupDescriptor,
    LookupSpec,
    RelationSpec,
    decode_items,
    relation_items,
    resolve_lookup,
)
from freight.schema.soft_delete import SoftDeletePolicy
from shared.config.constants import Columns, OrderDirection
from shared.config.logging import repository_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import RepositoryError, SchemaCapabilityError


Row = dict[str, Any]
Namespace = dict[str, ColumnElement[Any]]


class BaseRepository:
    """
    Generic repository over one table.

    Subclasses set:
    - table_name: Physical table name
    - alias: SQL alias used for the base table (filters/order_by may be
      qualified with it, e.g. "c.nome")
    - primary_key: Primary key column (default "id")

    and may override `column_aliases()` to expose extra code-defined names.

    Args:
        db: SQLAlchemy session
        descriptor: Pre-built table shape (skips the catalog probe, used in tests)
        catalog: Shared catalog; defaults to a catalog owned by this instance
    """

    table_name: str = ""
    alias: str | None = None
    primary_key: str = Columns.ID

    def __init__(
        self,
        db: Session,
        descriptor: TableDescriptor | None = None,
        catalog: SchemaCatalog | None = None,
    ):
        if not self.table_name:
            raise TypeError(f"{type(self).__name__} must define table_name")
        self._db = db
        self._catalog = catalog or SchemaCatalog(db)
        self._descriptor = descriptor
        self._relations: dict[RelationSpec, RelationDescriptor | None] = {}
        self._lookups: dict[LookupSpec, LookupDescriptor | None] = {}

    # =========================================================================
    # Schema
    # =========================================================================

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    @property
    def descriptor(self) -> TableDescriptor:
        """Live shape of the base table, probed once per repository."""
        if self._descriptor is None:
            self._descriptor = self._catalog.describe(self.table_name)
        return self._descriptor

    @property
    def alias_name(self) -> str:
        return self.alias or self.table_name

    @property
    def dialect_name(self) -> str:
        return self._db.get_bind().dialect.name

    @property
    def policy(self) -> SoftDeletePolicy:
        return SoftDeletePolicy(self.descriptor)

    @property
    def soft_deletes(self) -> bool:
        return self.policy.enabled

    def has_column(self, column_name: str) -> bool:
        return self.descriptor.has(column_name)

    def _source(self, operation: str) -> FromClause:
        """Aliased base table for reads."""
        if not self.descriptor.exists:
            raise RepositoryError(
                f"Table '{self.table_name}' does not exist",
                table=self.table_name,
                operation=operation,
            )
        return self.descriptor.table_clause(alias=self.alias_name)

    def _target(self, operation: str) -> FromClause:
        """Unaliased base table for writes."""
        self._source(operation)
        return self.descriptor.table_clause()

    def _require(self, column_name: str, operation: str) -> None:
        if not self.descriptor.has(column_name):
            raise SchemaCapabilityError(self.table_name, operation, column_name)

    def not_deleted_clause(self, source: FromClause) -> ColumnElement[bool]:
        return self.policy.not_deleted_clause(source)

    def column_aliases(self, source: FromClause) -> Namespace:
        """
        Extra names that filters, select and order_by may reference.

        Override to expose schema-dependent synonyms; only return columns
        confirmed to exist.
        """
        return {}

    def resolve_relation(self, spec: RelationSpec) -> RelationDescriptor | None:
        """Relation descriptor for `spec`, resolved once per repository."""
        if spec not in self._relations:
            self._relations[spec] = spec.resolve(self._catalog)
        return self._relations[spec]

    def resolve_lookup(self, spec: LookupSpec) -> LookupDescriptor | None:
        if spec not in self._lookups:
            self._lookups[spec] = resolve_lookup(self._catalog, self.descriptor, spec)
            if self._lookups[spec] is None:
                logger.debug(
                    "Lookup skipped, target not present",
                    table=self.table_name,
                    lookup=spec.table,
                    local_key=spec.local_key,
                )
        return self._lookups[spec]

    # =========================================================================
    # Statement composition
    # =========================================================================

    def _namespace(
        self,
        source: FromClause,
        lookups: Sequence[tuple[LookupDescriptor, FromClause]] = (),
    ) -> Namespace:
        """Whitelist of referable names, built only from live columns."""
        namespace: Namespace = {}
        for name in self.descriptor.columns:
            namespace[name] = source.c[name]
            namespace[f"{self.alias_name}.{name}"] = source.c[name]

        for lookup, target in lookups:
            for name in lookup.table.columns:
                namespace[f"{lookup.spec.alias}.{name}"] = target.c[name]
            for key, physical in lookup.fields:
                namespace.setdefault(f"{lookup.spec.prefix}_{key}", target.c[physical])

        namespace.update(self.column_aliases(source))
        return namespace

    def _join_lookups(
        self, source: FromClause, joins: Sequence[LookupSpec] | None
    ) -> tuple[FromClause, list[tuple[LookupDescriptor, FromClause]]]:
        """LEFT JOIN every lookup whose table and key columns exist."""
        from_clause = source
        applied: list[tuple[LookupDescriptor, FromClause]] = []
        for spec in joins or ():
            lookup = self.resolve_lookup(spec)
            if lookup is None:
                continue
            target = lookup.table.table_clause(alias=spec.alias)
            on = sa.and_(
                source.c[spec.local_key] == target.c[spec.remote_key],
                lookup.table.not_deleted_clause(target),
            )
            from_clause = from_clause.outerjoin(target, on)
            applied.append((lookup, target))
        return from_clause, applied

    def _columns(
        self,
        source: FromClause,
        namespace: Mapping[str, ColumnElement[Any]],
        select: Sequence[str] | None,
        lookups: Sequence[tuple[LookupDescriptor, FromClause]] = (),
        operation: str = "select",
    ) -> list[ColumnElement[Any]]:
        """
        Selected columns.

        Without an explicit selection: every base column plus each lookup's
        `<prefix>_<field>` columns. Alias-qualified names are returned with
        the dot replaced by an underscore.
        """
        if not select:
            columns: list[ColumnElement[Any]] = list(source.c)
            for lookup, target in lookups:
                columns.extend(lookup.labelled_columns(target))
            return columns

        columns = []
        for name in select:
            col = namespace.get(name)
            if col is None:
                raise SchemaCapabilityError(self.table_name, operation, name)
            columns.append(col.label(name.replace(".", "_")))
        return columns

    def _fallback_order(self, source: FromClause) -> ColumnElement[Any]:
        """created_at when present, otherwise the primary key."""
        fallback = self.descriptor.first_of((Columns.CREATED_AT, self.primary_key))
        if fallback is None:
            fallback = sorted(self.descriptor.columns)[0]
        return source.c[fallback]

    def _query_base(
        self,
        filters: Mapping[str, Any] | None = None,
        select: Sequence[str] | None = None,
        joins: Sequence[LookupSpec] | None = None,
        group_by: Sequence[str] | None = None,
        having: ColumnElement[bool] | None = None,
        operation: str = "find_all",
    ) -> tuple[QueryBase, Namespace, FromClause]:
        source = self._source(operation)
        from_clause, lookups = self._join_lookups(source, joins)
        namespace = self._namespace(source, lookups)

        compiled = FilterCompiler(
            namespace, table=self.table_name, dialect_name=self.dialect_name
        ).compile(filters, operation)

        grouping = []
        for name in group_by or ():
            col = namespace.get(name)
            if col is None:
                raise SchemaCapabilityError(self.table_name, operation, name)
            grouping.append(col)

        pk = source.c[self.primary_key] if self.has_column(self.primary_key) else None
        base = QueryBase(
            from_clause=from_clause,
            columns=self._columns(source, namespace, select, lookups, operation),
            where=[self.not_deleted_clause(source), *compiled.clauses],
            group_by=grouping,
            having=having,
            count_key=pk,
            joined=bool(lookups),
        )
        return base, namespace, source

    def paginate(
        self,
        base: QueryBase,
        request: PageRequest,
        namespace: Mapping[str, ColumnElement[Any]],
        fallback: ColumnElement[Any],
        operation: str = "find_all",
    ) -> PageResult:
        """Run the paired data/COUNT statements of one page."""
        plan = build_page(base, request, namespace, fallback, table=self.table_name)
        with self._guard(operation, page=request.page, limit=request.limit):
            rows = self._rows(self._db.execute(plan.data))
            total = self._db.execute(plan.count).scalar_one()

        logger.debug(
            "Page fetched",
            table=self.table_name,
            page=request.page,
            rows=len(rows),
            total=total,
        )
        return PageResult(data=rows, pagination=PaginationMeta.build(request, total))

    @staticmethod
    def _rows(result: Result[Any]) -> list[Row]:
        return [dict(row) for row in result.mappings()]

    @contextmanager
    def _guard(self, operation: str, **context: Any) -> Generator[None, None, None]:
        """
        Log driver failures with table/operation context and re-raise unchanged.

        The session is rolled back first so a failed statement does not leave
        its transaction aborted for later calls.
        """
        try:
            yield
        except SQLAlchemyError:
            self._db.rollback()
            logger.error(
                "Database operation failed",
                table=self.table_name,
                operation=operation,
                exc_info=True,
                **context,
            )
            raise

    # =========================================================================
    # Reads
    # =========================================================================

    def find_all(
        self,
        page: int = 1,
        limit: int | None = None,
        order_by: str | None = None,
        order_direction: OrderDirection | str | None = OrderDirection.DESC,
        filters: Mapping[str, Any] | None = None,
        select: Sequence[str] | None = None,
        joins: Sequence[LookupSpec] | None = None,
        group_by: Sequence[str] | None = None,
        having: ColumnElement[bool] | None = None,
    ) -> PageResult:
        """
        One page of visible rows plus pagination metadata.

        Args:
            page: 1-indexed page (coerced to >= 1)
            limit: Page size (clamped to [1, max]); None uses the configured default
            order_by: Column name, optionally alias-qualified; unknown names
                fall back to created_at DESC
            order_direction: ASC or DESC
            filters: {column: value}; blank values are ignored
            select: Names to select instead of every column
            joins: Lookups to LEFT JOIN
            group_by: Names to group by
            having: HAVING predicate built from this repository's columns

        Raises:
            SchemaCapabilityError: A filter/select/group_by name is not a live column
            DatabaseError: Driver failure
        """
        request = PageRequest(
            page=page, limit=limit, order_by=order_by, order_direction=order_direction
        )
        base, namespace, source = self._query_base(
            filters, select, joins, group_by, having, operation="find_all"
        )
        # Grouped rows can only be ordered by something they are grouped on
        fallback = base.group_by[0] if base.group_by else self._fallback_order(source)
        return self.paginate(base, request, namespace, fallback)

    def find_by_id(
        self,
        entity_id: Any,
        select: Sequence[str] | None = None,
        joins: Sequence[LookupSpec] | None = None,
    ) -> Row | None:
        """
        Find a visible row by primary key.

        Returns:
            Row dict or None when missing or soft-deleted
        """
        self._require(self.primary_key, "find_by_id")
        base, _, source = self._query_base(
            select=select, joins=joins, operation="find_by_id"
        )
        stmt = base.select().where(source.c[self.primary_key] == entity_id).limit(1)

        with self._guard("find_by_id", id=entity_id):
            rows = self._rows(self._db.execute(stmt))
        return rows[0] if rows else None

    def find_by(
        self,
        criteria: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        order_direction: OrderDirection | str | None = OrderDirection.DESC,
        select: Sequence[str] | None = None,
        joins: Sequence[LookupSpec] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """Visible rows matching `criteria`, ordered, without pagination metadata."""
        base, namespace, source = self._query_base(
            criteria, select, joins, operation="find_by"
        )
        ordering = resolve_order(
            namespace,
            order_by,
            OrderDirection.parse(order_direction),
            self._fallback_order(source),
            table=self.table_name,
        )
        stmt = base.select().order_by(ordering)
        if limit is not None and limit > 0:
            stmt = stmt.limit(limit)

        with self._guard("find_by"):
            return self._rows(self._db.execute(stmt))

    def find_one_by(self, criteria: Mapping[str, Any], **options: Any) -> Row | None:
        rows = self.find_by(criteria, limit=1, **options)
        return rows[0] if rows else None

    def count(self, criteria: Mapping[str, Any] | None = None) -> int:
        """Number of visible rows matching `criteria`."""
        base, _, _ = self._query_base(criteria, operation="count")
        with self._guard("count"):
            return self._db.execute(base.count()).scalar_one()

    def exists(self, criteria: Mapping[str, Any] | None = None) -> bool:
        return self.count(criteria) > 0

    def is_available(self, column: str, value: Any, exclude_id: Any = None) -> bool:
        """True when no visible row other than `exclude_id` holds `value` in `column`."""
        base, _, source = self._query_base({column: value}, operation="is_available")
        if exclude_id is not None:
            self._require(self.primary_key, "is_available")
            base.where.append(source.c[self.primary_key] != exclude_id)
        with self._guard("is_available", column=column):
            return self._db.execute(base.count()).scalar_one() == 0

    def find_with_relations(self, entity_id: Any, *relations: RelationSpec) -> Row | None:
        """
        Row by id plus one list per relation, keyed by `RelationSpec.key`.

        Each relation is aggregated by a correlated subquery, so related
        rows never multiply the base row. A relation absent from this
        schema yields an empty list.
        """
        self._require(self.primary_key, "find_with_relations")
        source = self._source("find_with_relations")

        resolved = [(spec, self.resolve_relation(spec)) for spec in relations]
        columns: list[ColumnElement[Any]] = list(source.c)
        for spec, relation in resolved:
            if relation is not None:
                items = relation_items(self.dialect_name, relation, source.c[self.primary_key])
                columns.append(items.label(spec.key))

        stmt = (
            sa.select(*columns)
            .select_from(source)
            .where(source.c[self.primary_key] == entity_id, self.not_deleted_clause(source))
            .limit(1)
        )
        with self._guard("find_with_relations", id=entity_id):
            rows = self._rows(self._db.execute(stmt))
        if not rows:
            return None

        row = rows[0]
        for spec, relation in resolved:
            row[spec.key] = decode_items(row.get(spec.key), relation) if relation else []
        return row

    def join_relation(
        self,
        from_clause: FromClause,
        source: FromClause,
        relation: RelationDescriptor,
        alias: str | None = None,
    ) -> tuple[FromClause, FromClause]:
        """LEFT JOIN a related table on its FK, hiding its soft-deleted rows."""
        related = relation.table.table_clause(alias=alias or f"rel_{relation.name}")
        on = sa.and_(
            related.c[relation.foreign_key_column] == source.c[self.primary_key],
            relation.not_deleted_clause(related),
        )
        return from_clause.outerjoin(related, on), related

    def find_all_with_counts(
        self,
        counts: Sequence[tuple[str, RelationSpec]],
        page: int = 1,
        limit: int | None = None,
        order_by: str | None = None,
        order_direction: OrderDirection | str | None = OrderDirection.DESC,
        filters: Mapping[str, Any] | None = None,
    ) -> PageResult:
        """
        find_all plus one `<label>` count of related rows per relation.

        Present relations are LEFT JOINed and grouped by the primary key;
        absent ones report 0. Count labels are valid order_by names but
        not filter names.
        """
        self._require(self.primary_key, "find_all_with_counts")
        request = PageRequest(
            page=page, limit=limit, order_by=order_by, order_direction=order_direction
        )
        source = self._source("find_all_with_counts")
        namespace = self._namespace(source)
        compiled = FilterCompiler(
            namespace, table=self.table_name, dialect_name=self.dialect_name
        ).compile(filters, "find_all_with_counts")

        from_clause: FromClause = source
        columns: list[ColumnElement[Any]] = list(source.c)
        joined = False
        for label, spec in counts:
            relation = self.resolve_relation(spec)
            if relation is None:
                columns.append(sa.literal(0).label(label))
                continue
            from_clause, related = self.join_relation(
                from_clause, source, relation, alias=f"rel_{label}"
            )
            total = sa.func.count(sa.distinct(related.c[relation.reference_column]))
            columns.append(total.label(label))
            namespace[label] = total
            joined = True

        base = QueryBase(
            from_clause=from_clause,
            columns=columns,
            where=[self.not_deleted_clause(source), *compiled.clauses],
            group_by=[source.c[self.primary_key]] if joined else (),
            count_key=source.c[self.primary_key],
            joined=joined,
        )
        return self.paginate(
            base, request, namespace, self._fallback_order(source), "find_all_with_counts"
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def _check_payload(self, data: Mapping[str, Any], operation: str) -> dict[str, Any]:
        if not data:
            raise ValueError(f"{operation} on '{self.table_name}' needs at least one column")
        for key in data:
            self._require(key, operation)
        return dict(data)

    def _stamp(self, values: dict[str, Any], *columns: str) -> dict[str, Any]:
        """Server-side now() for each timestamp column the table has."""
        for name in columns:
            if self.has_column(name):
                values[name] = sa.func.now()
        return values

    def _execute_write(self, stmt: Any, operation: str, **context: Any) -> Row | None:
        with self._guard(operation, **context):
            rows = self._rows(self._db.execute(stmt))
            safe_commit(self._db)
        return rows[0] if rows else None

    def create(self, data: Mapping[str, Any]) -> Row:
        """
        Insert a row and return it as stored.

        created_at/updated_at are stamped server-side when the table has
        them, overriding caller-supplied values.

        Raises:
            ValueError: Empty payload
            SchemaCapabilityError: A key is not a live column
            DatabaseError: Driver failure (e.g. unique violation)
        """
        values = self._check_payload(data, "create")
        self._stamp(values, *Columns.TIMESTAMPS)
        target = self._target("create")

        stmt = sa.insert(target).values(values).returning(*target.c)
        row = self._execute_write(stmt, "create")
        logger.info("Row created", table=self.table_name, id=row.get(self.primary_key) if row else None)
        return row or {}

    def update(self, entity_id: Any, data: Mapping[str, Any]) -> Row | None:
        """
        Update the supplied columns of a visible row.

        Returns:
            Updated row, or None when the row is missing or soft-deleted

        Raises:
            ValueError: Empty payload, or a payload carrying deleted_at
        """
        if Columns.DELETED_AT in data:
            raise ValueError("deleted_at is managed by soft_delete/restore, not update")
        values = self._check_payload(data, "update")
        self._require(self.primary_key, "update")
        self._stamp(values, Columns.UPDATED_AT)
        target = self._target("update")

        stmt = (
            sa.update(target)
            .where(target.c[self.primary_key] == entity_id, self.not_deleted_clause(target))
            .values(values)
            .returning(*target.c)
        )
        row = self._execute_write(stmt, "update", id=entity_id)
        if row is None:
            logger.debug("Update matched no visible row", table=self.table_name, id=entity_id)
        return row

    def soft_delete(self, entity_id: Any) -> Row | None:
        """
        Mark a visible row deleted.

        Idempotent: a second call matches nothing and returns None.

        Raises:
            SchemaCapabilityError: Table has no deleted_at
        """
        self.policy.require("soft_delete")
        self._require(self.primary_key, "soft_delete")
        target = self._target("soft_delete")

        values = self._stamp({}, Columns.DELETED_AT, Columns.UPDATED_AT)
        stmt = (
            sa.update(target)
            .where(
                target.c[self.primary_key] == entity_id,
                self.policy.not_deleted_clause(target),
            )
            .values(values)
            .returning(target.c[self.primary_key].label(Columns.ID))
        )
        return self._execute_write(stmt, "soft_delete", id=entity_id)

    def delete(self, entity_id: Any) -> Row | None:
        """
        Physically remove a visible row.

        A soft-deleted row is invisible here too: restore it first.
        """
        self._require(self.primary_key, "delete")
        target = self._target("delete")

        stmt = (
            sa.delete(target)
            .where(target.c[self.primary_key] == entity_id, self.not_deleted_clause(target))
            .returning(target.c[self.primary_key].label(Columns.ID))
        )
        row = self._execute_write(stmt, "delete", id=entity_id)
        if row is not None:
            logger.info("Row deleted", table=self.table_name, id=entity_id)
        return row

    def restore(self, entity_id: Any) -> Row | None:
        """
        Clear deleted_at on a soft-deleted row.

        Returns None when the row is missing or not deleted.

        Raises:
            SchemaCapabilityError: Table has no deleted_at
        """
        self._require(self.primary_key, "restore")
        target = self._target("restore")
        deleted = self.policy.deleted_clause(target, "restore")

        values = self._stamp({Columns.DELETED_AT: None}, Columns.UPDATED_AT)
        stmt = (
            sa.update(target)
            .where(
                target.c[self.primary_key] == entity_id,
                deleted,
            )
            .values(values)
            .returning(target.c[self.primary_key].label(Columns.ID))
        )
        return self._execute_write(stmt, "restore", id=entity_id)
