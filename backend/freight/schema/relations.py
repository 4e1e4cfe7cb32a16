"""
Related-Table Schema Resolver.

Deployments disagree on where related rows live (`enderecos_cliente` on one
install, `endereco_entrega` on another) and on how the foreign key is named
(`cliente_id` vs `id_cliente`). Relations are therefore declared as ordered
candidate lists and resolved once against the live catalog:

    ENDERECOS = RelationSpec(
        key="enderecos",
        tables=("enderecos_cliente", "endereco_entrega"),
        foreign_keys=("cliente_id", "id_cliente"),
        fields=(("cidade", ("cidade", "municipio")),),
    )
    descriptor = ENDERECOS.resolve(catalog)   # RelationDescriptor | None

First match wins. A None result means the relation is absent in this
deployment and dependent queries must degrade to an empty collection.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import ColumnElement, FromClause, Text, cast, func, literal, select

from freight.schema.catalog import SchemaCatalog
from freight.schema.descriptors import RelationDescriptor, TableDescriptor
from shared.config.constants import Columns
from shared.config.logging import schema_logger as logger

# Output key -> physical column candidates, in priority order
FieldMapping = tuple[str, tuple[str, ...]]

# Output key used when none of a relation's fields exist
REFERENCE_KEY = "ref"


def resolve_fields(
    descriptor: TableDescriptor, mappings: Iterable[FieldMapping]
) -> tuple[tuple[str, str], ...]:
    """
    Map each output key to the first candidate column present.

    Keys whose candidates are all missing are omitted rather than failing.
    """
    resolved = []
    for key, candidates in mappings:
        physical = descriptor.first_of(candidates)
        if physical is not None:
            resolved.append((key, physical))
    return tuple(resolved)


def resolve_relation(
    catalog: SchemaCatalog,
    candidate_tables: Sequence[str],
    candidate_fks: Sequence[str],
    fields: Iterable[FieldMapping] = (),
    order_candidates: Sequence[str] = (),
) -> RelationDescriptor | None:
    """
    Priority search for the first (table, fk) pair present in the live schema.

    Tables are tried in order; within an existing table, foreign keys are
    tried in order. Returns None when nothing matches.
    """
    for table_name in candidate_tables:
        descriptor = catalog.describe(table_name)
        if not descriptor.exists:
            continue

        fk = descriptor.first_of(candidate_fks)
        if fk is None:
            continue

        order_column = descriptor.first_of(order_candidates)
        relation = RelationDescriptor(
            table=descriptor,
            foreign_key_column=fk,
            fields=resolve_fields(descriptor, fields),
            order_columns=(order_column,) if order_column else (),
        )
        logger.debug(
            "Relation resolved",
            table=table_name,
            foreign_key=fk,
            soft_delete=relation.soft_delete_clause,
        )
        return relation

    logger.debug(
        "Relation absent in this schema",
        candidates=list(candidate_tables),
        foreign_keys=list(candidate_fks),
    )
    return None


@dataclass(frozen=True)
class RelationSpec:
    """
    Declarative one-to-many relation: the owning row's id is referenced
    by a foreign key column in the related table.

    Attributes:
        key: Output key of the aggregated JSON array
        tables: Candidate related tables, highest priority first
        foreign_keys: Candidate FK column names, highest priority first
        fields: Output key -> candidate physical columns for each JSON item
        order_candidates: Candidate "primary/default" flag columns;
            items with a truthy flag sort first
    """

    key: str
    tables: tuple[str, ...]
    foreign_keys: tuple[str, ...]
    fields: tuple[FieldMapping, ...] = ()
    order_candidates: tuple[str, ...] = ()

    def resolve(self, catalog: SchemaCatalog) -> RelationDescriptor | None:
        return resolve_relation(
            catalog,
            self.tables,
            self.foreign_keys,
            fields=self.fields,
            order_candidates=self.order_candidates,
        )


@dataclass(frozen=True)
class LookupSpec:
    """
    Declarative many-to-one lookup: the base row holds the foreign key.

    Joined with LEFT JOIN only when the target table and both key columns
    exist. Each field is emitted as `<prefix>_<key>` when its column exists.
    """

    table: str
    alias: str
    local_key: str
    prefix: str
    fields: tuple[FieldMapping, ...] = ()
    remote_key: str = Columns.ID


@dataclass(frozen=True)
class LookupDescriptor:
    """Live shape of a LookupSpec."""

    spec: LookupSpec
    table: TableDescriptor
    fields: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def labelled_columns(self, target: FromClause) -> list[ColumnElement[Any]]:
        return [
            target.c[physical].label(f"{self.spec.prefix}_{key}")
            for key, physical in self.fields
        ]


def resolve_lookup(
    catalog: SchemaCatalog, base: TableDescriptor, spec: LookupSpec
) -> LookupDescriptor | None:
    """Lookup descriptor, or None when the join cannot be proven valid."""
    if not base.has(spec.local_key):
        return None

    target = catalog.describe(spec.table)
    if not target.has(spec.remote_key):
        return None

    return LookupDescriptor(
        spec=spec, table=target, fields=resolve_fields(target, spec.fields)
    )


# =============================================================================
# JSON aggregation
# =============================================================================


def _json_functions(dialect_name: str) -> tuple[Any, Any]:
    """(object builder, array aggregate) for the dialect."""
    if dialect_name == "postgresql":
        return func.json_build_object, func.json_agg
    return func.json_object, func.json_group_array


def json_object(
    dialect_name: str, pairs: Iterable[tuple[str, ColumnElement[Any]]]
) -> ColumnElement[Any]:
    """
    JSON object from (key, column) pairs.

    Keys are bound values cast to text; only the columns are identifiers.
    """
    build_object, _ = _json_functions(dialect_name)
    args: list[ColumnElement[Any]] = []
    for key, col in pairs:
        args.append(cast(literal(key), Text))
        args.append(col)
    return build_object(*args)


def relation_items(
    dialect_name: str,
    relation: RelationDescriptor,
    owner_id: ColumnElement[Any],
) -> ColumnElement[Any]:
    """
    Correlated scalar subquery aggregating the related rows of `owner_id`.

    The subquery honours the related table's own soft-delete column and
    yields NULL (PostgreSQL) or an empty array (SQLite) when no row matches.
    """
    _, aggregate = _json_functions(dialect_name)
    related = relation.table.table_clause(alias=f"rel_{relation.name}")

    pairs = [(key, related.c[physical]) for key, physical in relation.fields]
    if not pairs:
        pairs = [(REFERENCE_KEY, related.c[relation.reference_column])]
    for physical in relation.order_columns:
        if physical not in {p for _, p in relation.fields}:
            pairs.append((physical, related.c[physical]))

    return (
        select(aggregate(json_object(dialect_name, pairs)))
        .select_from(related)
        .where(
            related.c[relation.foreign_key_column] == owner_id,
            relation.not_deleted_clause(related),
        )
        .scalar_subquery()
    )


def decode_items(value: Any, relation: RelationDescriptor | None = None) -> list[dict[str, Any]]:
    """
    Normalise an aggregated value into a list of dicts.

    PostgreSQL drivers hand back decoded JSON; SQLite hands back text.
    Items are ordered primary-flag first, then by reference column.
    """
    if value is None:
        return []
    items = json.loads(value) if isinstance(value, (str, bytes)) else list(value)

    if relation is None:
        return items

    output_keys = dict((physical, key) for key, physical in relation.fields)
    ref_key = output_keys.get(relation.reference_column, REFERENCE_KEY)
    flag_keys = [output_keys.get(col, col) for col in relation.order_columns]

    def sort_key(item: dict[str, Any]) -> tuple[Any, ...]:
        flags = tuple(not item.get(flag) for flag in flag_keys)
        ref = item.get(ref_key)
        return flags + ((ref is None, ref if ref is not None else 0),)

    return sorted(items, key=sort_key)
