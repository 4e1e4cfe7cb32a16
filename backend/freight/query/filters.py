"""
Dynamic WHERE/Filter Compiler.

Turns a code-defined `{column: value}` map into parameterized WHERE clauses:

    {"uf": "SP"}              -> clientes.uf = :p1
    {"nome": "%silva%"}       -> clientes.nome ILIKE :p1
    {"id": [1, 2, 3]}         -> clientes.id = ANY (:p1)      (PostgreSQL)
                                 clientes.id IN (:p1)         (other dialects)

Keys are resolved against a namespace of column objects built from the live
schema; an unknown key raises SchemaCapabilityError instead of reaching SQL.
Values are always bound parameters, never part of the statement text.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement, any_, bindparam

from shared.config.constants import WILDCARD
from shared.utils.exceptions import SchemaCapabilityError

ARRAY_TYPES = (list, tuple, set, frozenset)


class FilterOperator(str, Enum):
    EQ = "eq"
    ILIKE = "ilike"
    ANY_OF = "any_of"


@dataclass(frozen=True)
class FilterCondition:
    column: str
    operator: FilterOperator
    value: Any


@dataclass
class CompiledFilters:
    """Conditions and their clauses, in filter-map insertion order."""

    conditions: list[FilterCondition] = field(default_factory=list)
    clauses: list[ColumnElement[bool]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.clauses)


def is_blank(value: Any) -> bool:
    """None and empty string mean "no filter", not "match empty"."""
    return value is None or (isinstance(value, str) and value == "")


def classify(column: str, value: Any) -> FilterCondition:
    if isinstance(value, ARRAY_TYPES):
        return FilterCondition(column, FilterOperator.ANY_OF, list(value))
    if isinstance(value, str) and WILDCARD in value:
        return FilterCondition(column, FilterOperator.ILIKE, value)
    return FilterCondition(column, FilterOperator.EQ, value)


def parse_filters(filters: Mapping[str, Any] | None) -> list[FilterCondition]:
    """Ordered filter spec, skipping blank values."""
    if not filters:
        return []
    return [classify(key, value) for key, value in filters.items() if not is_blank(value)]


class FilterCompiler:
    """
    Compiles filter maps for one table.

    Args:
        namespace: Allowed filter names -> column expressions
        table: Table name, used in error messages
        dialect_name: Decides how array values are matched
    """

    def __init__(
        self,
        namespace: Mapping[str, ColumnElement[Any]],
        *,
        table: str,
        dialect_name: str,
    ):
        self._namespace = namespace
        self._table = table
        self._dialect_name = dialect_name

    def column(self, name: str, operation: str = "filter") -> ColumnElement[Any]:
        try:
            return self._namespace[name]
        except KeyError:
            raise SchemaCapabilityError(self._table, operation, name) from None

    def compile(
        self, filters: Mapping[str, Any] | None, operation: str = "filter"
    ) -> CompiledFilters:
        compiled = CompiledFilters()
        for condition in parse_filters(filters):
            col = self.column(condition.column, operation)
            position = len(compiled.clauses) + 1
            param = bindparam(f"p{position}", condition.value, unique=True)

            if condition.operator is FilterOperator.ANY_OF:
                if self._dialect_name == "postgresql":
                    clause = col == any_(param)
                else:
                    clause = col.in_(condition.value)
            elif condition.operator is FilterOperator.ILIKE:
                clause = col.ilike(param)
            else:
                clause = col == param

            compiled.conditions.append(condition)
            compiled.clauses.append(clause)
        return compiled
