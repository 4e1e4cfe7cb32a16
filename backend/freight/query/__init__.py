"""
Query construction: filter compilation and pagination.
"""

from freight.query.filters import (
    CompiledFilters,
    FilterCompiler,
    FilterCondition,
    FilterOperator,
    parse_filters,
)
from freight.query.pagination import (
    PageRequest,
    PageResult,
    PaginationMeta,
    QueryBase,
    QueryPlan,
    build_page,
    resolve_order,
)

__all__ = [
    "CompiledFilters",
    "FilterCompiler",
    "FilterCondition",
    "FilterOperator",
    "parse_filters",
    "PageRequest",
    "PageResult",
    "PaginationMeta",
    "QueryBase",
    "QueryPlan",
    "build_page",
    "resolve_order",
]
