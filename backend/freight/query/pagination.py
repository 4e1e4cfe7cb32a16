"""
Pagination/Ordering Engine.

Builds the paired data/COUNT statements for one page:

- ORDER BY only ever uses a column object from the whitelist namespace;
  anything else falls back to `created_at DESC` (primary key when the table
  has no created_at). It never raises and never interpolates the input.
- LIMIT is clamped to [1, max]; page < 1 is coerced to 1.
- The COUNT statement shares the exact FROM/JOIN/WHERE of the data
  statement. Grouped queries are counted as groups through a subquery;
  joined queries count DISTINCT primary keys so fan-out does not inflate
  the total.

The two statements are not snapshot-consistent with each other: a
concurrent insert between them can make `total` off by one for that page.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import ColumnElement, FromClause, Select, distinct, func, select

from shared.config.constants import Limits, OrderDirection
from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class PageRequest:
    """
    Page parameters with validation.

    Attributes:
        page: 1-indexed page number (values < 1 become 1)
        limit: Items per page, clamped to [1, max_limit]; None uses default_limit
        order_by: Requested column name, validated later against the live schema
        order_direction: ASC or DESC (anything else is DESC)
    """

    page: int = Limits.FIRST_PAGE
    limit: int | None = None
    order_by: str | None = None
    order_direction: OrderDirection | str | None = OrderDirection.DESC
    max_limit: int = field(default_factory=lambda: settings.pagination_max_limit)
    default_limit: int = field(default_factory=lambda: settings.pagination_default_limit)

    def __post_init__(self):
        """Validate and normalize values."""
        self.page = max(Limits.FIRST_PAGE, _coerce_int(self.page, Limits.FIRST_PAGE))
        if self.limit is None:
            requested = self.default_limit
        else:
            requested = _coerce_int(self.limit, self.default_limit)
        self.limit = min(max(1, requested), self.max_limit)
        self.order_direction = OrderDirection.parse(self.order_direction)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginationMeta(BaseModel):
    """Pagination block of a PageResult, serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, request: PageRequest, total: int) -> PaginationMeta:
        return cls(
            page=request.page,
            limit=request.limit,
            total=total,
            total_pages=math.ceil(total / request.limit) if request.limit else 0,
            has_next=request.page * request.limit < total,
            has_prev=request.page > 1,
        )


class PageResult(BaseModel):
    """One page of rows plus pagination metadata."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[dict[str, Any]]
    pagination: PaginationMeta

    def to_dict(self) -> dict[str, Any]:
        """Response-shaped dictionary: {"data": [...], "pagination": {...}}."""
        return self.model_dump(by_alias=True)


@dataclass
class QueryBase:
    """
    FROM/WHERE skeleton shared by the data and COUNT statements.

    Attributes:
        from_clause: Base table, possibly with joins applied
        columns: Selected columns/expressions
        where: Predicates ANDed together (soft-delete + filters + extras)
        group_by: GROUP BY expressions
        having: HAVING predicate
        count_key: Primary key used for COUNT(DISTINCT ...) when joined
        joined: True when joins may fan out rows
    """

    from_clause: FromClause
    columns: Sequence[Any]
    where: list[ColumnElement[bool]] = field(default_factory=list)
    group_by: Sequence[ColumnElement[Any]] = ()
    having: ColumnElement[bool] | None = None
    count_key: ColumnElement[Any] | None = None
    joined: bool = False

    def select(self) -> Select:
        stmt = select(*self.columns).select_from(self.from_clause)
        if self.where:
            stmt = stmt.where(*self.where)
        if self.group_by:
            stmt = stmt.group_by(*self.group_by)
        if self.having is not None:
            stmt = stmt.having(self.having)
        return stmt

    def count(self) -> Select:
        if self.group_by:
            return select(func.count()).select_from(self.select().subquery("sub"))

        if self.joined and self.count_key is not None:
            stmt = select(func.count(distinct(self.count_key)))
        else:
            stmt = select(func.count())
        stmt = stmt.select_from(self.from_clause)
        if self.where:
            stmt = stmt.where(*self.where)
        return stmt


@dataclass
class QueryPlan:
    """Paired statements for one page."""

    data: Select
    count: Select


def resolve_order(
    namespace: Mapping[str, ColumnElement[Any]],
    order_by: str | None,
    direction: OrderDirection,
    fallback: ColumnElement[Any],
    *,
    table: str = "",
) -> ColumnElement[Any]:
    """
    Whitelisted ORDER BY expression.

    A name outside the namespace is replaced by `fallback DESC`.
    """
    if order_by is not None:
        col = namespace.get(str(order_by).strip())
        if col is not None:
            return col.asc() if direction is OrderDirection.ASC else col.desc()
        logger.warning("Rejected order_by, using fallback", table=table, order_by=order_by)
    return fallback.desc()


def build_page(
    base: QueryBase,
    request: PageRequest,
    namespace: Mapping[str, ColumnElement[Any]],
    fallback: ColumnElement[Any],
    *,
    table: str = "",
) -> QueryPlan:
    ordering = resolve_order(
        namespace, request.order_by, request.order_direction, fallback, table=table
    )
    data = base.select().order_by(ordering).limit(request.limit).offset(request.offset)
    return QueryPlan(data=data, count=base.count())
