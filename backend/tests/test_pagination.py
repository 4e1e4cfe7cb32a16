"""
Tests for the pagination/ordering engine.
"""

import pytest
from hypothesis import given, settings, strategies as st
from sqlalchemy import func
from sqlalchemy.dialects import postgresql

from freight.query.pagination import (
    PageRequest,
    PageResult,
    PaginationMeta,
    QueryBase,
    build_page,
    resolve_order,
)
from freight.schema.descriptors import TableDescriptor
from shared.config.constants import OrderDirection
from tests.conftest import compile_pg

CLIENTES = TableDescriptor.of("clientes", ["id", "nome", "uf", "created_at", "deleted_at"])
ENDERECOS = TableDescriptor.of("enderecos_cliente", ["id", "cliente_id", "cidade"])


def bound_values(stmt) -> list:
    return list(stmt.compile(dialect=postgresql.dialect()).params.values())


@pytest.fixture
def source():
    return CLIENTES.table_clause(alias="c")


@pytest.fixture
def namespace(source):
    names = {name: source.c[name] for name in CLIENTES.columns}
    names.update({f"c.{name}": source.c[name] for name in CLIENTES.columns})
    return names


class TestPageRequest:
    """Tests for PageRequest validation."""

    @pytest.mark.parametrize("page", [0, -1, -100, "abc", None])
    def test_invalid_page_is_coerced_to_first(self, page):
        assert PageRequest(page=page).page == 1

    @pytest.mark.parametrize(
        "limit,expected",
        [(None, 20), (0, 1), (-5, 1), (1, 1), (50, 50), (100, 100), (101, 100), (10_000, 100)],
    )
    def test_limit_is_clamped(self, limit, expected):
        assert PageRequest(limit=limit).limit == expected

    def test_offset(self):
        assert PageRequest(page=1, limit=20).offset == 0
        assert PageRequest(page=3, limit=20).offset == 40

    @pytest.mark.parametrize(
        "direction,expected",
        [
            ("ASC", OrderDirection.ASC),
            ("asc", OrderDirection.ASC),
            ("DESC", OrderDirection.DESC),
            ("sideways", OrderDirection.DESC),
            ("ASC; DROP TABLE clientes", OrderDirection.DESC),
            (None, OrderDirection.DESC),
        ],
    )
    def test_direction_is_normalized(self, direction, expected):
        assert PageRequest(order_direction=direction).order_direction is expected


class TestPaginationMeta:
    """Tests for pagination metadata math."""

    def test_first_of_three_pages(self):
        meta = PaginationMeta.build(PageRequest(page=1, limit=20), total=45)

        assert meta.total_pages == 3
        assert meta.has_next is True
        assert meta.has_prev is False

    def test_last_of_three_pages(self):
        meta = PaginationMeta.build(PageRequest(page=3, limit=20), total=45)

        assert meta.total_pages == 3
        assert meta.has_next is False
        assert meta.has_prev is True

    def test_empty_result(self):
        meta = PaginationMeta.build(PageRequest(), total=0)

        assert meta.total_pages == 0
        assert meta.has_next is False

    def test_result_serializes_with_camel_case(self):
        meta = PaginationMeta.build(PageRequest(page=2, limit=10), total=25)
        result = PageResult(data=[{"id": 1}], pagination=meta).to_dict()

        assert result == {
            "data": [{"id": 1}],
            "pagination": {
                "page": 2,
                "limit": 10,
                "total": 25,
                "totalPages": 3,
                "hasNext": True,
                "hasPrev": True,
            },
        }

    @given(
        page=st.integers(min_value=1, max_value=1000),
        limit=st.integers(min_value=1, max_value=100),
        total=st.integers(min_value=0, max_value=100_000),
    )
    @settings(max_examples=200)
    def test_metadata_is_consistent(self, page, limit, total):
        meta = PaginationMeta.build(PageRequest(page=page, limit=limit), total)

        assert meta.total_pages * limit >= total
        assert (meta.total_pages - 1) * limit < total or total == 0
        assert meta.has_next == (page < meta.total_pages)
        assert meta.has_prev == (page > 1)


class TestResolveOrder:
    """ORDER BY is only ever taken from the whitelist."""

    @pytest.mark.parametrize(
        "order_by,direction,expected",
        [
            ("nome", OrderDirection.ASC, "ORDER BY c.nome ASC"),
            ("c.uf", OrderDirection.DESC, "ORDER BY c.uf DESC"),
            ("  nome ", OrderDirection.ASC, "ORDER BY c.nome ASC"),
            ("bogus", OrderDirection.ASC, "ORDER BY c.created_at DESC"),
            ("id; DROP TABLE x", OrderDirection.ASC, "ORDER BY c.created_at DESC"),
            ("nome DESC, (SELECT 1)", OrderDirection.ASC, "ORDER BY c.created_at DESC"),
            (None, OrderDirection.ASC, "ORDER BY c.created_at DESC"),
        ],
    )
    def test_whitelist(self, source, namespace, order_by, direction, expected):
        ordering = resolve_order(namespace, order_by, direction, source.c.created_at)
        base = QueryBase(from_clause=source, columns=[source.c.id])

        sql = compile_pg(base.select().order_by(ordering))

        assert expected in sql
        assert "DROP" not in sql

    @given(order_by=st.text(max_size=40))
    @settings(max_examples=100)
    def test_never_raises(self, order_by):
        source = CLIENTES.table_clause(alias="c")
        namespace = {name: source.c[name] for name in CLIENTES.columns}

        ordering = resolve_order(namespace, order_by, OrderDirection.ASC, source.c.created_at)

        assert ordering is not None


class TestBuildPage:
    """Tests for the paired data/COUNT statements."""

    def test_plain_count(self, source, namespace):
        base = QueryBase(
            from_clause=source,
            columns=list(source.c),
            where=[source.c.deleted_at.is_(None), source.c.uf == "SP"],
            count_key=source.c.id,
        )

        plan = build_page(base, PageRequest(page=2, limit=10), namespace, source.c.created_at)
        data_sql = compile_pg(plan.data)
        count_sql = compile_pg(plan.count)

        assert "LIMIT" in data_sql and "OFFSET" in data_sql
        assert "count(*)" in count_sql
        assert "LIMIT" not in count_sql
        assert "ORDER BY" not in count_sql
        # Same predicate on both sides
        assert data_sql.split("WHERE")[1].split("ORDER BY")[0].strip() == count_sql.split("WHERE")[1].strip()
        assert bound_values(plan.data) == ["SP", 10, 10]
        assert bound_values(plan.count) == ["SP"]

    def test_joined_count_is_distinct(self, source, namespace):
        enderecos = ENDERECOS.table_clause(alias="ec")
        joined = source.outerjoin(enderecos, enderecos.c.cliente_id == source.c.id)
        base = QueryBase(
            from_clause=joined,
            columns=[source.c.id, enderecos.c.cidade],
            where=[source.c.deleted_at.is_(None)],
            count_key=source.c.id,
            joined=True,
        )

        count_sql = compile_pg(build_page(base, PageRequest(), namespace, source.c.created_at).count)

        assert "count(DISTINCT c.id)" in count_sql
        assert "LEFT OUTER JOIN enderecos_cliente AS ec" in count_sql

    def test_grouped_count_counts_groups(self, source, namespace):
        enderecos = ENDERECOS.table_clause(alias="ec")
        base = QueryBase(
            from_clause=source.outerjoin(enderecos, enderecos.c.cliente_id == source.c.id),
            columns=[source.c.id, func.count(enderecos.c.id).label("total_enderecos")],
            where=[source.c.deleted_at.is_(None)],
            group_by=[source.c.id],
            count_key=source.c.id,
            joined=True,
        )

        count_sql = compile_pg(build_page(base, PageRequest(), namespace, source.c.created_at).count)

        assert count_sql.startswith("SELECT count(*)")
        assert "FROM (SELECT" in count_sql
        assert "GROUP BY c.id) AS sub" in count_sql
        assert "LIMIT" not in count_sql

    def test_bound_values_carry_filters_then_paging(self, source, namespace):
        base = QueryBase(from_clause=source, columns=[source.c.id], where=[source.c.uf == "SP"])

        plan = build_page(base, PageRequest(page=3, limit=5), namespace, source.c.created_at)

        assert bound_values(plan.data) == ["SP", 5, 10]
