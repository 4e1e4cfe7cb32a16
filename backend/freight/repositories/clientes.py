"""
Clientes repository.

Addresses live in different tables across installs, so they are declared
as a candidate relation and resolved against the live schema.
"""

from typing import Any

import sqlalchemy as sa

from freight.query.pagination import PageResult
from freight.repositories.base import BaseRepository, Row
from freight.schema.relations import RelationSpec
from shared.config.constants import Limits, OrderDirection


ENDERECOS = RelationSpec(
    key="enderecos",
    tables=("enderecos_cliente", "endereco_entrega", "enderecos", "clientes_enderecos"),
    foreign_keys=("cliente_id", "id_cliente"),
    fields=(
        ("id", ("id",)),
        ("apelido", ("apelido", "alias", "nome")),
        ("logradouro", ("logradouro", "rua", "endereco", "endereco_logradouro")),
        ("numero", ("numero", "num")),
        ("bairro", ("bairro", "district")),
        ("cidade", ("cidade", "municipio")),
        ("uf", ("uf", "estado")),
        ("cep", ("cep", "codigo_postal")),
        ("complemento", ("complemento", "compl")),
        ("principal", ("principal", "is_principal", "padrao")),
        ("latitude", ("latitude", "lat")),
        ("longitude", ("longitude", "lng", "long", "lon")),
    ),
    order_candidates=("principal", "is_principal", "padrao"),
)

NOTAS = RelationSpec(
    key="notas",
    tables=("notas_fiscais",),
    foreign_keys=("cliente_id", "id_cliente"),
    fields=(
        ("id", ("id",)),
        ("nro", ("nro", "numero")),
        ("chave_nf", ("chave_nf",)),
        ("valor", ("valor", "valor_total")),
        ("data_emissao", ("data_emissao", "emissao")),
        ("status", ("status",)),
    ),
)

SEARCH_COLUMNS = ("id", "nome", "documento", "cidade", "uf")


class ClientesRepository(BaseRepository):
    table_name = "clientes"
    alias = "c"

    def find_by_documento(self, documento: str) -> Row | None:
        return self.find_one_by({"documento": documento})

    def find_by_codigo(self, cod_cliente: str) -> Row | None:
        return self.find_one_by({"cod_cliente": cod_cliente})

    def search_by_name(self, term: str, limit: int = Limits.DEFAULT_SEARCH_LIMIT) -> list[Row]:
        """Autocomplete by name: case-insensitive substring match."""
        term = (term or "").strip()[: Limits.MAX_SEARCH_TERM_LENGTH]
        if not term:
            return []
        return self.find_by(
            {"nome": f"%{term}%"},
            order_by="nome",
            order_direction=OrderDirection.ASC,
            select=[name for name in SEARCH_COLUMNS if self.has_column(name)],
            limit=limit,
        )

    def find_by_uf(self, uf: str) -> list[Row]:
        return self.find_by({"uf": uf.upper()}, order_by="nome", order_direction=OrderDirection.ASC)

    def find_by_cidade(self, cidade: str) -> list[Row]:
        return self.find_by(
            {"cidade": f"%{cidade.strip()}%"},
            order_by="nome",
            order_direction=OrderDirection.ASC,
        )

    def is_documento_available(self, documento: str, exclude_id: Any = None) -> bool:
        return self.is_available("documento", documento, exclude_id)

    def is_cod_cliente_available(self, cod_cliente: str, exclude_id: Any = None) -> bool:
        return self.is_available("cod_cliente", cod_cliente, exclude_id)

    def find_with_enderecos(self, cliente_id: Any) -> Row | None:
        return self.find_with_relations(cliente_id, ENDERECOS)

    def find_with_notas(self, cliente_id: Any) -> Row | None:
        return self.find_with_relations(cliente_id, NOTAS)

    def find_all_with_stats(self, **options: Any) -> PageResult:
        """find_all plus `total_enderecos` (0 when no address table exists)."""
        return self.find_all_with_counts((("total_enderecos", ENDERECOS),), **options)

    def get_stats(self) -> dict[str, int]:
        source = self._source("get_stats")
        columns = [sa.func.count().label("total")]
        if self.has_column("cidade"):
            columns.append(sa.func.count(sa.distinct(source.c.cidade)).label("total_cidades"))
        if self.has_column("uf"):
            columns.append(sa.func.count(sa.distinct(source.c.uf)).label("total_ufs"))

        stmt = sa.select(*columns).select_from(source).where(self.not_deleted_clause(source))
        with self._guard("get_stats"):
            row = self._db.execute(stmt).mappings().one()
        return {key: int(value or 0) for key, value in row.items()}
