"""
Transportadoras repository.
"""

from typing import Any

from freight.query.pagination import PageResult
from freight.repositories.base import BaseRepository, Row
from freight.schema.relations import RelationSpec
from shared.config.constants import Limits, OrderDirection


NOTAS = RelationSpec(
    key="notas",
    tables=("notas_fiscais",),
    foreign_keys=("transportadora_id",),
)

ROMANEIOS = RelationSpec(
    key="romaneios",
    tables=("romaneios",),
    foreign_keys=("transportadora_id",),
)

SEARCH_COLUMNS = ("id", "nome", "cnpj", "uf")


class TransportadorasRepository(BaseRepository):
    table_name = "transportadoras"
    alias = "t"

    def find_by_cnpj(self, cnpj: str) -> Row | None:
        return self.find_one_by({"cnpj": cnpj})

    def search_by_name(self, term: str, limit: int = Limits.DEFAULT_SEARCH_LIMIT) -> list[Row]:
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

    def is_cnpj_available(self, cnpj: str, exclude_id: Any = None) -> bool:
        return self.is_available("cnpj", cnpj, exclude_id)

    def find_all_with_stats(self, **options: Any) -> PageResult:
        """
        find_all plus `total_notas` and `total_romaneios`.

        Each related table hides its own soft-deleted rows; a missing table
        counts as 0.
        """
        return self.find_all_with_counts(
            (("total_notas", NOTAS), ("total_romaneios", ROMANEIOS)), **options
        )
