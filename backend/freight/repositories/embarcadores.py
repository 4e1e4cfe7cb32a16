"""
Embarcadores repository.
"""

from typing import Any

from freight.repositories.base import BaseRepository, Row
from freight.schema.relations import RelationSpec
from shared.config.constants import Limits, OrderDirection


DEPOSITOS = RelationSpec(
    key="depositos",
    tables=("deposito", "depositos"),
    foreign_keys=("embarcador_id",),
    fields=(
        ("id", ("id",)),
        ("nome", ("nome",)),
        ("latitude", ("latitude", "lat")),
        ("longitude", ("longitude", "lng", "lon")),
        ("endereco_completo", ("endereco_completo", "endereco")),
        ("restricao_logistica_id", ("restricao_logistica_id",)),
    ),
)


class EmbarcadoresRepository(BaseRepository):
    table_name = "embarcadores"
    alias = "e"

    def find_by_documento(self, documento: str) -> Row | None:
        return self.find_one_by({"documento": documento})

    def search_by_name(self, term: str, limit: int = Limits.DEFAULT_SEARCH_LIMIT) -> list[Row]:
        term = (term or "").strip()[: Limits.MAX_SEARCH_TERM_LENGTH]
        if not term:
            return []
        return self.find_by(
            {"nome": f"%{term}%"},
            order_by="nome",
            order_direction=OrderDirection.ASC,
            limit=limit,
        )

    def is_documento_available(self, documento: str, exclude_id: Any = None) -> bool:
        return self.is_available("documento", documento, exclude_id)

    def find_with_depositos(self, embarcador_id: Any) -> Row | None:
        """Embarcador plus its depositos, ordered by id."""
        return self.find_with_relations(embarcador_id, DEPOSITOS)
