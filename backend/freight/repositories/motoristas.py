"""
Motoristas repository.
"""

from typing import Any

from freight.repositories.base import BaseRepository, Row
from shared.config.constants import Limits, OrderDirection


class MotoristasRepository(BaseRepository):
    table_name = "motoristas"
    alias = "m"

    def find_by_cpf(self, cpf: str) -> Row | None:
        return self.find_one_by({"cpf": cpf})

    def find_by_email(self, email: str) -> Row | None:
        return self.find_one_by({"email": email.strip().lower()})

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

    def is_cpf_available(self, cpf: str, exclude_id: Any = None) -> bool:
        return self.is_available("cpf", cpf, exclude_id)

    def is_email_available(self, email: str, exclude_id: Any = None) -> bool:
        return self.is_available("email", email.strip().lower(), exclude_id)

