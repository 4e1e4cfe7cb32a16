"""
Endereco de entrega repository.
"""

import re
from typing import Any

from freight.repositories.base import BaseRepository, Row
from shared.config.constants import OrderDirection


def normalize_cep(cep: str) -> str:
    """Digits only: "01310-100" -> "01310100"."""
    return re.sub(r"\D", "", cep or "")


class EnderecoEntregaRepository(BaseRepository):
    table_name = "endereco_entrega"
    alias = "ee"

    def find_by_cliente(self, cliente_id: Any) -> list[Row]:
        return self.find_by({"cliente_id": cliente_id}, order_by="id", order_direction=OrderDirection.ASC)

    def find_by_cliente_and_cep(self, cliente_id: Any, cep: str) -> Row | None:
        return self.find_one_by({"cliente_id": cliente_id, "cep": normalize_cep(cep)})

    def find_by_cep(self, cep: str) -> list[Row]:
        return self.find_by({"cep": normalize_cep(cep)})

    def find_by_cidade_uf(self, cidade: str, uf: str) -> list[Row]:
        return self.find_by({"cidade": f"%{cidade.strip()}%", "uf": uf.upper()})
