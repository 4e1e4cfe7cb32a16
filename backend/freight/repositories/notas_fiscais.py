"""
Notas fiscais repository.

A nota references its cliente, embarcador, transportadora and delivery
address; each is a LookupSpec joined only when the live schema has it.
"""

from typing import Any

from sqlalchemy import FromClause

from freight.query.pagination import PageResult
from freight.repositories.base import BaseRepository, Namespace, Row
from freight.schema.relations import LookupSpec, RelationSpec


CLIENTE = LookupSpec(
    table="clientes",
    alias="c",
    local_key="cliente_id",
    prefix="cliente",
    fields=(
        ("nome", ("nome",)),
        ("documento", ("documento", "cnpj", "cpf")),
        ("cidade", ("cidade", "municipio")),
        ("uf", ("uf", "estado")),
        ("endereco", ("endereco", "logradouro")),
    ),
)

EMBARCADOR = LookupSpec(
    table="embarcadores",
    alias="e",
    local_key="embarcador_id",
    prefix="embarcador",
    fields=(
        ("nome", ("nome",)),
        ("documento", ("documento", "cnpj")),
    ),
)

TRANSPORTADORA = LookupSpec(
    table="transportadoras",
    alias="t",
    local_key="transportadora_id",
    prefix="transportadora",
    fields=(
        ("nome", ("nome",)),
        ("cnpj", ("cnpj",)),
    ),
)

ENDERECO_ENTREGA = LookupSpec(
    table="endereco_entrega",
    alias="ee",
    local_key="endereco_entrega_id",
    prefix="endereco",
    fields=(
        ("completo", ("endereco", "logradouro")),
        ("cidade", ("cidade", "municipio")),
        ("uf", ("uf", "estado")),
        ("bairro", ("bairro",)),
        ("cep", ("cep",)),
    ),
)

LOOKUPS = (CLIENTE, EMBARCADOR, TRANSPORTADORA, ENDERECO_ENTREGA)


class NotasFiscaisRepository(BaseRepository):
    table_name = "notas_fiscais"
    alias = "nf"

    def find_by_chave_nf(self, chave_nf: str) -> Row | None:
        return self.find_one_by({"chave_nf": chave_nf}, joins=LOOKUPS)

    def column_aliases(self, source: FromClause) -> Namespace:
        # Installs name the invoice number either nro or numero
        physical = self.descriptor.first_of(("nro", "numero"))
        return {"numero": source.c[physical]} if physical else {}

    def find_by_numero(self, numero: Any) -> list[Row]:
        return self.find_by({"numero": numero}, joins=LOOKUPS)

    def find_with_relations(self, entity_id: Any, *relations: RelationSpec) -> Row | None:
        """Nota plus `<prefix>_<field>` columns of every lookup present in this schema."""
        row = self.find_by_id(entity_id, joins=LOOKUPS)
        if row is None or not relations:
            return row

        related = super().find_with_relations(entity_id, *relations)
        if related is not None:
            row.update({spec.key: related[spec.key] for spec in relations})
        return row

    def find_by_transportadora(self, transportadora_id: Any, **options: Any) -> PageResult:
        return self._find_by_owner("transportadora_id", transportadora_id, **options)

    def find_by_cliente(self, cliente_id: Any, **options: Any) -> PageResult:
        return self._find_by_owner("cliente_id", cliente_id, **options)

    def _find_by_owner(self, column: str, owner_id: Any, **options: Any) -> PageResult:
        filters = {**(options.pop("filters", None) or {}), column: owner_id}
        options.setdefault("joins", LOOKUPS)
        return self.find_all(filters=filters, **options)
