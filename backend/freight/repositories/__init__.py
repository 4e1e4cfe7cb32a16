"""
Repositories over the freight tables.

BaseRepository carries the generic contract; each concrete repository
only names its table and composes the primitives.
"""

from freight.repositories.base import BaseRepository
from freight.repositories.clientes import ClientesRepository
from freight.repositories.embarcadores import EmbarcadoresRepository
from freight.repositories.endereco_entrega import EnderecoEntregaRepository
from freight.repositories.motoristas import MotoristasRepository
from freight.repositories.notas_fiscais import NotasFiscaisRepository
from freight.repositories.transportadoras import TransportadorasRepository

__all__ = [
    "BaseRepository",
    "ClientesRepository",
    "EmbarcadoresRepository",
    "EnderecoEntregaRepository",
    "MotoristasRepository",
    "NotasFiscaisRepository",
    "TransportadorasRepository",
]
