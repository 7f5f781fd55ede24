"""Registry, decay, persistence and ledger services."""

from .decay import decay_demand
from .ledger import LedgerWriter, LedgerWriteResult
from .persistence import CURRENT_SCHEMA_VERSION, PersistenceGateway
from .registry import ProductRegistry

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "LedgerWriteResult",
    "LedgerWriter",
    "PersistenceGateway",
    "ProductRegistry",
    "decay_demand",
]
