"""
market_core - server-wide virtual market.

Usage:
    from market_core import MarketService, get_settings

    service = MarketService(get_settings(), currency_service=bank)
    await service.start()
    product = service.get_product("diamond")
    await service.stop()
"""

from .catalog import CatalogItem, load_catalog, populate_registry
from .config import Settings, get_settings
from .errors import (
    LedgerWriteError,
    MarketError,
    MarketStartupError,
    StorageError,
    UnknownProductError,
)
from .models import (
    DISPLAY_DIGITS,
    SYSTEM_UUID,
    LedgerEvent,
    LedgerRow,
    Product,
    TransactionAction,
    check_price,
    format_price,
    normalize_alias,
)
from .pricing import FixedPriceModel, PriceModel
from .scheduler import JobResult, MarketScheduler
from .service import CurrencyService, MarketService
from .services import (
    LedgerWriter,
    LedgerWriteResult,
    PersistenceGateway,
    ProductRegistry,
    decay_demand,
)

__version__ = "0.1.0"

__all__ = [
    "CatalogItem",
    "CurrencyService",
    "DISPLAY_DIGITS",
    "FixedPriceModel",
    "JobResult",
    "LedgerEvent",
    "LedgerRow",
    "LedgerWriteError",
    "LedgerWriteResult",
    "LedgerWriter",
    "MarketError",
    "MarketScheduler",
    "MarketService",
    "MarketStartupError",
    "PersistenceGateway",
    "PriceModel",
    "Product",
    "ProductRegistry",
    "SYSTEM_UUID",
    "Settings",
    "StorageError",
    "TransactionAction",
    "UnknownProductError",
    "check_price",
    "decay_demand",
    "format_price",
    "get_settings",
    "load_catalog",
    "normalize_alias",
    "populate_registry",
]
