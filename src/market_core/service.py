"""
MarketService: the market's composition root.

Owns the product registry, the persistence gateway, the ledger writer, the
storage worker and the scheduler, and exposes the small API used by the
command and display layers. All state lives on the service instance; nothing
is kept in module globals.

Startup order:
  1. Refuse to start without a currency service
  2. Seed the registry from the catalog (if populate_catalog is enabled)
  3. Create/migrate the schema and reconcile stored products (fatal on error)
  4. Start the save job (immediately) and the decay job (after one interval)
"""

import logging
from typing import Iterable, List, Optional, Protocol

import yaml
from sqlalchemy.engine import Engine

from .catalog import CatalogItem, load_catalog, populate_registry
from .config import Settings
from .db.engine import get_engine
from .errors import MarketStartupError, StorageError, UnknownProductError
from .models import LedgerEvent, LedgerRow, Product, TransactionAction, check_price, normalize_alias
from .pricing import FixedPriceModel, PriceModel, reprice
from .scheduler import JobResult, MarketScheduler
from .services.decay import decay_demand
from .services.ledger import LedgerWriter, LedgerWriteResult
from .services.persistence import PersistenceGateway
from .services.registry import ProductRegistry
from .worker import StorageWorker

logger = logging.getLogger(__name__)

SAVE_JOB = "save"
DECAY_JOB = "decay"


class CurrencyService(Protocol):
    """External currency-transfer service, keyed by actor id."""

    def has(self, actor_uuid: str, amount: float) -> bool:
        ...

    def withdraw(self, actor_uuid: str, amount: float) -> bool:
        ...

    def deposit(self, actor_uuid: str, amount: float) -> bool:
        ...

    def balance(self, actor_uuid: str) -> float:
        ...


class MarketService:
    """
    Server-wide virtual market.

    In-memory reads and writes against the registry always succeed; storage
    failures surface only as failed job or ledger results and log entries.
    """

    def __init__(
        self,
        settings: Settings,
        currency_service: Optional[CurrencyService],
        catalog: Optional[Iterable[CatalogItem]] = None,
        price_model: Optional[PriceModel] = None,
        engine: Optional[Engine] = None,
        registry: Optional[ProductRegistry] = None,
    ):
        self.settings = settings
        self.registry = registry if registry is not None else ProductRegistry()
        # Engines passed in belong to the caller; only our own is disposed on stop
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else get_engine(settings.database_url)
        self.gateway = PersistenceGateway(self.engine)
        self.ledger = LedgerWriter(self.engine)
        self.worker = StorageWorker()
        self.scheduler = MarketScheduler()
        self.price_model: PriceModel = price_model or FixedPriceModel()
        self._catalog = list(catalog) if catalog is not None else None
        self._currency = currency_service
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def currency_service(self) -> CurrencyService:
        if self._currency is None:
            raise MarketStartupError("Currency service not available")
        return self._currency

    # Lifecycle

    async def start(self) -> None:
        """Bring the market into serving state or raise MarketStartupError."""
        if self._started:
            return
        if self._currency is None:
            raise MarketStartupError("Currency service not found; market not started")

        if self.settings.populate_catalog:
            added = populate_registry(self.registry, self._catalog_items())
            logger.info(f"Populated registry with {added} catalog product(s)")

        try:
            version = await self.worker.run(self.gateway.setup)
            loaded = await self.worker.run(self.gateway.load_products, self.registry)
        except StorageError as e:
            self.worker.shutdown(wait=False)
            raise MarketStartupError("Error accessing database; market not started") from e
        logger.info(
            f"Storage ready at schema version {version}; {loaded} stored product(s), "
            f"{len(self.registry)} in registry"
        )

        if self.scheduler.get_job(SAVE_JOB) is None:
            self.scheduler.add_job(SAVE_JOB, self.run_save, self.settings.save_interval)
            self.scheduler.add_job(
                DECAY_JOB,
                self.run_decay,
                self.settings.decay_interval,
                initial_delay=self.settings.decay_interval,
            )
        await self.scheduler.start()
        self._started = True
        logger.info("MarketService started")

    async def stop(self) -> None:
        """Stop periodic jobs and attempt a final save."""
        if not self._started:
            return
        await self.scheduler.stop()
        result = await self.run_save()
        if not result.ok:
            logger.error(f"Final save failed; unsaved changes are lost: {result.error}")
        self.worker.shutdown()
        if self._owns_engine:
            self.engine.dispose()
        self._started = False
        logger.info("MarketService stopped")

    def _catalog_items(self) -> List[CatalogItem]:
        if self._catalog is not None:
            return self._catalog
        path = self.settings.catalog_path
        if path is None:
            logger.warning("populate_catalog is enabled but no catalog_path is configured")
            return []
        try:
            return load_catalog(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise MarketStartupError(f"Could not load catalog from {path}") from e

    # Periodic jobs

    async def run_save(self) -> JobResult:
        snapshot = self.registry.snapshot()
        try:
            saved = await self.worker.run(self.gateway.save_all, snapshot)
        except StorageError as e:
            return JobResult.failure(SAVE_JOB, e, products=len(snapshot))
        return JobResult.success(SAVE_JOB, products=saved)

    def decay_sweep(self) -> List[LedgerEvent]:
        """Decay every product once; returns one DECAY event per product that changed."""
        amount = self.settings.decay_amount
        events: List[LedgerEvent] = []
        for alias in self.registry.aliases():
            decayed = 0

            def _decay(product: Product) -> None:
                nonlocal decayed
                decayed = decay_demand(product, amount)
                if decayed:
                    reprice(product, self.price_model)

            self.registry.update(alias, _decay)
            if decayed > 0:
                events.append(LedgerEvent.decay(alias, decayed))
        return events

    async def run_decay(self) -> JobResult:
        """
        One decay cycle: sweep the registry, then write a single ledger batch.

        Demand already decayed in memory is kept even if the batch fails.
        """
        events = self.decay_sweep()
        result = await self.worker.run(self.ledger.append_batch, events)
        if not result.success:
            return JobResult.failure(DECAY_JOB, result.error, decayed=len(events))
        return JobResult.success(DECAY_JOB, decayed=len(events), ledger_rows=result.rows)

    # Collaborator API

    def get_product(self, alias_or_type: str, variant: Optional[int] = None) -> Optional[Product]:
        """Look a product up by alias, or by item type and variant when variant is given."""
        if variant is None:
            return self.registry.get(alias_or_type)
        return self.registry.find(alias_or_type, variant)

    def all_products(self) -> List[Product]:
        return self.registry.snapshot()

    # Core actions used by the command layer

    async def record_buy(
        self,
        actor_uuid: str,
        alias: str,
        quantity: int,
        total_price: float,
        actor_name: Optional[str] = None,
    ) -> LedgerWriteResult:
        """Register a completed purchase: demand rises by quantity."""
        total_price = check_price(total_price)
        self._adjust_demand(alias, _positive(quantity))
        event = LedgerEvent(actor_uuid, TransactionAction.BUY, normalize_alias(alias), float(quantity), total_price)
        return await self._append(event, actor_name)

    async def record_sell(
        self,
        actor_uuid: str,
        alias: str,
        quantity: int,
        total_price: float,
        actor_name: Optional[str] = None,
    ) -> LedgerWriteResult:
        """Register a completed sale to the market: demand falls by quantity, floored at zero."""
        total_price = check_price(total_price)
        self._adjust_demand(alias, -_positive(quantity))
        event = LedgerEvent(actor_uuid, TransactionAction.SELL, normalize_alias(alias), float(quantity), total_price)
        return await self._append(event, actor_name)

    async def set_price(
        self,
        actor_uuid: str,
        alias: str,
        price: float,
        item_type: Optional[str] = None,
        variant: int = 0,
    ) -> LedgerWriteResult:
        """Admin price edit. Creates the product when it does not exist yet."""
        price = check_price(price)
        key = normalize_alias(alias)
        self.registry.get_or_create(
            key, lambda: Product(alias=key, type=item_type or key.upper(), variant=variant)
        )
        self.registry.update(key, lambda p: setattr(p, "price", price))
        event = LedgerEvent(actor_uuid, TransactionAction.PRICE_SET, key, 0.0, price)
        return await self._append(event)

    async def remove_price(self, actor_uuid: str, alias: str) -> LedgerWriteResult:
        """Admin removal of a product from the registry and from storage."""
        key = normalize_alias(alias)
        if self.registry.remove(key) is None:
            raise UnknownProductError(key)
        try:
            await self.worker.run(self.gateway.delete_product, key)
        except StorageError as e:
            logger.error(f"Product {key} removed from memory but not from storage: {e}")
        event = LedgerEvent(actor_uuid, TransactionAction.PRICE_REMOVE, key, 0.0, 0.0)
        return await self._append(event)

    async def transactions(self, actor_uuid: Optional[str] = None, limit: int = 10) -> List[LedgerRow]:
        return await self.worker.run(self.ledger.recent, actor_uuid, limit)

    async def remember_actor(self, actor_uuid: str, name: Optional[str]) -> None:
        await self.worker.run(self.gateway.upsert_actor, actor_uuid, name)

    def _adjust_demand(self, alias: str, delta: int) -> Product:
        def _apply(product: Product) -> None:
            product.demand = max(0, product.demand + delta)
            reprice(product, self.price_model)

        product = self.registry.update(alias, _apply)
        if product is None:
            raise UnknownProductError(normalize_alias(alias))
        return product

    async def _append(self, event: LedgerEvent, actor_name: Optional[str] = None) -> LedgerWriteResult:
        if actor_name:
            try:
                await self.remember_actor(event.actor_uuid, actor_name)
            except StorageError as e:
                logger.warning(f"Could not record name for actor {event.actor_uuid}: {e}")
        return await self.worker.run(self.ledger.append_batch, [event])


def _positive(quantity: int) -> int:
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    return int(quantity)
