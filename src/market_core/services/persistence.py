"""
Persistence gateway for the market.

Owns schema creation and migration, the startup reconciliation of stored
products into the registry, and the periodic upsert of registry snapshots.
Every operation here is idempotent and may block on I/O, so callers run it
on the storage worker rather than the event loop.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import delete, inspect, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..db.tables import ActorIdentityORM, Base, ConstantORM, ProductORM
from ..errors import StorageError
from ..models import Product
from .registry import ProductRegistry

logger = logging.getLogger(__name__)

SCHEMA_VERSION_KEY = "sql_version"
# Version stamped on databases that predate the version marker
BASELINE_SCHEMA_VERSION = 3

TRANSACTION_ALIAS_INDEX = "ix_transaction_item_alias"


def _add_product_variant(conn: Connection) -> None:
    """v4: products gain a variant discriminator."""
    columns = {c["name"] for c in inspect(conn).get_columns("product")}
    if "variant" in columns:
        return
    op = Operations(MigrationContext.configure(conn))
    op.add_column(
        "product",
        sa.Column("variant", sa.Integer(), nullable=False, server_default="0"),
    )


def _index_transaction_alias(conn: Connection) -> None:
    """v5: index ledger rows by product alias for history lookups."""
    indexes = {ix["name"] for ix in inspect(conn).get_indexes("transaction")}
    if TRANSACTION_ALIAS_INDEX in indexes:
        return
    op = Operations(MigrationContext.configure(conn))
    op.create_index(TRANSACTION_ALIAS_INDEX, "transaction", ["item_alias"])


# Ordered (version, step) pairs; each step must be safe to re-run
MIGRATIONS: Tuple[Tuple[int, Callable[[Connection], None]], ...] = (
    (4, _add_product_variant),
    (5, _index_transaction_alias),
)

CURRENT_SCHEMA_VERSION = MIGRATIONS[-1][0]


def _upsert(conn: Connection, table: sa.Table, rows: Sequence[Dict[str, Any]], key: str) -> None:
    """Insert-or-update rows by primary key using the dialect's native upsert."""
    if not rows:
        return
    columns = [c.name for c in table.columns if c.name != key]
    dialect = conn.dialect.name
    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key],
            set_={name: stmt.excluded[name] for name in columns},
        )
        conn.execute(stmt, list(rows))
        return
    if dialect in ("mysql", "mariadb"):
        stmt = mysql_insert(table)
        stmt = stmt.on_duplicate_key_update({name: stmt.inserted[name] for name in columns})
        conn.execute(stmt, list(rows))
        return
    # Generic fallback: update, then insert what did not exist
    for row in rows:
        result = conn.execute(
            sa.update(table).where(table.c[key] == row[key]).values(
                {name: row[name] for name in columns if name in row}
            )
        )
        if result.rowcount == 0:
            conn.execute(sa.insert(table).values(row))


def _product_row(product: Product) -> Dict[str, Any]:
    return {
        "alias": product.alias,
        "type": product.type,
        "variant": product.variant,
        "demand": product.demand,
        "price": product.price,
    }


class PersistenceGateway:
    """
    Synchronizes the product registry with durable storage.

    Storage errors are raised as StorageError; whether they are fatal is
    decided by the caller (startup vs. periodic save).
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # Schema management

    def create_tables(self) -> None:
        """Create any missing table. Existing tables are left untouched."""
        try:
            Base.metadata.create_all(bind=self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise StorageError("create_tables") from e

    def schema_version(self) -> Optional[int]:
        try:
            with self.engine.connect() as conn:
                return self._read_version(conn)
        except SQLAlchemyError as e:
            raise StorageError("schema_version") from e

    def migrate(self) -> int:
        """
        Bring the schema up to CURRENT_SCHEMA_VERSION.

        A database without a version marker is stamped with the baseline
        version first. Each pending step runs in its own transaction together
        with the version bump that records it.
        """
        try:
            with self.engine.begin() as conn:
                version = self._read_version(conn)
                if version is None:
                    version = BASELINE_SCHEMA_VERSION
                    self._write_version(conn, version)
                    logger.info(f"Stamped schema with baseline version {version}")

            for step_version, step in MIGRATIONS:
                if step_version <= version:
                    continue
                with self.engine.begin() as conn:
                    step(conn)
                    self._write_version(conn, step_version)
                version = step_version
                logger.info(f"Applied schema migration to version {step_version}")
        except SQLAlchemyError as e:
            raise StorageError("migrate") from e
        return version

    def setup(self) -> int:
        """Create tables and run pending migrations; returns the schema version."""
        self.create_tables()
        return self.migrate()

    @staticmethod
    def _read_version(conn: Connection) -> Optional[int]:
        value = conn.execute(
            select(ConstantORM.value).where(ConstantORM.key == SCHEMA_VERSION_KEY)
        ).scalar_one_or_none()
        return int(value) if value is not None else None

    @staticmethod
    def _write_version(conn: Connection, version: int) -> None:
        _upsert(
            conn,
            ConstantORM.__table__,
            [{"key": SCHEMA_VERSION_KEY, "value": str(version)}],
            "key",
        )

    # Products

    def load_products(self, registry: ProductRegistry) -> int:
        """
        Merge stored products into the registry.

        Stored price and demand win over whatever defaults the registry
        already holds; stored products missing from the registry are added.
        Returns the number of stored rows merged.
        """
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(select(ProductORM.__table__)).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError("load_products") from e

        for row in rows:
            stored = Product(
                alias=row["alias"],
                type=row["type"],
                variant=row["variant"],
                demand=max(0, row["demand"]),
                price=max(0.0, row["price"]),
            )
            product = registry.get_or_create(stored.alias, lambda: stored)
            if product is not stored:
                registry.update(stored.alias, lambda p: _apply_stored(p, stored))
        logger.info(f"Loaded {len(rows)} stored product(s) into registry")
        return len(rows)

    def save_all(self, snapshot: Iterable[Product]) -> int:
        """Upsert every product in snapshot; returns the number of rows written."""
        rows: List[Dict[str, Any]] = [_product_row(p) for p in snapshot]
        try:
            with self.engine.begin() as conn:
                _upsert(conn, ProductORM.__table__, rows, "alias")
        except SQLAlchemyError as e:
            raise StorageError("save_all") from e
        logger.debug(f"Saved {len(rows)} product(s)")
        return len(rows)

    def delete_product(self, alias: str) -> bool:
        try:
            with self.engine.begin() as conn:
                table = ProductORM.__table__
                result = conn.execute(delete(table).where(table.c.alias == alias))
        except SQLAlchemyError as e:
            raise StorageError("delete_product") from e
        return result.rowcount > 0

    # Actors

    def upsert_actor(self, uuid: str, name: Optional[str]) -> None:
        try:
            with self.engine.begin() as conn:
                _upsert(conn, ActorIdentityORM.__table__, [{"uuid": uuid, "name": name}], "uuid")
        except SQLAlchemyError as e:
            raise StorageError("upsert_actor") from e


def _apply_stored(product: Product, stored: Product) -> None:
    product.demand = stored.demand
    product.price = stored.price
