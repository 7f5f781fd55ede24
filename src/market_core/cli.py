#!/usr/bin/env python3
"""
market-core admin CLI.

Operates directly on the configured database; it does not need a running
market.

Usage examples:
  - Create or migrate the schema:
      market-core init-db

  - List stored products with display prices:
      market-core products

  - Show the latest ledger rows for one actor:
      market-core transactions --actor 7f6c... --limit 20
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from market_core.config import get_settings
from market_core.db.engine import get_engine
from market_core.errors import StorageError
from market_core.logging import configure_logging
from market_core.services.ledger import LedgerWriter
from market_core.services.persistence import PersistenceGateway
from market_core.services.registry import ProductRegistry

LOG = logging.getLogger("market_core.cli")


def _cmd_init_db(gateway: PersistenceGateway, _args: argparse.Namespace) -> int:
    version = gateway.setup()
    LOG.info(f"Schema ready at version {version}")
    return 0


def _cmd_products(gateway: PersistenceGateway, _args: argparse.Namespace) -> int:
    registry = ProductRegistry()
    gateway.load_products(registry)
    for product in sorted(registry.snapshot(), key=lambda p: p.alias):
        print(f"{product.alias}\t{product.type}\t{product.variant}\t{product.demand}\t{product.display_price}")
    return 0


def _cmd_transactions(gateway: PersistenceGateway, args: argparse.Namespace) -> int:
    rows = LedgerWriter(gateway.engine).recent(args.actor, args.limit)
    for row in rows:
        actor = row.actor_name or row.actor_uuid
        print(f"{row.id}\t{actor}\t{row.action.name}\t{row.item_alias}\t{row.amount:g}\t{row.price}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="market-core", description="Virtual market administration")
    parser.add_argument("--database-url", help="Override the configured database URL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and apply pending migrations").set_defaults(
        handler=_cmd_init_db
    )
    sub.add_parser("products", help="List stored products").set_defaults(handler=_cmd_products)

    tx = sub.add_parser("transactions", help="Show recent ledger rows")
    tx.add_argument("--actor", help="Only rows for this actor id")
    tx.add_argument("--limit", type=int, default=10)
    tx.set_defaults(handler=_cmd_transactions)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    configure_logging(settings)
    args = build_parser().parse_args(argv)

    gateway = PersistenceGateway(get_engine(args.database_url or settings.database_url))
    try:
        return args.handler(gateway, args)
    except StorageError as e:
        LOG.error(f"{e}: {e.__cause__}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
