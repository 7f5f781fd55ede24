"""Database engine and table definitions."""

from .engine import create_market_engine, dispose_engines, get_engine
from .tables import ActorIdentityORM, Base, ConstantORM, ProductORM, TransactionORM

__all__ = [
    "ActorIdentityORM",
    "Base",
    "ConstantORM",
    "ProductORM",
    "TransactionORM",
    "create_market_engine",
    "dispose_engines",
    "get_engine",
]
