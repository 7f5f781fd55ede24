"""
Data models for the market core.

Defines the Product state held by the registry and the ledger event/row
types appended to the transaction table.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from enum import IntEnum
from typing import Optional

# Reserved actor id marking system-generated (decay) ledger rows
SYSTEM_UUID = "00000000-0000-0000-0000-000000000000"

# Fractional digits shown for prices; extra digits are truncated, never rounded up
DISPLAY_DIGITS = 4
_DISPLAY_QUANTUM = Decimal(1).scaleb(-DISPLAY_DIGITS)
# Enough digits to hold any finite float at DISPLAY_DIGITS places
_DISPLAY_PRECISION = 400


def normalize_alias(name: str) -> str:
    """Return the canonical registry key for a product name."""
    return str(name).strip().lower()


def format_price(price: float) -> str:
    """Format a price rounded toward zero to DISPLAY_DIGITS fractional digits."""
    value = float(price)
    if not math.isfinite(value):
        raise ValueError(f"price must be finite, got {price}")
    with localcontext() as ctx:
        ctx.prec = _DISPLAY_PRECISION
        return str(Decimal(repr(value)).quantize(_DISPLAY_QUANTUM, rounding=ROUND_DOWN))


def check_price(price: float) -> float:
    """Return price as a float, rejecting negative, NaN and infinite values."""
    value = float(price)
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"price must be a finite non-negative number, got {price}")
    return value


class TransactionAction(IntEnum):
    """Kinds of ledger entries, stored as a small integer."""

    SELL = 0
    BUY = 1
    DECAY = 2
    PRICE_SET = 3
    PRICE_REMOVE = 4


@dataclass
class Product:
    """
    Runtime state of a single tradeable product.

    The alias is the unique registry key; type and variant identify the
    underlying item for display/inventory layers.
    """

    alias: str
    type: str
    variant: int = 0
    demand: int = 0
    price: float = 0.0

    def __post_init__(self):
        self.alias = normalize_alias(self.alias)
        if not self.alias:
            raise ValueError("Product alias must not be empty")
        self.variant = int(self.variant)
        self.demand = int(self.demand)
        self.price = float(self.price)
        if self.demand < 0:
            raise ValueError(f"Product {self.alias} demand must be non-negative, got {self.demand}")
        if not math.isfinite(self.price) or self.price < 0:
            raise ValueError(f"Product {self.alias} price must be a finite non-negative number, got {self.price}")

    @property
    def display_price(self) -> str:
        return format_price(self.price)

    def matches(self, item_type: str, variant: int = 0) -> bool:
        """True when this product represents the given item type and variant."""
        return self.type.lower() == str(item_type).lower() and self.variant == int(variant)


@dataclass(frozen=True)
class LedgerEvent:
    """An economic event waiting to be appended to the ledger."""

    actor_uuid: str
    action: TransactionAction
    item_alias: str
    amount: float
    price: float = 0.0

    @classmethod
    def decay(cls, alias: str, amount: int) -> "LedgerEvent":
        return cls(SYSTEM_UUID, TransactionAction.DECAY, alias, float(amount), 0.0)


@dataclass(frozen=True)
class LedgerRow:
    """A persisted ledger entry as read back from storage."""

    id: int
    actor_uuid: str
    action: TransactionAction
    item_alias: str
    amount: float
    price: float
    actor_name: Optional[str] = None
