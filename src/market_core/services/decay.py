"""Demand decay arithmetic, independent of storage and scheduling."""

from ..models import Product


def decay_demand(product: Product, decay_amount: int) -> int:
    """
    Reduce a product's demand by decay_amount, never below zero.

    Returns the amount actually removed: decay_amount, or less when the
    counter hit the floor, or 0 when it was already there. Callers emit a
    ledger entry only for a non-zero result.
    """
    if decay_amount < 0:
        raise ValueError(f"decay_amount must be non-negative, got {decay_amount}")
    decayed = min(int(decay_amount), product.demand)
    product.demand -= decayed
    return decayed
