"""
Price-from-demand models.

The mapping from a product's demand to its price is deployment specific, so
the market takes any callable satisfying PriceModel and applies it after
every demand change. FixedPriceModel keeps the current price untouched.
"""

import logging
import math
from typing import Protocol

from .models import Product

logger = logging.getLogger(__name__)


class PriceModel(Protocol):
    """Computes a product's price from its current state."""

    def __call__(self, product: Product) -> float:
        ...


class FixedPriceModel:
    """Default model: demand changes do not move the price."""

    def __call__(self, product: Product) -> float:
        return product.price


def reprice(product: Product, model: PriceModel) -> float:
    """
    Apply a price model to a product in place, clamping the result at zero.

    A NaN or infinite result is discarded and the current price kept.
    """
    price = float(model(product))
    if not math.isfinite(price):
        logger.warning(f"Price model returned {price} for {product.alias}; keeping {product.price}")
        return product.price
    product.price = max(0.0, price)
    return product.price
