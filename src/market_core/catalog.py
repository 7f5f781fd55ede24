"""
Default product catalog.

The catalog enumerates every tradeable item type. When populate_catalog is
enabled it seeds the registry at startup; stored values loaded afterwards
override these defaults.

Catalog files are YAML lists whose entries are either a bare type name or a
mapping with ``type`` and optional ``variant``:

    - STONE
    - {type: WOOL, variant: 14}
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

import yaml

from .models import Product, normalize_alias
from .services.registry import ProductRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    type: str
    variant: int = 0

    @property
    def alias(self) -> str:
        base = normalize_alias(self.type)
        return base if self.variant == 0 else f"{base}:{self.variant}"

    def new_product(self) -> Product:
        return Product(alias=self.alias, type=self.type, variant=self.variant)


def _parse_entry(entry: Union[str, dict]) -> CatalogItem:
    if isinstance(entry, str):
        return CatalogItem(type=entry.strip())
    if isinstance(entry, dict) and entry.get("type"):
        return CatalogItem(type=str(entry["type"]).strip(), variant=int(entry.get("variant", 0)))
    raise ValueError(f"Invalid catalog entry: {entry!r}")


def load_catalog(path: Path) -> List[CatalogItem]:
    with Path(path).open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise ValueError(f"Catalog {path} must contain a list of items")
    items = [_parse_entry(entry) for entry in data]
    logger.info(f"Loaded {len(items)} catalog item(s) from {path}")
    return items


def populate_registry(registry: ProductRegistry, items: Iterable[CatalogItem]) -> int:
    """Seed missing catalog items with default state; returns how many were added."""
    before = len(registry)
    for item in items:
        registry.get_or_create(item.alias, item.new_product)
    return len(registry) - before
