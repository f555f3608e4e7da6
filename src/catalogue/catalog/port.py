"""Catalog port (abstract interface).

Ordering never owns product data. It resolves products through this port
when a cart is converted into an order and adjusts stock when an order
reserves or releases units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Product:
    """Read model of a sellable product as the catalog reports it."""

    product_id: str
    sku: str
    name: str
    category: str | None = None
    base_price: float | None = None
    pack_prices: dict[int, float] = field(default_factory=dict)
    stock: int = 0
    is_active: bool = True
    weight_kg: float | None = None


class CatalogPort(ABC):
    """Abstract catalog interface."""

    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return the product, or None when it no longer exists."""
        ...

    @abstractmethod
    def adjust_stock(self, product_id: str, delta: int) -> int | None:
        """Add ``delta`` units to the product's stock.

        Returns the new stock level, or None when the product is unknown.
        """
        ...

    @abstractmethod
    def reserve(self, product_id: str, units: int) -> bool:
        """Take ``units`` out of stock only if that many are available.

        The check and the decrement happen as one step. Returns False, leaving
        stock untouched, when the product is unknown or short.
        """
        ...
