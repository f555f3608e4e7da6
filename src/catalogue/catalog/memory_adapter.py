"""In-memory catalog for development and testing."""

import json
import threading
from dataclasses import replace
from pathlib import Path

from catalogue.catalog.port import CatalogPort, Product


class InMemoryCatalog(CatalogPort):
    """Dictionary-backed catalog with thread-safe stock adjustments."""

    def __init__(self, products: list[Product] | None = None) -> None:
        self._products: dict[str, Product] = {}
        self._lock = threading.Lock()
        self.stock_adjustments: list[dict] = []
        for product in products or []:
            self.add(product)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryCatalog":
        """Load products from a JSON list; ``pack_prices`` keys are pack sizes."""
        records = json.loads(Path(path).read_text(encoding="utf-8"))
        products = []
        for record in records:
            pack_prices = {int(size): float(price) for size, price in (record.pop("pack_prices", None) or {}).items()}
            products.append(Product(pack_prices=pack_prices, **record))
        return cls(products)

    def add(self, product: Product) -> None:
        self._products[product.product_id] = product

    def remove(self, product_id: str) -> None:
        self._products.pop(product_id, None)

    def get_product(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def adjust_stock(self, product_id: str, delta: int) -> int | None:
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                return None
            updated = replace(product, stock=product.stock + delta)
            self._products[product_id] = updated
            self.stock_adjustments.append({"product_id": product_id, "delta": delta})
            return updated.stock

    def reserve(self, product_id: str, units: int) -> bool:
        with self._lock:
            product = self._products.get(product_id)
            if product is None or product.stock < units:
                return False
            self._products[product_id] = replace(product, stock=product.stock - units)
            self.stock_adjustments.append({"product_id": product_id, "delta": -units})
            return True
