"""Catalog access for the checkout flow.

- CatalogPort: product lookup and stock adjustment contract
- InMemoryCatalog: dictionary-backed adapter for development and tests
"""

from catalogue.catalog.memory_adapter import InMemoryCatalog
from catalogue.catalog.port import CatalogPort, Product

__all__ = ["CatalogPort", "InMemoryCatalog", "Product"]
