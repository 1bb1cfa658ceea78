"""Catalog store access for the retrieval pipeline."""

from .store import CatalogStore, to_catalog_item

__all__ = [
    "CatalogStore",
    "to_catalog_item",
]
