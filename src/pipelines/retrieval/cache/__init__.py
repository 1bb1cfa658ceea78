"""Retrieval Pipeline Cache Components.

This module contains the bounded, time-evicting cache injected into
components that memoise expensive collaborator calls.
"""

from .result_cache import ResultCache, CacheConfig, CacheEntry

__all__ = [
    "ResultCache",
    "CacheConfig",
    "CacheEntry",
]
