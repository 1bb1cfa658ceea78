"""Hybrid Retrieval Pipeline.

This module implements multi-source product retrieval for the shopping
assistant: semantic, keyword, category and brand candidate sources run in
parallel, then consolidation, safety filtering and cross-encoder reranking.
"""

from .config import RetrievalSettings, ConfigurationLoader
from .exceptions import (
    RetrievalError,
    ConfigurationError,
    EmbeddingError,
    RateLimitError,
    SearchError,
    CatalogError,
    RerankError,
)
from .cache import ResultCache, CacheConfig, CacheEntry
from .models import (
    CandidateSource,
    CandidateSet,
    CatalogItem,
    CategoryRef,
    HybridSearchResult,
    SearchConstraints,
    SOURCE_PRIORITY,
)
from .pipeline import RetrievalPipeline
from .retry import RetryPolicy

__all__ = [
    "RetrievalSettings",
    "ConfigurationLoader",
    "RetrievalError",
    "ConfigurationError",
    "EmbeddingError",
    "RateLimitError",
    "SearchError",
    "CatalogError",
    "RerankError",
    "ResultCache",
    "CacheConfig",
    "CacheEntry",
    "CandidateSource",
    "CandidateSet",
    "CatalogItem",
    "CategoryRef",
    "HybridSearchResult",
    "SearchConstraints",
    "SOURCE_PRIORITY",
    "RetrievalPipeline",
    "RetryPolicy",
]
