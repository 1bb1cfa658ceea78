"""Retrieval Pipeline Search Components.

Candidate source adapters and the collaborators behind semantic search.
"""

from .adapters import (
    BrandBrowseAdapter,
    CandidateAdapter,
    CategoryBrowseAdapter,
    KeywordSearchAdapter,
    SemanticSearchAdapter,
    build_adapters,
)
from .embeddings import EmbeddingClient
from .vector_searcher import SearchConfig, VectorRestricts, VectorSearcher

__all__ = [
    "BrandBrowseAdapter",
    "CandidateAdapter",
    "CategoryBrowseAdapter",
    "KeywordSearchAdapter",
    "SemanticSearchAdapter",
    "build_adapters",
    "EmbeddingClient",
    "SearchConfig",
    "VectorRestricts",
    "VectorSearcher",
]
