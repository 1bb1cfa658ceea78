"""
Vector Searcher for the retrieval pipeline.

This module queries the Pinecone product index with a precomputed query vector
and metadata restricts (price bounds, rating bound, category), and
returns ``(item_id, similarity)`` pairs above the configured threshold in
descending similarity order.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Dict, Any, Optional, Tuple

from pinecone import Pinecone

from ..config import RetrievalSettings
from ..exceptions import SearchError, ConfigurationError
from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger


@dataclass
class SearchConfig:
    """Configuration for vector search operations."""

    top_k: int = 50
    score_threshold: float = 0.7


@dataclass
class VectorRestricts:
    """Numeric and categorical restricts understood natively by the index."""

    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_rating: Optional[float] = None
    category: Optional[str] = None

    def to_filter_dict(self) -> Dict[str, Any]:
        """Convert to Pinecone metadata filter format."""
        filter_dict: Dict[str, Any] = {}

        if self.min_price is not None or self.max_price is not None:
            price_filter = {}
            if self.min_price is not None:
                price_filter["$gte"] = float(self.min_price)
            if self.max_price is not None:
                price_filter["$lte"] = float(self.max_price)
            filter_dict["price"] = price_filter

        if self.min_rating is not None:
            filter_dict["rating"] = {"$gte": self.min_rating}
        if self.category:
            filter_dict["category"] = {"$eq": self.category}

        return filter_dict


class VectorSearcher(RetrievalLoggerMixin):
    """
    Performs vector similarity search against Pinecone.

    The index is queried with ids only; item attributes come from the catalog
    store so that every source yields the same CatalogItem snapshot.
    """

    def __init__(self, config: SearchConfig, settings: RetrievalSettings, index: Any = None):
        """
        Initialize the VectorSearcher with configuration.

        Args:
            config: SearchConfig containing search settings
            settings: RetrievalSettings containing API keys and connection info
            index: Pre-built Pinecone index handle, mainly for tests
        """
        self.config = config
        self.settings = settings
        self._pinecone_client: Optional[Pinecone] = None
        self._index = index
        self.metrics_logger = RetrievalMetricsLogger("VectorSearcher")

    @classmethod
    def from_settings(cls, settings: RetrievalSettings) -> 'VectorSearcher':
        config = SearchConfig(
            top_k=settings.vector_candidates,
            score_threshold=settings.similarity_threshold,
        )
        return cls(config, settings)

    @property
    def available(self) -> bool:
        return self._index is not None

    def initialize(self) -> None:
        """
        Connect to the Pinecone index.

        Raises:
            ConfigurationError: If the API key or index name is missing
            SearchError: If the index cannot be reached
        """
        if self._index is not None:
            return

        if not self.settings.pinecone_api_key:
            raise ConfigurationError(
                "Pinecone API key is required for vector search. "
                "Please set PINECONE_API_KEY environment variable.",
                missing_keys=["PINECONE_API_KEY"]
            )
        if not self.settings.pinecone_index_name:
            raise ConfigurationError("Pinecone index name is required", missing_keys=["pinecone_index_name"])

        try:
            self._pinecone_client = Pinecone(api_key=self.settings.pinecone_api_key)
            index_names = self._pinecone_client.list_indexes().names()
            if self.settings.pinecone_index_name not in index_names:
                raise SearchError(
                    f"Index '{self.settings.pinecone_index_name}' not found. "
                    f"Available indexes: {index_names}",
                    source="semantic"
                )
            self._index = self._pinecone_client.Index(self.settings.pinecone_index_name)
        except SearchError:
            raise
        except Exception as e:
            raise SearchError(f"Failed to connect to Pinecone: {str(e)}", source="semantic") from e

        self.logger.info(
            f"Successfully connected to Pinecone index: {self.settings.pinecone_index_name}",
            extra={
                'extra_fields': {
                    'index_name': self.settings.pinecone_index_name,
                    'namespace': self.settings.pinecone_namespace,
                    'score_threshold': self.config.score_threshold
                }
            }
        )

    async def query(
        self,
        vector: List[float],
        top_k: Optional[int] = None,
        restricts: Optional[VectorRestricts] = None,
    ) -> List[Tuple[str, float]]:
        """
        Find the nearest neighbours of ``vector``.

        Args:
            vector: Query embedding
            top_k: Result-count budget (defaults to the configured top_k)
            restricts: Optional metadata restricts

        Returns:
            ``(item_id, similarity)`` pairs at or above the score threshold,
            most similar first

        Raises:
            SearchError: If the index is unavailable or the query fails
        """
        if self._index is None:
            raise SearchError("Vector index is not initialized", source="semantic")

        effective_top_k = top_k or self.config.top_k
        filter_dict = (restricts or VectorRestricts()).to_filter_dict()

        try:
            response = await asyncio.to_thread(
                self._index.query,
                vector=vector,
                top_k=effective_top_k,
                filter=filter_dict or None,
                namespace=self.settings.pinecone_namespace,
                include_metadata=False,
            )
        except Exception as e:
            raise SearchError(
                f"Vector query failed: {str(e)}",
                source="semantic",
                search_params={"top_k": effective_top_k, "filters": filter_dict}
            ) from e

        matches = [(match.id, float(match.score)) for match in (response.matches or [])]
        return self._apply_score_threshold(matches)

    def _apply_score_threshold(self, matches: List[Tuple[str, float]]) -> List[Tuple[str, float]]:
        """Drop matches below the threshold and order by descending similarity."""
        filtered = [(item_id, score) for item_id, score in matches if score >= self.config.score_threshold]

        if matches and not filtered:
            self.logger.info(
                f"No matches passed score threshold {self.config.score_threshold}",
                extra={
                    'extra_fields': {
                        'score_threshold': self.config.score_threshold,
                        'original_count': len(matches),
                        'max_score': max(score for _, score in matches)
                    }
                }
            )

        return sorted(filtered, key=lambda pair: pair[1], reverse=True)

    def get_index_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the Pinecone index.

        Raises:
            SearchError: If not connected to Pinecone
        """
        if self._index is None:
            raise SearchError("Not connected to Pinecone. Call initialize() first.", source="semantic")

        stats = self._index.describe_index_stats()
        return {
            "total_vector_count": stats.total_vector_count,
            "dimension": stats.dimension,
            "index_fullness": stats.index_fullness,
        }
