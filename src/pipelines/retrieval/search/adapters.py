"""
Candidate source adapters.

Each adapter answers one retrieval strategy (semantic, keyword, category
browse, brand browse) for a set of SearchConstraints and a result budget. All
of them fail soft: an exception, a timeout or an unavailable collaborator is
logged and turned into an empty candidate list, because consolidation is built
to tolerate partial source failure.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from ..catalog.store import CatalogStore
from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger
from ..models import CandidateSource, CatalogItem, SearchConstraints
from .embeddings import EmbeddingClient
from .vector_searcher import VectorRestricts, VectorSearcher


class CandidateAdapter(RetrievalLoggerMixin, ABC):
    """Base class for the fail-soft candidate sources."""

    source: CandidateSource

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self.metrics_logger = RetrievalMetricsLogger(self.__class__.__name__)

    def applies(self, constraints: SearchConstraints) -> bool:
        """Whether this source has anything to contribute for ``constraints``."""
        return True

    async def fetch(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        """Run the source and return at most ``limit`` candidates, never raising."""
        if not self.applies(constraints):
            return []

        start_time = time.perf_counter()
        try:
            items = await asyncio.wait_for(self._search(constraints, limit), timeout=self.timeout_seconds)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.log_operation_error(
                f"{self.source.value}_search", e, duration_ms,
                source=self.source.value, constraints=constraints.to_log_dict()
            )
            self.metrics_logger.log_source_results(self.source.value, 0, duration_ms, failed=True)
            return []

        items = items[:limit]
        self.metrics_logger.log_source_results(
            self.source.value, len(items), (time.perf_counter() - start_time) * 1000,
            filters_applied=constraints.to_log_dict()
        )
        return items

    @abstractmethod
    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        """Source-specific query; may raise."""


class SemanticSearchAdapter(CandidateAdapter):
    """Nearest-neighbour search over query embeddings.

    Price and rating restricts are pushed to the index. Brand stays with the
    safety filter, which compares it case-insensitively. The category is only
    pushed when ``include_category`` is set; hybrid search leaves it to the
    safety filter so near-miss categories can still surface.
    """

    source = CandidateSource.SEMANTIC

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_searcher: VectorSearcher,
        catalog: CatalogStore,
        include_category: bool = False,
        timeout_seconds: float = 5.0,
    ):
        super().__init__(timeout_seconds)
        self.embedder = embedder
        self.vector_searcher = vector_searcher
        self.catalog = catalog
        self.include_category = include_category

    @property
    def available(self) -> bool:
        return self.embedder.available and self.vector_searcher.available

    def applies(self, constraints: SearchConstraints) -> bool:
        return bool(constraints.semantic_query) and self.available

    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        vector = await self.embedder.aembed(constraints.semantic_query)
        restricts = VectorRestricts(
            min_price=constraints.min_price,
            max_price=constraints.max_price,
            min_rating=constraints.min_rating,
            category=constraints.category if self.include_category else None,
        )
        matches = await self.vector_searcher.query(vector, top_k=limit, restricts=restricts)
        ids = [item_id for item_id, _ in matches][:limit]
        return await self.catalog.get_items(ids)


class KeywordSearchAdapter(CandidateAdapter):
    """Keyword search with the browse fallbacks used when there is no text.

    Priority: keyword text (brand, else free text), then the category
    (resolved browse, else the category name as keyword text), then a pure
    price-range browse. A request with none of these yields nothing.
    """

    source = CandidateSource.KEYWORD

    def __init__(self, catalog: CatalogStore, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds)
        self.catalog = catalog

    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        bounds = dict(
            min_price=constraints.min_price,
            max_price=constraints.max_price,
            min_rating=constraints.min_rating,
            limit=limit,
        )

        if constraints.keyword_query:
            return await self.catalog.keyword_search(constraints.keyword_query, **bounds)

        if constraints.category:
            ref = await self.catalog.resolve_category(constraints.category)
            if ref is not None:
                category_ids = [c.id for c in await self.catalog.category_with_descendants(ref)]
                return await self.catalog.browse_category_ids(category_ids, **bounds)
            return await self.catalog.keyword_search(constraints.category, **bounds)

        if constraints.has_price_bounds:
            return await self.catalog.browse_price_range(**bounds)

        return []


class CategoryBrowseAdapter(CandidateAdapter):
    """Items of a resolved category and its descendants, best rated first."""

    source = CandidateSource.CATEGORY

    def __init__(self, catalog: CatalogStore, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds)
        self.catalog = catalog

    def applies(self, constraints: SearchConstraints) -> bool:
        return bool(constraints.category)

    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        return await self.catalog.browse_category(
            constraints.category,
            min_price=constraints.min_price,
            max_price=constraints.max_price,
            min_rating=constraints.min_rating,
            limit=limit,
        )


class BrandBrowseAdapter(CandidateAdapter):
    """Items of an exact brand, cheapest first, with bounds pushed into the query."""

    source = CandidateSource.BRAND

    def __init__(self, catalog: CatalogStore, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds)
        self.catalog = catalog

    def applies(self, constraints: SearchConstraints) -> bool:
        return bool(constraints.brand)

    async def _search(self, constraints: SearchConstraints, limit: int) -> List[CatalogItem]:
        return await self.catalog.browse_brand(
            constraints.brand,
            min_price=constraints.min_price,
            max_price=constraints.max_price,
            min_rating=constraints.min_rating,
            limit=limit,
        )


def build_adapters(
    catalog: CatalogStore,
    embedder: Optional[EmbeddingClient],
    vector_searcher: Optional[VectorSearcher],
    timeout_seconds: float,
) -> List[CandidateAdapter]:
    """The four sources in consolidation priority order."""
    adapters: List[CandidateAdapter] = [BrandBrowseAdapter(catalog, timeout_seconds)]
    if embedder is not None and vector_searcher is not None:
        adapters.append(SemanticSearchAdapter(embedder, vector_searcher, catalog, timeout_seconds=timeout_seconds))
    adapters.append(KeywordSearchAdapter(catalog, timeout_seconds))
    adapters.append(CategoryBrowseAdapter(catalog, timeout_seconds))
    return adapters
