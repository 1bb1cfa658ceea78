"""
Retrieval Pipeline Orchestrator.

This module implements the RetrievalPipeline class that runs one hybrid
retrieval invocation: the candidate sources in parallel, consolidation in
priority order, the safety filter and finally cross-encoder reranking. It also
exposes the plain catalog lookups the shopping tools need.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from src.core.database.connection import DatabaseManager

from .catalog.store import CatalogStore
from .config import ConfigurationLoader, RetrievalSettings
from .exceptions import CatalogError
from .logging import RetrievalLoggerMixin, RetrievalMetricsLogger, log_retrieval_operation
from .models import CandidateSource, CatalogItem, CategoryRef, HybridSearchResult, SearchConstraints
from .processors.category_domains import CategoryDomains, load_category_domains
from .processors.consolidator import Consolidator
from .processors.reranker import Reranker, RerankingService
from .processors.safety_filter import BrandInferrer, SafetyFilter
from .search.adapters import CandidateAdapter, build_adapters
from .search.embeddings import EmbeddingClient
from .search.vector_searcher import VectorSearcher


class RetrievalPipeline(RetrievalLoggerMixin):
    """
    Orchestrates hybrid retrieval over the product catalog.

    Every stage degrades instead of failing: a broken source contributes no
    candidates, a broken reranker leaves the filtered order untouched, and an
    unavailable semantic search simply removes that source.
    """

    def __init__(
        self,
        settings: RetrievalSettings,
        catalog: CatalogStore,
        adapters: Sequence[CandidateAdapter],
        safety_filter: SafetyFilter,
        reranker: Reranker,
        consolidator: Optional[Consolidator] = None,
        embedder: Optional[EmbeddingClient] = None,
        vector_searcher: Optional[VectorSearcher] = None,
    ):
        """
        Args:
            settings: Retrieval settings
            catalog: Catalog store shared by the keyword, category and brand sources
            adapters: Candidate sources, any order
            safety_filter: Final constraint check
            reranker: Reranker adapter
            consolidator: Priority merger (default: a new Consolidator)
            embedder: Embedding client behind the semantic source, if any
            vector_searcher: Vector index behind the semantic source, if any
        """
        self.settings = settings
        self.catalog = catalog
        self.adapters = list(adapters)
        self.safety_filter = safety_filter
        self.reranker = reranker
        self.consolidator = consolidator or Consolidator()
        self.embedder = embedder
        self.vector_searcher = vector_searcher

        self.metrics_logger = RetrievalMetricsLogger("RetrievalPipeline")
        self._initialized = False

    @classmethod
    def from_settings(
        cls,
        settings: RetrievalSettings,
        db_manager: DatabaseManager,
        reranking_service: Optional[RerankingService] = None,
        category_domains: Optional[CategoryDomains] = None,
    ) -> 'RetrievalPipeline':
        """
        Create a RetrievalPipeline with every component built from settings.

        Raises:
            ConfigurationError: If the category domains file is invalid
        """
        catalog = CatalogStore(db_manager)
        embedder = EmbeddingClient.from_settings(settings)
        vector_searcher = VectorSearcher.from_settings(settings)

        if category_domains is None:
            category_domains = load_category_domains(settings.category_domains_path)

        return cls(
            settings=settings,
            catalog=catalog,
            adapters=build_adapters(catalog, embedder, vector_searcher, settings.source_timeout_seconds),
            safety_filter=SafetyFilter(BrandInferrer(settings.brand_aliases), category_domains),
            reranker=Reranker.from_settings(settings, reranking_service),
            embedder=embedder,
            vector_searcher=vector_searcher,
        )

    @classmethod
    def from_config_file(cls, db_manager: DatabaseManager, config_path: Optional[str] = None) -> 'RetrievalPipeline':
        """
        Create a RetrievalPipeline from a YAML configuration file.

        Raises:
            ConfigurationError: If configuration loading fails
        """
        settings = ConfigurationLoader(config_path).load_config()
        return cls.from_settings(settings, db_manager)

    @property
    def semantic_available(self) -> bool:
        return bool(self.embedder and self.embedder.available
                    and self.vector_searcher and self.vector_searcher.available)

    @log_retrieval_operation("pipeline_initialization")
    async def initialize(self) -> None:
        """
        Connect optional collaborators and validate reference data.

        Missing credentials or an unreachable index disable semantic search;
        a model that cannot be loaded disables reranking. Neither is fatal.
        """
        if self._initialized:
            self.logger.info("Pipeline already initialized, skipping")
            return

        if self.embedder is not None and self.vector_searcher is not None:
            try:
                self.embedder.initialize()
                self.vector_searcher.initialize()
            except Exception as e:
                self.log_operation_degraded("semantic_search_setup", str(e))

        service = self.reranker.service
        if service is not None and not service.available and hasattr(service, "initialize"):
            try:
                await asyncio.to_thread(service.initialize)
            except Exception as e:
                self.log_operation_degraded("rerank_setup", str(e))

        try:
            self.safety_filter.category_domains.validate_against(await self.catalog.all_category_names())
        except CatalogError as e:
            self.log_operation_degraded("category_domain_validation", str(e))

        self._initialized = True
        self.logger.info(
            "RetrievalPipeline initialization completed",
            extra={
                'extra_fields': {
                    'sources': [adapter.source.value for adapter in self.adapters],
                    'semantic_available': self.semantic_available,
                    'rerank_available': self.reranker.available,
                    'category_domains_version': self.safety_filter.category_domains.version,
                }
            }
        )

    async def search(self, constraints: SearchConstraints, limit: Optional[int] = None) -> HybridSearchResult:
        """
        Run one hybrid retrieval invocation.

        Args:
            constraints: Normalized search request
            limit: Per-source candidate budget (default: ``hybrid_candidates``)

        Returns:
            HybridSearchResult with at most ``page_size`` items
        """
        start_time = time.perf_counter()
        budget = limit or self.settings.hybrid_candidates

        per_source = await asyncio.gather(*(adapter.fetch(constraints, budget) for adapter in self.adapters))
        results: Dict[CandidateSource, List[CatalogItem]] = {}
        for adapter, items in zip(self.adapters, per_source):
            results[adapter.source] = items

        candidates = self.consolidator.consolidate(results)

        allowed_categories = await self._allowed_categories(constraints.category)
        criteria = self.safety_filter.build_criteria(constraints, allowed_categories)
        filtered = self.safety_filter.apply(candidates.items(), criteria)

        rerank_query = constraints.query or constraints.brand or constraints.category
        items, reranked = await self.reranker.rerank(rerank_query, filtered)

        latency_ms = (time.perf_counter() - start_time) * 1000
        self.metrics_logger.log_pipeline_metrics(
            total_time_ms=latency_ms,
            query=constraints.query,
            returned_count=len(items),
            consolidated_count=len(candidates),
            filtered_count=len(filtered),
            reranked=reranked,
        )

        return HybridSearchResult(
            constraints=constraints,
            items=items,
            source_counts={source.value: len(found) for source, found in results.items()},
            consolidated_count=len(candidates),
            filtered_count=len(filtered),
            reranked=reranked,
            latency_ms=latency_ms,
        )

    async def _allowed_categories(self, category: Optional[str]) -> Set[str]:
        """Requested category plus descendants; empty means no category filter."""
        if not category:
            return set()
        try:
            allowed = await self.catalog.expand_category_names(category)
        except CatalogError as e:
            self.log_operation_degraded("category_expansion", str(e), category=category)
            return set()
        if not allowed:
            self.logger.info(
                f"Category '{category}' did not resolve; no category filter applied",
                extra={'extra_fields': {'category': category}}
            )
        return allowed

    # ------------------------------------------------------------------
    # Direct catalog lookups used by the non-search tools
    # ------------------------------------------------------------------

    async def get_item_details(
        self,
        item_id: Optional[str] = None,
        item_name: Optional[str] = None,
    ) -> Optional[CatalogItem]:
        """Look an item up by id, else by the best keyword hit for its name."""
        if item_id:
            try:
                item = await self.catalog.get_item(item_id)
            except CatalogError as e:
                self.log_operation_degraded("get_item", str(e), item_id=item_id)
                item = None
            if item is not None:
                return item

        if item_name and item_name.strip():
            hits = await self.catalog.keyword_search(item_name.strip(), limit=1)
            return hits[0] if hits else None
        return None

    async def compare_items(self, names: Sequence[str]) -> List[CatalogItem]:
        """First keyword hit for each name, skipping names with no hit."""
        found: List[CatalogItem] = []
        seen: Set[str] = set()
        for name in names:
            if not name or not name.strip():
                continue
            hits = await self.catalog.keyword_search(name.strip(), limit=1)
            if hits and hits[0].id not in seen:
                seen.add(hits[0].id)
                found.append(hits[0])
        return found

    async def featured(self, limit: Optional[int] = None) -> List[CatalogItem]:
        return await self.catalog.featured(limit or self.settings.page_size)

    async def products_by_brand(self, brand: str, limit: Optional[int] = None) -> List[CatalogItem]:
        return await self.catalog.browse_brand(brand, limit=limit or self.settings.page_size)

    async def list_categories(self) -> List[CategoryRef]:
        return await self.catalog.list_categories()

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """
        Get pipeline statistics and component configuration.

        Returns:
            Dictionary containing pipeline statistics
        """
        stats: Dict[str, Any] = {
            "initialized": self._initialized,
            "configuration": {
                "page_size": self.settings.page_size,
                "hybrid_candidates": self.settings.hybrid_candidates,
                "vector_candidates": self.settings.vector_candidates,
                "similarity_threshold": self.settings.similarity_threshold,
                "source_timeout_seconds": self.settings.source_timeout_seconds,
                "rerank_enabled": self.settings.rerank_enabled,
            },
            "components": {
                "sources": [adapter.source.value for adapter in self.adapters],
                "category_domains_version": self.safety_filter.category_domains.version,
            },
        }

        if self.embedder is not None and self.embedder.cache is not None:
            stats["components"]["embedding_cache"] = self.embedder.cache.get_stats()

        if self.vector_searcher is not None and self.vector_searcher.available:
            try:
                stats["components"]["vector_searcher"] = self.vector_searcher.get_index_stats()
            except Exception as e:
                stats["components"]["vector_searcher"] = {"error": str(e)}

        return stats

    async def health_check(self) -> Dict[str, Any]:
        """
        Check the pipeline and its collaborators.

        The catalog is the only hard dependency; semantic search and
        reranking being unavailable only degrades the status.

        Returns:
            Dictionary containing health status
        """
        health: Dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "components": {},
            "errors": []
        }

        if not self._initialized:
            health["status"] = "unhealthy"
            health["errors"].append("Pipeline not initialized")
            return health

        try:
            await self.catalog.ping()
            health["components"]["catalog"] = "healthy"
        except CatalogError as e:
            health["components"]["catalog"] = f"error: {e.message}"
            health["errors"].append(f"catalog: {e.message}")
            health["status"] = "unhealthy"

        optional = [
            ("semantic_search", self.semantic_available),
            ("reranker", self.reranker.available),
        ]
        for component_name, available in optional:
            health["components"][component_name] = "healthy" if available else "unavailable"
            if not available and health["status"] == "healthy":
                health["status"] = "degraded"

        return health
