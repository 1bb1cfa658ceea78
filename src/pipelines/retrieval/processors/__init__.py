"""Retrieval Pipeline Processors.

Post-retrieval stages applied to the candidate sources' output:
consolidation, safety filtering and reranking.
"""

from .category_domains import CategoryDomain, CategoryDomains, load_category_domains
from .consolidator import Consolidator
from .reranker import CrossEncoderRerankingService, Reranker, RerankingService, render_document
from .safety_filter import BrandInferrer, FilterCriteria, FilterReport, SafetyFilter

__all__ = [
    "CategoryDomain",
    "CategoryDomains",
    "load_category_domains",
    "Consolidator",
    "CrossEncoderRerankingService",
    "Reranker",
    "RerankingService",
    "render_document",
    "BrandInferrer",
    "FilterCriteria",
    "FilterReport",
    "SafetyFilter",
]
