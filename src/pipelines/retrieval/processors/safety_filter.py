"""
Safety filter for consolidated candidates.

The final, authoritative constraint check. No candidate source enforces every
constraint at once (semantic search may ignore the brand, keyword search only
matches text), so every candidate is re-validated here for brand, price,
rating and category before reranking.

Category relaxation is asymmetric: the requested category set is widened to
its whole category domain only for candidates whose brand already passed an
active brand filter. A phone brand's televisions therefore never leak in
through category relaxation alone.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger
from ..models import CatalogItem, SearchConstraints
from .category_domains import CategoryDomains


class BrandInferrer:
    """Infers a brand from free text with a fixed lexical lookup table.

    Aliases are tried in table order and must start at a word boundary, so
    "iphone15" implies Apple while "pineapple" does not.
    """

    def __init__(self, aliases: Dict[str, str]):
        self.aliases = {alias.lower(): brand for alias, brand in aliases.items()}
        self._patterns = [
            (re.compile(r"(?<![a-z0-9])" + re.escape(alias)), brand)
            for alias, brand in self.aliases.items()
        ]

    def infer(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        lowered = text.lower()
        for pattern, brand in self._patterns:
            if pattern.search(lowered):
                return brand
        return None


@dataclass
class FilterCriteria:
    """Resolved filter inputs for one invocation."""

    brand: Optional[str] = None
    allowed_categories: Set[str] = field(default_factory=set)
    relaxed_categories: Set[str] = field(default_factory=set)
    constraints: SearchConstraints = field(default_factory=SearchConstraints)


@dataclass
class FilterReport:
    """Counts of what the filter did, for logging and tests."""

    input_count: int = 0
    output_count: int = 0
    rejections: Counter = field(default_factory=Counter)
    relaxed_admissions: int = 0


class SafetyFilter(RetrievalLoggerMixin):
    """Re-validates candidates against explicit and inferred constraints."""

    def __init__(self, brand_inferrer: BrandInferrer, category_domains: Optional[CategoryDomains] = None):
        self.brand_inferrer = brand_inferrer
        self.category_domains = category_domains or CategoryDomains.empty()
        self.metrics_logger = RetrievalMetricsLogger("SafetyFilter")

    def effective_brand(self, constraints: SearchConstraints) -> Optional[str]:
        """Explicit brand, else the brand implied by the free-text query."""
        return constraints.brand or self.brand_inferrer.infer(constraints.query)

    def build_criteria(self, constraints: SearchConstraints, allowed_categories: Iterable[str]) -> FilterCriteria:
        """Combine constraints with the expanded category set.

        Args:
            constraints: The invocation's constraints
            allowed_categories: Requested category plus catalog descendants
                (empty when no category was requested or it did not resolve)
        """
        brand = self.effective_brand(constraints)
        allowed = set(allowed_categories)
        relaxed: Set[str] = set()
        if brand and allowed:
            relaxed = self.category_domains.related_categories(allowed)
        return FilterCriteria(
            brand=brand,
            allowed_categories=allowed,
            relaxed_categories=relaxed,
            constraints=constraints,
        )

    def apply(self, items: Sequence[CatalogItem], criteria: FilterCriteria) -> List[CatalogItem]:
        """Keep, in order, only candidates that pass every check."""
        kept, report = self.apply_with_report(items, criteria)
        self.metrics_logger.log_filter_results(
            report.input_count, report.output_count, dict(report.rejections), report.relaxed_admissions
        )
        return kept

    def apply_with_report(self, items: Sequence[CatalogItem], criteria: FilterCriteria):
        report = FilterReport(input_count=len(items))
        kept: List[CatalogItem] = []

        allowed = {c.lower() for c in criteria.allowed_categories}
        relaxed = {c.lower() for c in criteria.relaxed_categories}
        brand = criteria.brand.lower() if criteria.brand else None
        constraints = criteria.constraints

        for item in items:
            brand_ok = brand is None or (item.brand is not None and item.brand.strip().lower() == brand)
            if not brand_ok:
                report.rejections["brand"] += 1
                continue

            if constraints.min_price is not None and item.price < constraints.min_price:
                report.rejections["price"] += 1
                continue
            if constraints.max_price is not None and item.price > constraints.max_price:
                report.rejections["price"] += 1
                continue

            if constraints.min_rating is not None and (item.rating is None or item.rating < constraints.min_rating):
                report.rejections["rating"] += 1
                continue

            if allowed:
                category = item.category.strip().lower() if item.category else None
                if category is None:
                    report.rejections["category"] += 1
                    continue
                if category not in allowed:
                    # brand_ok already holds here; relaxation needs an active brand filter
                    if brand is not None and category in relaxed:
                        report.relaxed_admissions += 1
                    else:
                        report.rejections["category"] += 1
                        continue

            kept.append(item)

        report.output_count = len(kept)
        return kept, report
