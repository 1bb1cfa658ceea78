"""Consolidation of per-source candidate lists into one ordered CandidateSet."""

from typing import Dict, List, Mapping

from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger
from ..models import SOURCE_PRIORITY, CandidateSet, CandidateSource, CatalogItem


class Consolidator(RetrievalLoggerMixin):
    """Merges source results in fixed priority order, first occurrence wins.

    Sources are visited brand, semantic, keyword, category regardless of the
    order in which they completed. Within a source the adapter's own order is
    kept. Missing sources are treated as empty.
    """

    def __init__(self) -> None:
        self.metrics_logger = RetrievalMetricsLogger("Consolidator")

    def consolidate(self, results: Mapping[CandidateSource, List[CatalogItem]]) -> CandidateSet:
        candidates = CandidateSet()
        source_counts: Dict[str, int] = {}

        for source in SOURCE_PRIORITY:
            items = results.get(source) or []
            source_counts[source.value] = len(items)
            candidates.extend(items, source)

        self.metrics_logger.log_consolidation(source_counts, len(candidates))
        return candidates
