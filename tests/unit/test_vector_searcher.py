"""
Unit tests for VectorSearcher.

Tests configuration, initialization, metadata restricts and score
thresholding against a mocked Pinecone index.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from src.pipelines.retrieval.config import RetrievalSettings
from src.pipelines.retrieval.exceptions import ConfigurationError, SearchError
from src.pipelines.retrieval.search.vector_searcher import SearchConfig, VectorRestricts, VectorSearcher


def query_response(*matches):
    return SimpleNamespace(matches=[SimpleNamespace(id=item_id, score=score) for item_id, score in matches])


@pytest.fixture
def settings():
    return RetrievalSettings(pinecone_api_key="pc-test", pinecone_index_name="products-test")


@pytest.fixture
def index():
    index = Mock()
    index.query.return_value = query_response(("b", 0.72), ("a", 0.95), ("c", 0.4))
    return index


class TestSearchConfig:
    """Test SearchConfig dataclass."""

    def test_default_config(self):
        config = SearchConfig()

        assert config.top_k == 50
        assert config.score_threshold == 0.7

    def test_from_settings(self, settings):
        """Budgets come from the retrieval settings."""
        settings = settings.model_copy(update={"vector_candidates": 20, "similarity_threshold": 0.5})

        searcher = VectorSearcher.from_settings(settings)

        assert searcher.config.top_k == 20
        assert searcher.config.score_threshold == 0.5


class TestVectorRestricts:
    """Test VectorRestricts conversion."""

    def test_empty(self):
        assert VectorRestricts().to_filter_dict() == {}

    def test_all_restricts(self):
        """Every restrict maps to a Pinecone filter clause."""
        restricts = VectorRestricts(
            min_price=Decimal("100"),
            max_price=Decimal("500.50"),
            min_rating=4.0,
            category="Smartphones",
        )

        assert restricts.to_filter_dict() == {
            "price": {"$gte": 100.0, "$lte": 500.5},
            "rating": {"$gte": 4.0},
            "category": {"$eq": "Smartphones"},
        }

    def test_single_bound(self):
        assert VectorRestricts(max_price=Decimal("30000")).to_filter_dict() == {"price": {"$lte": 30000.0}}


class TestInitialization:
    """Test VectorSearcher.initialize."""

    def test_missing_api_key(self):
        searcher = VectorSearcher(SearchConfig(), RetrievalSettings(pinecone_api_key=None))

        with pytest.raises(ConfigurationError):
            searcher.initialize()
        assert searcher.available is False

    @patch("src.pipelines.retrieval.search.vector_searcher.Pinecone")
    def test_connects_to_existing_index(self, mock_pinecone, settings):
        """The named index is opened when it exists."""
        client = mock_pinecone.return_value
        client.list_indexes.return_value.names.return_value = ["products-test"]

        searcher = VectorSearcher(SearchConfig(), settings)
        searcher.initialize()

        mock_pinecone.assert_called_once_with(api_key="pc-test")
        client.Index.assert_called_once_with("products-test")
        assert searcher.available is True

    @patch("src.pipelines.retrieval.search.vector_searcher.Pinecone")
    def test_missing_index(self, mock_pinecone, settings):
        """An unknown index name is a SearchError."""
        mock_pinecone.return_value.list_indexes.return_value.names.return_value = ["other"]

        with pytest.raises(SearchError):
            VectorSearcher(SearchConfig(), settings).initialize()

    @patch("src.pipelines.retrieval.search.vector_searcher.Pinecone")
    def test_connection_failure(self, mock_pinecone, settings):
        mock_pinecone.side_effect = RuntimeError("network down")

        with pytest.raises(SearchError):
            VectorSearcher(SearchConfig(), settings).initialize()


class TestQuery:
    """Test VectorSearcher.query."""

    @pytest.mark.asyncio
    async def test_threshold_and_order(self, settings, index):
        """Matches under the threshold are dropped, the rest ordered by score."""
        searcher = VectorSearcher(SearchConfig(top_k=10, score_threshold=0.7), settings, index=index)

        matches = await searcher.query([0.1, 0.2])

        assert matches == [("a", 0.95), ("b", 0.72)]

    @pytest.mark.asyncio
    async def test_passes_restricts_and_namespace(self, settings, index):
        """Restricts, budget and namespace are sent to the index."""
        searcher = VectorSearcher(SearchConfig(), settings, index=index)

        await searcher.query([0.1], top_k=5, restricts=VectorRestricts(min_rating=4.0))

        kwargs = index.query.call_args.kwargs
        assert kwargs["top_k"] == 5
        assert kwargs["filter"] == {"rating": {"$gte": 4.0}}
        assert kwargs["namespace"] == settings.pinecone_namespace
        assert kwargs["include_metadata"] is False

    @pytest.mark.asyncio
    async def test_no_restricts_sends_no_filter(self, settings, index):
        searcher = VectorSearcher(SearchConfig(), settings, index=index)

        await searcher.query([0.1])

        assert index.query.call_args.kwargs["filter"] is None
        assert index.query.call_args.kwargs["top_k"] == 50

    @pytest.mark.asyncio
    async def test_query_failure(self, settings, index):
        """Index errors are wrapped in SearchError."""
        index.query.side_effect = RuntimeError("timeout")
        searcher = VectorSearcher(SearchConfig(), settings, index=index)

        with pytest.raises(SearchError):
            await searcher.query([0.1])

    @pytest.mark.asyncio
    async def test_not_initialized(self, settings):
        with pytest.raises(SearchError):
            await VectorSearcher(SearchConfig(), settings).query([0.1])

    def test_index_stats(self, settings, index):
        index.describe_index_stats.return_value = SimpleNamespace(
            total_vector_count=120, dimension=1536, index_fullness=0.1
        )
        searcher = VectorSearcher(SearchConfig(), settings, index=index)

        assert searcher.get_index_stats() == {
            "total_vector_count": 120,
            "dimension": 1536,
            "index_fullness": 0.1,
        }
