"""
Unit tests for EmbeddingClient.

Tests caching of query vectors, rate-limit retries and error mapping with a
mocked embeddings model.
"""

from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from src.pipelines.retrieval.cache.result_cache import CacheConfig, ResultCache
from src.pipelines.retrieval.config import RetrievalSettings
from src.pipelines.retrieval.exceptions import ConfigurationError, EmbeddingError, RateLimitError
from src.pipelines.retrieval.retry import RetryPolicy
from src.pipelines.retrieval.search.embeddings import EmbeddingClient


def rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    return openai.RateLimitError("Rate limit reached", response=httpx.Response(429, request=request), body=None)


class NoSleepRetry(RetryPolicy):
    async def run(self, func, retry_on, sleep=None):
        async def no_sleep(_):
            return None
        return await super().run(func, retry_on, sleep=no_sleep)


@pytest.fixture
def settings():
    return RetrievalSettings(openai_api_key="sk-test", embedding_dimension=3)


@pytest.fixture
def model():
    model = Mock()
    model.aembed_query = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return model


class TestEmbeddingClient:
    """Test EmbeddingClient."""

    def test_initialize_requires_key(self):
        """A missing OpenAI key is a configuration error."""
        client = EmbeddingClient(RetrievalSettings(openai_api_key=None))

        with pytest.raises(ConfigurationError):
            client.initialize()
        assert client.available is False

    @pytest.mark.asyncio
    async def test_uninitialized(self, settings):
        with pytest.raises(EmbeddingError):
            await EmbeddingClient(settings).aembed("phone")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_model(self, settings, model):
        """Repeated queries are served from the cache."""
        cache = ResultCache(CacheConfig())
        client = EmbeddingClient(settings, cache=cache, embeddings_model=model)

        first = await client.aembed("Running Shoes")
        second = await client.aembed("running  shoes")

        assert first == second == [0.1, 0.2, 0.3]
        model.aembed_query.assert_awaited_once()
        assert cache.get_stats()["total_hits"] == 1

    @pytest.mark.asyncio
    async def test_retries_rate_limits(self, settings, model):
        """HTTP 429 answers are retried by the policy."""
        model.aembed_query.side_effect = [rate_limit_error(), [0.4, 0.5, 0.6]]
        client = EmbeddingClient(settings, retry_policy=NoSleepRetry(max_attempts=2), embeddings_model=model)

        assert await client.aembed("phone") == [0.4, 0.5, 0.6]
        assert model.aembed_query.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, settings, model):
        """A persistent rate limit surfaces as RateLimitError."""
        model.aembed_query.side_effect = rate_limit_error()
        client = EmbeddingClient(settings, embeddings_model=model)

        with pytest.raises(RateLimitError):
            await client.aembed("phone")
        assert model.aembed_query.await_count == 1

    @pytest.mark.asyncio
    async def test_other_failures_not_retried(self, settings, model):
        """Non rate-limit failures map to EmbeddingError without retry."""
        model.aembed_query.side_effect = ValueError("bad input")
        client = EmbeddingClient(settings, retry_policy=NoSleepRetry(max_attempts=3), embeddings_model=model)

        with pytest.raises(EmbeddingError) as exc_info:
            await client.aembed("phone")

        assert not isinstance(exc_info.value, RateLimitError)
        assert model.aembed_query.await_count == 1

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, settings, model):
        """Vectors of the wrong length are rejected and not cached."""
        model.aembed_query.return_value = [0.1, 0.2]
        cache = ResultCache(CacheConfig())
        client = EmbeddingClient(settings, cache=cache, embeddings_model=model)

        with pytest.raises(EmbeddingError):
            await client.aembed("phone")
        assert len(cache) == 0

    def test_from_settings(self, settings):
        """Cache and retry policy are built from settings."""
        settings = settings.model_copy(update={"embedding_retry_max_attempts": 3, "embedding_cache_max_size": 7})

        client = EmbeddingClient.from_settings(settings)

        assert client.retry_policy.max_attempts == 3
        assert client.cache.config.max_size == 7
