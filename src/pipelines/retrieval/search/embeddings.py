"""Query embedding client for semantic search.

Wraps ``langchain_openai.OpenAIEmbeddings`` with an injected ``ResultCache``
for query vectors and an explicit ``RetryPolicy`` that only retries rate-limit
responses.
"""

from typing import List, Optional

import openai
from langchain_openai import OpenAIEmbeddings

from ..cache.result_cache import CacheConfig, ResultCache
from ..config import RetrievalSettings
from ..exceptions import ConfigurationError, EmbeddingError, RateLimitError
from ..logging import RetrievalLoggerMixin, RetrievalMetricsLogger
from ..retry import RetryPolicy


class EmbeddingClient(RetrievalLoggerMixin):
    """Embeds free-text queries into fixed-length vectors."""

    def __init__(
        self,
        settings: RetrievalSettings,
        cache: Optional[ResultCache[List[float]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        embeddings_model: Optional[OpenAIEmbeddings] = None,
    ):
        """
        Args:
            settings: Retrieval settings carrying the API key and model name
            cache: Query-vector cache; ``None`` disables caching
            retry_policy: Retry policy for rate-limited calls (default: no retry)
            embeddings_model: Pre-built model, mainly for tests
        """
        self.settings = settings
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy.no_retry()
        self._model = embeddings_model
        self.metrics_logger = RetrievalMetricsLogger("EmbeddingClient")

    @classmethod
    def from_settings(cls, settings: RetrievalSettings) -> 'EmbeddingClient':
        cache = ResultCache(CacheConfig(
            enabled=settings.embedding_cache_enabled,
            ttl_seconds=settings.embedding_cache_ttl_seconds,
            max_size=settings.embedding_cache_max_size,
        ))
        retry_policy = RetryPolicy(
            max_attempts=settings.embedding_retry_max_attempts,
            base_delay_seconds=settings.embedding_retry_base_delay_seconds,
            max_delay_seconds=settings.embedding_retry_max_delay_seconds,
        )
        return cls(settings, cache=cache, retry_policy=retry_policy)

    @property
    def available(self) -> bool:
        return self._model is not None

    def initialize(self) -> None:
        """Create the embeddings model.

        Raises:
            ConfigurationError: If the OpenAI API key is missing
        """
        if self._model is not None:
            return
        if not self.settings.openai_api_key:
            raise ConfigurationError(
                "OpenAI API key is required for query embeddings. "
                "Please set OPENAI_API_KEY environment variable.",
                missing_keys=["OPENAI_API_KEY"]
            )
        self._model = OpenAIEmbeddings(
            model=self.settings.embedding_model,
            dimensions=self.settings.embedding_dimension,
            api_key=self.settings.openai_api_key,
            max_retries=0,
        )
        self.logger.info(f"Embedding client initialized with model {self.settings.embedding_model}")

    async def aembed(self, text: str) -> List[float]:
        """Embed ``text``, serving repeated queries from the cache.

        Raises:
            RateLimitError: If the service keeps answering HTTP 429
            EmbeddingError: On any other embedding failure
        """
        if self._model is None:
            raise EmbeddingError(
                "Embedding client is not initialized",
                query=text,
                model=self.settings.embedding_model,
                error_code="CLIENT_NOT_INITIALIZED"
            )

        params = {"model": self.settings.embedding_model}
        if self.cache is not None:
            cached = self.cache.get(text, params)
            if cached is not None:
                self.metrics_logger.log_cache_operation("hit", ResultCache.make_key(text, params)[:8], len(self.cache))
                return cached

        vector = await self.retry_policy.run(lambda: self._embed_once(text), retry_on=(RateLimitError,))

        if len(vector) != self.settings.embedding_dimension:
            raise EmbeddingError(
                f"Embedding dimension {len(vector)} does not match expected {self.settings.embedding_dimension}",
                query=text,
                model=self.settings.embedding_model
            )

        if self.cache is not None:
            self.cache.set(text, vector, params)
            self.metrics_logger.log_cache_operation("set", ResultCache.make_key(text, params)[:8], len(self.cache))
        return vector

    async def _embed_once(self, text: str) -> List[float]:
        try:
            return await self._model.aembed_query(text)
        except openai.RateLimitError as e:
            raise RateLimitError(
                f"Embedding rate limit exceeded: {e}",
                query=text,
                model=self.settings.embedding_model
            ) from e
        except Exception as e:
            raise EmbeddingError(
                f"Embedding generation failed: {e}",
                query=text,
                model=self.settings.embedding_model
            ) from e
