"""LLM client for the inference pipeline.

A thin async wrapper around ``ChatOpenAI`` with the shopping tools bound, a
per-turn timeout and error mapping to the inference exception hierarchy.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage
from langchain_openai import ChatOpenAI

from ..config import LLMConfig
from ..exceptions import ConfigurationError, LLMError, TimeoutError
from ..logging import InferenceLoggerMixin, log_token_usage


class LLMClient(InferenceLoggerMixin):
    """Tool-calling chat model client.

    Attributes:
        config: LLM configuration
        tools: OpenAI function declarations bound to the model
    """

    def __init__(self, config: LLMConfig, tools: Sequence[Dict[str, Any]] = (), chat_model: Any = None):
        """Initialize the LLM client.

        Args:
            config: LLM configuration including API key and model settings
            tools: Function declarations to bind
            chat_model: Pre-built runnable exposing ``ainvoke``, mainly for tests
        """
        self.config = config
        self.tools = list(tools)
        self._chat_model = chat_model

    @property
    def available(self) -> bool:
        return self._chat_model is not None

    def initialize(self) -> None:
        """Create the ChatOpenAI client and bind the tools.

        Raises:
            ConfigurationError: If API key is missing or the client cannot be built
        """
        if self._chat_model is not None:
            return

        if not self.config.api_key or not self.config.api_key.strip():
            raise ConfigurationError(
                "OpenAI API key is required but not provided",
                missing_keys=["api_key"],
                error_code="MISSING_API_KEY"
            )

        try:
            chat_model = ChatOpenAI(
                model=self.config.model_name,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                api_key=self.config.api_key,
                max_retries=0,
            )
            self._chat_model = chat_model.bind_tools(self.tools) if self.tools else chat_model
        except Exception as e:
            raise ConfigurationError(
                f"Failed to initialize OpenAI client: {str(e)}",
                error_code="CLIENT_INIT_ERROR",
                details={"error": str(e)}
            ) from e

        self.logger.info(
            f"LLM client ready: {self.config.model_name}",
            extra={'extra_fields': {'model': self.config.model_name, 'tools': len(self.tools)}}
        )

    async def ainvoke(self, messages: List[BaseMessage]) -> AIMessage:
        """Run one model turn.

        Raises:
            ConfigurationError: If the client is not initialized
            TimeoutError: If the turn exceeds ``timeout_seconds``
            LLMError: If the API call fails
        """
        if self._chat_model is None:
            raise ConfigurationError(
                "LLM client must be initialized before use",
                error_code="CLIENT_NOT_INITIALIZED"
            )

        start_time = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._chat_model.ainvoke(messages),
                timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"LLM call timed out after {self.config.timeout_seconds}s",
                timeout_seconds=self.config.timeout_seconds,
                operation="llm_turn"
            ) from e
        except Exception as e:
            raise LLMError(
                f"LLM API call failed: {str(e)}",
                status_code=getattr(e, "status_code", None),
                provider=self.config.provider,
                model=self.config.model_name
            ) from e

        usage = getattr(response, "usage_metadata", None) or {}
        if usage:
            log_token_usage(
                self.logger,
                model=self.config.model_name,
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
                operation="llm_turn"
            )
        self.logger.debug(
            f"LLM turn completed in {(time.perf_counter() - start_time) * 1000:.2f}ms",
            extra={'extra_fields': {'tool_calls': len(getattr(response, "tool_calls", None) or [])}}
        )
        return response
