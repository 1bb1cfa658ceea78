"""Inference Pipeline Orchestrator.

This module implements the ShoppingAssistant class that answers one user
turn: it builds the system prompt, runs the bounded tool-calling workflow
over the retrieval pipeline and packages the answer with the products the
tools surfaced. When the chat model is unavailable the assistant still
answers, with a keyword-triggered canned reply.
"""

import time
from datetime import datetime
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from src.pipelines.retrieval.pipeline import RetrievalPipeline

from .config import InferenceSettings, LLMConfig, create_settings_from_yaml
from .events import LoggingEventPublisher, NullEventPublisher, SearchEventPublisher
from .exceptions import ConfigurationError
from .llm.client import LLMClient
from .logging import InferenceLoggerMixin, log_inference_operation, log_latency
from .models import ChatMetadata, ChatRequest, ChatResponse, StopReason
from .prompts import FALLBACK_MESSAGE, build_system_prompt, mock_response
from .tools.executor import ToolExecutor
from .tools.schemas import TOOL_SCHEMAS, TOOLSET_VERSION
from .workflow.agentic import ToolCallingWorkflow


class ShoppingAssistant(InferenceLoggerMixin):
    """
    Conversational shopping assistant over the hybrid retrieval pipeline.

    Attributes:
        settings: Inference settings
        retrieval_pipeline: Initialized retrieval pipeline
        llm_client: Tool-bound chat model client
        executor: Tool executor
        workflow: Tool-calling workflow
    """

    def __init__(
        self,
        settings: InferenceSettings,
        retrieval_pipeline: RetrievalPipeline,
        llm_client: Optional[LLMClient] = None,
        publisher: Optional[SearchEventPublisher] = None,
    ):
        self.settings = settings
        self.retrieval_pipeline = retrieval_pipeline
        self.llm_client = llm_client or LLMClient(self._llm_config(settings), tools=TOOL_SCHEMAS)

        if publisher is None:
            publisher = LoggingEventPublisher() if settings.orchestrator.publish_events else NullEventPublisher()
        self.executor = ToolExecutor(retrieval_pipeline, publisher)
        self.workflow = ToolCallingWorkflow(
            self.llm_client,
            self.executor,
            max_tool_rounds=settings.orchestrator.max_tool_rounds,
        )
        self._initialized = False

    @staticmethod
    def _llm_config(settings: InferenceSettings) -> LLMConfig:
        try:
            api_key = settings.get_api_key()
        except ConfigurationError:
            api_key = None
        return settings.llm.model_copy(update={"api_key": api_key})

    @classmethod
    def from_config_file(
        cls,
        retrieval_pipeline: RetrievalPipeline,
        config_path: Optional[str] = None,
    ) -> 'ShoppingAssistant':
        """Create the assistant from a YAML configuration file.

        Raises:
            ConfigurationError: If configuration loading fails
        """
        return cls(create_settings_from_yaml(config_path), retrieval_pipeline)

    @property
    def llm_available(self) -> bool:
        return self.llm_client.available

    def initialize(self) -> None:
        """Connect the chat model.

        A missing API key or a client that cannot be built leaves the
        assistant in offline mode, where every turn gets a canned reply.
        """
        if self._initialized:
            return

        try:
            self.llm_client.initialize()
        except ConfigurationError as e:
            self.logger.warning(
                f"Chat model unavailable, serving canned responses: {e.message}",
                extra={'extra_fields': {'error_code': e.error_code}}
            )

        self._initialized = True
        self.logger.info(
            "ShoppingAssistant initialized",
            extra={'extra_fields': {
                'llm_available': self.llm_available,
                'model': self.settings.llm.model_name,
                'max_tool_rounds': self.settings.orchestrator.max_tool_rounds,
                'toolset_version': TOOLSET_VERSION,
            }}
        )

    @log_inference_operation("chat")
    async def achat(self, request: ChatRequest) -> ChatResponse:
        """Answer one user turn.

        Never raises for collaborator failures: the answer degrades to the
        canned reply or the generic fallback message.
        """
        if not self._initialized:
            self.initialize()

        start_time = time.perf_counter()

        if not self.llm_available:
            return ChatResponse(
                message=mock_response(request.message),
                processing_time_ms=(time.perf_counter() - start_time) * 1000,
                stop_reason=StopReason.LLM_ERROR,
                metadata=ChatMetadata(mock_response=True),
            )

        system_prompt = build_system_prompt(
            request.user_context,
            store_name=self.settings.orchestrator.store_name,
            currency_symbol=self.settings.orchestrator.currency_symbol,
        )
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=request.message)]

        try:
            state = await self.workflow.arun(
                messages,
                user_message=request.message,
                user_id=request.user_id,
                session_id=request.session_id,
            )
        except Exception as e:
            self.logger.error(f"Tool-calling workflow failed: {e}", exc_info=True)
            return ChatResponse(
                message=FALLBACK_MESSAGE,
                processing_time_ms=(time.perf_counter() - start_time) * 1000,
                stop_reason=StopReason.LLM_ERROR,
                metadata=ChatMetadata(model_used=self.settings.llm.model_name),
            )

        processing_time_ms = (time.perf_counter() - start_time) * 1000
        log_latency(self.logger, "chat_turn", processing_time_ms, {
            'rounds': state["rounds"],
            'stop_reason': state["stop_reason"],
            'products': len(state["items"]),
        })

        return ChatResponse(
            message=state["final_text"],
            products=[item.to_tool_dict() for item in state["items"]],
            processing_time_ms=processing_time_ms,
            stop_reason=StopReason(state["stop_reason"]),
            metadata=ChatMetadata(
                model_used=self.settings.llm.model_name,
                tool_rounds=state["rounds"],
                tool_calls=list(state["executed"].keys()),
                mock_response=state["mock_response"],
            ),
        )

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """Get assistant configuration and retrieval statistics."""
        return {
            "initialized": self._initialized,
            "llm_available": self.llm_available,
            "configuration": {
                "model_name": self.settings.llm.model_name,
                "temperature": self.settings.llm.temperature,
                "max_tool_rounds": self.settings.orchestrator.max_tool_rounds,
                "toolset_version": TOOLSET_VERSION,
            },
            "retrieval": self.retrieval_pipeline.get_pipeline_stats(),
        }

    async def health_check(self) -> Dict[str, Any]:
        """Check the assistant and the retrieval pipeline behind it."""
        retrieval_health = await self.retrieval_pipeline.health_check()
        health: Dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "components": {
                "llm": "healthy" if self.llm_available else "unavailable",
                "retrieval": retrieval_health["status"],
            },
            "errors": list(retrieval_health.get("errors", [])),
        }

        if not self._initialized or retrieval_health["status"] == "unhealthy":
            health["status"] = "unhealthy"
            if not self._initialized:
                health["errors"].append("Assistant not initialized")
        elif not self.llm_available or retrieval_health["status"] == "degraded":
            health["status"] = "degraded"

        return health
