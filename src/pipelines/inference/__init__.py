"""Inference Pipeline for the conversational shopping assistant.

Components:
- LLMClient: OpenAI chat model client with the shopping tools bound
- ToolExecutor: Runs validated tool calls against the retrieval pipeline
- ToolCallingWorkflow: LangGraph loop with bounded rounds and idempotent dispatch
- ShoppingAssistant: Main entry point answering one user turn
"""

from .exceptions import (
    InferenceError,
    ConfigurationError,
    LLMError,
    ToolArgumentError,
    TimeoutError,
)
from .config import InferenceSettings, LLMConfig, OrchestratorConfig, get_inference_settings, create_settings_from_yaml
from .models import ChatRequest, ChatResponse, StopReason, UserContext
from .pipeline import ShoppingAssistant

__all__ = [
    # Exceptions
    "InferenceError",
    "ConfigurationError",
    "LLMError",
    "ToolArgumentError",
    "TimeoutError",
    # Configuration
    "InferenceSettings",
    "LLMConfig",
    "OrchestratorConfig",
    "get_inference_settings",
    "create_settings_from_yaml",
    # Models
    "ChatRequest",
    "ChatResponse",
    "StopReason",
    "UserContext",
    # Pipeline
    "ShoppingAssistant",
]
