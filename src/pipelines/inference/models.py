"""Pydantic request and response models for the shopping assistant."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class StopReason(str, Enum):
    """Why a tool-calling session ended."""

    ANSWERED = "answered"
    DUPLICATE_CALLS = "duplicate_calls"
    MAX_ROUNDS = "max_rounds"
    LLM_ERROR = "llm_error"


class UserContext(BaseModel):
    """Optional personalization hints rendered into the system prompt."""

    price_preference: Optional[str] = None
    preferred_categories: List[str] = Field(default_factory=list)
    recently_viewed: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.price_preference or self.preferred_categories or self.recently_viewed)


class ChatRequest(BaseModel):
    """One user turn."""

    message: str = Field(..., min_length=1, max_length=2000)
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    user_context: Optional[UserContext] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v.strip()


class ChatMetadata(BaseModel):
    """Metadata about one assistant turn."""

    model_used: Optional[str] = None
    tool_rounds: int = 0
    tool_calls: List[str] = Field(default_factory=list)
    mock_response: bool = False


class ChatResponse(BaseModel):
    """Assistant answer with the catalog items the tools surfaced."""

    message: str
    products: List[Dict[str, Any]] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    stop_reason: StopReason = StopReason.ANSWERED
    metadata: ChatMetadata = Field(default_factory=ChatMetadata)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
