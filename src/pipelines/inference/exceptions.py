"""Custom exception classes for the inference pipeline.

The orchestrator never lets these reach the end user: LLM failures turn into
a canned or fallback answer and tool argument errors are reported back to the
model as structured payloads.
"""

from typing import Any, Dict, List, Optional


class InferenceError(Exception):
    """Base exception for inference pipeline errors.

    Attributes:
        message: Human-readable error description
        error_code: Optional machine-readable error code
        details: Optional dictionary with additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(InferenceError):
    """Raised when inference configuration is invalid or missing.

    Attributes:
        missing_keys: List of missing configuration keys
    """

    def __init__(
        self,
        message: str,
        missing_keys: Optional[List[str]] = None,
        error_code: Optional[str] = "CONFIG_ERROR",
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.missing_keys = missing_keys or []
        details = details or {}
        if self.missing_keys:
            details["missing_keys"] = self.missing_keys
        super().__init__(message, error_code, details)


class LLMError(InferenceError):
    """Raised when a chat model call fails.

    Attributes:
        status_code: HTTP status code from the API response
        provider: Name of the LLM provider (e.g., "openai")
        model: Model name that was being used
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        error_code: Optional[str] = "LLM_ERROR",
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.status_code = status_code
        self.provider = provider
        self.model = model
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if provider:
            details["provider"] = provider
        if model:
            details["model"] = model
        super().__init__(message, error_code, details)


class ToolArgumentError(InferenceError):
    """Raised when the model calls an unknown tool or passes malformed arguments.

    Attributes:
        tool_name: Name of the tool the model asked for
        errors: Validation error messages, one per offending field
    """

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
        error_code: Optional[str] = "TOOL_ARGUMENT_ERROR",
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.tool_name = tool_name
        self.errors = errors or []
        details = details or {}
        if tool_name:
            details["tool"] = tool_name
        if self.errors:
            details["errors"] = self.errors
        super().__init__(message, error_code, details)

    def to_payload(self) -> Dict[str, Any]:
        """Structured tool response the model can correct itself from."""
        return {"error": self.message, "tool": self.tool_name, "details": self.errors}


class TimeoutError(InferenceError):
    """Raised when a chat model call exceeds its timeout.

    Attributes:
        timeout_seconds: The timeout value that was exceeded
        operation: Name of the operation that timed out
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        operation: Optional[str] = None,
        error_code: Optional[str] = "TIMEOUT_ERROR",
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.operation = operation
        details = details or {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        if operation:
            details["operation"] = operation
        super().__init__(message, error_code, details)
