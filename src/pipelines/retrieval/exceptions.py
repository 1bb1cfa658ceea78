"""Custom exceptions for the retrieval pipeline."""

from typing import Dict, Any, List, Optional


class RetrievalError(Exception):
    """Base exception for retrieval pipeline errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.error_code = error_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and tool payloads."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(RetrievalError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None, invalid_values: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFIG_ERROR")
        self.missing_keys = missing_keys or []
        self.invalid_values = invalid_values or {}
        self.details = {
            "missing_keys": self.missing_keys,
            "invalid_values": self.invalid_values
        }


class EmbeddingError(RetrievalError):
    """Raised when query embedding fails."""

    def __init__(self, message: str, query: Optional[str] = None, model: Optional[str] = None, error_code: str = "EMBEDDING_ERROR"):
        super().__init__(message, error_code=error_code)
        self.query = query
        self.model = model
        self.details = {
            "query": query,
            "model": model
        }


class RateLimitError(EmbeddingError):
    """Raised when the embedding service signals a rate limit (HTTP 429)."""

    def __init__(self, message: str, query: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message, query=query, model=model, error_code="RATE_LIMITED")


class SearchError(RetrievalError):
    """Raised when a candidate source query fails."""

    def __init__(self, message: str, source: Optional[str] = None, search_params: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="SEARCH_ERROR")
        self.source = source
        self.search_params = search_params or {}
        self.details = {
            "source": source,
            "search_params": self.search_params
        }


class CatalogError(RetrievalError):
    """Raised when the catalog store cannot answer a query."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, error_code="CATALOG_ERROR")
        self.operation = operation
        self.details = {"operation": operation}


class RerankError(RetrievalError):
    """Raised when the reranking service fails or is unavailable."""

    def __init__(self, message: str, model: Optional[str] = None, candidate_count: Optional[int] = None):
        super().__init__(message, error_code="RERANK_ERROR")
        self.model = model
        self.candidate_count = candidate_count
        self.details = {
            "model": model,
            "candidate_count": candidate_count
        }
