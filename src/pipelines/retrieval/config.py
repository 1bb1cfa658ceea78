"""Configuration management for the retrieval pipeline."""

import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


# Default lexical table used to infer a brand from free text when the caller
# did not supply one. Keys are lowercase words, values canonical brand names.
DEFAULT_BRAND_ALIASES: Dict[str, str] = {
    "samsung": "Samsung",
    "apple": "Apple",
    "iphone": "Apple",
    "oneplus": "OnePlus",
    "google": "Google",
    "pixel": "Google",
    "sony": "Sony",
    "jbl": "JBL",
    "bose": "Bose",
    "boat": "boAt",
    "marshall": "Marshall",
    "nike": "Nike",
    "iqoo": "iQOO",
}


class RetrievalSettings(BaseSettings):
    """Environment-based configuration for the hybrid retrieval pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API Keys (from environment only); missing keys disable semantic search
    openai_api_key: Optional[str] = Field(default=None)
    pinecone_api_key: Optional[str] = Field(default=None)

    # Pinecone Settings
    pinecone_index_name: str = Field(default="cartiq-products")
    pinecone_namespace: str = Field(default="products")

    # Embedding Settings
    embedding_model: str = Field(default="text-embedding-3-small")
    embedding_dimension: int = Field(default=1536, ge=1)
    embedding_cache_enabled: bool = Field(default=True)
    embedding_cache_ttl_seconds: int = Field(default=3600, ge=0, le=86400)
    embedding_cache_max_size: int = Field(default=500, ge=1, le=100000)
    embedding_retry_max_attempts: int = Field(default=1, ge=1, le=10)
    embedding_retry_base_delay_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    embedding_retry_max_delay_seconds: float = Field(default=8.0, ge=0.0, le=120.0)

    # Result budgets
    page_size: int = Field(default=10, ge=1, le=100)
    vector_candidates: int = Field(default=50, ge=1, le=500)
    hybrid_candidates: int = Field(default=30, ge=1, le=500)
    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # Per-source timeout applied to every candidate adapter call
    source_timeout_seconds: float = Field(default=5.0, gt=0.0, le=60.0)

    # Rerank Settings
    rerank_enabled: bool = Field(default=True)
    rerank_model_name: str = Field(default="cross-encoder/ms-marco-MiniLM-L-6-v2")
    rerank_timeout_seconds: float = Field(default=5.0, gt=0.0, le=60.0)
    rerank_description_limit: int = Field(default=200, ge=0, le=2000)

    # Reference data
    brand_aliases: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BRAND_ALIASES))
    category_domains_path: str = Field(default="config/category_domains.yaml")

    # Logging Settings
    log_level: str = Field(default="INFO")

    @field_validator("brand_aliases")
    @classmethod
    def normalize_brand_aliases(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Lowercase alias keys so lookups can be case-insensitive."""
        return {alias.strip().lower(): brand.strip() for alias, brand in v.items() if alias.strip()}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is supported."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v.upper()

    @property
    def semantic_search_configured(self) -> bool:
        """Whether credentials for the embedding and vector index services are present."""
        return bool(self.openai_api_key and self.pinecone_api_key)


class ConfigurationLoader:
    """Loads retrieval configuration from a YAML file and environment variables."""

    # Nested YAML sections whose keys are prefixed with the section name
    FLATTENED_SECTIONS = ("pinecone", "embedding", "rerank")

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML configuration file (optional)
        """
        self.config_path = config_path or "config/retrieval.yaml"

    def load_config(self) -> RetrievalSettings:
        """Load configuration from YAML file and environment variables.

        Values passed from YAML are explicit init arguments, so they win over
        environment variables; keys absent from YAML fall back to the
        environment and then to defaults.

        Returns:
            RetrievalSettings instance with loaded configuration

        Raises:
            ConfigurationError: If configuration validation fails
        """
        flattened = self._flatten_yaml_config(self._load_yaml_config())

        try:
            return RetrievalSettings(**flattened)
        except ValidationError as e:
            invalid_values = {
                ".".join(str(part) for part in error["loc"]): error["msg"]
                for error in e.errors()
            }
            missing_keys = [
                ".".join(str(part) for part in error["loc"])
                for error in e.errors() if error["type"] == "missing"
            ]
            raise ConfigurationError(
                f"Configuration validation failed: {len(e.errors())} error(s)",
                missing_keys=missing_keys,
                invalid_values=invalid_values
            ) from e

    def _load_yaml_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file.

        Returns:
            Dictionary with configuration values from YAML file

        Raises:
            ConfigurationError: If YAML file is invalid
        """
        config_file = Path(self.config_path)
        if not config_file.exists():
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration in {self.config_path}: {str(e)}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {self.config_path}: {str(e)}") from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigurationError(
                f"Configuration file {self.config_path} must contain a mapping",
                invalid_values={"root": type(content).__name__}
            )
        return content

    def _flatten_yaml_config(self, yaml_config: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten nested YAML sections to match RetrievalSettings field names.

        ``embedding: {model: x}`` becomes ``embedding_model: x``; every other
        top-level key is passed through unchanged.
        """
        flattened: Dict[str, Any] = {}

        for key, value in yaml_config.items():
            if key in self.FLATTENED_SECTIONS and isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    flattened[f"{key}_{sub_key}"] = sub_value
            else:
                flattened[key] = value

        return flattened

    def missing_credentials(self) -> List[str]:
        """List credential environment variables that are not set.

        Semantic search is the only consumer of these credentials; the other
        candidate sources work without them.
        """
        required_env_vars = ["OPENAI_API_KEY", "PINECONE_API_KEY"]
        return [var for var in required_env_vars if not os.getenv(var)]
