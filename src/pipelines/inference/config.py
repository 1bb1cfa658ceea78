"""Configuration management for the inference pipeline.

This module provides Pydantic-based configuration classes for the chat model
client and the tool-calling orchestrator, with support for environment
variables and YAML config files.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class LLMConfig(BaseSettings):
    """Configuration for the LLM client.

    Attributes:
        provider: LLM provider name (only "openai" is supported)
        model_name: Model identifier (e.g., "gpt-4o-mini", "gpt-4o")
        temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
        max_tokens: Maximum tokens in the response
        api_key: API key for the provider (loaded from environment)
        timeout_seconds: Upper bound for a single model turn
    """

    model_config = SettingsConfigDict(
        env_prefix="INFERENCE_LLM_",
        extra="ignore"
    )

    provider: str = Field(default="openai", description="LLM provider")
    model_name: str = Field(default="gpt-4o-mini", description="Model name")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=1024, gt=0, description="Maximum response tokens")
    api_key: Optional[str] = Field(default=None, description="API key")
    timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0, description="Per-turn timeout")

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Validate that provider is supported."""
        supported = ["openai"]
        if v.lower() not in supported:
            raise ValueError(f"Provider must be one of: {supported}")
        return v.lower()


class OrchestratorConfig(BaseSettings):
    """Configuration for the tool-calling loop.

    Attributes:
        max_tool_rounds: Ceiling on tool dispatch rounds per session
        store_name: Assistant persona name used in the system prompt
        currency_symbol: Currency shown to the model for prices
        publish_events: Whether retrieval tool calls emit search events
    """

    model_config = SettingsConfigDict(
        env_prefix="INFERENCE_ORCHESTRATOR_",
        extra="ignore"
    )

    max_tool_rounds: int = Field(default=5, ge=1, le=20, description="Maximum tool rounds")
    store_name: str = Field(default="CartIQ", description="Assistant name")
    currency_symbol: str = Field(default="₹", description="Currency symbol")
    publish_events: bool = Field(default=True, description="Emit search analytics events")


class InferenceSettings(BaseSettings):
    """Main configuration for the inference pipeline.

    Attributes:
        openai_api_key: OpenAI API key
        llm: LLM client configuration
        orchestrator: Tool-calling loop configuration
        retrieval_config_path: YAML file for the retrieval pipeline
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)

    retrieval_config_path: str = Field(
        default="config/retrieval.yaml",
        description="Retrieval pipeline configuration file"
    )

    def get_api_key(self) -> str:
        """Get the OpenAI API key, raising error if not configured.

        Raises:
            ConfigurationError: If API key is not configured
        """
        if self.openai_api_key:
            return self.openai_api_key

        if self.llm.api_key:
            return self.llm.api_key

        env_key = os.environ.get("OPENAI_API_KEY")
        if env_key:
            return env_key

        raise ConfigurationError(
            "OpenAI API key is required but not configured",
            missing_keys=["OPENAI_API_KEY"]
        )


_settings: Optional[InferenceSettings] = None


def get_inference_settings() -> InferenceSettings:
    """Get the inference settings instance."""
    global _settings
    if _settings is None:
        _settings = InferenceSettings()
    return _settings


def load_config_from_yaml(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file.

    Raises:
        ConfigurationError: If file cannot be loaded or parsed
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            error_code="CONFIG_FILE_NOT_FOUND",
            details={"path": str(path.absolute())}
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            error_code="CONFIG_PARSE_ERROR",
            details={"path": str(path.absolute()), "error": str(e)}
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            error_code="CONFIG_READ_ERROR",
            details={"path": str(path.absolute()), "error": str(e)}
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping",
            error_code="CONFIG_PARSE_ERROR",
            details={"path": str(path.absolute())}
        )
    return config


def create_settings_from_yaml(config_path: Optional[str] = None) -> InferenceSettings:
    """Create InferenceSettings from a YAML configuration file.

    YAML values are passed as explicit arguments; keys absent from YAML fall
    back to environment variables and then to defaults.

    Args:
        config_path: Path to YAML config file (default: config/inference.yaml)

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if config_path is None:
        config_path = "config/inference.yaml"

    yaml_config: Dict[str, Any] = {}
    if Path(config_path).exists():
        yaml_config = load_config_from_yaml(config_path)

    try:
        settings_kwargs: Dict[str, Any] = {
            "llm": LLMConfig(**(yaml_config.get("llm") or {})),
            "orchestrator": OrchestratorConfig(**(yaml_config.get("orchestrator") or {})),
        }
        if "retrieval_config_path" in yaml_config:
            settings_kwargs["retrieval_config_path"] = yaml_config["retrieval_config_path"]
        return InferenceSettings(**settings_kwargs)
    except ValidationError as e:
        raise ConfigurationError(
            f"Inference configuration validation failed: {len(e.errors())} error(s)",
            error_code="CONFIG_VALIDATION_ERROR",
            details={"errors": [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]}
        ) from e
