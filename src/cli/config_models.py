"""Pydantic configuration models for the fact store."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LLM_PROVIDERS = {"auto", "claude", "openai"}
VALID_EMBEDDING_PROVIDERS = {"auto", "openai", "chroma", "none"}
VALID_JUDGES = {"llm", "heuristic"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _expand_env(value: Optional[str]) -> Optional[str]:
    """Resolve a ``${VAR}`` reference; other strings pass through."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1], "") or None
    return value


class LLMConfig(BaseModel):
    """Text-generation provider used for extraction and conflict judgment."""

    provider: str = "auto"
    model: Optional[str] = None  # None = provider's cheap-tier default
    api_key: Optional[str] = None
    timeout_seconds: float = Field(20.0, gt=0)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v


class EmbeddingsConfig(BaseModel):
    """Embedding provider configuration."""

    provider: str = "auto"
    model: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = Field(10.0, gt=0)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_EMBEDDING_PROVIDERS:
            raise ValueError(
                f"Invalid embedding provider: {v}. Must be one of {VALID_EMBEDDING_PROVIDERS}"
            )
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    db_path: Path = Path("~/.factstore/facts.db")
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        if self.log_file is not None:
            self.log_file = self.log_file.expanduser()
        return self


class KnowledgeConfig(BaseModel):
    """Fact store behaviour."""

    default_team: str = "default"
    min_confidence: float = Field(0.6, ge=0.0, le=1.0)
    fallback_confidence: float = Field(0.5, ge=0.0, le=1.0)
    default_search_limit: int = Field(20, ge=1)
    conflict_candidates: int = Field(5, ge=1)
    conflict_similarity_floor: float = Field(0.7, ge=-1.0, le=1.0)
    judge: str = "llm"
    pending_ttl_seconds: int = Field(3600, ge=1)
    reembed_on_edit: bool = False
    max_context_chars: int = Field(4000, ge=100)

    @field_validator("judge")
    @classmethod
    def validate_judge(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_JUDGES:
            raise ValueError(f"Invalid judge: {v}. Must be one of {VALID_JUDGES}")
        return v


class RetryConfig(BaseModel):
    """Retry settings for rate-limited LLM calls."""

    max_attempts: int = Field(2, ge=1)
    min_wait: float = Field(1.0, ge=0)
    max_wait: float = Field(8.0, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class FactStoreConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        self.llm.api_key = _expand_env(self.llm.api_key)
        self.embeddings.api_key = _expand_env(self.embeddings.api_key)
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "FactStoreConfig":
        """Create config from dict, accepting string paths."""
        paths = data.get("paths")
        if isinstance(paths, dict):
            for key in ("db_path", "log_file"):
                if isinstance(paths.get(key), str):
                    paths[key] = Path(paths[key])
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
