"""
Configuration Data Models.

Defines all configuration schemas using Pydantic for validation
and type safety.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    def to_logging(self) -> int:
        """Numeric level for the logging module."""
        return getattr(logging, self.value)


class HistoryBackend(str, Enum):
    """Where run snapshots are kept."""

    MEMORY = "memory"
    FILE = "file"


class GenerationConfig(BaseModel):
    """Configuration for the section generation orchestrator.

    Attributes:
        batch_size: Sections dispatched concurrently per batch
        max_retries: Automatic retries per section before it fails
        retry_delay_seconds: Fixed delay before a retry is re-dispatched
        progress_ceiling: Share of run progress covered by batches; the
            remainder is reserved for finalization
        progress_tick_seconds: Interval of in-flight progress ticks (0 = off)
        auto_compile: Compile the document as soon as the run settles
    """

    batch_size: int = Field(default=3, ge=1, le=50, description="Concurrent sections per batch")
    max_retries: int = Field(default=2, ge=0, le=10, description="Automatic retries per section")
    retry_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Delay before an automatic retry",
    )
    progress_ceiling: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Run progress reached when every batch was attempted",
    )
    progress_tick_seconds: float = Field(
        default=3.0,
        ge=0,
        description="In-flight progress tick interval (0 disables ticking)",
    )
    auto_compile: bool = Field(default=False, description="Compile when the run settles")


class ServiceConfig(BaseModel):
    """Configuration for the content generation service.

    Attributes:
        base_url: OpenRouter API base URL
        model: Model identifier in provider/model form
        max_tokens: Maximum output tokens per section
        temperature: Sampling temperature
        timeout_seconds: Per-request timeout
        requests_per_minute: Client-side rate limit
        rate_limit_retries: Attempts for a rate-limited (429) request
        app_title: X-Title header sent to OpenRouter
    """

    base_url: str = Field(default="https://openrouter.ai/api/v1")
    model: str = Field(
        default="anthropic/claude-sonnet-4",
        description="Model identifier",
        examples=["anthropic/claude-sonnet-4", "openai/gpt-4o"],
    )
    max_tokens: int = Field(default=4000, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=120.0, gt=0)
    requests_per_minute: int = Field(default=60, ge=1)
    rate_limit_retries: int = Field(default=3, ge=1, le=10)
    app_title: str = Field(default="SectionForge")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Strip trailing slashes so endpoint joins stay predictable."""
        if not v.strip():
            raise ValueError("Service base_url cannot be empty")
        return v.strip().rstrip("/")


class HistoryConfig(BaseModel):
    """Configuration for the run history store.

    Attributes:
        backend: memory or file
        directory: Directory for file snapshots
        max_runs: Number of runs retained by the file store
    """

    backend: HistoryBackend = Field(default=HistoryBackend.FILE)
    directory: str = Field(default="./history", description="Snapshot directory")
    max_runs: int = Field(default=50, ge=1, description="Runs kept on disk")


class OutputConfig(BaseModel):
    """Configuration for compiled documents.

    Attributes:
        base_dir: Directory compiled documents are written to
        create_dirs: Create directories if they don't exist
    """

    base_dir: str = Field(default="./output", description="Compiled document directory")
    create_dirs: bool = Field(default=True)

    def get_path(self, filename: str) -> Path:
        """Full path of an output file."""
        return Path(self.base_dir) / filename


class CatalogConfig(BaseModel):
    """Configuration for the section catalog.

    Attributes:
        path: Optional YAML file with additional templates
    """

    path: Optional[str] = Field(default=None, description="Extra templates YAML file")


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Root level for sectionforge loggers
        file: Optional log file
        rich: Render console logs with rich
    """

    level: LogLevel = Field(default=LogLevel.INFO)
    file: Optional[str] = Field(default=None)
    rich: bool = Field(default=True)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept lowercase level names."""
        if isinstance(v, str):
            return v.upper()
        return v


class SectionForgeConfig(BaseModel):
    """Root configuration for the entire system.

    Attributes:
        generation: Orchestrator settings
        service: Generation service settings
        history: Run history settings
        output: Compiled document settings
        catalog: Catalog settings
        logging: Logging settings
        debug: Enable debug mode
    """

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Enable debug mode")

    def to_yaml_dict(self) -> dict[str, Any]:
        """Convert to YAML-friendly dictionary."""
        return self.model_dump(mode="json", exclude_none=True)
