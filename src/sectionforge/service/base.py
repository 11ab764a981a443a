"""
Content generation service interface.

The orchestrator only depends on ContentGenerationService; concrete
services translate their own failures into the ServiceError classes
below so the section worker can apply a single retry budget.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from sectionforge.models.sections import SectionDefinition


class ServiceError(Exception):
    """Base exception for generation service failures."""

    def __init__(self, message: str, code: str = "service_error") -> None:
        super().__init__(message)
        self.code = code


class TransientServiceError(ServiceError):
    """Timeout, transport failure or 5xx response."""

    def __init__(self, message: str, code: str = "transient", status_code: int | None = None):
        super().__init__(message, code=code)
        self.status_code = status_code


class RateLimitError(TransientServiceError):
    """Raised when the provider rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: str | None = None):
        super().__init__(message, code="rate_limited", status_code=429)
        self.retry_after = retry_after


class PermanentServiceError(ServiceError):
    """Non-retryable rejection (4xx other than 429)."""

    def __init__(self, message: str, code: str = "permanent", status_code: int | None = None):
        super().__init__(message, code=code)
        self.status_code = status_code


class AuthenticationError(PermanentServiceError):
    """Raised when API authentication fails."""

    def __init__(self, message: str = "Invalid API key", status_code: int | None = 401):
        super().__init__(message, code="authentication", status_code=status_code)


class ResponseParseError(ServiceError):
    """The response carried no usable display content."""

    def __init__(self, message: str = "Empty response from generation service"):
        super().__init__(message, code="parse_error")


@dataclass
class GenerationResult:
    """Output of one successful section generation.

    Attributes:
        display_payload: Content to display (HTML fragment or raw text)
        structured_data: Structured payload, None when the service
            degraded to display-only mode
        model: Model that produced the content, if known
    """

    display_payload: str
    structured_data: dict[str, Any] | None = None
    model: str = ""

    @property
    def is_display_only(self) -> bool:
        return self.structured_data is None


class ContentGenerationService(ABC):
    """Generates content for one section at a time."""

    @abstractmethod
    async def generate(
        self,
        section: SectionDefinition,
        context: dict[str, Any],
    ) -> GenerationResult:
        """Generate content for a section.

        Args:
            section: Section to generate
            context: Run context (document name, requester details, ...)

        Returns:
            GenerationResult with the display payload and optional
            structured data

        Raises:
            ServiceError: Any failure, classified by subclass
        """

    async def close(self) -> None:
        """Release resources held by the service."""
