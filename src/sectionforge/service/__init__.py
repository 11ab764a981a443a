"""
SectionForge - Content Generation Service

The service interface consumed by the orchestrator, its error classes
and the OpenRouter implementation.
"""

from sectionforge.service.base import (
    AuthenticationError,
    ContentGenerationService,
    GenerationResult,
    PermanentServiceError,
    RateLimitError,
    ResponseParseError,
    ServiceError,
    TransientServiceError,
)
from sectionforge.service.client import (
    OpenRouterSectionService,
    RateLimiter,
    build_section_prompt,
    parse_section_payload,
)

__all__ = [
    # Interface
    "ContentGenerationService",
    "GenerationResult",
    # Errors
    "ServiceError",
    "TransientServiceError",
    "RateLimitError",
    "PermanentServiceError",
    "AuthenticationError",
    "ResponseParseError",
    # OpenRouter
    "OpenRouterSectionService",
    "RateLimiter",
    "build_section_prompt",
    "parse_section_payload",
]
