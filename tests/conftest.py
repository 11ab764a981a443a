"""
SectionForge Test Configuration and Fixtures

This module provides pytest fixtures for testing section generation runs.
All fixtures avoid real API calls and provide deterministic behavior.

Fixture Categories:
- Fake Generation Service: Scripted per-section outcomes
- Templates: Small catalogs with predictable ordering
- Configuration: Generation settings with near-zero delays
- Stores: In-memory and file history stores
"""

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from sectionforge.config import GenerationConfig
from sectionforge.history import InMemoryHistoryStore, JsonFileHistoryStore
from sectionforge.models import DocumentTemplate

from tests.helpers import FakeGenerationService, make_template

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


# =============================================================================
# Fake Generation Service
# =============================================================================


@pytest.fixture
def fake_service() -> FakeGenerationService:
    """Generation service that always succeeds."""
    return FakeGenerationService()


# =============================================================================
# Template Fixtures
# =============================================================================


@pytest.fixture
def sample_template() -> DocumentTemplate:
    """Template with sections a..e in catalog order."""
    return make_template(["a", "b", "c", "d", "e"])


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def fast_config() -> GenerationConfig:
    """Generation settings with near-zero delays."""
    return GenerationConfig(
        batch_size=3,
        max_retries=2,
        retry_delay_seconds=0.01,
        progress_tick_seconds=0,
    )


# =============================================================================
# History Fixtures
# =============================================================================


@pytest.fixture
def memory_history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def file_history(tmp_path: Path) -> JsonFileHistoryStore:
    return JsonFileHistoryStore(tmp_path / "history", max_runs=10)


# =============================================================================
# Service Response Fixtures
# =============================================================================


@pytest.fixture
def section_payload() -> dict[str, Any]:
    """Well-formed section JSON as the model is asked to return it."""
    return {
        "htmlContent": "<div class='section'><h2>Executive Summary</h2></div>",
        "pdfData": {
            "title": "Executive Summary",
            "keyMetrics": [{"label": "ROI", "value": "25%", "description": "Expected"}],
            "mainPoints": ["Automation reduces manual effort"],
            "implementationSteps": [],
            "risks": [],
            "recommendations": ["Start with a pilot"],
        },
    }


@pytest.fixture
def chat_completion(section_payload):
    """Factory for OpenRouter chat completion bodies."""

    def _build(content: str | None = None) -> dict[str, Any]:
        return {
            "id": "gen-123",
            "model": "anthropic/claude-sonnet-4",
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": content if content is not None else json.dumps(section_payload),
                    },
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
        }

    return _build


@pytest.fixture
def async_mock() -> AsyncMock:
    """Create a generic async mock."""
    return AsyncMock()
