"""
Shared test helpers: a scriptable generation service and template builders.
"""

import asyncio
from collections import defaultdict
from typing import Any

from sectionforge.models import (
    DocumentTemplate,
    SectionCategory,
    SectionDefinition,
    SectionPriority,
)
from sectionforge.history import InMemoryHistoryStore
from sectionforge.service import ContentGenerationService, GenerationResult, TransientServiceError


def structured_result(section_id: str, title: str | None = None) -> GenerationResult:
    """A successful structured result for ``section_id``."""
    data: dict[str, Any] = {
        "title": title or f"{section_id.upper()} (generated)",
        "keyMetrics": [{"label": "ROI", "value": "25%", "description": "Expected return"}],
        "mainPoints": [f"Insight for {section_id}"],
        "implementationSteps": [
            {"step": 1, "title": "Assess", "description": "Evaluate", "timeline": "2 weeks"}
        ],
        "risks": [{"risk": "Delays", "impact": "Medium", "mitigation": "Plan ahead"}],
        "recommendations": [f"Recommendation for {section_id}"],
    }
    return GenerationResult(
        display_payload=f"<div class='section'>{section_id}</div>",
        structured_data=data,
        model="fake-model",
    )


def display_only_result(section_id: str) -> GenerationResult:
    """A successful result without structured data."""
    return GenerationResult(display_payload=f"Plain text for {section_id}", model="fake-model")


class FakeGenerationService(ContentGenerationService):
    """Scriptable generation service.

    Each section id maps to a list of outcomes consumed in order; an
    outcome is a GenerationResult or an exception to raise. Sections
    without a script (or with an exhausted one) succeed with a
    structured result.

    Attributes:
        calls: Section ids in the order generate() was entered
        max_in_flight: Highest number of concurrent generate() calls
    """

    def __init__(
        self,
        script: dict[str, list[Any]] | None = None,
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
    ) -> None:
        self._script = {key: list(value) for key, value in (script or {}).items()}
        self._delay = delay
        self._delays = delays or {}
        self.calls: list[str] = []
        self.contexts: list[dict[str, Any]] = []
        self.attempts: dict[str, int] = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0
        self.gates: dict[str, asyncio.Event] = {}
        self.closed = False

    def gate(self, section_id: str) -> asyncio.Event:
        """Block generation of ``section_id`` until the event is set."""
        event = asyncio.Event()
        self.gates[section_id] = event
        return event

    async def generate(self, section: SectionDefinition, context: dict[str, Any]) -> GenerationResult:
        self.calls.append(section.id)
        self.contexts.append(context)
        self.attempts[section.id] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.gates.get(section.id)
            if gate is not None:
                await gate.wait()
            delay = self._delays.get(section.id, self._delay)
            if delay:
                await asyncio.sleep(delay)

            outcomes = self._script.get(section.id)
            if outcomes:
                outcome = outcomes.pop(0)
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
            return structured_result(section.id)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


def always_fail(times: int = 10, message: str = "Service unavailable") -> list[Exception]:
    """Script entry failing ``times`` attempts in a row."""
    return [TransientServiceError(message, code="server_error", status_code=503) for _ in range(times)]


def make_template(section_ids: list[str], template_id: str = "sample") -> DocumentTemplate:
    """Template with one section per id, all high priority except the last."""
    sections = [
        SectionDefinition(
            id=sid,
            title=f"Section {sid.upper()}",
            description=f"Description of {sid}",
            category=SectionCategory.ANALYSIS,
            priority=SectionPriority.HIGH if i < len(section_ids) - 1 else SectionPriority.LOW,
            estimated_pages=i + 1,
        )
        for i, sid in enumerate(section_ids)
    ]
    return DocumentTemplate(
        id=template_id,
        name="Sample Industry",
        description="Template used in tests",
        sections=sections,
    )



class FlakyHistoryStore(InMemoryHistoryStore):
    """In-memory store whose snapshot writes fail on selected calls.

    Args:
        fail_on: 1-based write numbers that raise OSError
    """

    def __init__(self, fail_on: set[int] | None = None, fail_always: bool = False) -> None:
        super().__init__()
        self.fail_on = set(fail_on or ())
        self.fail_always = fail_always
        self.writes = 0
        self.failures = 0

    def snapshot(self, run_id, run) -> None:
        self.writes += 1
        if self.fail_always or self.writes in self.fail_on:
            self.failures += 1
            raise OSError(f"disk full (write {self.writes})")
        super().snapshot(run_id, run)
