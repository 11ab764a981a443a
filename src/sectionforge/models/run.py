"""
Run state models.

A GenerationRun is the authoritative record of one caller-initiated
generation attempt. It is persisted as a full snapshot after every
mutation, so everything here round-trips through JSON.
"""

import re
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from sectionforge.models.base import RunStatus, SectionStatus


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def safe_run_id(run_id: str) -> str:
    """Run id reduced to characters that are safe in a file name.

    Raises:
        ValueError: If nothing usable is left
    """
    safe = _UNSAFE_ID_CHARS.sub("_", run_id).strip("._")
    if not safe:
        raise ValueError(f"Run id cannot be used as a filename: {run_id!r}")
    return safe


class InvalidTransitionError(Exception):
    """Raised when a section state update breaks the lifecycle ordering."""

    def __init__(self, section_id: str, current: SectionStatus, target: SectionStatus) -> None:
        super().__init__(
            f"Illegal transition for section {section_id}: {current.value} -> {target.value}"
        )
        self.section_id = section_id
        self.current = current
        self.target = target


class SectionTaskState(BaseModel):
    """State of one section within one run.

    Attributes:
        section_id: Section this state belongs to
        status: Lifecycle status
        progress_percent: Progress of the section, 0-100
        retry_count: Automatic retries consumed so far
        content: Display payload once completed
        structured_data: Structured payload, absent in display-only mode
        title: Title override taken from structured data
        error: Message of the most recent failure
        updated_at: Time of the last transition
    """

    section_id: str
    status: SectionStatus = SectionStatus.PENDING
    progress_percent: int = Field(default=0, ge=0, le=100)
    retry_count: int = Field(default=0, ge=0)
    content: str | None = None
    structured_data: dict[str, Any] | None = None
    title: str | None = None
    error: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    def evolve(self, **changes: Any) -> "SectionTaskState":
        """Return a copy with ``changes`` applied and a fresh timestamp."""
        changes.setdefault("updated_at", utcnow())
        return self.model_copy(update=changes)


class AggregateCounts(BaseModel):
    """Per-status counts for a run.

    ``pending + generating + completed + failed == total`` always holds.
    """

    pending: int = 0
    generating: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
    percent: float = Field(default=0.0, description="Mean of section progress percents")

    @property
    def done(self) -> int:
        """Sections in a terminal state."""
        return self.completed + self.failed

    @property
    def is_settled(self) -> bool:
        """Whether every section reached a terminal state."""
        return self.total > 0 and self.done == self.total


class GenerationRun(BaseModel):
    """One generation run over a selected set of sections.

    Attributes:
        run_id: Unique run identifier
        template_id: Template the sections come from
        selected_section_ids: Selected ids in catalog order
        context: Run context passed to the generation service
        created_at: When the run started
        updated_at: Last mutation time
        status: Aggregate run status
        sections: Per-section task state
        finalized: One-shot completion flag
        finalized_at: When the completion detector fired
        is_partially_complete: Some but not all sections completed
        progress_percent: Batch-level progress (0-100)
        phase: Human readable progress message
        compiled: Whether a compile succeeded
        compiled_at: Time of the last successful compile
        artifact_path: Location of the last compiled artifact
        error: Run-level failure message
    """

    run_id: str
    template_id: str
    selected_section_ids: list[str] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    status: RunStatus = RunStatus.PENDING
    sections: dict[str, SectionTaskState] = Field(default_factory=dict)
    finalized: bool = False
    finalized_at: datetime | None = None
    is_partially_complete: bool = False
    progress_percent: int = Field(default=0, ge=0, le=100)
    phase: str = "Initializing..."
    compiled: bool = False
    compiled_at: datetime | None = None
    artifact_path: str | None = None
    error: str | None = None

    @classmethod
    def create(
        cls,
        run_id: str,
        template_id: str,
        section_ids: list[str],
        context: dict[str, Any] | None = None,
    ) -> "GenerationRun":
        """Create a fresh run with every selected section pending."""
        return cls(
            run_id=run_id,
            template_id=template_id,
            selected_section_ids=list(section_ids),
            context=dict(context or {}),
            sections={sid: SectionTaskState(section_id=sid) for sid in section_ids},
        )

    def aggregate(self) -> AggregateCounts:
        """Recompute aggregate counts from the section map."""
        counts = {status: 0 for status in SectionStatus}
        total_percent = 0
        for state in self.sections.values():
            counts[state.status] += 1
            total_percent += state.progress_percent

        total = len(self.selected_section_ids)
        return AggregateCounts(
            pending=counts[SectionStatus.PENDING],
            generating=counts[SectionStatus.GENERATING],
            completed=counts[SectionStatus.COMPLETED],
            failed=counts[SectionStatus.FAILED],
            total=total,
            percent=round(total_percent / total, 2) if total else 0.0,
        )

    def ordered_states(self) -> list[SectionTaskState]:
        """Section states in catalog order."""
        return [self.sections[sid] for sid in self.selected_section_ids if sid in self.sections]

    def ids_with_status(self, status: SectionStatus) -> list[str]:
        """Ids of sections currently in ``status``, catalog order."""
        return [s.section_id for s in self.ordered_states() if s.status == status]


class RunStatusReport(BaseModel):
    """Caller-facing view of a run."""

    run_id: str
    template_id: str
    status: RunStatus
    aggregate: AggregateCounts
    sections: list[SectionTaskState]
    progress_percent: int
    phase: str
    is_partially_complete: bool
    compiled: bool
    error: str | None = None

    @classmethod
    def from_run(cls, run: GenerationRun) -> "RunStatusReport":
        return cls(
            run_id=run.run_id,
            template_id=run.template_id,
            status=run.status,
            aggregate=run.aggregate(),
            sections=[s.model_copy() for s in run.ordered_states()],
            progress_percent=run.progress_percent,
            phase=run.phase,
            is_partially_complete=run.is_partially_complete,
            compiled=run.compiled,
            error=run.error,
        )

    @property
    def failed_section_ids(self) -> list[str]:
        return [s.section_id for s in self.sections if s.status == SectionStatus.FAILED]
