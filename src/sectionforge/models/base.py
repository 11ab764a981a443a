"""
Base enumerations used throughout the data models.

These enums provide closed, type-safe values for section and run
lifecycle states and for catalog metadata.
"""

from enum import Enum


class SectionStatus(str, Enum):
    """Lifecycle state of a single section within a run.

    Transitions are monotonic:
    pending -> generating -> completed | failed.
    generating -> pending happens only for an automatic retry and
    failed -> pending only for a manual retry.
    """

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no automatic transition leaves this state."""
        return self in (SectionStatus.COMPLETED, SectionStatus.FAILED)

    def can_transition_to(self, target: "SectionStatus") -> bool:
        """Check whether moving from this status to ``target`` is legal."""
        if self == target:
            # Progress ticks re-report the same status
            return self != SectionStatus.COMPLETED
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[SectionStatus, frozenset[SectionStatus]] = {
    SectionStatus.PENDING: frozenset({SectionStatus.GENERATING}),
    SectionStatus.GENERATING: frozenset(
        {SectionStatus.COMPLETED, SectionStatus.FAILED, SectionStatus.PENDING}
    ),
    SectionStatus.COMPLETED: frozenset(),
    SectionStatus.FAILED: frozenset({SectionStatus.PENDING}),
}


class RunStatus(str, Enum):
    """Aggregate state of a generation run."""

    PENDING = "pending"
    GENERATING = "generating"
    GENERATED = "generated"
    FAILED = "failed"
    COMPILED = "compiled"


class SectionPriority(str, Enum):
    """Catalog priority of a section."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SectionCategory(str, Enum):
    """Catalog category of a section."""

    EXECUTIVE = "executive"
    ANALYSIS = "analysis"
    IMPLEMENTATION = "implementation"
    TECHNICAL = "technical"
    FINANCIAL = "financial"
