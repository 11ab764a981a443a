"""
SectionForge - Core Data Models

Pydantic models for catalog definitions, run state and assembled
documents. All models support JSON serialization.
"""

from sectionforge.models.base import (
    RunStatus,
    SectionCategory,
    SectionPriority,
    SectionStatus,
)
from sectionforge.models.document import (
    AssembledDocument,
    AssembledSection,
    CompiledArtifact,
)
from sectionforge.models.run import (
    AggregateCounts,
    GenerationRun,
    InvalidTransitionError,
    RunStatusReport,
    SectionTaskState,
    safe_run_id,
)
from sectionforge.models.sections import DocumentTemplate, SectionDefinition

__all__ = [
    # Base enums
    "SectionStatus",
    "RunStatus",
    "SectionPriority",
    "SectionCategory",
    # Catalog
    "SectionDefinition",
    "DocumentTemplate",
    # Run state
    "SectionTaskState",
    "AggregateCounts",
    "GenerationRun",
    "RunStatusReport",
    "InvalidTransitionError",
    "safe_run_id",
    # Documents
    "AssembledSection",
    "AssembledDocument",
    "CompiledArtifact",
]
