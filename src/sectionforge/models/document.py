"""
Document models produced by report assembly and the document compiler.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, computed_field

from sectionforge.models.run import utcnow


class AssembledSection(BaseModel):
    """A completed section projected into the document.

    Attributes:
        id: Section identifier
        title: Title (structured-data override or catalog title)
        description: Catalog description
        content: Display payload
        structured_data: Structured payload, None in display-only mode
        estimated_pages: Catalog size estimate
    """

    id: str
    title: str
    description: str = ""
    content: str
    structured_data: dict[str, Any] | None = None
    estimated_pages: int = 0

    @property
    def has_structured_data(self) -> bool:
        return bool(self.structured_data)


class AssembledDocument(BaseModel):
    """Ordered document structure handed to a DocumentCompiler.

    Attributes:
        run_id: Run the document was assembled from
        template_id: Source template
        title: Document title
        ordered_sections: Completed sections in catalog order
        total_sections: Number of selected sections
        failed_sections: Number of failed sections at assembly time
        generated_at: Assembly time
    """

    run_id: str
    template_id: str
    title: str
    ordered_sections: list[AssembledSection] = Field(default_factory=list)
    total_sections: int = 0
    failed_sections: int = 0
    generated_at: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def completed_sections(self) -> int:
        return len(self.ordered_sections)

    @computed_field
    @property
    def is_partially_complete(self) -> bool:
        return 0 < self.completed_sections < self.total_sections

    @computed_field
    @property
    def estimated_pages(self) -> int:
        return sum(s.estimated_pages for s in self.ordered_sections)

    @property
    def has_structured_data(self) -> bool:
        return any(s.has_structured_data for s in self.ordered_sections)


class CompiledArtifact(BaseModel):
    """Handle to a compiled document.

    Attributes:
        run_id: Source run
        path: Where the artifact was written
        format: Artifact format (e.g. "html")
        section_count: Sections included
        is_partially_complete: Whether failed sections were left out
        created_at: Compile time
    """

    run_id: str
    path: Path
    format: str = "html"
    section_count: int = 0
    is_partially_complete: bool = False
    created_at: datetime = Field(default_factory=utcnow)
