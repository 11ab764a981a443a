"""
Catalog models: section definitions and document templates.

A document template is the static, ordered catalog of sections for one
document type. Catalog order is the order sections are scheduled and
the order they appear in the compiled document.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sectionforge.models.base import SectionCategory, SectionPriority


class SectionDefinition(BaseModel):
    """One independently generated unit of document content.

    Attributes:
        id: Identifier, unique within its template
        title: Display title
        description: What the section should cover (used in the prompt)
        category: Catalog category
        priority: Catalog priority
        estimated_pages: Estimated size in pages
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Section identifier")
    title: str = Field(..., min_length=1, description="Section title")
    description: str = Field(default="", description="Section brief")
    category: SectionCategory = Field(
        default=SectionCategory.ANALYSIS,
        description="Catalog category",
    )
    priority: SectionPriority = Field(
        default=SectionPriority.MEDIUM,
        description="Catalog priority",
    )
    estimated_pages: int = Field(default=1, ge=0, description="Estimated size in pages")


class DocumentTemplate(BaseModel):
    """Static catalog of sections for one document type.

    Attributes:
        id: Template identifier
        name: Human readable name (e.g. "Healthcare & Medical")
        description: Short description of the document type
        sections: Section definitions in catalog order
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    sections: list[SectionDefinition] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Template ids are used in file names and CLI arguments."""
        if not v.strip():
            raise ValueError("Template id cannot be blank")
        return v.strip()

    @model_validator(mode="after")
    def validate_unique_sections(self) -> "DocumentTemplate":
        """Reject templates with duplicate section ids."""
        seen: set[str] = set()
        for section in self.sections:
            if section.id in seen:
                raise ValueError(f"Duplicate section id in template {self.id}: {section.id}")
            seen.add(section.id)
        return self

    @property
    def section_ids(self) -> list[str]:
        """Section ids in catalog order."""
        return [s.id for s in self.sections]

    @property
    def estimated_total_pages(self) -> int:
        return sum(s.estimated_pages for s in self.sections)

    def get_section(self, section_id: str) -> SectionDefinition | None:
        """Look up a section by id."""
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def high_priority_section_ids(self) -> list[str]:
        """Ids of high-priority sections, the default selection."""
        return [s.id for s in self.sections if s.priority == SectionPriority.HIGH]

    def sections_by_category(self) -> dict[SectionCategory, list[SectionDefinition]]:
        """Group sections by category, keeping catalog order inside each group."""
        grouped: dict[SectionCategory, list[SectionDefinition]] = {}
        for section in self.sections:
            grouped.setdefault(section.category, []).append(section)
        return grouped

    def select(self, section_ids: list[str]) -> list[SectionDefinition]:
        """Return the requested sections in catalog order.

        Unknown ids are ignored here; callers validate them first.
        """
        wanted = set(section_ids)
        return [s for s in self.sections if s.id in wanted]
