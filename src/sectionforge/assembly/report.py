"""
Report assembly.

Projects a run onto the document structure handed to a compiler:
completed sections only, in catalog order.
"""

from sectionforge.models.base import SectionStatus
from sectionforge.models.document import AssembledDocument, AssembledSection
from sectionforge.models.run import GenerationRun, SectionTaskState
from sectionforge.models.sections import DocumentTemplate


def completed_states(run: GenerationRun) -> list[SectionTaskState]:
    """Completed section states in catalog order; failed sections are left out."""
    return [s for s in run.ordered_states() if s.status == SectionStatus.COMPLETED]


def assemble_document(
    run: GenerationRun,
    template: DocumentTemplate,
    title: str | None = None,
) -> AssembledDocument:
    """Build the ordered document for a run.

    Pure function: neither the run nor the template is modified.

    Args:
        run: Run to assemble
        template: Template the run's sections come from
        title: Document title, defaults to the template name

    Returns:
        AssembledDocument with one entry per completed section
    """
    ordered = []
    for state in completed_states(run):
        definition = template.get_section(state.section_id)
        ordered.append(
            AssembledSection(
                id=state.section_id,
                title=state.title or (definition.title if definition else state.section_id),
                description=definition.description if definition else "",
                content=state.content or "",
                structured_data=state.structured_data,
                estimated_pages=definition.estimated_pages if definition else 0,
            )
        )

    counts = run.aggregate()
    return AssembledDocument(
        run_id=run.run_id,
        template_id=template.id,
        title=title or template.name,
        ordered_sections=ordered,
        total_sections=counts.total,
        failed_sections=counts.failed,
    )
