"""
SectionForge: Sectioned report generation with bounded concurrency.

Generates multi-section documents by calling a content generation
service once per section, in batches, with automatic retries and
tolerance for partial failure. Completed sections are assembled in
catalog order and compiled into a standalone HTML report.

Key Features:
- Batch scheduling with delayed, out-of-batch retries
- Per-section retry budget and manual retry of failed sections
- Exactly-once completion detection with partial-success reporting
- Run history snapshots for status, resume and recompilation

Example:
    from sectionforge.catalog import get_template
    from sectionforge.orchestrator import SectionOrchestrator

    template = get_template("healthcare")
    orchestrator = SectionOrchestrator(template, service, history, compiler)
    run_id = await orchestrator.start_run(template.high_priority_section_ids())
    run = await orchestrator.wait_for_run(run_id)
"""

from sectionforge.version import __version__

__all__ = [
    "__version__",
]
