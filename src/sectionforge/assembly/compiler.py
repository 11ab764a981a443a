"""
Document compilers.

A compiler turns an AssembledDocument into an artifact on disk. The HTML
compiler renders a standalone, print-friendly report: header, table of
contents, one block per section and a footer. Sections with structured
data are rendered from it; display-only sections embed their display
payload as-is.
"""

import logging
from abc import ABC, abstractmethod
from html import escape
from pathlib import Path
from typing import Any

from sectionforge.models.document import AssembledDocument, AssembledSection, CompiledArtifact
from sectionforge.models.run import safe_run_id

logger = logging.getLogger(__name__)


class CompilationError(Exception):
    """Raised when a document cannot be compiled."""

    def __init__(self, message: str, run_id: str | None = None) -> None:
        super().__init__(message)
        self.run_id = run_id


class DocumentCompiler(ABC):
    """Turns an assembled document into a compiled artifact."""

    @abstractmethod
    def compile(self, document: AssembledDocument, run_id: str) -> CompiledArtifact:
        """Compile ``document``.

        Raises:
            CompilationError: If compilation fails
        """


_STYLES = """
    @media print {
        body { margin: 0; }
        @page { margin: 1in; size: letter; }
        .section-content:not(:last-child) { page-break-after: always; }
    }
    body {
        font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
        line-height: 1.6;
        color: #333;
        max-width: 8.5in;
        margin: 0 auto;
        padding: 20px;
    }
    .report-header { text-align: center; border-bottom: 3px solid #2563eb; padding-bottom: 30px; margin-bottom: 40px; }
    .report-title { font-size: 2.5em; font-weight: bold; color: #1e40af; margin-bottom: 10px; }
    .report-subtitle { font-size: 1.2em; color: #64748b; }
    .report-meta { display: flex; justify-content: space-between; font-size: 0.9em; color: #6b7280; }
    .partial-notice { background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; margin: 20px 0; }
    .table-of-contents { background: #f8fafc; padding: 30px; border-radius: 8px; margin-bottom: 40px; page-break-after: always; }
    .toc-title { font-size: 1.5em; font-weight: bold; margin-bottom: 20px; color: #1e40af; }
    .toc-item { display: flex; justify-content: space-between; padding: 8px 0; border-bottom: 1px dotted #d1d5db; }
    .section-content { margin-bottom: 40px; }
    .section-header { background: linear-gradient(135deg, #2563eb, #1d4ed8); color: white; padding: 20px; border-radius: 8px; margin-bottom: 20px; }
    .section-title { font-size: 1.8em; font-weight: bold; margin-bottom: 5px; }
    .section-description { opacity: 0.9; font-size: 1.1em; }
    .metric-grid { display: flex; flex-wrap: wrap; gap: 16px; margin: 20px 0; }
    .metric-card { flex: 1 1 180px; background: #eff6ff; border-radius: 8px; padding: 16px; }
    .metric-value { font-size: 1.6em; font-weight: bold; color: #1e40af; }
    table { width: 100%; border-collapse: collapse; margin: 20px 0; }
    th, td { border: 1px solid #d1d5db; padding: 12px; text-align: left; }
    th { background: #f3f4f6; font-weight: bold; }
    .report-footer { margin-top: 60px; padding-top: 30px; border-top: 2px solid #e5e7eb; text-align: center; color: #6b7280; }
"""


def _text(value: Any) -> str:
    return escape(str(value)) if value is not None else ""


def _dict_items(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = data.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _string_items(data: dict[str, Any], key: str) -> list[str]:
    items = data.get(key)
    if not isinstance(items, list):
        return []
    return [str(item) for item in items if str(item).strip()]


def render_structured_data(data: dict[str, Any]) -> str:
    """Render a structured section payload to HTML."""
    parts: list[str] = []

    metrics = _dict_items(data, "keyMetrics")
    if metrics:
        cards = "".join(
            "<div class='metric-card'>"
            f"<div class='metric-value'>{_text(m.get('value'))}</div>"
            f"<div class='metric-label'><strong>{_text(m.get('label'))}</strong></div>"
            f"<div class='metric-description'>{_text(m.get('description'))}</div>"
            "</div>"
            for m in metrics
        )
        parts.append(f"<h3>Key Metrics</h3><div class='metric-grid'>{cards}</div>")

    points = _string_items(data, "mainPoints")
    if points:
        items = "".join(f"<li>{escape(p)}</li>" for p in points)
        parts.append(f"<h3>Key Insights</h3><ul>{items}</ul>")

    steps = _dict_items(data, "implementationSteps")
    if steps:
        rows = "".join(
            "<tr>"
            f"<td>{_text(s.get('step', index + 1))}</td>"
            f"<td>{_text(s.get('title'))}</td>"
            f"<td>{_text(s.get('description'))}</td>"
            f"<td>{_text(s.get('timeline'))}</td>"
            "</tr>"
            for index, s in enumerate(steps)
        )
        parts.append(
            "<h3>Implementation Steps</h3><table>"
            "<tr><th>Step</th><th>Title</th><th>Description</th><th>Timeline</th></tr>"
            f"{rows}</table>"
        )

    risks = _dict_items(data, "risks")
    if risks:
        rows = "".join(
            "<tr>"
            f"<td>{_text(r.get('risk'))}</td>"
            f"<td>{_text(r.get('impact'))}</td>"
            f"<td>{_text(r.get('mitigation'))}</td>"
            "</tr>"
            for r in risks
        )
        parts.append(
            "<h3>Risk Assessment</h3><table>"
            "<tr><th>Risk</th><th>Impact</th><th>Mitigation</th></tr>"
            f"{rows}</table>"
        )

    recommendations = _string_items(data, "recommendations")
    if recommendations:
        items = "".join(f"<li>{escape(r)}</li>" for r in recommendations)
        parts.append(f"<h3>Recommendations</h3><ol>{items}</ol>")

    return "\n".join(parts)


def render_section(section: AssembledSection, index: int) -> str:
    """Render one numbered section block."""
    if section.has_structured_data:
        body = render_structured_data(section.structured_data)
    else:
        body = section.content

    return f"""
    <div class="section-content" id="section-{escape(section.id)}">
        <div class="section-header">
            <div class="section-title">{index}. {escape(section.title)}</div>
            <div class="section-description">{escape(section.description)}</div>
        </div>
        <div class="section-body">
            {body}
        </div>
    </div>"""


def render_html(document: AssembledDocument) -> str:
    """Render the full standalone HTML report."""
    title = escape(document.title)
    generated = document.generated_at.strftime("%Y-%m-%d")
    count = document.completed_sections

    toc = "".join(
        f"""
        <div class="toc-item">
            <span>{index}. {escape(section.title)}</span>
            <span>~{section.estimated_pages} pages</span>
        </div>"""
        for index, section in enumerate(document.ordered_sections, start=1)
    )
    sections = "".join(
        render_section(section, index)
        for index, section in enumerate(document.ordered_sections, start=1)
    )

    notice = ""
    if document.is_partially_complete:
        notice = (
            "<div class='partial-notice'>"
            f"This report contains {count} of {document.total_sections} sections. "
            f"{document.failed_sections} sections could not be generated."
            "</div>"
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title} - Comprehensive Automation Report</title>
    <style>{_STYLES}</style>
</head>
<body>
    <div class="report-header">
        <h1 class="report-title">{title}</h1>
        <h2 class="report-subtitle">Comprehensive Business Automation Report</h2>
        <div class="report-meta">
            <span>Generated: {generated}</span>
            <span>Sections: {count}</span>
            <span>Estimated Pages: {document.estimated_pages}</span>
        </div>
    </div>
    {notice}
    <div class="table-of-contents">
        <h2 class="toc-title">Table of Contents</h2>
        {toc}
    </div>
    {sections}
    <div class="report-footer">
        <p><strong>{title} Automation Report</strong></p>
        <p>Generated {generated}</p>
        <p>This report contains {count} sections with actionable recommendations.</p>
    </div>
</body>
</html>"""


class HtmlDocumentCompiler(DocumentCompiler):
    """Writes the report as ``<run_id>.html`` into an output directory.

    Characters that are unsafe in a file name are replaced in the run id,
    the same way the JSON history store names its files.

    Args:
        output_dir: Directory compiled reports are written to
        create_dirs: Create the directory if it doesn't exist
    """

    def __init__(self, output_dir: str | Path, create_dirs: bool = True) -> None:
        self._output_dir = Path(output_dir)
        self._create_dirs = create_dirs

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def compile(self, document: AssembledDocument, run_id: str) -> CompiledArtifact:
        if not document.ordered_sections:
            raise CompilationError(f"Run {run_id} has no completed sections to compile", run_id)

        try:
            path = self._output_dir / f"{safe_run_id(run_id)}.html"
        except ValueError as e:
            raise CompilationError(str(e), run_id) from e

        try:
            if self._create_dirs:
                self._output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(render_html(document), encoding="utf-8")
        except OSError as e:
            raise CompilationError(f"Failed to write report for run {run_id}: {e}", run_id) from e

        logger.info(
            f"Compiled run {run_id}: {document.completed_sections}/{document.total_sections} "
            f"sections -> {path}"
        )
        return CompiledArtifact(
            run_id=run_id,
            path=path,
            format="html",
            section_count=document.completed_sections,
            is_partially_complete=document.is_partially_complete,
        )
