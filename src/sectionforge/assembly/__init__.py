"""
SectionForge - Report Assembly

Builds the ordered document from a run and compiles it.
"""

from sectionforge.assembly.compiler import (
    CompilationError,
    DocumentCompiler,
    HtmlDocumentCompiler,
    render_html,
    render_structured_data,
)
from sectionforge.assembly.report import assemble_document, completed_states

__all__ = [
    "assemble_document",
    "completed_states",
    "CompilationError",
    "DocumentCompiler",
    "HtmlDocumentCompiler",
    "render_html",
    "render_structured_data",
]
