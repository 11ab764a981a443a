"""
SectionForge - Section Catalog

Built-in industry templates and the template registry.
"""

from sectionforge.catalog.registry import (
    TemplateRegistry,
    UnknownTemplateError,
    get_registry,
    get_template,
    list_templates,
    load_templates_from_yaml,
    register_template,
    reset_registry,
)
from sectionforge.catalog.templates import (
    BUILTIN_TEMPLATES,
    FINANCE_TEMPLATE,
    HEALTHCARE_TEMPLATE,
    MANUFACTURING_TEMPLATE,
)

__all__ = [
    "TemplateRegistry",
    "UnknownTemplateError",
    "get_registry",
    "get_template",
    "list_templates",
    "load_templates_from_yaml",
    "register_template",
    "reset_registry",
    "BUILTIN_TEMPLATES",
    "HEALTHCARE_TEMPLATE",
    "FINANCE_TEMPLATE",
    "MANUFACTURING_TEMPLATE",
]
