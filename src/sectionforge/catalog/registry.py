"""
Template Registry.

Manages registration and lookup of document templates. The built-in
templates are always available; extra templates can be registered in
code or loaded from a YAML file.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sectionforge.catalog.templates import BUILTIN_TEMPLATES
from sectionforge.models.sections import DocumentTemplate

logger = logging.getLogger(__name__)


class UnknownTemplateError(KeyError):
    """Raised when a template id is not registered."""

    def __init__(self, template_id: str, available: list[str] | None = None) -> None:
        self.template_id = template_id
        self.available = available or []
        super().__init__(template_id)

    def __str__(self) -> str:
        msg = f"Unknown template: {self.template_id}"
        if self.available:
            msg = f"{msg} (available: {', '.join(self.available)})"
        return msg


class TemplateRegistry:
    """Registry of document templates keyed by template id.

    Usage:
        registry = TemplateRegistry()
        registry.register(my_template)
        template = registry.get("healthcare")
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._templates: dict[str, DocumentTemplate] = {}
        if include_builtins:
            for template in BUILTIN_TEMPLATES:
                self._templates[template.id] = template

    def register(self, template: DocumentTemplate, replace: bool = False) -> None:
        """Register a template.

        Args:
            template: Template to add
            replace: Overwrite an existing template with the same id

        Raises:
            ValueError: If the id is taken and replace is False
        """
        if template.id in self._templates and not replace:
            raise ValueError(f"Template already registered: {template.id}")
        self._templates[template.id] = template
        logger.debug(f"Registered template {template.id} ({len(template.sections)} sections)")

    def unregister(self, template_id: str) -> bool:
        """Remove a template. Returns True if it was registered."""
        return self._templates.pop(template_id, None) is not None

    def get(self, template_id: str) -> DocumentTemplate:
        """Look up a template.

        Raises:
            UnknownTemplateError: If no template has this id
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise UnknownTemplateError(template_id, self.list_ids()) from None

    def is_registered(self, template_id: str) -> bool:
        return template_id in self._templates

    def list_ids(self) -> list[str]:
        return list(self._templates)

    def list_templates(self) -> list[DocumentTemplate]:
        """All templates in registration order."""
        return list(self._templates.values())

    def load_yaml(self, path: str | Path, replace: bool = True) -> list[DocumentTemplate]:
        """Load and register templates from a YAML file.

        The file holds either a list of templates or a mapping with a
        ``templates`` key. Section fields use the model names
        (``estimated_pages``, ``priority``, ``category``).

        Returns:
            The templates that were registered

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file content is not a valid template list
        """
        templates = load_templates_from_yaml(path)
        for template in templates:
            self.register(template, replace=replace)
        logger.info(f"Loaded {len(templates)} templates from {path}")
        return templates


def load_templates_from_yaml(path: str | Path) -> list[DocumentTemplate]:
    """Parse templates from a YAML file without registering them."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Template file not found: {path}")

    try:
        with open(path) as f:
            data: Any = yaml.safe_load(f) or []
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid template YAML in {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("templates", [])
    if not isinstance(data, list):
        raise ValueError(f"Template file {path} must contain a list of templates")

    templates = []
    for index, raw in enumerate(data):
        try:
            templates.append(DocumentTemplate.model_validate(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid template #{index} in {path}: {e}") from e
    return templates


# Global registry instance
_registry = TemplateRegistry()


def get_registry() -> TemplateRegistry:
    """Get the global registry instance."""
    return _registry


def get_template(template_id: str) -> DocumentTemplate:
    """Get a template from the global registry."""
    return _registry.get(template_id)


def list_templates() -> list[DocumentTemplate]:
    """List templates in the global registry."""
    return _registry.list_templates()


def register_template(template: DocumentTemplate, replace: bool = False) -> None:
    """Register a template with the global registry."""
    _registry.register(template, replace=replace)


def reset_registry() -> None:
    """Restore the global registry to the built-in templates (mainly for testing)."""
    global _registry
    _registry = TemplateRegistry()
