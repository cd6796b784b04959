"""Form template loader with caching and validation.

This module loads starter form definitions from YAML files, validates them
against the form schema, and caches the results. A template becomes a new
draft form owned by whoever instantiates it.
"""

from pathlib import Path
from functools import lru_cache
from typing import Optional

import yaml
from pydantic import ValidationError

from formbuilder.config import get_settings
from formbuilder.schemas.form import Form, FormStatus
from formbuilder.logging_config import get_logger

logger = get_logger(__name__)


class TemplateNotFoundError(Exception):
    """Raised when a template file is not found."""
    pass


class TemplateValidationError(Exception):
    """Raised when a template fails validation."""
    pass


class FormTemplateLoader:
    """Service for loading and caching form templates.

    Templates are YAML files with a ``title`` and a list of ``fields`` in
    the same shape as the form API. Results are cached for performance.
    """

    def __init__(self, templates_dir: Optional[str] = None):
        """Initialize template loader.

        Args:
            templates_dir: Path to templates directory (defaults to settings)
        """
        if templates_dir is None:
            templates_dir = get_settings().templates_dir

        self.templates_dir = Path(templates_dir)

        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")

    @lru_cache(maxsize=128)
    def load_template(self, template_id: str) -> Form:
        """Load and validate a template from YAML file.

        Args:
            template_id: Template identifier (YAML filename without .yaml)

        Returns:
            Validated draft Form without id or owner

        Raises:
            TemplateNotFoundError: If template file doesn't exist
            TemplateValidationError: If template fails validation

        Example:
            >>> loader = FormTemplateLoader()
            >>> form = loader.load_template("event_feedback")
            >>> form.title
            'Event Feedback'
        """
        if not template_id.replace("_", "").replace("-", "").isalnum():
            raise TemplateNotFoundError(f"Template '{template_id}' not found")

        yaml_path = self.templates_dir / f"{template_id}.yaml"

        if not yaml_path.exists():
            logger.error(f"Template file not found: {yaml_path}")
            raise TemplateNotFoundError(f"Template '{template_id}' not found")

        try:
            with open(yaml_path, "r") as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error for {template_id}: {e}")
            raise TemplateValidationError(f"Invalid YAML in template '{template_id}': {e}")
        except OSError as e:
            logger.error(f"Error reading template file {yaml_path}: {e}")
            raise TemplateValidationError(f"Error reading template '{template_id}': {e}")

        if not isinstance(raw_data, dict):
            raise TemplateValidationError(f"Template '{template_id}' must be a mapping")

        try:
            form = Form(
                title=raw_data.get("title", ""),
                status=FormStatus.DRAFT,
                fields=raw_data.get("fields") or [],
            )
        except ValidationError as e:
            logger.error(f"Validation error for template {template_id}: {e}")
            raise TemplateValidationError(f"Validation failed for template '{template_id}': {e}")

        logger.info(f"Loaded template: {template_id} ({len(form.fields)} fields)")
        return form

    def list_templates(self) -> list[str]:
        """List all available template IDs.

        Returns:
            Sorted template IDs (filenames without .yaml extension)
        """
        if not self.templates_dir.exists():
            return []

        template_ids = [f.stem for f in self.templates_dir.glob("*.yaml")]
        logger.debug(f"Found {len(template_ids)} templates: {template_ids}")
        return sorted(template_ids)

    def clear_cache(self):
        """Clear the template cache."""
        self.load_template.cache_clear()
        logger.info("Template cache cleared")


# Global singleton instance
_loader_instance: Optional[FormTemplateLoader] = None


def get_template_loader() -> FormTemplateLoader:
    """Get global FormTemplateLoader instance.

    Returns:
        Global FormTemplateLoader instance
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = FormTemplateLoader()
    return _loader_instance
