"""
HTML template rendering port.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).parent / "templates"


class Renderer(ABC):
    """Renders named templates to HTML."""

    @abstractmethod
    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render template_name with context."""


def _get_server_time_for_template() -> str:
    """Get current server time in ISO format for templates."""
    return datetime.now(timezone.utc).isoformat()


class Jinja2Renderer(Renderer):
    """Renderer over a Jinja2 template directory (the package templates by default)."""

    def __init__(self, templates_dir: Optional[Path] = None):
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self._env.globals["get_server_time"] = _get_server_time_for_template

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        return self._env.get_template(template_name).render(**context)
