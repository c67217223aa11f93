"""
=============================================================================
TEMPLATE RENDERING
=============================================================================

Renders named templates for ``response.render()``.

    router.set_default_template_engine(JinjaTemplateEngine("./templates"))

    @router.get("/document")
    def document(request, response, next):
        try:
            response.render("document", {"articles": [...]}).end()
        except HandlerError as e:
            logger.error(f"Failed to render template {e}")
        finally:
            next()

Template names without an extension get the engine's default extension,
so "document" loads "document.html". Every failure (missing template,
syntax error, bad context) surfaces as RenderError.

=============================================================================
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Union
import logging

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound, select_autoescape

from .errors import RenderError


logger = logging.getLogger(__name__)


class TemplateEngine(ABC):
    """Renders a named template with a context mapping to text."""

    @abstractmethod
    def render(self, name: str, context: Mapping[str, Any]) -> str:
        """
        Raises:
            RenderError: If the template cannot be loaded or rendered.
        """


class JinjaTemplateEngine(TemplateEngine):
    """
    Jinja2-backed template engine.

    Args:
        template_dir: Directory holding the templates.
        extension: Appended to names that have no extension.
        autoescape: Escape HTML in .html/.xml templates.

    Raises:
        ValueError: If template_dir is not a directory.
    """

    def __init__(
        self,
        template_dir: Union[str, Path],
        extension: str = ".html",
        autoescape: bool = True,
    ):
        self.template_dir = Path(template_dir).resolve()
        if not self.template_dir.is_dir():
            raise ValueError(f"Template directory does not exist: {template_dir}")

        self.extension = extension if extension.startswith(".") else f".{extension}"
        self.environment = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "htm", "xml"]) if autoescape else False,
            keep_trailing_newline=True,
        )

    def template_name(self, name: str) -> str:
        return name if Path(name).suffix else f"{name}{self.extension}"

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        template_name = self.template_name(name)
        try:
            template = self.environment.get_template(template_name)
            return template.render(**dict(context))
        except TemplateNotFound as e:
            raise RenderError(f"Template not found: {template_name}", template=name) from e
        except (TemplateError, TypeError, ValueError) as e:
            logger.debug(f"Rendering {template_name} failed: {e}")
            raise RenderError(f"Failed to render {template_name}: {e}", template=name) from e
