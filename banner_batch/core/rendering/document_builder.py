"""
Document Builder
================

Render the standalone HTML document handed to the rasterizer: doctype, meta,
external stylesheet links, the template stylesheet and the bound body.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import jinja2
from bs4 import BeautifulSoup, Tag

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import get_settings
from banner_batch.core.exceptions import RasterizationError
from banner_batch.core.template import dom

logger = get_logger(__name__)

DOCUMENT_TEMPLATE = "document.html.j2"


def _attributes(element: Optional[Tag]) -> Dict[str, str]:
    if element is None:
        return {}
    return {
        key: " ".join(value) if isinstance(value, list) else str(value)
        for key, value in element.attrs.items()
    }


class DocumentBuilder:
    """Jinja2-based document shell renderer."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger: Any = logger.bind(component="document_builder")
        self._setup_jinja2_environment()

    def _setup_jinja2_environment(self) -> None:
        """Setup Jinja2 template environment."""
        template_dir = Path(__file__).parent / "templates"
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=jinja2.select_autoescape(["html", "xml", "j2"]),
            enable_async=True,
        )

    def _prepare_context(
        self,
        document: BeautifulSoup,
        stylesheet: str,
        link_tags: List[str],
        title: Optional[str],
    ) -> Dict[str, Any]:
        body = dom.body_of(document)
        html = document.find("html")
        if body is document:
            # fragment templates: everything except head-only elements
            contents = "".join(
                str(child)
                for child in document.contents
                if not (isinstance(child, Tag) and child.name in ("style", "link", "meta", "title"))
            )
            body_attrs: Dict[str, str] = {}
        else:
            contents = body.decode_contents()
            body_attrs = _attributes(body)

        return {
            "html_attrs": _attributes(html if isinstance(html, Tag) else None),
            "body_attrs": body_attrs,
            "body": contents.strip(),
            "stylesheet": stylesheet,
            "link_tags": link_tags,
            "title": title,
            "width": self.settings.viewport_width,
            "background_color": self.settings.background_color,
        }

    async def build(
        self,
        document: BeautifulSoup,
        stylesheet: str = "",
        link_tags: Optional[List[str]] = None,
        title: Optional[str] = None,
    ) -> str:
        """
        Render a complete HTML document around a bound template tree.

        Raises:
            RasterizationError: If the document shell cannot be rendered
        """
        try:
            template = self.env.get_template(DOCUMENT_TEMPLATE)
            context = self._prepare_context(document, stylesheet, link_tags or [], title)
            html = await template.render_async(**context)
        except jinja2.TemplateError as e:
            error_msg = f"Document rendering failed: {e}"
            self.logger.error("Document build failed", error=error_msg)
            raise RasterizationError(error_msg) from e

        self.logger.debug("Document built", html_length=len(html))
        return html
