"""
Render Target
=============

A live, mutable copy of a template's tree that records are bound into.
The batch owns one target for the whole run; a session owns another for the
preview. Each target is guarded by its own lock so a bind/settle/capture
cycle is never interleaved with another mutation.
"""

import asyncio
from typing import Any, Optional

from bs4 import BeautifulSoup

from banner_batch.config.logging import get_logger
from banner_batch.core.assets.bundle import AssetBundle
from banner_batch.core.assets.resolver import resolve_markup, resolve_stylesheet
from banner_batch.core.rendering.document_builder import DocumentBuilder
from banner_batch.core.template.loader import BannerTemplate

logger = get_logger(__name__)


class RenderTarget:
    """Mutable document bound to one template and its asset bundle."""

    def __init__(
        self,
        template: BannerTemplate,
        bundle: Optional[AssetBundle] = None,
        builder: Optional[DocumentBuilder] = None,
    ) -> None:
        self.template = template
        self.bundle = bundle if bundle is not None else AssetBundle()
        self.document: BeautifulSoup = template.parse()
        self.lock = asyncio.Lock()
        self._builder = builder or DocumentBuilder()
        self.logger: Any = logger.bind(component="render_target", template=template.name)

    def reset(self) -> None:
        """Discard every bound value and start again from the template tree."""
        self.document = self.template.parse()

    def resolve_resources(self) -> int:
        """Inline every bundled resource the tree references; returns the count."""
        if not self.bundle:
            return 0
        return resolve_markup(self.document, self.bundle)

    def stylesheet(self) -> str:
        if not self.bundle:
            return self.template.stylesheet
        return resolve_stylesheet(self.template.stylesheet, self.bundle)

    async def to_html(self) -> str:
        """Standalone document of the current tree, resources inlined."""
        return await self._builder.build(
            self.document,
            stylesheet=self.stylesheet(),
            link_tags=self.template.link_tags,
            title=self.template.name,
        )

    def __repr__(self) -> str:
        return f"RenderTarget(template={self.template.name!r})"
