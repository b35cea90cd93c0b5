"""
Template Loader
===============

Parse template markup, collect its stylesheet and build the immutable
BannerTemplate used by render targets. Templates come either as markup plus
an optional stylesheet, or as a zip archive carrying markup, stylesheets,
images, fonts and optionally a record file.
"""

from typing import Any, Dict, List, Optional, Tuple, Union
import posixpath

from bs4 import BeautifulSoup, Tag

from banner_batch.config.logging import get_logger
from banner_batch.core.assets.archive import ArchivePartition, read_archive
from banner_batch.core.assets.bundle import AssetBundle, strip_relative_prefix
from banner_batch.core.exceptions import TemplateParseFailure
from banner_batch.core.template.discovery import discover_fields, extract_template_defaults
from banner_batch.models.schemas import ArchiveEntry, BannerRecord, TemplateDescriptor

logger = get_logger(__name__)

PARSER = "html.parser"


def decode_text(data: Union[str, bytes], what: str = "markup") -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise TemplateParseFailure(f"Template {what} is not valid UTF-8: {e}") from e


def parse_template(markup: Union[str, bytes]) -> BeautifulSoup:
    """
    Parse template markup into a traversable tree.

    Raises:
        TemplateParseFailure: If the markup is blank, undecodable or rejected by the parser
    """
    text = decode_text(markup)
    if not text.strip():
        raise TemplateParseFailure("Template markup is empty")
    try:
        return BeautifulSoup(text, PARSER)
    except Exception as e:  # html.parser raises bare AssertionError/ValueError on broken input
        raise TemplateParseFailure(f"Template markup could not be parsed: {e}") from e


def extract_stylesheet(document: BeautifulSoup) -> str:
    """Concatenate the text of every ``<style>`` block in the document head."""
    head = document.find("head")
    scope = head if isinstance(head, Tag) else document
    blocks = [str(style.string).strip() for style in scope.find_all("style") if style.string]
    return "\n\n".join(block for block in blocks if block)


def stylesheet_links(document: BeautifulSoup) -> List[Tag]:
    return [
        link
        for link in document.find_all("link", href=True)
        if "stylesheet" in [rel.lower() for rel in (link.get("rel") or [])]
    ]


class BannerTemplate:
    """
    An uploaded template: markup, stylesheet and the descriptor of its slots.

    Immutable after construction; render targets re-parse ``markup`` to get a
    fresh tree, so the template itself is never mutated.
    """

    def __init__(
        self,
        markup: str,
        stylesheet: str = "",
        base_dir: str = "",
        link_tags: Optional[List[str]] = None,
        image_groups: Optional[Dict[str, Dict[str, Any]]] = None,
        name: Optional[str] = None,
    ) -> None:
        self._markup = markup
        self._stylesheet = stylesheet
        self._base_dir = base_dir
        self._link_tags = list(link_tags or [])
        self._name = name
        self._descriptor = discover_fields(self.parse(), image_groups)

    @property
    def markup(self) -> str:
        return self._markup

    @property
    def stylesheet(self) -> str:
        return self._stylesheet

    @property
    def base_dir(self) -> str:
        return self._base_dir

    @property
    def link_tags(self) -> List[str]:
        return list(self._link_tags)

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def descriptor(self) -> TemplateDescriptor:
        return self._descriptor

    def parse(self) -> BeautifulSoup:
        """A fresh, independent tree of the template markup."""
        return BeautifulSoup(self._markup, PARSER)

    def preview_record(self) -> BannerRecord:
        """Placeholder record holding the template's own slot values."""
        return extract_template_defaults(self.parse(), self._descriptor)

    def __repr__(self) -> str:
        return f"BannerTemplate(name={self._name!r}, fields={self._descriptor.names()!r})"


def load_template(
    markup: Union[str, bytes],
    stylesheet: Optional[Union[str, bytes]] = None,
    base_dir: str = "",
    image_groups: Optional[Dict[str, Dict[str, Any]]] = None,
    name: Optional[str] = None,
) -> BannerTemplate:
    """
    Build a template from markup and an optional separate stylesheet.

    Inline ``<style>`` blocks of the head are collected; a separately supplied
    stylesheet is appended after them so its rules win the cascade. External
    ``<link rel="stylesheet">`` tags are kept for the rendered document.

    Raises:
        TemplateParseFailure: If the markup cannot be parsed
    """
    document = parse_template(markup)
    text = decode_text(markup)

    parts = [extract_stylesheet(document)]
    if stylesheet:
        parts.append(decode_text(stylesheet, "stylesheet").strip())
    css = "\n\n".join(part for part in parts if part)

    link_tags = [str(link) for link in stylesheet_links(document)]

    template = BannerTemplate(
        markup=text,
        stylesheet=css,
        base_dir=base_dir,
        link_tags=link_tags,
        image_groups=image_groups,
        name=name,
    )
    logger.info(
        "Template loaded",
        template=name,
        fields=len(template.descriptor),
        stylesheet_length=len(css),
        external_links=len(link_tags),
    )
    return template


def _find_stylesheet(href: str, base_dir: str, stylesheets: List[ArchiveEntry]) -> Optional[ArchiveEntry]:
    wanted = strip_relative_prefix(posixpath.normpath(posixpath.join(base_dir, href)) if base_dir else href)
    for entry in stylesheets:
        if entry.path == wanted or strip_relative_prefix(entry.path) == strip_relative_prefix(href):
            return entry
    for entry in stylesheets:
        if entry.filename == posixpath.basename(href):
            return entry
    return None


def load_template_archive(
    data: bytes,
    image_groups: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Tuple[BannerTemplate, AssetBundle, ArchivePartition]:
    """
    Build a template and its asset bundle from a zip archive.

    Local stylesheets referenced by ``<link rel="stylesheet">`` are inlined in
    link order; when the markup links none, every stylesheet in the archive is
    used. Images and fonts become the asset bundle, keyed relative to the
    directory of the markup file as well.

    Returns:
        Tuple of (template, asset bundle, archive partition)

    Raises:
        TemplateParseFailure: If the archive is unreadable or holds no markup
    """
    partition = read_archive(data)
    page = partition.primary_markup()
    if page is None:
        raise TemplateParseFailure("Template archive contains no HTML file")

    base_dir = posixpath.dirname(page.path)
    document = parse_template(page.content)

    css_parts: List[str] = []
    used: List[str] = []
    links = stylesheet_links(document)
    for link in links:
        href = link["href"]
        if href.lower().startswith(("http://", "https://", "//")):
            continue
        entry = _find_stylesheet(href, base_dir, partition.stylesheets)
        if entry is None:
            logger.warning("Linked stylesheet not found in archive", href=href)
            continue
        css_parts.append(decode_text(entry.content, "stylesheet"))
        used.append(entry.path)
        link.decompose()

    if not links:
        css_parts.extend(decode_text(entry.content, "stylesheet") for entry in partition.stylesheets)
        used.extend(entry.path for entry in partition.stylesheets)

    bundle = AssetBundle.from_entries(partition.assets, base_dir=base_dir)
    template = load_template(
        str(document),
        "\n\n".join(css_parts),
        base_dir=base_dir,
        image_groups=image_groups,
        name=page.path,
    )
    logger.info("Template archive loaded", page=page.path, stylesheets=used, assets=len(bundle))
    return template, bundle, partition
