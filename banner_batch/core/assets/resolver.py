"""
Resource Resolver
=================

Replace path-like image and font references with inline ``data:`` payloads
from an AssetBundle. Used on bound markup, on stylesheet text and on record
values before binding.

Lookup is a fallback chain over an explicit, ordered list of candidate key
functions; the first candidate present in the bundle wins. Unresolved
references are kept as they are.
"""

from typing import Callable, List, Optional
import posixpath
import re

from bs4 import BeautifulSoup

from banner_batch.config.logging import get_logger
from banner_batch.core.assets.archive import FONT_EXTENSIONS, IMAGE_EXTENSIONS
from banner_batch.core.assets.bundle import AssetBundle, strip_relative_prefix
from banner_batch.core.exceptions import ResourceUnresolved
from banner_batch.models.schemas import BannerRecord, RecordValue

logger = get_logger(__name__)

PASSTHROUGH_PREFIXES = ("data:", "http://", "https://", "//", "blob:")

CSS_URL_PATTERN = re.compile(r"""url\(\s*(['"]?)([^'")]+?)\1\s*\)""", re.IGNORECASE)

CandidateKey = Callable[[str], Optional[str]]


def _exact(reference: str) -> Optional[str]:
    return reference


def _normalized(reference: str) -> Optional[str]:
    return strip_relative_prefix(reference)


def _dot_normalized(reference: str) -> Optional[str]:
    return "./" + strip_relative_prefix(reference)


def _filename(reference: str) -> Optional[str]:
    return posixpath.basename(strip_relative_prefix(reference)) or None


def _without_query(reference: str) -> Optional[str]:
    # font URLs such as fonts/x.eot?#iefix or x.svg#font
    bare = re.split(r"[?#]", reference, maxsplit=1)[0]
    if bare == reference or not bare:
        return None
    return posixpath.basename(strip_relative_prefix(bare)) or None


CANDIDATE_KEYS: List[CandidateKey] = [
    _exact,
    _normalized,
    _dot_normalized,
    _filename,
    _without_query,
]


def is_passthrough(reference: str) -> bool:
    """Inline payloads and absolute network URLs are never rewritten."""
    return not reference or reference.strip().lower().startswith(PASSTHROUGH_PREFIXES)


def candidate_keys(reference: str) -> List[str]:
    """Lookup keys for ``reference`` in evaluation order, without duplicates."""
    keys: List[str] = []
    for candidate in CANDIDATE_KEYS:
        key = candidate(reference)
        if key and key not in keys:
            keys.append(key)
    return keys


def resolve(reference: str, bundle: AssetBundle, strict: bool = False) -> str:
    """
    Resolve one reference to an inline payload.

    Args:
        reference: Path-like reference as written in markup, stylesheet or record
        bundle: Asset bundle to look the reference up in
        strict: Raise instead of passing unresolved references through

    Returns:
        The inline ``data:`` URI, or ``reference`` unchanged when it is already
        inline, absolute, or not found

    Raises:
        ResourceUnresolved: If ``strict`` and no candidate key matched
    """
    if is_passthrough(reference):
        return reference

    reference = reference.strip()
    for key in candidate_keys(reference):
        resource = bundle.get(key)
        if resource is not None:
            return resource.data_uri

    if strict:
        raise ResourceUnresolved(reference)

    logger.warning(
        "Resource reference unresolved",
        reference=reference,
        error_type=ResourceUnresolved.__name__,
        candidates=candidate_keys(reference),
    )
    return reference


def resolve_stylesheet(css: str, bundle: AssetBundle) -> str:
    """Rewrite every ``url(...)`` in stylesheet text (images and fonts)."""
    if not css:
        return css

    def replace(match: "re.Match[str]") -> str:
        reference = match.group(2).strip()
        if is_passthrough(reference):
            return match.group(0)
        resolved = resolve(reference, bundle)
        if resolved == reference:
            return match.group(0)
        return f'url("{resolved}")'

    return CSS_URL_PATTERN.sub(replace, css)


def resolve_markup(document: BeautifulSoup, bundle: AssetBundle) -> int:
    """
    Inline image sources, inline-style URLs and ``<style>`` blocks in place.

    Returns:
        Number of attributes or blocks rewritten
    """
    rewritten = 0

    for img in document.find_all("img"):
        src = img.get("src")
        if not src or is_passthrough(src):
            continue
        resolved = resolve(src, bundle)
        if resolved != src:
            img["src"] = resolved
            rewritten += 1

    for element in document.find_all(style=True):
        style = element.get("style", "")
        if "url(" not in style.lower():
            continue
        resolved_style = resolve_stylesheet(style, bundle)
        if resolved_style != style:
            element["style"] = resolved_style
            rewritten += 1

    for style_tag in document.find_all("style"):
        css = style_tag.string
        if not css or "url(" not in css.lower():
            continue
        resolved_css = resolve_stylesheet(str(css), bundle)
        if resolved_css != css:
            style_tag.string = resolved_css
            rewritten += 1

    return rewritten


def looks_like_resource(value: str) -> bool:
    """A single path token ending in a known image or font extension."""
    if not value or is_passthrough(value) or any(ch.isspace() for ch in value.strip()):
        return False
    bare = re.split(r"[?#]", value.strip(), maxsplit=1)[0]
    ext = bare.rsplit(".", 1)[-1].lower() if "." in posixpath.basename(bare) else ""
    return ext in IMAGE_EXTENSIONS or ext in FONT_EXTENSIONS


def resolve_value(value: RecordValue, bundle: AssetBundle) -> RecordValue:
    if isinstance(value, str):
        return resolve(value, bundle) if looks_like_resource(value) else value
    if isinstance(value, list):
        return [resolve(item, bundle) if looks_like_resource(item) else item for item in value]
    return value


def resolve_record(record: BannerRecord, bundle: AssetBundle) -> BannerRecord:
    """Promote bare resource paths inside a record's values to inline payloads."""
    if not bundle:
        return record
    values = {name: resolve_value(value, bundle) for name, value in record.values.items()}
    return BannerRecord(values=values, is_placeholder=record.is_placeholder)

