"""
Repeated Image Groups
=====================

A group container (e.g. ``.product`` or ``.giftproducts``) shows a variable
number of images driven by a record's ``*_src`` value and ``*_qty`` count.
Existing placeholders are reused and cloned so that template styling
carries over; surplus placeholders are hidden, never deleted, so a later
record with a larger count can show them again.
"""

from typing import Any, List, Optional

from bs4 import BeautifulSoup, Tag

from banner_batch.config.logging import get_logger
from banner_batch.core.template import dom

logger = get_logger(__name__)


def coerce_qty(value: Any) -> Optional[int]:
    """Parse a quantity; ``None`` for missing or unusable values."""
    if value is None or isinstance(value, (list, bool)):
        return None
    try:
        qty = int(float(str(value).strip()))
    except ValueError:
        logger.warning("Ignoring invalid image quantity", value=value)
        return None
    return max(qty, 0)


def source_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    text = str(value).strip()
    return [text] if text else []


def effective_sources(sources: List[str], qty: Optional[int]) -> List[str]:
    """
    Sources to display, one per image.

    Count is ``qty`` when given, else ``len(sources)``, else 1. A single source
    is replicated ``qty`` times; several sources are cut to the first
    ``min(qty, len(sources))``.
    """
    if not sources:
        return []
    if len(sources) == 1:
        return sources * (1 if qty is None else qty)
    count = len(sources) if qty is None else min(qty, len(sources))
    return sources[:count]


def placeholders(container: Tag, field_name: str) -> List[Tag]:
    """Images of the group: those marked with the field name, else every image."""
    return container.find_all("img", attrs={dom.FIELD_ATTR: field_name}) or container.find_all("img")


def current_sources(container: Tag, field_name: str) -> List[str]:
    return [
        img["src"]
        for img in placeholders(container, field_name)
        if img.get("src") and not dom.is_hidden(img)
    ]


def bind_image_group(
    document: BeautifulSoup,
    container: Tag,
    field_name: str,
    value: Any,
    qty: Optional[int],
) -> int:
    """
    Reconcile the group's images with ``value`` and ``qty``.

    Args:
        document: Tree owning the container, used to create elements
        container: Group container element
        field_name: Group field name, written as ``data-field`` on new images
        value: Single source or list of sources; ``None`` keeps the current first source
        qty: Requested image count, ``None`` when the record has none

    Returns:
        Number of visible images after binding
    """
    sources = source_list(value)
    if not sources:
        existing = current_sources(container, field_name)
        sources = existing[:1]
    wanted = effective_sources(sources, qty)

    images = placeholders(container, field_name)
    if not images:
        for src in wanted:
            img = document.new_tag("img", attrs={"src": src, dom.FIELD_ATTR: field_name})
            container.append(img)
        return len(wanted)

    while len(images) < len(wanted):
        clone = dom.clone_tag(document, images[-1])
        images[-1].insert_after(clone)
        images.append(clone)

    for position, img in enumerate(images):
        if position < len(wanted):
            img["src"] = wanted[position]
            dom.set_hidden(img, False)
        else:
            dom.set_hidden(img, True)

    return len(wanted)
