"""
Field Discovery
===============

Scan parsed template markup for bindable slot markers and classify them into
a TemplateDescriptor.

Markers:
- ``data-field="name"`` (optional ``data-label``): text slot, or image slot on ``<img>``
- ``data-field-int`` + ``data-field-decimal`` on one element: composite price
- a repeated image group container, either configured by selector or declared
  with ``data-image-group="name"`` (optional ``data-qty-field``)
"""

from typing import Any, Dict, List, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import get_settings
from banner_batch.core.binding.composite_price import read_price_parts
from banner_batch.core.template import dom
from banner_batch.models.schemas import (
    BannerRecord,
    FieldKind,
    RecordValue,
    TemplateDescriptor,
    TemplateField,
)

logger = get_logger(__name__)

PRICE_INT_LABEL = "integer part"
PRICE_DECIMAL_LABEL = "decimal part"


def default_qty_field(field_name: str) -> str:
    """``product_main_src`` -> ``product_main_qty``; ``gift_src_1`` -> ``gift_qty_1``."""
    head, sep, tail = field_name.rpartition("_src")
    if not sep:
        return f"{field_name}_qty"
    return f"{head}_qty{tail}"


def _group_containers(
    document: BeautifulSoup, image_groups: Dict[str, Dict[str, Any]]
) -> Dict[int, TemplateField]:
    """Map container element identity -> group field for configured groups."""
    containers: Dict[int, TemplateField] = {}
    for name, group in image_groups.items():
        selector = group["container"]
        try:
            container = document.select_one(selector)
        except SelectorSyntaxError as e:
            logger.warning("Invalid image group selector", field=name, selector=selector, error=str(e))
            continue
        if container is None:
            continue
        containers[id(container)] = TemplateField(
            name=name,
            label=container.get(dom.LABEL_ATTR) or None,
            kind=FieldKind.REPEATED_IMAGE_GROUP,
            container_selector=selector,
            qty_field=group.get("qty_field") or default_qty_field(name),
        )
    return containers


def _declared_group(element: Tag) -> Optional[TemplateField]:
    name = element.get(dom.GROUP_ATTR)
    if not name:
        return None
    return TemplateField(
        name=name,
        label=element.get(dom.LABEL_ATTR) or None,
        kind=FieldKind.REPEATED_IMAGE_GROUP,
        container_selector=f'[{dom.GROUP_ATTR}="{name}"]',
        qty_field=element.get(dom.GROUP_QTY_ATTR) or default_qty_field(name),
    )


def discover_fields(
    document: Optional[BeautifulSoup],
    image_groups: Optional[Dict[str, Dict[str, Any]]] = None,
) -> TemplateDescriptor:
    """
    Build the descriptor of a parsed template.

    Args:
        document: Parsed template markup; ``None`` or an empty document yields
            an empty descriptor
        image_groups: Repeated image group configuration, settings default

    Returns:
        TemplateDescriptor in document order, first occurrence of a name wins
    """
    if document is None:
        return TemplateDescriptor()

    if image_groups is None:
        image_groups = get_settings().image_groups

    containers = _group_containers(document, image_groups)
    group_elements: List[Tuple[Tag, TemplateField]] = []
    fields: Dict[str, TemplateField] = {}

    def add(field: TemplateField) -> None:
        if field.name in fields:
            logger.debug("Ignoring duplicate template field", field=field.name)
            return
        fields[field.name] = field

    for element in document.find_all(True):
        group = containers.get(id(element)) or _declared_group(element)
        if group is not None:
            group_elements.append((element, group))
            add(group)

        name = element.get(dom.FIELD_ATTR)
        in_group = bool(name) and any(
            owner.name == name and dom.contains(container, element)
            for container, owner in group_elements
        )
        if name and not in_group:
            if element.name == "img":
                add(TemplateField(name=name, label=element.get(dom.LABEL_ATTR) or None, kind=FieldKind.IMAGE))
            else:
                add(TemplateField(name=name, label=element.get(dom.LABEL_ATTR) or None, kind=FieldKind.TEXT))

        int_name = element.get(dom.PRICE_INT_ATTR)
        decimal_name = element.get(dom.PRICE_DECIMAL_ATTR)
        if int_name:
            add(TemplateField(name=int_name, label=PRICE_INT_LABEL, kind=FieldKind.COMPOSITE_PRICE_INT))
        if decimal_name:
            add(
                TemplateField(
                    name=decimal_name, label=PRICE_DECIMAL_LABEL, kind=FieldKind.COMPOSITE_PRICE_DECIMAL
                )
            )

    descriptor = TemplateDescriptor(fields=list(fields.values()))
    logger.info(
        "Template fields discovered",
        field_count=len(descriptor),
        kinds={kind.value: len(descriptor.of_kind(kind)) for kind in FieldKind if descriptor.of_kind(kind)},
    )
    return descriptor


def _group_sources(container: Tag, name: str) -> List[str]:
    images = container.find_all("img", attrs={dom.FIELD_ATTR: name}) or container.find_all("img")
    return [img.get("src") for img in images if not dom.is_hidden(img) and img.get("src")]


def extract_template_defaults(
    document: Optional[BeautifulSoup], descriptor: TemplateDescriptor
) -> BannerRecord:
    """
    Read the template's own slot values into a placeholder record.

    The placeholder is the "template preview" record: binding it onto a fresh
    render target reproduces the template as authored.
    """
    values: Dict[str, RecordValue] = {}
    if document is None:
        return BannerRecord(values=values, is_placeholder=True)

    separator = get_settings().price_decimal_separator

    for field in descriptor:
        if field.kind in (FieldKind.TEXT, FieldKind.IMAGE):
            elements = dom.find_by_attr(document, dom.FIELD_ATTR, field.name)
            if not elements:
                continue
            element = elements[0]
            value = element.get("src", "") if element.name == "img" else dom.text_of(element)
            if value:
                values[field.name] = value

        elif field.kind == FieldKind.REPEATED_IMAGE_GROUP:
            container = document.select_one(field.container_selector or "")
            if container is None:
                continue
            sources = _group_sources(container, field.name)
            if not sources:
                continue
            values[field.name] = sources[0] if len(sources) == 1 else sources
            values[field.qty_field or default_qty_field(field.name)] = len(sources)

        elif field.kind == FieldKind.COMPOSITE_PRICE_INT:
            element = document.find(attrs={dom.PRICE_INT_ATTR: field.name})
            if element is not None:
                int_value, _ = read_price_parts(element, separator)
                if int_value:
                    values[field.name] = int_value

        elif field.kind == FieldKind.COMPOSITE_PRICE_DECIMAL:
            element = document.find(attrs={dom.PRICE_DECIMAL_ATTR: field.name})
            if element is not None:
                _, decimal_value = read_price_parts(element, separator)
                if decimal_value:
                    values[field.name] = decimal_value

    return BannerRecord(values=values, is_placeholder=True)


def describe(descriptor: TemplateDescriptor) -> List[Dict[str, Union[str, None]]]:
    """Plain rows for the editable-fields panel."""
    return [
        {"name": field.name, "label": field.display_name, "kind": field.kind.value}
        for field in descriptor
    ]
