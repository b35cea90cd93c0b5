"""
Binding Resolver
================

Write record values into the slots of a live render target. Only the
target's tree is mutated; the descriptor and the record never are, and
binding the same values twice leaves the same tree.

Value precedence per field: edit overlay entry if present, else the record's
value, else the slot keeps what it currently shows.
"""

from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from banner_batch.config.logging import get_logger
from banner_batch.config.settings import get_settings
from banner_batch.core.binding.composite_price import bind_price
from banner_batch.core.binding.image_groups import bind_image_group, coerce_qty, current_sources
from banner_batch.core.exceptions import FieldMissingInLiveTemplate
from banner_batch.core.template import dom
from banner_batch.core.template.discovery import default_qty_field
from banner_batch.models.schemas import (
    BannerRecord,
    BindReport,
    FieldKind,
    TemplateDescriptor,
    TemplateField,
)

if TYPE_CHECKING:
    from banner_batch.core.rendering.render_target import RenderTarget

logger = get_logger(__name__)

_MISSING = object()


def value_text(value: Any) -> str:
    """Text form of a record value; integral floats print without ``.0``."""
    if isinstance(value, list):
        return " ".join(str(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _image_source(value: Any) -> str:
    if isinstance(value, list):
        return str(value[0]) if value else ""
    return value_text(value)


def _pick(name: str, record: BannerRecord, overrides: Mapping[str, Any]) -> Any:
    if name in overrides:
        return overrides[name]
    value = record.get(name)
    return _MISSING if value is None else value


def _log_missing(name: str) -> bool:
    error = FieldMissingInLiveTemplate(name)
    logger.debug("Skipping slot", field=name, error=str(error), error_type=type(error).__name__)
    return False


def _missing(report: BindReport, name: str) -> None:
    _log_missing(name)
    report.missing.append(name)


def _bind_text(document: BeautifulSoup, name: str, value: Any) -> bool:
    elements = dom.find_by_attr(document, dom.FIELD_ATTR, name)
    for element in elements:
        dom.set_text(element, value_text(value))
    return bool(elements)


def _bind_image(document: BeautifulSoup, name: str, value: Any) -> bool:
    elements = dom.find_by_attr(document, dom.FIELD_ATTR, name)
    for element in elements:
        if element.name == "img":
            element["src"] = _image_source(value)
        else:
            dom.set_text(element, value_text(value))
    return bool(elements)


def _group_container(document: BeautifulSoup, field: TemplateField) -> Optional[Tag]:
    if not field.container_selector:
        return None
    return document.select_one(field.container_selector)


def _price_elements(document: BeautifulSoup, field: TemplateField) -> List[Tag]:
    attr = dom.PRICE_INT_ATTR if field.kind == FieldKind.COMPOSITE_PRICE_INT else dom.PRICE_DECIMAL_ATTR
    return dom.find_by_attr(document, attr, field.name)


def _price_pair(element: Tag) -> Tuple[Optional[str], Optional[str]]:
    return element.get(dom.PRICE_INT_ATTR), element.get(dom.PRICE_DECIMAL_ATTR)


def bind(
    target: "RenderTarget",
    descriptor: TemplateDescriptor,
    record: BannerRecord,
    overrides: Optional[Mapping[str, Any]] = None,
    separator: Optional[str] = None,
) -> BindReport:
    """
    Bind a record onto a render target.

    Args:
        target: Render target exposing the live ``document``
        descriptor: Fields of the target's template
        record: Values to write
        overrides: Edit overlay entries for this record, applied over the record
        separator: Decimal separator of price slots, settings default

    Returns:
        BindReport listing bound, missing and unchanged fields
    """
    document: BeautifulSoup = target.document
    overrides = overrides or {}
    if separator is None:
        separator = get_settings().price_decimal_separator

    report = BindReport()
    prices_done = set()

    for field in descriptor:
        if field.kind in (FieldKind.COMPOSITE_PRICE_INT, FieldKind.COMPOSITE_PRICE_DECIMAL):
            elements = _price_elements(document, field)
            if not elements:
                _missing(report, field.name)
                continue
            for element in elements:
                if id(element) in prices_done:
                    continue
                prices_done.add(id(element))
                int_name, decimal_name = _price_pair(element)
                int_value = _pick(int_name, record, overrides) if int_name else _MISSING
                decimal_value = _pick(decimal_name, record, overrides) if decimal_name else _MISSING
                bind_price(
                    document,
                    element,
                    None if int_value is _MISSING else value_text(int_value),
                    None if decimal_value is _MISSING else value_text(decimal_value),
                    separator,
                )
            value = _pick(field.name, record, overrides)
            (report.unchanged if value is _MISSING else report.bound).append(field.name)
            continue

        if field.kind == FieldKind.REPEATED_IMAGE_GROUP:
            container = _group_container(document, field)
            if container is None:
                _missing(report, field.name)
                continue
            value = _pick(field.name, record, overrides)
            qty = coerce_qty(_pick(field.qty_field or default_qty_field(field.name), record, overrides))
            if value is _MISSING and qty is None:
                report.unchanged.append(field.name)
                continue
            shown = bind_image_group(
                document, container, field.name, None if value is _MISSING else value, qty
            )
            logger.debug("Image group bound", field=field.name, images=shown)
            report.bound.append(field.name)
            continue

        value = _pick(field.name, record, overrides)
        if value is _MISSING:
            if not dom.find_by_attr(document, dom.FIELD_ATTR, field.name):
                _missing(report, field.name)
            else:
                report.unchanged.append(field.name)
            continue

        if field.kind == FieldKind.IMAGE:
            found = _bind_image(document, field.name, value)
        else:
            found = _bind_text(document, field.name, value)
        if found:
            report.bound.append(field.name)
        else:
            _missing(report, field.name)

    return report


def _group_for_qty(descriptor: TemplateDescriptor, name: str) -> Optional[TemplateField]:
    for field in descriptor.of_kind(FieldKind.REPEATED_IMAGE_GROUP):
        if (field.qty_field or default_qty_field(field.name)) == name:
            return field
    return None


def bind_field(
    target: "RenderTarget",
    descriptor: TemplateDescriptor,
    name: str,
    value: Any,
    separator: Optional[str] = None,
) -> bool:
    """
    Bind a single field value onto a render target, used for live edits.

    A group's quantity field re-binds its group with the sources it currently
    shows; a price part re-binds its slot keeping the other part.

    Returns:
        True when a live slot took the value
    """
    document: BeautifulSoup = target.document
    if separator is None:
        separator = get_settings().price_decimal_separator

    field = descriptor.get(name)
    if field is None:
        group = _group_for_qty(descriptor, name)
        if group is None:
            return _log_missing(name)
        container = _group_container(document, group)
        if container is None:
            return _log_missing(group.name)
        bind_image_group(document, container, group.name, None, coerce_qty(value))
        return True

    if field.kind == FieldKind.COMPOSITE_PRICE_INT:
        elements = _price_elements(document, field)
        for element in elements:
            bind_price(document, element, value_text(value), None, separator)
    elif field.kind == FieldKind.COMPOSITE_PRICE_DECIMAL:
        elements = _price_elements(document, field)
        for element in elements:
            bind_price(document, element, None, value_text(value), separator)
    elif field.kind == FieldKind.REPEATED_IMAGE_GROUP:
        container = _group_container(document, field)
        elements = [container] if container is not None else []
        if container is not None:
            # a single new source keeps the number of images currently shown
            qty = None if isinstance(value, list) else len(current_sources(container, field.name)) or None
            bind_image_group(document, container, field.name, value, qty)
    elif field.kind == FieldKind.IMAGE:
        return _bind_image(document, name, value) or _log_missing(name)
    else:
        return _bind_text(document, name, value) or _log_missing(name)

    if not elements:
        return _log_missing(name)
    return True

