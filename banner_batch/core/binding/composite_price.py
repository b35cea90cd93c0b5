"""
Composite Price Slots
=====================

A price slot is one element carrying ``data-field-int`` and
``data-field-decimal``. Its integer and decimal parts render as two adjacent
spans whose class depends on the integer digit count, so that two- and
three-digit prices get different widths and kerning::

    <div class="price" data-field-int="sec_price_int" data-field-decimal="sec_price_decimal">
      <span class="sign">¥</span><span class="price-int-2">99</span><span class="price-decimal-2">.90</span>
    </div>

Older templates write the integer as a bare text node after ``.sign`` and the
decimal in a ``.decimal`` span; binding converts them to the structure above.
"""

from typing import Optional, Tuple

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from banner_batch.core.template import dom

INT_CLASS = "price-int-{style}"
DECIMAL_CLASS = "price-decimal-{style}"
LEGACY_DECIMAL_CLASS = "decimal"
SIGN_CLASS = "sign"
STYLES = ("2", "3")


def price_style(int_text: str) -> str:
    """``"2"`` for up to two integer digits, ``"3"`` from three digits on."""
    digits = sum(ch.isdigit() for ch in int_text) or len(int_text.strip())
    return "2" if digits <= 2 else "3"


def normalize_decimal(decimal_text: str, separator: str = ".") -> str:
    """Exactly one leading separator, whether or not the input had any."""
    return separator + decimal_text.strip().lstrip(separator)


def _direct_texts(element: Tag):
    return [
        child
        for child in element.children
        if isinstance(child, NavigableString) and not isinstance(child, Comment)
    ]


def read_price_parts(element: Tag, separator: str = ".") -> Tuple[str, str]:
    """Integer and decimal text of a price slot, decimal without its separator."""
    int_value = ""
    decimal_value = ""

    int_nodes = element.select(", ".join("." + INT_CLASS.format(style=s) for s in STYLES))
    if int_nodes:
        int_value = dom.text_of(int_nodes[0])
    else:
        sign = element.select_one("." + SIGN_CLASS)
        sibling = sign.next_sibling if sign is not None else None
        if isinstance(sibling, NavigableString) and not isinstance(sibling, Comment):
            int_value = str(sibling).strip()
        elif sign is None:
            texts = [str(text).strip() for text in _direct_texts(element) if str(text).strip()]
            int_value = texts[0] if texts else ""

    decimal_nodes = element.select(
        ", ".join("." + DECIMAL_CLASS.format(style=s) for s in STYLES)
    ) or element.select("." + LEGACY_DECIMAL_CLASS)
    if decimal_nodes:
        decimal_value = dom.text_of(decimal_nodes[0]).lstrip(separator)

    return int_value, decimal_value


def _single(document: BeautifulSoup, element: Tag, class_name: str) -> Tag:
    """Keep the first descendant with ``class_name``, drop the rest, create one if absent."""
    nodes = element.select("." + class_name)
    for extra in nodes[1:]:
        extra.decompose()
    if nodes:
        return nodes[0]
    return document.new_tag("span", attrs={"class": [class_name]})


def bind_price(
    document: BeautifulSoup,
    element: Tag,
    int_value: Optional[str],
    decimal_value: Optional[str],
    separator: str = ".",
) -> bool:
    """
    Write both parts of a price slot.

    ``None`` for a part keeps its current value. After the call the slot holds
    exactly one integer span and one decimal span of the style selected by the
    integer digit count; repeated calls with the same values leave the tree
    unchanged.

    Returns:
        False when both parts are ``None`` and the slot was left untouched
    """
    if int_value is None and decimal_value is None:
        return False

    current_int, current_decimal = read_price_parts(element, separator)
    int_text = (current_int if int_value is None else int_value).strip()
    decimal_text = current_decimal if decimal_value is None else decimal_value

    style = price_style(int_text)
    other = STYLES[1] if style == STYLES[0] else STYLES[0]

    stale = element.select(
        ", ".join(
            [
                "." + INT_CLASS.format(style=other),
                "." + DECIMAL_CLASS.format(style=other),
                "." + LEGACY_DECIMAL_CLASS,
            ]
        )
    )
    for node in stale:
        node.decompose()

    # legacy integer text node and any other stray text
    for text in _direct_texts(element):
        if str(text).strip():
            text.extract()

    int_node = _single(document, element, INT_CLASS.format(style=style))
    decimal_node = _single(document, element, DECIMAL_CLASS.format(style=style))

    sign = element.select_one("." + SIGN_CLASS)
    if sign is not None and sign is not int_node:
        sign.insert_after(int_node)
    else:
        element.insert(0, int_node)
    int_node.insert_after(decimal_node)

    dom.set_text(int_node, int_text)
    dom.set_text(decimal_node, normalize_decimal(decimal_text, separator))
    return True
