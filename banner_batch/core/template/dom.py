"""
Document Helpers
================

Small helpers over BeautifulSoup trees shared by discovery, binding and
resource resolution.
"""

from typing import Dict, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag


FIELD_ATTR = "data-field"
LABEL_ATTR = "data-label"
PRICE_INT_ATTR = "data-field-int"
PRICE_DECIMAL_ATTR = "data-field-decimal"
GROUP_ATTR = "data-image-group"
GROUP_QTY_ATTR = "data-qty-field"


def split_declarations(style: str) -> List[str]:
    """Split on ``;`` outside parentheses and quotes, so ``url(data:...;base64,...)`` stays whole."""
    chunks: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    for char in style:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")" and depth:
            depth -= 1
        elif char == ";" and not depth:
            chunks.append("".join(current))
            current = []
            continue
        current.append(char)
    chunks.append("".join(current))
    return chunks


def parse_style(style: Optional[str]) -> Dict[str, str]:
    """Parse an inline ``style`` attribute into an ordered property map."""
    declarations: Dict[str, str] = {}
    if not style:
        return declarations
    for chunk in split_declarations(style):
        if ":" not in chunk:
            continue
        prop, value = chunk.split(":", 1)
        prop = prop.strip().lower()
        if prop:
            declarations[prop] = value.strip()
    return declarations


def format_style(declarations: Dict[str, str]) -> str:
    return "; ".join(f"{prop}: {value}" for prop, value in declarations.items())


def is_hidden(element: Tag) -> bool:
    return parse_style(element.get("style")).get("display", "").lower() == "none"


def set_hidden(element: Tag, hidden: bool) -> None:
    """Toggle ``display: none`` without touching other inline declarations."""
    declarations = parse_style(element.get("style"))
    if hidden:
        declarations["display"] = "none"
    elif declarations.get("display", "").lower() == "none":
        del declarations["display"]

    if declarations:
        element["style"] = format_style(declarations)
    elif element.has_attr("style"):
        del element["style"]


def classes_of(element: Tag) -> List[str]:
    value = element.get("class") or []
    if isinstance(value, str):
        return value.split()
    return list(value)


def has_class(element: Tag, name: str) -> bool:
    return name in classes_of(element)


def set_text(element: Tag, text: str) -> None:
    """Replace every child of ``element`` with a single text node."""
    element.clear()
    element.append(NavigableString(text))


def text_of(element: Tag) -> str:
    return element.get_text().strip()


def find_by_attr(document: BeautifulSoup, attr: str, value: str) -> List[Tag]:
    """All elements whose ``attr`` equals ``value``, in document order."""
    return document.find_all(attrs={attr: value})


def body_of(document: BeautifulSoup) -> Tag:
    """The ``<body>`` element, or the document itself for fragments."""
    body = document.find("body")
    return body if isinstance(body, Tag) else document


def contains(ancestor: Tag, element: Tag) -> bool:
    return any(parent is ancestor for parent in element.parents)


def clone_tag(document: BeautifulSoup, element: Tag) -> Tag:
    """Shallow copy of an empty element (attributes only), detached from the tree."""
    attrs = {key: list(value) if isinstance(value, list) else value for key, value in element.attrs.items()}
    return document.new_tag(element.name, attrs=attrs)
