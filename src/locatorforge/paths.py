from __future__ import annotations

from typing import Sequence

from .dom import DocumentHandle, NodeHandle, is_element, sibling_position
from .selector_rules import escape_css_identifier, escape_css_string, stable_classes, xpath_literal


def build_relative_xpath(document: DocumentHandle, node: NodeHandle) -> str:
    """Anchor on the nearest ancestor-or-self with an id, else chain tags from the root container.

    A positional index is only added where same-tag siblings make the step ambiguous.
    """
    root = document.root_container()
    parts: list[str] = []
    current: NodeHandle | None = node
    while current is not None and is_element(current):
        element_id = (current.get_attribute("id") or "").strip()
        if element_id:
            parts.insert(0, f"*[@id={xpath_literal(element_id)}]")
            return "//" + "/".join(parts)

        tag = current.tag_name.lower()
        if document.same_node(current, root):
            parts.insert(0, tag)
            break

        index, count = sibling_position(document, current)
        parts.insert(0, f"{tag}[{index}]" if count > 1 else tag)
        current = current.parent
    return "//" + "/".join(parts) if parts else ""


def is_anchored_xpath(xpath: str) -> bool:
    return xpath.startswith("//*[@id=")


def build_absolute_xpath(document: DocumentHandle, node: NodeHandle) -> str:
    parts: list[str] = []
    current: NodeHandle | None = node
    while current is not None and is_element(current):
        index, _count = sibling_position(document, current)
        parts.insert(0, f"{current.tag_name.lower()}[{index}]")
        current = current.parent
    return "/" + "/".join(parts) if parts else ""


def build_css_selector(
    tag: str,
    element_id: str,
    classes: Sequence[str],
    type_value: str = "",
    max_classes: int = 3,
) -> str:
    tag = tag.lower()
    if element_id:
        return f"{tag}#{escape_css_identifier(element_id)}"

    selector = tag
    for token in stable_classes(classes, limit=max_classes):
        selector += f".{escape_css_identifier(token)}"
    if type_value:
        selector += f'[type="{escape_css_string(type_value)}"]'
    return selector
