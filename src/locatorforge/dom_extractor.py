from __future__ import annotations

import logging
from typing import Callable, TypeVar

from .config import InspectorConfig
from .dom import DocumentHandle, HasFormSemantics, HasValue, NodeHandle, is_element, iter_ancestors
from .models import ElementDescriptor, HierarchyEntry, Rect
from .paths import build_absolute_xpath, build_css_selector, build_relative_xpath
from .selector_rules import normalize_classes, truncate

T = TypeVar("T")

logger = logging.getLogger("locatorforge.extractor")

_FOCUSABLE_TAGS = {"input", "button", "select", "textarea"}


def extract_descriptor(
    document: DocumentHandle,
    node: NodeHandle,
    config: InspectorConfig | None = None,
) -> ElementDescriptor:
    """Read ``node`` into a descriptor without touching the document.

    Every field is read on its own; a field that cannot be read (detached
    node, missing capability, host error) falls back to its empty default.
    """
    cfg = config or InspectorConfig()

    tag = _read(lambda: node.tag_name.lower(), "")
    attributes = _read(lambda: {str(k): str(v) for k, v in node.attribute_items()}, {})
    element_id = attributes.get("id", "").strip()
    # Protocol isinstance checks read the properties, which raise on detached handles.
    form = _read(lambda: node if isinstance(node, HasFormSemantics) else None, None)
    valued = _read(lambda: node if isinstance(node, HasValue) else None, None)
    classes = tuple(normalize_classes(attributes.get("class", "")))

    return ElementDescriptor(
        tag=tag,
        type=_read(lambda: str(form.type or ""), "") if form is not None else "",
        id=element_id,
        name=_read(lambda: str(form.name or ""), "") if form is not None else "",
        classes=classes,
        text=_read(lambda: truncate(node.text_content, cfg.text_limit), ""),
        inner_text=_read(lambda: truncate(node.inner_text, cfg.text_limit), ""),
        placeholder=attributes.get("placeholder", ""),
        aria_label=attributes.get("aria-label", ""),
        role=attributes.get("role", ""),
        label=_read(lambda: _resolve_label(document, node, element_id, cfg.text_limit), ""),
        href=attributes.get("href", ""),
        value=_read(lambda: str(valued.value or ""), "") if valued is not None else "",
        title=attributes.get("title", ""),
        tab_index=_read(lambda: _tab_index(tag, attributes), 0),
        disabled=_read(lambda: bool(form.disabled), False) if form is not None else False,
        read_only=_read(lambda: bool(form.read_only), False) if form is not None else False,
        required=_read(lambda: bool(form.required), False) if form is not None else False,
        attributes=tuple(attributes.items()),
        rect=_read(lambda: _rounded_rect(document.bounding_rect(node)), Rect()),
        visible=_read(lambda: _is_visible(document, node), False),
        hierarchy=_read(lambda: _hierarchy(document, node, cfg), ()),
        xpath=_read(lambda: build_relative_xpath(document, node), ""),
        absolute_xpath=_read(lambda: build_absolute_xpath(document, node), ""),
        css_selector=_read(
            lambda: build_css_selector(
                tag,
                element_id,
                classes,
                attributes.get("type", ""),
                max_classes=cfg.max_stable_classes,
            )
            if tag
            else "",
            "",
        ),
        inner_html=_read(lambda: truncate(node.inner_html, cfg.inner_html_limit), ""),
        outer_html=_read(lambda: truncate(node.outer_html, cfg.outer_html_limit), ""),
    )


def _read(getter: Callable[[], T], default: T) -> T:
    try:
        value = getter()
    except Exception as exc:
        logger.debug("Descriptor field fell back to default: %s", exc)
        return default
    return default if value is None else value


def _resolve_label(document: DocumentHandle, node: NodeHandle, element_id: str, limit: int) -> str:
    if element_id:
        explicit = document.find_label_for(element_id)
        if explicit is not None:
            text = truncate(explicit.text_content, limit)
            if text:
                return text
    for candidate in iter_ancestors(node, include_self=True):
        if is_element(candidate) and candidate.tag_name.lower() == "label":
            return truncate(candidate.text_content, limit)
    return ""


def _tab_index(tag: str, attributes: dict[str, str]) -> int:
    raw = attributes.get("tabindex", "").strip()
    if raw.lstrip("-").isdigit():
        return int(raw)
    if tag in _FOCUSABLE_TAGS or (tag == "a" and "href" in attributes):
        return 0
    return -1


def _rounded_rect(rect: Rect) -> Rect:
    return Rect(round(rect.x), round(rect.y), round(rect.width), round(rect.height))


def _is_visible(document: DocumentHandle, node: NodeHandle) -> bool:
    style = document.computed_style(node)
    if style.get("display") == "none" or style.get("visibility") == "hidden":
        return False
    return bool(document.has_layout(node))


def _hierarchy(document: DocumentHandle, node: NodeHandle, cfg: InspectorConfig) -> tuple[HierarchyEntry, ...]:
    root = document.root_container()
    entries: list[HierarchyEntry] = []
    for current in iter_ancestors(node, include_self=True):
        if len(entries) >= cfg.hierarchy_depth or not is_element(current):
            break
        if document.same_node(current, root):
            break
        entries.append(
            HierarchyEntry(
                tag=current.tag_name.lower(),
                id=(current.get_attribute("id") or ""),
                classes=tuple(normalize_classes(current.get_attribute("class") or ""))[: cfg.hierarchy_class_limit],
            )
        )
    return tuple(entries)
