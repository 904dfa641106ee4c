"""In-memory document tree implementing :class:`~locatorforge.dom.DocumentHandle`.

Layout is explicit: hosts (and tests) assign each element a viewport
rectangle with :meth:`Element.set_rect`. Visibility follows the inline
``style`` attribute and the ``hidden`` attribute. Mutations are queued while
observers exist and delivered as one batch per :meth:`Document.flush`, the
way a browser delivers one MutationObserver callback per microtask.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Mapping, Sequence

from cssselect import SelectorError
from lxml import etree, html as lxml_html

from .dom import (
    ELEMENT_NODE,
    TEXT_NODE,
    DocumentNotReadyError,
    InputEvent,
    InputHandler,
    InputKind,
    InvalidSelectorError,
    ListenerRegistry,
    MutationCallback,
    MutationRecord,
    SelectorKind,
    iter_elements,
)
from .models import Rect

FORM_TAGS = {"input", "button", "select", "textarea"}
VOID_TAGS = {"input", "br", "img", "hr", "meta", "link"}
_DEFAULT_FORM_TYPES = {
    "input": "text",
    "button": "submit",
    "select": "select-one",
    "textarea": "textarea",
}


def parse_inline_style(style: str | None) -> dict[str, str]:
    declarations: dict[str, str] = {}
    for chunk in (style or "").split(";"):
        if ":" not in chunk:
            continue
        key, value = chunk.split(":", 1)
        key = key.strip().lower()
        if key:
            declarations[key] = value.strip().lower()
    return declarations


class Text:
    node_type = TEXT_NODE
    tag_name = ""

    def __init__(self, data: str, owner: Document | None = None) -> None:
        self.data = data
        self.owner = owner
        self.parent: Element | None = None

    @property
    def children(self) -> list[Element]:
        return []

    @property
    def text_content(self) -> str:
        return self.data

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    def __repr__(self) -> str:
        return f"Text({self.data!r})"


class Element:
    node_type = ELEMENT_NODE

    def __init__(self, tag: str, owner: Document | None = None) -> None:
        self._tag = tag.lower()
        self.owner = owner
        self.parent: Element | None = None
        self.child_nodes: list[Element | Text] = []
        self._attributes: dict[str, str] = {}
        self._rect = Rect()

    def __repr__(self) -> str:
        ident = self._attributes.get("id")
        return f"<{self._tag}{'#' + ident if ident else ''}>"

    @property
    def tag_name(self) -> str:
        return self._tag

    @property
    def children(self) -> list[Element]:
        return [node for node in self.child_nodes if isinstance(node, Element)]

    @property
    def id(self) -> str:
        return self._attributes.get("id", "")

    @property
    def is_connected(self) -> bool:
        if self.owner is None or self.owner.html is None:
            return False
        current: Element | None = self
        while current is not None:
            if current is self.owner.html:
                return True
            current = current.parent
        return False

    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name.lower())

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self._attributes

    def attribute_items(self) -> list[tuple[str, str]]:
        return list(self._attributes.items())

    def set_attribute(self, name: str, value: str) -> None:
        key = name.lower()
        self._attributes[key] = str(value)
        self._record_attribute(key)

    def remove_attribute(self, name: str) -> None:
        key = name.lower()
        if key in self._attributes:
            del self._attributes[key]
            self._record_attribute(key)

    def set_rect(self, x: float, y: float, width: float, height: float) -> Element:
        self._rect = Rect(round(x), round(y), round(width), round(height))
        return self

    @property
    def rect(self) -> Rect:
        return self._rect

    def append_child(self, child: Element | Text) -> Element | Text:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.child_nodes.append(child)
        if self.owner is not None and self.is_connected:
            self.owner.record(MutationRecord(type="childList", target=self, added_nodes=(child,)))
        return child

    def append(self, *nodes: Element | Text | str) -> Element:
        for node in nodes:
            self.append_child(Text(node, self.owner) if isinstance(node, str) else node)
        return self

    def remove_child(self, child: Element | Text) -> None:
        connected = self.is_connected
        self.child_nodes.remove(child)
        child.parent = None
        if self.owner is not None and connected:
            self.owner.record(MutationRecord(type="childList", target=self))

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    def set_text(self, text: str) -> None:
        for child in list(self.child_nodes):
            child.parent = None
        self.child_nodes = []
        self.append_child(Text(text, self.owner))

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.child_nodes)

    @property
    def inner_text(self) -> str:
        if self.owner is not None and not self.owner.is_rendered(self):
            return ""
        pieces: list[str] = []
        for child in self.child_nodes:
            if isinstance(child, Text):
                pieces.append(child.data)
            elif self.owner is None or self.owner.is_rendered(child):
                pieces.append(child.inner_text)
        return "".join(pieces)

    @property
    def inner_html(self) -> str:
        parts: list[str] = []
        for child in self.child_nodes:
            if isinstance(child, Text):
                parts.append(escape(child.data, quote=False))
            else:
                parts.append(child.outer_html)
        return "".join(parts)

    @property
    def outer_html(self) -> str:
        attrs = "".join(f' {key}="{escape(value)}"' for key, value in self._attributes.items())
        if self._tag in VOID_TAGS:
            return f"<{self._tag}{attrs}>"
        return f"<{self._tag}{attrs}>{self.inner_html}</{self._tag}>"

    def _record_attribute(self, name: str) -> None:
        if self.owner is not None and self.is_connected:
            self.owner.record(MutationRecord(type="attributes", target=self, attribute_name=name))


class FormElement(Element):
    """Form controls carry value and form semantics the way browser elements do."""

    def __init__(self, tag: str, owner: Document | None = None) -> None:
        super().__init__(tag, owner)
        self._value: str | None = None

    @property
    def value(self) -> str:
        if self._value is not None:
            return self._value
        if self.tag_name == "textarea":
            return self.text_content
        return self.get_attribute("value") or ""

    @value.setter
    def value(self, new_value: str) -> None:
        self._value = str(new_value)

    @property
    def type(self) -> str:
        raw = (self.get_attribute("type") or "").strip().lower()
        if self.tag_name == "select":
            return "select-multiple" if self.has_attribute("multiple") else "select-one"
        if self.tag_name == "textarea":
            return "textarea"
        return raw or _DEFAULT_FORM_TYPES.get(self.tag_name, "")

    @property
    def name(self) -> str:
        return self.get_attribute("name") or ""

    @property
    def disabled(self) -> bool:
        return self.has_attribute("disabled")

    @property
    def read_only(self) -> bool:
        return self.has_attribute("readonly")

    @property
    def required(self) -> bool:
        return self.has_attribute("required")


@dataclass(slots=True, eq=False)
class _Observer:
    callback: MutationCallback
    attribute_filter: frozenset[str]
    document: Document
    active: bool = True

    def disconnect(self) -> None:
        if not self.active:
            return
        self.active = False
        self.document.unregister(self)


class Document:
    def __init__(self, *, create_body: bool = True) -> None:
        self.html: Element | None = None
        self.head: Element | None = None
        self.body: Element | None = None
        self._listeners = ListenerRegistry()
        self._observers: list[_Observer] = []
        self._pending: list[MutationRecord] = []
        if create_body:
            self.html = self.create_element("html")
            self.head = self.create_element("head")
            self.body = self.create_element("body")
            self.html.child_nodes.extend([self.head, self.body])
            self.head.parent = self.html
            self.body.parent = self.html

    def create_element(self, tag: str, **attributes: str) -> Element:
        lowered = tag.lower()
        element = FormElement(lowered, self) if lowered in FORM_TAGS else Element(lowered, self)
        for key, value in attributes.items():
            element._attributes[key.replace("_", "-")] = str(value)
        return element

    def create_text_node(self, data: str) -> Text:
        return Text(data, self)

    def document_element(self) -> Element | None:
        return self.html

    def root_container(self) -> Element | None:
        return self.body

    def iter_elements(self) -> list[Element]:
        return list(iter_elements(self.html))  # type: ignore[arg-type]

    def get_element_by_id(self, element_id: str) -> Element | None:
        for element in self.iter_elements():
            if element.id == element_id:
                return element
        return None

    def find_label_for(self, element_id: str) -> Element | None:
        if not element_id:
            return None
        for element in self.iter_elements():
            if element.tag_name == "label" and element.get_attribute("for") == element_id:
                return element
        return None

    def query_all(self, kind: SelectorKind, selector: str) -> list[Element]:
        """Evaluate an XPath or CSS selector with lxml against a snapshot of the tree."""
        if self.html is None:
            return []
        origins: dict[etree._Element, Element] = {}
        mirror = _mirror(self.html, None, origins)
        try:
            if kind == "xpath":
                found = mirror.xpath(selector)
            else:
                found = mirror.cssselect(selector, translator="html")
        except (etree.XPathError, SelectorError) as exc:
            raise InvalidSelectorError(f"Invalid {kind} selector {selector!r}: {exc}") from exc
        if not isinstance(found, list):
            raise InvalidSelectorError(f"XPath {selector!r} does not select nodes")
        return [origins[item] for item in found if isinstance(item, etree._Element) and item in origins]

    def element_from_point(self, x: float, y: float) -> Element | None:
        hit: Element | None = None
        for element in self.iter_elements():
            if not self.is_rendered(element):
                continue
            if self.computed_style(element).get("visibility") == "hidden":
                continue
            if parse_inline_style(element.get_attribute("style")).get("pointer-events") == "none":
                continue
            if element.rect.contains(x, y):
                hit = element
        return hit

    def bounding_rect(self, node: Element) -> Rect:
        if not isinstance(node, Element) or not self.is_rendered(node):
            return Rect()
        return node.rect

    def computed_style(self, node: Element) -> Mapping[str, str]:
        own = parse_inline_style(node.get_attribute("style"))
        display = own.get("display") or ("none" if node.has_attribute("hidden") else "block")
        visibility = own.get("visibility", "")
        current = node.parent
        while not visibility and current is not None:
            visibility = parse_inline_style(current.get_attribute("style")).get("visibility", "")
            current = current.parent
        return {"display": display, "visibility": visibility or "visible"}

    def is_rendered(self, node: Element) -> bool:
        if not node.is_connected:
            return False
        current: Element | None = node
        while current is not None:
            if self.computed_style(current).get("display") == "none":
                return False
            current = current.parent
        return True

    def has_layout(self, node: Element) -> bool:
        return isinstance(node, Element) and self.is_rendered(node)

    def same_node(self, first: object, second: object) -> bool:
        return first is not None and first is second

    def add_event_listener(self, kind: InputKind, handler: InputHandler) -> None:
        self._listeners.add(kind, handler)

    def remove_event_listener(self, kind: InputKind, handler: InputHandler) -> None:
        self._listeners.remove(kind, handler)

    def has_listeners(self) -> bool:
        return self._listeners.has_listeners()

    def dispatch_pointer_move(self, x: float, y: float) -> int:
        return self._listeners.dispatch(InputEvent(kind="pointermove", x=x, y=y))

    def dispatch_click(self, x: float, y: float) -> int:
        return self._listeners.dispatch(InputEvent(kind="click", x=x, y=y))

    def dispatch_key(self, key: str) -> int:
        return self._listeners.dispatch(InputEvent(kind="keydown", key=key))

    def observe(self, callback: MutationCallback, attribute_filter: Sequence[str]) -> _Observer:
        if self.body is None:
            raise DocumentNotReadyError("Document has no body to observe yet.")
        observer = _Observer(callback, frozenset(item.lower() for item in attribute_filter), self)
        self._observers.append(observer)
        return observer

    def unregister(self, observer: _Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def attach_body(self) -> Element:
        if self.html is None:
            self.html = self.create_element("html")
        if self.body is None:
            self.body = self.create_element("body")
            self.html.child_nodes.append(self.body)
            self.body.parent = self.html
        return self.body

    def record(self, record: MutationRecord) -> None:
        if self._observers:
            self._pending.append(record)

    def flush(self) -> int:
        """Deliver queued mutations, one batch per observer, in the order they happened."""
        pending, self._pending = self._pending, []
        delivered = 0
        for observer in list(self._observers):
            if not observer.active:
                continue
            batch = [
                record
                for record in pending
                if record.type == "childList" or record.attribute_name in observer.attribute_filter
            ]
            if not batch:
                continue
            observer.callback(batch)
            delivered += 1
        return delivered


def _mirror(
    source: Element,
    parent: lxml_html.HtmlElement | None,
    origins: dict[etree._Element, Element],
) -> lxml_html.HtmlElement:
    copy = lxml_html.Element(source.tag_name) if parent is None else etree.SubElement(parent, source.tag_name)
    for name, value in source.attribute_items():
        try:
            copy.set(name, value)
        except ValueError:
            # Not a valid XML attribute name; no selector can address it.
            continue
    origins[copy] = source
    previous: lxml_html.HtmlElement | None = None
    for child in source.child_nodes:
        if isinstance(child, Text):
            if previous is None:
                copy.text = (copy.text or "") + child.data
            else:
                previous.tail = (previous.tail or "") + child.data
        else:
            previous = _mirror(child, copy, origins)
    return copy
