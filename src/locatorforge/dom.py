"""Document-tree abstraction consumed by the inspector.

Hosts hand the inspector a :class:`DocumentHandle`; everything the core needs
from a live page (point lookup, traversal, attribute reads, layout, change
subscriptions and input listeners) goes through it. ``memory_dom`` and
``playwright_dom`` provide the two implementations shipped with the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Literal, Mapping, Protocol, Sequence, runtime_checkable

from .models import Rect

ELEMENT_NODE = 1
TEXT_NODE = 3

InputKind = Literal["pointermove", "click", "keydown"]
MutationKind = Literal["childList", "attributes"]
SelectorKind = Literal["xpath", "css"]


class InspectorError(RuntimeError):
    pass


class DocumentNotReadyError(InspectorError):
    """The document cannot be observed yet; retry after it attaches."""


class InvalidSelectorError(InspectorError):
    """The host selector engine rejected an XPath or CSS expression."""


@runtime_checkable
class NodeHandle(Protocol):
    @property
    def node_type(self) -> int: ...

    @property
    def tag_name(self) -> str: ...

    @property
    def parent(self) -> NodeHandle | None: ...

    @property
    def children(self) -> Sequence[NodeHandle]: ...

    @property
    def text_content(self) -> str: ...

    @property
    def inner_text(self) -> str: ...

    @property
    def inner_html(self) -> str: ...

    @property
    def outer_html(self) -> str: ...

    def get_attribute(self, name: str) -> str | None: ...

    def attribute_items(self) -> list[tuple[str, str]]: ...

    def set_attribute(self, name: str, value: str) -> None: ...

    def set_text(self, text: str) -> None: ...

    def append_child(self, child: NodeHandle) -> None: ...

    def remove(self) -> None: ...


@runtime_checkable
class HasValue(Protocol):
    @property
    def value(self) -> str: ...


@runtime_checkable
class HasFormSemantics(Protocol):
    @property
    def type(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def disabled(self) -> bool: ...

    @property
    def read_only(self) -> bool: ...

    @property
    def required(self) -> bool: ...


class Subscription(Protocol):
    def disconnect(self) -> None: ...


@dataclass(frozen=True, slots=True)
class InputEvent:
    kind: InputKind
    x: float = 0.0
    y: float = 0.0
    key: str = ""


@dataclass(frozen=True, slots=True)
class MutationRecord:
    type: MutationKind
    target: NodeHandle
    added_nodes: tuple[NodeHandle, ...] = ()
    attribute_name: str | None = None


InputHandler = Callable[[InputEvent], None]
MutationCallback = Callable[[Sequence[MutationRecord]], None]


class DocumentHandle(Protocol):
    def document_element(self) -> NodeHandle | None: ...

    def root_container(self) -> NodeHandle | None: ...

    def element_from_point(self, x: float, y: float) -> NodeHandle | None: ...

    def find_label_for(self, element_id: str) -> NodeHandle | None: ...

    def query_all(self, kind: SelectorKind, selector: str) -> list[NodeHandle]: ...

    def create_element(self, tag: str) -> NodeHandle: ...

    def bounding_rect(self, node: NodeHandle) -> Rect: ...

    def computed_style(self, node: NodeHandle) -> Mapping[str, str]: ...

    def has_layout(self, node: NodeHandle) -> bool: ...

    def same_node(self, first: NodeHandle | None, second: NodeHandle | None) -> bool: ...

    def add_event_listener(self, kind: InputKind, handler: InputHandler) -> None: ...

    def remove_event_listener(self, kind: InputKind, handler: InputHandler) -> None: ...

    def observe(self, callback: MutationCallback, attribute_filter: Sequence[str]) -> Subscription: ...


@dataclass(slots=True)
class ListenerRegistry:
    """Ordered handler lists keyed by input kind, shared by document implementations."""

    handlers: dict[str, list[InputHandler]] = field(default_factory=dict)

    def add(self, kind: InputKind, handler: InputHandler) -> None:
        bucket = self.handlers.setdefault(kind, [])
        if handler not in bucket:
            bucket.append(handler)

    def remove(self, kind: InputKind, handler: InputHandler) -> None:
        bucket = self.handlers.get(kind, [])
        if handler in bucket:
            bucket.remove(handler)

    def dispatch(self, event: InputEvent) -> int:
        bucket = list(self.handlers.get(event.kind, []))
        for handler in bucket:
            handler(event)
        return len(bucket)

    def has_listeners(self) -> bool:
        return any(self.handlers.values())


def is_element(node: object) -> bool:
    try:
        return getattr(node, "node_type", None) == ELEMENT_NODE
    except Exception:
        return False


def iter_elements(root: NodeHandle | None) -> Iterator[NodeHandle]:
    """Depth-first, document-order walk over ``root`` and its element descendants."""
    if root is None:
        return
    stack: list[NodeHandle] = [root]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(current.children)))


def iter_ancestors(node: NodeHandle, include_self: bool = False) -> Iterator[NodeHandle]:
    current = node if include_self else node.parent
    while current is not None:
        yield current
        current = current.parent


def same_tag_siblings(node: NodeHandle) -> list[NodeHandle]:
    parent = node.parent
    if parent is None:
        return [node]
    tag = node.tag_name
    return [child for child in parent.children if child.tag_name == tag]


def sibling_position(document: DocumentHandle, node: NodeHandle) -> tuple[int, int]:
    """Return the 1-based index of ``node`` among same-tag siblings and their count."""
    siblings = same_tag_siblings(node)
    for index, sibling in enumerate(siblings, start=1):
        if document.same_node(sibling, node):
            return index, len(siblings)
    return 1, max(1, len(siblings))
