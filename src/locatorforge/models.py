from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping

LocatorStrategy = Literal[
    "data-testid",
    "data-cy",
    "data-test",
    "data-automation-id",
    "id",
    "name",
    "aria-label",
    "role",
    "label",
    "placeholder",
    "title",
    "href",
    "link-text",
    "button-text",
    "text",
    "relative-xpath",
    "css",
    "absolute-xpath",
]

EventKind = Literal["preview", "selection"]

TEST_ID_ATTRIBUTES: tuple[str, ...] = (
    "data-testid",
    "data-cy",
    "data-test",
    "data-automation-id",
)


class InteractionState(str, Enum):
    DISABLED = "disabled"
    HOVERING = "hovering"
    LOCKED = "locked"


@dataclass(frozen=True, slots=True)
class Rect:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class HierarchyEntry:
    tag: str = ""
    id: str = ""
    classes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "id": self.id, "classes": list(self.classes)}


@dataclass(frozen=True, slots=True)
class ElementDescriptor:
    """Snapshot of one node at one instant.

    Descriptors are values: a changed node yields a new descriptor, the old
    one is never updated. Every field has an empty default so partially
    readable nodes still produce a complete record. ``attributes`` is kept as
    ordered name/value pairs; a mapping passed in is frozen into pairs.
    """

    tag: str = ""
    type: str = ""
    id: str = ""
    name: str = ""
    classes: tuple[str, ...] = ()
    text: str = ""
    inner_text: str = ""
    placeholder: str = ""
    aria_label: str = ""
    role: str = ""
    label: str = ""
    href: str = ""
    value: str = ""
    title: str = ""
    tab_index: int = 0
    disabled: bool = False
    read_only: bool = False
    required: bool = False
    attributes: tuple[tuple[str, str], ...] = ()
    rect: Rect = field(default_factory=Rect)
    visible: bool = False
    hierarchy: tuple[HierarchyEntry, ...] = ()
    xpath: str = ""
    absolute_xpath: str = ""
    css_selector: str = ""
    inner_html: str = ""
    outer_html: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.attributes, Mapping):
            object.__setattr__(self, "attributes", tuple(self.attributes.items()))

    def attribute(self, name: str, default: str = "") -> str:
        for key, value in self.attributes:
            if key == name:
                return value
        return default

    @property
    def test_ids(self) -> dict[str, str]:
        return {attr: self.attribute(attr) for attr in TEST_ID_ATTRIBUTES}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tag": self.tag,
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "classes": list(self.classes),
            "text": self.text,
            "innerText": self.inner_text,
            "placeholder": self.placeholder,
            "ariaLabel": self.aria_label,
            "ariaRole": self.role,
            "label": self.label,
            "href": self.href,
            "value": self.value,
            "title": self.title,
            "tabIndex": self.tab_index,
            "disabled": self.disabled,
            "readOnly": self.read_only,
            "required": self.required,
        }
        payload.update(self.test_ids)
        payload.update(
            {
                "attributes": dict(self.attributes),
                "rect": self.rect.to_dict(),
                "visible": self.visible,
                "hierarchy": [entry.to_dict() for entry in self.hierarchy],
                "xpath": self.xpath,
                "absoluteXpath": self.absolute_xpath,
                "cssSelector": self.css_selector,
                "innerHTML": self.inner_html,
                "outerHTML": self.outer_html,
            }
        )
        return payload


@dataclass(frozen=True, slots=True)
class Locator:
    strategy: LocatorStrategy
    value: str
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.strategy, "value": self.value, "confidence": self.confidence}


@dataclass(frozen=True, slots=True)
class InspectorEvent:
    kind: EventKind
    descriptor: ElementDescriptor
    locators: tuple[Locator, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "descriptor": self.descriptor.to_dict(),
            "locators": [locator.to_dict() for locator in self.locators],
        }
