from __future__ import annotations

from .dom import DocumentHandle, NodeHandle, iter_ancestors
from .models import ElementDescriptor, Rect

HOVER_COLOR = "#00d4ff"
LOCKED_COLOR = "#f38ba8"

_HIGHLIGHT_BASE = (
    "position: fixed; pointer-events: none; z-index: 999998; "
    "background: rgba(0, 212, 255, 0.1);"
)
_TOOLTIP_BASE = (
    "position: fixed; pointer-events: none; z-index: 999999; "
    "background: #1e1e2e; color: #cdd6f4; font-family: monospace; font-size: 11px; "
    "padding: 6px 10px; border-radius: 4px;"
)


def is_overlay_node(node: NodeHandle | None, id_prefix: str) -> bool:
    if node is None:
        return False
    for current in iter_ancestors(node, include_self=True):
        try:
            element_id = current.get_attribute("id") or ""
        except Exception:
            return False
        if element_id.startswith(id_prefix):
            return True
    return False


def tooltip_label(descriptor: ElementDescriptor) -> str:
    ident = f"#{descriptor.id}" if descriptor.id else ""
    classes = "".join(f".{token}" for token in descriptor.classes[:3])
    role = f' [role="{descriptor.role}"]' if descriptor.role else ""
    dims = f"{descriptor.rect.width}×{descriptor.rect.height}"
    return f"<{descriptor.tag}>{ident}{classes}{role} {dims}"


class HighlightOverlay:
    """Highlight box plus tooltip drawn into the inspected document.

    Both nodes carry ids starting with ``id_prefix`` so pointer, click and
    mutation handling can recognise and skip them.
    """

    def __init__(self, document: DocumentHandle, id_prefix: str) -> None:
        self.document = document
        self.id_prefix = id_prefix
        self._highlight: NodeHandle | None = None
        self._tooltip: NodeHandle | None = None
        self.visible = False
        self.locked = False

    @property
    def attached(self) -> bool:
        return self._highlight is not None

    def attach(self) -> None:
        if self._highlight is not None:
            return
        root = self.document.root_container()
        if root is None:
            return
        self._highlight = self.document.create_element("div")
        self._highlight.set_attribute("id", f"{self.id_prefix}_highlight")
        self._tooltip = self.document.create_element("div")
        self._tooltip.set_attribute("id", f"{self.id_prefix}_tooltip")
        self._apply_hidden()
        root.append_child(self._highlight)
        root.append_child(self._tooltip)

    def detach(self) -> None:
        nodes = (self._highlight, self._tooltip)
        self._highlight = None
        self._tooltip = None
        self.visible = False
        self.locked = False
        for node in nodes:
            if node is not None:
                node.remove()

    def show(self, rect: Rect, label: str = "", locked: bool = False) -> None:
        if self._highlight is None or self._tooltip is None:
            return
        self.locked = locked
        color = LOCKED_COLOR if locked else HOVER_COLOR
        self._highlight.set_attribute(
            "style",
            f"{_HIGHLIGHT_BASE} border: 2px solid {color}; display: block; "
            f"left: {rect.x}px; top: {rect.y}px; width: {rect.width}px; height: {rect.height}px;",
        )
        if label:
            self._tooltip.set_text(label)
            self._tooltip.set_attribute(
                "style",
                f"{_TOOLTIP_BASE} display: block; left: {rect.x + 12}px; top: {rect.y + rect.height + 12}px;",
            )
        self.visible = True

    def hide(self) -> None:
        if self._highlight is None:
            return
        self._apply_hidden()
        self.visible = False
        self.locked = False

    def _apply_hidden(self) -> None:
        if self._highlight is not None:
            self._highlight.set_attribute("style", f"{_HIGHLIGHT_BASE} border: 2px solid {HOVER_COLOR}; display: none;")
        if self._tooltip is not None:
            self._tooltip.set_attribute("style", f"{_TOOLTIP_BASE} display: none;")
