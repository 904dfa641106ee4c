from __future__ import annotations

import logging

from .config import InspectorConfig
from .dom import DocumentHandle, DocumentNotReadyError, InputEvent, InputHandler, InputKind, NodeHandle
from .dom_extractor import extract_descriptor
from .locator_generator import build_locators
from .models import ElementDescriptor, InspectorEvent, InteractionState, Locator
from .overlay import HighlightOverlay, is_overlay_node, tooltip_label
from .reconciler import MutationReconciler
from .transport import Transport


class Inspector:
    """Hover/lock state machine over one document.

    DISABLED --enable--> HOVERING --click--> LOCKED --click same/Escape--> HOVERING
    Escape while hovering, or ``disable()`` from any state, returns to DISABLED.
    All work happens synchronously inside the handler that received the event.
    """

    def __init__(
        self,
        document: DocumentHandle,
        transport: Transport,
        config: InspectorConfig | None = None,
    ) -> None:
        self.document = document
        self.transport = transport
        self.config = config or InspectorConfig()
        self.logger = logging.getLogger("locatorforge.inspector")

        self._state = InteractionState.DISABLED
        self._locked: NodeHandle | None = None
        self._locked_descriptor: ElementDescriptor | None = None
        self._locked_locators: tuple[Locator, ...] = ()
        self._overlay = HighlightOverlay(document, self.config.overlay_id_prefix)
        self._reconciler = MutationReconciler(
            document,
            locked_node=lambda: self._locked,
            is_overlay_node=self.is_overlay_node,
            on_preview=self._emit_preview,
            on_locked_changed=self._refresh_locked,
            config=self.config,
        )
        self._handlers: dict[InputKind, InputHandler] = {}

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is not InteractionState.DISABLED

    @property
    def locked_node(self) -> NodeHandle | None:
        return self._locked

    @property
    def locked_descriptor(self) -> ElementDescriptor | None:
        return self._locked_descriptor

    @property
    def locked_locators(self) -> tuple[Locator, ...]:
        return self._locked_locators

    @property
    def overlay(self) -> HighlightOverlay:
        return self._overlay

    def enable(self) -> None:
        if self.enabled:
            return
        try:
            self._reconciler.start()
        except DocumentNotReadyError:
            self.logger.warning("Inspector enable failed: document is not ready.")
            raise
        except Exception as exc:
            self.logger.exception("Inspector enable failed while observing document.")
            raise DocumentNotReadyError(f"Document cannot be observed: {exc}") from exc

        try:
            self._overlay.attach()
            self._handlers = {
                "pointermove": self.handle_pointer_move,
                "click": self.handle_click,
                "keydown": self.handle_key,
            }
            for kind, handler in self._handlers.items():
                self.document.add_event_listener(kind, handler)
        except Exception as exc:
            self.logger.exception("Inspector enable failed while attaching overlay or listeners.")
            self._teardown()
            raise DocumentNotReadyError(f"Document cannot be instrumented: {exc}") from exc
        self._state = InteractionState.HOVERING
        self.logger.info("Inspector enabled.")

    def disable(self) -> None:
        if not self.enabled:
            return
        try:
            self._teardown()
        finally:
            self._clear_lock()
            self._state = InteractionState.DISABLED
            self.logger.info("Inspector disabled.")

    def handle_navigation(self) -> None:
        """The inspected document went away; drop listeners, lock and overlay."""
        self.logger.info("Document changed; clearing inspector state.")
        self.disable()

    def get_element_at(self, x: float, y: float) -> ElementDescriptor | None:
        node = self.document.element_from_point(x, y)
        if node is None:
            return None
        return extract_descriptor(self.document, node, self.config)

    def is_overlay_node(self, node: NodeHandle) -> bool:
        return is_overlay_node(node, self.config.overlay_id_prefix)

    def handle_pointer_move(self, event: InputEvent) -> None:
        if self._state is not InteractionState.HOVERING:
            return
        node = self._target_at(event)
        if node is None:
            return
        descriptor = self._emit_preview(node)
        self._overlay.show(descriptor.rect, tooltip_label(descriptor))

    def handle_click(self, event: InputEvent) -> None:
        if not self.enabled:
            return
        node = self._target_at(event)
        if node is None:
            return
        if self._locked is not None and self.document.same_node(node, self._locked):
            self.unlock()
            return
        self.lock(node)

    def handle_key(self, event: InputEvent) -> None:
        if not self.enabled or event.key != self.config.cancel_key:
            return
        if self._state is InteractionState.LOCKED:
            self.unlock()
            return
        self.disable()

    def lock(self, node: NodeHandle) -> None:
        self._locked = node
        self._state = InteractionState.LOCKED
        descriptor = self._emit_selection(node)
        self._overlay.show(descriptor.rect, locked=True)
        self.logger.info("Locked element %s", descriptor.css_selector or "<unknown>")

    def unlock(self) -> None:
        if self._state is not InteractionState.LOCKED:
            return
        self._clear_lock()
        self._overlay.hide()
        self._state = InteractionState.HOVERING
        self.logger.info("Unlocked element.")

    def _teardown(self) -> None:
        handlers, self._handlers = self._handlers, {}
        for kind, handler in handlers.items():
            try:
                self.document.remove_event_listener(kind, handler)
            except Exception:
                self.logger.exception("Could not remove %s listener.", kind)
        try:
            self._reconciler.stop()
        except Exception:
            self.logger.exception("Could not stop mutation observer.")
        try:
            self._overlay.detach()
        except Exception:
            self.logger.exception("Could not detach overlay; the document is probably gone.")

    def _clear_lock(self) -> None:
        self._locked = None
        self._locked_descriptor = None
        self._locked_locators = ()

    def _target_at(self, event: InputEvent) -> NodeHandle | None:
        node = self.document.element_from_point(event.x, event.y)
        if node is None or self.is_overlay_node(node):
            return None
        return node

    def _emit_preview(self, node: NodeHandle) -> ElementDescriptor:
        descriptor = extract_descriptor(self.document, node, self.config)
        self._send(InspectorEvent(kind="preview", descriptor=descriptor))
        return descriptor

    def _emit_selection(self, node: NodeHandle) -> ElementDescriptor:
        descriptor = extract_descriptor(self.document, node, self.config)
        locators = tuple(build_locators(descriptor, self.config))
        if not locators:
            self.logger.info("No locator could be derived for %s", descriptor.tag or "<unknown>")
        self._locked_descriptor = descriptor
        self._locked_locators = locators
        self._send(InspectorEvent(kind="selection", descriptor=descriptor, locators=locators))
        return descriptor

    def _refresh_locked(self, node: NodeHandle) -> None:
        if self._locked is None or not self.document.same_node(node, self._locked):
            return
        descriptor = self._emit_selection(node)
        if self._overlay.visible:
            self._overlay.show(descriptor.rect, locked=True)

    def _send(self, event: InspectorEvent) -> None:
        try:
            self.transport.send(event)
        except Exception:
            self.logger.exception("Transport failed to deliver %s event.", event.kind)
