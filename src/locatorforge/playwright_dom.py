"""DocumentHandle over a Playwright sync ``Page``.

The bridge script queues input events and MutationObserver batches inside
the page. Nothing crosses into Python until :meth:`PlaywrightDocument.pump`
drains the queue and dispatches it, in order, on the caller's thread.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence
import weakref

from playwright.sync_api import Error as PlaywrightError

from .dom import (
    ELEMENT_NODE,
    DocumentNotReadyError,
    InputEvent,
    InputHandler,
    InputKind,
    InvalidSelectorError,
    ListenerRegistry,
    MutationCallback,
    MutationRecord,
    SelectorKind,
)
from .models import Rect
from .runtime_checks import is_closed_target_error
from .selector_rules import escape_css_string

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, JSHandle, Page

BRIDGE_SCRIPT = r"""
(() => {
  if (window.__locatorforgeBridge) {
    return;
  }

  const bridge = {
    queue: [],
    nodes: [],
    drainedNodes: [],
    capturing: false,
    observer: null,
  };

  function ref(node) {
    bridge.nodes.push(node);
    return bridge.nodes.length - 1;
  }

  document.addEventListener('mousemove', (event) => {
    if (!bridge.capturing) return;
    bridge.queue.push({ kind: 'input', type: 'pointermove', x: event.clientX, y: event.clientY, key: '' });
  }, true);

  document.addEventListener('click', (event) => {
    if (!bridge.capturing) return;
    event.preventDefault();
    event.stopPropagation();
    event.stopImmediatePropagation();
    bridge.queue.push({ kind: 'input', type: 'click', x: event.clientX, y: event.clientY, key: '' });
  }, true);

  document.addEventListener('keydown', (event) => {
    if (!bridge.capturing) return;
    bridge.queue.push({ kind: 'input', type: 'keydown', x: 0, y: 0, key: event.key || '' });
  }, true);

  bridge.observe = (attributeFilter) => {
    if (!document.body) {
      return false;
    }
    if (bridge.observer) {
      bridge.observer.disconnect();
    }
    bridge.observer = new MutationObserver((mutations) => {
      const records = [];
      for (const mutation of mutations) {
        records.push({
          type: mutation.type,
          target: ref(mutation.target),
          added: Array.from(mutation.addedNodes || []).map(ref),
          attributeName: mutation.attributeName || null,
        });
      }
      bridge.queue.push({ kind: 'mutations', records });
    });
    bridge.observer.observe(document.body, {
      childList: true,
      subtree: true,
      attributes: true,
      attributeFilter,
    });
    return true;
  };

  bridge.disconnect = () => {
    if (bridge.observer) {
      bridge.observer.disconnect();
      bridge.observer = null;
    }
  };

  bridge.drain = () => {
    const entries = bridge.queue;
    bridge.queue = [];
    bridge.drainedNodes = bridge.nodes;
    bridge.nodes = [];
    return entries;
  };

  window.__locatorforgeBridge = bridge;
})();
"""

_FORM_TAGS = {"input", "button", "select", "textarea"}


class PlaywrightNode:
    def __init__(self, document: PlaywrightDocument, handle: ElementHandle) -> None:
        self.document = document
        self.handle = handle
        document.track(self)

    def _eval(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return self.handle.evaluate(script)
        return self.handle.evaluate(script, arg)

    @property
    def node_type(self) -> int:
        return int(self._eval("(n) => n.nodeType") or 0)

    @property
    def tag_name(self) -> str:
        return str(self._eval("(n) => (n.tagName || '').toLowerCase()") or "")

    @property
    def parent(self) -> PlaywrightNode | None:
        return self.document.wrap(self.handle.evaluate_handle("(n) => n.parentElement"))

    @property
    def children(self) -> list[PlaywrightNode]:
        return self.document.wrap_list(self.handle.evaluate_handle("(n) => Array.from(n.children || [])"))

    @property
    def text_content(self) -> str:
        return str(self._eval("(n) => n.textContent || ''") or "")

    @property
    def inner_text(self) -> str:
        return str(self._eval("(n) => n.innerText || ''") or "")

    @property
    def inner_html(self) -> str:
        return str(self._eval("(n) => n.innerHTML || ''") or "")

    @property
    def outer_html(self) -> str:
        return str(self._eval("(n) => n.outerHTML || ''") or "")

    def get_attribute(self, name: str) -> str | None:
        value = self._eval("(n, name) => (n.getAttribute ? n.getAttribute(name) : null)", name)
        return None if value is None else str(value)

    def attribute_items(self) -> list[tuple[str, str]]:
        pairs = self._eval("(n) => Array.from(n.attributes || []).map((a) => [a.name, a.value])") or []
        return [(str(name), str(value)) for name, value in pairs]

    def set_attribute(self, name: str, value: str) -> None:
        self._eval("(n, [name, value]) => n.setAttribute(name, value)", [name, value])

    def set_text(self, text: str) -> None:
        self._eval("(n, text) => { n.textContent = text; }", text)

    def append_child(self, child: PlaywrightNode) -> None:
        self.handle.evaluate("(n, child) => { n.appendChild(child); }", child.handle)

    def remove(self) -> None:
        self._eval("(n) => n.remove()")


class PlaywrightFormNode(PlaywrightNode):
    @property
    def value(self) -> str:
        return str(self._eval("(n) => (typeof n.value === 'string' ? n.value : '')") or "")

    @property
    def type(self) -> str:
        return str(self._eval("(n) => n.type || ''") or "")

    @property
    def name(self) -> str:
        return str(self._eval("(n) => n.name || ''") or "")

    @property
    def disabled(self) -> bool:
        return bool(self._eval("(n) => !!n.disabled"))

    @property
    def read_only(self) -> bool:
        return bool(self._eval("(n) => !!n.readOnly"))

    @property
    def required(self) -> bool:
        return bool(self._eval("(n) => !!n.required"))


class _BridgeSubscription:
    def __init__(self, document: PlaywrightDocument) -> None:
        self._document = document
        self.active = True

    def disconnect(self) -> None:
        if not self.active:
            return
        self.active = False
        self._document.stop_observing()


class PlaywrightDocument:
    """Page-backed document.

    Node wrappers own one ``ElementHandle`` each. When a wrapper is collected
    its handle is queued and disposed at the end of the next :meth:`pump`,
    so per-event nodes are released once their handlers return.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self.logger = logging.getLogger("locatorforge.playwright")
        self._listeners = ListenerRegistry()
        self._mutation_callback: MutationCallback | None = None
        self._released: list[JSHandle] = []
        self._navigated = False
        self.page.on("domcontentloaded", lambda: self._on_dom_content_loaded())
        self.install()

    def _on_dom_content_loaded(self) -> None:
        self._navigated = True

    def consume_navigation(self) -> bool:
        """Return True once per main-frame load seen since the last call."""
        navigated, self._navigated = self._navigated, False
        return navigated

    def track(self, node: PlaywrightNode) -> None:
        weakref.finalize(node, self._released.append, node.handle)

    def release_handles(self) -> int:
        released = list(self._released)
        self._released.clear()
        for handle in released:
            _dispose(handle)
        return len(released)

    def install(self) -> bool:
        try:
            self.page.evaluate(BRIDGE_SCRIPT)
            self._sync_capturing()
        except Exception as exc:
            self.logger.warning("Bridge install failed: %s", exc)
            return False
        return True

    def wrap(self, handle: JSHandle | None) -> PlaywrightNode | None:
        if handle is None:
            return None
        element = handle.as_element()
        if element is None:
            _dispose(handle)
            return None
        tag = str(element.evaluate("(n) => (n.tagName || '').toLowerCase()") or "")
        node_class = PlaywrightFormNode if tag in _FORM_TAGS else PlaywrightNode
        return node_class(self, element)

    def wrap_list(self, handle: JSHandle) -> list[PlaywrightNode]:
        properties = handle.get_properties()
        _dispose(handle)
        ordered = sorted(((int(key), value) for key, value in properties.items() if str(key).isdigit()))
        nodes: list[PlaywrightNode] = []
        for _index, item in ordered:
            node = self.wrap(item)
            if node is not None:
                nodes.append(node)
        return nodes

    def document_element(self) -> PlaywrightNode | None:
        return self.wrap(self.page.query_selector("html"))

    def root_container(self) -> PlaywrightNode | None:
        return self.wrap(self.page.query_selector("body"))

    def element_from_point(self, x: float, y: float) -> PlaywrightNode | None:
        handle = self.page.evaluate_handle("([x, y]) => document.elementFromPoint(x, y)", [x, y])
        return self.wrap(handle)

    def find_label_for(self, element_id: str) -> PlaywrightNode | None:
        if not element_id:
            return None
        return self.wrap(self.page.query_selector(f'label[for="{escape_css_string(element_id)}"]'))

    def query_all(self, kind: SelectorKind, selector: str) -> list[PlaywrightNode]:
        try:
            handles = self.page.locator(f"{kind}={selector}").element_handles()
        except PlaywrightError as exc:
            if is_closed_target_error(exc):
                raise DocumentNotReadyError(f"Page is gone: {exc}") from exc
            raise InvalidSelectorError(f"Invalid {kind} selector {selector!r}: {exc.message}") from exc
        nodes: list[PlaywrightNode] = []
        for handle in handles:
            node = self.wrap(handle)
            if node is not None:
                nodes.append(node)
        return nodes

    def create_element(self, tag: str) -> PlaywrightNode:
        node = self.wrap(self.page.evaluate_handle("(tag) => document.createElement(tag)", tag))
        if node is None:
            raise DocumentNotReadyError(f"Could not create <{tag}> in page.")
        return node

    def bounding_rect(self, node: PlaywrightNode) -> Rect:
        payload = node.handle.evaluate(
            """
            (n) => {
              const rect = n.getBoundingClientRect();
              return {
                x: Math.round(rect.x),
                y: Math.round(rect.y),
                width: Math.round(n.offsetWidth || rect.width || 0),
                height: Math.round(n.offsetHeight || rect.height || 0),
              };
            }
            """
        ) or {}
        return Rect(
            int(payload.get("x", 0) or 0),
            int(payload.get("y", 0) or 0),
            int(payload.get("width", 0) or 0),
            int(payload.get("height", 0) or 0),
        )

    def computed_style(self, node: PlaywrightNode) -> Mapping[str, str]:
        payload = node.handle.evaluate(
            "(n) => { const s = window.getComputedStyle(n); return { display: s.display, visibility: s.visibility }; }"
        ) or {}
        return {str(key): str(value) for key, value in payload.items()}

    def has_layout(self, node: PlaywrightNode) -> bool:
        return bool(node.handle.evaluate("(n) => n.offsetParent !== null"))

    def same_node(self, first: PlaywrightNode | None, second: PlaywrightNode | None) -> bool:
        if first is None or second is None:
            return False
        if first is second:
            return True
        return bool(self.page.evaluate("([a, b]) => a === b", [first.handle, second.handle]))

    def add_event_listener(self, kind: InputKind, handler: InputHandler) -> None:
        self._listeners.add(kind, handler)
        self._sync_capturing()

    def remove_event_listener(self, kind: InputKind, handler: InputHandler) -> None:
        self._listeners.remove(kind, handler)
        self._sync_capturing()

    def observe(self, callback: MutationCallback, attribute_filter: Sequence[str]) -> _BridgeSubscription:
        if self.page.is_closed():
            raise DocumentNotReadyError("Page is closed.")
        if not self.install():
            raise DocumentNotReadyError("Bridge script could not be installed.")
        attached = self.page.evaluate(
            "(filter) => (window.__locatorforgeBridge ? window.__locatorforgeBridge.observe(filter) : false)",
            list(attribute_filter),
        )
        if not attached:
            raise DocumentNotReadyError("Document body is not available yet.")
        self._mutation_callback = callback
        return _BridgeSubscription(self)

    def stop_observing(self) -> None:
        self._mutation_callback = None
        try:
            self.page.evaluate("() => { if (window.__locatorforgeBridge) window.__locatorforgeBridge.disconnect(); }")
        except Exception as exc:
            self.logger.info("Bridge disconnect skipped: %s", exc)

    def pump(self) -> int:
        """Drain queued page events and dispatch them in arrival order; returns entries handled."""
        entries = self.page.evaluate("() => (window.__locatorforgeBridge ? window.__locatorforgeBridge.drain() : [])")
        if not entries:
            self.release_handles()
            return 0
        entries = coalesce_pointer_moves(entries)

        refs: list[PlaywrightNode | None] = []
        if any(entry.get("kind") == "mutations" for entry in entries):
            nodes_handle = self.page.evaluate_handle(
                "() => (window.__locatorforgeBridge ? window.__locatorforgeBridge.drainedNodes : [])"
            )
            refs = self._wrap_refs(nodes_handle)

        for entry in entries:
            try:
                self._dispatch_entry(entry, refs)
            except Exception:
                self.logger.exception("Failed to dispatch bridge entry of kind %s", entry.get("kind"))
        del refs
        self.release_handles()
        return len(entries)

    def _wrap_refs(self, handle: JSHandle) -> list[PlaywrightNode | None]:
        properties = handle.get_properties()
        _dispose(handle)
        size = max((int(key) for key in properties if str(key).isdigit()), default=-1) + 1
        refs: list[PlaywrightNode | None] = [None] * size
        for key, value in properties.items():
            if str(key).isdigit():
                refs[int(key)] = self.wrap(value)
        return refs

    def _dispatch_entry(self, entry: Mapping[str, Any], refs: Sequence[PlaywrightNode | None]) -> None:
        if entry.get("kind") == "input":
            self._listeners.dispatch(
                InputEvent(
                    kind=entry.get("type", "pointermove"),
                    x=float(entry.get("x", 0) or 0),
                    y=float(entry.get("y", 0) or 0),
                    key=str(entry.get("key", "") or ""),
                )
            )
            return
        if entry.get("kind") != "mutations" or self._mutation_callback is None:
            return

        def lookup(index: Any) -> PlaywrightNode | None:
            if isinstance(index, int) and 0 <= index < len(refs):
                return refs[index]
            return None

        records: list[MutationRecord] = []
        for raw in entry.get("records", []):
            target = lookup(raw.get("target"))
            if target is None or target.node_type != ELEMENT_NODE:
                continue
            added = tuple(node for node in (lookup(item) for item in raw.get("added", [])) if node is not None)
            records.append(
                MutationRecord(
                    type=raw.get("type", "childList"),
                    target=target,
                    added_nodes=added,
                    attribute_name=raw.get("attributeName"),
                )
            )
        if records:
            self._mutation_callback(records)

    def _sync_capturing(self) -> None:
        self.page.evaluate(
            "(on) => { if (window.__locatorforgeBridge) window.__locatorforgeBridge.capturing = !!on; }",
            self._listeners.has_listeners(),
        )


def coalesce_pointer_moves(entries: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Keep only the last of each run of consecutive pointer moves."""
    coalesced: list[Mapping[str, Any]] = []
    for entry in entries:
        is_move = entry.get("kind") == "input" and entry.get("type") == "pointermove"
        if is_move and coalesced:
            previous = coalesced[-1]
            if previous.get("kind") == "input" and previous.get("type") == "pointermove":
                coalesced[-1] = entry
                continue
        coalesced.append(entry)
    return coalesced


def _dispose(handle: JSHandle) -> None:
    try:
        handle.dispose()
    except PlaywrightError as exc:
        # Handles die with their execution context; nothing left to free.
        logging.getLogger("locatorforge.playwright").debug("Handle dispose skipped: %s", exc)
