import pytest

from locatorforge.dom import DocumentNotReadyError
from locatorforge.inspector import Inspector
from locatorforge.memory_dom import Document, Element
from locatorforge.models import InspectorEvent, InteractionState
from locatorforge.transport import RecordingTransport


def _toolbar() -> tuple[Document, Element, Element]:
    document = Document()
    toolbar = document.create_element("div", id="toolbar").set_rect(0, 0, 400, 60)
    first = document.create_element("button", data_testid="open-file").set_rect(10, 10, 80, 30)
    first.append("Open")
    second = document.create_element("button", name="save").set_rect(100, 10, 80, 30)
    second.append("Save")
    toolbar.append(first, second)
    document.body.append_child(toolbar)
    return document, first, second


def _enabled(document: Document) -> tuple[Inspector, RecordingTransport]:
    transport = RecordingTransport()
    inspector = Inspector(document, transport)
    inspector.enable()
    document.flush()
    return inspector, transport


def test_hover_then_click_locks_only_the_clicked_node() -> None:
    document, first, second = _toolbar()
    inspector, transport = _enabled(document)

    document.dispatch_pointer_move(20, 20)
    document.dispatch_pointer_move(120, 20)
    assert inspector.state is InteractionState.HOVERING
    assert inspector.locked_node is None

    document.dispatch_click(120, 20)

    assert inspector.state is InteractionState.LOCKED
    assert inspector.locked_node is second
    assert [event.descriptor.name for event in transport.previews] == ["", "save"]
    assert len(transport.selections) == 1
    selection = transport.selections[0]
    assert selection.descriptor.name == "save"
    assert selection.locators[0].strategy == "name"
    assert inspector.overlay.visible and inspector.overlay.locked


def test_selection_event_leads_with_test_id_locator() -> None:
    document, first, _second = _toolbar()
    inspector, transport = _enabled(document)

    document.dispatch_click(20, 20)

    locators = transport.selections[0].locators
    assert (locators[0].strategy, locators[0].value) == ("data-testid", "open-file")
    assert inspector.locked_locators == locators
    assert inspector.locked_descriptor is not None
    assert inspector.locked_descriptor.test_ids["data-testid"] == "open-file"


def test_hover_while_locked_changes_nothing() -> None:
    document, first, second = _toolbar()
    inspector, transport = _enabled(document)
    document.dispatch_click(20, 20)
    transport.clear()

    document.dispatch_pointer_move(120, 20)

    assert transport.events == []
    assert inspector.locked_node is first


def test_clicking_locked_node_again_unlocks_without_selection() -> None:
    document, first, _second = _toolbar()
    inspector, transport = _enabled(document)
    document.dispatch_click(20, 20)
    transport.clear()

    document.dispatch_click(20, 20)

    assert inspector.state is InteractionState.HOVERING
    assert inspector.locked_node is None
    assert transport.selections == []
    assert not inspector.overlay.visible


def test_clicking_another_node_moves_the_lock() -> None:
    document, first, second = _toolbar()
    inspector, transport = _enabled(document)
    document.dispatch_click(20, 20)

    document.dispatch_click(120, 20)

    assert inspector.locked_node is second
    assert len(transport.selections) == 2


def test_escape_unlocks_then_disables() -> None:
    document, _first, _second = _toolbar()
    inspector, _transport = _enabled(document)
    document.dispatch_click(20, 20)

    document.dispatch_key("Escape")
    assert inspector.state is InteractionState.HOVERING

    document.dispatch_key("Enter")
    assert inspector.state is InteractionState.HOVERING

    document.dispatch_key("Escape")
    assert inspector.state is InteractionState.DISABLED
    assert not document.has_listeners()


def test_disable_while_locked_stops_previews_until_reenabled() -> None:
    document, _first, _second = _toolbar()
    inspector, transport = _enabled(document)
    document.dispatch_click(20, 20)

    inspector.disable()
    transport.clear()

    assert inspector.state is InteractionState.DISABLED
    assert inspector.locked_node is None
    assert document.dispatch_pointer_move(20, 20) == 0
    assert transport.events == []
    assert document.get_element_by_id("__locatorforge_highlight") is None
    assert document.observer_count == 0

    inspector.enable()
    document.dispatch_pointer_move(20, 20)
    assert len(transport.previews) == 1


def test_enable_is_idempotent() -> None:
    document, _first, _second = _toolbar()
    inspector, transport = _enabled(document)

    inspector.enable()
    document.dispatch_pointer_move(20, 20)

    assert len(transport.previews) == 1
    assert document.observer_count == 1


def test_overlay_nodes_are_never_inspected() -> None:
    document, _first, _second = _toolbar()
    inspector, transport = _enabled(document)
    highlight = document.get_element_by_id("__locatorforge_highlight")
    assert highlight is not None
    highlight.set_attribute("style", "display: block")
    highlight.set_rect(0, 0, 1000, 1000)

    document.dispatch_pointer_move(500, 500)
    document.dispatch_click(500, 500)

    assert transport.events == []
    assert inspector.state is InteractionState.HOVERING


def test_enable_without_body_raises_not_ready() -> None:
    document = Document(create_body=False)
    inspector = Inspector(document, RecordingTransport())

    with pytest.raises(DocumentNotReadyError):
        inspector.enable()

    assert inspector.state is InteractionState.DISABLED
    assert not document.has_listeners()


def test_get_element_at_returns_descriptor_or_none() -> None:
    document, _first, _second = _toolbar()
    inspector = Inspector(document, RecordingTransport())

    descriptor = inspector.get_element_at(120, 20)

    assert descriptor is not None and descriptor.name == "save"
    assert inspector.get_element_at(900, 900) is None


def test_navigation_clears_lock_and_listeners() -> None:
    document, _first, _second = _toolbar()
    inspector, _transport = _enabled(document)
    document.dispatch_click(20, 20)

    inspector.handle_navigation()

    assert inspector.state is InteractionState.DISABLED
    assert inspector.locked_node is None
    assert not document.has_listeners()


def test_transport_failure_does_not_break_the_state_machine() -> None:
    class ExplodingTransport:
        def __init__(self) -> None:
            self.calls = 0

        def send(self, event: InspectorEvent) -> None:
            self.calls += 1
            raise ConnectionError("host went away")

    document, first, _second = _toolbar()
    transport = ExplodingTransport()
    inspector = Inspector(document, transport)
    inspector.enable()

    document.dispatch_click(20, 20)

    assert transport.calls == 1
    assert inspector.state is InteractionState.LOCKED
    assert inspector.locked_node is first


def test_navigation_with_a_dead_overlay_still_resets_and_allows_reenable(monkeypatch: pytest.MonkeyPatch) -> None:
    document, _first, _second = _toolbar()
    inspector, transport = _enabled(document)
    document.dispatch_click(20, 20)
    highlight = document.get_element_by_id("__locatorforge_highlight")
    assert highlight is not None

    def context_destroyed() -> None:
        raise RuntimeError("Execution context was destroyed, most likely because of a navigation")

    monkeypatch.setattr(highlight, "remove", context_destroyed)

    inspector.handle_navigation()

    assert inspector.state is InteractionState.DISABLED
    assert inspector.locked_node is None
    assert inspector.locked_locators == ()
    assert not document.has_listeners()
    assert document.observer_count == 0

    inspector.enable()
    document.dispatch_click(110, 20)

    assert inspector.state is InteractionState.LOCKED
    assert document.has_listeners()
    assert document.observer_count == 1
    assert transport.selections[-1].descriptor.name == "save"


def test_enable_rolls_back_the_observer_when_listeners_cannot_be_added(monkeypatch: pytest.MonkeyPatch) -> None:
    document, _first, _second = _toolbar()
    inspector = Inspector(document, RecordingTransport())

    def refuse(kind: str, handler: object) -> None:
        raise RuntimeError("Target page, context or browser has been closed")

    monkeypatch.setattr(document, "add_event_listener", refuse)

    with pytest.raises(DocumentNotReadyError):
        inspector.enable()

    assert inspector.state is InteractionState.DISABLED
    assert document.observer_count == 0
    assert document.get_element_by_id("__locatorforge_highlight") is None
