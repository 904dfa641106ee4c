import gc

from playwright.sync_api import Error as PlaywrightError
import pytest

from locatorforge.dom import DocumentNotReadyError, InputEvent, InvalidSelectorError, MutationRecord
from locatorforge.playwright_dom import (
    BRIDGE_SCRIPT,
    PlaywrightDocument,
    PlaywrightFormNode,
    coalesce_pointer_moves,
)


class FakeElementHandle:
    def __init__(self, tag: str, node_type: int = 1) -> None:
        self.tag = tag
        self.node_type = node_type
        self.disposed = False

    def as_element(self) -> "FakeElementHandle":
        return self

    def dispose(self) -> None:
        self.disposed = True

    def evaluate(self, script: str, arg: object = None) -> object:
        if "nodeType" in script:
            return self.node_type
        if "tagName" in script:
            return self.tag
        raise AssertionError(f"unexpected script: {script}")


class FakeListHandle:
    def __init__(self, items: list[FakeElementHandle]) -> None:
        self.items = items
        self.disposed = False

    def dispose(self) -> None:
        self.disposed = True

    def get_properties(self) -> dict[str, FakeElementHandle]:
        return {str(index): item for index, item in enumerate(self.items)}


class FakePage:
    def __init__(self) -> None:
        self.entries: list[dict[str, object]] = []
        self.nodes: list[FakeElementHandle] = []
        self.observe_result = True
        self.closed = False
        self.bridge_installs = 0
        self.capturing: list[bool] = []
        self.observed_filters: list[list[str]] = []
        self.disconnects = 0
        self.handlers: dict[str, list[object]] = {}
        self.matches: list[FakeElementHandle] = []
        self.queries: list[str] = []
        self.locator_error: Exception | None = None
        self.list_handles: list[FakeListHandle] = []

    def on(self, event: str, handler: object) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def fire(self, event: str) -> None:
        for handler in self.handlers.get(event, []):
            handler()

    def locator(self, selector: str) -> "FakeLocator":
        self.queries.append(selector)
        return FakeLocator(self)

    def evaluate(self, script: str, arg: object = None) -> object:
        if script == BRIDGE_SCRIPT:
            self.bridge_installs += 1
            return None
        if "capturing = !!on" in script:
            self.capturing.append(bool(arg))
            return None
        if ".drain()" in script:
            entries, self.entries = self.entries, []
            return entries
        if ".observe(filter)" in script:
            self.observed_filters.append(list(arg))
            return self.observe_result
        if ".disconnect()" in script:
            self.disconnects += 1
            return None
        raise AssertionError(f"unexpected script: {script}")

    def evaluate_handle(self, script: str, arg: object = None) -> FakeListHandle:
        assert "drainedNodes" in script
        handle = FakeListHandle(self.nodes)
        self.list_handles.append(handle)
        return handle

    def is_closed(self) -> bool:
        return self.closed


class FakeLocator:
    def __init__(self, page: FakePage) -> None:
        self.page = page

    def element_handles(self) -> list[FakeElementHandle]:
        if self.page.locator_error is not None:
            raise self.page.locator_error
        return list(self.page.matches)


def _input(kind: str, x: float = 0, y: float = 0, key: str = "") -> dict[str, object]:
    return {"kind": "input", "type": kind, "x": x, "y": y, "key": key}


def test_bridge_is_installed_and_capture_follows_listeners() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)

    def handler(event: InputEvent) -> None:
        return None

    document.add_event_listener("click", handler)
    document.remove_event_listener("click", handler)

    assert page.bridge_installs == 1
    assert page.capturing == [False, True, False]


def test_pump_dispatches_inputs_in_order_and_coalesces_moves() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    seen: list[tuple[str, float, float, str]] = []

    def record(event: InputEvent) -> None:
        seen.append((event.kind, event.x, event.y, event.key))

    for kind in ("pointermove", "click", "keydown"):
        document.add_event_listener(kind, record)
    page.entries = [
        _input("pointermove", 1, 1),
        _input("pointermove", 2, 2),
        _input("click", 2, 2),
        _input("pointermove", 3, 3),
        _input("keydown", key="Escape"),
    ]

    assert document.pump() == 4
    assert seen == [
        ("pointermove", 2.0, 2.0, ""),
        ("click", 2.0, 2.0, ""),
        ("pointermove", 3.0, 3.0, ""),
        ("keydown", 0.0, 0.0, "Escape"),
    ]
    assert document.pump() == 0


def test_pump_delivers_mutation_batches_intact() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    batches: list[list[MutationRecord]] = []
    document.observe(lambda records: batches.append(list(records)), ["style", "open"])
    page.nodes = [FakeElementHandle("button"), FakeElementHandle("body"), FakeElementHandle("dialog"), FakeElementHandle("", 3)]
    page.entries = [
        {
            "kind": "mutations",
            "records": [
                {"type": "attributes", "target": 0, "added": [], "attributeName": "style"},
                {"type": "childList", "target": 1, "added": [2], "attributeName": None},
                {"type": "characterData", "target": 3, "added": [], "attributeName": None},
            ],
        }
    ]

    document.pump()

    assert page.observed_filters == [["style", "open"]]
    assert len(batches) == 1
    first, second = batches[0]
    assert first.type == "attributes" and first.attribute_name == "style"
    assert isinstance(first.target, PlaywrightFormNode)
    assert first.target.tag_name == "button"
    assert second.target.tag_name == "body"
    assert [node.tag_name for node in second.added_nodes] == ["dialog"]


def test_observe_reports_unready_documents() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)

    page.observe_result = False
    with pytest.raises(DocumentNotReadyError):
        document.observe(lambda records: None, ["style"])

    page.closed = True
    with pytest.raises(DocumentNotReadyError):
        document.observe(lambda records: None, ["style"])


def test_subscription_disconnect_stops_mutation_delivery() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    batches: list[object] = []
    subscription = document.observe(lambda records: batches.append(records), ["style"])

    subscription.disconnect()
    subscription.disconnect()
    page.nodes = [FakeElementHandle("div")]
    page.entries = [{"kind": "mutations", "records": [{"type": "attributes", "target": 0, "added": [], "attributeName": "style"}]}]
    document.pump()

    assert page.disconnects == 1
    assert batches == []


def test_handler_errors_are_logged_and_do_not_stop_the_drain() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    keys: list[str] = []

    def flaky(event: InputEvent) -> None:
        if event.key == "a":
            raise ValueError("boom")
        keys.append(event.key)

    document.add_event_listener("keydown", flaky)
    page.entries = [_input("keydown", key="a"), _input("keydown", key="b")]

    assert document.pump() == 2
    assert keys == ["b"]


def test_coalesce_keeps_last_move_of_each_run() -> None:
    entries = [
        _input("pointermove", 1, 1),
        {"kind": "mutations", "records": []},
        _input("pointermove", 2, 2),
        _input("pointermove", 3, 3),
    ]

    assert coalesce_pointer_moves(entries) == [entries[0], entries[1], entries[3]]


def test_query_all_uses_the_page_selector_engine() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    page.matches = [FakeElementHandle("input"), FakeElementHandle("a")]

    nodes = document.query_all("xpath", "//*[@name='q']")

    assert page.queries == ["xpath=//*[@name='q']"]
    assert [node.tag_name for node in nodes] == ["input", "a"]
    assert isinstance(nodes[0], PlaywrightFormNode)


def test_query_all_maps_engine_errors() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)

    page.locator_error = PlaywrightError("Unexpected token \"[\" while parsing selector \"button[\"")
    with pytest.raises(InvalidSelectorError):
        document.query_all("css", "button[")

    page.locator_error = PlaywrightError("Target page, context or browser has been closed")
    with pytest.raises(DocumentNotReadyError):
        document.query_all("css", "button")


def test_event_node_handles_are_disposed_after_the_drain() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)
    kept: list[object] = []
    document.observe(lambda records: kept.append(records[0].target), ["style"])
    handles = [FakeElementHandle("button"), FakeElementHandle("span")]
    page.nodes = handles
    page.entries = [
        {
            "kind": "mutations",
            "records": [
                {"type": "attributes", "target": 0, "added": [], "attributeName": "style"},
                {"type": "attributes", "target": 1, "added": [], "attributeName": "style"},
            ],
        }
    ]

    document.pump()
    gc.collect()
    document.release_handles()

    assert page.list_handles[0].disposed is True
    assert handles[0].disposed is False
    assert handles[1].disposed is True

    kept.clear()
    gc.collect()
    document.pump()

    assert handles[0].disposed is True


def test_non_element_handles_are_disposed_on_wrap() -> None:
    document = PlaywrightDocument(FakePage())

    class NullHandle:
        disposed = False

        def as_element(self) -> None:
            return None

        def dispose(self) -> None:
            self.disposed = True

    handle = NullHandle()

    assert document.wrap(handle) is None
    assert handle.disposed is True


def test_navigation_is_reported_once_per_load() -> None:
    page = FakePage()
    document = PlaywrightDocument(page)

    assert document.consume_navigation() is False
    page.fire("domcontentloaded")
    page.fire("domcontentloaded")

    assert document.consume_navigation() is True
    assert document.consume_navigation() is False
