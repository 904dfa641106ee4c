from __future__ import annotations

from dataclasses import dataclass, field
import queue
from typing import Any, Callable, Protocol

from .models import InspectorEvent

EventCallback = Callable[[InspectorEvent], None]


class Transport(Protocol):
    def send(self, event: InspectorEvent) -> None: ...


@dataclass(slots=True)
class RecordingTransport:
    events: list[InspectorEvent] = field(default_factory=list)

    def send(self, event: InspectorEvent) -> None:
        self.events.append(event)

    @property
    def previews(self) -> list[InspectorEvent]:
        return [event for event in self.events if event.kind == "preview"]

    @property
    def selections(self) -> list[InspectorEvent]:
        return [event for event in self.events if event.kind == "selection"]

    def clear(self) -> None:
        self.events.clear()


class CallbackTransport:
    def __init__(
        self,
        on_selection: EventCallback,
        on_preview: EventCallback | None = None,
    ) -> None:
        self._on_selection = on_selection
        self._on_preview = on_preview or (lambda _event: None)

    def send(self, event: InspectorEvent) -> None:
        if event.kind == "selection":
            self._on_selection(event)
            return
        self._on_preview(event)


class QueueTransport:
    """Hands serialized payloads to another thread, e.g. a UI consumer."""

    def __init__(self, target: queue.Queue[dict[str, Any]] | None = None) -> None:
        self.queue: queue.Queue[dict[str, Any]] = target if target is not None else queue.Queue()

    def send(self, event: InspectorEvent) -> None:
        self.queue.put(event.to_dict())

    def drain(self) -> list[dict[str, Any]]:
        payloads: list[dict[str, Any]] = []
        while True:
            try:
                payloads.append(self.queue.get_nowait())
            except queue.Empty:
                return payloads
