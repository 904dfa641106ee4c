from __future__ import annotations

import logging
from typing import Callable, Sequence

from .config import InspectorConfig
from .dom import DocumentHandle, MutationRecord, NodeHandle, Subscription, is_element

NodeCallback = Callable[[NodeHandle], None]


class MutationReconciler:
    """Turns mutation batches into preview and refresh notifications.

    One batch yields at most one preview per inserted node and at most one
    refresh of the locked node, however many records it holds.
    """

    def __init__(
        self,
        document: DocumentHandle,
        *,
        locked_node: Callable[[], NodeHandle | None],
        is_overlay_node: Callable[[NodeHandle], bool],
        on_preview: NodeCallback,
        on_locked_changed: NodeCallback,
        config: InspectorConfig | None = None,
    ) -> None:
        self.document = document
        self.config = config or InspectorConfig()
        self._locked_node = locked_node
        self._is_overlay_node = is_overlay_node
        self._on_preview = on_preview
        self._on_locked_changed = on_locked_changed
        self._subscription: Subscription | None = None
        self.logger = logging.getLogger("locatorforge.reconciler")

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.document.observe(self.handle_batch, self.config.observed_attributes)

    def stop(self) -> None:
        if self._subscription is None:
            return
        subscription, self._subscription = self._subscription, None
        subscription.disconnect()

    def handle_batch(self, records: Sequence[MutationRecord]) -> None:
        if self._subscription is None:
            return

        observed = set(self.config.observed_attributes)
        previews: list[NodeHandle] = []
        refresh_target: NodeHandle | None = None

        for record in records:
            if record.type == "childList":
                for node in record.added_nodes:
                    if not is_element(node) or self._is_overlay_node(node):
                        continue
                    if any(self.document.same_node(node, seen) for seen in previews):
                        continue
                    if self._is_significant(node) and self._is_visible(node):
                        previews.append(node)
                continue

            if record.type != "attributes" or record.attribute_name not in observed:
                continue
            node = record.target
            if refresh_target is not None or not is_element(node) or self._is_overlay_node(node):
                continue
            locked = self._locked_node()
            if locked is None or not self.document.same_node(node, locked):
                continue
            if self._is_now_visible(node):
                refresh_target = node

        if previews or refresh_target is not None:
            self.logger.debug(
                "Mutation batch: records=%s previews=%s refresh=%s",
                len(records),
                len(previews),
                refresh_target is not None,
            )
        for node in previews:
            self._on_preview(node)
        if refresh_target is not None:
            self._on_locked_changed(refresh_target)

    def _is_significant(self, node: NodeHandle) -> bool:
        tag = node.tag_name.lower()
        return tag in self.config.interactive_tags or bool(node.get_attribute("role"))

    def _is_visible(self, node: NodeHandle) -> bool:
        return node.tag_name.lower() == "dialog" or bool(self.document.has_layout(node))

    def _is_now_visible(self, node: NodeHandle) -> bool:
        return (
            self._is_visible(node)
            or node.get_attribute("aria-expanded") == "true"
            or node.get_attribute("open") is not None
        )
