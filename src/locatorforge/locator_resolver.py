"""Replay-side lookup for the locators this package generates.

``find_with_fallback`` walks a ranked chain the way a replay engine does:
first locator first, recording every failure, and reporting whether it had
to fall back past the primary. Every strategy is turned into an XPath or CSS
query and evaluated by the document host's own selector engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable

from .dom import DocumentHandle, InspectorError, InvalidSelectorError, NodeHandle, SelectorKind
from .models import Locator
from .selector_rules import relative_href, xpath_literal

logger = logging.getLogger("locatorforge.resolver")

_ATTRIBUTE_STRATEGIES = {"id", "name", "aria-label", "placeholder", "title"}
_LABELLABLE = "self::input or self::select or self::textarea or self::button"


class LocatorResolutionError(InspectorError):
    pass


@dataclass(frozen=True, slots=True)
class FailedAttempt:
    locator: Locator
    error: str

    def describe(self) -> str:
        return f"{self.locator.strategy}: {self.locator.value} → {self.error}"


@dataclass(slots=True)
class Resolution:
    node: NodeHandle | None = None
    locator_used: Locator | None = None
    locators_failed: list[FailedAttempt] = field(default_factory=list)
    fallback_used: bool = False

    @property
    def found(self) -> bool:
        return self.node is not None


def find_with_fallback(document: DocumentHandle, locators: Iterable[Locator]) -> Resolution:
    ranked = sorted(locators, key=lambda item: -item.confidence)
    result = Resolution()
    for index, locator in enumerate(ranked):
        try:
            node = resolve_locator(document, locator)
        except LocatorResolutionError as exc:
            result.locators_failed.append(FailedAttempt(locator, str(exc)))
            continue
        result.node = node
        result.locator_used = locator
        result.fallback_used = index > 0
        if result.fallback_used:
            logger.info(
                "Primary locator failed; resolved with fallback %s after %s failure(s).",
                locator.strategy,
                len(result.locators_failed),
            )
        return result
    logger.info("No locator resolved: %s", "; ".join(item.describe() for item in result.locators_failed))
    return result


def resolve_locator(document: DocumentHandle, locator: Locator) -> NodeHandle:
    matches = resolve_all(document, locator)
    if not matches:
        raise LocatorResolutionError("No element matches")
    return matches[0]


def resolve_all(document: DocumentHandle, locator: Locator) -> list[NodeHandle]:
    strategy = locator.strategy
    value = locator.value
    if not value.strip():
        raise LocatorResolutionError("Locator value is empty")

    if strategy.startswith("data-") or strategy in _ATTRIBUTE_STRATEGIES:
        return _query(document, "xpath", f"//*[@{strategy}={xpath_literal(value)}]")
    if strategy == "href":
        # Relative hrefs are compared after resolution, which XPath cannot do.
        anchors = _query(document, "xpath", "//a[@href]")
        return [node for node in anchors if relative_href(node.get_attribute("href") or "") == value]
    if strategy == "link-text":
        return _query(document, "xpath", f"//a[normalize-space(.)={xpath_literal(value)}]")
    if strategy == "button-text":
        return _query(
            document,
            "xpath",
            f"//*[self::button or @role='button'][normalize-space(.)={xpath_literal(value)}]",
        )
    if strategy == "label":
        return _resolve_label(document, value)
    if strategy in ("text", "relative-xpath", "absolute-xpath"):
        return _query(document, "xpath", value)
    if strategy in ("css", "role"):
        return _query(document, "css", value)
    raise LocatorResolutionError(f"Unsupported strategy '{strategy}'")


def _query(document: DocumentHandle, kind: SelectorKind, selector: str) -> list[NodeHandle]:
    try:
        return document.query_all(kind, selector)
    except InvalidSelectorError as exc:
        raise LocatorResolutionError(str(exc)) from exc


def _resolve_label(document: DocumentHandle, text: str) -> list[NodeHandle]:
    label = f"//label[normalize-space(.)={xpath_literal(text)}]"
    explicit = _query(document, "xpath", f"//*[@id = {label}/@for]")
    wrapped = _query(document, "xpath", f"{label}[not(@for)]/descendant::*[{_LABELLABLE}][1]")
    return explicit + wrapped
