from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .config import InspectorConfig
from .models import ElementDescriptor, Locator, LocatorStrategy
from .paths import is_anchored_xpath
from .scoring import score_candidates
from .selector_rules import (
    escape_css_string,
    is_bare_tag_selector,
    is_dynamic_value,
    normalize_space,
    relative_href,
    xpath_literal,
)

_LABELLED_TAGS = {"input", "select", "textarea"}


@dataclass(slots=True)
class CandidateDraft:
    strategy: LocatorStrategy
    value: str
    metadata: dict[str, Any] = field(default_factory=dict)


class CandidateFactory:
    """Derive every locator the descriptor supports, in priority order.

    Strategies that have nothing to work with add nothing; the factory never
    invents values the descriptor does not carry.
    """

    def __init__(self, descriptor: ElementDescriptor, config: InspectorConfig | None = None) -> None:
        self.descriptor = descriptor
        self.config = config or InspectorConfig()
        self._drafts: list[CandidateDraft] = []
        self._seen: set[tuple[str, str]] = set()

    def generate(self) -> list[CandidateDraft]:
        if not self.descriptor.tag:
            return []
        self._add_test_id_strategies()
        self._add_id_strategy()
        self._add_name_strategy()
        self._add_accessibility_strategies()
        self._add_label_strategy()
        self._add_attribute_strategies()
        self._add_text_strategies()
        self._add_relative_path()
        self._add_css_selector()
        self._add_absolute_path()
        return list(self._drafts)

    def _add(self, strategy: LocatorStrategy, value: str, **metadata: Any) -> None:
        clean = value.strip()
        if not clean:
            return
        key = (strategy, clean)
        if key in self._seen:
            return
        self._seen.add(key)
        metadata.setdefault("dynamic", is_dynamic_value(clean))
        # Keep the authored value; replay matches attributes exactly.
        self._drafts.append(CandidateDraft(strategy=strategy, value=value, metadata=metadata))

    def _add_test_id_strategies(self) -> None:
        for attr in self.config.test_id_attributes:
            value = self.descriptor.attribute(attr)
            if value.strip():
                # Test ids count as stable whatever they look like.
                self._add(attr, value, dynamic=False)  # type: ignore[arg-type]

    def _add_id_strategy(self) -> None:
        element_id = self.descriptor.id
        if element_id and not is_dynamic_value(element_id):
            self._add("id", element_id)

    def _add_name_strategy(self) -> None:
        name = self.descriptor.name or self.descriptor.attribute("name")
        self._add("name", name)

    def _add_accessibility_strategies(self) -> None:
        aria_label = normalize_space(self.descriptor.aria_label, limit=self.config.short_value_limit + 1)
        short_label = bool(aria_label) and len(aria_label) <= self.config.short_value_limit
        if short_label:
            self._add("aria-label", self.descriptor.aria_label)

        role = self.descriptor.role
        if role.strip():
            selector = f'[role="{escape_css_string(role)}"]'
            if short_label:
                selector += f'[aria-label="{escape_css_string(self.descriptor.aria_label)}"]'
            self._add("role", selector)

    def _add_label_strategy(self) -> None:
        if self.descriptor.tag not in _LABELLED_TAGS:
            return
        label = normalize_space(self.descriptor.label, limit=self.config.short_value_limit + 1)
        if label and len(label) <= self.config.short_value_limit:
            self._add("label", label)

    def _add_attribute_strategies(self) -> None:
        limit = self.config.short_value_limit
        placeholder = self.descriptor.placeholder
        if placeholder and len(placeholder) <= limit:
            self._add("placeholder", placeholder)

        title = self.descriptor.title
        if title and len(title) <= limit:
            self._add("title", title)

        raw_href = self.descriptor.href.strip()
        if self.descriptor.tag == "a" and raw_href and not raw_href.lower().startswith("javascript:"):
            href = relative_href(raw_href)
            if href and len(href) <= limit * 2:
                self._add("href", href)

    def _add_text_strategies(self) -> None:
        text = normalize_space(self.descriptor.inner_text or self.descriptor.text, limit=200)
        if not text:
            return
        limit = self.config.short_value_limit
        tag = self.descriptor.tag
        if len(text) < limit:
            if tag == "a":
                self._add("link-text", text)
            if tag == "button" or self.descriptor.role == "button":
                self._add("button-text", text)

        if len(text) < 100:
            if len(text) < 50:
                xpath = f"//{tag}[normalize-space(.)={xpath_literal(text)}]"
            else:
                xpath = f"//{tag}[contains(normalize-space(.),{xpath_literal(text[:40])})]"
            self._add("text", xpath)

    def _add_relative_path(self) -> None:
        xpath = self.descriptor.xpath
        if xpath:
            self._add("relative-xpath", xpath, anchored=is_anchored_xpath(xpath))

    def _add_css_selector(self) -> None:
        selector = self.descriptor.css_selector
        if selector:
            self._add("css", selector, bare_tag=is_bare_tag_selector(selector))

    def _add_absolute_path(self) -> None:
        self._add("absolute-xpath", self.descriptor.absolute_xpath, dynamic=False)


def generate_locator_candidates(
    descriptor: ElementDescriptor,
    config: InspectorConfig | None = None,
) -> list[CandidateDraft]:
    return CandidateFactory(descriptor, config).generate()


def build_locators(descriptor: ElementDescriptor, config: InspectorConfig | None = None) -> list[Locator]:
    """Generate and rank; the first locator is the primary, the rest the fallback chain."""
    return score_candidates(generate_locator_candidates(descriptor, config))
