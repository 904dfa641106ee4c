from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from .models import Locator

if TYPE_CHECKING:
    from .locator_generator import CandidateDraft

# Disjoint (floor, ceiling] bands, highest tier first. Adjustments only move a
# candidate inside its band, so tier order holds whatever the penalties.
TIER_BANDS: dict[str, tuple[float, float]] = {
    "test_id": (0.90, 0.99),
    "id": (0.80, 0.90),
    "name": (0.70, 0.80),
    "attribute": (0.55, 0.70),
    "anchored_path": (0.40, 0.55),
    "css": (0.25, 0.40),
    "tag_path": (0.15, 0.25),
    "absolute_path": (0.0, 0.15),
}

STRATEGY_QUALITY: dict[str, float] = {
    "data-testid": 1.0,
    "data-cy": 0.95,
    "data-test": 0.95,
    "data-automation-id": 0.9,
    "id": 1.0,
    "name": 1.0,
    "aria-label": 0.9,
    "role": 0.6,
    "href": 0.85,
    "link-text": 0.85,
    "label": 0.8,
    "button-text": 0.75,
    "placeholder": 0.7,
    "title": 0.65,
    "text": 0.6,
    "relative-xpath": 0.8,
    "css": 0.8,
    "absolute-xpath": 0.8,
}

_MIN_QUALITY = 0.05
_LONG_VALUE = 100


def tier_for(candidate: CandidateDraft) -> str:
    strategy = candidate.strategy
    if strategy.startswith("data-"):
        return "test_id"
    if strategy in ("id", "name"):
        return strategy
    if strategy == "relative-xpath":
        return "anchored_path" if candidate.metadata.get("anchored") else "tag_path"
    if strategy == "css":
        return "css"
    if strategy == "absolute-xpath":
        return "absolute_path"
    return "attribute"


def candidate_quality(candidate: CandidateDraft) -> float:
    quality = STRATEGY_QUALITY.get(candidate.strategy, 0.5)
    if candidate.metadata.get("dynamic"):
        quality *= 0.3
    if len(candidate.value) > _LONG_VALUE:
        quality *= 0.6
    if candidate.metadata.get("bare_tag"):
        quality *= 0.2
    return max(_MIN_QUALITY, min(1.0, quality))


def score_candidate(candidate: CandidateDraft) -> Locator:
    floor, ceiling = TIER_BANDS[tier_for(candidate)]
    confidence = floor + (ceiling - floor) * candidate_quality(candidate)
    return Locator(strategy=candidate.strategy, value=candidate.value, confidence=round(confidence, 3))


def score_candidates(candidates: Iterable[CandidateDraft]) -> list[Locator]:
    scored = [score_candidate(candidate) for candidate in candidates]
    # sorted() is stable, so equal confidences keep generation order.
    return sorted(scored, key=lambda item: -item.confidence)
