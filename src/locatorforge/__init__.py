"""Element descriptors and ranked locators for a live document."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import InspectorConfig, load_inspector_config, save_inspector_config
from .dom import DocumentNotReadyError, InspectorError
from .dom_extractor import extract_descriptor
from .inspector import Inspector
from .locator_generator import build_locators, generate_locator_candidates
from .locator_resolver import LocatorResolutionError, Resolution, find_with_fallback, resolve_locator
from .models import ElementDescriptor, InspectorEvent, InteractionState, Locator
from .scoring import score_candidates

__all__ = [
    "DocumentNotReadyError",
    "ElementDescriptor",
    "Inspector",
    "InspectorConfig",
    "InspectorError",
    "InspectorEvent",
    "InteractionState",
    "Locator",
    "LocatorResolutionError",
    "Resolution",
    "build_locators",
    "extract_descriptor",
    "find_with_fallback",
    "generate_locator_candidates",
    "load_inspector_config",
    "resolve_locator",
    "save_inspector_config",
    "score_candidates",
]
