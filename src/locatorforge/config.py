from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
from pathlib import Path
import tempfile

from .models import TEST_ID_ATTRIBUTES

CONFIG_DIR = Path.home() / ".locatorforge"
CONFIG_PATH = CONFIG_DIR / "config.json"

OBSERVED_ATTRIBUTES: tuple[str, ...] = (
    "style",
    "class",
    "hidden",
    "aria-hidden",
    "aria-expanded",
    "open",
    "disabled",
)

INTERACTIVE_TAGS: tuple[str, ...] = (
    "input",
    "button",
    "select",
    "textarea",
    "a",
    "form",
    "dialog",
    "details",
)


@dataclass(slots=True)
class InspectorConfig:
    text_limit: int = 300
    inner_html_limit: int = 2000
    outer_html_limit: int = 3000
    hierarchy_depth: int = 4
    hierarchy_class_limit: int = 3
    max_stable_classes: int = 3
    short_value_limit: int = 80
    test_id_attributes: tuple[str, ...] = TEST_ID_ATTRIBUTES
    observed_attributes: tuple[str, ...] = OBSERVED_ATTRIBUTES
    interactive_tags: tuple[str, ...] = INTERACTIVE_TAGS
    overlay_id_prefix: str = "__locatorforge"
    cancel_key: str = "Escape"
    extra: dict[str, str] = field(default_factory=dict)


def load_inspector_config(config_path: Path | None = None) -> InspectorConfig:
    path = config_path or CONFIG_PATH
    if not path.exists() or not path.is_file():
        return InspectorConfig()

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, TypeError):
        return InspectorConfig()

    if not isinstance(payload, dict):
        return InspectorConfig()

    defaults = InspectorConfig()
    return InspectorConfig(
        text_limit=_positive_int(payload.get("text_limit"), defaults.text_limit),
        inner_html_limit=_positive_int(payload.get("inner_html_limit"), defaults.inner_html_limit),
        outer_html_limit=_positive_int(payload.get("outer_html_limit"), defaults.outer_html_limit),
        hierarchy_depth=_positive_int(payload.get("hierarchy_depth"), defaults.hierarchy_depth),
        hierarchy_class_limit=_positive_int(payload.get("hierarchy_class_limit"), defaults.hierarchy_class_limit),
        max_stable_classes=_positive_int(payload.get("max_stable_classes"), defaults.max_stable_classes),
        short_value_limit=_positive_int(payload.get("short_value_limit"), defaults.short_value_limit),
        test_id_attributes=_string_tuple(payload.get("test_id_attributes"), defaults.test_id_attributes),
        observed_attributes=_string_tuple(payload.get("observed_attributes"), defaults.observed_attributes),
        interactive_tags=_string_tuple(payload.get("interactive_tags"), defaults.interactive_tags),
        overlay_id_prefix=str(payload.get("overlay_id_prefix", "") or defaults.overlay_id_prefix),
        cancel_key=str(payload.get("cancel_key", "") or defaults.cancel_key),
        extra=_string_dict(payload.get("extra")),
    )


def save_inspector_config(config: InspectorConfig, config_path: Path | None = None) -> tuple[bool, str | None]:
    path = config_path or CONFIG_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return False, f"Could not create config folder: {exc}"

    payload = json.dumps(asdict(config), ensure_ascii=True, indent=2, sort_keys=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            handle.write(payload)
            handle.flush()
            temp_path = Path(handle.name)

        if temp_path is None:
            return False, "Could not create temporary config file."
        temp_path.replace(path)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Could not write inspector config: {exc}"

    return True, None


def _positive_int(raw: object, default: int) -> int:
    if isinstance(raw, bool):
        return default
    if isinstance(raw, int) and raw > 0:
        return raw
    if isinstance(raw, str) and raw.strip().isdigit() and int(raw) > 0:
        return int(raw)
    return default


def _string_tuple(raw: object, default: tuple[str, ...]) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return default
    items = tuple(str(item).strip() for item in raw if str(item).strip())
    return items or default


def _string_dict(raw: object) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): str(value) for key, value in raw.items()}
