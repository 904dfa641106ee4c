from __future__ import annotations

import re
from typing import Sequence
from urllib.parse import urlparse

_DYNAMIC_VALUE_PATTERNS = (
    re.compile(r"^ng-"),
    re.compile(r"^data-reactid"),
    re.compile(r"^data-v-"),
    re.compile(r"^_ngcontent"),
    re.compile(r"^_nghost"),
    re.compile(r"ember\d+"),
    re.compile(r"^js-"),
    re.compile(r"[0-9a-f]{8,}", re.IGNORECASE),
    re.compile(r"\d{10,}"),
)

_GENERATED_CLASS_PATTERN = re.compile(r"[0-9]{4,}")
_BARE_TAG_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$", re.IGNORECASE)
_CSS_SAFE_ID_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")


def normalize_space(value: str | None, limit: int = 200) -> str:
    if not value:
        return ""
    compact = re.sub(r"\s+", " ", str(value)).strip()
    return compact[:limit] if compact else ""


def truncate(value: str | None, limit: int) -> str:
    if not value:
        return ""
    return str(value).strip()[:limit]


def normalize_classes(raw: Sequence[str] | str | None) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        items = raw.split()
    else:
        items = [item for item in raw if isinstance(item, str)]

    seen: set[str] = set()
    normalized: list[str] = []
    for item in items:
        clean = item.strip()
        if not clean or clean in seen:
            continue
        seen.add(clean)
        normalized.append(clean)
    return normalized


def is_stable_class_token(token: str) -> bool:
    """Reject single characters and tokens carrying a generated digit run."""
    text = token.strip()
    if len(text) <= 1:
        return False
    return _GENERATED_CLASS_PATTERN.search(text) is None


def stable_classes(classes: Sequence[str], limit: int = 3) -> list[str]:
    return [token for token in classes if is_stable_class_token(token)][:limit]


def is_dynamic_value(value: str | None) -> bool:
    if not value:
        return False
    return any(pattern.search(value) for pattern in _DYNAMIC_VALUE_PATTERNS)


def is_bare_tag_selector(selector: str) -> bool:
    return bool(_BARE_TAG_PATTERN.fullmatch(selector.strip()))


def is_css_safe_id(value: str) -> bool:
    return bool(_CSS_SAFE_ID_PATTERN.fullmatch(value.strip()))


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def escape_css_identifier(value: str) -> str:
    escaped: list[str] = []
    for index, char in enumerate(value):
        if char.isalnum() or char in ("-", "_"):
            if index == 0 and char.isdigit():
                escaped.append(f"\\{ord(char):x} ")
            else:
                escaped.append(char)
        else:
            escaped.append(f"\\{ord(char):x} ")
    return "".join(escaped)


def xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    pieces = value.split("'")
    quoted = [f"'{piece}'" for piece in pieces]
    return "concat(" + ", \"'\", ".join(quoted) + ")"


def relative_href(href: str) -> str:
    """Reduce absolute URLs to path, query and fragment so links survive host changes."""
    text = href.strip()
    if not text:
        return ""
    parsed = urlparse(text)
    if not parsed.scheme and not parsed.netloc:
        return text
    relative = parsed.path or "/"
    if parsed.query:
        relative += f"?{parsed.query}"
    if parsed.fragment:
        relative += f"#{parsed.fragment}"
    return relative
