from __future__ import annotations

import sys

MINIMUM_PYTHON = (3, 11)

_MISSING_BROWSER_ERROR_HINTS = (
    "executable doesn't exist",
    "executable does not exist",
    "download new browsers",
    "playwright install",
    "could not find browser",
    "failed to launch chromium because executable",
)


def is_missing_browser_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in _MISSING_BROWSER_ERROR_HINTS)


def missing_browser_message(exc: Exception) -> str:
    return (
        "Playwright browsers are not installed for this interpreter. "
        f"Run `{sys.executable} -m playwright install chromium` and try again. ({exc})"
    )


def unsupported_python_message(version_info: tuple[int, ...] | None = None) -> str | None:
    version = tuple(version_info if version_info is not None else sys.version_info[:3])
    if version[:2] >= MINIMUM_PYTHON:
        return None
    current = ".".join(str(part) for part in version)
    return (
        f"locatorforge requires Python {MINIMUM_PYTHON[0]}.{MINIMUM_PYTHON[1]}+. "
        f"Current interpreter: {sys.executable} (Python {current})"
    )


def is_closed_target_error(exc: Exception) -> bool:
    message = str(exc).lower()
    hints = (
        "has been closed",
        "target page, context or browser has been closed",
        "browser has been closed",
        "target closed",
    )
    return any(hint in message for hint in hints)


def normalize_url(raw_url: str) -> str:
    raw_url = raw_url.strip()
    if not raw_url:
        return ""
    if raw_url.startswith(("http://", "https://", "file://", "about:")):
        return raw_url
    return f"https://{raw_url}"
