from locatorforge.runtime_checks import (
    is_closed_target_error,
    is_missing_browser_error,
    missing_browser_message,
    normalize_url,
    unsupported_python_message,
)


def test_missing_browser_error_detection() -> None:
    assert is_missing_browser_error(RuntimeError("Executable doesn't exist at /ms-playwright/chromium"))
    assert is_missing_browser_error(RuntimeError("Please run the following command: playwright install"))
    assert not is_missing_browser_error(RuntimeError("net::ERR_NAME_NOT_RESOLVED"))
    assert "playwright install chromium" in missing_browser_message(RuntimeError("boom"))


def test_closed_target_error_detection() -> None:
    assert is_closed_target_error(RuntimeError("Target page, context or browser has been closed"))
    assert not is_closed_target_error(RuntimeError("Timeout 30000ms exceeded"))


def test_python_version_gate() -> None:
    assert unsupported_python_message((3, 12, 1)) is None
    message = unsupported_python_message((3, 9, 18))
    assert message is not None
    assert "3.11+" in message and "3.9.18" in message


def test_normalize_url_adds_https_only_when_missing() -> None:
    assert normalize_url("example.com/login") == "https://example.com/login"
    assert normalize_url("http://localhost:8000") == "http://localhost:8000"
    assert normalize_url("file:///tmp/page.html") == "file:///tmp/page.html"
    assert normalize_url("   ") == ""
