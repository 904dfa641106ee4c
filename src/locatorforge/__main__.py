from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from . import __version__
from .config import CONFIG_DIR, CONFIG_PATH, load_inspector_config, save_inspector_config
from .dom import DocumentNotReadyError
from .models import InspectorEvent
from .runtime_checks import (
    is_closed_target_error,
    is_missing_browser_error,
    missing_browser_message,
    normalize_url,
    unsupported_python_message,
)
from .transport import CallbackTransport

if TYPE_CHECKING:
    from playwright.sync_api import Page

    from .inspector import Inspector
    from .playwright_dom import PlaywrightDocument

PUMP_INTERVAL_MS = 50


def build_logger(log_dir: Path | None = None) -> logging.Logger:
    logger = logging.getLogger("locatorforge")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    logger.propagate = False
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        target_dir = log_dir or CONFIG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_dir / "inspector.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError:
        # Fall back to stderr when the log file cannot be opened.
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    return logger


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="locatorforge",
        description="Open a page in Chromium, hover to preview elements and click to lock one.",
    )
    parser.add_argument("url", nargs="?", default="", help="Page to inspect; https:// is assumed when no scheme is given.")
    parser.add_argument("--config", type=Path, default=None, help=f"Config file (default: {CONFIG_PATH}).")
    parser.add_argument("--previews", action="store_true", help="Print hover previews as well as selections.")
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Write the effective config, defaults filled in, to the config file and exit.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _print_event(event: InspectorEvent) -> None:
    print(json.dumps(event.to_dict(), ensure_ascii=False), flush=True)


def inspect_page(page: Page, document: PlaywrightDocument, inspector: Inspector) -> None:
    """Pump page events until the page closes, re-arming the inspector after every load."""
    logger = logging.getLogger("locatorforge.cli")
    reattach = False
    while not page.is_closed():
        try:
            page.wait_for_timeout(PUMP_INTERVAL_MS)
            if document.consume_navigation():
                inspector.handle_navigation()
                reattach = True
            if reattach:
                document.install()
                inspector.enable()
                reattach = False
                logger.info("Re-enabled inspector after navigation to %s", page.url)
            document.pump()
        except DocumentNotReadyError as exc:
            logger.info("Document not ready yet: %s", exc)
        except Exception as exc:
            if is_closed_target_error(exc):
                break
            raise


def run(args: argparse.Namespace) -> int:
    logger = logging.getLogger("locatorforge.cli")
    config = load_inspector_config(args.config)
    if args.save_config:
        ok, error = save_inspector_config(config, args.config)
        if not ok:
            raise SystemExit(error)
        logger.info("Saved inspector config to %s", args.config or CONFIG_PATH)
        print(f"Saved config to {args.config or CONFIG_PATH}", flush=True)
        return 0

    url = normalize_url(args.url)
    if not url:
        raise SystemExit("A URL is required.")

    from playwright.sync_api import sync_playwright

    from .inspector import Inspector
    from .playwright_dom import PlaywrightDocument

    transport = CallbackTransport(
        on_selection=_print_event,
        on_preview=_print_event if args.previews else None,
    )

    with sync_playwright() as playwright:
        try:
            browser = playwright.chromium.launch(headless=False)
        except Exception as exc:
            if is_missing_browser_error(exc):
                raise SystemExit(missing_browser_message(exc)) from exc
            raise
        try:
            page = browser.new_page()
            page.goto(url, wait_until="domcontentloaded")
            document = PlaywrightDocument(page)
            inspector = Inspector(document, transport, config)
            inspector.enable()
            logger.info("Inspecting %s", page.url)
            inspect_page(page, document, inspector)
        except KeyboardInterrupt:
            logger.info("Interrupted; closing browser.")
        finally:
            try:
                browser.close()
            except Exception as exc:
                logger.info("Browser close skipped: %s", exc)
    return 0


def main(argv: list[str] | None = None) -> int:
    message = unsupported_python_message()
    if message:
        raise SystemExit(message)
    args = parse_args(argv)
    build_logger()
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
