from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from novaventa_config import (
    GDRIVE_CREDENTIALS_FILE,
    GDRIVE_FOLDER_ID,
    HEADLESS,
    LOG_FILE,
    LOG_LEVEL,
    SCREENSHOTS_DIR,
    SUMMARY_FILE,
    SUMMARY_TO_EMAILS,
    TIMEOUT_MS,
    load_credentials,
    load_items,
)
from novaventa_driver import PageDriver, launch_driver
from novaventa_errors import AuthError, ConfigError
from novaventa_models import BatchResult, Failure, LineItemRequest, Outcome, Success
from novaventa_step1_login import Session, authenticate, check_credentials
from novaventa_step2_search import locate
from novaventa_step3_add_to_cart import add_to_cart

from services.artifact_store import ScreenshotStore, save_summary_json
from services.email_sender.gmail_smtp import parse_recipients, send_email
from services.gdrive_uploader import upload_or_update_json
from services.summary_report import build_payload, summarize

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = "Product not found"
REASON_UNAVAILABLE = "unavailable"
REASON_FAILED_TO_ADD = "failed to add"
REASON_SESSION_LOST = "Browser session lost"

SHOT_NOT_FOUND = "not_found"
SHOT_ERROR = "error"

LOG_FORMAT = "%(asctime)s [%(levelname)s]: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

DriverFactory = Callable[[], Awaitable[PageDriver]]


async def _process_one(session: Session, item: LineItemRequest) -> Tuple[Outcome, Optional[str]]:
    """Search, validate and add a single line-item.

    Returns the outcome and the screenshot prefix to capture (None for no
    screenshot). Every exception stops at this boundary.
    """
    code, qty = item.code, item.quantity
    try:
        match = await locate(session, code)
        if match is None:
            logger.warning("Product code %s not found.", code)
            return Failure(code, REASON_NOT_FOUND), SHOT_NOT_FOUND

        added = await add_to_cart(session, match, code, qty)
    except Exception as e:
        logger.error("Error processing product %s: %s", code, e)
        return Failure(code, str(e) or e.__class__.__name__), SHOT_ERROR

    if added:
        return Success(code, qty), None
    if match.has_info and not match.in_stock:
        return Failure(code, REASON_UNAVAILABLE), None
    return Failure(code, REASON_FAILED_TO_ADD), None


async def process_items(session: Session, items: Sequence[LineItemRequest], store: ScreenshotStore) -> BatchResult:
    result = BatchResult()
    total = len(items)

    for idx, item in enumerate(items, start=1):
        if not session.is_alive():
            remaining = items[idx - 1 :]
            logger.error("Browser session lost; %s remaining item(s) not processed.", len(remaining))
            for rest in remaining:
                result.record(Failure(rest.code, REASON_SESSION_LOST))
            result.mark_aborted()
            break

        logger.info("[%s/%s] code=%s qty=%s", idx, total, item.code, item.quantity)
        outcome, shot_prefix = await _process_one(session, item)
        result.record(outcome)
        if shot_prefix:
            await store.capture(session.driver, shot_prefix, item.code)

    return result.finalize()


async def run_batch(
    items: Sequence[LineItemRequest],
    username: str,
    password: str,
    *,
    driver_factory: DriverFactory | None = None,
    store: ScreenshotStore | None = None,
) -> BatchResult:
    """Authenticate once, process every item, always release the browser.

    ConfigError and AuthError propagate; per-item problems end up in the result.
    """
    check_credentials(username, password)
    if driver_factory is None:
        driver_factory = lambda: launch_driver(headless=HEADLESS, timeout_ms=TIMEOUT_MS)  # noqa: E731
    if store is None:
        store = ScreenshotStore(SCREENSHOTS_DIR)
    store.ensure_dir()

    driver = await driver_factory()
    session: Session | None = None
    try:
        session = await authenticate(driver, username, password)
        return await process_items(session, items, store)
    finally:
        if session is not None:
            await session.close()
        else:
            await driver.close()


def configure_logging(level: str = LOG_LEVEL, log_file: str = LOG_FILE) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        if not path.is_absolute():
            path = ROOT / path
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
        force=True,
    )


def publish_summary(payload: Dict[str, Any], text: str, *, summary_file: Path | None = None) -> None:
    """Persist the summary and hand it to the optional e-mail/Drive sinks.

    A failing sink is logged and does not change the run's exit status.
    """
    summary_file = summary_file or SUMMARY_FILE
    saved: Path | None = None
    try:
        saved = save_summary_json(payload, summary_file)
    except Exception as e:
        logger.error("Could not save summary to %s: %s", summary_file, e)

    recipients = parse_recipients(SUMMARY_TO_EMAILS)
    if recipients:
        subject = f"Novaventa cart: {len(payload['successes'])}/{payload['total']} added"
        try:
            send_email(subject=subject, body_text=text, to_list=recipients, attachment_path=saved)
        except Exception as e:
            logger.error("Summary email failed: %s", e)

    if GDRIVE_FOLDER_ID and saved is not None:
        try:
            upload_or_update_json(
                credentials_file=GDRIVE_CREDENTIALS_FILE,
                folder_id=GDRIVE_FOLDER_ID,
                local_file=saved,
            )
        except Exception as e:
            logger.error("Summary upload to Google Drive failed: %s", e)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Add a batch of Novaventa products to the cart.")
    ap.add_argument("--items", help='Items as "CODE=QTY,CODE2=QTY2" (overrides NOVAVENTA_ITEMS)')
    ap.add_argument("--items-file", help="JSON file with a list of {code, quantity} objects")
    ap.add_argument("--headless", action="store_true", help="Run Chromium headless")
    ap.add_argument("--dry-run", action="store_true", help="Only parse and print the items, no browser")
    return ap.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()

    try:
        items = load_items(args.items_file, args.items)
        if args.dry_run:
            for item in items:
                print(f"{item.code}={item.quantity}")
            return 0
        username, password = load_credentials()
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    headless = args.headless or HEADLESS
    try:
        result = asyncio.run(
            run_batch(
                items,
                username,
                password,
                driver_factory=lambda: launch_driver(headless=headless, timeout_ms=TIMEOUT_MS),
            )
        )
    except ConfigError as e:
        logger.error("%s", e)
        return 1
    except AuthError as e:
        logger.error("Authentication failed: %s", e)
        return 2
    except Exception as e:
        logger.error("An unexpected error occurred: %s", e)
        return 2

    text = summarize(result)
    payload = build_payload(result)
    publish_summary(payload, text)
    print(json.dumps(payload, ensure_ascii=False))
    return 2 if result.aborted else 0


if __name__ == "__main__":
    raise SystemExit(main())
