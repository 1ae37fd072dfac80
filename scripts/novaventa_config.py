from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import List, Tuple

from dotenv import find_dotenv, load_dotenv

from novaventa_errors import ConfigError
from novaventa_models import LineItemRequest

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")
load_dotenv(find_dotenv(usecwd=True))


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _to_int(value: str, default: int) -> int:
    try:
        iv = int((value or "").strip())
        if iv > 0:
            return iv
    except Exception:
        pass
    return default


def _to_bool(value: str, default: bool) -> bool:
    raw = (value or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _path_from_env(name: str, default: Path) -> Path:
    raw = _env(name)
    if not raw:
        return default
    p = Path(raw)
    if not p.is_absolute():
        p = ROOT / p
    return p


BASE_URL = (
    _env("NOVAVENTA_BASE_URL") or "https://comercio.novaventa.com.co/nautilusb2bstorefront/nautilus/es/COP"
).rstrip("/")
LOGIN_URL = f"{BASE_URL}/login"
HOMEPAGE_URL = f"{BASE_URL}/homepage"

HEADLESS = _to_bool(os.getenv("NOVAVENTA_HEADLESS", "0"), False)
TIMEOUT_MS = _to_int(os.getenv("NOVAVENTA_TIMEOUT_MS", "30000"), 30000)
SEARCH_TIMEOUT_MS = _to_int(os.getenv("NOVAVENTA_SEARCH_TIMEOUT_MS", "10000"), 10000)
ADD_TIMEOUT_MS = _to_int(os.getenv("NOVAVENTA_ADD_TIMEOUT_MS", "30000"), 30000)
TYPE_DELAY_MS = _to_int(os.getenv("NOVAVENTA_TYPE_DELAY_MS", "100"), 100)

SCREENSHOTS_DIR = _path_from_env("NOVAVENTA_SCREENSHOTS_DIR", ROOT / "screenshots")
SUMMARY_FILE = _path_from_env("NOVAVENTA_SUMMARY_FILE", ROOT / "artifacts" / "novaventa_summary.json")

LOG_LEVEL = _env("NOVAVENTA_LOG_LEVEL", "INFO").upper()
LOG_FILE = _env("NOVAVENTA_LOG_FILE")

ITEMS_RAW = _env("NOVAVENTA_ITEMS")
SUMMARY_TO_EMAILS = _env("NOVAVENTA_SUMMARY_TO_EMAILS")

GDRIVE_FOLDER_ID = _env("GDRIVE_FOLDER_ID")
GDRIVE_CREDENTIALS_FILE = _path_from_env("GDRIVE_CREDENTIALS_FILE", ROOT / "credentials.json")


def load_credentials() -> Tuple[str, str]:
    """Read NOVAVENTA_USERNAME/NOVAVENTA_PASSWORD; both must be non-empty."""
    username = _env("NOVAVENTA_USERNAME")
    password = os.getenv("NOVAVENTA_PASSWORD") or ""
    if not username or not password.strip():
        raise ConfigError("Username or password not set in environment variables.")
    return username, password


def _normalize_qty(value) -> int:
    try:
        qty = int(str(value).strip())
    except Exception as e:
        raise ConfigError(f"Invalid quantity: {value!r}") from e
    if qty < 1:
        raise ConfigError(f"Quantity must be >= 1, got: {qty}")
    return qty


def _make_item(code, qty, where: str) -> LineItemRequest:
    code_s = str(code or "").strip()
    if not code_s:
        raise ConfigError(f"{where} has an empty product code.")
    return LineItemRequest(code=code_s, quantity=_normalize_qty(qty))


def parse_items(raw: str) -> List[LineItemRequest]:
    """Parse "CODE=QTY,CODE2=QTY2" (also ';' or newline separated).

    A bare CODE means quantity 1. Order is kept and repeated codes stay
    separate line-items.
    """
    text = (raw or "").strip()
    if not text:
        return []

    out: List[LineItemRequest] = []
    parts = [p.strip() for p in re.split(r"[,;\n]+", text) if p.strip()]
    for idx, part in enumerate(parts, start=1):
        if "=" in part:
            code, qty = part.split("=", 1)
        else:
            code, qty = part, "1"
        out.append(_make_item(code, qty, f"Item #{idx} ({part!r})"))
    return out


def parse_items_json(data) -> List[LineItemRequest]:
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise ConfigError("Items file must contain a list of {code, quantity} objects.")

    out: List[LineItemRequest] = []
    for idx, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            raise ConfigError(f"Item #{idx} is not an object: {entry!r}")
        out.append(_make_item(entry.get("code"), entry.get("quantity", 1), f"Item #{idx}"))
    return out


def load_items(items_file: str | Path | None = None, items_raw: str | None = None) -> List[LineItemRequest]:
    """Resolve the batch: --items-file, then --items, then NOVAVENTA_ITEMS."""
    if items_file:
        path = Path(items_file)
        if not path.exists():
            raise ConfigError(f"Items file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Items file is not valid JSON: {path}: {e}") from e
        items = parse_items_json(data)
    else:
        items = parse_items(items_raw if items_raw is not None else ITEMS_RAW)

    if not items:
        raise ConfigError("No items to add: set NOVAVENTA_ITEMS or pass --items / --items-file.")
    return items
