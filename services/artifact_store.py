from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


def screenshot_name(prefix: str, code: str) -> str:
    raw = str(code or "").strip()
    safe_code = _UNSAFE_CHARS_RE.sub("_", raw) or "unknown"
    if safe_code != raw:
        # keep rewritten codes apart: "A/1" and "A_1" must not share a file
        safe_code = f"{safe_code}_{hashlib.sha1(raw.encode('utf-8')).hexdigest()[:8]}"
    return f"{prefix}_{safe_code}.png"


class ScreenshotStore:
    """Diagnostic screenshots for failed items, one file per (prefix, code)."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.saved: List[Path] = []

    def ensure_dir(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def path_for(self, prefix: str, code: str) -> Path:
        return self.directory / screenshot_name(prefix, code)

    async def capture(self, driver, prefix: str, code: str) -> Optional[Path]:
        """Screenshot the current page. Failures are logged, never raised."""
        path = self.path_for(prefix, code)
        try:
            self.ensure_dir()
            await driver.screenshot(path)
        except Exception as e:
            logger.warning("Screenshot %s could not be saved: %s", path, e)
            return None
        self.saved.append(path)
        logger.info("Screenshot saved: %s", path)
        return path


def save_summary_json(payload: Dict[str, Any], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Summary saved: %s", path)
    return path
