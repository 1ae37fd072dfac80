from __future__ import annotations

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def _headline(result) -> str:
    total = len(result.successes) + len(result.failures)
    if total == 0:
        return "No products were requested."
    if not result.failures:
        return f"All {total} products were added to the cart."
    if not result.successes:
        return f"None of the {total} products were added to the cart."
    return (
        f"{len(result.successes)} of {total} products were added to the cart; "
        f"{len(result.failures)} encountered errors."
    )


def format_summary(result) -> str:
    """Human readable report of a finished batch. Lists every record."""
    lines: List[str] = ["Summary:", _headline(result)]
    if getattr(result, "aborted", False):
        lines.append("The batch was aborted after the browser session was lost.")

    lines.append("")
    if result.successes:
        lines.append(f"{len(result.successes)} products successfully added to the cart:")
        for s in result.successes:
            lines.append(f"- Code: {s.code}, Quantity: {s.quantity}")
    else:
        lines.append("No products were successfully added to the cart.")

    lines.append("")
    if result.failures:
        lines.append("Products that encountered errors:")
        for f in result.failures:
            lines.append(f"- Code: {f.code}, Error: {f.reason}")
    else:
        lines.append("No errors encountered during processing.")

    return "\n".join(lines)


def summarize(result, log: logging.Logger = logger) -> str:
    text = format_summary(result)
    for line in text.splitlines():
        log.info("%s", line)
    return text


def build_payload(result) -> Dict[str, Any]:
    return {
        "ok": not result.failures and not getattr(result, "aborted", False),
        "kind": result.kind,
        "aborted": bool(getattr(result, "aborted", False)),
        "total": len(result.successes) + len(result.failures),
        "successes": [{"code": s.code, "quantity": s.quantity} for s in result.successes],
        "failures": [{"code": f.code, "reason": f.reason} for f in result.failures],
    }
