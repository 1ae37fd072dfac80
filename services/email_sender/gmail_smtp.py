from __future__ import annotations

import logging
import mimetypes
import os
import re
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def parse_recipients(values: Iterable[str] | str) -> list[str]:
    if isinstance(values, str):
        values = re.split(r"[,;\s]+", values)
    out: list[str] = []
    for v in values:
        item = (v or "").strip()
        if item and item not in out:
            out.append(item)
    return out


def send_email(subject: str, body_text: str, to_list: list[str], attachment_path: str | Path | None = None) -> None:
    """
    Send a UTF-8 plain text email (the batch summary) with an optional attachment.
    Required env:
      - SMTP_HOST
      - SMTP_PORT (default 587)
      - SMTP_USER
      - SMTP_PASS
      - SMTP_FROM (fallback: SMTP_USER)
    """
    smtp_host = _env("SMTP_HOST")
    smtp_port_raw = _env("SMTP_PORT", "587")
    smtp_user = _env("SMTP_USER")
    smtp_pass = _env("SMTP_PASS")
    smtp_from = _env("SMTP_FROM") or smtp_user

    try:
        smtp_port = int(smtp_port_raw)
    except Exception as e:
        raise RuntimeError(f"SMTP_PORT is invalid: {smtp_port_raw!r}") from e

    for name, value in (("SMTP_HOST", smtp_host), ("SMTP_USER", smtp_user), ("SMTP_PASS", smtp_pass)):
        if not value:
            raise RuntimeError(f"{name} is not set")

    recipients = parse_recipients(to_list or [])
    if not recipients:
        raise RuntimeError("to_list is empty")

    msg = MIMEMultipart()
    msg["From"] = smtp_from
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text or "", _subtype="plain", _charset="utf-8"))

    if attachment_path:
        p = Path(attachment_path)
        if not p.exists():
            raise RuntimeError(f"Attachment not found: {p}")
        mime, _ = mimetypes.guess_type(p.name)
        subtype = (mime or "application/octet-stream").split("/", 1)[1]
        part = MIMEApplication(p.read_bytes(), _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=p.name)
        msg.attach(part)

    try:
        with smtplib.SMTP(smtp_host, smtp_port, timeout=30) as server:
            server.ehlo()
            try:
                server.starttls()
                server.ehlo()
            except smtplib.SMTPException:
                # Some servers may not require/allow STARTTLS on configured port.
                logger.debug("STARTTLS not available on %s:%s", smtp_host, smtp_port)
            server.login(smtp_user, smtp_pass)
            server.sendmail(smtp_from, recipients, msg.as_string())
    except Exception as e:
        raise RuntimeError(f"SMTP send failed: {e}") from e

    logger.info("Summary email sent to %s", ", ".join(recipients))
