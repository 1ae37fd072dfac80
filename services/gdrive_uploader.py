from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive"]


def _build_service(credentials_file: Path):
    creds = service_account.Credentials.from_service_account_file(str(credentials_file), scopes=SCOPES)
    return build("drive", "v3", credentials=creds, cache_discovery=False)


def _find_file_id(service, folder_id: str, filename: str) -> Optional[str]:
    safe_name = filename.replace("'", "\\'")
    q = f"trashed = false and '{folder_id}' in parents and name = '{safe_name}'"
    resp = (
        service.files()
        .list(q=q, fields="files(id,name)", pageSize=10, supportsAllDrives=True, includeItemsFromAllDrives=True)
        .execute()
    )
    files = resp.get("files") or []
    if not files:
        return None
    return str(files[0].get("id") or "") or None


def upload_or_update_json(
    *,
    credentials_file: Path,
    folder_id: str,
    local_file: Path,
    remote_filename: str | None = None,
) -> str:
    """Upload a summary JSON into a Drive folder, replacing a same-named file."""
    if not folder_id:
        raise RuntimeError("GDRIVE_FOLDER_ID is not set")
    if not credentials_file.exists():
        raise RuntimeError(f"GDRIVE_CREDENTIALS_FILE not found: {credentials_file}")
    if not local_file.exists() or local_file.stat().st_size <= 0:
        raise RuntimeError(f"Local file does not exist or is empty: {local_file}")

    name = remote_filename or local_file.name
    service = _build_service(credentials_file)
    media = MediaFileUpload(str(local_file), mimetype="application/json", resumable=False)

    file_id = _find_file_id(service, folder_id, name)
    if file_id:
        updated = (
            service.files()
            .update(fileId=file_id, media_body=media, body={"name": name}, fields="id", supportsAllDrives=True)
            .execute()
        )
        logger.info("Drive summary updated: %s (%s)", name, file_id)
        return str(updated.get("id") or file_id)

    created = (
        service.files()
        .create(body={"name": name, "parents": [folder_id]}, media_body=media, fields="id", supportsAllDrives=True)
        .execute()
    )
    created_id = str(created.get("id") or "")
    if not created_id:
        raise RuntimeError("Google Drive upload failed: empty file id")
    logger.info("Drive summary uploaded: %s (%s)", name, created_id)
    return created_id
