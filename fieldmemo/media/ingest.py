from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fieldmemo.media.errors import StoreError, ValidationError
from fieldmemo.media.models import (
    CAPTURE_KINDS,
    FINDINGS,
    PENDING,
    TASK_CATEGORIES,
    VOICE_MEMOS,
    Capture,
    Finding,
    VoiceMemo,
)
from fieldmemo.media.storage import save_media_file


def validate_capture(capture: Optional[Capture]) -> Capture:
    if capture is None:
        raise ValidationError("No capture provided")
    if capture.kind not in CAPTURE_KINDS:
        raise ValidationError(f"Unrecognized capture kind: {capture.kind!r}")
    if not capture.data:
        raise ValidationError(f"Empty {capture.kind} capture")
    return capture


def validate_task_category(task_category: Optional[str]) -> str:
    category = task_category or "personal"
    if category not in TASK_CATEGORIES:
        raise ValidationError(f"Unknown task category: {category!r}")
    return category


def ingest_capture(
    store,
    owner_id: str,
    capture: Capture,
    table: str,
    row: Dict[str, Any],
    path_column: str,
    parent_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Upload a capture, then insert its tracking row.

    These are two separate steps. If the upload fails nothing is written.
    If the insert fails after a successful upload the blob is left behind
    and logged for an external sweep.
    """
    if not owner_id:
        raise ValidationError("Missing owner")
    validate_capture(capture)

    path = save_media_file(store, owner_id, capture, parent_id)
    logging.info("[INGEST] stored %s capture at %s/%s", capture.kind, capture.bucket, path)

    payload = dict(row)
    payload["user_id"] = owner_id
    payload[path_column] = path

    created, error = store.insert(table, payload)
    if error or created is None:
        logging.warning("[ORPHAN BLOB] %s/%s has no %s row: %s", capture.bucket, path, table, error)
        raise StoreError(f"DB insert failed: {error}")
    return created


def ingest_voice_memo(
    store,
    owner_id: str,
    capture: Capture,
    task_category: Optional[str] = None,
    context_date: Optional[str] = None,
) -> VoiceMemo:
    category = validate_task_category(task_category)
    if capture is not None and capture.kind != "audio":
        raise ValidationError("Voice memos must be audio")

    row = ingest_capture(
        store,
        owner_id,
        capture,
        VOICE_MEMOS,
        {
            "transcript_status": PENDING,
            "extract_status": PENDING,
            "extracted_task_count": 0,
            "task_category": category,
            "context_date": context_date,
        },
        path_column="audio_path",
    )
    return VoiceMemo.from_row(row)


def ingest_finding(
    store,
    owner_id: str,
    inspection_id: str,
    capture: Capture,
    notes: Optional[str] = None,
) -> Finding:
    """
    Store a photo, video or voice capture as a finding of an inspection.

    Photo and video findings are finished after this; voice findings start
    with transcript_status=pending.
    """
    if not inspection_id:
        raise ValidationError("Missing inspection")

    row: Dict[str, Any] = {
        "inspection_id": inspection_id,
        "notes": notes or None,
    }
    if capture is not None and capture.needs_transcription:
        path_column = "voice_memo_path"
        row["transcript_status"] = PENDING
    else:
        path_column = "photo_path"

    created = ingest_capture(
        store,
        owner_id,
        capture,
        FINDINGS,
        row,
        path_column=path_column,
        parent_id=inspection_id,
    )
    return Finding.from_row(created)
