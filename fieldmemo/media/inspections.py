from __future__ import annotations

import logging
from typing import List, Optional

from fieldmemo import config
from fieldmemo.media.errors import NotFoundError, StoreError, ValidationError
from fieldmemo.media.ingest import ingest_finding
from fieldmemo.media.models import (
    FINDINGS,
    INSPECTION_DRAFT,
    INSPECTIONS,
    Capture,
    Finding,
    Inspection,
)
from fieldmemo.media.storage import remove_media_files
from fieldmemo.media.stt import run_transcription_stage
from fieldmemo.utils.time import is_iso_date, today


def create_inspection(store, owner_id: str, title: str, inspection_date: Optional[str] = None) -> Inspection:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Inspection title is required")
    inspection_date = inspection_date or today()
    if not is_iso_date(inspection_date):
        raise ValidationError(f"Invalid inspection date: {inspection_date!r}")

    row, error = store.insert(
        INSPECTIONS,
        {
            "user_id": owner_id,
            "title": title,
            "inspection_date": inspection_date,
            "status": INSPECTION_DRAFT,
        },
    )
    if error or row is None:
        raise StoreError(f"Could not create inspection: {error}")
    return Inspection.from_row(row)


def get_inspection(store, owner_id: str, inspection_id: str) -> Inspection:
    row, error = store.get(INSPECTIONS, inspection_id, owner_id)
    if error:
        raise StoreError(error)
    if row is None:
        raise NotFoundError("Inspection not found")
    return Inspection.from_row(row)


def list_inspections(store, owner_id: str) -> List[Inspection]:
    rows, error = store.select(INSPECTIONS, owner_id, order_by="inspection_date", desc=True)
    if error:
        raise StoreError(error)
    return [Inspection.from_row(r) for r in rows]


def list_findings(store, owner_id: str, inspection_id: str) -> List[Finding]:
    """Findings of one inspection, oldest first."""
    rows, error = store.select(
        FINDINGS,
        owner_id,
        filters={"inspection_id": inspection_id},
        order_by="created_at",
    )
    if error:
        raise StoreError(error)
    return [Finding.from_row(r) for r in rows]


def add_finding_with_photo(
    store,
    owner_id: str,
    inspection_id: str,
    capture: Optional[Capture] = None,
    notes: Optional[str] = None,
) -> Finding:
    """
    Attach a photo (or video) finding. A finding with notes and no photo is
    allowed; one with neither is not.
    """
    get_inspection(store, owner_id, inspection_id)
    notes = (notes or "").strip() or None

    if capture is not None and capture.data:
        if capture.needs_transcription:
            raise ValidationError("Use a voice finding for audio")
        return ingest_finding(store, owner_id, inspection_id, capture, notes=notes)

    if not notes:
        raise ValidationError("A finding needs a photo or notes")

    row, error = store.insert(
        FINDINGS,
        {
            "inspection_id": inspection_id,
            "user_id": owner_id,
            "photo_path": None,
            "notes": notes,
        },
    )
    if error or row is None:
        raise StoreError(f"Could not create finding: {error}")
    return Finding.from_row(row)


def add_finding_with_voice(store, services, owner_id: str, inspection_id: str, capture: Capture) -> Finding:
    """
    Ingest a voice note as a finding, then transcribe it.

    A transcription failure leaves the finding in place with
    transcript_status=error and is re-raised for the caller.
    """
    get_inspection(store, owner_id, inspection_id)
    if capture is None or not capture.needs_transcription:
        raise ValidationError("No audio file provided")

    finding = ingest_finding(store, owner_id, inspection_id, capture)
    run_transcription_stage(store, services, FINDINGS, finding, capture.data)
    return finding


def delete_finding(store, owner_id: str, finding_id: str) -> None:
    row, error = store.get(FINDINGS, finding_id, owner_id)
    if error:
        raise StoreError(error)
    if row is None:
        raise NotFoundError("Finding not found")

    finding = Finding.from_row(row)
    remove_media_files(store, config.PHOTO_BUCKET, [finding.photo_path])
    remove_media_files(store, config.VOICE_MEMO_BUCKET, [finding.voice_memo_path])

    error = store.delete(FINDINGS, finding_id, owner_id)
    if error:
        raise StoreError(error)


def delete_inspection(store, owner_id: str, inspection_id: str) -> None:
    """
    Delete an inspection with all of its findings and their blobs.
    """
    get_inspection(store, owner_id, inspection_id)
    findings = list_findings(store, owner_id, inspection_id)

    photo_keys = remove_media_files(store, config.PHOTO_BUCKET, [f.photo_path for f in findings])
    voice_keys = remove_media_files(store, config.VOICE_MEMO_BUCKET, [f.voice_memo_path for f in findings])
    logging.info(
        "[INSPECTION DELETE] %s: %d findings, %d photos, %d voice notes",
        inspection_id,
        len(findings),
        len(photo_keys),
        len(voice_keys),
    )

    error = store.delete_where(FINDINGS, owner_id, {"inspection_id": inspection_id})
    if error:
        raise StoreError(error)
    error = store.delete(INSPECTIONS, inspection_id, owner_id)
    if error:
        raise StoreError(error)
