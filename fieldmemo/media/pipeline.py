"""
Media ingestion pipeline.

Voice memo path:

    capture → ingest (blob + row) → transcription → extraction → tasks

Each step awaits the previous step's durable write. A failing stage marks
its own status on the row and the chain stops there; the caller gets an
ActionResult either way and can retry the failed stage explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fieldmemo import config
from fieldmemo.media.errors import NotFoundError, PipelineError, StoreError, ValidationError
from fieldmemo.media.extract import run_extraction_stage
from fieldmemo.media.ingest import ingest_voice_memo, validate_task_category
from fieldmemo.media.models import DONE, ERROR, VOICE_MEMOS, ActionResult, Capture, Finding, VoiceMemo
from fieldmemo.media.storage import load_media_file, remove_media_files
from fieldmemo.media.stt import run_transcription_stage
from fieldmemo.utils.time import is_iso_date, today


def ledger_state(record: Union[VoiceMemo, Finding]) -> Dict[str, Any]:
    """
    Summarize a row's stage statuses for display.

    Returns {"state": "processing" | "done" | "error", "retryable": bool}.
    A stage left pending after an earlier stage finished (e.g. by a restart
    between stages) is retryable.
    """
    statuses = [record.transcript_status]
    if isinstance(record, VoiceMemo):
        statuses.append(record.extract_status)
    statuses = [s for s in statuses if s]

    if ERROR in statuses:
        return {"state": "error", "retryable": True}
    # Photo-only findings have no stages after ingest.
    if all(s == DONE for s in statuses):
        return {"state": "done", "retryable": False}
    stalled = any(prev == DONE and cur != DONE for prev, cur in zip(statuses, statuses[1:]))
    return {"state": "processing", "retryable": stalled}


def get_voice_memo(store, owner_id: str, memo_id: str) -> VoiceMemo:
    row, error = store.get(VOICE_MEMOS, memo_id, owner_id)
    if error:
        raise StoreError(error)
    if row is None:
        raise NotFoundError("Voice memo not found")
    return VoiceMemo.from_row(row)


def list_voice_memos(store, owner_id: str) -> List[VoiceMemo]:
    """Newest first. Completion order says nothing about upload order."""
    rows, error = store.select(VOICE_MEMOS, owner_id, order_by="created_at", desc=True)
    if error:
        raise StoreError(error)
    return [VoiceMemo.from_row(r) for r in rows]


def process_voice_memo(
    store,
    services,
    owner_id: str,
    capture: Optional[Capture],
    context_date: Optional[str] = None,
    task_category: Optional[str] = "personal",
) -> ActionResult[Dict[str, Any]]:
    """
    Full voice memo pipeline for one upload.

    Returns:
        ActionResult with data={"memo_id", "count"} on success, or the
        error message (and memo_id once a row exists) on failure.
    """
    if capture is None or not capture.data:
        return ActionResult.failure("No audio file provided")
    if not services.configured:
        return ActionResult.failure("OPENAI_API_KEY is not configured on the server.")

    context_date = context_date or today()
    if not is_iso_date(context_date):
        return ActionResult.failure(f"Invalid date: {context_date!r}")

    try:
        category = validate_task_category(task_category)
        memo = ingest_voice_memo(store, owner_id, capture, category, context_date)
    except PipelineError as e:
        logging.warning("[VOICE MEMO] ingest failed for %s: %s", owner_id, e)
        return ActionResult.failure(str(e))

    try:
        transcript = run_transcription_stage(store, services, VOICE_MEMOS, memo, capture.data)
        count = run_extraction_stage(store, services, memo, transcript, context_date, category)
    except PipelineError as e:
        return ActionResult.failure(str(e), memo_id=memo.id)

    return ActionResult.success({"memo_id": memo.id, "count": count})


def retry_transcription(store, services, owner_id: str, memo_id: str) -> ActionResult[Dict[str, Any]]:
    """
    Re-run the stages that have not finished for a memo, starting with
    transcription. Stages already done are not repeated.
    """
    try:
        memo = get_voice_memo(store, owner_id, memo_id)
        transcript = memo.transcript
        if memo.transcript_status != DONE:
            audio = load_media_file(store, config.VOICE_MEMO_BUCKET, memo.audio_path)
            transcript = run_transcription_stage(store, services, VOICE_MEMOS, memo, audio)
        count = _extract_if_needed(store, services, memo, transcript)
    except PipelineError as e:
        return ActionResult.failure(str(e), memo_id=memo_id)
    return ActionResult.success({"memo_id": memo.id, "count": count})


def retry_extraction(store, services, owner_id: str, memo_id: str) -> ActionResult[Dict[str, Any]]:
    try:
        memo = get_voice_memo(store, owner_id, memo_id)
        if memo.transcript_status != DONE or not memo.transcript:
            raise ValidationError("Voice memo has no transcript yet")
        count = _extract_if_needed(store, services, memo, memo.transcript)
    except PipelineError as e:
        return ActionResult.failure(str(e), memo_id=memo_id)
    return ActionResult.success({"memo_id": memo.id, "count": count})


def _extract_if_needed(store, services, memo: VoiceMemo, transcript: str) -> int:
    if memo.extract_status == DONE:
        return memo.extracted_task_count
    context_date = memo.context_date or today()
    return run_extraction_stage(store, services, memo, transcript, context_date, memo.task_category)


def delete_voice_memo(store, owner_id: str, memo_id: str) -> None:
    """
    Remove a memo's audio and its row. Tasks extracted from it stay.
    """
    memo = get_voice_memo(store, owner_id, memo_id)
    remove_media_files(store, config.VOICE_MEMO_BUCKET, [memo.audio_path])
    error = store.delete(VOICE_MEMOS, memo_id, owner_id)
    if error:
        raise StoreError(error)
