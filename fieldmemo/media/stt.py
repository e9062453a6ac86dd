"""
Speech-to-text stage (Audio → Text)

Runs the stored audio through the transcription service and records the
outcome on the tracking row: either transcript + transcript_status=done in
one update, or transcript_status=error + error in one update. No retries
here; a retry is a fresh call from the caller.
"""

import logging
import posixpath
from typing import Optional, Union

from fieldmemo.media.errors import TranscriptionError
from fieldmemo.media.models import DONE, ERROR, Finding, VoiceMemo


def perform_stt(services, audio_bytes: bytes, filename: str = "audio.webm") -> str:
    """
    Call the transcription service.

    Returns:
        str: the stripped transcript.

    Raises:
        TranscriptionError: on service failure or an empty transcript.
    """
    try:
        text = services.transcribe(audio_bytes, filename=filename)
    except Exception as e:  # noqa: BLE001
        raise TranscriptionError(f"Transcription failed: {e}") from e

    text = (text or "").strip()
    if not text:
        raise TranscriptionError("Transcription returned no text")
    return text


def _audio_filename(audio_path: Optional[str]) -> str:
    name = posixpath.basename(audio_path or "")
    return name if "." in name else "audio.webm"


def run_transcription_stage(
    store,
    services,
    table: str,
    record: Union[VoiceMemo, Finding],
    audio_bytes: bytes,
) -> str:
    """
    Transcribe a voice memo or voice finding and write the result to its row.

    Returns the transcript. Raises TranscriptionError after marking the row.
    """
    try:
        transcript = perform_stt(services, audio_bytes, _audio_filename(record.audio_path))
    except TranscriptionError as e:
        _mark_error(store, table, record, str(e))
        raise

    _, error = store.update(
        table,
        record.id,
        record.user_id,
        {"transcript": transcript, "transcript_status": DONE},
    )
    if error:
        message = f"Could not save transcript: {error}"
        _mark_error(store, table, record, message)
        raise TranscriptionError(message)

    record.transcript = transcript
    record.transcript_status = DONE
    logging.info("[TRANSCRIBE] %s %s: %d chars", table, record.id, len(transcript))
    return transcript


def _mark_error(store, table: str, record, message: str) -> None:
    logging.error("[TRANSCRIBE ERROR %s %s] %s", table, record.id, message)
    _, error = store.update(
        table,
        record.id,
        record.user_id,
        {"transcript_status": ERROR, "error": message},
    )
    if error:
        logging.error("[TRANSCRIBE ERROR %s %s] could not record failure: %s", table, record.id, error)
    record.transcript_status = ERROR
    record.error = message
