from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from fieldmemo.media.errors import ExtractionError
from fieldmemo.media.models import DONE, ERROR, TASKS, VOICE_MEMOS, ExtractedTask, VoiceMemo
from fieldmemo.media.validator import validate_output
from fieldmemo.utils.time import is_iso_date


def build_extraction_prompt(context_date: str) -> str:
    """
    System instruction for task extraction. Deterministic for a given date.
    """
    return f"""You are a helpful assistant that extracts tasks from voice notes.
The user is managing a daily checklist for {context_date}.
Extract clear, actionable tasks.
Return a JSON object with a key "tasks" which is an array of objects.
Each object should have:
- "title" (string, required, concise task name)
- "notes" (string, optional, extra details)
- "due_date" (string, YYYY-MM-DD, default to {context_date} unless the user explicitly mentions another date)

If no tasks are found, return an empty array.
Do not include conversational filler."""


def parse_extracted_tasks(raw: Optional[str], context_date: str) -> List[ExtractedTask]:
    """
    Turn the model's raw text into clean tasks.

    Malformed JSON, a non-object payload or a missing "tasks" list all give
    an empty list. Items that fail the schema or have a blank title are
    dropped. A missing or unparseable due_date falls back to context_date.
    Duplicate titles are kept.
    """
    try:
        payload: Any = json.loads(raw or "")
    except (TypeError, ValueError):
        logging.warning("[EXTRACT] model returned malformed JSON, treating as no tasks")
        return []

    if not isinstance(payload, dict):
        return []
    items = payload.get("tasks")
    if not isinstance(items, list):
        return []

    tasks: List[ExtractedTask] = []
    for item in items:
        ok, err = validate_output("extracted_task", item)
        if not ok:
            logging.info("[EXTRACT] dropping task item: %s", err)
            continue

        title = item["title"].strip()
        if not title:
            continue

        notes = item.get("notes")
        notes = notes.strip() if isinstance(notes, str) and notes.strip() else None

        due_date = item.get("due_date")
        if not is_iso_date(due_date):
            due_date = context_date

        tasks.append(ExtractedTask(title=title, due_date=due_date, notes=notes))
    return tasks


def extract_tasks(services, transcript: str, context_date: str) -> List[ExtractedTask]:
    """
    Ask the completion service for tasks in a transcript.

    Raises:
        ExtractionError: only when the service call itself fails.
    """
    try:
        raw = services.complete(
            build_extraction_prompt(context_date),
            transcript,
            json_mode=True,
            model=getattr(services, "extract_model", None),
        )
    except Exception as e:  # noqa: BLE001
        raise ExtractionError(f"Extraction failed: {e}") from e

    return parse_extracted_tasks(raw, context_date)


def run_extraction_stage(
    store,
    services,
    memo: VoiceMemo,
    transcript: str,
    context_date: str,
    task_category: str,
) -> int:
    """
    Extract tasks from a memo's transcript, insert them, and record the
    outcome on the memo.

    The bulk insert and the done/count update form one unit from the
    caller's point of view: the memo only reports done with a count after
    the tasks are persisted.

    Returns:
        int: number of tasks inserted.
    """
    try:
        tasks = extract_tasks(services, transcript, context_date)
    except ExtractionError as e:
        _mark_error(store, memo, str(e))
        raise

    rows = [t.to_row(memo.user_id, task_category) for t in tasks]
    inserted, error = store.insert_many(TASKS, rows)
    if error:
        message = f"Task insert failed: {error}"
        _mark_error(store, memo, message)
        raise ExtractionError(message)

    count = len(rows)
    _, error = store.update(
        VOICE_MEMOS,
        memo.id,
        memo.user_id,
        {"extract_status": DONE, "extracted_task_count": count},
    )
    if error:
        # An error memo must not keep tasks around.
        left_behind = []
        for row in inserted:
            delete_error = store.delete(TASKS, row["id"], memo.user_id)
            if delete_error:
                left_behind.append(row["id"])
        message = f"Could not record extraction result: {error}"
        if left_behind:
            logging.error(
                "[EXTRACT ERROR %s] rollback failed, tasks left behind: %s",
                memo.id,
                ", ".join(left_behind),
            )
            message += f" (rollback failed, tasks left behind: {', '.join(left_behind)})"
        _mark_error(store, memo, message)
        raise ExtractionError(message)

    memo.extract_status = DONE
    memo.extracted_task_count = count
    logging.info("[EXTRACT] memo %s: %d tasks", memo.id, count)
    return count


def _mark_error(store, memo: VoiceMemo, message: str) -> None:
    logging.error("[EXTRACT ERROR %s] %s", memo.id, message)
    _, error = store.update(
        VOICE_MEMOS,
        memo.id,
        memo.user_id,
        {"extract_status": ERROR, "error": message},
    )
    if error:
        logging.error("[EXTRACT ERROR %s] could not record failure: %s", memo.id, error)
    memo.extract_status = ERROR
    memo.error = message
