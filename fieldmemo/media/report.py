"""
Report stage (fan-in): all findings of an inspection → one model call →
one write to the inspection.

Unlike the per-memo stages this is all-or-nothing: on any failure the
inspection row is not touched and the error goes back to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Sequence

from fieldmemo.media.errors import EmptyInputError, ReportGenerationError, StoreError
from fieldmemo.media.inspections import get_inspection, list_findings
from fieldmemo.media.models import (
    CLOSEOUT_KEYS,
    INSPECTION_COMPLETED,
    INSPECTIONS,
    Finding,
    Inspection,
)
from fieldmemo.media.validator import validate_output
from fieldmemo.utils.time import now_iso

REPORT_SYSTEM_PROMPT = """You are a professional daily inspection report writer.

Generate a formal inspection report summary based on the findings provided.
The report should include:
1. Executive Summary (2-3 sentences overview)
2. Key Findings (bullet points of main issues/observations)
3. Recommendations (actionable items based on findings)

Keep the tone professional and concise. Focus on the facts from the transcripts and notes."""

CLOSEOUT_SYSTEM_PROMPT = """You are a professional daily inspection report writer closing out a site day.

Using only the findings provided, respond with pure JSON only. No markdown, no prose.

Return:
{
  "report_summary": "<formal report with 1. Executive Summary (2-3 sentences), 2. Key Findings (bullet points), 3. Recommendations (actionable items)>",
  "closeout_qna": {
    "hhr_done": "<Did HHR get done what we planned for?>",
    "jaime_done": "<Did Jaime get done what we planned for?>",
    "other_tasks_done": "<Did the other tasks/projects planned for today get accomplished?>",
    "timeline_impact": "<If not, how is our timeline altered?>",
    "new_tasks_or_info": "<What new tasks or information came up today that we need to plan for?>",
    "media_summary": "<Summarize the photos and videos showing the progress made on all fronts.>"
  }
}

Rules:
- If the findings do not answer a question, say "Not mentioned in today's findings."
- Never invent facts that are not in the findings."""


def build_findings_context(findings: Sequence[Finding]) -> str:
    """
    One block per finding, in the given order. The "Finding N:" header is
    always emitted so numbering stays stable; only sub-lines with content
    are appended under it.
    """
    blocks = []
    for i, f in enumerate(findings, start=1):
        lines = [f"Finding {i}:"]
        if f.notes:
            lines.append(f"  Notes: {f.notes}")
        if f.transcript:
            lines.append(f'  Voice memo transcript: "{f.transcript}"')
        elif f.photo_path:
            lines.append("  [Photo attached]")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_report_prompt(inspection: Inspection, findings: Sequence[Finding]) -> str:
    return (
        f"Inspection: {inspection.title}\n"
        f"Date: {inspection.inspection_date}\n"
        f"\n"
        f"Findings:\n"
        f"{build_findings_context(findings)}"
    )


def _require_findings(findings: Sequence[Finding]) -> None:
    if not findings:
        raise EmptyInputError("No findings to generate report from")


def write_inspection_report(store, services, inspection: Inspection, findings: List[Finding]) -> str:
    """
    Generate the report text for an inspection and store it.

    Re-running on a completed inspection overwrites the summary.
    """
    _require_findings(findings)

    try:
        summary = services.complete(
            REPORT_SYSTEM_PROMPT,
            build_report_prompt(inspection, findings),
            model=getattr(services, "report_model", None),
        )
    except Exception as e:  # noqa: BLE001
        logging.error("[REPORT ERROR %s] %s", inspection.id, e)
        raise ReportGenerationError(f"Report generation failed: {e}") from e

    summary = (summary or "").strip()
    if not summary:
        raise ReportGenerationError("Report generation returned no text")

    fields = {
        "report_summary": summary,
        "status": INSPECTION_COMPLETED,
        "updated_at": now_iso(),
    }
    _save(store, inspection, fields)
    logging.info("[REPORT] inspection %s: %d findings, %d chars", inspection.id, len(findings), len(summary))
    return summary


def generate_inspection_report(store, services, owner_id: str, inspection_id: str) -> str:
    inspection = get_inspection(store, owner_id, inspection_id)
    findings = list_findings(store, owner_id, inspection_id)
    return write_inspection_report(store, services, inspection, findings)


def parse_closeout(raw: str) -> Dict[str, Any]:
    """
    Parse and validate the finish-inspection JSON.

    Returns {"report_summary": str, "closeout_qna": {six keys: str}}.
    Missing answers become empty strings.
    """
    try:
        payload = json.loads(raw or "")
    except (TypeError, ValueError) as e:
        raise ReportGenerationError(f"Closeout was not valid JSON: {e}") from e

    ok, err = validate_output("closeout", payload)
    if not ok:
        raise ReportGenerationError(f"Closeout did not match the expected shape: {err}")

    summary = payload["report_summary"].strip()
    if not summary:
        raise ReportGenerationError("Closeout returned an empty report summary")

    answers = payload.get("closeout_qna") or {}
    qna = {key: (answers.get(key) or "").strip() for key in CLOSEOUT_KEYS}
    return {"report_summary": summary, "closeout_qna": qna}


def finish_inspection(store, services, owner_id: str, inspection_id: str) -> Inspection:
    """
    Finish an inspection: report summary plus the daily closeout answers,
    produced by one JSON-mode completion and saved in one update.
    """
    inspection = get_inspection(store, owner_id, inspection_id)
    findings = list_findings(store, owner_id, inspection_id)
    _require_findings(findings)

    try:
        raw = services.complete(
            CLOSEOUT_SYSTEM_PROMPT,
            build_report_prompt(inspection, findings),
            json_mode=True,
            model=getattr(services, "report_model", None),
        )
    except Exception as e:  # noqa: BLE001
        logging.error("[CLOSEOUT ERROR %s] %s", inspection.id, e)
        raise ReportGenerationError(f"Report generation failed: {e}") from e

    closeout = parse_closeout(raw)
    stamp = now_iso()
    fields = {
        "report_summary": closeout["report_summary"],
        "closeout_qna": closeout["closeout_qna"],
        "closeout_generated_at": stamp,
        "status": INSPECTION_COMPLETED,
        "updated_at": stamp,
    }
    row = _save(store, inspection, fields)
    logging.info("[CLOSEOUT] inspection %s finished from %d findings", inspection.id, len(findings))
    return Inspection.from_row(row)


def _save(store, inspection: Inspection, fields: Dict[str, Any]) -> Dict[str, Any]:
    row, error = store.update(INSPECTIONS, inspection.id, inspection.user_id, fields)
    if error or row is None:
        raise StoreError(f"Could not save report: {error}")
    return row
