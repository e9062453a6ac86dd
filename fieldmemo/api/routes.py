from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, g, jsonify, request

from fieldmemo import config
from fieldmemo.media.errors import (
    EmptyInputError,
    ExtractionError,
    NotFoundError,
    PipelineError,
    ReportGenerationError,
    StoreError,
    TranscriptionError,
    UploadError,
    ValidationError,
)
from fieldmemo.media.inspections import (
    add_finding_with_photo,
    add_finding_with_voice,
    create_inspection,
    delete_finding,
    delete_inspection,
    list_findings,
    list_inspections,
)
from fieldmemo.media.models import Capture
from fieldmemo.media.pipeline import (
    delete_voice_memo,
    ledger_state,
    list_voice_memos,
    process_voice_memo,
    retry_extraction,
    retry_transcription,
)
from fieldmemo.media.report import finish_inspection, generate_inspection_report

api = Blueprint("api", __name__)

ERROR_STATUS = {
    ValidationError: 400,
    EmptyInputError: 400,
    NotFoundError: 404,
    UploadError: 502,
    TranscriptionError: 502,
    ExtractionError: 502,
    ReportGenerationError: 502,
    StoreError: 500,
}


def _store():
    return current_app.extensions["fieldmemo.store"]


def _services():
    return current_app.extensions["fieldmemo.services"]


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return ""


def _capture(field: str, kind: Optional[str] = None) -> Optional[Capture]:
    upload = request.files.get(field)
    if upload is None:
        return None
    data = upload.read()
    content_type = upload.mimetype or None
    if kind is None:
        kind = "video" if (content_type or "").startswith("video/") else "photo"
    return Capture(kind, data, upload.filename or None, content_type)


@api.before_request
def require_user() -> Any:
    if request.endpoint == "api.healthcheck":
        return None
    user_id = _store().get_user_id(_bearer_token())
    if not user_id:
        return jsonify({"ok": False, "error": "Unauthorized"}), 401
    g.user_id = user_id
    return None


@api.errorhandler(PipelineError)
def handle_pipeline_error(e: PipelineError) -> Any:
    status = ERROR_STATUS.get(type(e), 500)
    if status >= 500:
        logging.error("[API ERROR %s] %s", request.path, e)
    return jsonify({"ok": False, "error": str(e)}), status


@api.route("/", methods=["GET"])
def healthcheck() -> str:
    return "fieldmemo running"


# ================================
# VOICE MEMOS
# ================================
def _memo_payload(memo) -> Dict[str, Any]:
    payload = asdict(memo)
    payload.update(ledger_state(memo))
    payload["audio_url"] = _store().public_url(config.VOICE_MEMO_BUCKET, memo.audio_path)
    return payload


def _result_response(result) -> Any:
    return jsonify(result.to_dict()), (200 if result.ok else 422)


@api.route("/voice-memos", methods=["POST"])
def upload_voice_memo() -> Any:
    result = process_voice_memo(
        _store(),
        _services(),
        g.user_id,
        _capture("audio", kind="audio"),
        context_date=request.form.get("date") or None,
        task_category=request.form.get("task_category") or "personal",
    )
    return _result_response(result)


@api.route("/voice-memos", methods=["GET"])
def voice_memos() -> Any:
    memos = list_voice_memos(_store(), g.user_id)
    return jsonify({"ok": True, "data": [_memo_payload(m) for m in memos]})


@api.route("/voice-memos/<memo_id>/retry", methods=["POST"])
def retry_voice_memo(memo_id: str) -> Any:
    return _result_response(retry_transcription(_store(), _services(), g.user_id, memo_id))


@api.route("/voice-memos/<memo_id>/extract", methods=["POST"])
def retry_voice_memo_extraction(memo_id: str) -> Any:
    return _result_response(retry_extraction(_store(), _services(), g.user_id, memo_id))


@api.route("/voice-memos/<memo_id>", methods=["DELETE"])
def remove_voice_memo(memo_id: str) -> Any:
    delete_voice_memo(_store(), g.user_id, memo_id)
    return jsonify({"ok": True, "data": {}})


# ================================
# INSPECTIONS
# ================================
@api.route("/inspections", methods=["POST"])
def new_inspection() -> Any:
    body: Dict[str, Any] = request.get_json(silent=True) or {}
    inspection = create_inspection(
        _store(),
        g.user_id,
        body.get("title", ""),
        body.get("inspection_date"),
    )
    return jsonify({"ok": True, "data": asdict(inspection)}), 201


@api.route("/inspections", methods=["GET"])
def inspections() -> Any:
    store = _store()
    data = []
    for inspection in list_inspections(store, g.user_id):
        payload = asdict(inspection)
        payload["findings"] = [asdict(f) for f in list_findings(store, g.user_id, inspection.id)]
        data.append(payload)
    return jsonify({"ok": True, "data": data})


@api.route("/inspections/<inspection_id>", methods=["DELETE"])
def remove_inspection(inspection_id: str) -> Any:
    delete_inspection(_store(), g.user_id, inspection_id)
    return jsonify({"ok": True, "data": {}})


@api.route("/inspections/<inspection_id>/findings/photo", methods=["POST"])
def new_photo_finding(inspection_id: str) -> Any:
    finding = add_finding_with_photo(
        _store(),
        g.user_id,
        inspection_id,
        _capture("photo"),
        notes=request.form.get("notes"),
    )
    return jsonify({"ok": True, "data": asdict(finding)}), 201


@api.route("/inspections/<inspection_id>/findings/voice", methods=["POST"])
def new_voice_finding(inspection_id: str) -> Any:
    finding = add_finding_with_voice(
        _store(),
        _services(),
        g.user_id,
        inspection_id,
        _capture("audio", kind="audio"),
    )
    return jsonify({"ok": True, "data": asdict(finding)}), 201


@api.route("/findings/<finding_id>", methods=["DELETE"])
def remove_finding(finding_id: str) -> Any:
    delete_finding(_store(), g.user_id, finding_id)
    return jsonify({"ok": True, "data": {}})


@api.route("/inspections/<inspection_id>/report", methods=["POST"])
def inspection_report(inspection_id: str) -> Any:
    summary = generate_inspection_report(_store(), _services(), g.user_id, inspection_id)
    return jsonify({"ok": True, "data": {"report_summary": summary}})


@api.route("/inspections/<inspection_id>/finish", methods=["POST"])
def inspection_finish(inspection_id: str) -> Any:
    inspection = finish_inspection(_store(), _services(), g.user_id, inspection_id)
    return jsonify({"ok": True, "data": asdict(inspection)})
