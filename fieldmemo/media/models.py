from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

from fieldmemo import config

# ================================
# STATUS LEDGER VALUES
# ================================
PENDING = "pending"
DONE = "done"
ERROR = "error"
STAGE_STATUSES = (PENDING, DONE, ERROR)

TASK_CATEGORIES = ("personal", "work")
TASK_SOURCES = ("manual", "ai", "voice")

INSPECTION_DRAFT = "draft"
INSPECTION_COMPLETED = "completed"

CLOSEOUT_KEYS = (
    "hhr_done",
    "jaime_done",
    "other_tasks_done",
    "timeline_impact",
    "new_tasks_or_info",
    "media_summary",
)

# ================================
# TABLES
# ================================
VOICE_MEMOS = "voice_memos"
TASKS = "tasks"
INSPECTIONS = "inspections"
FINDINGS = "inspection_findings"

# Capture kind -> default extension when the upload carries no filename
CAPTURE_KINDS = {
    "audio": ".webm",
    "photo": ".jpg",
    "video": ".mp4",
}


@dataclass(frozen=True)
class Capture:
    """
    One inbound capture from the client.

    kind is the tag of the variant: "audio" goes to the voice-memos bucket
    and is transcribed, "photo" / "video" go to the inspection-photos bucket
    and stop after ingest.
    """

    kind: str
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    @classmethod
    def audio(cls, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> "Capture":
        return cls("audio", data, filename, content_type or "audio/webm")

    @classmethod
    def photo(cls, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> "Capture":
        return cls("photo", data, filename, content_type or "image/jpeg")

    @classmethod
    def video(cls, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> "Capture":
        return cls("video", data, filename, content_type or "video/mp4")

    @property
    def needs_transcription(self) -> bool:
        return self.kind == "audio"

    @property
    def bucket(self) -> str:
        if self.kind == "audio":
            return config.VOICE_MEMO_BUCKET
        return config.PHOTO_BUCKET


@dataclass
class VoiceMemo:
    id: str
    user_id: str
    audio_path: str
    transcript: Optional[str] = None
    transcript_status: str = PENDING
    extract_status: str = PENDING
    extracted_task_count: int = 0
    task_category: str = "personal"
    context_date: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "VoiceMemo":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            audio_path=row["audio_path"],
            transcript=row.get("transcript"),
            transcript_status=row.get("transcript_status") or PENDING,
            extract_status=row.get("extract_status") or PENDING,
            extracted_task_count=int(row.get("extracted_task_count") or 0),
            task_category=row.get("task_category") or "personal",
            context_date=row.get("context_date"),
            error=row.get("error"),
            created_at=row.get("created_at"),
        )


@dataclass
class Finding:
    id: str
    inspection_id: str
    user_id: str
    photo_path: Optional[str] = None
    voice_memo_path: Optional[str] = None
    transcript: Optional[str] = None
    transcript_status: Optional[str] = None
    notes: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def audio_path(self) -> Optional[str]:
        # Lets the transcription stage treat findings and memos alike
        return self.voice_memo_path

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Finding":
        return cls(
            id=str(row["id"]),
            inspection_id=str(row["inspection_id"]),
            user_id=str(row["user_id"]),
            photo_path=row.get("photo_path"),
            voice_memo_path=row.get("voice_memo_path"),
            transcript=row.get("transcript"),
            transcript_status=row.get("transcript_status"),
            notes=row.get("notes"),
            error=row.get("error"),
            created_at=row.get("created_at"),
        )


@dataclass
class Inspection:
    id: str
    user_id: str
    title: str
    inspection_date: str
    status: str = INSPECTION_DRAFT
    report_summary: Optional[str] = None
    closeout_qna: Optional[Dict[str, str]] = None
    closeout_generated_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Inspection":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=row.get("title") or "",
            inspection_date=row.get("inspection_date") or "",
            status=row.get("status") or INSPECTION_DRAFT,
            report_summary=row.get("report_summary"),
            closeout_qna=row.get("closeout_qna"),
            closeout_generated_at=row.get("closeout_generated_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class ExtractedTask:
    """A task as returned by the model, after cleanup."""

    title: str
    due_date: Optional[str]
    notes: Optional[str] = None

    def to_row(self, user_id: str, task_category: str) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "title": self.title,
            "notes": self.notes,
            "due_date": self.due_date,
            "source": "ai",
            "task_category": task_category,
            "completed": False,
        }


@dataclass
class Task:
    id: str
    user_id: str
    title: str
    notes: Optional[str] = None
    due_date: Optional[str] = None
    completed: bool = False
    source: str = "manual"
    task_category: str = "personal"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Task":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=row["title"],
            notes=row.get("notes"),
            due_date=row.get("due_date"),
            completed=bool(row.get("completed", False)),
            source=row.get("source") or "manual",
            task_category=row.get("task_category") or "personal",
        )


T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """
    Result-type return for the voice memo flow.

    ok=True carries data, ok=False carries a user-facing error message.
    """

    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: T) -> "ActionResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str, **details: Any) -> "ActionResult[T]":
        return cls(ok=False, error=error, details=dict(details))

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        payload: Dict[str, Any] = {"ok": False, "error": self.error}
        if self.details:
            payload.update(self.details)
        return payload
