from __future__ import annotations

import json

import pytest

from fieldmemo.media.errors import NotFoundError
from fieldmemo.media.models import DONE, ERROR, PENDING, TASKS, VOICE_MEMOS, Capture, Finding, VoiceMemo
from fieldmemo.media.pipeline import (
    delete_voice_memo,
    ledger_state,
    list_voice_memos,
    process_voice_memo,
    retry_extraction,
    retry_transcription,
)
from tests.conftest import OTHER_OWNER, OWNER, FakeServices

TWO_TASKS = json.dumps({"tasks": [{"title": "Call John"}, {"title": "Email Sue"}]})


def test_end_to_end_voice_memo(store) -> None:
    services = FakeServices(transcript="Call John tomorrow and email Sue", completions=[TWO_TASKS])

    result = process_voice_memo(store, services, OWNER, Capture.audio(b"webm"), "2024-03-01", "personal")

    assert result.ok
    assert result.data["count"] == 2
    tasks = store.rows(TASKS)
    assert [t["title"] for t in tasks] == ["Call John", "Email Sue"]
    assert all(t["due_date"] == "2024-03-01" for t in tasks)
    assert all(t["source"] == "ai" and t["user_id"] == OWNER for t in tasks)
    memo = store.rows(VOICE_MEMOS)[0]
    assert memo["id"] == result.data["memo_id"]
    assert memo["transcript_status"] == DONE
    assert memo["extract_status"] == DONE
    assert memo["extracted_task_count"] == 2
    assert "2024-03-01" in services.complete_calls[0]["system"]


def test_stages_run_in_order(store) -> None:
    services = FakeServices(completions=[TWO_TASKS])
    process_voice_memo(store, services, OWNER, Capture.audio(b"webm"), "2024-03-01")

    ops = [(c[0], c[1]) for c in store.calls]
    assert ops.index(("upload", "voice-memos")) < ops.index(("insert", VOICE_MEMOS))
    assert ops.index(("insert", VOICE_MEMOS)) < ops.index(("update", VOICE_MEMOS))
    assert ops.index(("update", VOICE_MEMOS)) < ops.index(("insert_many", TASKS))


def test_transcription_failure_stops_before_extraction(store) -> None:
    services = FakeServices(transcript=RuntimeError("bad audio"))

    result = process_voice_memo(store, services, OWNER, Capture.audio(b"webm"), "2024-03-01")

    assert not result.ok
    assert "bad audio" in result.error
    assert result.details["memo_id"]
    assert services.complete_calls == []
    memo = store.rows(VOICE_MEMOS)[0]
    assert memo["transcript_status"] == ERROR
    assert memo["extract_status"] == PENDING


def test_missing_audio_and_bad_input_are_rejected_before_upload(store) -> None:
    services = FakeServices()

    assert process_voice_memo(store, services, OWNER, None).error == "No audio file provided"
    assert not process_voice_memo(store, services, OWNER, Capture.audio(b"x"), "tomorrow").ok
    assert not process_voice_memo(store, services, OWNER, Capture.audio(b"x"), "2024-03-01", "errands").ok
    assert store.calls == []


def test_unconfigured_services_fail_fast(store) -> None:
    result = process_voice_memo(store, FakeServices(configured=False), OWNER, Capture.audio(b"x"))
    assert result.error == "OPENAI_API_KEY is not configured on the server."
    assert store.calls == []


def test_upload_failure_is_reported_without_a_row(store) -> None:
    store.fail["upload:voice-memos"] = "storage quota"
    result = process_voice_memo(store, FakeServices(), OWNER, Capture.audio(b"x"), "2024-03-01")
    assert not result.ok
    assert "storage quota" in result.error
    assert store.rows(VOICE_MEMOS) == []


def test_retry_transcription_resumes_from_the_failed_stage(store) -> None:
    failing = FakeServices(transcript=RuntimeError("flaky"))
    first = process_voice_memo(store, failing, OWNER, Capture.audio(b"webm"), "2024-03-01", "work")
    memo_id = first.details["memo_id"]

    services = FakeServices(transcript="Call John", completions=['{"tasks": [{"title": "Call John"}]}'])
    result = retry_transcription(store, services, OWNER, memo_id)

    assert result.ok
    assert result.data["count"] == 1
    assert services.transcribe_calls[0]["bytes"] == b"webm"
    [task] = store.rows(TASKS)
    assert task["due_date"] == "2024-03-01"
    assert task["task_category"] == "work"


def test_retry_extraction_after_done_inserts_nothing(store) -> None:
    services = FakeServices(completions=[TWO_TASKS])
    result = process_voice_memo(store, services, OWNER, Capture.audio(b"webm"), "2024-03-01")

    again = retry_extraction(store, FakeServices(), OWNER, result.data["memo_id"])

    assert again.ok
    assert again.data["count"] == 2
    assert len(store.rows(TASKS)) == 2


def test_retry_extraction_after_error(store) -> None:
    services = FakeServices(completions=[RuntimeError("503")])
    result = process_voice_memo(store, services, OWNER, Capture.audio(b"webm"), "2024-03-01")
    assert not result.ok
    assert store.rows(VOICE_MEMOS)[0]["extract_status"] == ERROR

    again = retry_extraction(store, FakeServices(completions=[TWO_TASKS]), OWNER, result.details["memo_id"])

    assert again.ok
    memo = store.rows(VOICE_MEMOS)[0]
    assert memo["extract_status"] == DONE
    assert memo["extracted_task_count"] == 2


def test_retry_extraction_requires_transcript(store) -> None:
    result = process_voice_memo(store, FakeServices(transcript=""), OWNER, Capture.audio(b"webm"), "2024-03-01")
    again = retry_extraction(store, FakeServices(), OWNER, result.details["memo_id"])
    assert not again.ok
    assert "no transcript" in again.error


def test_memos_are_scoped_to_their_owner(store) -> None:
    result = process_voice_memo(store, FakeServices(completions=[TWO_TASKS]), OWNER, Capture.audio(b"a"), "2024-03-01")

    assert list_voice_memos(store, OTHER_OWNER) == []
    assert not retry_transcription(store, FakeServices(), OTHER_OWNER, result.data["memo_id"]).ok
    with pytest.raises(NotFoundError):
        delete_voice_memo(store, OTHER_OWNER, result.data["memo_id"])
    assert len(store.rows(VOICE_MEMOS)) == 1


def test_delete_voice_memo_removes_blob_and_row(store) -> None:
    result = process_voice_memo(store, FakeServices(completions=[TWO_TASKS]), OWNER, Capture.audio(b"a"), "2024-03-01")
    audio_path = store.rows(VOICE_MEMOS)[0]["audio_path"]

    delete_voice_memo(store, OWNER, result.data["memo_id"])

    assert store.calls_of("remove") == [("remove", "voice-memos", [audio_path])]
    assert store.rows(VOICE_MEMOS) == []
    assert len(store.rows(TASKS)) == 2


def test_list_voice_memos_newest_first(store) -> None:
    services = FakeServices(completions=[TWO_TASKS, TWO_TASKS])
    first = process_voice_memo(store, services, OWNER, Capture.audio(b"a"), "2024-03-01")
    second = process_voice_memo(store, services, OWNER, Capture.audio(b"b"), "2024-03-02")

    ids = [m.id for m in list_voice_memos(store, OWNER)]
    assert ids == [second.data["memo_id"], first.data["memo_id"]]


@pytest.mark.parametrize(
    "transcript_status,extract_status,state,retryable",
    [
        (PENDING, PENDING, "processing", False),
        (DONE, PENDING, "processing", True),
        (DONE, DONE, "done", False),
        (ERROR, PENDING, "error", True),
        (DONE, ERROR, "error", True),
    ],
)
def test_ledger_state(transcript_status, extract_status, state, retryable) -> None:
    memo = VoiceMemo(
        id="m",
        user_id=OWNER,
        audio_path="k",
        transcript_status=transcript_status,
        extract_status=extract_status,
    )
    assert ledger_state(memo) == {"state": state, "retryable": retryable}


def test_ledger_state_for_findings() -> None:
    photo = Finding(id="f1", inspection_id="i", user_id=OWNER, photo_path="p.jpg")
    voice = Finding(id="f2", inspection_id="i", user_id=OWNER, voice_memo_path="v.webm", transcript_status=ERROR)
    assert ledger_state(photo) == {"state": "done", "retryable": False}
    assert ledger_state(voice) == {"state": "error", "retryable": True}


def test_memo_stalled_between_stages_is_retryable_and_retry_finishes_it(store) -> None:
    row = store.seed(
        VOICE_MEMOS,
        user_id=OWNER,
        audio_path="user-1/k.webm",
        transcript="Call John",
        transcript_status=DONE,
        extract_status=PENDING,
        extracted_task_count=0,
        task_category="personal",
        context_date="2024-03-01",
    )
    assert ledger_state(VoiceMemo.from_row(row)) == {"state": "processing", "retryable": True}

    services = FakeServices(completions=['{"tasks": [{"title": "Call John"}]}'])
    result = retry_transcription(store, services, OWNER, row["id"])

    assert result.ok
    assert result.data["count"] == 1
    assert services.transcribe_calls == []
    assert ledger_state(VoiceMemo.from_row(store.rows(VOICE_MEMOS)[0]))["state"] == "done"
