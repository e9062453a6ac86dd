from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

OWNER = "user-1"
OTHER_OWNER = "user-2"


class FakeStore:
    """
    In-memory stand-in for SupabaseStore with the same (result, error)
    interface. Set `fail["<op>:<table or bucket>"]` to make a call fail;
    the value is the error string, or a callable taking the call's payload
    and returning an error string or None.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.blobs: Dict[Tuple[str, str], bytes] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self.fail: Dict[str, Union[str, Callable[[Any], Optional[str]]]] = {}
        self.tokens: Dict[str, str] = {"token-1": OWNER, "token-2": OTHER_OWNER}
        self._next_id = 0

    # helpers ---------------------------------------------------------------
    def _error(self, key: str, payload: Any = None) -> Optional[str]:
        rule = self.fail.get(key)
        if rule is None:
            return None
        if callable(rule):
            return rule(payload)
        return rule

    def _new_id(self) -> str:
        self._next_id += 1
        return f"row-{self._next_id}"

    def _created_at(self) -> str:
        n = self._next_id
        return f"2024-01-01T00:{n // 60:02d}:{n % 60:02d}+00:00"

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def seed(self, table: str, **fields: Any) -> Dict[str, Any]:
        row = dict(fields)
        row.setdefault("id", self._new_id())
        row.setdefault("created_at", self._created_at())
        self.tables.setdefault(table, {})[row["id"]] = row
        return copy.deepcopy(row)

    # rows ------------------------------------------------------------------
    def insert(self, table, data):
        self.calls.append(("insert", table, copy.deepcopy(data)))
        error = self._error(f"insert:{table}", data)
        if error:
            return None, error
        return self.seed(table, **data), None

    def insert_many(self, table, rows):
        self.calls.append(("insert_many", table, copy.deepcopy(rows)))
        if not rows:
            return [], None
        error = self._error(f"insert_many:{table}", rows)
        if error:
            return [], error
        return [self.seed(table, **r) for r in rows], None

    def update(self, table, row_id, owner_id, fields):
        self.calls.append(("update", table, row_id, owner_id, copy.deepcopy(fields)))
        error = self._error(f"update:{table}", fields)
        if error:
            return None, error
        row = self.tables.get(table, {}).get(row_id)
        if row is None or row.get("user_id") != owner_id:
            return None, f"No {table} row {row_id} for this user"
        row.update(copy.deepcopy(fields))
        return copy.deepcopy(row), None

    def select(self, table, owner_id, filters=None, order_by=None, desc=False):
        self.calls.append(("select", table, owner_id, dict(filters or {})))
        error = self._error(f"select:{table}", filters)
        if error:
            return [], error
        rows = [
            copy.deepcopy(r)
            for r in self.rows(table)
            if r.get("user_id") == owner_id
            and all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=desc)
        return rows, None

    def get(self, table, row_id, owner_id):
        rows, error = self.select(table, owner_id, filters={"id": row_id})
        if error:
            return None, error
        return (rows[0] if rows else None), None

    def delete(self, table, row_id, owner_id):
        return self.delete_where(table, owner_id, {"id": row_id})

    def delete_where(self, table, owner_id, filters):
        self.calls.append(("delete", table, owner_id, dict(filters)))
        error = self._error(f"delete:{table}", filters)
        if error:
            return error
        existing = self.tables.get(table, {})
        for row_id in [
            k
            for k, r in existing.items()
            if r.get("user_id") == owner_id and all(r.get(f) == v for f, v in filters.items())
        ]:
            del existing[row_id]
        return None

    # blobs -----------------------------------------------------------------
    def upload(self, bucket, path, data, content_type=None):
        self.calls.append(("upload", bucket, path))
        error = self._error(f"upload:{bucket}", path)
        if error:
            return None, error
        self.blobs[(bucket, path)] = data
        return path, None

    def download(self, bucket, path):
        self.calls.append(("download", bucket, path))
        if (bucket, path) not in self.blobs:
            return None, "Object not found"
        return self.blobs[(bucket, path)], None

    def remove(self, bucket, paths: Sequence[str]):
        self.calls.append(("remove", bucket, list(paths)))
        error = self._error(f"remove:{bucket}", paths)
        if error:
            return error
        for p in paths:
            self.blobs.pop((bucket, p), None)
        return None

    def public_url(self, bucket, path):
        return f"https://storage.test/{bucket}/{path}"

    def get_user_id(self, access_token):
        return self.tokens.get(access_token)

    # assertions ------------------------------------------------------------
    def calls_of(self, op: str) -> List[Tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == op]


class FakeServices:
    """Transcription / completion stand-in. Exceptions are raised when set."""

    def __init__(
        self,
        transcript: Union[str, Exception] = "Call John tomorrow and email Sue",
        completions: Optional[List[Union[str, Exception]]] = None,
        configured: bool = True,
    ) -> None:
        self.transcript = transcript
        self.completions = list(completions or [])
        self.configured = configured
        self.extract_model = "extract-model"
        self.report_model = "report-model"
        self.transcribe_calls: List[Dict[str, Any]] = []
        self.complete_calls: List[Dict[str, Any]] = []

    def transcribe(self, audio_bytes, filename="audio.webm"):
        self.transcribe_calls.append({"bytes": audio_bytes, "filename": filename})
        if isinstance(self.transcript, Exception):
            raise self.transcript
        return self.transcript

    def complete(self, system_prompt, user_prompt, json_mode=False, model=None):
        self.complete_calls.append(
            {"system": system_prompt, "user": user_prompt, "json_mode": json_mode, "model": model}
        )
        if not self.completions:
            raise AssertionError("unexpected completion call")
        result = self.completions.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def services() -> FakeServices:
    return FakeServices()
