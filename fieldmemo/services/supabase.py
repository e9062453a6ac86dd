from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from supabase import Client, create_client

from fieldmemo import config


class SupabaseStore:
    """
    Row store, blob store and auth accessor on one Supabase client.

    Every method returns (result, error_str) and never raises, so the
    pipeline decides what a failure means for the record it is working on.
    All reads and writes on user tables carry an equality filter on user_id.
    """

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_env(cls) -> "SupabaseStore":
        if not config.SUPABASE_URL or not config.SUPABASE_KEY:
            raise RuntimeError("SUPABASE_URL and a Supabase key must be set")
        return cls(create_client(config.SUPABASE_URL, config.SUPABASE_KEY))

    # ================================
    # ROWS
    # ================================
    def insert(self, table: str, data: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Insert one row and return it as stored.
        """
        try:
            response = self.client.table(table).insert(data).execute()
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE ERROR %s] %s", table, e)
            return None, str(e)
        rows = response.data or []
        if not rows:
            return None, f"Insert into {table} returned no row"
        return rows[0], None

    def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Insert several rows in one request. PostgREST applies a bulk insert
        as a single statement, so either every row lands or none does.
        """
        if not rows:
            return [], None
        try:
            response = self.client.table(table).insert(rows).execute()
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE ERROR %s] %s", table, e)
            return [], str(e)
        return response.data or [], None

    def update(
        self,
        table: str,
        row_id: str,
        owner_id: str,
        fields: Dict[str, Any],
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        try:
            response = (
                self.client.table(table)
                .update(fields)
                .eq("id", row_id)
                .eq("user_id", owner_id)
                .execute()
            )
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE ERROR %s] %s", table, e)
            return None, str(e)
        rows = response.data or []
        if not rows:
            return None, f"No {table} row {row_id} for this user"
        return rows[0], None

    def select(
        self,
        table: str,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        try:
            query = self.client.table(table).select("*").eq("user_id", owner_id)
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            if order_by:
                query = query.order(order_by, desc=desc)
            response = query.execute()
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE ERROR %s] %s", table, e)
            return [], str(e)
        return response.data or [], None

    def get(self, table: str, row_id: str, owner_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        rows, error = self.select(table, owner_id, filters={"id": row_id})
        if error:
            return None, error
        return (rows[0] if rows else None), None

    def delete(self, table: str, row_id: str, owner_id: str) -> Optional[str]:
        return self.delete_where(table, owner_id, {"id": row_id})

    def delete_where(self, table: str, owner_id: str, filters: Dict[str, Any]) -> Optional[str]:
        try:
            query = self.client.table(table).delete().eq("user_id", owner_id)
            for column, value in filters.items():
                query = query.eq(column, value)
            query.execute()
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE ERROR %s] %s", table, e)
            return str(e)
        return None

    # ================================
    # BLOBS
    # ================================
    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Tuple[Optional[str], Optional[str]]:
        file_options = {"content-type": content_type} if content_type else None
        try:
            self.client.storage.from_(bucket).upload(path, data, file_options)
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE STORAGE ERROR %s] %s", bucket, e)
            return None, str(e)
        return path, None

    def download(self, bucket: str, path: str) -> Tuple[Optional[bytes], Optional[str]]:
        try:
            data = self.client.storage.from_(bucket).download(path)
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE STORAGE ERROR %s] %s", bucket, e)
            return None, str(e)
        return data, None

    def remove(self, bucket: str, paths: Sequence[str]) -> Optional[str]:
        if not paths:
            return None
        try:
            self.client.storage.from_(bucket).remove(list(paths))
        except Exception as e:  # noqa: BLE001
            logging.error("[SUPABASE STORAGE ERROR %s] %s", bucket, e)
            return str(e)
        return None

    def public_url(self, bucket: str, path: str) -> str:
        return self.client.storage.from_(bucket).get_public_url(path)

    # ================================
    # AUTH
    # ================================
    def get_user_id(self, access_token: str) -> Optional[str]:
        """
        Resolve a user's access token to their id, or None if it is not valid.
        """
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:  # noqa: BLE001
            logging.warning("[SUPABASE AUTH] %s", e)
            return None
        user = getattr(response, "user", None)
        if user is None:
            return None
        return str(user.id)
