"""
Media storage utilities.

Storage keys look like {owner_id}/{parent_id}/{timestamp_ms}-{suffix}, where
parent_id is only present for captures attached to an inspection and suffix
is the sanitized original filename or "<kind><ext>".
"""

import logging
from typing import Iterable, List, Optional

from werkzeug.utils import secure_filename

from fieldmemo.media.errors import StoreError, UploadError
from fieldmemo.media.models import CAPTURE_KINDS, Capture
from fieldmemo.utils.time import timestamp_ms


def build_storage_key(
    owner_id: str,
    capture: Capture,
    parent_id: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """
    Derive the blob key for a capture.

    A fresh timestamp is taken per call; collisions are not retried.
    """
    ts = timestamp if timestamp is not None else timestamp_ms()

    name = secure_filename(capture.filename or "")
    suffix = name or f"{capture.kind}{CAPTURE_KINDS.get(capture.kind, '.bin')}"

    parts = [str(owner_id)]
    if parent_id:
        parts.append(str(parent_id))
    parts.append(f"{ts}-{suffix}")
    return "/".join(parts)


def save_media_file(store, owner_id: str, capture: Capture, parent_id: Optional[str] = None) -> str:
    """
    Upload a capture to its bucket.

    Returns:
        str: the storage key the blob was written under.

    Raises:
        UploadError: the blob store rejected the upload.
    """
    key = build_storage_key(owner_id, capture, parent_id)
    path, error = store.upload(capture.bucket, key, capture.data, capture.content_type)
    if error:
        raise UploadError(f"Upload failed: {error}")
    return path or key


def load_media_file(store, bucket: str, path: str) -> bytes:
    """
    Load raw media bytes back from storage (used by explicit retries).
    """
    data, error = store.download(bucket, path)
    if error:
        raise StoreError(f"Could not load {path}: {error}")
    if not data:
        raise StoreError(f"Stored media {path} is empty")
    return data


def remove_media_files(store, bucket: str, paths: Iterable[Optional[str]]) -> List[str]:
    """
    Remove blobs, skipping empty keys and duplicates.

    A failed removal leaves orphan blobs behind; it is logged and does not
    stop the caller from deleting the rows.
    """
    keys: List[str] = []
    for p in paths:
        if p and p not in keys:
            keys.append(p)
    if not keys:
        return []

    error = store.remove(bucket, keys)
    if error:
        logging.warning("[ORPHAN BLOB] could not remove %s from %s: %s", keys, bucket, error)
    return keys
