"""Local file storage for import uploads and generated exports."""

import os
import uuid

from fitclub.core.config import settings


def _get_local_storage_path() -> str:
    """Get local storage directory path."""
    path = settings.STORAGE_ROOT
    os.makedirs(path, exist_ok=True)
    return path


def resolve_path(storage_key: str) -> str:
    """Absolute path of a stored file."""
    return os.path.join(_get_local_storage_path(), storage_key)


def store_bytes(storage_key: str, content: bytes) -> str:
    """Write content under the storage root and return the storage key."""
    path = resolve_path(storage_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
    return storage_key


def read_bytes(storage_key: str) -> bytes:
    with open(resolve_path(storage_key), "rb") as f:
        return f.read()


def exists(storage_key: str | None) -> bool:
    return bool(storage_key) and os.path.exists(resolve_path(storage_key))


def store_upload(folder: str, filename: str, content: bytes) -> str:
    """Store an uploaded file under a random name, keeping its extension."""
    ext = os.path.splitext(filename)[1].lower()
    storage_key = f"{folder}/{uuid.uuid4().hex}{ext}"
    return store_bytes(storage_key, content)
