"""Filesystem storage for uploaded file bytes."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from ocr_studio.core.errors import NotFoundError, ValidationError
from ocr_studio.core.mime import content_type_for_key

logger = logging.getLogger(__name__)


def blob_key(record_id: int, file_name: str) -> str:
    """Key under which the upload for ``record_id`` is stored."""

    return f"{record_id}-{file_name}"


class BlobStore(Protocol):
    """Read/write contract for stored uploads."""

    def put(self, key: str, data: bytes) -> None: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def exists(self, key: str) -> bool: ...

    def content_type(self, key: str) -> str: ...


class FileSystemBlobStore:
    """Stores each blob as a flat file below ``root``."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        if not key or key in {".", ".."} or Path(key).name != key or "\\" in key:
            raise ValidationError(f"invalid blob key: {key!r}")
        candidate = (self._root / key).resolve()
        if candidate.parent != self._root.resolve():
            raise ValidationError(f"invalid blob key: {key!r}")
        return candidate

    def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        self._root.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as buffer:
            buffer.write(data)
        logger.debug("stored blob %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {key}") from None

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {key}") from None

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def content_type(self, key: str) -> str:
        return content_type_for_key(key)
