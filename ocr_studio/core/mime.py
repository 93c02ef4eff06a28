from __future__ import annotations

from pathlib import PurePath

_EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

OCTET_STREAM = "application/octet-stream"
UNKNOWN_TYPE = "unknown"


def type_for_name(name: str) -> str | None:
    """Return the MIME type implied by ``name``'s extension, if we know it."""

    return _EXTENSION_TYPES.get(PurePath(name).suffix.lower())


def infer_file_type(file_name: str, declared: str | None) -> str:
    """Prefer the client-declared type; fall back to the extension, then ``unknown``."""

    if declared and declared.strip():
        return declared.strip()
    return type_for_name(file_name) or UNKNOWN_TYPE


def content_type_for_key(key: str) -> str:
    return type_for_name(key) or OCTET_STREAM
