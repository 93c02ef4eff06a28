"""Error taxonomy shared by the service layers and the HTTP handlers.

Every error carries the HTTP status it maps to, so route handlers can raise
freely and let the application-level exception handler build the
``{"error": ...}`` envelope.
"""
from __future__ import annotations

from typing import Any


class OCRStudioError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(OCRStudioError):
    """Raised for missing or malformed input."""

    status_code = 400


class NotFoundError(OCRStudioError):
    """Raised when a record or blob does not exist."""

    status_code = 404


class FileMissingError(NotFoundError):
    """The record exists but its stored file does not."""


class GatewayError(OCRStudioError):
    """Raised when the OCR provider answers with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status


class GatewayTransportError(GatewayError):
    """Raised when the OCR provider could not be reached or timed out."""

    def __init__(self, message: str, *, timeout: bool = False) -> None:
        super().__init__(504 if timeout else 502, message)


class UnexpectedFormatError(OCRStudioError):
    """The provider answered 2xx but the body holds no recognisable result."""

    status_code = 500

    def __init__(self, raw: Any, message: str = "Unexpected response format") -> None:
        super().__init__(message)
        self.raw = raw

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "raw": self.raw}


__all__ = [
    "OCRStudioError",
    "ValidationError",
    "NotFoundError",
    "FileMissingError",
    "GatewayError",
    "GatewayTransportError",
    "UnexpectedFormatError",
]
