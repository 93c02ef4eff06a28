"""OCR gateway integration hooks.

The processing worker talks to the OCR provider through the small
:class:`OCRGateway` contract below. The application installs the real
layout-parsing client during start-up with ``configure_ocr_client``; tests
install a client built on ``httpx.MockTransport`` or a plain stub.
"""
from __future__ import annotations

from typing import Protocol


class OCRGateway(Protocol):
    """Contract for OCR integrations."""

    def recognize(
        self,
        content: bytes,
        mime_type: str,
        *,
        api_key: str,
        endpoint: str | None = None,
    ) -> str:
        """Return the Markdown text recognised in ``content``."""


class UnconfiguredOCRClient:
    """Placeholder used until the application installs a real client."""

    def recognize(
        self,
        content: bytes,
        mime_type: str,
        *,
        api_key: str,
        endpoint: str | None = None,
    ) -> str:
        raise RuntimeError("OCR client not configured; call configure_ocr_client() first")


_client: OCRGateway = UnconfiguredOCRClient()


def configure_ocr_client(client: OCRGateway) -> None:
    """Install the OCR client used by the processing worker."""

    global _client
    _client = client


def get_ocr_client() -> OCRGateway:
    """Return the currently configured OCR client."""

    return _client
