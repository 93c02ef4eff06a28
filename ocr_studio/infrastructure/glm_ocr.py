"""Integration with the GLM-OCR layout-parsing HTTP API."""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Callable
from urllib.parse import urlparse

import httpx

from ocr_studio.core.config import DEFAULT_API_URL
from ocr_studio.core.errors import GatewayError, GatewayTransportError, UnexpectedFormatError

logger = logging.getLogger(__name__)

MODEL_NAME = "glm-ocr"
NO_CONTENT_PLACEHOLDER = "OCR completed but no Markdown content found in response."
PARAGRAPH_MARKER = "@@@"

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")


# ----------------------------------------------------------------------
# response extraction strategies, tried in order; first hit wins
# ----------------------------------------------------------------------
def _top_level_markdown(payload: dict[str, Any]) -> str | None:
    value = payload.get("md_results")
    return value if isinstance(value, str) and value else None


def _nested_markdown(payload: dict[str, Any]) -> str | None:
    data = payload.get("data")
    if not isinstance(data, dict):
        return None
    value = data.get("md_results")
    return value if isinstance(value, str) and value else None


def _layout_result(payload: dict[str, Any]) -> str | None:
    value = payload.get("layout_parsing_result")
    if not value:
        return None
    return json.dumps(value, indent=2, ensure_ascii=False)


EXTRACTION_STRATEGIES: tuple[Callable[[dict[str, Any]], str | None], ...] = (
    _top_level_markdown,
    _nested_markdown,
    _layout_result,
)


def extract_markdown(payload: dict[str, Any]) -> str | None:
    for strategy in EXTRACTION_STRATEGIES:
        text = strategy(payload)
        if text is not None:
            return text
    return None


def _reports_success(payload: dict[str, Any]) -> bool:
    return payload.get("code") == 200 or payload.get("msg") == "success"


def normalise_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def mark_paragraphs(text: str) -> str:
    """Separate paragraphs with a standalone ``@@@`` line.

    Paragraphs are runs of text split on two or more newlines; each one is
    stripped and empty ones are dropped.
    """

    parts = (part.strip() for part in _PARAGRAPH_BREAK.split(normalise_newlines(text)))
    return f"\n\n{PARAGRAPH_MARKER}\n\n".join(part for part in parts if part)


def build_data_uri(content: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class GlmOcrClient:
    """Client for the GLM-OCR layout-parsing endpoint."""

    def __init__(
        self,
        *,
        api_base: str = DEFAULT_API_URL,
        timeout: float = 60.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._api_base = api_base
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return f"API request failed with status {response.status_code}"

    def _post(self, url: str, api_key: str, payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        try:
            return self._client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise GatewayTransportError(f"OCR request timed out: {exc}", timeout=True) from exc
        except httpx.HTTPError as exc:
            raise GatewayTransportError(f"OCR request failed: {exc}") from exc

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def recognize(
        self,
        content: bytes,
        mime_type: str,
        *,
        api_key: str,
        endpoint: str | None = None,
    ) -> str:
        url = endpoint or self._api_base
        payload = {"model": MODEL_NAME, "file": build_data_uri(content, mime_type)}
        logger.info("sending %d bytes (%s) to %s", len(content), mime_type, url)

        response = self._post(url, api_key, payload)
        if not response.is_success:
            message = self._error_message(response)
            logger.error("OCR API error %s: %s", response.status_code, response.text[:200])
            raise GatewayError(response.status_code, message)

        try:
            body = response.json()
        except ValueError:
            raise UnexpectedFormatError(response.text) from None
        if not isinstance(body, dict):
            raise UnexpectedFormatError(body)

        text = extract_markdown(body)
        if text is None:
            logger.warning("unknown OCR response structure: %s", json.dumps(body)[:200])
            if _reports_success(body):
                return NO_CONTENT_PLACEHOLDER
            raise UnexpectedFormatError(body)
        return normalise_newlines(text)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = [
    "EXTRACTION_STRATEGIES",
    "GlmOcrClient",
    "NO_CONTENT_PLACEHOLDER",
    "build_data_uri",
    "extract_markdown",
    "mark_paragraphs",
    "normalise_newlines",
]
