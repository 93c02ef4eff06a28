from __future__ import annotations

import base64
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from ocr_studio.core.errors import GatewayError, GatewayTransportError, UnexpectedFormatError
from ocr_studio.infrastructure.glm_ocr import (
    NO_CONTENT_PLACEHOLDER,
    GlmOcrClient,
    extract_markdown,
    mark_paragraphs,
)

ENDPOINT = "https://ocr.example.test/api/paas/v4/layout_parsing"


def _client_for(handler) -> tuple[GlmOcrClient, httpx.Client]:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return GlmOcrClient(api_base=ENDPOINT, http_client=http_client), http_client


def test_recognize_sends_data_uri_with_bearer_token():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"md_results": "# Title\r\n\r\nBody"})

    client, http_client = _client_for(handler)
    content = b"\x89PNG\r\n\x1a\n"

    result = client.recognize(content, "image/png", api_key="secret-key")

    assert captured["url"] == ENDPOINT
    assert captured["auth"] == "Bearer secret-key"
    body = captured["body"]
    assert isinstance(body, dict)
    assert body["model"] == "glm-ocr"
    assert body["file"] == "data:image/png;base64," + base64.b64encode(content).decode("ascii")
    assert result == "# Title\n\nBody"

    http_client.close()


def test_recognize_uses_endpoint_override():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"md_results": "ok"})

    client, http_client = _client_for(handler)
    client.recognize(b"%PDF-1.4", "application/pdf", api_key="k", endpoint="https://other.example.test/ocr")

    assert seen == ["https://other.example.test/ocr"]
    http_client.close()


def test_md_results_wins_over_layout_result():
    payload = {
        "md_results": "from markdown",
        "data": {"md_results": "nested"},
        "layout_parsing_result": {"blocks": [1, 2]},
    }

    client, http_client = _client_for(lambda _: httpx.Response(200, json=payload))

    assert client.recognize(b"x", "image/png", api_key="k") == "from markdown"
    http_client.close()


def test_extraction_falls_back_in_order():
    assert extract_markdown({"data": {"md_results": "nested"}, "layout_parsing_result": {"a": 1}}) == "nested"
    layout = extract_markdown({"layout_parsing_result": {"blocks": ["段落"]}})
    assert layout is not None
    assert json.loads(layout) == {"blocks": ["段落"]}
    assert "段落" in layout
    assert extract_markdown({"md_results": "", "data": "oops"}) is None


def test_success_without_content_returns_placeholder():
    client, http_client = _client_for(lambda _: httpx.Response(200, json={"code": 200, "msg": "ok"}))

    assert client.recognize(b"x", "image/png", api_key="k") == NO_CONTENT_PLACEHOLDER
    http_client.close()


def test_unrecognised_body_raises_unexpected_format():
    body = {"something": "else"}
    client, http_client = _client_for(lambda _: httpx.Response(200, json=body))

    with pytest.raises(UnexpectedFormatError) as excinfo:
        client.recognize(b"x", "image/png", api_key="k")

    assert excinfo.value.raw == body
    assert excinfo.value.to_payload() == {"error": "Unexpected response format", "raw": body}
    http_client.close()


def test_provider_error_message_is_surfaced():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"code": "1001", "message": "令牌已过期"}})

    client, http_client = _client_for(handler)

    with pytest.raises(GatewayError) as excinfo:
        client.recognize(b"x", "image/png", api_key="expired")

    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "令牌已过期"
    http_client.close()


def test_provider_error_without_body_uses_generic_message():
    client, http_client = _client_for(lambda _: httpx.Response(503, text="upstream down"))

    with pytest.raises(GatewayError) as excinfo:
        client.recognize(b"x", "image/png", api_key="k")

    assert excinfo.value.status_code == 503
    assert excinfo.value.message == "API request failed with status 503"
    http_client.close()


def test_timeout_becomes_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, http_client = _client_for(handler)

    with pytest.raises(GatewayTransportError) as excinfo:
        client.recognize(b"x", "image/png", api_key="k")

    assert excinfo.value.status_code == 504
    http_client.close()


def test_rejects_api_base_without_host():
    with pytest.raises(ValueError):
        GlmOcrClient(api_base="/relative/path")


def test_mark_paragraphs_inserts_markers():
    assert mark_paragraphs("Para1\n\nPara2") == "Para1\n\n@@@\n\nPara2"
    assert mark_paragraphs("  A\r\n\r\n\r\n\nB  \n\n\n") == "A\n\n@@@\n\nB"
    assert mark_paragraphs("line1\nline2") == "line1\nline2"
    assert mark_paragraphs("\n\n") == ""
