from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx

from ocr_studio.client import (
    OUTCOME_AWAITING_API_KEY,
    OUTCOME_CLOSED,
    OUTCOME_FAILED,
    OUTCOME_NOT_FOUND,
    OUTCOME_SUCCESS,
    OUTCOME_TIMED_OUT,
    ClientSettings,
    FileWatcher,
    watch_record,
)

RECORD_ID = 7


class FakeServer:
    """Serves a scripted sequence of record states and records process calls."""

    def __init__(self, statuses: list[str], *, process_status: int = 200, found: bool = True) -> None:
        self.statuses = statuses
        self.process_status = process_status
        self.found = found
        self.fetches = 0
        self.process_calls: list[dict[str, object]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == f"/api/history/{RECORD_ID}":
            if not self.found:
                return httpx.Response(404, json={"error": "Not found"})
            status = self.statuses[min(self.fetches, len(self.statuses) - 1)]
            self.fetches += 1
            return httpx.Response(
                200,
                json={
                    "id": RECORD_ID,
                    "fileName": "a.png",
                    "status": status,
                    "result": "# ok" if status == "success" else None,
                },
            )
        if request.method == "POST" and request.url.path == "/api/process":
            self.process_calls.append(json.loads(request.content.decode("utf-8")))
            if self.process_status != 200:
                return httpx.Response(self.process_status, json={"error": "Invalid API key"})
            return httpx.Response(200, json={"success": True, "result": "# ok"})
        return httpx.Response(500, json={"error": "unexpected request"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="http://testserver")


KEYED = ClientSettings(api_key="key-1", mode="standard", format="markdown")


def test_pending_record_is_processed_then_polled_to_success():
    server = FakeServer(["pending", "processing", "success"])
    updates: list[str] = []

    async def scenario():
        async with server.client() as client:
            return await watch_record(
                RECORD_ID, KEYED, client, interval=0, on_update=lambda record: updates.append(record["status"])
            )

    outcome = asyncio.run(scenario())

    assert outcome.status == OUTCOME_SUCCESS
    assert outcome.record is not None and outcome.record["result"] == "# ok"
    assert server.process_calls == [
        {
            "id": RECORD_ID,
            "apiKey": "key-1",
            "apiUrl": KEYED.api_url,
            "mode": "standard",
            "format": "markdown",
        }
    ]
    assert updates == ["pending", "processing", "processing", "success"]


def test_pending_without_key_waits_until_key_is_supplied():
    server = FakeServer(["pending", "success"])

    async def scenario():
        async with server.client() as client:
            watcher = FileWatcher(RECORD_ID, ClientSettings(), client, interval=0)
            await watcher.open()
            idle = await watcher.wait()
            calls_before_key = len(server.process_calls)

            await watcher.update_settings(KEYED)
            final = await watcher.wait()
            await watcher.close()
            return idle, calls_before_key, final

    idle, calls_before_key, final = asyncio.run(scenario())

    assert idle.status == OUTCOME_AWAITING_API_KEY
    assert calls_before_key == 0
    assert final.status == OUTCOME_SUCCESS
    assert len(server.process_calls) == 1


def test_processing_record_polls_until_attempts_run_out():
    server = FakeServer(["processing"])

    async def scenario():
        async with server.client() as client:
            return await watch_record(RECORD_ID, KEYED, client, interval=0, max_attempts=3)

    outcome = asyncio.run(scenario())

    assert outcome.status == OUTCOME_TIMED_OUT
    assert server.fetches == 4
    assert server.process_calls == []


def test_rejected_process_request_fails_without_polling():
    server = FakeServer(["pending"], process_status=400)

    async def scenario():
        async with server.client() as client:
            watcher = FileWatcher(RECORD_ID, KEYED, client, interval=0)
            await watcher.open()
            outcome = await watcher.wait()
            return watcher, outcome

    watcher, outcome = asyncio.run(scenario())

    assert outcome.status == OUTCOME_FAILED
    assert outcome.error == "Invalid API key"
    assert watcher.record is not None and watcher.record["status"] == "failed"
    assert not watcher.is_polling
    assert server.fetches == 1


def test_failed_record_stops_polling_and_can_be_retried():
    server = FakeServer(["failed", "processing", "success"])

    async def scenario():
        async with server.client() as client:
            watcher = FileWatcher(RECORD_ID, KEYED, client, interval=0)
            await watcher.open()
            first = await watcher.wait()
            await watcher.retry()
            second = await watcher.wait()
            await watcher.close()
            return first, second

    first, second = asyncio.run(scenario())

    assert first.status == OUTCOME_FAILED
    assert second.status == OUTCOME_SUCCESS
    assert len(server.process_calls) == 1


def test_close_cancels_active_polling():
    server = FakeServer(["processing"])

    async def scenario():
        async with server.client() as client:
            watcher = FileWatcher(RECORD_ID, KEYED, client, interval=0.01, max_attempts=10_000)
            await watcher.open()
            await asyncio.sleep(0.05)
            polling_before = watcher.is_polling
            await watcher.close()
            return polling_before, watcher

    polling_before, watcher = asyncio.run(scenario())

    assert polling_before is True
    assert watcher.is_polling is False
    assert watcher.outcome is not None and watcher.outcome.status == OUTCOME_CLOSED


def test_missing_record_reports_not_found():
    server = FakeServer(["pending"], found=False)

    async def scenario():
        async with server.client() as client:
            return await watch_record(RECORD_ID, KEYED, client, interval=0)

    assert asyncio.run(scenario()).status == OUTCOME_NOT_FOUND


def test_client_settings_persist_to_disk(tmp_path):
    path = tmp_path / "settings" / "client.json"
    saved = ClientSettings(api_key="abc", api_url="https://ocr.example.test", mode="fast", format="json")

    saved.save(path)

    assert ClientSettings.load(path) == saved
    assert ClientSettings.load(tmp_path / "missing.json") == ClientSettings()
    assert not ClientSettings().has_api_key
