"""Follow one history record until its OCR run reaches a terminal status.

A :class:`FileWatcher` mirrors what the file-detail view does: fetch the
record once, kick off processing for ``pending`` records when an API key is
available, then poll every couple of seconds until the record is
``success`` or ``failed``. Polling is bounded by ``max_attempts``; running
out yields the ``timed_out`` outcome instead of polling forever.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from ocr_studio.client.settings import ClientSettings
from ocr_studio.domain import STATUS_FAILED, STATUS_PENDING, STATUS_PROCESSING, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 150

OUTCOME_SUCCESS = "success"
OUTCOME_FAILED = "failed"
OUTCOME_TIMED_OUT = "timed_out"
OUTCOME_AWAITING_API_KEY = "awaiting_api_key"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_CLOSED = "closed"


@dataclass(slots=True)
class WatchOutcome:
    status: str
    record: dict[str, Any] | None = None
    error: str | None = None


class RecordNotFound(Exception):
    """Raised when the server reports the watched record as missing."""


class FileWatcher:
    def __init__(
        self,
        record_id: int,
        settings: ClientSettings,
        client: httpx.AsyncClient,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._record_id = record_id
        self._settings = settings
        self._client = client
        self._interval = interval
        self._max_attempts = max_attempts
        self._on_update = on_update
        self._record: dict[str, Any] | None = None
        self._task: asyncio.Task[None] | None = None
        self._outcome: WatchOutcome | None = None
        self._processing = False

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def record(self) -> dict[str, Any] | None:
        return self._record

    @property
    def outcome(self) -> WatchOutcome | None:
        return self._outcome

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_record(self, record: dict[str, Any]) -> None:
        self._record = record
        if self._on_update is not None:
            self._on_update(record)

    def _set_local_status(self, status: str) -> None:
        if self._record is not None:
            self._set_record({**self._record, "status": status})

    def _finish(self, status: str, error: str | None = None) -> None:
        self._processing = False
        self._outcome = WatchOutcome(status=status, record=self._record, error=error)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------
    async def _fetch(self) -> dict[str, Any]:
        response = await self._client.get(f"/api/history/{self._record_id}")
        if response.status_code == 404:
            raise RecordNotFound(self._record_id)
        response.raise_for_status()
        return response.json()

    async def _trigger_process(self) -> None:
        self._processing = True
        self._outcome = None
        self._set_local_status(STATUS_PROCESSING)
        try:
            response = await self._client.post(
                "/api/process", json=self._settings.process_payload(self._record_id)
            )
        except httpx.HTTPError as exc:
            logger.error("process request for record %s failed: %s", self._record_id, exc)
            self._set_local_status(STATUS_FAILED)
            self._finish(OUTCOME_FAILED, error=str(exc))
            return

        if response.is_error:
            try:
                message = response.json().get("error")
            except ValueError:
                message = None
            message = message or f"Failed to start processing: {response.status_code}"
            logger.error("process request for record %s rejected: %s", self._record_id, message)
            self._set_local_status(STATUS_FAILED)
            self._finish(OUTCOME_FAILED, error=message)
            return

        self._start_polling()

    def _start_polling(self) -> None:
        if self.is_polling:
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        for attempt in range(1, self._max_attempts + 1):
            await asyncio.sleep(self._interval)
            try:
                record = await self._fetch()
            except RecordNotFound:
                self._finish(OUTCOME_NOT_FOUND, error=f"record {self._record_id} not found")
                return
            except httpx.HTTPError as exc:
                logger.warning("poll %d for record %s failed: %s", attempt, self._record_id, exc)
                continue

            self._set_record(record)
            status = record.get("status")
            if status in TERMINAL_STATUSES:
                self._finish(status)
                return

        logger.warning("record %s still not finished after %d polls", self._record_id, self._max_attempts)
        self._finish(OUTCOME_TIMED_OUT)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def open(self) -> None:
        """Load the record and start whatever work its status calls for."""

        try:
            record = await self._fetch()
        except RecordNotFound:
            self._finish(OUTCOME_NOT_FOUND, error=f"record {self._record_id} not found")
            return
        self._set_record(record)

        status = record.get("status")
        if status == STATUS_PROCESSING:
            self._processing = True
            self._start_polling()
        elif status == STATUS_PENDING:
            await self._start_if_configured()
        elif status in TERMINAL_STATUSES:
            self._finish(status)

    async def _start_if_configured(self) -> None:
        if not self._settings.has_api_key:
            self._outcome = WatchOutcome(status=OUTCOME_AWAITING_API_KEY, record=self._record)
            return
        await self._trigger_process()

    async def update_settings(self, settings: ClientSettings) -> None:
        """Swap in new settings; a pending record starts once a key appears."""

        self._settings = settings
        if (
            self._record is not None
            and self._record.get("status") == STATUS_PENDING
            and not self._processing
        ):
            await self._start_if_configured()

    async def retry(self) -> None:
        """Re-run OCR for a record that already finished."""

        if self._processing or self._record is None:
            return
        if self._record.get("status") not in TERMINAL_STATUSES:
            return
        await self._start_if_configured()

    async def wait(self) -> WatchOutcome:
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._outcome is None:
            return WatchOutcome(status=OUTCOME_CLOSED, record=self._record)
        return self._outcome

    async def close(self) -> None:
        """Stop polling; used when the view showing the record goes away."""

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._outcome is None:
            self._finish(OUTCOME_CLOSED)


async def watch_record(
    record_id: int,
    settings: ClientSettings,
    client: httpx.AsyncClient,
    **options: Any,
) -> WatchOutcome:
    """Open a watcher, wait for its outcome and always tear it down."""

    watcher = FileWatcher(record_id, settings, client, **options)
    try:
        await watcher.open()
        return await watcher.wait()
    finally:
        await watcher.close()
