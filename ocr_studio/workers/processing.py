"""Drives a history record through ``pending -> processing -> success|failed``."""
from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass

from ocr_studio.application import HistoryService
from ocr_studio.core.config import DEFAULT_API_URL, Settings
from ocr_studio.core.errors import FileMissingError, NotFoundError
from ocr_studio.domain import STATUS_FAILED, STATUS_PROCESSING, STATUS_SUCCESS
from ocr_studio.infrastructure import OCRGateway, blob_key, get_ocr_client
from ocr_studio.infrastructure.glm_ocr import mark_paragraphs

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessingOptions:
    """Per-request OCR settings supplied by the caller."""

    api_key: str
    api_url: str = DEFAULT_API_URL
    mode: str | None = None
    format: str | None = None


def build_options(
    settings: Settings,
    *,
    api_key: str | None,
    api_url: str | None = None,
    mode: str | None = None,
    format: str | None = None,
) -> ProcessingOptions | None:
    """Merge request parameters with the server defaults.

    Returns ``None`` when neither the caller nor the environment supplies an
    API key.
    """

    key = str(api_key or "").strip() or settings.default_api_key
    if not key:
        return None
    return ProcessingOptions(
        api_key=key,
        api_url=str(api_url or "").strip() or settings.default_api_url,
        mode=mode,
        format=format,
    )


class ProcessingWorker:
    def __init__(self, service: HistoryService, gateway: OCRGateway | None = None) -> None:
        self._service = service
        self._gateway = gateway
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def gateway(self) -> OCRGateway:
        return self._gateway or get_ocr_client()

    def _lock_for(self, record_id: int) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_id] = lock
        return lock

    def _mark_failed(self, record_id: int) -> None:
        try:
            self._service.repository.update(record_id, {"status": STATUS_FAILED})
        except Exception:  # pragma: no cover - the original error is what gets reported
            logger.exception("could not mark record %s as failed", record_id)
        else:
            logger.info("record %s -> %s", record_id, STATUS_FAILED)

    async def _recognize(self, content: bytes, mime_type: str, options: ProcessingOptions) -> str:
        return await asyncio.to_thread(
            self.gateway.recognize,
            content,
            mime_type,
            api_key=options.api_key,
            endpoint=options.api_url,
        )

    async def process(self, record_id: int, options: ProcessingOptions) -> str:
        """Run OCR for an existing record and persist the outcome.

        Calls for the same id are serialised within this process. The stored
        result is cleared when the record enters ``processing``.
        """

        async with self._lock_for(record_id):
            repository = self._service.repository
            record = repository.get(record_id)
            key = blob_key(record.id, record.file_name)
            blobs = self._service.blobs

            if not blobs.exists(key):
                logger.error("file for record %s not found at %s", record_id, key)
                self._mark_failed(record_id)
                raise FileMissingError(f"File not found on server: {key}")

            repository.update(record_id, {"status": STATUS_PROCESSING, "result": None})
            logger.info(
                "record %s -> %s (%s, mode=%s, format=%s)",
                record_id,
                STATUS_PROCESSING,
                record.file_type,
                options.mode,
                options.format,
            )

            try:
                content = blobs.get(key)
            except NotFoundError:
                self._mark_failed(record_id)
                raise FileMissingError(f"File not found on server: {key}") from None

            try:
                text = await self._recognize(content, record.file_type, options)
            except Exception:
                self._mark_failed(record_id)
                raise

            repository.update(record_id, {"status": STATUS_SUCCESS, "result": text})
            logger.info("record %s -> %s (%d chars)", record_id, STATUS_SUCCESS, len(text))
            return text

    async def recognize_upload(
        self,
        content: bytes,
        file_name: str | None,
        declared_type: str | None,
        options: ProcessingOptions,
    ) -> str:
        """Store an upload and run OCR on it within the same request.

        The returned text carries ``@@@`` paragraph markers; ``process`` does
        not add them.
        """

        record = self._service.create_record(content, file_name, declared_type, status=STATUS_PROCESSING)
        async with self._lock_for(record.id):
            try:
                self._service.write_blob(record, content)
                text = await self._recognize(content, record.file_type, options)
            except Exception:
                self._mark_failed(record.id)
                raise

            processed = mark_paragraphs(text)
            self._service.repository.update(record.id, {"status": STATUS_SUCCESS, "result": processed})
            logger.info("record %s -> %s via immediate OCR", record.id, STATUS_SUCCESS)
            return processed


_worker: ProcessingWorker | None = None


def configure_processing_worker(worker: ProcessingWorker) -> None:
    global _worker
    _worker = worker


def get_processing_worker() -> ProcessingWorker:
    if _worker is None:
        raise RuntimeError("Processing worker not configured; call create_app() first")
    return _worker
