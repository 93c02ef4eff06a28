"""Application service layer for uploads and their history."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import PurePath, PureWindowsPath

from ocr_studio.core.errors import NotFoundError, ValidationError
from ocr_studio.core.mime import infer_file_type
from ocr_studio.domain import STATUS_PENDING, HistoryRecord
from ocr_studio.infrastructure import BlobStore, HistoryRepository, blob_key

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HistoryPage:
    """One page of history records plus the numbers needed to page through them."""

    items: list[HistoryRecord]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
        }


def safe_file_name(file_name: str | None) -> str:
    """Strip any directory part a client may have sent along with the name."""

    name = PureWindowsPath(PurePath(file_name or "").name).name.strip()
    if not name or name in {".", ".."}:
        raise ValidationError("Uploaded file must have a filename")
    return name


class HistoryService:
    """Coordinates uploads, history queries and deletion."""

    def __init__(self, repository: HistoryRepository, blobs: BlobStore) -> None:
        self._repository = repository
        self._blobs = blobs

    @property
    def repository(self) -> HistoryRepository:
        return self._repository

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------
    def create_record(
        self,
        content: bytes,
        file_name: str | None,
        declared_type: str | None,
        *,
        status: str = STATUS_PENDING,
    ) -> HistoryRecord:
        name = safe_file_name(file_name)
        return self._repository.create(
            file_name=name,
            file_size=len(content),
            file_type=infer_file_type(name, declared_type),
            status=status,
        )

    def write_blob(self, record: HistoryRecord, content: bytes) -> None:
        self._blobs.put(blob_key(record.id, record.file_name), content)
        logger.info(
            "stored upload %s as record %s (%s, %d bytes)",
            record.file_name,
            record.id,
            record.file_type,
            len(content),
        )

    def store_upload(
        self,
        content: bytes,
        file_name: str | None,
        declared_type: str | None,
        *,
        status: str = STATUS_PENDING,
    ) -> HistoryRecord:
        """Create the record first, then write its blob under ``<id>-<name>``.

        A failed blob write leaves the record behind without a file; processing
        reports that as a missing file.
        """

        record = self.create_record(content, file_name, declared_type, status=status)
        self.write_blob(record, content)
        return record

    def upload(self, content: bytes, file_name: str | None, declared_type: str | None) -> HistoryRecord:
        return self.store_upload(content, file_name, declared_type, status=STATUS_PENDING)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def get(self, record_id: int) -> HistoryRecord:
        return self._repository.get(record_id)

    def list_history(
        self,
        *,
        query: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> HistoryPage:
        items, total = self._repository.list(query=query, status=status, page=page, limit=limit)
        return HistoryPage(items=items, total=total, page=page, limit=limit)

    def read_upload(self, key: str) -> tuple[bytes, str]:
        return self._blobs.get(key), self._blobs.content_type(key)

    def result_download(self, record_id: int) -> tuple[str, str]:
        """Return ``(download_name, markdown)`` for a record's OCR result."""

        record = self._repository.get(record_id)
        if not record.result:
            raise NotFoundError(f"History record {record_id} has no result yet")
        stem = record.file_name.split(".")[0] or "ocr-result"
        return f"{stem}.md", record.result

    # ------------------------------------------------------------------
    # deletion
    # ------------------------------------------------------------------
    def delete(self, record_id: int) -> None:
        """Delete the blob (best effort), then the record."""

        record = self._repository.get(record_id)
        key = blob_key(record.id, record.file_name)
        try:
            self._blobs.delete(key)
        except (NotFoundError, ValidationError, OSError) as exc:
            logger.warning("failed to delete blob %s for record %s: %s", key, record_id, exc)
        self._repository.delete(record_id)
        logger.info("deleted record %s", record_id)


_service: HistoryService | None = None


def configure_history_service(service: HistoryService) -> None:
    """Install the history service used by the HTTP routes."""

    global _service
    _service = service


def get_history_service() -> HistoryService:
    """Return the history service for the process."""

    if _service is None:
        raise RuntimeError("History service not configured; call create_app() first")
    return _service
