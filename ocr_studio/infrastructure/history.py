"""Infrastructure layer for history record persistence."""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from ocr_studio.core.errors import NotFoundError, ValidationError
from ocr_studio.domain import STATUS_ALL, STATUS_PENDING, STATUSES, HistoryRecord
from ocr_studio.infrastructure.database import HistoryRow

UPDATABLE_FIELDS = frozenset({"status", "result"})


class HistoryRepository(Protocol):
    """Persistence contract for history records."""

    def create(
        self,
        *,
        file_name: str,
        file_size: int,
        file_type: str,
        status: str = STATUS_PENDING,
    ) -> HistoryRecord: ...

    def get(self, record_id: int) -> HistoryRecord: ...

    def list(
        self,
        *,
        query: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[HistoryRecord], int]: ...

    def update(self, record_id: int, changes: Mapping[str, Any]) -> HistoryRecord: ...

    def delete(self, record_id: int) -> None: ...

    def find_latest_by_file_name(self, file_name: str) -> HistoryRecord | None: ...

    def reset(self) -> None: ...


def _validate_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"cannot update fields: {', '.join(sorted(unknown))}")
    status = changes.get("status")
    if "status" in changes and status not in STATUSES:
        raise ValidationError(f"unknown status: {status!r}")
    return dict(changes)


def _validate_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1:
        raise ValidationError("limit must be >= 1")


def _status_filter(status: str | None) -> str | None:
    if not status or status == STATUS_ALL:
        return None
    return status


class InMemoryHistoryRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self) -> None:
        self._records: dict[int, HistoryRecord] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def create(
        self,
        *,
        file_name: str,
        file_size: int,
        file_type: str,
        status: str = STATUS_PENDING,
    ) -> HistoryRecord:
        with self._lock:
            self._counter += 1
            record = HistoryRecord(
                id=self._counter,
                file_name=file_name,
                file_size=file_size,
                file_type=file_type,
                status=status,
                created_at=datetime.now(timezone.utc),
            )
            self._records[record.id] = record
            return replace(record)

    def get(self, record_id: int) -> HistoryRecord:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(f"History record {record_id} not found")
        return replace(record)

    def list(
        self,
        *,
        query: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[HistoryRecord], int]:
        _validate_paging(page, limit)
        wanted_status = _status_filter(status)
        matches = [
            record
            for record in self._records.values()
            if (not query or query in record.file_name)
            and (wanted_status is None or record.status == wanted_status)
        ]
        matches.sort(key=lambda item: (item.created_at, item.id), reverse=True)
        skip = (page - 1) * limit
        return [replace(item) for item in matches[skip : skip + limit]], len(matches)

    def update(self, record_id: int, changes: Mapping[str, Any]) -> HistoryRecord:
        values = _validate_changes(changes)
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"History record {record_id} not found")
            for key, value in values.items():
                setattr(record, key, value)
            return replace(record)

    def delete(self, record_id: int) -> None:
        with self._lock:
            if self._records.pop(record_id, None) is None:
                raise NotFoundError(f"History record {record_id} not found")

    def find_latest_by_file_name(self, file_name: str) -> HistoryRecord | None:
        candidates = [record for record in self._records.values() if record.file_name == file_name]
        if not candidates:
            return None
        latest = max(candidates, key=lambda item: (item.created_at, item.id))
        return replace(latest)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._counter = 0


class SqlHistoryRepository:
    """Relational repository backed by the ``file_history`` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_record(row: HistoryRow) -> HistoryRecord:
        created_at = row.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite hands timestamps back without their offset.
            created_at = created_at.replace(tzinfo=timezone.utc)
        return HistoryRecord(
            id=row.id,
            file_name=row.file_name,
            file_size=row.file_size,
            file_type=row.file_type,
            status=row.status,
            result=row.result,
            created_at=created_at,
        )

    @staticmethod
    def _load(session: Session, record_id: int) -> HistoryRow:
        row = session.get(HistoryRow, record_id)
        if row is None:
            raise NotFoundError(f"History record {record_id} not found")
        return row

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def create(
        self,
        *,
        file_name: str,
        file_size: int,
        file_type: str,
        status: str = STATUS_PENDING,
    ) -> HistoryRecord:
        row = HistoryRow(
            file_name=file_name,
            file_size=file_size,
            file_type=file_type,
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            return self._to_record(row)

    def get(self, record_id: int) -> HistoryRecord:
        with self._session_factory() as session:
            return self._to_record(self._load(session, record_id))

    def list(
        self,
        *,
        query: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[HistoryRecord], int]:
        _validate_paging(page, limit)
        conditions = []
        if query:
            conditions.append(HistoryRow.file_name.contains(query, autoescape=True))
        wanted_status = _status_filter(status)
        if wanted_status is not None:
            conditions.append(HistoryRow.status == wanted_status)

        count_stmt = select(func.count()).select_from(HistoryRow).where(*conditions)
        page_stmt = (
            select(HistoryRow)
            .where(*conditions)
            .order_by(HistoryRow.created_at.desc(), HistoryRow.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        with self._session_factory() as session:
            total = session.execute(count_stmt).scalar_one()
            rows = session.execute(page_stmt).scalars().all()
            return [self._to_record(row) for row in rows], int(total)

    def update(self, record_id: int, changes: Mapping[str, Any]) -> HistoryRecord:
        values = _validate_changes(changes)
        with self._session_factory() as session:
            row = self._load(session, record_id)
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()
            return self._to_record(row)

    def delete(self, record_id: int) -> None:
        with self._session_factory() as session:
            row = self._load(session, record_id)
            session.delete(row)
            session.commit()

    def find_latest_by_file_name(self, file_name: str) -> HistoryRecord | None:
        stmt = (
            select(HistoryRow)
            .where(HistoryRow.file_name == file_name)
            .order_by(HistoryRow.created_at.desc(), HistoryRow.id.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            row = session.execute(stmt).scalars().first()
            return self._to_record(row) if row is not None else None

    def reset(self) -> None:
        with self._session_factory() as session:
            session.query(HistoryRow).delete()
            session.commit()
