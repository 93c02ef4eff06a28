from __future__ import annotations

from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Query
from fastapi.responses import Response

from ocr_studio.application import get_history_service
from ocr_studio.domain import HistoryRecord

router = APIRouter(prefix="/history", tags=["history"])


def serialise_record(record: HistoryRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "fileName": record.file_name,
        "fileSize": record.file_size,
        "fileType": record.file_type,
        "status": record.status,
        "result": record.result,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
    }


@router.get("")
async def list_history(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    q: str | None = Query(default=None),
    status: str | None = Query(default=None),
) -> dict:
    result = get_history_service().list_history(query=q, status=status, page=page, limit=limit)
    return {
        "data": [serialise_record(record) for record in result.items],
        "pagination": result.pagination(),
    }


@router.get("/{record_id}")
async def get_history_record(record_id: int) -> dict:
    return serialise_record(get_history_service().get(record_id))


@router.get("/{record_id}/download")
async def download_result(record_id: int) -> Response:
    """Serve the OCR result as a Markdown attachment."""
    filename, markdown = get_history_service().result_download(record_id)
    disposition = f"attachment; filename*=UTF-8''{quote(filename)}"
    return Response(
        content=markdown.encode("utf-8"),
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": disposition},
    )


@router.delete("/{record_id}")
async def delete_history_record(record_id: int) -> dict:
    get_history_service().delete(record_id)
    return {"success": True}
