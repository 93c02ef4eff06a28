from __future__ import annotations

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response

from ocr_studio.application import get_history_service
from ocr_studio.workers.processing import build_options, get_processing_worker

router = APIRouter(tags=["upload"])

CACHE_FOREVER = "public, max-age=31536000, immutable"


@router.post("/upload")
async def upload_file(file: UploadFile | None = File(default=None)) -> dict:
    """Store an uploaded document as a ``pending`` history record."""
    if file is None:
        raise HTTPException(status_code=400, detail="Missing file")

    try:
        content = await file.read()
        record = get_history_service().upload(content, file.filename, file.content_type)
    finally:
        await file.close()

    return {
        "id": record.id,
        "fileName": record.file_name,
        "status": record.status,
        "message": "Upload successful",
    }


@router.post("/ocr")
async def recognize_file(
    request: Request,
    file: UploadFile | None = File(default=None),
    api_key: str | None = Form(default=None, alias="apiKey"),
    api_url: str | None = Form(default=None, alias="apiUrl"),
) -> dict:
    """Upload and recognise a document in one call."""
    options = build_options(request.app.state.settings, api_key=api_key, api_url=api_url)
    if file is None or options is None:
        raise HTTPException(status_code=400, detail="Missing file or API key")

    try:
        content = await file.read()
        result = await get_processing_worker().recognize_upload(
            content, file.filename, file.content_type, options
        )
    finally:
        await file.close()
    return {"result": result}


@router.get("/uploads/{filename}")
async def get_uploaded_file(filename: str) -> Response:
    content, content_type = get_history_service().read_upload(filename)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Cache-Control": CACHE_FOREVER},
    )
