from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ocr_studio.workers.processing import build_options, get_processing_worker

router = APIRouter(tags=["process"])


def _parse_record_id(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


@router.post("/process")
async def process_record(request: Request, payload: dict) -> dict:
    """Run OCR for a previously uploaded record.

    ``mode`` and ``format`` are accepted for the client's benefit but are not
    forwarded to the provider.
    """
    raw_id = payload.get("id")
    options = build_options(
        request.app.state.settings,
        api_key=payload.get("apiKey"),
        api_url=payload.get("apiUrl"),
        mode=payload.get("mode"),
        format=payload.get("format"),
    )
    if raw_id in (None, "") or options is None:
        raise HTTPException(status_code=400, detail="Missing id or API key")

    record_id = _parse_record_id(raw_id)
    if record_id is None:
        raise HTTPException(status_code=400, detail="Invalid ID")

    result = await get_processing_worker().process(record_id, options)
    return {"success": True, "result": result}
