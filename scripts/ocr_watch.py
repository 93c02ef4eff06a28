#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

import httpx

from ocr_studio.client import OUTCOME_SUCCESS, ClientSettings, watch_record
from ocr_studio.client.settings import DEFAULT_SETTINGS_PATH


async def run(args: argparse.Namespace) -> int:
    settings = ClientSettings.load(Path(args.settings))
    if args.api_key:
        settings = settings.model_copy(update={"api_key": args.api_key})
    if args.save_settings:
        settings.save(Path(args.settings))

    source = Path(args.file)
    content_type = mimetypes.guess_type(source.name)[0] or "application/octet-stream"

    async with httpx.AsyncClient(base_url=args.server, timeout=args.timeout) as client:
        with source.open("rb") as fp:
            response = await client.post("/api/upload", files={"file": (source.name, fp, content_type)})
        response.raise_for_status()
        record_id = response.json()["id"]
        print(f"uploaded {source.name} as record {record_id}")

        outcome = await watch_record(
            record_id,
            settings,
            client,
            interval=args.interval,
            max_attempts=args.max_attempts,
            on_update=lambda record: print(f"status: {record.get('status')}"),
        )

    print(f"outcome: {outcome.status}")
    if outcome.error:
        print(f"error: {outcome.error}", file=sys.stderr)
    if outcome.status != OUTCOME_SUCCESS:
        return 1

    result = (outcome.record or {}).get("result") or ""
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result, encoding="utf-8")
        print(f"Markdown result written to {output}")
    else:
        print(result)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Upload a PDF or image and follow its OCR run")
    parser.add_argument("file", help="PDF / PNG / JPEG file to upload")
    parser.add_argument("--server", default="http://127.0.0.1:8000", help="OCR Studio API base URL")
    parser.add_argument("--api-key", default=None, help="GLM-OCR API key (overrides saved settings)")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_PATH), help="client settings JSON file")
    parser.add_argument("--save-settings", action="store_true", help="persist the effective settings")
    parser.add_argument("--output", default=None, help="write the Markdown result to this file")
    parser.add_argument("--interval", type=float, default=2.0, help="poll interval in seconds")
    parser.add_argument("--max-attempts", type=int, default=150, help="give up after this many polls")
    parser.add_argument("--timeout", type=float, default=90.0, help="HTTP timeout in seconds")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
