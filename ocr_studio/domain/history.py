"""Domain entities for uploaded documents and their OCR lifecycle."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

STATUSES = frozenset({STATUS_PENDING, STATUS_PROCESSING, STATUS_SUCCESS, STATUS_FAILED})
TERMINAL_STATUSES = frozenset({STATUS_SUCCESS, STATUS_FAILED})

# ``status=all`` on the list endpoint disables the status filter.
STATUS_ALL = "all"


@dataclass(slots=True)
class HistoryRecord:
    """One uploaded document and the outcome of its latest OCR run."""

    id: int
    file_name: str
    file_size: int
    file_type: str
    status: str
    created_at: datetime
    result: str | None = None
