"""Domain layer definitions."""

from .history import (
    STATUS_ALL,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_SUCCESS,
    STATUSES,
    TERMINAL_STATUSES,
    HistoryRecord,
)

__all__ = [
    "HistoryRecord",
    "STATUS_ALL",
    "STATUS_FAILED",
    "STATUS_PENDING",
    "STATUS_PROCESSING",
    "STATUS_SUCCESS",
    "STATUSES",
    "TERMINAL_STATUSES",
]
