"""Client-side helpers for driving the OCR Studio API."""

from .poller import (
    OUTCOME_AWAITING_API_KEY,
    OUTCOME_CLOSED,
    OUTCOME_FAILED,
    OUTCOME_NOT_FOUND,
    OUTCOME_SUCCESS,
    OUTCOME_TIMED_OUT,
    FileWatcher,
    WatchOutcome,
    watch_record,
)
from .settings import ClientSettings

__all__ = [
    "ClientSettings",
    "FileWatcher",
    "WatchOutcome",
    "watch_record",
    "OUTCOME_AWAITING_API_KEY",
    "OUTCOME_CLOSED",
    "OUTCOME_FAILED",
    "OUTCOME_NOT_FOUND",
    "OUTCOME_SUCCESS",
    "OUTCOME_TIMED_OUT",
]
