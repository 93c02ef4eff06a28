"""Application services."""

from .history import (
    HistoryPage,
    HistoryService,
    configure_history_service,
    get_history_service,
    safe_file_name,
)

__all__ = [
    "HistoryPage",
    "HistoryService",
    "configure_history_service",
    "get_history_service",
    "safe_file_name",
]
