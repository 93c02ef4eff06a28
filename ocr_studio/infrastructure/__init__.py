"""Infrastructure layer exports."""

from .blobs import BlobStore, FileSystemBlobStore, blob_key
from .history import HistoryRepository, InMemoryHistoryRepository, SqlHistoryRepository
from .ocr import OCRGateway, configure_ocr_client, get_ocr_client

__all__ = [
    "BlobStore",
    "FileSystemBlobStore",
    "blob_key",
    "HistoryRepository",
    "InMemoryHistoryRepository",
    "SqlHistoryRepository",
    "OCRGateway",
    "configure_ocr_client",
    "get_ocr_client",
]
