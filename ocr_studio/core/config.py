from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_API_URL = "https://open.bigmodel.cn/api/paas/v4/layout_parsing"
DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


@dataclass(slots=True)
class Settings:
    """Server-side configuration, read from the environment at start-up."""

    database_url: str = "sqlite:///./ocr_studio.db"
    uploads_root: Path = field(default_factory=lambda: Path("uploads").resolve())
    default_api_key: str | None = None
    default_api_url: str = DEFAULT_API_URL
    request_timeout: float = 60.0
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings() -> Settings:
    """Build :class:`Settings` from ``OCR_*`` / ``GLM_OCR_*`` environment variables."""

    uploads_env = os.getenv("OCR_UPLOADS_ROOT")
    uploads_root = Path(uploads_env).expanduser().resolve() if uploads_env else Path("uploads").resolve()

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]

    return Settings(
        database_url=os.getenv("OCR_DATABASE_URL") or "sqlite:///./ocr_studio.db",
        uploads_root=uploads_root,
        default_api_key=os.getenv("GLM_OCR_API_KEY") or None,
        default_api_url=os.getenv("GLM_OCR_API_URL") or DEFAULT_API_URL,
        request_timeout=_float_env("OCR_REQUEST_TIMEOUT", 60.0),
        cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
