"""Client-side OCR settings, kept on the user's machine.

The settings are an explicit value handed to every call that needs them;
nothing reads them from ambient state. They only leave the machine as
request parameters.
"""
from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from ocr_studio.core.config import DEFAULT_API_URL

DEFAULT_SETTINGS_PATH = Path.home() / ".ocr_studio" / "settings.json"


class ClientSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    mode: str = "standard"
    format: str = "markdown"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())

    def process_payload(self, record_id: int) -> dict[str, object]:
        """Body for ``POST /api/process``."""

        return {
            "id": record_id,
            "apiKey": self.api_key,
            "apiUrl": self.api_url,
            "mode": self.mode,
            "format": self.format,
        }

    @classmethod
    def load(cls, path: Path = DEFAULT_SETTINGS_PATH) -> "ClientSettings":
        if not path.exists():
            return cls()
        return cls.model_validate_json(path.read_text(encoding="utf-8"))

    def save(self, path: Path = DEFAULT_SETTINGS_PATH) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path
