"""
Runtime settings, read from the process environment.

natureid/.env is loaded (without overriding real env vars) by services/api.py
before Settings.from_env() runs.
"""
import os
from dataclasses import dataclass
from typing import Optional

from natureid.orchestrator.contracts import MAX_HISTORY_ITEMS

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
OPENROUTER_MODEL = "google/gemini-2.0-flash-exp:free"
MAX_BODY_BYTES = 10 * 1024 * 1024   # base64 photos run large


@dataclass
class Settings:
    openrouter_api_key: Optional[str] = None
    openrouter_api_url: str = OPENROUTER_API_URL
    openrouter_model: str = OPENROUTER_MODEL
    openrouter_timeout: float = 30.0
    openrouter_referer: str = "https://natureid.app"
    openrouter_title: str = "NatureID"
    vision_adapter: str = "openrouter"    # openrouter | mock
    max_history_items: int = MAX_HISTORY_ITEMS
    max_body_bytes: int = MAX_BODY_BYTES
    camera_index: int = 0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            openrouter_api_url=os.getenv("OPENROUTER_API_URL", OPENROUTER_API_URL),
            openrouter_model=os.getenv("OPENROUTER_MODEL", OPENROUTER_MODEL),
            openrouter_timeout=float(os.getenv("OPENROUTER_TIMEOUT", "30")),
            openrouter_referer=os.getenv("OPENROUTER_REFERER", "https://natureid.app"),
            openrouter_title=os.getenv("OPENROUTER_TITLE", "NatureID"),
            vision_adapter=os.getenv("VISION_ADAPTER", "openrouter").lower(),
            max_history_items=int(os.getenv("MAX_HISTORY_ITEMS", str(MAX_HISTORY_ITEMS))),
            max_body_bytes=int(os.getenv("MAX_BODY_BYTES", str(MAX_BODY_BYTES))),
            camera_index=int(os.getenv("CAMERA_INDEX", "0")),
        )
