"""
Purpose: Application settings loaded from environment variables (and an
optional .env file). Keep all credentials and tunables centralized here.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    openrouter_api_key: Optional[str] = os.getenv("OPENROUTER_API_KEY")
    openrouter_base_url: str = os.getenv(
        "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
    )
    completion_timeout_seconds: float = float(
        os.getenv("COMPLETION_TIMEOUT_SECONDS", "60")
    )
    reveal_interval_ms: int = int(os.getenv("REVEAL_INTERVAL_MS", "30"))
    sync_debounce_seconds: float = float(os.getenv("SYNC_DEBOUNCE_SECONDS", "1.0"))
    guest_storage_dir: Path = Path(
        os.getenv(
            "GUEST_STORAGE_DIR",
            str(Path.home() / ".ai_chat_client" / "guests"),
        )
    ).expanduser()
    firestore_project: Optional[str] = os.getenv("FIRESTORE_PROJECT") or None
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def reveal_interval_seconds(self) -> float:
        return self.reveal_interval_ms / 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
