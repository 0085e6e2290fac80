from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


ROOT_DIR = Path(__file__).resolve().parents[3]

MIB = 1024 * 1024


class Settings(BaseSettings):
    app_name: str = "Lecture Pilot API"
    data_dir: Path = ROOT_DIR / "data"
    db_path: Optional[Path] = None
    runs_dir: Optional[Path] = None
    record_runs: bool = False

    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    llm_provider: str = "mock"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0
    openai_max_retries: int = 2
    llm_retry_backoff_seconds: float = 1.0
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    # Primary path: the co-located Lecture Pilot API.
    api_base_url: str = "http://localhost:3001/api/v1"
    api_token: Optional[str] = None
    analysis_primary_timeout_seconds: float = 5.0
    chat_primary_timeout_seconds: float = 2.0

    max_upload_bytes: int = 500 * MIB
    max_transcript_chars: int = 500_000
    max_chat_context_chars: int = 100_000
    allowed_media_types: list[str] = [
        "video/mp4",
        "video/quicktime",
        "video/x-matroska",
        "audio/mpeg",
        "audio/wav",
    ]
    simulated_stage_delay_seconds: float = 1.0

    class Config:
        env_file = (
            ".env",
            str(ROOT_DIR / ".env"),
            str(ROOT_DIR / "apps" / "api" / ".env"),
        )
        env_prefix = ""


def _clean_api_key(value: str) -> str:
    cleaned = value.strip().strip('"').strip("'")
    if cleaned.lower().startswith("bearer "):
        cleaned = cleaned.split(" ", 1)[1].strip()
    return cleaned


def is_production() -> bool:
    return settings.environment.lower().strip() in {"production", "prod"}


settings = Settings()
if settings.openai_api_key:
    settings.openai_api_key = _clean_api_key(settings.openai_api_key)
if settings.gemini_api_key:
    settings.gemini_api_key = _clean_api_key(settings.gemini_api_key)

if settings.db_path is None:
    settings.db_path = settings.data_dir / "lectures.db"
if settings.runs_dir is None:
    settings.runs_dir = settings.data_dir / "runs"
