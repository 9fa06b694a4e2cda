import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .logger import LOG_LEVELS


def load_env() -> None:
    """Load .env from the working directory if present.

    Variables already set in the process environment win over the file.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


@dataclass
class Settings:
    db_path: Path = Path("data/recordsweep.db")
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    app_id: Optional[str] = None
    page_size: int = 5000
    retry_base_delay: float = 0.5
    retry_max_attempts: int = 5
    pace_every: int = 100
    pace_delay: float = 0.1
    tie_break: str = "first"
    log_level: str = "INFO"


def _number(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got {raw!r}")


def load_settings() -> Settings:
    """Build Settings from RECORDSWEEP_* environment variables."""
    tie_break = os.getenv("RECORDSWEEP_TIE_BREAK", "first").strip() or "first"
    if tie_break not in ("first", "lowest_id"):
        raise ValueError(f"RECORDSWEEP_TIE_BREAK must be 'first' or 'lowest_id', got {tie_break!r}")

    log_level = os.getenv("RECORDSWEEP_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if log_level not in LOG_LEVELS:
        raise ValueError(f"RECORDSWEEP_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    settings = Settings(
        db_path=Path(os.getenv("RECORDSWEEP_DB", "data/recordsweep.db")),
        api_url=os.getenv("RECORDSWEEP_API_URL") or None,
        api_key=os.getenv("RECORDSWEEP_API_KEY") or None,
        app_id=os.getenv("RECORDSWEEP_APP_ID") or None,
        page_size=_number("RECORDSWEEP_PAGE_SIZE", int, 5000),
        retry_base_delay=_number("RECORDSWEEP_RETRY_BASE_DELAY", float, 0.5),
        retry_max_attempts=_number("RECORDSWEEP_RETRY_MAX_ATTEMPTS", int, 5),
        pace_every=_number("RECORDSWEEP_PACE_EVERY", int, 100),
        pace_delay=_number("RECORDSWEEP_PACE_DELAY", float, 0.1),
        tie_break=tie_break,
        log_level=log_level,
    )
    if settings.page_size < 1:
        raise ValueError("RECORDSWEEP_PAGE_SIZE must be positive")
    return settings
