"""
Environment-driven settings for the life chart engine.
Values are read from the process environment (and the project .env file) at call time.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

DEFAULT_BASE_URL = "https://api.deepseek.com"
DEFAULT_MODEL = "deepseek-chat"
DEFAULT_NARRATIVE_TIMEOUT = 60.0

CALENDAR_PRECISE = "precise"
CALENDAR_APPROXIMATE = "approximate"


def _clean(value):
    if not value or value == "replace_me":
        return None
    return value


def get_api_key():
    """API key for the narrative LLM, or None when not configured."""
    return _clean(os.getenv("LLM_API_KEY")) or _clean(os.getenv("DEEPSEEK_API_KEY"))


def get_base_url() -> str:
    return os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL)


def get_model() -> str:
    return os.getenv("LLM_MODEL", DEFAULT_MODEL)


def get_narrative_timeout() -> float:
    raw = os.getenv("NARRATIVE_TIMEOUT")
    try:
        return float(raw) if raw else DEFAULT_NARRATIVE_TIMEOUT
    except ValueError:
        print(f"WARNING: NARRATIVE_TIMEOUT={raw!r} is not a number, using {DEFAULT_NARRATIVE_TIMEOUT}s", flush=True)
        return DEFAULT_NARRATIVE_TIMEOUT


def get_calendar_mode() -> str:
    mode = os.getenv("LIFE_CHART_CALENDAR", CALENDAR_PRECISE).strip().lower()
    if mode not in (CALENDAR_PRECISE, CALENDAR_APPROXIMATE):
        print(f"WARNING: unknown LIFE_CHART_CALENDAR={mode!r}, using {CALENDAR_PRECISE}", flush=True)
        return CALENDAR_PRECISE
    return mode


def log_perf(message: str) -> None:
    if os.getenv("PERF_LOG") == "1":
        print(message, flush=True)
