"""
Runtime configuration from environment (.env supported via python-dotenv).
No GROQ_API_KEY means no language model: planning and formatting use their
deterministic fallbacks.
"""
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_FALLBACK_MODEL = "llama-3.1-8b-instant"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def groq_api_key():
    return os.getenv("GROQ_API_KEY") or None


def groq_model() -> str:
    return os.getenv("GROQ_MODEL", DEFAULT_MODEL)


def groq_fallback_model() -> str:
    """Alternate model configuration used for the single retry after an overload signal."""
    return os.getenv("GROQ_FALLBACK_MODEL", DEFAULT_FALLBACK_MODEL)


def llm_timeout_seconds() -> int:
    return _int_env("LLM_TIMEOUT_SECONDS", 30)


def max_prompt_records() -> int:
    """Largest prefix of matched records sent to the model when formatting an answer."""
    return _int_env("MAX_PROMPT_RECORDS", 50)


def log_level() -> str:
    return (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
