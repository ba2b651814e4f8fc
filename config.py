from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
load_dotenv()

DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name, str(default))
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    value = os.getenv(name, str(default))
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    api_key: Optional[str] = None
    api_url: str = DEFAULT_OPENROUTER_URL
    model: str = "openai/gpt-4o-mini"
    fallback_api_url: str = DEFAULT_OPENROUTER_URL
    fallback_model: str = "openrouter/auto"
    referer: Optional[str] = None
    title: Optional[str] = None
    timeout: float = 30.0
    max_tokens: int = 300
    temperature: float = 0.7
    message_threshold: int = 2
    pacing_seconds: float = 1.0
    consensus_rule: str = "user_selection"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Read settings from the process environment (.env is loaded on import).
        Malformed numbers fall back to the defaults above.
        """
        api_url = os.getenv("OPENROUTER_URL") or DEFAULT_OPENROUTER_URL
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY") or None,
            api_url=api_url,
            model=os.getenv("OPENROUTER_MODEL", cls.model),
            fallback_api_url=os.getenv("OPENROUTER_FALLBACK_URL") or api_url,
            fallback_model=os.getenv("OPENROUTER_FALLBACK_MODEL", cls.fallback_model),
            referer=os.getenv("APP_REFERER"),
            title=os.getenv("APP_TITLE"),
            timeout=_get_env_float("GENERATION_TIMEOUT", cls.timeout),
            max_tokens=_get_env_int("GENERATION_MAX_TOKENS", cls.max_tokens),
            temperature=_get_env_float("GENERATION_TEMPERATURE", cls.temperature),
            message_threshold=max(1, _get_env_int("NEGOTIATION_MESSAGE_THRESHOLD", cls.message_threshold)),
            pacing_seconds=max(0.0, _get_env_float("NEGOTIATION_PACING_SECONDS", cls.pacing_seconds)),
            consensus_rule=os.getenv("NEGOTIATION_CONSENSUS_RULE", cls.consensus_rule).strip().lower(),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_file=os.getenv("LOG_FILE") or None,
        )
