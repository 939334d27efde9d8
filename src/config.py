"""
Configuration from the environment (.env supported).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_URL = "http://localhost:1234"
CONNECT_TIMEOUT = 5
DEFAULT_READ_TIMEOUT = 120

TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    base_url: str = DEFAULT_URL
    model: Optional[str] = None
    read_timeout: float = DEFAULT_READ_TIMEOUT
    trace_file: Optional[str] = None
    debug: bool = False

    @property
    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/v1/chat/completions"

    @property
    def request_timeout(self) -> tuple:
        # (connect_timeout, read_timeout) in seconds
        return (CONNECT_TIMEOUT, self.read_timeout)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings(
        base_url=os.getenv("LMSTUDIO_URL", DEFAULT_URL),
        model=os.getenv("LLM_MODEL") or None,
        read_timeout=_env_float("LLM_REQUEST_TIMEOUT", DEFAULT_READ_TIMEOUT),
        trace_file=os.getenv("PARSER_TRACE_FILE") or None,
        debug=os.getenv("PARSER_DEBUG", "").strip().lower() in TRUTHY,
    )
