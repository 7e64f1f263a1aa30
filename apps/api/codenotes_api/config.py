from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    api_auth_mode: str
    api_auth_token: str | None
    api_debug_log: bool
    ai_mode: str
    ai_endpoint: str | None
    ai_model: str | None
    ai_api_key: str | None
    ai_timeout_s: float
    ai_max_chars: int


def load_settings() -> Settings:
    api_auth_mode = os.environ.get("API_AUTH_MODE", "none").lower()
    api_auth_token = os.environ.get("API_AUTH_TOKEN")
    api_debug_log = os.environ.get("API_DEBUG_LOG", "false").lower() == "true"
    ai_mode = os.environ.get("AI_MODE", "openai").lower()
    ai_endpoint = os.environ.get("AI_ENDPOINT")
    ai_model = os.environ.get("AI_MODEL")
    ai_api_key = os.environ.get("AI_API_KEY")
    ai_timeout_s = float(os.environ.get("AI_TIMEOUT_S", "60"))
    ai_max_chars = int(os.environ.get("AI_MAX_CHARS", "20000"))
    return Settings(
        api_auth_mode=api_auth_mode,
        api_auth_token=api_auth_token,
        api_debug_log=api_debug_log,
        ai_mode=ai_mode,
        ai_endpoint=ai_endpoint,
        ai_model=ai_model,
        ai_api_key=ai_api_key,
        ai_timeout_s=ai_timeout_s,
        ai_max_chars=ai_max_chars,
    )
