"""Runtime settings read from the environment (and a local ``.env``)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class Settings:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 4096
    anthropic_version: str = DEFAULT_ANTHROPIC_VERSION

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables."""
        if load_env_file:
            load_dotenv()
        return cls(
            api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            base_url=os.getenv("ANTHROPIC_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            model=os.getenv("CHAT_RELAY_MODEL", DEFAULT_MODEL),
            max_tokens=int(os.getenv("CHAT_RELAY_MAX_TOKENS", "4096")),
            anthropic_version=os.getenv("ANTHROPIC_VERSION", DEFAULT_ANTHROPIC_VERSION),
        )
