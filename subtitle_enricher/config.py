"""Configuration constants, service endpoints, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Service URLs, model settings, and concurrency
defaults are plain module-level values, not buried in the clients that
use them.

HOW: python-dotenv loads the .env file on import. Constants are read
with os.getenv and a default. The load_*_api_key() functions provide a
clear error when a key is missing.

RULES:
- API keys are loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- Missing keys raise ValueError only when a client actually needs them
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.2"))

AI4THAI_BASE_URL = os.getenv("AI4THAI_BASE_URL", "https://api.aiforthai.in.th")
ORST_BASE_URL = os.getenv("ORST_BASE_URL", "https://dictionary.orst.go.th")
ENGLISH_DICTIONARY_URL = os.getenv(
    "ENGLISH_DICTIONARY_URL", "https://api.dictionaryapi.dev/api/v2/entries/en"
)

HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "30"))

# ---------------------------------------------------------------------------
# Pipeline defaults
# ---------------------------------------------------------------------------

DEFAULT_CONCURRENCY = int(os.getenv("DEFAULT_CONCURRENCY", "4"))
"""Upper bound on helper calls in flight for one pass (and on records in flight for a batch)."""

NORMALIZATION_VERSION = "1.0"
"""Stamped on every normalized sense entry."""


def _load_key(name: str, label: str) -> str:
    key = os.getenv(name, "").strip()
    if not key:
        raise ValueError(
            f"{label} API key not configured. "
            f"Add {name} to the .env file in the project folder."
        )
    return key


def load_openai_api_key() -> str:
    """Load the OpenAI API key from the environment.

    RULES:
    - Raises ValueError if OPENAI_API_KEY is missing or empty
    - Never returns a default/placeholder value
    """
    return _load_key("OPENAI_API_KEY", "OpenAI")


def load_ai4thai_api_key() -> str:
    """Load the AI4Thai API key (segmentation and g2p) from the environment.

    RULES:
    - Raises ValueError if AI4THAI_API_KEY is missing or empty
    """
    return _load_key("AI4THAI_API_KEY", "AI4Thai")
