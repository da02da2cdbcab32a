"""
CONSTANTS-AS-POLICY
-------------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers or user-facing strings elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Input validation
# =============================================================================

CHAR_LIMIT: Final[int] = 700

# =============================================================================
# Generation parameters
# =============================================================================

ENHANCEMENT_TEMPERATURE: Final[float] = 0.8

DEFAULT_LLM_PROVIDER: Final[str] = "gemini"
DEFAULT_LLM_MODEL: Final[str] = "gemini-2.5-flash"

# OpenAI-compatible endpoints per provider
PROVIDER_BASE_URLS: Final[dict[str, str]] = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "groq": "https://api.groq.com/openai/v1",
}

# =============================================================================
# Failure detection
# =============================================================================

# No chunk for this long (from stream start or previous chunk) => failed
ENHANCEMENT_STALL_TIMEOUT_MS: Final[int] = 30_000

# Substrings in provider error text that mark a rejected credential
INVALID_CREDENTIAL_SIGNATURES: Final[tuple[str, ...]] = (
    "Requested entity was not found",
    "API key",
    "API_KEY_INVALID",
)

# =============================================================================
# User-facing messages
# =============================================================================

MSG_ACQUISITION_FAILED: Final[str] = "Connection cancelled or failed."
MSG_SESSION_EXPIRED: Final[str] = "Session expired. Please sign in again."
MSG_ENHANCEMENT_FAILED: Final[str] = (
    "Failed to enhance text. Please check your connection."
)
MSG_CREDENTIAL_MISSING: Final[str] = (
    "API Key not found. Please connect your Google account."
)

ACTION_LABEL_STREAMING: Final[str] = "Enhancing..."
ACTION_LABEL_SIGN_IN: Final[str] = "Sign in with Google"
ACTION_LABEL_GENERATE: Final[str] = "Generate"

# =============================================================================
# Prompt versioning
# =============================================================================

SYSTEM_PROMPT_VERSION: Final[str] = "v1"

# =============================================================================
# Helper Functions
# =============================================================================

def limit_warning(char_count: int) -> str | None:
    """
    Standing validation warning for the current input length.

    Returns None while the input is within CHAR_LIMIT.
    """
    if char_count <= CHAR_LIMIT:
        return None
    return (
        f"Character limit exceeded ({char_count}/{CHAR_LIMIT}). "
        "Please shorten your text."
    )
