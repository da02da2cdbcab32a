"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import DEFAULT_LLM_MODEL, DEFAULT_LLM_PROVIDER, PROVIDER_BASE_URLS


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and gateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # LLM configuration
    # ------------------------------------------------------------------

    llm_provider: str = DEFAULT_LLM_PROVIDER
    llm_model: str = DEFAULT_LLM_MODEL
    llm_base_url: str | None = None

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # Key already selected on the platform before the process started.
    # The user still has to select a key interactively when this is unset.
    preselected_api_key: str | None = None

    @property
    def resolved_base_url(self) -> str | None:
        """Explicit override first, then the provider's known endpoint."""
        if self.llm_base_url:
            return self.llm_base_url
        return PROVIDER_BASE_URLS.get(self.llm_provider.lower())

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """Load configuration from environment variables."""
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            llm_provider=os.environ.get("LLM_PROVIDER", DEFAULT_LLM_PROVIDER),
            llm_model=os.environ.get("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_base_url=os.environ.get("LLM_BASE_URL") or None,

            preselected_api_key=os.environ.get("API_KEY") or None,
        )
