"""
FastAPI app factory.

Responsibilities:
- Create and configure the FastAPI app
- Set up middleware
- Provide the per-request provider client factory
- Register routes
"""

from __future__ import annotations

from functools import partial

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from config import AppConfig
from server.routes import register_routes


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    config defaults to AppConfig.load_from_env(); tests pass their own.
    """
    config = config or AppConfig.load_from_env()

    app = FastAPI(title="Emoji Enhancer API")
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # No client is built here: the key is only known once the user
    # selects it, and every stream uses the key current at that moment.
    app.state.client_factory = partial(build_llm_client, config)

    register_routes(app)

    return app


def build_llm_client(config: AppConfig, api_key: str) -> AsyncOpenAI:
    """Build an OpenAI-compatible client for the configured provider."""
    base_url = config.resolved_base_url
    if base_url is None:
        return AsyncOpenAI(api_key=api_key)
    return AsyncOpenAI(api_key=api_key, base_url=base_url)
