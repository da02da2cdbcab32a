"""
Enhancement pipeline contract.

Purpose:
- Define the interface for streamed emoji enhancement.
- Keep all orchestration, retries and state transitions OUT of the
  pipeline.

Rules:
- This file contains NO logic.
- No retries.
- No credential acquisition.
- No knowledge of UI or state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from orchestrator.enums.tone import Tone

ChunkSink = Callable[[str], Awaitable[None]]


class EnhancementPipeline(ABC):
    """
    Abstract base class for streaming enhancement pipelines.

    The pipeline is a *dumb pipe*:
    text + tone -> vendor -> ordered chunks.

    Orchestrator responsibilities (NOT here):
    - Whether a credential exists
    - When to start
    - When to cancel
    - What to do with chunks
    - Mapping failures to session state
    """

    @abstractmethod
    async def stream(self, text: str, tone: Tone, on_chunk: ChunkSink) -> None:
        """
        Stream an emoji-enhanced rewrite of text.

        Contract:
        - Calls on_chunk once per non-blank fragment, in arrival order,
          awaiting each call before reading the next fragment.
        - Returns when the stream is exhausted; no end marker is sent.
        - Raises CredentialMissing before any I/O when no credential
          is resolvable.
        - Raises InvalidCredential or EnhancementFailed on provider
          failure, never a raw provider exception.
        - Must NOT retry internally.
        """
