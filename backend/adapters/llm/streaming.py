"""Streaming enhancement adapter (OpenAI-compatible chat completions)."""
from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from adapters.llm.base import ChunkSink, EnhancementPipeline
from adapters.llm.errors import CredentialMissing, PipelineError, classify_provider_error
from adapters.llm.prompts import build_system_instruction
from constants import ENHANCEMENT_TEMPERATURE
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.enums.tone import Tone
from orchestrator.events import (
    EnhancementChunk,
    EnhancementDone,
    EnhancementError,
    Event,
    EventType,
)
from session.credentials import CredentialSnapshot

ClientFactory = Callable[[str], Any]


class StreamingEnhancementAdapter(EnhancementPipeline):
    """
    Concrete enhancement pipeline.

    Design notes:
    - One adapter instance serves many sequential runs.
    - Each run is tracked independently via run_id -> asyncio.Task.
    - A vendor client is built per run from the credential snapshot
      taken at that moment, so a newly selected key applies at once.
      Client and response stream are closed when the run ends,
      including on cancellation.
    - Adapter is responsible ONLY for:
        - Talking to the provider
        - Streaming chunks in order
        - Classifying failures
        - Emitting ENHANCEMENT_* events
    - Adapter does NOT:
        - Retry
        - Acquire credentials
        - Manage timers
        - Decide orchestration outcomes
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        credentials: Callable[[], CredentialSnapshot],
        client_factory: ClientFactory,
        model: str,
        session_id: str | None = None,
    ) -> None:
        """
        Args:
            emit_event:
                Callback into the runtime.
            credentials:
                Returns the current credential snapshot.
            client_factory:
                Builds an AsyncOpenAI-compatible client for an API key.
            model:
                Model identifier string.
            session_id:
                For log correlation.
        """
        self._emit_event = emit_event
        self._credentials = credentials
        self._client_factory = client_factory
        self._model = model
        self._session_id = session_id

        self._active_tasks: dict[int, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def stream(self, text: str, tone: Tone, on_chunk: ChunkSink) -> None:
        snapshot = self._credentials()
        if not snapshot.usable:
            raise CredentialMissing()
        assert snapshot.api_key is not None

        client = self._client_factory(snapshot.api_key)
        messages = [
            {"role": "system", "content": build_system_instruction(tone)},
            {"role": "user", "content": text},
        ]

        # Whitespace-only fragments are never surfaced on their own; they
        # are carried into the next fragment so line breaks survive.
        carry = ""
        stream = None
        try:
            stream = await client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=ENHANCEMENT_TEMPERATURE,
                stream=True,
            )
            async for chunk in stream:
                delta = self._extract_delta(chunk)
                if not delta:
                    continue
                if not delta.strip():
                    carry += delta
                    continue
                await on_chunk(carry + delta)
                carry = ""
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            classified = classify_provider_error(exc)
            log_event({
                "ts_ms": self._now_ms(),
                "event_type": "ENHANCEMENT_PROVIDER_ERROR",
                "session_id": self._session_id,
                "model": self._model,
                "exception": type(exc).__name__,
                "message": str(exc),
                "classified_as": classified.kind.value,
            })
            raise classified from exc
        finally:
            await self._release(stream, client)

    # ------------------------------------------------------------------
    # Run management
    # ------------------------------------------------------------------

    async def start_enhancement(self, *, run_id: int, text: str, tone: Tone) -> None:
        """Spawn the run and return immediately."""
        if run_id in self._active_tasks:
            return

        task = asyncio.create_task(self._run(run_id, text, tone))
        self._active_tasks[run_id] = task

        def _cleanup(_: asyncio.Task[None]) -> None:
            self._active_tasks.pop(run_id, None)

        task.add_done_callback(_cleanup)

    async def cancel(self, run_id: int) -> None:
        """
        Best-effort cancellation.

        Idempotent and silent for unknown or finished runs. A cancelled
        run emits no terminal event.
        """
        task = self._active_tasks.get(run_id)
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def force_reset(self) -> None:
        """Cancel every active run without waiting."""
        for task in self._active_tasks.values():
            task.cancel()
        self._active_tasks.clear()

    @property
    def active_run_ids(self) -> list[int]:
        return sorted(self._active_tasks)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, run_id: int, text: str, tone: Tone) -> None:
        """
        Guarantees:
        - Emits events only for its own run_id
        - Emits at most one terminal event
        """

        async def _sink(delta: str) -> None:
            await self._emit_event(
                EnhancementChunk(
                    event_type=EventType.ENHANCEMENT_CHUNK,
                    ts_ms=self._now_ms(),
                    run_id=run_id,
                    delta=delta,
                )
            )

        try:
            with timed(
                "enhancement_stream",
                session_id=self._session_id,
                details={"run_id": run_id, "model": self._model, "tone": Tone(tone).value},
            ):
                await self.stream(text, tone, _sink)
        except asyncio.CancelledError:
            return
        except PipelineError as exc:
            await self._emit_event(
                EnhancementError(
                    event_type=EventType.ENHANCEMENT_ERROR,
                    ts_ms=self._now_ms(),
                    run_id=run_id,
                    kind=exc.kind,
                    message=exc.message,
                )
            )
            return

        await self._emit_event(
            EnhancementDone(
                event_type=EventType.ENHANCEMENT_DONE,
                ts_ms=self._now_ms(),
                run_id=run_id,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _release(self, stream: Any, client: Any) -> None:
        """
        Close the response stream and the per-run client.

        A failing close is logged and never replaces the run's outcome.
        """
        for name, resource in (("stream", stream), ("client", client)):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": self._now_ms(),
                    "event_type": "ENHANCEMENT_CLOSE_FAILED",
                    "session_id": self._session_id,
                    "resource": name,
                    "exception": type(exc).__name__,
                })

    @staticmethod
    def _extract_delta(chunk: Any) -> str:
        """Token delta from an OpenAI-format stream chunk."""
        try:
            delta = chunk.choices[0].delta
            return delta.content or ""
        except (AttributeError, IndexError):
            return ""

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
