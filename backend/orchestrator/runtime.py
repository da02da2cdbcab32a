"""
Runtime execution shell for a single enhancer session.

Responsibilities:
- Own orchestrator state
- Call the pure reducer
- Execute commands with side effects (broker, adapter, timers, logs)
- Run credential flows in background tasks and report them as events
- Convert timer expiry into events
- Publish the projected SessionView whenever it changes
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Coroutine

from observability.logger import log_event
from orchestrator.commands import (
    CancelEnhancement,
    CancelTimer,
    Command,
    LogEvent,
    ProbeCredential,
    RevokeCredential,
    StartAcquisition,
    StartEnhancement,
    StartTimer,
)
from orchestrator.enums.credential import CredentialStatus
from orchestrator.events import (
    AcquisitionSettled,
    CredentialProbed,
    EnhancementStallTimeout,
    Event,
    EventType,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState
from orchestrator.view import SessionView, project

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single session.

    Responsibilities:
    - Own the authoritative orchestrator state
    - Act as the universal event sink for the session
      (gateway events, adapter events, credential flows, timers)
    - Invoke the pure reducer
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is called exactly once per incoming event
    - Events are processed one at a time; the state swap and its
      commands complete before the next event is reduced
    - All side effects occur *after* state has been updated
    - Runtime never performs orchestration logic itself
    - Long-running effects (key selection, probing) never block
      handle_event; their outcomes re-enter as events
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()
        self._last_view: SessionView | None = None

    @property
    def state(self) -> OrchestratorState:
        """Current immutable state. Read-only for everyone but Runtime."""
        return self._state

    @property
    def view(self) -> SessionView:
        return project(self._state)

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event.

        1. Reduce (current state, event)
        2. Swap in the new state
        3. Execute commands in reducer-emitted order
        4. Publish the view if it changed

        This is the *only* entry point for events affecting state.
        """
        async with self._lock:
            new_state, commands = reduce(self._state, event)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)

            await self._publish_view()

    async def shutdown(self) -> None:
        """
        Cancel timers, credential flows and in-flight runs.

        Called by the gateway on disconnect.
        """
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        pending = list(self._background)
        for task in pending:
            task.cancel()

        adapter = self._ctx.enhancement_adapter
        if adapter is not None:
            adapter.force_reset()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, ProbeCredential):
            self._spawn(self._probe_credential())

        elif isinstance(cmd, StartAcquisition):
            self._spawn(self._acquire_credential())

        elif isinstance(cmd, RevokeCredential):
            broker = self._ctx.broker
            assert broker is not None, "credential broker missing"
            broker.revoke(rejected=cmd.rejected)

        elif isinstance(cmd, StartEnhancement):
            adapter = self._ctx.enhancement_adapter
            assert adapter is not None, "enhancement adapter missing"
            await adapter.start_enhancement(
                run_id=cmd.run_id,
                text=cmd.text,
                tone=cmd.tone,
            )
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "enhancement_start_executed",
                "session_id": self._ctx.session_id,
                "run_id": cmd.run_id,
                "system_prompt_version": cmd.system_prompt_version,
            })

        elif isinstance(cmd, CancelEnhancement):
            adapter = self._ctx.enhancement_adapter
            assert adapter is not None, "enhancement adapter missing"
            await adapter.cancel(cmd.run_id)

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    async def _publish_view(self) -> None:
        # The first view always goes out (_last_view starts as None).
        view = project(self._state)
        if view == self._last_view:
            return
        self._last_view = view
        await self._ctx.publish(view.to_message())

    # ------------------------------------------------------------------
    # Credential flows
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _probe_credential(self) -> None:
        broker = self._ctx.broker
        assert broker is not None, "credential broker missing"
        status = await broker.check_existing()
        await self.handle_event(
            CredentialProbed(
                event_type=EventType.CREDENTIAL_PROBED,
                ts_ms=_now_ms(),
                connected=status is CredentialStatus.CONNECTED,
            )
        )

    async def _acquire_credential(self) -> None:
        """Exactly one AcquisitionSettled per StartAcquisition, unless cancelled."""
        broker = self._ctx.broker
        assert broker is not None, "credential broker missing"
        status = await broker.acquire()
        await self.handle_event(
            AcquisitionSettled(
                event_type=EventType.ACQUISITION_SETTLED,
                ts_ms=_now_ms(),
                connected=status is CredentialStatus.CONNECTED,
            )
        )

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        The timeout event is bound to the run that was active when the
        timer started, so a late expiry is gated as stale.
        """
        self._cancel_timer(timer_id)
        run_id = self._state.active_runs.enhancement

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
                self._timers.pop(timer_id, None)
                await self.handle_event(
                    self._construct_timeout_event(timeout_event_type, run_id)
                )
            except asyncio.CancelledError:
                return

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """Idempotent."""
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(self, timeout_event_type: EventType, run_id: int) -> Event:
        if timeout_event_type is EventType.ENHANCEMENT_STALL_TIMEOUT:
            return EnhancementStallTimeout(
                event_type=EventType.ENHANCEMENT_STALL_TIMEOUT,
                ts_ms=_now_ms(),
                run_id=run_id,
            )

        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
