"""
Pure orchestrator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any

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
from orchestrator.enums.failure import FailureKind
from orchestrator.enums.state import State
from orchestrator.events import (
    AcquisitionSettled,
    CredentialProbed,
    EnhancementChunk,
    EnhancementDone,
    EnhancementError,
    EnhancementStallTimeout,
    Event,
    EventType,
    InputCleared,
    InputEdited,
    PerformAction,
    SessionEnded,
    SessionStarted,
    SignIn,
    SignOut,
    ToneChanged,
)
from orchestrator.run_ids import RunIds
from orchestrator.state_dataclass import EnhancementRequest, OrchestratorState
from constants import (
    CHAR_LIMIT,
    ENHANCEMENT_STALL_TIMEOUT_MS,
    MSG_ACQUISITION_FAILED,
    MSG_ENHANCEMENT_FAILED,
    MSG_SESSION_EXPIRED,
    SYSTEM_PROMPT_VERSION,
)


# =============================================================================
# Invariants (generation tokens)
# =============================================================================
# - The token is bumped ONLY when a new enhancement starts
# - Cancellation and sign-out never bump the token
# - Chunk / done / error / stall events for any other token are dropped
# - Output is appended only while STREAMING with the matching token

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_ENHANCEMENT_STALL = "enhancement_stall_timeout"

_CREDENTIAL_FAILURES = frozenset({
    FailureKind.INVALID_CREDENTIAL,
    FailureKind.CREDENTIAL_MISSING,
})


# =============================================================================
# Small helpers
# =============================================================================

def is_authenticated(state: OrchestratorState) -> bool:
    return state.state is not State.UNAUTHENTICATED


def is_over_limit(text: str) -> bool:
    return len(text) > CHAR_LIMIT


def _bump_run_id(active_runs: RunIds) -> RunIds:
    return replace(active_runs, enhancement=active_runs.enhancement + 1)


def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "run_ids": {
                "enhancement": state.active_runs.enhancement,
            },
            "credential": "CONNECTED" if is_authenticated(state) else "NOT_CONNECTED",
            "acquisition_pending": state.acquisition_pending,
            "details": details or {},
        }
    )


def _state_changed(
    old: OrchestratorState,
    new: OrchestratorState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.state.value,
            "to_state": new.state.value,
            "source": source,
        },
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: OrchestratorState, event: Event, reason: str
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _stale_reason(state: OrchestratorState, run_id: int, prefix: str) -> str | None:
    """Return an ignore reason for run-scoped events that must be dropped."""
    if run_id != state.active_runs.enhancement:
        return f"{prefix}_stale"
    if state.state is not State.STREAMING:
        return f"{prefix}_not_streaming"
    return None


def _begin_enhancement(
    state: OrchestratorState,
    event: Event,
    request: EnhancementRequest,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Authenticated -> STREAMING.

    Stamps a fresh generation token and resets the enhancement session.
    """
    new_runs = _bump_run_id(state.active_runs)
    new_state = replace(
        state,
        state=State.STREAMING,
        active_runs=new_runs,
        in_flight_request=request,
        output_text="",
        chunks_received=0,
        last_error=None,
        last_failure=None,
    )

    return new_state, (
        StartEnhancement(
            run_id=new_runs.enhancement,
            text=request.text,
            tone=request.tone,
            system_prompt_version=SYSTEM_PROMPT_VERSION,
        ),
        StartTimer(
            timer_id=TIMER_ENHANCEMENT_STALL,
            duration_ms=ENHANCEMENT_STALL_TIMEOUT_MS,
            timeout_event_type=EventType.ENHANCEMENT_STALL_TIMEOUT,
        ),
        _log(
            new_state,
            event,
            "start_enhancement",
            {
                "char_count": len(request.text),
                "tone": request.tone.value,
                "system_prompt_version": SYSTEM_PROMPT_VERSION,
            },
        ),
        _state_changed(state, new_state, event, "start_enhancement"),
    )


def _finish_streaming(current: OrchestratorState, **changes: Any) -> OrchestratorState:
    return replace(current, in_flight_request=None, **changes)


# =============================================================================
# Per-event handlers
# =============================================================================

def _on_perform_action(
    state: OrchestratorState, event: PerformAction
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.state is State.STREAMING:
        return _ignore(state, event, "already_streaming")

    if state.acquisition_pending:
        return _ignore(state, event, "acquisition_pending")

    if is_over_limit(state.input_text):
        return _ignore(state, event, "input_over_limit")

    has_text = bool(state.input_text.strip())

    if not is_authenticated(state):
        # Capture the request now; the fall-through runs it on success.
        pending = (
            EnhancementRequest(text=state.input_text, tone=state.tone)
            if has_text
            else None
        )
        new_state = replace(
            state,
            acquisition_pending=True,
            pending_request=pending,
        )
        return new_state, (
            StartAcquisition(),
            _log(
                new_state,
                event,
                "start_acquisition",
                {"fall_through": pending is not None},
            ),
        )

    if not has_text:
        return _ignore(state, event, "input_empty")

    return _begin_enhancement(
        state,
        event,
        EnhancementRequest(text=state.input_text, tone=state.tone),
    )


def _on_sign_in(
    state: OrchestratorState, event: SignIn
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if is_authenticated(state):
        return _ignore(state, event, "already_authenticated")

    if state.acquisition_pending:
        return _ignore(state, event, "acquisition_pending")

    new_state = replace(state, acquisition_pending=True, pending_request=None)
    return new_state, (
        StartAcquisition(),
        _log(new_state, event, "start_acquisition", {"fall_through": False}),
    )


def _on_acquisition_settled(
    state: OrchestratorState, event: AcquisitionSettled
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if not state.acquisition_pending:
        return _ignore(state, event, "acquisition_not_pending")

    if not event.connected:
        new_state = replace(
            state,
            acquisition_pending=False,
            pending_request=None,
            last_error=MSG_ACQUISITION_FAILED,
            last_failure=FailureKind.ACQUISITION_FAILED,
        )
        return new_state, (
            _log(new_state, event, "acquisition_failed"),
        )

    request = state.pending_request

    # Step 1: UNAUTHENTICATED -> IDLE
    authed = replace(
        state,
        state=State.IDLE,
        acquisition_pending=False,
        pending_request=None,
        last_error=None,
        last_failure=None,
    )
    commands: tuple[Command, ...] = (
        _log(authed, event, "acquisition_succeeded",
             {"fall_through": request is not None}),
        _state_changed(state, authed, event, "acquisition"),
    )

    if request is None:
        return authed, _logs_last(commands)

    # Step 2: IDLE -> STREAMING, same orchestrator step
    streaming, start_cmds = _begin_enhancement(authed, event, request)
    return streaming, _logs_last(commands + start_cmds)


def _on_credential_probed(
    state: OrchestratorState, event: CredentialProbed
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if not event.connected:
        return _ignore(state, event, "credential_not_selected")

    if is_authenticated(state):
        return _ignore(state, event, "already_authenticated")

    if state.acquisition_pending:
        # The acquisition's own re-check decides.
        return _ignore(state, event, "acquisition_pending")

    new_state = replace(state, state=State.IDLE)
    return new_state, (
        _log(new_state, event, "credential_restored"),
        _state_changed(state, new_state, event, "credential_probe"),
    )


def _on_sign_out(
    state: OrchestratorState, event: SignOut
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if not is_authenticated(state):
        return _ignore(state, event, "not_authenticated")

    commands: list[Command] = []

    if state.state is State.STREAMING:
        commands.append(CancelEnhancement(run_id=state.active_runs.enhancement))
        commands.append(CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL))

    new_state = _finish_streaming(
        state,
        state=State.UNAUTHENTICATED,
        input_text="",
        output_text="",
        chunks_received=0,
    )

    commands.append(RevokeCredential())
    commands.append(_log(new_state, event, "signed_out"))
    commands.append(_state_changed(state, new_state, event, "sign_out"))
    return new_state, _logs_last(tuple(commands))


def _on_chunk(
    state: OrchestratorState, event: EnhancementChunk
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    reason = _stale_reason(state, event.run_id, "chunk")
    if reason is not None:
        return _ignore(state, event, reason)

    if not event.delta.strip():
        return _ignore(state, event, "chunk_blank")

    new_state = replace(
        state,
        output_text=state.output_text + event.delta,
        chunks_received=state.chunks_received + 1,
    )

    return new_state, (
        # Restart stall timer on every chunk
        StartTimer(
            timer_id=TIMER_ENHANCEMENT_STALL,
            duration_ms=ENHANCEMENT_STALL_TIMEOUT_MS,
            timeout_event_type=EventType.ENHANCEMENT_STALL_TIMEOUT,
        ),
        _log(
            new_state,
            event,
            "chunk_appended",
            {
                "delta_len": len(event.delta),
                "output_len": len(new_state.output_text),
                "first_chunk": state.chunks_received == 0,
            },
        ),
    )


def _on_done(
    state: OrchestratorState, event: EnhancementDone
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    reason = _stale_reason(state, event.run_id, "done")
    if reason is not None:
        return _ignore(state, event, reason)

    new_state = _finish_streaming(state, state=State.IDLE)
    return new_state, _logs_last((
        CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL),
        _log(
            new_state,
            event,
            "enhancement_complete",
            {
                "output_len": len(new_state.output_text),
                "chunks": new_state.chunks_received,
            },
        ),
        _state_changed(state, new_state, event, "enhancement_done"),
    ))


def _on_error(
    state: OrchestratorState, event: EnhancementError
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    reason = _stale_reason(state, event.run_id, "error")
    if reason is not None:
        return _ignore(state, event, reason)

    if event.kind in _CREDENTIAL_FAILURES:
        # Silent demotion: the key was rejected mid-request.
        new_state = _finish_streaming(
            state,
            state=State.UNAUTHENTICATED,
            last_error=MSG_SESSION_EXPIRED,
            last_failure=event.kind,
        )
        return new_state, _logs_last((
            CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL),
            RevokeCredential(rejected=True),
            _log(new_state, event, "credential_rejected", {"kind": event.kind.value}),
            _state_changed(state, new_state, event, "credential_rejected"),
        ))

    new_state = _finish_streaming(
        state,
        state=State.ERROR,
        last_error=event.message or MSG_ENHANCEMENT_FAILED,
        last_failure=event.kind,
    )
    return new_state, _logs_last((
        CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL),
        _log(new_state, event, "enhancement_failed", {"kind": event.kind.value}),
        _state_changed(state, new_state, event, "enhancement_failed"),
    ))


def _on_stall_timeout(
    state: OrchestratorState, event: EnhancementStallTimeout
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    reason = _stale_reason(state, event.run_id, "stall_timeout")
    if reason is not None:
        return _ignore(state, event, reason)

    new_state = _finish_streaming(
        state,
        state=State.ERROR,
        last_error=MSG_ENHANCEMENT_FAILED,
        last_failure=FailureKind.STALLED,
    )
    return new_state, _logs_last((
        CancelEnhancement(run_id=event.run_id),
        _log(
            new_state,
            event,
            "enhancement_stalled",
            {"chunks": state.chunks_received},
        ),
        _state_changed(state, new_state, event, "enhancement_stalled"),
    ))


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: OrchestratorState, event: Event
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Pure reducer for the enhancer session state machine.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with stale generation tokens
    """
    if isinstance(event, SessionStarted):
        return state, (
            ProbeCredential(),
            _log(state, event, "session_started", {"session_id": event.session_id}),
        )

    if isinstance(event, SessionEnded):
        commands: list[Command] = []
        if state.state is State.STREAMING:
            commands.append(CancelEnhancement(run_id=state.active_runs.enhancement))
            commands.append(CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL))
        commands.append(
            _log(state, event, "session_ended", {"session_id": event.session_id})
        )
        return state, tuple(commands)

    if isinstance(event, PerformAction):
        return _on_perform_action(state, event)

    if isinstance(event, SignIn):
        return _on_sign_in(state, event)

    if isinstance(event, SignOut):
        return _on_sign_out(state, event)

    if isinstance(event, InputEdited):
        # Accepted in every state; an in-flight run keeps its own snapshot.
        new_state = replace(state, input_text=event.text)
        return new_state, (
            _log(
                new_state,
                event,
                "input_edited",
                {
                    "char_count": len(event.text),
                    "limit_exceeded": is_over_limit(event.text),
                },
            ),
        )

    if isinstance(event, InputCleared):
        new_state = replace(state, input_text="")
        return new_state, (_log(new_state, event, "input_cleared"),)

    if isinstance(event, ToneChanged):
        if state.state is State.STREAMING:
            return _ignore(state, event, "tone_change_while_streaming")
        new_state = replace(state, tone=event.tone)
        return new_state, (
            _log(new_state, event, "tone_changed", {"tone": event.tone.value}),
        )

    if isinstance(event, CredentialProbed):
        return _on_credential_probed(state, event)

    if isinstance(event, AcquisitionSettled):
        return _on_acquisition_settled(state, event)

    if isinstance(event, EnhancementChunk):
        return _on_chunk(state, event)

    if isinstance(event, EnhancementDone):
        return _on_done(state, event)

    if isinstance(event, EnhancementError):
        return _on_error(state, event)

    if isinstance(event, EnhancementStallTimeout):
        return _on_stall_timeout(state, event)

    return _ignore(state, event, "unhandled_event")
