"""
Reducer semantics for the enhancer session.

Reducer-only guarantees:
- Guards are silent no-ops
- Fall-through from acquisition into streaming in one step
- Generation-token gating of stale chunks and terminals
- Failure classification mapped onto session state
"""

from orchestrator.commands import (
    CancelEnhancement,
    CancelTimer,
    LogEvent,
    ProbeCredential,
    RevokeCredential,
    StartAcquisition,
    StartEnhancement,
    StartTimer,
)
from orchestrator.enums.failure import FailureKind
from orchestrator.enums.state import State
from orchestrator.enums.tone import Tone
from orchestrator.events import (
    AcquisitionSettled,
    CredentialProbed,
    EnhancementChunk,
    EnhancementDone,
    EnhancementError,
    EnhancementStallTimeout,
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
from orchestrator.reducer import TIMER_ENHANCEMENT_STALL, reduce
from orchestrator.run_ids import RunIds
from orchestrator.state_dataclass import EnhancementRequest, OrchestratorState


# ---------------------------------------------------------------------
# Event helpers
# ---------------------------------------------------------------------

def _perform():
    return PerformAction(event_type=EventType.PERFORM_ACTION, ts_ms=0)


def _settled(connected):
    return AcquisitionSettled(
        event_type=EventType.ACQUISITION_SETTLED, ts_ms=0, connected=connected
    )


def _chunk(run_id, delta):
    return EnhancementChunk(
        event_type=EventType.ENHANCEMENT_CHUNK, ts_ms=0, run_id=run_id, delta=delta
    )


def _done(run_id):
    return EnhancementDone(event_type=EventType.ENHANCEMENT_DONE, ts_ms=0, run_id=run_id)


def _error(run_id, kind, message="Failed to enhance text. Please check your connection."):
    return EnhancementError(
        event_type=EventType.ENHANCEMENT_ERROR,
        ts_ms=0,
        run_id=run_id,
        kind=kind,
        message=message,
    )


def _edit(text):
    return InputEdited(event_type=EventType.INPUT_EDITED, ts_ms=0, text=text)


def _decisions(cmds):
    return [c.event["decision"] for c in cmds if isinstance(c, LogEvent)]


def _streaming(run_id=1, output="", text="hello"):
    return OrchestratorState(
        state=State.STREAMING,
        active_runs=RunIds(enhancement=run_id),
        input_text=text,
        in_flight_request=EnhancementRequest(text=text, tone=Tone.GENERAL),
        output_text=output,
    )


# ---------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------

def test_session_start_probes_for_existing_credential():
    state = OrchestratorState()

    new_state, cmds = reduce(
        state,
        SessionStarted(event_type=EventType.SESSION_STARTED, ts_ms=0, session_id="s"),
    )

    assert new_state == state
    assert any(isinstance(c, ProbeCredential) for c in cmds)


def test_positive_probe_restores_idle():
    new_state, cmds = reduce(
        OrchestratorState(),
        CredentialProbed(event_type=EventType.CREDENTIAL_PROBED, ts_ms=0, connected=True),
    )

    assert new_state.state is State.IDLE
    assert "credential_restored" in _decisions(cmds)


def test_probe_during_pending_acquisition_is_ignored():
    state = OrchestratorState(acquisition_pending=True)

    new_state, cmds = reduce(
        state,
        CredentialProbed(event_type=EventType.CREDENTIAL_PROBED, ts_ms=0, connected=True),
    )

    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "acquisition_pending"


def test_session_end_cancels_in_flight_run():
    _, cmds = reduce(
        _streaming(run_id=4),
        SessionEnded(event_type=EventType.SESSION_ENDED, ts_ms=0, session_id="s"),
    )

    assert CancelEnhancement(run_id=4) in cmds
    assert CancelTimer(timer_id=TIMER_ENHANCEMENT_STALL) in cmds


# ---------------------------------------------------------------------
# Acquisition and fall-through
# ---------------------------------------------------------------------

def test_perform_action_unauthenticated_starts_acquisition():
    state = OrchestratorState(input_text="hello", tone=Tone.WITTY)

    new_state, cmds = reduce(state, _perform())

    assert new_state.state is State.UNAUTHENTICATED
    assert new_state.acquisition_pending is True
    assert new_state.pending_request == EnhancementRequest(text="hello", tone=Tone.WITTY)
    assert any(isinstance(c, StartAcquisition) for c in cmds)


def test_acquisition_failure_stays_unauthenticated_with_message():
    state = OrchestratorState(
        input_text="hello",
        output_text="previous",
        acquisition_pending=True,
        pending_request=EnhancementRequest(text="hello", tone=Tone.GENERAL),
    )

    new_state, cmds = reduce(state, _settled(False))

    assert new_state.state is State.UNAUTHENTICATED
    assert new_state.last_error == "Connection cancelled or failed."
    assert new_state.last_failure is FailureKind.ACQUISITION_FAILED
    assert new_state.output_text == "previous"
    assert new_state.acquisition_pending is False
    assert new_state.pending_request is None
    assert not any(isinstance(c, StartEnhancement) for c in cmds)


def test_acquisition_success_falls_through_into_streaming():
    state, _ = reduce(OrchestratorState(input_text="hello"), _perform())

    # Edits made while the selector is open do not change the request.
    state, _ = reduce(state, _edit("something else"))

    new_state, cmds = reduce(state, _settled(True))

    assert new_state.state is State.STREAMING
    assert new_state.active_runs.enhancement == 1
    assert new_state.acquisition_pending is False

    starts = [c for c in cmds if isinstance(c, StartEnhancement)]
    assert len(starts) == 1
    assert starts[0].text == "hello"
    assert starts[0].run_id == 1

    changes = [
        (c.event["details"]["from_state"], c.event["details"]["to_state"])
        for c in cmds
        if isinstance(c, LogEvent) and c.event["decision"] == "state_changed"
    ]
    assert changes == [("UNAUTHENTICATED", "IDLE"), ("IDLE", "STREAMING")]


def test_fall_through_scenario_ends_idle_with_output():
    state, _ = reduce(OrchestratorState(input_text="hello"), _perform())
    state, _ = reduce(state, _settled(True))
    run_id = state.active_runs.enhancement

    state, _ = reduce(state, _chunk(run_id, "hello "))
    state, _ = reduce(state, _chunk(run_id, "👋"))
    state, _ = reduce(state, _done(run_id))

    assert state.state is State.IDLE
    assert state.output_text == "hello 👋"


def test_empty_input_click_signs_in_without_generating():
    state, cmds = reduce(OrchestratorState(input_text="  "), _perform())
    assert state.pending_request is None
    assert any(isinstance(c, StartAcquisition) for c in cmds)

    state, cmds = reduce(state, _settled(True))

    assert state.state is State.IDLE
    assert not any(isinstance(c, StartEnhancement) for c in cmds)


def test_second_acquisition_never_starts_while_pending():
    state, _ = reduce(OrchestratorState(input_text="hello"), _perform())

    new_state, cmds = reduce(state, _perform())
    assert new_state == state
    assert not any(isinstance(c, StartAcquisition) for c in cmds)

    new_state, cmds = reduce(state, SignIn(event_type=EventType.SIGN_IN, ts_ms=0))
    assert new_state == state
    assert not any(isinstance(c, StartAcquisition) for c in cmds)


def test_sign_in_success_clears_previous_error():
    state = OrchestratorState(last_error="Session expired. Please sign in again.")
    state, cmds = reduce(state, SignIn(event_type=EventType.SIGN_IN, ts_ms=0))
    assert any(isinstance(c, StartAcquisition) for c in cmds)

    state, _ = reduce(state, _settled(True))

    assert state.state is State.IDLE
    assert state.last_error is None


def test_unexpected_settlement_is_ignored():
    state = OrchestratorState(state=State.IDLE)
    new_state, cmds = reduce(state, _settled(True))
    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "acquisition_not_pending"


# ---------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------

def test_perform_action_while_streaming_is_noop():
    state = _streaming(run_id=2, output="partial")

    new_state, cmds = reduce(state, _perform())

    assert new_state == state
    assert _decisions(cmds) == ["ignore"]


def test_perform_action_over_limit_is_noop():
    state = OrchestratorState(state=State.IDLE, input_text="x" * 701)

    new_state, cmds = reduce(state, _perform())

    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "input_over_limit"


def test_perform_action_at_limit_starts():
    state = OrchestratorState(state=State.IDLE, input_text="x" * 700)

    new_state, _ = reduce(state, _perform())

    assert new_state.state is State.STREAMING


def test_perform_action_over_limit_does_not_acquire():
    state = OrchestratorState(input_text="x" * 701)

    new_state, cmds = reduce(state, _perform())

    assert new_state.acquisition_pending is False
    assert not any(isinstance(c, StartAcquisition) for c in cmds)


# ---------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------

def test_start_clears_prior_output_and_error():
    state = OrchestratorState(
        state=State.ERROR,
        input_text="hi",
        output_text="old",
        last_error="Failed to enhance text. Please check your connection.",
        active_runs=RunIds(enhancement=3),
    )

    new_state, cmds = reduce(state, _perform())

    assert new_state.state is State.STREAMING
    assert new_state.output_text == ""
    assert new_state.last_error is None
    assert new_state.active_runs.enhancement == 4
    assert StartTimer(
        timer_id=TIMER_ENHANCEMENT_STALL,
        duration_ms=30_000,
        timeout_event_type=EventType.ENHANCEMENT_STALL_TIMEOUT,
    ) in cmds


def test_superseded_run_contributes_nothing():
    # Run A (1) stalls, run B (2) starts; A's late output must be dropped.
    state = _streaming(run_id=1)
    state, _ = reduce(state, _chunk(1, "A1 "))
    state, _ = reduce(
        state,
        EnhancementStallTimeout(
            event_type=EventType.ENHANCEMENT_STALL_TIMEOUT, ts_ms=0, run_id=1
        ),
    )
    state, _ = reduce(state, _perform())
    assert state.active_runs.enhancement == 2

    state, cmds = reduce(state, _chunk(1, "A2"))
    assert cmds[0].event["details"]["reason"] == "chunk_stale"

    state, _ = reduce(state, _chunk(2, "B1"))
    state, _ = reduce(state, _done(1))
    assert state.state is State.STREAMING

    state, _ = reduce(state, _done(2))
    assert state.output_text == "B1"
    assert state.state is State.IDLE


def test_chunks_after_completion_are_ignored():
    state, _ = reduce(_streaming(run_id=1), _done(1))

    new_state, cmds = reduce(state, _chunk(1, "late"))

    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "chunk_not_streaming"


def test_blank_chunk_is_not_an_update():
    state = _streaming(run_id=1, output="abc")

    new_state, _ = reduce(state, _chunk(1, "  \n"))

    assert new_state == state


def test_chunk_restarts_stall_timer():
    _, cmds = reduce(_streaming(run_id=1), _chunk(1, "x"))

    assert any(
        isinstance(c, StartTimer) and c.timer_id == TIMER_ENHANCEMENT_STALL
        for c in cmds
    )


def test_input_edits_during_streaming_do_not_touch_request():
    state = _streaming(run_id=1, text="hello")

    new_state, _ = reduce(state, _edit("new text"))

    assert new_state.input_text == "new text"
    assert new_state.in_flight_request == EnhancementRequest(text="hello", tone=Tone.GENERAL)
    assert new_state.state is State.STREAMING


def test_tone_change_rejected_while_streaming():
    state = _streaming(run_id=1)

    new_state, _ = reduce(
        state,
        ToneChanged(event_type=EventType.TONE_CHANGED, ts_ms=0, tone=Tone.FORMAL),
    )

    assert new_state.tone is Tone.GENERAL


def test_tone_change_allowed_when_unauthenticated():
    new_state, _ = reduce(
        OrchestratorState(),
        ToneChanged(event_type=EventType.TONE_CHANGED, ts_ms=0, tone=Tone.ROMANTIC),
    )

    assert new_state.tone is Tone.ROMANTIC


def test_clear_input():
    new_state, _ = reduce(
        OrchestratorState(state=State.IDLE, input_text="hello"),
        InputCleared(event_type=EventType.INPUT_CLEARED, ts_ms=0),
    )

    assert new_state.input_text == ""


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

def test_invalid_credential_demotes_and_revokes():
    state = _streaming(run_id=1, text="hi")

    new_state, cmds = reduce(state, _error(1, FailureKind.INVALID_CREDENTIAL))

    assert new_state.state is State.UNAUTHENTICATED
    assert new_state.last_error == "Session expired. Please sign in again."
    assert RevokeCredential(rejected=True) in cmds


def test_missing_credential_is_treated_as_expired_session():
    new_state, cmds = reduce(_streaming(run_id=1), _error(1, FailureKind.CREDENTIAL_MISSING))

    assert new_state.state is State.UNAUTHENTICATED
    assert any(isinstance(c, RevokeCredential) for c in cmds)


def test_enhancement_failure_keeps_session_authenticated():
    state = _streaming(run_id=1, output="par")

    new_state, cmds = reduce(state, _error(1, FailureKind.ENHANCEMENT_FAILED))

    assert new_state.state is State.ERROR
    assert new_state.last_error == "Failed to enhance text. Please check your connection."
    assert new_state.output_text == "par"
    assert not any(isinstance(c, RevokeCredential) for c in cmds)


def test_error_state_can_retry_immediately():
    state = OrchestratorState(state=State.ERROR, input_text="hi", last_error="x")

    new_state, _ = reduce(state, _perform())

    assert new_state.state is State.STREAMING


def test_stale_error_is_ignored():
    state = _streaming(run_id=2)

    new_state, _ = reduce(state, _error(1, FailureKind.INVALID_CREDENTIAL))

    assert new_state == state


def test_stall_timeout_fails_and_cancels_run():
    state = _streaming(run_id=5)

    new_state, cmds = reduce(
        state,
        EnhancementStallTimeout(
            event_type=EventType.ENHANCEMENT_STALL_TIMEOUT, ts_ms=0, run_id=5
        ),
    )

    assert new_state.state is State.ERROR
    assert new_state.last_failure is FailureKind.STALLED
    assert CancelEnhancement(run_id=5) in cmds


# ---------------------------------------------------------------------
# Sign-out
# ---------------------------------------------------------------------

def test_sign_out_clears_input_and_output():
    state = OrchestratorState(state=State.IDLE, input_text="hi", output_text="hi 👋")

    new_state, cmds = reduce(state, SignOut(event_type=EventType.SIGN_OUT, ts_ms=0))

    assert new_state.state is State.UNAUTHENTICATED
    assert new_state.input_text == ""
    assert new_state.output_text == ""
    assert RevokeCredential(rejected=False) in cmds


def test_sign_out_while_streaming_cancels_run():
    new_state, cmds = reduce(
        _streaming(run_id=3, output="par"),
        SignOut(event_type=EventType.SIGN_OUT, ts_ms=0),
    )

    assert new_state.state is State.UNAUTHENTICATED
    assert CancelEnhancement(run_id=3) in cmds

    # A late chunk from the cancelled run is dropped.
    after, _ = reduce(new_state, _chunk(3, "late"))
    assert after.output_text == ""


def test_sign_out_when_unauthenticated_is_noop():
    state = OrchestratorState(input_text="hi")

    new_state, _ = reduce(state, SignOut(event_type=EventType.SIGN_OUT, ts_ms=0))

    assert new_state == state
