"""
Unified event definitions for the orchestrator reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Timer events are not run-scoped service events, but carry run_id for
stale gating all the same.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.enums.failure import FailureKind
from orchestrator.enums.tone import Tone


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    PERFORM_ACTION = "PERFORM_ACTION"
    SIGN_IN = "SIGN_IN"
    SIGN_OUT = "SIGN_OUT"
    INPUT_EDITED = "INPUT_EDITED"
    INPUT_CLEARED = "INPUT_CLEARED"
    TONE_CHANGED = "TONE_CHANGED"

    # ------------------------------------------------------------------
    # Credential broker
    # ------------------------------------------------------------------
    CREDENTIAL_PROBED = "CREDENTIAL_PROBED"
    ACQUISITION_SETTLED = "ACQUISITION_SETTLED"

    # ------------------------------------------------------------------
    # Enhancement stream
    # ------------------------------------------------------------------
    ENHANCEMENT_CHUNK = "ENHANCEMENT_CHUNK"
    ENHANCEMENT_DONE = "ENHANCEMENT_DONE"
    ENHANCEMENT_ERROR = "ENHANCEMENT_ERROR"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    ENHANCEMENT_STALL_TIMEOUT = "ENHANCEMENT_STALL_TIMEOUT"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class RunScopedEvent(Event):
    """
    Base class for events produced by one enhancement run.

    The reducer MUST ignore events whose run_id does not match the
    currently active generation token.
    """

    run_id: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """Session created; the runtime should probe for an existing key."""
    session_id: str


@dataclass(frozen=True)
class SessionEnded(Event):
    """Session torn down (client disconnected)."""
    session_id: str


# =============================================================================
# User Action Events
# =============================================================================

@dataclass(frozen=True)
class PerformAction(Event):
    """Primary button: sign in if needed, then enhance the current input."""


@dataclass(frozen=True)
class SignIn(Event):
    """Standalone sign-in, without generation."""


@dataclass(frozen=True)
class SignOut(Event):
    """Local sign-out. Clears input and output."""


@dataclass(frozen=True)
class InputEdited(Event):
    """User changed the input field."""
    text: str


@dataclass(frozen=True)
class InputCleared(Event):
    """Clear-input convenience action."""


@dataclass(frozen=True)
class ToneChanged(Event):
    """User picked a different tone."""
    tone: Tone


# =============================================================================
# Credential Events
# =============================================================================

@dataclass(frozen=True)
class CredentialProbed(Event):
    """Result of the best-effort startup probe."""
    connected: bool


@dataclass(frozen=True)
class AcquisitionSettled(Event):
    """
    Interactive key selection finished.

    connected is the result of the strict re-check, not of the
    selection flow itself.
    """
    connected: bool


# =============================================================================
# Enhancement Events
# =============================================================================

@dataclass(frozen=True)
class EnhancementChunk(RunScopedEvent):
    """Incremental text fragment, never empty or whitespace-only."""
    delta: str


@dataclass(frozen=True)
class EnhancementDone(RunScopedEvent):
    """Stream exhausted successfully."""


@dataclass(frozen=True)
class EnhancementError(RunScopedEvent):
    """
    Stream failed. Already classified at the adapter boundary;
    message is user-safe.
    """
    kind: FailureKind
    message: str


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class EnhancementStallTimeout(Event):
    """No chunk arrived within the stall window."""
    run_id: int
