"""
Side-effect command definitions for the orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.enums.tone import Tone
from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Credentials
    PROBE_CREDENTIAL = "PROBE_CREDENTIAL"
    START_ACQUISITION = "START_ACQUISITION"
    REVOKE_CREDENTIAL = "REVOKE_CREDENTIAL"

    # Enhancement
    START_ENHANCEMENT = "START_ENHANCEMENT"
    CANCEL_ENHANCEMENT = "CANCEL_ENHANCEMENT"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Credential Commands
# =============================================================================

@dataclass(frozen=True)
class ProbeCredential(Command):
    """Ask the broker whether a key is already selected."""
    command_type: CommandType = CommandType.PROBE_CREDENTIAL


@dataclass(frozen=True)
class StartAcquisition(Command):
    """
    Open the interactive key selection.

    The runtime must emit exactly one AcquisitionSettled in response.
    """
    command_type: CommandType = CommandType.START_ACQUISITION


@dataclass(frozen=True)
class RevokeCredential(Command):
    """
    Clear the local Connected fact. Not a platform revocation.

    rejected=True means the provider refused the key; the session then
    forgets it so a later selection flow cannot silently reuse it.
    """
    rejected: bool = False
    command_type: CommandType = CommandType.REVOKE_CREDENTIAL


# =============================================================================
# Enhancement Commands
# =============================================================================

@dataclass(frozen=True)
class StartEnhancement(Command):
    """
    Request to start a new streamed enhancement.

    text and tone are the request snapshot; later input edits never
    reach this run.
    """
    run_id: int
    text: str
    tone: Tone
    system_prompt_version: str
    command_type: CommandType = CommandType.START_ENHANCEMENT


@dataclass(frozen=True)
class CancelEnhancement(Command):
    """Advisory cancel of an in-flight run. Stale gating still applies."""
    run_id: int
    command_type: CommandType = CommandType.CANCEL_ENHANCEMENT


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start (or restart) a named timer.

    On expiration, the runtime must inject the specified timeout event.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
