"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from orchestrator.enums.failure import FailureKind
from orchestrator.enums.state import State
from orchestrator.enums.tone import Tone
from orchestrator.run_ids import RunIds


# =============================================================================
# Request snapshot
# =============================================================================

@dataclass(frozen=True)
class EnhancementRequest:
    """Input text and tone captured at the moment of the user action."""
    text: str
    tone: Tone


# =============================================================================
# Orchestrator State
# =============================================================================

@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: State = State.UNAUTHENTICATED

    # True between StartAcquisition and AcquisitionSettled.
    acquisition_pending: bool = False

    # Request to run once a pending acquisition succeeds (fall-through).
    # None when the acquisition was a plain sign-in.
    pending_request: EnhancementRequest | None = None

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------
    input_text: str = ""
    tone: Tone = Tone.GENERAL

    # ------------------------------------------------------------------
    # Generation token tracking
    # ------------------------------------------------------------------
    active_runs: RunIds = field(default_factory=RunIds)
    in_flight_request: EnhancementRequest | None = None

    # ------------------------------------------------------------------
    # Enhancement session (append-only while STREAMING)
    # ------------------------------------------------------------------
    output_text: str = ""
    chunks_received: int = 0

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None
    last_failure: FailureKind | None = None
