"""
Observable session view.

Pure projection of OrchestratorState into the tuple the UI renders:
output, loading flag, error, character counter and validation warning.

Rules:
- No state of its own, no side effects.
- The validation warning is derived from the current input only and is
  independent of the request-outcome error channel.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from catalog.tones import describe
from orchestrator.enums.state import State
from orchestrator.reducer import is_authenticated, is_over_limit
from orchestrator.state_dataclass import OrchestratorState
from constants import (
    ACTION_LABEL_GENERATE,
    ACTION_LABEL_SIGN_IN,
    ACTION_LABEL_STREAMING,
    CHAR_LIMIT,
    limit_warning,
)


@dataclass(frozen=True)
class SessionView:
    """What the user-facing surface receives on every update."""

    state: str
    connected: bool
    acquisition_pending: bool
    input_text: str
    tone: str
    tone_label: str
    output_text: str
    is_loading: bool
    error: str | None
    char_count: int
    char_limit: int
    limit_exceeded: bool
    warning: str | None
    action_label: str
    action_enabled: bool

    def to_message(self) -> dict[str, Any]:
        return {"type": "SESSION_VIEW", **asdict(self)}


def _action_label(state: OrchestratorState) -> str:
    if state.state is State.STREAMING:
        return ACTION_LABEL_STREAMING
    if not is_authenticated(state):
        return ACTION_LABEL_SIGN_IN
    return ACTION_LABEL_GENERATE


def _action_enabled(state: OrchestratorState) -> bool:
    if state.state is State.STREAMING or state.acquisition_pending:
        return False
    if is_over_limit(state.input_text):
        return False
    # Unauthenticated with empty input still signs in.
    if is_authenticated(state) and not state.input_text.strip():
        return False
    return True


def project(state: OrchestratorState) -> SessionView:
    char_count = len(state.input_text)
    return SessionView(
        state=state.state.value,
        connected=is_authenticated(state),
        acquisition_pending=state.acquisition_pending,
        input_text=state.input_text,
        tone=state.tone.value,
        tone_label=describe(state.tone).label,
        output_text=state.output_text,
        is_loading=state.state is State.STREAMING,
        error=state.last_error,
        char_count=char_count,
        char_limit=CHAR_LIMIT,
        limit_exceeded=is_over_limit(state.input_text),
        warning=limit_warning(char_count),
        action_label=_action_label(state),
        action_enabled=_action_enabled(state),
    )
