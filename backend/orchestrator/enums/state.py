"""
Authoritative session state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    High-level deterministic control states for a single enhancer session.

    UNAUTHENTICATED:
        No usable credential. A pending acquisition does not change the
        state; it is tracked separately by the reducer.

    IDLE / STREAMING / ERROR:
        Authenticated sub-states. ERROR is idle-with-message: the session
        stays authenticated and accepts the next action immediately.
    """

    UNAUTHENTICATED = "UNAUTHENTICATED"
    IDLE = "IDLE"
    STREAMING = "STREAMING"
    ERROR = "ERROR"
