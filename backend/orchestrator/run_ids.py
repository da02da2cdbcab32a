"""
Generation token container.

Rules:
- Tokens are monotonic integers.
- They are owned and incremented ONLY by the orchestrator reducer.
- This module defines structure, not behavior.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RunIds:
    """
    Immutable container for the active generation token.

    Semantics:
    - A value of 0 means "no enhancement has been started yet".
    - Once a token is incremented, it is never reused.
    - Events carrying any other token are stale and are dropped.
    """

    enhancement: int = 0
