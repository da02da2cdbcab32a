"""
Transport connection status.

Tracked separately from the orchestrator State: a session can be
IDLE or STREAMING regardless of whether the socket is still up.
Owned by SessionGateway.
"""
from enum import Enum


class ConnectionStatus(Enum):
    """WebSocket lifecycle, independent of the enhancement state machine."""
    DOWN = "DOWN"
    UP = "UP"
    CLOSING = "CLOSING"
