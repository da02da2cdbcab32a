"""
Runtime execution context.

Provides Runtime with live access to the session-owned imperative
resources it needs for command execution (broker, adapter, outbound
channel, status).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from orchestrator.enums.credential import CredentialStatus
from orchestrator.enums.tone import Tone
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from session.emoji_session import EmojiSession


# ---------------------------------------------------------------------
# Collaborator Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class CredentialBrokerProtocol(Protocol):
    async def check_existing(self) -> CredentialStatus: ...
    async def acquire(self) -> CredentialStatus: ...
    def revoke(self, *, rejected: bool = False) -> None: ...


@runtime_checkable
class EnhancementAdapterProtocol(Protocol):
    async def start_enhancement(self, *, run_id: int, text: str, tone: Tone) -> None: ...
    async def cancel(self, run_id: int) -> None: ...
    def force_reset(self) -> None:
        """Cancel every in-flight run without waiting."""


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Live views into session-owned resources, so Runtime never caches
    them.

    Runtime is allowed to:
    - Call the broker and the adapter
    - Push messages to the client
    - Observe connection state

    Runtime is NOT allowed to:
    - Mutate session fields directly
    - Perform orchestration decisions
    """

    def __init__(self, session: EmojiSession) -> None:
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    @property
    def broker(self) -> CredentialBrokerProtocol | None:
        return self.session.broker

    @property
    def enhancement_adapter(self) -> EnhancementAdapterProtocol | None:
        return self.session.enhancement_adapter

    async def publish(self, msg: dict[str, Any]) -> None:
        await self.session.publish(msg)
