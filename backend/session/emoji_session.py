"""
Emoji session container.

- Owns connection status (gateway-controlled)
- Holds the session's runtime, credential broker, key platform and
  enhancement adapter
- Owns the outbound channel to the client
- NOT a state machine; contains no orchestration logic
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from observability.logger import log_event
from orchestrator.runtime import Runtime
from session.connection_status import ConnectionStatus

Publisher = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class EmojiSession:
    """Mutable runtime container for a single client session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN
    publisher: Publisher | None = None

    # ------------------------------------------------------------------
    # Runtime and collaborators
    # ------------------------------------------------------------------

    runtime: Runtime | None = None
    broker: Any = None  # CredentialBroker in practice
    key_platform: Any = None  # InteractiveKeyPlatform in practice
    enhancement_adapter: Any = None

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_enhancement_adapter(self, adapter: Any) -> None:
        """Adapter must implement EnhancementAdapterProtocol."""
        self.enhancement_adapter = adapter

    def attach_runtime(self, runtime: Runtime) -> None:
        """Must be called after the broker and adapter are attached."""
        self.runtime = runtime

    def attach_publisher(self, publisher: Publisher | None) -> None:
        self.publisher = publisher

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    async def publish(self, msg: dict[str, Any]) -> None:
        """
        Deliver a message to the client.

        With a publisher attached the message is pushed immediately;
        otherwise it is buffered for drain_control(). A publisher that
        fails is detached and the message is buffered instead.
        """
        if self.publisher is None:
            self.enqueue_control(msg)
            return

        try:
            await self.publisher(msg)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": time.time_ns() // 1_000_000,
                "event_type": "PUBLISH_FAILED",
                **self.log_context(),
                "msg_type": msg.get("type"),
                "exception": type(exc).__name__,
            })
            self.publisher = None
            self.enqueue_control(msg)

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        self._control_out.append(msg)

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """Drain all buffered messages in FIFO order."""
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out
