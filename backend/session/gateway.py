"""
Session gateway.

Responsibilities:
- Owns EmojiSession lifecycle
- Wires broker, key platform, enhancement adapter and runtime
- Tracks connection_status independently of orchestrator state
- Routes inbound JSON control messages -> orchestrator events
- Routes key-selection answers -> key platform
- Forwards events into runtime

NOT responsible for:
- Executing commands
- Any state machine logic
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from adapters.keys.interactive import InteractiveKeyPlatform
from adapters.llm.streaming import ClientFactory, StreamingEnhancementAdapter
from catalog.tones import all_descriptors
from constants import CHAR_LIMIT
from observability.logger import log_event
from orchestrator.enums.tone import Tone
from orchestrator.events import (
    Event,
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
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState
from session.connection_status import ConnectionStatus
from session.credentials import CredentialBroker
from session.emoji_session import EmojiSession, Publisher

if TYPE_CHECKING:
    from config import AppConfig


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """JSON messages to send to the client, in order."""
    outbound_json: tuple[dict[str, Any], ...] = ()


# Inbound message types that map 1:1 to field-less events.
_SIMPLE_EVENTS: dict[str, tuple[type[Event], EventType]] = {
    "PERFORM_ACTION": (PerformAction, EventType.PERFORM_ACTION),
    "SIGN_IN": (SignIn, EventType.SIGN_IN),
    "SIGN_OUT": (SignOut, EventType.SIGN_OUT),
    "CLEAR_INPUT": (InputCleared, EventType.INPUT_CLEARED),
}


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one client session."""

    def __init__(
        self,
        *,
        config: AppConfig,
        client_factory: ClientFactory,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self.session: EmojiSession | None = None

    async def on_ws_connect(self) -> GatewayResult:
        """Build the session and start the credential probe."""
        session_id = _new_session_id()

        session = EmojiSession(session_id=session_id)
        session.connection_status = ConnectionStatus.UP
        self.session = session

        platform = InteractiveKeyPlatform(
            notify=session.publish,
            initial_key=self._config.preselected_api_key,
        )
        broker = CredentialBroker(platform=platform, session_id=session_id)
        session.key_platform = platform
        session.broker = broker

        runtime = Runtime(
            initial_state=OrchestratorState(),
            context=RuntimeExecutionContext(session=session),
        )

        adapter = StreamingEnhancementAdapter(
            emit_event=runtime.handle_event,
            credentials=broker.snapshot,
            client_factory=self._client_factory,
            model=self._config.llm_model,
            session_id=session_id,
        )
        session.attach_enhancement_adapter(adapter)
        session.attach_runtime(runtime)

        await self._dispatch(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "char_limit": CHAR_LIMIT,
            "default_tone": Tone.GENERAL.value,
            "tones": [
                {
                    "id": d.id.value,
                    "label": d.label,
                    "icon_hint": d.icon_hint,
                    "description": d.description,
                }
                for d in all_descriptors()
            ],
            "config": {
                "provider": self._config.llm_provider,
                "model": self._config.llm_model,
            },
        }

        return GatewayResult(outbound_json=(init_msg,) + self._drain_control_out())

    async def attach_publisher(self, publisher: Publisher) -> None:
        """
        Switch the session to push delivery.

        Anything buffered before this call is delivered first. Messages
        published by background tasks while the backlog is being sent
        land in the buffer and are drained on the next pass; the
        publisher is attached only once a drain comes back empty.
        """
        if self.session is None:
            return
        while True:
            backlog = self.session.drain_control()
            if not backlog:
                break
            for msg in backlog:
                await publisher(msg)
        # No await between the empty drain and the attach.
        self.session.attach_publisher(publisher)

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        session = self.session
        session.connection_status = ConnectionStatus.CLOSING
        session.attach_publisher(None)

        await self._dispatch(
            SessionEnded(
                event_type=EventType.SESSION_ENDED,
                ts_ms=_now_ms(),
                session_id=session.session_id,
            )
        )

        if session.runtime is not None:
            await session.runtime.shutdown()

        session.connection_status = ConnectionStatus.DOWN
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_DISCONNECTED",
            **session.log_context(),
            "reason": reason,
        })

        return GatewayResult(outbound_json=self._drain_control_out())

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to orchestrator events or the key platform."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_len": len(payload),
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.session.session_id,
                "error": str(e),
            })
            return GatewayResult()

        if not isinstance(data, dict):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MALFORMED_MESSAGE",
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        msg_type = data.get("type")
        ts_ms = data.get("ts_ms", _now_ms())

        event: Event | None = None

        if msg_type in _SIMPLE_EVENTS:
            cls, event_type = _SIMPLE_EVENTS[msg_type]
            event = cls(event_type=event_type, ts_ms=ts_ms)

        elif msg_type == "EDIT_INPUT":
            text = data.get("text")
            if not isinstance(text, str):
                return self._reject(msg_type, "text_not_string")
            event = InputEdited(event_type=EventType.INPUT_EDITED, ts_ms=ts_ms, text=text)

        elif msg_type == "SELECT_TONE":
            try:
                tone = Tone(data.get("tone"))
            except ValueError:
                return self._reject(msg_type, "unknown_tone")
            event = ToneChanged(event_type=EventType.TONE_CHANGED, ts_ms=ts_ms, tone=tone)

        elif msg_type == "SELECT_KEY":
            api_key = data.get("api_key")
            if not isinstance(api_key, str):
                return self._reject(msg_type, "api_key_not_string")
            self.session.key_platform.submit_key(api_key)
            return GatewayResult(outbound_json=self._drain_control_out())

        elif msg_type == "CANCEL_KEY_SELECTION":
            self.session.key_platform.cancel_selection()
            return GatewayResult(outbound_json=self._drain_control_out())

        else:
            return self._reject(msg_type, "unknown_message_type")

        await self._dispatch(event)
        return GatewayResult(outbound_json=self._drain_control_out())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reject(self, msg_type: Any, reason: str) -> GatewayResult:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "MESSAGE_REJECTED",
            "session_id": self.session.session_id if self.session else None,
            "msg_type": msg_type,
            "reason": reason,
        })
        return GatewayResult()

    async def _dispatch(self, event: Event) -> None:
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_WITHOUT_SESSION",
                "dropped_event": event.event_type.value,
            })
            return

        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"
        await runtime.handle_event(event)

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.session is None:
            return ()
        return self.session.drain_control()
