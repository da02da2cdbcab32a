"""
Client-driven key platform.

The selection "UI" lives in the browser: opening the flow pushes a
KEY_SELECTION_REQUESTED control message and waits until the client
answers with SELECT_KEY or CANCEL_KEY_SELECTION (routed here by the
gateway).

The selected key is retained by this object for as long as it lives.
It can be seeded with a key selected before the process started.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from adapters.keys.base import KeyPlatform
from observability.logger import log_event

Notify = Callable[[dict[str, Any]], Awaitable[None]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class InteractiveKeyPlatform(KeyPlatform):
    """
    Key selection over the session's control channel.

    Design notes:
    - At most one selection flow is open at a time; a second
      open_select_key() joins the pending one.
    - Answers arriving while no flow is open are logged and dropped.
    - Cancelling the awaiting task (e.g. disconnect) closes the flow.
    """

    def __init__(
        self,
        *,
        notify: Notify | None = None,
        initial_key: str | None = None,
    ) -> None:
        self._notify = notify
        self._key: str | None = initial_key or None
        self._pending: asyncio.Future[str | None] | None = None

    # ------------------------------------------------------------------
    # KeyPlatform
    # ------------------------------------------------------------------

    async def has_selected_api_key(self) -> bool:
        return bool(self._key)

    def selected_api_key(self) -> str | None:
        return self._key

    def discard_selected_api_key(self) -> None:
        self._key = None

    async def open_select_key(self) -> None:
        if self._notify is None:
            raise RuntimeError("key platform has no control channel bound")

        if self._pending is not None and not self._pending.done():
            await asyncio.shield(self._pending)
            return

        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._pending = future

        try:
            await self._notify({
                "type": "KEY_SELECTION_REQUESTED",
                "ts_ms": _now_ms(),
            })
            selected = await future
        finally:
            if self._pending is future:
                self._pending = None

        if selected:
            self._key = selected

    # ------------------------------------------------------------------
    # Client answers (routed by gateway)
    # ------------------------------------------------------------------

    @property
    def selection_open(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit_key(self, api_key: str) -> bool:
        """Resolve the open flow with a key. Returns False if none was open."""
        return self._resolve(api_key.strip() or None, "key_submitted")

    def cancel_selection(self) -> bool:
        """Close the open flow without a key. Returns False if none was open."""
        return self._resolve(None, "key_selection_cancelled")

    def _resolve(self, value: str | None, decision: str) -> bool:
        if not self.selection_open:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "KEY_ANSWER_WITHOUT_SELECTION",
                "decision": decision,
            })
            return False

        assert self._pending is not None
        self._pending.set_result(value)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "KEY_SELECTION_CLOSED",
            "decision": decision,
        })
        return True
