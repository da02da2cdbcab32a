"""
Credential broker.

Owns the single "has a usable credential" fact for one session and
the flows that change it:
- check_existing(): best-effort probe, never raises
- acquire():        interactive selection + strict re-check
- revoke():         local sign-out; a rejected key is also discarded

Only the runtime (executing reducer commands) calls the mutators.
Everything else sees an immutable CredentialSnapshot.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from adapters.keys.base import KeyPlatform
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.enums.credential import CredentialStatus


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class CredentialSnapshot:
    """Read-only view of the credential handed to the pipeline."""
    status: CredentialStatus
    api_key: str | None = None

    @property
    def usable(self) -> bool:
        return self.status is CredentialStatus.CONNECTED and bool(self.api_key)


class CredentialBroker:
    """
    Single writer of the session's CredentialStatus.

    The status starts NOT_CONNECTED and is promoted by a confirming
    probe or a confirmed acquisition. revoke() is UI-level only; the
    platform keeps its selection unless the provider rejected the key.
    """

    def __init__(self, *, platform: KeyPlatform, session_id: str | None = None) -> None:
        self._platform = platform
        self._session_id = session_id
        self._status = CredentialStatus.NOT_CONNECTED

    @property
    def status(self) -> CredentialStatus:
        return self._status

    async def check_existing(self) -> CredentialStatus:
        """
        Ask the platform whether a key is already selected.

        Never raises: a failing probe is logged and reported as
        NOT_CONNECTED without touching the current status.
        """
        try:
            selected = await self._platform.has_selected_api_key()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CREDENTIAL_PROBE_FAILED",
                "session_id": self._session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return CredentialStatus.NOT_CONNECTED

        if not selected:
            return CredentialStatus.NOT_CONNECTED

        self._status = CredentialStatus.CONNECTED
        return CredentialStatus.CONNECTED

    async def acquire(self) -> CredentialStatus:
        """
        Run the platform's selection flow, then re-check strictly.

        Cancellation and silent failure both yield NOT_CONNECTED; this
        layer cannot tell them apart.
        """
        try:
            with timed("credential_acquisition", session_id=self._session_id):
                await self._platform.open_select_key()
                # Do not trust the flow's own outcome.
                selected = await self._platform.has_selected_api_key()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CREDENTIAL_ACQUISITION_FAILED",
                "session_id": self._session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return CredentialStatus.NOT_CONNECTED

        if not selected:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CREDENTIAL_ACQUISITION_UNCONFIRMED",
                "session_id": self._session_id,
            })
            return CredentialStatus.NOT_CONNECTED

        self._status = CredentialStatus.CONNECTED
        return CredentialStatus.CONNECTED

    def revoke(self, *, rejected: bool = False) -> None:
        self._status = CredentialStatus.NOT_CONNECTED
        if not rejected:
            return
        self._platform.discard_selected_api_key()
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CREDENTIAL_REJECTED_KEY_DISCARDED",
            "session_id": self._session_id,
        })

    def snapshot(self) -> CredentialSnapshot:
        if self._status is not CredentialStatus.CONNECTED:
            return CredentialSnapshot(status=self._status)
        return CredentialSnapshot(
            status=self._status,
            api_key=self._platform.selected_api_key(),
        )
