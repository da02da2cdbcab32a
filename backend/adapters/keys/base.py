"""
Key platform contract.

The platform is the external facility that lets the user pick an API
key and retains the selection. It is opaque to the rest of the system:
the broker only asks whether a key is selected, asks it to open its
selection flow, reads the selected key and asks it to forget a key
the provider rejected.

Rules:
- open_select_key() resolving says nothing about success; callers
  must re-check with has_selected_api_key().
- No orchestration, no session state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyPlatform(ABC):
    """Abstract external key-selection facility."""

    @abstractmethod
    async def has_selected_api_key(self) -> bool:
        """True iff a key is currently selected on the platform."""

    @abstractmethod
    async def open_select_key(self) -> None:
        """
        Open the interactive selection flow and resolve when it closes.

        May block indefinitely on user interaction.
        """

    @abstractmethod
    def selected_api_key(self) -> str | None:
        """The selected key, or None."""

    def discard_selected_api_key(self) -> None:
        """
        Forget the selected key after the provider rejected it.

        Platforms that cannot forget a selection keep it; the broker's
        strict re-check then decides.
        """
