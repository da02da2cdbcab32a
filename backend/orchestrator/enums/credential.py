"""
Credential status enumeration.

Separate from and independent of the State enum: State answers
"what is the session doing?", CredentialStatus answers "may it call
the text service at all?".
"""

from __future__ import annotations

from enum import Enum


class CredentialStatus(str, Enum):
    """Process-wide "has a usable credential" fact."""

    CONNECTED = "CONNECTED"
    NOT_CONNECTED = "NOT_CONNECTED"
