"""
Failure classification for enhancement requests.

The reducer maps each kind to a state transition:
- ACQUISITION_FAILED:  stay UNAUTHENTICATED, show cancellation message
- INVALID_CREDENTIAL:  revoke, demote to UNAUTHENTICATED
- CREDENTIAL_MISSING:  treated like INVALID_CREDENTIAL
- ENHANCEMENT_FAILED:  enter ERROR (still authenticated)
- STALLED:             treated like ENHANCEMENT_FAILED, run is cancelled
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classified failure reported back into the reducer."""

    ACQUISITION_FAILED = "acquisition_failed"
    INVALID_CREDENTIAL = "invalid_credential"
    CREDENTIAL_MISSING = "credential_missing"
    ENHANCEMENT_FAILED = "enhancement_failed"
    STALLED = "stalled"
