"""
Enhancement failure taxonomy and provider error classification.

Every exception leaving the pipeline is one of the classes below.
Raw provider text is logged, never shown to the user.
"""

from __future__ import annotations

import openai

from orchestrator.enums.failure import FailureKind
from constants import (
    INVALID_CREDENTIAL_SIGNATURES,
    MSG_CREDENTIAL_MISSING,
    MSG_ENHANCEMENT_FAILED,
    MSG_SESSION_EXPIRED,
)


class PipelineError(Exception):
    """Base class. message is always safe to show."""

    kind: FailureKind = FailureKind.ENHANCEMENT_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CredentialMissing(PipelineError):
    """No credential resolvable from the snapshot. Precondition failure."""

    kind = FailureKind.CREDENTIAL_MISSING

    def __init__(self, message: str = MSG_CREDENTIAL_MISSING) -> None:
        super().__init__(message)


class InvalidCredential(PipelineError):
    """Provider rejected the key or could not resolve the addressed resource."""

    kind = FailureKind.INVALID_CREDENTIAL

    def __init__(self, message: str = MSG_SESSION_EXPIRED) -> None:
        super().__init__(message)


class EnhancementFailed(PipelineError):
    """Any other provider or network failure."""

    kind = FailureKind.ENHANCEMENT_FAILED

    def __init__(self, message: str = MSG_ENHANCEMENT_FAILED) -> None:
        super().__init__(message)


_REJECTION_TYPES: tuple[type[Exception], ...] = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.NotFoundError,
)


def classify_provider_error(exc: BaseException) -> PipelineError:
    """
    Map a raw provider exception to the taxonomy.

    Typed SDK errors come first; the text match covers providers that
    report a bad key as a generic 400.
    """
    if isinstance(exc, PipelineError):
        return exc

    if isinstance(exc, _REJECTION_TYPES):
        return InvalidCredential()

    text = str(exc)
    if any(sig in text for sig in INVALID_CREDENTIAL_SIGNATURES):
        return InvalidCredential()

    return EnhancementFailed()
