from typing import Optional

import paramiko

NON_RETRYABLE_PHRASES = (
    "authentication",
    "permission denied",
    "invalid credentials",
    "authorization",
    "access denied",
)


class BridgeError(Exception):
    """Base class for bridge failures."""


class SourceError(BridgeError):
    """The dispatch platform API could not be reached or answered badly."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransferError(BridgeError):
    """A transfer channel failed to store a file."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


def classify_transfer_error(exc: BaseException) -> bool:
    """True when the failure is worth retrying."""
    if isinstance(exc, TransferError):
        return exc.retryable
    if isinstance(exc, (paramiko.AuthenticationException, PermissionError)):
        return False
    message = str(exc).lower()
    return not any(phrase in message for phrase in NON_RETRYABLE_PHRASES)
