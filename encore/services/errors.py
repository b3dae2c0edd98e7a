from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    AUTH = "auth"
    DECODE = "decode"
    REJECTED = "rejected"
    STALE = "stale"


class EncoreError(RuntimeError):
    """Failure surfaced to the caller as-is.

    ``kind`` is the discriminator callers branch on; ``detail`` carries the
    backend's own message, unmodified, when there is one.
    """

    kind: ErrorKind = ErrorKind.REJECTED

    def __init__(self, detail: str | None = None, *, status_code: int | None = None):
        super().__init__(detail or self.kind.value)
        self.detail = detail
        self.status_code = status_code

    def display_message(self) -> str:
        return self.detail or _DEFAULT_MESSAGES[self.kind]


class TransportFailure(EncoreError):
    kind = ErrorKind.TRANSPORT


class AuthFailure(EncoreError):
    kind = ErrorKind.AUTH


class DecodeFailure(EncoreError):
    kind = ErrorKind.DECODE


class RequestRejected(EncoreError):
    kind = ErrorKind.REJECTED


class StaleSessionError(EncoreError):
    kind = ErrorKind.STALE


class InvalidTransitionError(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid state transition: {current} -> {target}")
        self.current = current
        self.target = target


class BookingRejectedError(ValueError):
    pass


class ConfigurationError(RuntimeError):
    pass


_DEFAULT_MESSAGES = {
    ErrorKind.TRANSPORT: "Could not reach the server.",
    ErrorKind.AUTH: "Invalid credentials",
    ErrorKind.DECODE: "Unexpected response from the server.",
    ErrorKind.REJECTED: "The request was rejected.",
    ErrorKind.STALE: "The session changed before the request finished.",
}
