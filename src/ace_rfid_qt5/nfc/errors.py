# src/ace_rfid_qt5/nfc/errors.py
"""Error taxonomy for tag sessions.

Exceptions are raised by transports, the authenticator and lock diagnostics.
The session engine catches them and turns them into ``Failed`` outcomes, so
nothing here ever reaches the presentation layer as a raw exception.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class TransportErrorKind(Enum):
    TIMEOUT = "timeout"
    NAK = "nak"
    CONNECTION_LOST = "connection_lost"


class ProtectionKind(Enum):
    PASSWORD_REQUIRED = "password_required"
    PAGES_LOCKED = "pages_locked"
    PERMANENTLY_LOCKED = "permanently_locked"
    OTP_LOCKED = "otp_locked"


class DataErrorKind(Enum):
    """Decode failures. Returned as values by the codec, never raised."""
    TOO_SHORT = "too_short"
    BLANK_TAG = "blank_tag"
    MALFORMED = "malformed"


class TagError(Exception):
    """Base class for all tag related errors."""
    def __init__(self, message: str = "Tag error."):
        super().__init__(message)


class TransportError(TagError):
    """
    A single command/response exchange with the tag failed.

    Attributes
    ----------
    kind : TransportErrorKind
    page : int | None
        Page index of the failed exchange, if the exchange addressed a page.
    sw : tuple[int, int] | None
        PC/SC status word returned by the reader, if any.
    original_exception : Exception | None
        Lower level exception (pyscard) that caused this error.
    """
    def __init__(self, kind: TransportErrorKind, message: str = "Transport error.", *,
                 page: Optional[int] = None, sw: Optional[tuple] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.kind = kind
        self.page = page
        self.sw = sw
        self.original_exception = original_exception

    def __str__(self):
        base_msg = super().__str__()
        if self.original_exception:
            orig_type = type(self.original_exception).__name__
            return f"{base_msg} Original exception: [{orig_type}] {self.original_exception}"
        return base_msg


class AuthenticationRejected(TagError):
    """The tag answered PWD_AUTH with a NAK (wrong password)."""
    def __init__(self, message: str = "Password rejected by tag."):
        super().__init__(message)


class ProtectionError(TagError):
    """Derived protection state; produced after lock diagnostics or exhausted passwords."""
    def __init__(self, kind: ProtectionKind, message: str = "Tag is protected.", *,
                 page: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.page = page


class ErrorKind(Enum):
    """Failure classification carried by a Failed session outcome."""
    TRANSPORT = "transport"
    PASSWORD_REQUIRED = "password_required"
    PAGES_LOCKED = "pages_locked"
    PERMANENTLY_LOCKED = "permanently_locked"
    OTP_LOCKED = "otp_locked"
    NOTHING_TO_VERIFY = "nothing_to_verify"
    BUSY = "busy"
    UNKNOWN = "unknown"
