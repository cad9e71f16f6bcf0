# src/ace_rfid_qt5/nfc/session.py
"""
Tag session state machine.

One call to ``TagSession.run`` drives exactly one proximity session:

    IDLE -> DETECTING -> IDENTIFIED -> READING | WRITING | FORMATTING
                                       | CHECKING_LOCK | VERIFYING
         -> COMPLETED | FAILED

Only one command/response exchange is in flight at a time and every page loop
is a plain ``for`` loop. Write and format failures are followed by lock
diagnostics in the same session so the caller gets a classified reason
instead of a bare NAK. Verification after a write needs a second session; the
write outcome hands the written image over as a ``SessionRequest.verify``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple, Union

from PyQt5 import QtCore

from ..config.filaments import MaterialRecord
from ..constants import (
    BASE_PAGE, CAPABILITY_CONTAINER, CC_PAGE, DATA_PAGES, IMAGE_SIZE, READ_PAGES, STATIC_LOCK_PAGE,
)
from . import codec
from .auth import try_passwords
from .errors import ErrorKind, ProtectionError, ProtectionKind, TagError, TransportError
from .lock import LockVerdict, classify_failure, diagnose
from .transport import PageTransport, TagLink

log = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    IDENTIFIED = "identified"
    READING = "reading"
    WRITING = "writing"
    FORMATTING = "formatting"
    CHECKING_LOCK = "checking_lock"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"


class Operation(Enum):
    READ = "read"
    WRITE = "write"
    FORMAT = "format"
    CHECK_LOCK = "check_lock"
    VERIFY = "verify"


_ACTIVE_STATE = {
    Operation.READ: SessionState.READING,
    Operation.WRITE: SessionState.WRITING,
    Operation.FORMAT: SessionState.FORMATTING,
    Operation.CHECK_LOCK: SessionState.CHECKING_LOCK,
    Operation.VERIFY: SessionState.VERIFYING,
}


@dataclass(frozen=True)
class SessionRequest:
    operation: Operation
    record: Optional[MaterialRecord] = None
    expected: Optional[bytes] = None
    # explicit opt-in: authenticate with these before writing
    passwords: Tuple[bytes, ...] = ()

    @classmethod
    def read(cls) -> "SessionRequest":
        return cls(Operation.READ)

    @classmethod
    def write(cls, record: MaterialRecord, passwords=()) -> "SessionRequest":
        return cls(Operation.WRITE, record=record, passwords=tuple(passwords))

    @classmethod
    def format(cls) -> "SessionRequest":
        return cls(Operation.FORMAT)

    @classmethod
    def check_lock(cls) -> "SessionRequest":
        return cls(Operation.CHECK_LOCK)

    @classmethod
    def verify(cls, expected: Optional[bytes] = None) -> "SessionRequest":
        return cls(Operation.VERIFY, expected=expected)


# ---------- Outcomes ----------

@dataclass(frozen=True)
class ReadOk:
    data: bytes
    uid: bytes = b""


@dataclass(frozen=True)
class WriteOk:
    image: bytes
    uid: bytes = b""

    def verify_request(self) -> SessionRequest:
        return SessionRequest.verify(self.image)


@dataclass(frozen=True)
class FormatOk:
    uid: bytes = b""


@dataclass(frozen=True)
class LockReport:
    verdict: LockVerdict
    uid: bytes = b""


@dataclass(frozen=True)
class VerifyOk:
    compared: int


@dataclass(frozen=True)
class VerifyMismatch:
    count: int
    first_offset: int
    compared: int


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    message: str
    verdict: Optional[LockVerdict] = None
    error: Optional[TagError] = field(default=None, compare=False)


SessionOutcome = Union[ReadOk, WriteOk, FormatOk, LockReport, VerifyOk, VerifyMismatch, Failed]

_PROTECTION = {
    ErrorKind.PASSWORD_REQUIRED: ProtectionKind.PASSWORD_REQUIRED,
    ErrorKind.PAGES_LOCKED: ProtectionKind.PAGES_LOCKED,
    ErrorKind.PERMANENTLY_LOCKED: ProtectionKind.PERMANENTLY_LOCKED,
    ErrorKind.OTP_LOCKED: ProtectionKind.OTP_LOCKED,
}

_REASON = {
    ErrorKind.PASSWORD_REQUIRED: "tag is password protected",
    ErrorKind.PAGES_LOCKED: "tag has write-protected pages",
    ErrorKind.PERMANENTLY_LOCKED: "lock bits are permanently locked",
    ErrorKind.OTP_LOCKED: "OTP area is locked",
    ErrorKind.UNKNOWN: "no lock or password found",
}


class VerifySlot:
    """Holds the last written image until one verify takes it."""

    def __init__(self):
        self._image: Optional[bytes] = None

    def put(self, image: bytes) -> None:
        self._image = bytes(image)

    def take(self) -> Optional[bytes]:
        image, self._image = self._image, None
        return image

    @property
    def pending(self) -> bool:
        return self._image is not None


class TagSession:
    """
    Runs one operation per proximity session against an injected TagLink.

    sleep(ms) paces consecutive page writes; on_state(state) observes every
    transition.
    """

    def __init__(self, link: TagLink, *, page_delay_ms: int = 5, session_timeout_s: float = 30.0,
                 sleep: Optional[Callable[[int], None]] = None,
                 on_state: Optional[Callable[[SessionState], None]] = None):
        self._link = link
        self.page_delay_ms = page_delay_ms
        self.session_timeout_s = session_timeout_s
        self._sleep = sleep or QtCore.QThread.msleep
        self._on_state = on_state
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    def _enter(self, state: SessionState) -> None:
        self._state = state
        log.debug("Session state -> %s", state.value)
        if self._on_state:
            self._on_state(state)

    # ---------- entry point ----------
    def run(self, request: SessionRequest) -> SessionOutcome:
        self._state = SessionState.IDLE
        if request.operation is Operation.VERIFY and request.expected is None:
            outcome: SessionOutcome = Failed(ErrorKind.NOTHING_TO_VERIFY, "No written data to verify.")
            self._enter(SessionState.FAILED)
            return outcome
        if request.operation is Operation.WRITE and request.record is None:
            raise ValueError("write request without a record")

        handler = {
            Operation.READ: self._read,
            Operation.WRITE: self._write,
            Operation.FORMAT: self._format,
            Operation.CHECK_LOCK: self._check_lock,
            Operation.VERIFY: self._verify,
        }[request.operation]

        self._enter(SessionState.DETECTING)
        try:
            with self._link.open(self.session_timeout_s) as tag:
                uid = tag.identify()
                log.info("Tag detected, UID: %s", uid.hex(":").upper())
                self._enter(SessionState.IDENTIFIED)
                self._enter(_ACTIVE_STATE[request.operation])
                outcome = handler(tag, request, uid)
        except TransportError as e:
            log.warning("%s aborted: %s", request.operation.value, e)
            outcome = Failed(ErrorKind.TRANSPORT, str(e), error=e)

        self._enter(SessionState.FAILED if isinstance(outcome, Failed) else SessionState.COMPLETED)
        log.info("Session finished: %s", type(outcome).__name__)
        return outcome

    # ---------- page loops ----------
    def _read_image(self, tag: PageTransport) -> bytes:
        data = bytearray()
        for page in range(BASE_PAGE, BASE_PAGE + READ_PAGES):
            chunk = tag.read_page(page)
            log.debug("Page %d: %s", page, chunk.hex(" ").upper())
            data.extend(chunk)
        log.debug("Read complete: %d bytes", len(data))
        return bytes(data)

    def _write_pages(self, tag: PageTransport, image: bytes) -> None:
        for i, (page, chunk) in enumerate(codec.pages(image, BASE_PAGE, DATA_PAGES)):
            if i:
                self._sleep(self.page_delay_ms)
            log.debug("Writing page %d: %s", page, chunk.hex(" ").upper())
            tag.write_page(page, chunk)
        log.debug("Write complete: %d pages", DATA_PAGES)

    # ---------- operations ----------
    def _read(self, tag: PageTransport, request: SessionRequest, uid: bytes) -> SessionOutcome:
        return ReadOk(self._read_image(tag), uid)

    def _write(self, tag: PageTransport, request: SessionRequest, uid: bytes) -> SessionOutcome:
        image = codec.encode(request.record)
        if request.passwords:
            try:
                try_passwords(tag, request.passwords)
            except ProtectionError as e:
                # a failed write below is diagnosed like any other
                log.warning("%s Writing without authentication.", e)
        try:
            self._write_pages(tag, image)
        except TransportError as e:
            return self._diagnose_failure(tag, "Write", e)
        return WriteOk(image, uid)

    def _format(self, tag: PageTransport, request: SessionRequest, uid: bytes) -> SessionOutcome:
        try:
            tag.write_page(CC_PAGE, CAPABILITY_CONTAINER)
            tag.write_page(STATIC_LOCK_PAGE, bytes(4))
            self._write_pages(tag, bytes(IMAGE_SIZE))
        except TransportError as e:
            return self._diagnose_failure(tag, "Format", e)
        return FormatOk(uid)

    def _check_lock(self, tag: PageTransport, request: SessionRequest, uid: bytes) -> SessionOutcome:
        verdict = diagnose(tag)
        log.info("Lock status:\n%s", verdict.describe())
        return LockReport(verdict, uid)

    def _verify(self, tag: PageTransport, request: SessionRequest, uid: bytes) -> SessionOutcome:
        actual = self._read_image(tag)
        count, first, compared = codec.compare(request.expected, actual)
        if count == 0:
            log.info("Verification OK: all %d bytes match", compared)
            return VerifyOk(compared)
        log.warning("Verification failed: %d byte mismatches, first at byte %d", count, first)
        return VerifyMismatch(count, first, compared)

    def _diagnose_failure(self, tag: PageTransport, what: str, error: TransportError) -> Failed:
        log.warning("%s failed (%s). Checking lock status...", what, error)
        try:
            verdict = diagnose(tag)
        except TransportError as diag_error:
            log.warning("Lock diagnostics failed: %s", diag_error)
            return Failed(ErrorKind.UNKNOWN, f"{what} failed: {error}", error=error)
        kind = classify_failure(verdict)
        message = f"{what} failed: {_REASON[kind]}"
        if kind in _PROTECTION:
            derived = ProtectionError(_PROTECTION[kind], message, page=verdict.password_page)
            derived.__cause__ = error
            return Failed(kind, message, verdict=verdict, error=derived)
        return Failed(kind, message, verdict=verdict, error=error)
