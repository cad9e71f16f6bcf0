# src/ace_rfid_qt5/nfc/lock.py
# Lock / password diagnostics for NTAG21x tags. Read-only.
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..constants import AUTH0_DISABLED, CFG0_PAGE, CFG1_PAGE, DYNAMIC_LOCK_PAGE, STATIC_LOCK_PAGE
from .errors import ErrorKind, TransportError
from .transport import PageTransport

log = logging.getLogger(__name__)

# bits of static lock byte 0 (page 2, byte 2)
LOCK_PAGES_3_15 = 0x08
LOCK_OTP = 0x02
LOCK_BLOCK_BITS = 0x01


@dataclass(frozen=True)
class LockVerdict:
    pages_locked: bool
    lock_bits_locked: bool
    otp_locked: bool
    dynamic_lock: Optional[Tuple[int, int, int]] = None
    auth0: Optional[int] = None
    access: Optional[int] = None

    @property
    def password_page(self) -> Optional[int]:
        """First page that needs PWD_AUTH, or None without password protection."""
        if self.auth0 is None or self.auth0 >= AUTH0_DISABLED:
            return None
        return self.auth0

    @property
    def password_required(self) -> bool:
        return self.password_page is not None

    @property
    def dynamic_locked(self) -> bool:
        return bool(self.dynamic_lock) and any(self.dynamic_lock)

    def describe(self) -> str:
        """Multi-line status text for display."""
        lines = [
            "Pages 3-15: " + ("LOCKED" if self.pages_locked else "unlocked"),
            "Lock bits: " + ("PERMANENTLY LOCKED" if self.lock_bits_locked else "can be modified"),
            "OTP area: " + ("LOCKED" if self.otp_locked else "unlocked"),
        ]
        if self.dynamic_lock is None:
            lines.append("Dynamic lock bytes: not available (smaller tag variant)")
        elif self.dynamic_locked:
            lines.append("Dynamic lock bytes: {:02X} {:02X} {:02X} (pages 16+ may be blocked)"
                         .format(*self.dynamic_lock))
        else:
            lines.append("Dynamic lock bytes: none set")
        if self.auth0 is None:
            lines.append("Password protection: unknown (config pages not readable)")
        elif self.password_required:
            lines.append(f"Password protection: AUTH0=0x{self.auth0:02X}, required from page {self.auth0}"
                         + (f", ACCESS=0x{self.access:02X}" if self.access is not None else ""))
        else:
            lines.append("Password protection: none")
        return "\n".join(lines)


def build_verdict(static: bytes, dynamic: Optional[bytes],
                  cfg0: Optional[bytes], cfg1: Optional[bytes]) -> LockVerdict:
    """Classify raw page contents. Pure: no I/O."""
    lock0 = static[2]
    return LockVerdict(
        pages_locked=bool(lock0 & LOCK_PAGES_3_15),
        lock_bits_locked=bool(lock0 & LOCK_BLOCK_BITS),
        otp_locked=bool(lock0 & LOCK_OTP),
        dynamic_lock=tuple(dynamic[:3]) if dynamic and len(dynamic) >= 3 else None,
        auth0=cfg0[3] if cfg0 and len(cfg0) >= 4 else None,
        access=cfg1[0] if cfg1 else None,
    )


def _read_optional(tag: PageTransport, page: int, what: str) -> Optional[bytes]:
    try:
        return tag.read_page(page)
    except TransportError as e:
        log.info("Could not read %s (page %d): %s", what, page, e)
        return None


def diagnose(tag: PageTransport) -> LockVerdict:
    """
    Read lock and configuration pages and build a verdict.

    The dynamic lock page does not exist on smaller tags; failing to read it
    (or the config pages) leaves the related fields empty.

    Raises:
        TransportError: the static lock page could not be read.
    """
    static = tag.read_page(STATIC_LOCK_PAGE)
    log.debug("Static lock bytes: %02X %02X", static[2], static[3])
    dynamic = _read_optional(tag, DYNAMIC_LOCK_PAGE, "dynamic lock bytes")
    cfg0 = _read_optional(tag, CFG0_PAGE, "CFG0")
    cfg1 = _read_optional(tag, CFG1_PAGE, "CFG1") if cfg0 is not None else None
    verdict = build_verdict(static, dynamic, cfg0, cfg1)
    log.debug("Lock verdict: %s", verdict)
    return verdict


def classify_failure(verdict: LockVerdict) -> ErrorKind:
    """Turn a verdict into the reason a write/format most likely failed."""
    if verdict.password_required:
        return ErrorKind.PASSWORD_REQUIRED
    if verdict.pages_locked or verdict.dynamic_locked:
        return ErrorKind.PAGES_LOCKED
    if verdict.lock_bits_locked:
        return ErrorKind.PERMANENTLY_LOCKED
    if verdict.otp_locked:
        return ErrorKind.OTP_LOCKED
    return ErrorKind.UNKNOWN
