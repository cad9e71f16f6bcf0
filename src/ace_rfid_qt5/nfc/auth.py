# src/ace_rfid_qt5/nfc/auth.py
# PWD_AUTH with an ordered list of candidate passwords.
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import AuthenticationRejected, ProtectionError, ProtectionKind, TransportError
from .transport import PageTransport

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    secret: bytes
    pack: bytes
    attempts: int


def parse_password(text: str) -> bytes:
    """'FF FF FF FF', 'ff:ff:ff:ff' or 'FFFFFFFF' -> 4 bytes."""
    s = "".join(ch for ch in (text or "") if ch not in " :-")
    try:
        raw = bytes.fromhex(s)
    except ValueError:
        raise ValueError(f"password is not hex: {text!r}") from None
    if len(raw) != 4:
        raise ValueError(f"password must be 4 bytes, got {len(raw)}: {text!r}")
    return raw


def try_passwords(tag: PageTransport, candidates: Iterable[bytes]) -> AuthResult:
    """
    Try each candidate in order until the tag accepts one.

    A rejected password and a failed exchange both move on to the next
    candidate.

    Raises:
        ProtectionError(PASSWORD_REQUIRED): every candidate failed.
    """
    tried: Sequence[bytes] = list(candidates)
    for n, secret in enumerate(tried, start=1):
        log.debug("Trying password %d/%d: %s", n, len(tried), secret.hex(" ").upper())
        try:
            pack = tag.authenticate(secret)
        except AuthenticationRejected:
            log.info("Password %d rejected (NAK)", n)
            continue
        except TransportError as e:
            log.info("Password %d failed: %s", n, e)
            continue
        log.info("Password %d accepted, PACK: %s", n, pack.hex(" ").upper())
        return AuthResult(secret=secret, pack=pack, attempts=n)
    raise ProtectionError(ProtectionKind.PASSWORD_REQUIRED,
                          f"All {len(tried)} passwords failed.")
