# tests/conftest.py
# In-memory NTAG215 stand-in for the PC/SC reader.
from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Iterable, Optional

import pytest
from PyQt5 import QtCore

from ace_rfid_qt5.config.filaments import (
    MaterialRecord, MaterialType, SpoolSize, TemperatureRange,
)
from ace_rfid_qt5.constants import CFG0_PAGE, CFG1_PAGE, DYNAMIC_LOCK_PAGE, STATIC_LOCK_PAGE
from ace_rfid_qt5.nfc.errors import AuthenticationRejected, TransportError, TransportErrorKind
from ace_rfid_qt5.nfc.transport import PageTransport, TagLink
from ace_rfid_qt5.utils.colors import Color

LAST_PAGE = 0x86  # NTAG215


class FakeTag(PageTransport):
    """
    Scripted tag. Pages default to zero; AUTH0 is taken from page 41 byte 3,
    so pages at or above it reject writes until a known password was sent.
    """

    def __init__(self, uid: bytes = b"\x04\x11\x22\x33\x44\x55\x66", *,
                 static_lock: int = 0x00, auth0: int = 0xFF,
                 passwords: Optional[Dict[bytes, bytes]] = None,
                 fail_read: Iterable[int] = (), fail_write: Iterable[int] = (),
                 fail_identify: bool = False):
        self.uid = uid
        self.pages: Dict[int, bytes] = {p: bytes(4) for p in range(LAST_PAGE + 1)}
        self.pages[STATIC_LOCK_PAGE] = bytes((0x44, 0x48, static_lock, 0x00))
        self.pages[DYNAMIC_LOCK_PAGE] = bytes((0x00, 0x00, 0x00, 0xBD))
        self.pages[CFG0_PAGE] = bytes((0x04, 0x00, 0x00, auth0))
        self.pages[CFG1_PAGE] = bytes((0x00, 0x05, 0x00, 0x00))
        self.passwords = dict(passwords or {})
        self.fail_read = set(fail_read)
        self.fail_write = set(fail_write)
        self.fail_identify = fail_identify
        self.authenticated = False
        self.writes = []
        self.auth_attempts = []

    @property
    def auth0(self) -> int:
        return self.pages[CFG0_PAGE][3]

    def set_bytes(self, offset_page: int, data: bytes):
        for i in range(0, len(data), 4):
            self.pages[offset_page + i // 4] = bytes(data[i:i + 4]).ljust(4, b"\x00")

    def image(self, start: int = 4, count: int = 36) -> bytes:
        return b"".join(self.pages[p] for p in range(start, start + count))

    def identify(self) -> bytes:
        if self.fail_identify:
            raise TransportError(TransportErrorKind.NAK, "UID query failed")
        return self.uid

    def read_page(self, page: int) -> bytes:
        if page in self.fail_read or page not in self.pages:
            raise TransportError(TransportErrorKind.NAK, f"READ failed for page {page}", page=page)
        return self.pages[page]

    def write_page(self, page: int, data4: bytes) -> None:
        if len(data4) != 4:
            raise ValueError("write_page expects exactly 4 bytes")
        if (page in self.fail_write or page not in self.pages
                or (page >= self.auth0 and not self.authenticated)):
            raise TransportError(TransportErrorKind.NAK, f"WRITE failed for page {page}", page=page)
        self.pages[page] = bytes(data4)
        self.writes.append(page)

    def authenticate(self, secret: bytes) -> bytes:
        self.auth_attempts.append(bytes(secret))
        if secret in self.passwords:
            self.authenticated = True
            return self.passwords[secret]
        raise AuthenticationRejected()


class FakeLink(TagLink):
    """Hands out the same FakeTag for every session; tag=None never presents one."""

    def __init__(self, tag: Optional[FakeTag] = None):
        self.tag = tag
        self.opened = 0
        self.closed = 0

    @contextmanager
    def open(self, timeout_s: float):
        self.opened += 1
        if self.tag is None:
            raise TransportError(TransportErrorKind.TIMEOUT, f"No tag detected within {timeout_s:.0f}s.")
        self.tag.authenticated = False
        try:
            yield self.tag
        finally:
            self.closed += 1


@pytest.fixture(scope="session")
def qapp():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


@pytest.fixture
def tag():
    return FakeTag()


@pytest.fixture
def link(tag):
    return FakeLink(tag)


@pytest.fixture
def record():
    return MaterialRecord(
        material_type=MaterialType.PETG,
        brand="Anycubic",
        sku="AHPETG-001",
        temperatures=TemperatureRange(220, 250, 70, 80),
        color=Color(0x12, 0x34, 0x56, 0xFF),
        spool_size=SpoolSize.KG_1,
    )
