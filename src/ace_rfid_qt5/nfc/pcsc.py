# src/ace_rfid_qt5/nfc/pcsc.py
# PC/SC page transport for NTAG21x tags (pyscard).
from __future__ import annotations
import logging
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from smartcard.CardConnection import CardConnection
from smartcard.Exceptions import CardConnectionException, NoCardException
from smartcard.System import readers

from .errors import AuthenticationRejected, TransportError, TransportErrorKind
from .transport import PageTransport, TagLink

log = logging.getLogger(__name__)

SW_OK = (0x90, 0x00)
# status words that mean "the tag answered NAK" for PWD_AUTH
SW_AUTH_NAK = {(0x63, 0x00), (0x69, 0x82)}


def list_readers() -> List:
    """Return available PC/SC readers."""
    try:
        return readers()
    except Exception as e:
        log.warning("PC/SC reader enumeration failed: %s", e)
        return []


def connect_first_reader() -> Optional[CardConnection]:
    """Create connection object to the first available reader (not yet connected)."""
    rlist = list_readers()
    if not rlist:
        return None
    return rlist[0].createConnection()


def wait_for_card(timeout_s: float = 30.0, poll_interval_s: float = 0.5) -> Optional[CardConnection]:
    """Poll the first reader until a card is present or timeout."""
    conn = connect_first_reader()
    if conn is None:
        return None
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        try:
            conn.connect()  # will raise until a card is present
            return conn
        except (NoCardException, CardConnectionException):
            time.sleep(poll_interval_s)
    return None


def read_atr(conn: CardConnection) -> bytes:
    """Return ATR bytes of the connected card (already connected)."""
    atr = conn.getATR()
    return bytes(atr) if atr else b""


def read_uid(conn: CardConnection) -> Tuple[Optional[bytes], int, int]:
    """
    Read the card UID with the common pseudo-APDU FF CA 00 00 00.
    Returns (uid or None, SW1, SW2).
    """
    try:
        data, sw1, sw2 = conn.transmit([0xFF, 0xCA, 0x00, 0x00, 0x00])
    except (NoCardException, CardConnectionException):
        return None, 0x6F, 0x00  # 6F00 = generic error
    if (sw1, sw2) == SW_OK:
        return bytes(data), sw1, sw2
    return None, sw1, sw2


class PcscTransport(PageTransport):
    """Page exchanges over an already connected PC/SC card connection."""

    def __init__(self, conn: CardConnection):
        self._conn = conn

    def _tx(self, apdu: List[int], *, page: Optional[int] = None) -> Tuple[bytes, int, int]:
        try:
            data, sw1, sw2 = self._conn.transmit(apdu)
        except (NoCardException, CardConnectionException) as e:
            raise TransportError(TransportErrorKind.CONNECTION_LOST,
                                 "Tag connection lost.", page=page, original_exception=e) from e
        return bytes(data), sw1, sw2

    def identify(self) -> bytes:
        uid, sw1, sw2 = read_uid(self._conn)
        if uid is None:
            raise TransportError(TransportErrorKind.NAK,
                                 f"UID query failed: SW1/SW2={sw1:02X}/{sw2:02X}", sw=(sw1, sw2))
        return uid

    def read_page(self, page: int) -> bytes:
        # APDU: FF B0 00 <page> 04  -> read 4 bytes (one page)
        data, sw1, sw2 = self._tx([0xFF, 0xB0, 0x00, page & 0xFF, 0x04], page=page)
        if (sw1, sw2) != SW_OK or len(data) < 4:
            raise TransportError(TransportErrorKind.NAK,
                                 f"READ failed for page 0x{page:02X}: SW1/SW2={sw1:02X}/{sw2:02X}",
                                 page=page, sw=(sw1, sw2))
        return data[:4]

    def write_page(self, page: int, data4: bytes) -> None:
        if not isinstance(data4, (bytes, bytearray)) or len(data4) != 4:
            raise ValueError("write_page expects exactly 4 bytes")
        # APDU: FF D6 00 <page> 04 <4 bytes>
        _, sw1, sw2 = self._tx([0xFF, 0xD6, 0x00, page & 0xFF, 0x04] + list(data4), page=page)
        if (sw1, sw2) != SW_OK:
            raise TransportError(TransportErrorKind.NAK,
                                 f"WRITE failed for page 0x{page:02X}: SW1/SW2={sw1:02X}/{sw2:02X}",
                                 page=page, sw=(sw1, sw2))

    def authenticate(self, secret: bytes) -> bytes:
        if len(secret) != 4:
            raise ValueError("PWD_AUTH expects a 4-byte password")
        # direct transmit: FF 00 00 00 Lc 1B PWD0..PWD3
        payload = [0x1B] + list(secret)
        data, sw1, sw2 = self._tx([0xFF, 0x00, 0x00, 0x00, len(payload)] + payload)
        if (sw1, sw2) == SW_OK and len(data) >= 2:
            return data[-2:]
        if (sw1, sw2) == SW_OK or (sw1, sw2) in SW_AUTH_NAK:
            raise AuthenticationRejected()
        raise TransportError(TransportErrorKind.NAK,
                             f"PWD_AUTH failed: SW1/SW2={sw1:02X}/{sw2:02X}", sw=(sw1, sw2))


class PcscLink(TagLink):
    """Proximity sessions on the first PC/SC reader."""

    def __init__(self, poll_interval_s: float = 0.5):
        self.poll_interval_s = poll_interval_s

    @contextmanager
    def open(self, timeout_s: float) -> Iterator[PcscTransport]:
        if not list_readers():
            raise TransportError(TransportErrorKind.CONNECTION_LOST, "No PC/SC reader found.")
        conn = wait_for_card(timeout_s=timeout_s, poll_interval_s=self.poll_interval_s)
        if conn is None:
            raise TransportError(TransportErrorKind.TIMEOUT,
                                 f"No tag detected within {timeout_s:.0f}s.")
        try:
            atr = read_atr(conn)
        except (NoCardException, CardConnectionException) as e:
            _disconnect(conn)
            raise TransportError(TransportErrorKind.CONNECTION_LOST,
                                 "Tag connection lost.", original_exception=e) from e
        log.debug("Card connected, ATR: %s", atr.hex(" ").upper())
        try:
            yield PcscTransport(conn)
        finally:
            _disconnect(conn)


def _disconnect(conn: CardConnection) -> None:
    try:
        conn.disconnect()
    except CardConnectionException as e:
        log.debug("Disconnect failed: %s", e)
