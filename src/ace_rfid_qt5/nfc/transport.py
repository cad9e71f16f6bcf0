# src/ace_rfid_qt5/nfc/transport.py
"""
Page transport interface consumed by the session engine.

A ``TagLink`` opens proximity sessions; inside a session the ``PageTransport``
performs exactly one blocking command/response exchange per call. The PC/SC
implementation lives in ``pcsc.py``; tests inject an in-memory tag.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager


class PageTransport(ABC):
    """One open proximity session with a single tag."""

    @abstractmethod
    def identify(self) -> bytes:
        """
        Return the tag UID.

        Raises:
            TransportError: if the tag does not answer.
        """

    @abstractmethod
    def read_page(self, page: int) -> bytes:
        """
        Read one 4-byte page.

        Raises:
            TransportError: NAK, timeout or lost connection.
        """

    @abstractmethod
    def write_page(self, page: int, data4: bytes) -> None:
        """
        Write exactly 4 bytes to one page; returns on ACK.

        Raises:
            ValueError: if data4 is not 4 bytes long.
            TransportError: NAK, timeout or lost connection.
        """

    @abstractmethod
    def authenticate(self, secret: bytes) -> bytes:
        """
        Send PWD_AUTH with a 4-byte secret and return the 2-byte PACK.

        Raises:
            AuthenticationRejected: the tag answered with a NAK.
            TransportError: the exchange itself failed.
        """


class TagLink(ABC):
    """Source of proximity sessions (a reader)."""

    @abstractmethod
    def open(self, timeout_s: float) -> AbstractContextManager:
        """
        Wait up to timeout_s for a tag and return a context manager yielding a
        PageTransport. Leaving the context closes the session.

        Raises:
            TransportError(TIMEOUT): no tag arrived in time.
        """
