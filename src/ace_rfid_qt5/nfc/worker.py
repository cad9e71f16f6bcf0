# src/ace_rfid_qt5/nfc/worker.py
from __future__ import annotations
import logging
from typing import Callable, Optional

from PyQt5 import QtCore

from .errors import ErrorKind
from .session import (
    Failed, Operation, SessionOutcome, SessionRequest, SessionState, TagSession, VerifySlot, WriteOk,
)
from .transport import TagLink

log = logging.getLogger(__name__)


class TagWorker(QtCore.QObject):
    """
    Qt front of TagSession. Runs one session at a time and chains the
    post-write verification as a second session after the tag was released.
    """
    stateChanged = QtCore.pyqtSignal(str)      # SessionState.value
    outcomeReady = QtCore.pyqtSignal(object)   # SessionOutcome
    logMessage = QtCore.pyqtSignal(str)
    idle = QtCore.pyqtSignal()                 # nothing running, nothing scheduled

    def __init__(self, link: TagLink, *, auto_verify: bool = True, release_delay_ms: int = 1500,
                 page_delay_ms: int = 5, session_timeout_s: float = 30.0,
                 sleep: Optional[Callable[[int], None]] = None,
                 schedule: Optional[Callable[[int, Callable[[], None]], None]] = None,
                 parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.auto_verify = auto_verify
        self.release_delay_ms = release_delay_ms
        self._session = TagSession(link, page_delay_ms=page_delay_ms,
                                   session_timeout_s=session_timeout_s,
                                   sleep=sleep, on_state=self._on_state)
        self._slot = VerifySlot()
        self._schedule = schedule or QtCore.QTimer.singleShot
        self._running = False
        self._verify_scheduled = False

    # ---------- state ----------
    @property
    def busy(self) -> bool:
        return self._running or self._verify_scheduled

    @property
    def verify_pending(self) -> bool:
        return self._slot.pending

    def _log(self, msg: str):
        log.info(msg)
        self.logMessage.emit(msg)

    def _on_state(self, state: SessionState):
        self.stateChanged.emit(state.value)
        if state is SessionState.DETECTING:
            self._log("Hold the tag near the reader...")

    # ---------- commands ----------
    @QtCore.pyqtSlot(object)
    def submit(self, request: SessionRequest) -> SessionOutcome:
        """
        Run one session. A verify request without an expected image uses the
        image of the last write.
        """
        if self.busy:
            outcome = Failed(ErrorKind.BUSY, "A tag session is already in progress.")
            self._log(outcome.message)
            self.outcomeReady.emit(outcome)
            return outcome

        if request.operation is Operation.VERIFY and request.expected is None:
            request = SessionRequest.verify(self._slot.take())

        outcome = self._run(request)
        if isinstance(outcome, WriteOk):
            # kept for a scheduled or a manual verify
            self._slot.put(outcome.image)
        if isinstance(outcome, WriteOk) and self.auto_verify:
            self._verify_scheduled = True
            self._log(f"Write OK. Verifying in {self.release_delay_ms} ms...")
            self._schedule(self.release_delay_ms, self._run_scheduled_verify)
        else:
            self.idle.emit()
        return outcome

    def _run_scheduled_verify(self):
        self._verify_scheduled = False
        self._run(SessionRequest.verify(self._slot.take()))
        self.idle.emit()

    def _run(self, request: SessionRequest) -> SessionOutcome:
        self._running = True
        self._log(f"Starting {request.operation.value}...")
        try:
            outcome = self._session.run(request)
        finally:
            self._running = False
        if isinstance(outcome, Failed):
            self._log(f"{request.operation.value} failed: {outcome.message}")
        else:
            self._log(f"{request.operation.value} done.")
        self.outcomeReady.emit(outcome)
        return outcome
