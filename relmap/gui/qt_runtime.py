"""
Qt implementations of the selection controller's runner and timers.

``QtTaskRunner`` runs blocking work (HTTP, disk) in daemon threads and
hands the outcome back to the GUI thread with a queued
``QMetaObject.invokeMethod`` call, so callbacks never touch widgets from
a worker thread.

``QtTimerFactory`` wraps single-shot ``QTimer`` objects that can be
cancelled.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from PyQt5 import QtCore

from .selection import TaskOutcome

log = logging.getLogger(__name__)


class QtTaskRunner(QtCore.QObject):
    """Background-thread runner with GUI-thread delivery."""

    def __init__(self, parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)

    def submit(
        self,
        fn: Callable[[], Any],
        callback: Callable[[TaskOutcome], None],
        name: str = "task",
    ) -> None:
        def _worker() -> None:
            try:
                outcome = TaskOutcome(result=fn())
            except Exception as exc:
                outcome = TaskOutcome(error=exc)
            QtCore.QMetaObject.invokeMethod(
                self, "_deliver",
                QtCore.Qt.QueuedConnection,
                QtCore.Q_ARG(object, callback),
                QtCore.Q_ARG(object, outcome),
            )

        threading.Thread(target=_worker, daemon=True, name=name).start()

    @QtCore.pyqtSlot(object, object)
    def _deliver(self, callback: Callable[[TaskOutcome], None], outcome: TaskOutcome) -> None:
        callback(outcome)


class QtTimerHandle:
    """Cancellable wrapper around one single-shot QTimer."""

    def __init__(self, timer: QtCore.QTimer, callback: Callable[[], None]):
        self._timer = timer
        self._callback = callback
        self._done = False
        timer.timeout.connect(self._fire)

    def _fire(self) -> None:
        if self._done:
            return
        self._release()
        self._callback()

    def _release(self) -> None:
        self._done = True
        self._timer.stop()
        self._timer.deleteLater()

    def cancel(self) -> None:
        if not self._done:
            self._release()

    @property
    def active(self) -> bool:
        return not self._done


class QtTimerFactory:
    """Creates cancellable single-shot timers owned by *parent*."""

    def __init__(self, parent: Optional[QtCore.QObject] = None):
        self._parent = parent

    def single_shot(self, delay_ms: int, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QtCore.QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(int(delay_ms))
        handle = QtTimerHandle(timer, callback)
        timer.start()
        return handle
