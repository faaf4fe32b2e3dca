"""
Qt bridge for the wind scheduler.

The scheduler calls its listeners on its own worker thread.  This bridge
re-emits each snapshot as Qt signals on the thread that owns the bridge
(normally the GUI thread), so widgets can connect without locking.

Usage
-----
    bridge = WindDataBridge(scheduler)
    bridge.wind_updated.connect(map_widget.set_wind)
    bridge.loading_changed.connect(spinner.setVisible)
    scheduler.start()
"""
from __future__ import annotations

import logging
from typing import Optional

from PyQt5 import QtCore

from ..geo.wind_state import WindSnapshot

log = logging.getLogger(__name__)


class WindDataBridge(QtCore.QObject):
    """Forwards scheduler snapshots to the Qt thread.

    Signals
    -------
    wind_updated(object)
        Emitted with each new ``WindSnapshot``.
    loading_changed(bool)
        Emitted when the loading flag flips.
    error_changed(object)
        Emitted with the new error message (or None) when it changes.
    status_message(str)
        Short progress line for a status bar.
    """

    wind_updated = QtCore.pyqtSignal(object)     # WindSnapshot
    loading_changed = QtCore.pyqtSignal(bool)
    error_changed = QtCore.pyqtSignal(object)    # Optional[str]
    status_message = QtCore.pyqtSignal(str)

    def __init__(self, scheduler, parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self._scheduler = scheduler
        self._loading: Optional[bool] = None
        self._error: Optional[str] = None
        self._last: Optional[WindSnapshot] = None
        scheduler.add_listener(self._on_snapshot)

    @property
    def last_snapshot(self) -> Optional[WindSnapshot]:
        return self._last

    def detach(self) -> None:
        """Stop receiving scheduler updates."""
        self._scheduler.remove_listener(self._on_snapshot)

    def _on_snapshot(self, snap: WindSnapshot) -> None:
        # Scheduler thread → owner thread
        QtCore.QMetaObject.invokeMethod(
            self, "_emit_snapshot",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(object, snap),
        )

    @QtCore.pyqtSlot(object)
    def _emit_snapshot(self, snap: WindSnapshot) -> None:
        self._last = snap
        self.wind_updated.emit(snap)

        if snap.loading != self._loading:
            self._loading = snap.loading
            self.loading_changed.emit(snap.loading)

        if snap.error != self._error:
            self._error = snap.error
            self.error_changed.emit(snap.error)
            if snap.error:
                self.status_message.emit(f"Wind error: {snap.error}")
                return

        self.status_message.emit(
            f"Wind: {snap.covered}/{snap.total_tiles} tiles "
            f"({snap.progress:.0%}), cycle {snap.cycle}"
            + (", loading" if snap.loading else "")
        )
