"""
Minimal wind scheduler console.

Shows coverage, phase and the last error of a running ``WindScheduler``
and stops the scheduler when the window closes.
"""
from __future__ import annotations

import logging

from PyQt5 import QtCore, QtWidgets

from ..geo.wind_state import WindSnapshot
from ..ingest.wind_scheduler import WindScheduler
from .qt_bridge import WindDataBridge

log = logging.getLogger(__name__)


class WindStatusWindow(QtWidgets.QMainWindow):

    def __init__(self, scheduler: WindScheduler, parent=None):
        super().__init__(parent)
        self._scheduler = scheduler
        self.bridge = WindDataBridge(scheduler, parent=self)

        self.setWindowTitle("Wind Field Acquisition")

        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)

        self.coverage_label = QtWidgets.QLabel("Coverage: ---")
        self.phase_label = QtWidgets.QLabel("Phase: idle")
        self.error_label = QtWidgets.QLabel("")
        self.error_label.setStyleSheet("color: #d53e4f;")

        self.progress = QtWidgets.QProgressBar()
        self.progress.setRange(0, max(len(scheduler.tiles), 1))
        self.progress.setValue(0)

        for widget in (self.coverage_label, self.phase_label,
                       self.progress, self.error_label):
            layout.addWidget(widget)
        self.setCentralWidget(central)

        self.bridge.wind_updated.connect(self._on_wind)
        self.bridge.error_changed.connect(self._on_error)
        self.bridge.status_message.connect(
            lambda msg: self.statusBar().showMessage(msg)
        )

    @QtCore.pyqtSlot(object)
    def _on_wind(self, snap: WindSnapshot):
        self.coverage_label.setText(
            f"Coverage: {snap.covered}/{snap.total_tiles} tiles, cycle {snap.cycle}"
        )
        self.phase_label.setText(
            f"Phase: {snap.phase.value}" + (" (loading)" if snap.loading else "")
        )
        self.progress.setMaximum(max(snap.total_tiles, 1))
        self.progress.setValue(snap.covered)

    @QtCore.pyqtSlot(object)
    def _on_error(self, err):
        self.error_label.setText(f"Error: {err}" if err else "")

    def closeEvent(self, ev):
        self.bridge.detach()
        self._scheduler.stop(timeout=5.0)
        super().closeEvent(ev)
