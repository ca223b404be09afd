"""
Reliability map: desktop viewer for geospatial prediction uncertainty.

Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │  MainWindow                                              │
    │                                                          │
    │  feed (file/URL) → FeatureIndex → markers → MapWidget    │
    │                                                          │
    │  marker click → SelectionController                      │
    │      ├── ReverseGeocoder  (QtTaskRunner thread)          │
    │      ├── load_image × 2   (QtTaskRunner threads)         │
    │      └── spinner timer    (QtTimerFactory)               │
    │                  → DetailPanel.show_state(state)         │
    └──────────────────────────────────────────────────────────┘

Entry point: python -m relmap.gui_main [--data PATH_OR_URL]
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from .config import MARKER_SHAPES, Settings
from .geo.assets import AssetResolver, load_image
from .ingest.feed_client import load_feed
from .ingest.geocode_client import ReverseGeocoder
from .gui.detail_panel import DetailPanel
from .gui.map_widget import PredictionMapWidget
from .gui.qt_runtime import QtTaskRunner, QtTimerFactory
from .gui.selection import SelectionController
from .logger import setup_logging
from .session import MapSession

log = logging.getLogger(__name__)


class MainWindow(QtWidgets.QMainWindow):
    """Map on the left, detail panel docked on the right."""

    def __init__(self, settings: Settings):
        super().__init__()
        self.settings = settings
        self.setWindowTitle("Reliability Map")
        self.resize(1400, 900)

        self._map = PredictionMapWidget(
            initial_center=settings.initial_center,
            initial_zoom=settings.initial_zoom,
            min_zoom=settings.min_zoom,
        )
        self._panel = DetailPanel()

        splitter = QtWidgets.QSplitter(QtCore.Qt.Horizontal)
        splitter.addWidget(self._map)
        splitter.addWidget(self._panel)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 2)
        self.setCentralWidget(splitter)

        self._runner = QtTaskRunner(self)
        resolver = AssetResolver(settings.image_root)
        geocoder = ReverseGeocoder(
            url=settings.geocode_url, timeout=settings.geocode_timeout_s,
        )
        self._selection = SelectionController(
            geocoder=geocoder,
            image_loader=load_image,
            asset_resolver=resolver,
            runner=self._runner,
            timers=QtTimerFactory(self),
            spinner_delay_ms=settings.spinner_delay_ms,
        )
        self._session = MapSession(settings, self._map, self._selection)

        self._selection.subscribe(self._panel.show_state)
        self._panel.closed.connect(self._session.dismiss)
        self._map.fit_requested.connect(self._on_fit_requested)

        self.statusBar().showMessage("Loading predictions…")

    def load(self, source: str) -> None:
        """Fetch the feed in the background and render it when it arrives."""
        def _done(outcome) -> None:
            if not outcome.ok:
                log.error("Feed load failed: %s", outcome.error)
                self.statusBar().showMessage(f"Feed error: {outcome.error}")
                self._map.set_info("Prediction feed unavailable")
                return
            index = self._session.load_index(outcome.result)
            msg = f"{len(index)} predictions"
            if index.dropped:
                msg += f" ({index.dropped} malformed dropped)"
            if not index:
                self._map.set_info("No predictions loaded")
            self.statusBar().showMessage(msg)

        self._runner.submit(
            lambda: load_feed(source, timeout=self.settings.feed_timeout_s),
            _done, name="feed-load",
        )

    def _on_fit_requested(self) -> None:
        self._session.viewport.fit_to(self._session.index.extent(), force=True)

    def keyPressEvent(self, ev):
        if ev.key() == QtCore.Qt.Key_Escape:
            self._session.dismiss()
            return
        super().keyPressEvent(ev)

    def closeEvent(self, ev):
        log.info("Shutting down reliability map")
        self._session.dismiss()
        super().closeEvent(ev)


def _parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Reliability map for geospatial predictions")
    parser.add_argument("--data", help="Prediction GeoJSON path or URL")
    parser.add_argument("--images", help="Directory or base URL of companion images")
    parser.add_argument("--stride", type=int, help="Render every Nth point")
    parser.add_argument("--icon", choices=MARKER_SHAPES, help="Marker icon shape")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    parser.add_argument("--log-dir", type=Path, help="Also write logs to this directory")
    return parser.parse_known_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {
        "data_source": args.data,
        "image_root": args.images,
        "marker_stride": args.stride,
        "marker_icon": args.icon,
        "log_level": args.log_level,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(settings, name, value)
    settings.validate()
    return settings


def main():
    args, remaining = _parse_args()
    settings = build_settings(args)
    setup_logging(settings.log_level, args.log_dir)
    log.info("Settings: %s", settings.as_dict())

    sys.argv = sys.argv[:1] + remaining
    app = QtWidgets.QApplication(sys.argv)
    app.setStyle("Fusion")

    palette = QtGui.QPalette()
    palette.setColor(QtGui.QPalette.Window, QtGui.QColor("#060a10"))
    palette.setColor(QtGui.QPalette.WindowText, QtGui.QColor("#c0d0e0"))
    palette.setColor(QtGui.QPalette.Highlight, QtGui.QColor("#00ccff"))
    app.setPalette(palette)

    win = MainWindow(settings)
    win.show()
    win.load(settings.data_source)

    # Qt's event loop blocks Python signal delivery, so a small timer
    # gives the interpreter a chance to run the handler.
    def _sigint_handler(*_args):
        log.info("SIGINT received, closing")
        win.close()

    signal.signal(signal.SIGINT, _sigint_handler)
    signal.signal(signal.SIGTERM, _sigint_handler)
    _sig_timer = QtCore.QTimer()
    _sig_timer.timeout.connect(lambda: None)
    _sig_timer.start(200)

    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
