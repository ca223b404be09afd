"""
Prediction map widget: QGraphicsScene-based marker map.

Renders prediction markers on a dark Web Mercator map with:
  - One marker per descriptor, coloured by reliability
  - Warning-triangle or circle icons that keep a constant pixel size
  - Lat/lon graticule every 10 degrees
  - Wheel zoom anchored under the cursor, drag to pan
  - Floating info label, Fit button and a marker colour legend

The widget is the renderer for the session: it accepts marker
descriptors (``set_markers``) and viewport commands (``fit_bounds``,
``set_view``) and never decides anything about reliability itself.

Coordinate system: EPSG:3857 (Web Mercator) metres scaled by SCENE_SCALE,
Y flipped so north is up.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from PyQt5 import QtCore, QtGui, QtWidgets

from ..geo.feature_index import ViewportExtent
from ..geo.markers import MarkerDescriptor
from ..geo.reliability import LEGEND
from ..geo.projection import (
    EARTH_CIRCUMFERENCE_M, MAX_LAT, extent_to_metres, fit_zoom,
    pixels_per_metre, to_latlng, to_metres,
)

log = logging.getLogger(__name__)

_BTN_SS = (
    "QPushButton { background: rgba(6,10,16,180); color: #506880; "
    "border: 1px solid rgba(12,26,46,180); padding: 2px 8px; "
    "font-family: 'Helvetica Neue Mono'; font-size: 10px; }"
    "QPushButton:hover { background: rgba(16,42,64,200); color: #00ccff; }"
)


# ── Marker graphics item ──────────────────────────────────────────────

class MarkerItem(QtWidgets.QGraphicsObject):
    """One prediction marker.  Drawn in device pixels, anchored at its tip."""

    def __init__(
        self,
        descriptor: MarkerDescriptor,
        scene_pos: QtCore.QPointF,
    ):
        super().__init__()
        self.descriptor = descriptor
        self._hovered = False

        icon = descriptor.icon
        w, h = icon.size
        ax, ay = icon.anchor
        self._local_rect = QtCore.QRectF(-ax, -ay, w, h)
        self._color = QtGui.QColor(icon.color)

        self.setPos(scene_pos)
        self.setZValue(30)
        self.setFlag(QtWidgets.QGraphicsItem.ItemIgnoresTransformations, True)
        self.setAcceptHoverEvents(True)
        self.setCursor(QtCore.Qt.PointingHandCursor)
        lat, lon = descriptor.position
        self.setToolTip(f"Point {descriptor.point_id}\nLat: {lat:.4f}  Lon: {lon:.4f}")

    def boundingRect(self) -> QtCore.QRectF:
        return self._local_rect.adjusted(-2, -2, 2, 2)

    def paint(self, painter: QtGui.QPainter, option, widget=None) -> None:
        r = self._local_rect
        pen = QtGui.QPen(QtGui.QColor(0, 0, 0))
        pen.setWidthF(2.5 if self._hovered else 1.5)
        pen.setJoinStyle(QtCore.Qt.RoundJoin)
        pen.setCapStyle(QtCore.Qt.RoundCap)
        painter.setPen(pen)
        painter.setBrush(self._color)

        if self.descriptor.icon.shape == "circle":
            inset = r.width() * 0.06
            painter.drawEllipse(r.adjusted(inset, inset, -inset, -inset))
            return

        # Warning triangle with an exclamation mark
        tri = QtGui.QPolygonF([
            QtCore.QPointF(r.center().x(), r.top() + r.height() * 0.10),
            QtCore.QPointF(r.right() - r.width() * 0.07, r.bottom() - r.height() * 0.15),
            QtCore.QPointF(r.left() + r.width() * 0.07, r.bottom() - r.height() * 0.15),
        ])
        painter.drawPolygon(tri)
        cx = r.center().x()
        painter.drawLine(
            QtCore.QPointF(cx, r.top() + r.height() * 0.38),
            QtCore.QPointF(cx, r.top() + r.height() * 0.55),
        )
        painter.drawPoint(QtCore.QPointF(cx, r.top() + r.height() * 0.70))

    def hoverEnterEvent(self, event):
        self._hovered = True
        self.update()
        super().hoverEnterEvent(event)

    def hoverLeaveEvent(self, event):
        self._hovered = False
        self.update()
        super().hoverLeaveEvent(event)

    def mousePressEvent(self, event):
        self.descriptor.on_click()
        event.accept()


# ── Map widget ────────────────────────────────────────────────────────

class PredictionMapWidget(QtWidgets.QWidget):
    """Interactive prediction map.

    Signals
    -------
    fit_requested()
        Emitted when the user presses the Fit button.
    """

    fit_requested = QtCore.pyqtSignal()

    SCENE_SCALE = 1.0 / 100.0
    MAX_ZOOM = 19

    def __init__(
        self,
        initial_center: Tuple[float, float] = (39.8283, -98.5795),
        initial_zoom: int = 5,
        min_zoom: int = 2,
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(parent)
        self.min_zoom = min_zoom
        self._marker_items: Dict[int, MarkerItem] = {}
        self._zoom = float(initial_zoom)
        # Viewport command waiting for the widget to get a real size
        self._pending_view: Optional[Tuple[QtCore.QPointF, float]] = None
        self._pending_fit: Optional[Tuple[ViewportExtent, int, int]] = None

        self._scene = QtWidgets.QGraphicsScene(self)
        self._scene.setBackgroundBrush(QtGui.QBrush(QtGui.QColor(6, 10, 16)))
        half = EARTH_CIRCUMFERENCE_M / 2.0 * self.SCENE_SCALE
        self._scene.setSceneRect(-half, -half, 2 * half, 2 * half)

        self._view = QtWidgets.QGraphicsView(self._scene, self)
        self._view.setRenderHints(
            QtGui.QPainter.Antialiasing | QtGui.QPainter.SmoothPixmapTransform
        )
        self._view.setDragMode(QtWidgets.QGraphicsView.ScrollHandDrag)
        self._view.setTransformationAnchor(QtWidgets.QGraphicsView.AnchorUnderMouse)
        self._view.setResizeAnchor(QtWidgets.QGraphicsView.AnchorViewCenter)
        self._view.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        self._view.setStyleSheet("border: none; background: #060a10;")
        # The view would scroll on wheel events before they reach us
        self._view.viewport().installEventFilter(self)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._view, 1)

        # ── Top floating controls ──
        self._overlay_top = QtWidgets.QWidget(self._view)
        self._overlay_top.setStyleSheet("background: transparent;")
        otl = QtWidgets.QHBoxLayout(self._overlay_top)
        otl.setContentsMargins(6, 4, 6, 0)
        otl.setSpacing(4)

        self._info_label = QtWidgets.QLabel("No predictions loaded")
        self._info_label.setStyleSheet(
            "color: rgba(0,204,255,200); font-family: 'Helvetica Neue'; "
            "font-size: 11px; padding: 2px 4px; background: transparent;"
        )
        otl.addWidget(self._info_label)
        otl.addStretch(1)

        btn_fit = QtWidgets.QPushButton("Fit")
        btn_fit.setStyleSheet(_BTN_SS)
        btn_fit.clicked.connect(self.fit_requested.emit)
        otl.addWidget(btn_fit)

        self._btn_legend = QtWidgets.QPushButton("Legend")
        self._btn_legend.setCheckable(True)
        self._btn_legend.setChecked(True)
        self._btn_legend.setStyleSheet(_BTN_SS)
        otl.addWidget(self._btn_legend)

        # ── Marker colour legend (top-right, under the buttons) ──
        self._legend = QtWidgets.QFrame(self._view)
        self._legend.setStyleSheet(
            "QFrame { background: rgba(6,10,16,200); border: 1px solid rgba(12,26,46,180); }"
            "QLabel { border: none; background: transparent; font-size: 11px; }"
        )
        ll = QtWidgets.QVBoxLayout(self._legend)
        ll.setContentsMargins(8, 6, 8, 6)
        ll.setSpacing(2)
        self._legend_rows: List[Tuple[str, QtWidgets.QLabel]] = []
        for tag in LEGEND:
            row = QtWidgets.QLabel(f"▲  {tag.label}")
            row.setStyleSheet(f"color: {tag.color};")
            ll.addWidget(row)
            self._legend_rows.append((tag.color, row))
        self._legend.adjustSize()
        self._btn_legend.toggled.connect(self._legend.setVisible)

        self._add_graticule()
        self.set_view(initial_center, initial_zoom)

    # ── Scene helpers ─────────────────────────────────────────────────

    def scene_point(self, lat: float, lon: float) -> QtCore.QPointF:
        x, y = to_metres(lat, lon)
        return QtCore.QPointF(x * self.SCENE_SCALE, -y * self.SCENE_SCALE)

    def _add_graticule(self) -> None:
        pen = QtGui.QPen(QtGui.QColor(40, 60, 80, 120))
        pen.setCosmetic(True)
        pen.setWidthF(0.6)
        lat_lim = int(MAX_LAT // 10) * 10
        for lon in range(-180, 181, 10):
            a = self.scene_point(-MAX_LAT, lon)
            b = self.scene_point(MAX_LAT, lon)
            self._scene.addLine(a.x(), a.y(), b.x(), b.y(), pen).setZValue(1)
        for lat in range(-lat_lim, lat_lim + 1, 10):
            a = self.scene_point(lat, -180.0)
            b = self.scene_point(lat, 180.0)
            self._scene.addLine(a.x(), a.y(), b.x(), b.y(), pen).setZValue(1)

    def _view_size(self) -> Tuple[int, int]:
        vp = self._view.viewport()
        return (vp.width(), vp.height())

    def _has_size(self) -> bool:
        w, h = self._view_size()
        return self.isVisible() and w > 1 and h > 1

    def _apply_view(self, scene_center: QtCore.QPointF, zoom: float) -> None:
        zoom = max(float(self.min_zoom), min(float(self.MAX_ZOOM), zoom))
        self._zoom = zoom
        s = pixels_per_metre(zoom) / self.SCENE_SCALE
        self._view.setTransform(QtGui.QTransform.fromScale(s, s))
        self._view.centerOn(scene_center)

    # ── Renderer API ──────────────────────────────────────────────────

    def set_markers(self, markers: Sequence[MarkerDescriptor]) -> None:
        """Replace all markers on the map."""
        for item in self._marker_items.values():
            self._scene.removeItem(item)
        self._marker_items = {}

        for desc in markers:
            lat, lon = desc.position
            item = MarkerItem(desc, self.scene_point(lat, lon))
            self._scene.addItem(item)
            self._marker_items[desc.point_id] = item

        self._info_label.setText(f"{len(markers)} predictions")
        log.info("Map: %d markers placed", len(markers))

    def fit_bounds(self, extent: ViewportExtent, padding_px: int, max_zoom: int) -> None:
        if not self._has_size():
            self._pending_fit = (extent, padding_px, max_zoom)
            self._pending_view = None
            return
        x0, y0, x1, y1 = extent_to_metres(extent)
        center = QtCore.QPointF(
            (x0 + x1) / 2.0 * self.SCENE_SCALE,
            -(y0 + y1) / 2.0 * self.SCENE_SCALE,
        )
        zoom = fit_zoom(extent, self._view_size(), padding_px, max_zoom, self.min_zoom)
        self._apply_view(center, zoom)

    def set_view(self, center: Tuple[float, float], zoom: int) -> None:
        scene_center = self.scene_point(*center)
        if not self._has_size():
            self._pending_view = (scene_center, float(zoom))
            self._pending_fit = None
            return
        self._apply_view(scene_center, float(zoom))

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def zoom(self) -> float:
        return self._zoom

    def view_center(self) -> Tuple[float, float]:
        """(lat, lon) at the centre of the viewport."""
        pt = self._view.mapToScene(self._view.viewport().rect().center())
        return to_latlng(pt.x() / self.SCENE_SCALE, -pt.y() / self.SCENE_SCALE)

    def marker_ids(self) -> List[int]:
        return list(self._marker_items)

    def set_info(self, text: str) -> None:
        self._info_label.setText(text)

    def legend_entries(self) -> List[Tuple[str, str]]:
        """(colour, text) of each legend row, top to bottom."""
        return [(color, row.text()) for color, row in self._legend_rows]

    @property
    def legend_visible(self) -> bool:
        return not self._legend.isHidden()

    # ── Event handlers ────────────────────────────────────────────────

    def eventFilter(self, obj, event):
        if obj is self._view.viewport() and event.type() == QtCore.QEvent.Wheel:
            self.wheelEvent(event)
            return True
        return super().eventFilter(obj, event)

    def wheelEvent(self, event):
        """Zoom in or out by a fraction of a level, anchored under the cursor."""
        step = 0.25 if event.angleDelta().y() > 0 else -0.25
        target = max(float(self.min_zoom), min(float(self.MAX_ZOOM), self._zoom + step))
        factor = 2.0 ** (target - self._zoom)
        self._zoom = target
        self._view.scale(factor, factor)
        event.accept()

    def resizeEvent(self, event):
        """Reposition the floating overlay and apply any deferred view command."""
        super().resizeEvent(event)
        self._overlay_top.setGeometry(0, 0, self._view.width(), 30)
        self._legend.move(max(0, self._view.width() - self._legend.width() - 6), 34)
        if not self._has_size():
            return
        if self._pending_fit is not None:
            extent, padding, max_zoom = self._pending_fit
            self._pending_fit = None
            self.fit_bounds(extent, padding, max_zoom)
        elif self._pending_view is not None:
            center, zoom = self._pending_view
            self._pending_view = None
            self._apply_view(center, zoom)

    def showEvent(self, event):
        super().showEvent(event)
        # resizeEvent can arrive before the widget counts as visible
        QtCore.QTimer.singleShot(0, lambda: self.resizeEvent(
            QtGui.QResizeEvent(self.size(), self.size())
        ))
