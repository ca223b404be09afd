"""
Detail panel for the selected prediction point.

Shows the place name, land-cover class, the two companion images, the
reliability tags and one score bar per metric.  While the images are
loading an overlay covers the panel; its busy indicator only appears once
the selection controller reports ``spinner_visible``.

The panel is a pure view of ``SelectionState``: call ``show_state`` with every
new state.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from ..geo.reliability import (
    RED, SIMILARITY, VARIANCE, MetricAxis, assess, axis_range_text,
    reliability_bar_percent, score_color, similarity_band_color,
    variance_band_color,
)
from .selection import IMAGE_SLOTS, Phase, SelectionState, SlotStatus

log = logging.getLogger(__name__)

_PANEL_SS = (
    "QWidget#detailPanel { background: #ffffff; }"
    "QLabel { color: #222222; font-family: 'Helvetica Neue'; }"
)
_IMAGE_PX = 220


def extra_properties_text(extra: dict) -> str:
    """Feed properties with no dedicated field, one ``key: value`` per line."""
    return "\n".join(f"{key}: {extra[key]}" for key in sorted(extra))


class ReliabilityBar(QtWidgets.QWidget):
    """Raw value, reliability score and coloured bar for one metric axis.

    The raw value is coloured by the axis band; the bar by the score.
    """

    def __init__(
        self,
        axis: MetricAxis,
        band_color: Callable[[Optional[float]], str],
        parent: Optional[QtWidgets.QWidget] = None,
    ):
        super().__init__(parent)
        self.axis = axis
        self._band_color = band_color
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)

        header = QtWidgets.QHBoxLayout()
        self._title = QtWidgets.QLabel(f"{axis.label}:")
        self._raw = QtWidgets.QLabel("N/A")
        header.addWidget(self._title)
        header.addStretch(1)
        header.addWidget(self._raw)

        self._bar = QtWidgets.QProgressBar()
        self._bar.setRange(0, 100)
        self._bar.setTextVisible(False)
        self._bar.setFixedHeight(22)
        self._bar.setMaximumWidth(320)

        scale = QtWidgets.QHBoxLayout()
        scale.addWidget(QtWidgets.QLabel("Low"))
        scale.addStretch(1)
        scale.addWidget(QtWidgets.QLabel("High"))

        layout.addLayout(header)
        layout.addWidget(self._bar)
        layout.addLayout(scale)

    def set_value(self, raw: Optional[float], score: float) -> None:
        color = score_color(score)
        self._title.setText(f"{self.axis.label}: {score:.2f}")
        self._title.setStyleSheet(f"color: {color}; font-size: 14px;")
        self._bar.setValue(reliability_bar_percent(score))
        self._bar.setStyleSheet(
            "QProgressBar { background: #e5e7eb; border: none; border-radius: 4px; }"
            f"QProgressBar::chunk {{ background: {color}; border-radius: 4px; }}"
        )

        if raw is None:
            self._raw.setText("N/A")
        elif raw > self.axis.threshold:
            self._raw.setText(f"{raw:.2f} (Unreliable)")
        else:
            self._raw.setText(f"{raw:.2f}")
        self._raw.setStyleSheet(f"color: {self.raw_color(raw)}; font-size: 14px;")

        raw_text = "N/A" if raw is None else f"{raw}"
        self.setToolTip(
            f"{self.axis.name}: {raw_text}\n"
            f"Reliability Range: {axis_range_text(self.axis)}\n"
            f"Reliability Score: {score:.4f}"
        )

    def raw_color(self, raw: Optional[float]) -> str:
        """Red once over threshold, otherwise the axis band colour."""
        if raw is not None and raw > self.axis.threshold:
            return RED
        return self._band_color(raw)

    @property
    def raw_text(self) -> str:
        return self._raw.text()


class DetailPanel(QtWidgets.QWidget):
    """Side panel bound to the selection controller's state.

    Signals
    -------
    closed()
        Emitted when the user presses the close button.
    """

    closed = QtCore.pyqtSignal()

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.setObjectName("detailPanel")
        self.setAttribute(QtCore.Qt.WA_StyledBackground, True)
        self.setStyleSheet(_PANEL_SS)
        self.setMinimumWidth(420)

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(32, 24, 32, 24)
        layout.setSpacing(12)

        btn_close = QtWidgets.QPushButton("×")
        btn_close.setFlat(True)
        btn_close.setStyleSheet("font-size: 24px; color: #9ca3af; border: none;")
        btn_close.clicked.connect(self.closed.emit)
        layout.addWidget(btn_close, 0, QtCore.Qt.AlignRight)

        self._location = QtWidgets.QLabel("")
        self._location.setStyleSheet("font-size: 20px; font-weight: bold;")
        self._location.setWordWrap(True)
        layout.addWidget(self._location)

        self._land_cover = QtWidgets.QLabel("")
        self._land_cover.setStyleSheet("font-size: 15px;")
        layout.addWidget(self._land_cover)

        images = QtWidgets.QHBoxLayout()
        self._image_labels = {}
        for which in IMAGE_SLOTS:
            lbl = QtWidgets.QLabel()
            lbl.setFixedSize(_IMAGE_PX, _IMAGE_PX)
            lbl.setAlignment(QtCore.Qt.AlignCenter)
            lbl.setStyleSheet("background: #f3f4f6; border: 1px solid #e5e7eb; border-radius: 8px;")
            images.addWidget(lbl)
            self._image_labels[which] = lbl
        layout.addLayout(images)

        self._tags_row = QtWidgets.QHBoxLayout()
        self._tags_row.setSpacing(6)
        layout.addLayout(self._tags_row)

        self._variance_bar = ReliabilityBar(VARIANCE, variance_band_color)
        self._similarity_bar = ReliabilityBar(SIMILARITY, similarity_band_color)
        layout.addWidget(self._variance_bar)
        layout.addWidget(self._similarity_bar)
        layout.addStretch(1)

        # Loading overlay; the busy bar inside fades in after the debounce
        self._overlay = QtWidgets.QWidget(self)
        self._overlay.setStyleSheet("background: #ffffff;")
        ol = QtWidgets.QVBoxLayout(self._overlay)
        ol.addStretch(1)
        self._spinner = QtWidgets.QProgressBar()
        self._spinner.setRange(0, 0)
        self._spinner.setTextVisible(False)
        self._spinner.setFixedWidth(120)
        ol.addWidget(self._spinner, 0, QtCore.Qt.AlignCenter)
        ol.addStretch(1)
        self._overlay.hide()

        self._token = None
        self.hide()

    # ── Rendering ─────────────────────────────────────────────────────

    def show_state(self, state: SelectionState) -> None:
        point = state.selected_point
        if state.phase is Phase.IDLE or point is None:
            self._token = None
            self.hide()
            return

        self._location.setText(state.display_label)
        self._land_cover.setText(point.properties.land_cover_name)
        self._land_cover.setToolTip(extra_properties_text(point.properties.extra))

        for which in IMAGE_SLOTS:
            self._render_image(which, state)

        if self._token != state.token:
            self._token = state.token
            self._render_assessment(state)

        self._overlay.setVisible(state.phase is Phase.SELECTING)
        self._spinner.setVisible(state.spinner_visible)
        self._overlay.raise_()
        self.show()

    def _render_image(self, which: str, state: SelectionState) -> None:
        slot = state.image(which)
        lbl = self._image_labels[which]
        if slot.status is SlotStatus.HIDDEN:
            lbl.hide()
            return
        lbl.show()
        if slot.status is SlotStatus.LOADED and slot.data:
            pm = QtGui.QPixmap()
            if pm.loadFromData(slot.data):
                lbl.setPixmap(pm.scaled(
                    _IMAGE_PX, _IMAGE_PX, QtCore.Qt.KeepAspectRatio,
                    QtCore.Qt.SmoothTransformation,
                ))
                return
            log.debug("Pixmap decode failed for %s", slot.path)
        lbl.clear()

    def _render_assessment(self, state: SelectionState) -> None:
        props = state.selected_point.properties
        result = assess(props)

        while self._tags_row.count():
            item = self._tags_row.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        for tag in result.tags:
            chip = QtWidgets.QLabel(tag.label)
            chip.setStyleSheet(
                f"background: {tag.color}; color: #ffffff; border-radius: 10px; "
                "padding: 3px 10px; font-size: 12px; font-weight: 600;"
            )
            self._tags_row.addWidget(chip)
        self._tags_row.addStretch(1)

        self._variance_bar.set_value(props.variance_score, result.variance_reliability)
        self._similarity_bar.set_value(props.similarity_score, result.similarity_reliability)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._overlay.setGeometry(self.rect())
