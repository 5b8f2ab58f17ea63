from typing import Callable, Optional

from PyQt6.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QLabel, QSlider
from PyQt6.QtCore import Qt, pyqtSignal

from audition.core.config import ParameterRange

SLIDER_STYLE = """
    QSlider::groove:horizontal {
        border: 1px solid #555;
        height: 6px;
        background: #111;
        border-radius: 3px;
    }
    QSlider::handle:horizontal {
        background: %s;
        width: 16px;
        height: 16px;
        margin: -6px 0;
        border-radius: 8px;
    }
    QSlider::handle:horizontal:hover { background: #aaa; }
    QSlider::handle:horizontal:disabled { background: #555; }
"""


class ParameterSlider(QWidget):
    """
    Labelled slider for one control. QSlider only holds integers, so the
    position counts steps from the range minimum.
    """
    valueChanged = pyqtSignal(float)

    def __init__(self, title, limits: ParameterRange, formatter: Optional[Callable[[float], str]] = None,
                 color="#6c5ce7", parent=None):
        super().__init__(parent)
        self.limits = limits
        self.formatter = formatter or (lambda v: f"{v:g}")
        self._value = limits.default

        self.layout = QVBoxLayout(self)
        self.layout.setContentsMargins(0, 4, 0, 4)
        self.layout.setSpacing(4)

        label_row = QHBoxLayout()
        self.title_label = QLabel(title)
        self.title_label.setStyleSheet("font-weight: 500;")
        self.value_label = QLabel()
        self.value_label.setStyleSheet(f"color: {color}; font-weight: bold; min-width: 60px;")
        self.value_label.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        label_row.addWidget(self.title_label)
        label_row.addStretch()
        label_row.addWidget(self.value_label)

        self.slider = QSlider(Qt.Orientation.Horizontal)
        self.slider.setRange(0, self._to_position(limits.maximum))
        self.slider.setSingleStep(1)
        self.slider.setPageStep(max(1, self.slider.maximum() // 10))
        self.slider.setStyleSheet(SLIDER_STYLE % color)
        self.slider.valueChanged.connect(self._on_slider_moved)

        self.layout.addLayout(label_row)
        self.layout.addWidget(self.slider)

        self.set_value(limits.default)

    def _to_position(self, value):
        return int(round((value - self.limits.minimum) / self.limits.step))

    def _to_value(self, position):
        value = round(self.limits.minimum + position * self.limits.step, 6)
        return int(value) if self.limits.integral else value

    def value(self):
        return self._value

    def set_value(self, value):
        """Move the slider without emitting valueChanged."""
        self._value = value
        self.slider.blockSignals(True)
        self.slider.setValue(self._to_position(value))
        self.slider.blockSignals(False)
        self.value_label.setText(self.formatter(value))

    def _on_slider_moved(self, position):
        self._value = self._to_value(position)
        self.value_label.setText(self.formatter(self._value))
        self.valueChanged.emit(self._value)
