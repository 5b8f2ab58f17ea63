from PyQt6.QtWidgets import QWidget
from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QPainter, QColor

from audition.core.config import PARAMETER_LIMITS
from audition.core.types import EqualizerBand, EqualizerSettings

BAND_COLORS = {
    EqualizerBand.LOW: QColor("#0984e3"),
    EqualizerBand.MID: QColor("#00b894"),
    EqualizerBand.HIGH: QColor("#e84393"),
}


class EqVisualizerWidget(QWidget):
    """Three bars whose heights follow the band gains."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFixedSize(80, 50)
        self.settings = EqualizerSettings()
        self.bg_color = QColor(60, 60, 60)
        self.padding = 5
        self.gap = 8

    def set_settings(self, settings):
        self.settings = settings
        self.update()

    @staticmethod
    def bar_fraction(gain_db):
        """(gain + 30) / 60 for the default range: 0 at -30 dB, 1 at +30 dB."""
        limits = PARAMETER_LIMITS.equalizer_gain
        span = limits.maximum - limits.minimum
        return min(1.0, max(0.0, (gain_db - limits.minimum) / span))

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(Qt.PenStyle.NoPen)

        # Background
        painter.setBrush(self.bg_color)
        painter.drawRoundedRect(QRectF(self.rect()), 4, 4)

        bands = list(EqualizerBand)
        inner_w = self.width() - 2 * self.padding - self.gap * (len(bands) - 1)
        inner_h = self.height() - 2 * self.padding
        bar_w = inner_w / len(bands)

        for i, band in enumerate(bands):
            bar_h = inner_h * self.bar_fraction(self.settings.gain(band))
            x = self.padding + i * (bar_w + self.gap)
            y = self.padding + inner_h - bar_h
            painter.setBrush(BAND_COLORS[band])
            painter.drawRoundedRect(QRectF(x, y, bar_w, bar_h), 2, 2)
