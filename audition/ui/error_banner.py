from PyQt6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton
from PyQt6.QtCore import QSize, pyqtSignal
import qtawesome as qta


class ErrorBanner(QFrame):
    """Shows the session's current error until dismissed or superseded."""
    dismissed = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setStyleSheet("""
            QFrame { background-color: #ff7675; border-radius: 8px; }
            QLabel { color: white; font-weight: 500; background: transparent; }
        """)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(12, 8, 8, 8)

        icon = QLabel()
        icon.setPixmap(qta.icon("fa5s.exclamation-triangle", color="white").pixmap(20, 20))

        self.message_label = QLabel()
        self.message_label.setWordWrap(True)

        self.btn_dismiss = QPushButton()
        self.btn_dismiss.setIcon(qta.icon("fa5s.times", color="white"))
        self.btn_dismiss.setIconSize(QSize(14, 14))
        self.btn_dismiss.setFixedSize(24, 24)
        self.btn_dismiss.setStyleSheet("QPushButton { border: none; background: transparent; }")
        self.btn_dismiss.clicked.connect(self.dismissed.emit)

        layout.addWidget(icon)
        layout.addWidget(self.message_label, stretch=1)
        layout.addWidget(self.btn_dismiss)

        self.hide()

    def show_error(self, message):
        if message:
            self.message_label.setText(message)
            self.show()
        else:
            self.message_label.clear()
            self.hide()
