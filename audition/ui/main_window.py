from PyQt6.QtWidgets import (QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
                             QPushButton, QLabel, QFileDialog, QFrame)
from PyQt6.QtCore import Qt, QSize
from PyQt6.QtGui import QAction, QKeySequence
import os
import qtawesome as qta

from audition.core.config import PARAMETER_LIMITS
from audition.core.types import EqualizerBand
from audition.ui.session_bridge import SessionBridge
from audition.ui.control_widget import ParameterSlider
from audition.ui.eq_visualizer import EqVisualizerWidget, BAND_COLORS
from audition.ui.error_banner import ErrorBanner
from audition.utils.logger import logger

AUDIO_FILTER = "Audio Files (*.wav *.mp3 *.flac *.ogg)"

BAND_TITLES = {
    EqualizerBand.LOW: "Bass",
    EqualizerBand.MID: "Mids",
    EqualizerBand.HIGH: "Treble",
}


class MainWindow(QMainWindow):
    def __init__(self, source=None, bridge=None):
        super().__init__()

        self.setWindowTitle("Audition - Real-time Effects Player")
        self.resize(600, 720)

        # Core Components
        self.bridge = bridge or SessionBridge()
        self.bridge.stateChanged.connect(self.on_state_changed)

        # UI Setup
        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)
        self.main_layout = QVBoxLayout(self.central_widget)
        self.main_layout.setContentsMargins(24, 16, 24, 16)
        self.main_layout.setSpacing(14)

        self.create_menus()
        self.create_header()
        self.create_transport_controls()
        self.create_parameter_controls()
        self.create_equalizer_section()
        self.main_layout.addStretch()

        self.set_controls_enabled(False)
        self.statusBar().showMessage("Open an audio file to start")

        if source:
            self.load_source(source)

    def create_menus(self):
        menubar = self.menuBar()
        file_menu = menubar.addMenu("&File")

        open_action = QAction(qta.icon("fa5s.folder-open", color="white"), "Open...", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_file_dialog)
        file_menu.addAction(open_action)

        file_menu.addSeparator()

        quit_action = QAction("Quit", self)
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

    def create_header(self):
        title = QLabel("Audition")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        title.setStyleSheet("color: #6c5ce7; font-size: 28px; font-weight: bold;")

        subtitle = QLabel("Experiment with real-time audio effects")
        subtitle.setAlignment(Qt.AlignmentFlag.AlignCenter)
        subtitle.setStyleSheet("color: #8a9499; font-size: 13px;")

        self.error_banner = ErrorBanner()
        self.error_banner.dismissed.connect(self.bridge.dismiss_error)

        self.main_layout.addWidget(title)
        self.main_layout.addWidget(subtitle)
        self.main_layout.addWidget(self.error_banner)

    def create_transport_controls(self):
        btn_style = """
            QPushButton {
                background-color: %s;
                color: white;
                border: none;
                border-radius: 22px;
                padding: 10px 20px;
                font-size: 15px;
            }
            QPushButton:hover { background-color: #5649d1; }
            QPushButton:disabled { background-color: #4a4f52; color: #999; }
        """

        self.btn_play_pause = QPushButton(" Play")
        self.btn_play_pause.setIcon(qta.icon("fa5s.play", color="white"))
        self.btn_play_pause.setIconSize(QSize(18, 18))
        self.btn_play_pause.setStyleSheet(btn_style % "#6c5ce7")
        self.btn_play_pause.clicked.connect(self.toggle_play_pause)

        self.btn_reset = QPushButton(" Reset")
        self.btn_reset.setIcon(qta.icon("fa5s.undo", color="white"))
        self.btn_reset.setIconSize(QSize(18, 18))
        self.btn_reset.setStyleSheet(btn_style % "#636e72")
        self.btn_reset.clicked.connect(self.bridge.reset_to_defaults)

        transport_layout = QHBoxLayout()
        transport_layout.setSpacing(12)
        transport_layout.addWidget(self.btn_play_pause)
        transport_layout.addWidget(self.btn_reset)
        self.main_layout.addLayout(transport_layout)

    def create_parameter_controls(self):
        self.rate_slider = ParameterSlider(
            "Playback rate", PARAMETER_LIMITS.playback_rate, lambda v: f"{v:.1f}x")
        self.rate_slider.valueChanged.connect(self.bridge.set_playback_rate)

        self.pitch_slider = ParameterSlider(
            "Transpose", PARAMETER_LIMITS.pitch_semitones, lambda v: f"{int(v)} semitones")
        self.pitch_slider.valueChanged.connect(lambda v: self.bridge.set_pitch(int(v)))

        self.reverb_slider = ParameterSlider(
            "Reverb", PARAMETER_LIMITS.reverb_decay, lambda v: f"{v:g}s")
        self.reverb_slider.valueChanged.connect(self.bridge.set_reverb_decay)

        for slider in (self.rate_slider, self.pitch_slider, self.reverb_slider):
            self.main_layout.addWidget(slider)

    def create_equalizer_section(self):
        eq_frame = QFrame()
        eq_frame.setStyleSheet("QFrame#eqSection { background-color: #2a2a2a; border-radius: 10px; }")
        eq_frame.setObjectName("eqSection")
        eq_layout = QVBoxLayout(eq_frame)
        eq_layout.setContentsMargins(16, 16, 16, 16)

        header = QHBoxLayout()
        eq_title = QLabel("3-Band Equalizer")
        eq_title.setStyleSheet("color: #6c5ce7; font-size: 17px; font-weight: bold;")
        self.eq_visualizer = EqVisualizerWidget()
        header.addWidget(eq_title)
        header.addStretch()
        header.addWidget(self.eq_visualizer)
        eq_layout.addLayout(header)

        self.band_sliders = {}
        for band in EqualizerBand:
            slider = ParameterSlider(
                BAND_TITLES[band], PARAMETER_LIMITS.equalizer_gain,
                lambda v: f"{int(v)}dB", color=BAND_COLORS[band].name())
            slider.valueChanged.connect(lambda v, b=band: self.on_band_changed(b, int(v)))
            eq_layout.addWidget(slider)
            self.band_sliders[band] = slider

        self.main_layout.addWidget(eq_frame)

    # --- Actions ---

    def open_file_dialog(self):
        logger.info("Opening file dialog")
        file_path, _ = QFileDialog.getOpenFileName(self, "Open Audio File", "", AUDIO_FILTER)
        if file_path:
            logger.info(f"User selected: {file_path}")
            self.load_source(file_path)

    def load_source(self, file_path):
        self.set_controls_enabled(False)
        self.statusBar().showMessage(f"Loading {os.path.basename(file_path)}...")
        self.bridge.load(file_path)

    def toggle_play_pause(self):
        self.bridge.toggle_playback()

    def on_band_changed(self, band, db):
        self.eq_visualizer.set_settings(self.eq_visualizer.settings.with_gain(band, db))
        self.bridge.set_equalizer_band(band, db)

    def set_controls_enabled(self, enabled):
        for widget in (self.btn_play_pause, self.btn_reset, self.rate_slider,
                       self.pitch_slider, self.reverb_slider, *self.band_sliders.values()):
            widget.setEnabled(enabled)

    # --- Session updates ---

    def on_state_changed(self, snapshot):
        self.set_controls_enabled(snapshot.ready)
        self.error_banner.show_error(snapshot.last_error)

        params = snapshot.params
        self.rate_slider.set_value(params.playback_rate)
        self.pitch_slider.set_value(params.pitch_semitones)
        self.reverb_slider.set_value(params.reverb_decay)
        for band, slider in self.band_sliders.items():
            slider.set_value(params.equalizer.gain(band))
        self.eq_visualizer.set_settings(params.equalizer)

        if snapshot.playing:
            self.btn_play_pause.setText(" Pause")
            self.btn_play_pause.setIcon(qta.icon("fa5s.pause", color="white"))
        else:
            self.btn_play_pause.setText(" Play")
            self.btn_play_pause.setIcon(qta.icon("fa5s.play", color="white"))

        if snapshot.source and snapshot.ready:
            state = "Playing" if snapshot.playing else "Ready"
            self.statusBar().showMessage(f"{state}: {os.path.basename(snapshot.source)}")
        elif snapshot.source and not snapshot.last_error:
            self.statusBar().showMessage(f"Loading {os.path.basename(snapshot.source)}...")

    def closeEvent(self, event):
        self.bridge.shutdown()
        super().closeEvent(event)
