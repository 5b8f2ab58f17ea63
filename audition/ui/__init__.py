"""
Audition UI Module

Qt-based user interface components:
- MainWindow: Main application window
- SessionBridge: Runs the session loop and relays its state to Qt
- ParameterSlider: Labelled slider bound to one control
- EqVisualizerWidget: Equalizer band bars
- ErrorBanner: Dismissible error message
"""
from .main_window import MainWindow
from .session_bridge import SessionBridge
from .control_widget import ParameterSlider
from .eq_visualizer import EqVisualizerWidget
from .error_banner import ErrorBanner

__all__ = [
    'MainWindow',
    'SessionBridge',
    'ParameterSlider',
    'EqVisualizerWidget',
    'ErrorBanner',
]
