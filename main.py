import sys
from PyQt6.QtWidgets import QApplication
import qdarktheme

from audition.ui.main_window import MainWindow

def main():
    app = QApplication(sys.argv)
    
    # Apply modern dark theme
    app.setStyleSheet(qdarktheme.load_stylesheet(theme="dark"))
    
    # Optional audio file to open on launch
    source = sys.argv[1] if len(sys.argv) > 1 else None
    window = MainWindow(source=source)
    window.show()
    
    sys.exit(app.exec())

if __name__ == "__main__":
    main()
