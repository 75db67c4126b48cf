import sys

from PySide6.QtWidgets import QApplication

from generation.settings import settings
from renderer.core.logger import setup_logging
from ui.main_window import MainWindow


def main():
    setup_logging(settings.DEBUG)
    app = QApplication(sys.argv)
    window = MainWindow(language=settings.LANGUAGE)
    window.resize(1280, 800)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
