from PySide6.QtCore import QObject, Signal
from PySide6.QtWidgets import QMainWindow, QTabWidget

from generation.services import build_services
from ui.async_runner import AsyncRunner
from ui.editor_tab import EditorTab
from ui.error_window import ErrorLogWidget, install_log_bridge
from ui.generate_tab import GenerateTab
from ui.templates_tab import TemplatesTab
from ui.locales import ensure_language, get_section


class ErrorNotifier(QObject):
    errorOccurred = Signal(str, str, str)

    def emit_error(self, title: str, message: str, level: str = "error"):
        self.errorOccurred.emit(title, message, level)


class MainWindow(QMainWindow):
    def __init__(self, services=None, language: str = "en"):
        super().__init__()

        self.language = ensure_language(language)

        self.error_notifier = ErrorNotifier()
        self.services = services or build_services()
        self.runner = AsyncRunner(self.services.background, parent=self)

        self.setMinimumSize(900, 600)

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.templates_tab = TemplatesTab(self.services, self.runner, error_notifier=self.error_notifier)
        self.generate_tab = GenerateTab(self.services, self.runner, error_notifier=self.error_notifier)
        self.generate_tab.languageChanged.connect(self.on_language_changed)
        self.editor_tab = EditorTab(
            self.services,
            self.runner,
            get_export_dir=self.generate_tab.get_export_dir,
            error_notifier=self.error_notifier,
        )
        self.error_log_tab = ErrorLogWidget()
        self.error_notifier.errorOccurred.connect(self.error_log_tab.add_entry)
        self.log_handler = install_log_bridge(self.error_log_tab)

        self.templates_tab.templateOpened.connect(self.open_in_editor)
        self.editor_tab.templateSaved.connect(lambda _t: self.templates_tab.refresh())

        self.tabs.addTab(self.templates_tab, "")
        self.tabs.addTab(self.editor_tab, "")
        self.tabs.addTab(self.generate_tab, "")
        self.tabs.addTab(self.error_log_tab, "")

        self.set_language(self.language)

        self.templates_tab.refresh()
        self.generate_tab.reload()

    def open_in_editor(self, template):
        self.editor_tab.open_template(template)
        self.tabs.setCurrentWidget(self.editor_tab)

    def set_language(self, language: str):
        language = ensure_language(language)
        self.language = language
        app_strings = get_section(language, "app")
        tabs_strings = get_section(language, "tabs")
        error_strings = get_section(language, "error_log")

        title = app_strings.get("window_title")
        if not title:
            name = app_strings.get("name", "BBN Card Studio")
            version = app_strings.get("version", "")
            title = f"{name} {version}".strip()

        self.setWindowTitle(title)
        self.tabs.setTabText(0, tabs_strings.get("templates", "Templates"))
        self.tabs.setTabText(1, tabs_strings.get("editor", "Editor"))
        self.tabs.setTabText(2, tabs_strings.get("generate", "Generate"))
        self.tabs.setTabText(3, error_strings.get("tab_title", "Errors"))
        self.templates_tab.set_language(language)
        self.editor_tab.set_language(language)
        self.generate_tab.set_language(language)
        self.error_log_tab.set_language(language)

    def on_language_changed(self, language: str):
        self.set_language(language)

    def closeEvent(self, event):
        self.editor_tab.shutdown()
        self.runner.shutdown()
        super().closeEvent(event)
