"""
Main application window for the ARC Item Tracker GUI.

Hosts one tab per view and redraws the visible widgets after every change
reported by TrackerApp.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from PySide6.QtCore import QObject, QThread, Signal, Slot
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QStatusBar,
    QTabWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..config import ConfigError, load_config
from ..tracker import ALL_TAB, TABS, WIKI_TAB, TrackerApp
from ..tracker_logging import LogLevel, create_string_logger
from .widgets import AllItemsWidget, ItemDatabaseWidget, ProjectWidget

DARK_STYLESHEET = """
    QWidget { background-color: #1e1f22; color: #e6e6e6; }
    QLineEdit, QComboBox, QTableWidget, QTextEdit {
        background-color: #2b2d31; border: 1px solid #3c3f45;
    }
    QHeaderView::section { background-color: #2b2d31; color: #e6e6e6; }
    QTabBar::tab:selected { background-color: #3c3f45; }
    QProgressBar::chunk { background-color: #4caf50; }
"""

LIGHT_STYLESHEET = """
    QProgressBar::chunk { background-color: #4caf50; }
"""


class LoadWorker(QObject):
    """
    Loads saved state and item data off the GUI thread.

    Signals:
        finished(bool): Emitted when loading completes (True if any project loaded)
    """

    finished = Signal(bool)

    def __init__(self, app: TrackerApp):
        super().__init__()
        self._app = app

    @Slot()
    def run(self) -> None:
        self.finished.emit(self._app.initialize())


class MainWindow(QMainWindow):
    """
    Main application window.

    Layout:
    - Tabs: All Items, one per project, Item Database
    - Menu: export, reset, theme toggle, logs
    - Status bar: overall progress
    """

    def __init__(self, config_path: Optional[Path] = None):
        super().__init__()

        try:
            config = load_config(config_path)
        except ConfigError as exc:
            QMessageBox.critical(None, "Configuration Error", str(exc))
            config = load_config(None)

        level = LogLevel.__members__.get(config.log_level, LogLevel.SUMMARY)
        self._logger, self._log_buffer = create_string_logger(level)
        self._app = TrackerApp(config, logger=self._logger)
        self._load_thread: Optional[QThread] = None
        self._project_widgets: Dict[str, ProjectWidget] = {}
        self._all_items_widget: Optional[AllItemsWidget] = None

        self._setup_ui()
        self._setup_menu()

        self.setWindowTitle("ARC Raiders Item Tracker")
        self.resize(1100, 750)
        self.setMinimumSize(800, 500)

        self._start_loading()

    def _setup_ui(self) -> None:
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(8, 8, 8, 8)

        self._error_label = QLabel()
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet("color: #e53935; font-weight: bold;")
        self._error_label.hide()
        layout.addWidget(self._error_label)

        self._tabs = QTabWidget()
        self._tabs.currentChanged.connect(self._on_tab_changed)
        layout.addWidget(self._tabs, stretch=1)

        self._status_bar = QStatusBar()
        self.setStatusBar(self._status_bar)
        self._status_bar.showMessage("Loading item data...")

    def _setup_menu(self) -> None:
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        export_action = file_menu.addAction("&Export Remaining Items...")
        export_action.triggered.connect(self._on_export)
        file_menu.addSeparator()
        reset_action = file_menu.addAction("&Reset Progress...")
        reset_action.triggered.connect(self._on_reset)
        file_menu.addSeparator()
        exit_action = file_menu.addAction("E&xit")
        exit_action.triggered.connect(self.close)

        view_menu = menubar.addMenu("&View")
        self._theme_action = QAction("&Dark Theme", self)
        self._theme_action.setCheckable(True)
        self._theme_action.triggered.connect(self._on_toggle_theme)
        view_menu.addAction(self._theme_action)

        dev_menu = menubar.addMenu("&Developer")
        view_logs_action = dev_menu.addAction("&View Logs...")
        view_logs_action.triggered.connect(self._on_view_logs)
        clear_logs_action = dev_menu.addAction("&Clear Logs")
        clear_logs_action.triggered.connect(self._on_clear_logs)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _start_loading(self) -> None:
        self._load_thread = QThread()
        self._load_worker = LoadWorker(self._app)
        self._load_worker.moveToThread(self._load_thread)

        self._load_thread.started.connect(self._load_worker.run)
        self._load_worker.finished.connect(self._on_load_finished)
        self._load_worker.finished.connect(self._load_thread.quit)

        self._load_thread.start()

    @Slot(bool)
    def _on_load_finished(self, ok: bool) -> None:
        if not ok:
            self._error_label.setText(self._app.load_error or "No item files could be loaded")
            self._error_label.show()

        self._build_tabs()
        self._apply_theme(self._app.theme)
        self._app.subscribe(self._on_app_changed)
        self._refresh_all()

    def _build_tabs(self) -> None:
        self._all_items_widget = AllItemsWidget(self._app)
        self._tabs.addTab(self._all_items_widget, TABS[ALL_TAB])

        for project_name in self._app.catalog.project_names:
            widget = ProjectWidget(self._app, project_name)
            self._project_widgets[project_name] = widget
            self._tabs.addTab(widget, project_name)

        self._database_widget = ItemDatabaseWidget(self._app)
        self._tabs.addTab(self._database_widget, TABS[WIKI_TAB])

    # -------------------------------------------------------------------------
    # Redraw
    # -------------------------------------------------------------------------

    def _on_app_changed(self, reason: str) -> None:
        if reason == "theme":
            self._apply_theme(self._app.theme)
            return
        if reason in ("search", "pagination", "tab"):
            self._database_widget.refresh()
            return
        self._refresh_all()

    def _refresh_all(self) -> None:
        if self._tabs.count() == 0:
            return
        self._all_items_widget.refresh()
        for widget in self._project_widgets.values():
            widget.refresh()
        self._database_widget.refresh()
        self._status_bar.showMessage(f"Overall progress: {self._app.overall_progress()}")

    def _apply_theme(self, theme: str) -> None:
        app = QApplication.instance()
        if app is not None:
            app.setStyleSheet(DARK_STYLESHEET if theme == "dark" else LIGHT_STYLESHEET)
        self._theme_action.setChecked(theme == "dark")

    @Slot(int)
    def _on_tab_changed(self, index: int) -> None:
        widget = self._tabs.widget(index)
        if isinstance(widget, ProjectWidget):
            tab = self._app.config.tab_for_project(widget.project_name)
            if tab in TABS:
                self._app.current_tab = tab
        elif widget is getattr(self, "_database_widget", None):
            self._app.current_tab = WIKI_TAB
        else:
            self._app.current_tab = ALL_TAB

    # -------------------------------------------------------------------------
    # Menu handlers
    # -------------------------------------------------------------------------

    @Slot()
    def _on_toggle_theme(self) -> None:
        self._app.toggle_theme()

    @Slot()
    def _on_export(self) -> None:
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Remaining Items", "remaining_items.csv", "CSV Files (*.csv)"
        )
        if not path:
            return
        term = self._all_items_widget.search_term() if self._all_items_widget else ""
        try:
            count = self._app.export_remaining(Path(path), term=term)
        except OSError as exc:
            QMessageBox.critical(self, "Export Failed", f"Could not write {path}:\n{exc}")
            return
        self._status_bar.showMessage(f"Exported {count} items to {path}")

    @Slot()
    def _on_reset(self) -> None:
        reply = QMessageBox.question(
            self,
            "Reset Progress",
            "Clear all completed items and collapsed groups? This cannot be undone.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
        )
        if reply == QMessageBox.StandardButton.Yes:
            self._app.reset()
            self._apply_theme(self._app.theme)

    @Slot()
    def _on_view_logs(self) -> None:
        dialog = QDialog(self)
        dialog.setWindowTitle("Tracker Logs")
        dialog.resize(800, 600)

        layout = QVBoxLayout(dialog)
        text_edit = QTextEdit()
        text_edit.setReadOnly(True)
        text_edit.setFontFamily("Consolas, Monaco, monospace")
        text_edit.setPlainText(self._log_buffer.getvalue() or "(No logs yet.)")
        layout.addWidget(text_edit)

        button_box = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        button_box.rejected.connect(dialog.reject)
        layout.addWidget(button_box)

        dialog.exec()

    @Slot()
    def _on_clear_logs(self) -> None:
        self._logger.clear()
        self._log_buffer.seek(0)
        self._log_buffer.truncate()

    def closeEvent(self, event) -> None:
        if self._load_thread is not None and self._load_thread.isRunning():
            self._load_thread.quit()
            self._load_thread.wait()
        self._app.close()
        event.accept()
