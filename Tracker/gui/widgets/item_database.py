"""
Searchable, paginated browser for the reference item database.
"""
from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QBrush, QColor
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...tracker import TrackerApp
from ...views import display_value
from .all_items import RARITY_COLORS


class ItemDatabaseWidget(QWidget):
    """
    Item database tab.

    Search and paging state live on TrackerApp so the command line and the
    desktop front end page through the same results.
    """

    COLUMNS = [
        ("Name", "name"),
        ("Rarity", "rarity"),
        ("Type", "item_type"),
        ("Value", "value"),
        ("Weight", "weight"),
        ("Description", "description"),
    ]

    def __init__(self, app: TrackerApp, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._app = app

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(app.config.search.debounce_ms)
        self._search_timer.timeout.connect(self._apply_search)

        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)

        controls = QHBoxLayout()
        self._search = QLineEdit()
        self._search.setPlaceholderText("Search by name, type, description or rarity...")
        self._search.setClearButtonEnabled(True)
        self._search.setMaxLength(self._app.config.search.max_length)
        self._search.textChanged.connect(lambda _text: self._search_timer.start())
        controls.addWidget(self._search, stretch=1)

        controls.addWidget(QLabel("Per page:"))
        self._per_page = QComboBox()
        for option in self._app.config.pagination.options:
            self._per_page.addItem(str(option), option)
        index = self._per_page.findData(self._app.items_per_page)
        if index >= 0:
            self._per_page.setCurrentIndex(index)
        self._per_page.currentIndexChanged.connect(self._on_per_page_changed)
        controls.addWidget(self._per_page)
        layout.addLayout(controls)

        self._table = QTableWidget(0, len(self.COLUMNS))
        self._table.setHorizontalHeaderLabels([label for label, _key in self.COLUMNS])
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self._table.verticalHeader().setVisible(False)
        self._table.setWordWrap(True)
        header = self._table.horizontalHeader()
        header.setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(len(self.COLUMNS) - 1, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self._table, stretch=1)

        footer = QHBoxLayout()
        self._info_label = QLabel()
        footer.addWidget(self._info_label, stretch=1)

        self._prev_btn = QPushButton("Previous")
        self._prev_btn.clicked.connect(lambda: self._app.change_page(self._app.current_page - 1))
        footer.addWidget(self._prev_btn)

        self._page_label = QLabel()
        self._page_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._page_label.setMinimumWidth(90)
        footer.addWidget(self._page_label)

        self._next_btn = QPushButton("Next")
        self._next_btn.clicked.connect(lambda: self._app.change_page(self._app.current_page + 1))
        footer.addWidget(self._next_btn)
        layout.addLayout(footer)

    def _apply_search(self) -> None:
        self._app.set_search(self._search.text())

    def _on_per_page_changed(self, _index: int) -> None:
        self._app.change_items_per_page(self._per_page.currentData())

    def refresh(self) -> None:
        result = self._app.reference_page()

        self._table.setRowCount(len(result.rows))
        for row, record in enumerate(result.rows.to_dict("records")):
            for column, (_label, key) in enumerate(self.COLUMNS):
                value = record.get(key)
                if key == "rarity" and value:
                    cell = QTableWidgetItem(str(value).capitalize())
                    if value in RARITY_COLORS:
                        cell.setForeground(QBrush(QColor(RARITY_COLORS[value])))
                else:
                    cell = QTableWidgetItem(display_value(value))
                if key == "description":
                    cell.setToolTip(display_value(value))
                self._table.setItem(row, column, cell)

        self._info_label.setText(result.describe())
        self._page_label.setText(f"Page {result.page.number} of {result.page.total_pages}")
        self._prev_btn.setEnabled(result.page.has_previous)
        self._next_btn.setEnabled(result.page.has_next)
