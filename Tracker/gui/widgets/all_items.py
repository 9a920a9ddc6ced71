"""
Combined view of every item still needed across all projects.

One row per item name with remaining/total quantities and the projects that
need it. Non-keepable quest items are not listed.
"""
from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QColor, QBrush
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHeaderView,
    QLabel,
    QLineEdit,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...tracker import TrackerApp
from ...views import format_contributions, format_quantity, validate_search_term
from .progress import ProgressWidget

RARITY_COLORS = {
    "common": "#9e9e9e",
    "uncommon": "#4caf50",
    "rare": "#2196f3",
    "epic": "#9c27b0",
    "legendary": "#ff9800",
}


class AllItemsWidget(QWidget):
    """Read-only table of remaining quantities, searchable by item or project."""

    COLUMNS = ["Item", "Remaining", "Rarity", "Needed For"]

    def __init__(self, app: TrackerApp, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._app = app

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(app.config.search.debounce_ms)
        self._search_timer.timeout.connect(self.refresh)

        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)

        self._progress = ProgressWidget()
        layout.addWidget(self._progress)

        self._search = QLineEdit()
        self._search.setPlaceholderText("Search items or projects...")
        self._search.setClearButtonEnabled(True)
        self._search.setMaxLength(self._app.config.search.max_length)
        self._search.textChanged.connect(lambda _text: self._search_timer.start())
        layout.addWidget(self._search)

        self._table = QTableWidget(0, len(self.COLUMNS))
        self._table.setHorizontalHeaderLabels(self.COLUMNS)
        self._table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self._table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self._table.verticalHeader().setVisible(False)
        header = self._table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Stretch)
        header.setSectionResizeMode(1, QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(2, QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(3, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self._table, stretch=1)

        self._empty_label = QLabel("No items found")
        self._empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._empty_label.hide()
        layout.addWidget(self._empty_label)

    def search_term(self) -> str:
        return validate_search_term(self._search.text(), self._app.config.search.max_length)

    def refresh(self) -> None:
        """Rebuild the table from current state."""
        term = self.search_term()
        summaries = self._app.remaining_view(term)

        self._progress.set_progress(self._app.overall_progress())
        self._table.setRowCount(len(summaries))
        for row, (name, summary) in enumerate(summaries.items()):
            name_item = QTableWidgetItem(name)
            remaining_item = QTableWidgetItem(format_quantity(summary))
            remaining_item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
            if summary.is_complete:
                remaining_item.setForeground(QBrush(QColor("#4caf50")))
                font = name_item.font()
                font.setStrikeOut(True)
                name_item.setFont(font)

            rarity = self._app.catalog.get_item_rarity(name)
            rarity_item = QTableWidgetItem(rarity.capitalize() if rarity else "-")
            if rarity in RARITY_COLORS:
                rarity_item.setForeground(QBrush(QColor(RARITY_COLORS[rarity])))

            self._table.setItem(row, 0, name_item)
            self._table.setItem(row, 1, remaining_item)
            self._table.setItem(row, 2, rarity_item)
            self._table.setItem(row, 3, QTableWidgetItem(format_contributions(summary)))

        self._empty_label.setVisible(not summaries)
        self._table.setVisible(bool(summaries))
