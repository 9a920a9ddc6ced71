"""
Checklist for one project, grouped by requirement.

Each requirement group is a collapsible box with its own progress and a
checkbox per item. Toggling a checkbox goes through TrackerApp, which
persists the change and triggers a redraw.
"""
from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import Qt, QTimer, Signal
from PySide6.QtGui import QBrush, QColor
from PySide6.QtWidgets import (
    QAbstractItemView,
    QFrame,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QPushButton,
    QScrollArea,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ...tracker import GroupView, TrackerApp
from ...views import display_value, validate_search_term
from .all_items import RARITY_COLORS
from .progress import ProgressWidget


class RequirementGroupWidget(QFrame):
    """
    One requirement group.

    Signals
    -------
    item_toggled : Signal(str)
        Item identity whose checkbox was clicked.
    collapse_toggled : Signal(str)
        Group identity whose header button was clicked.
    """

    item_toggled = Signal(str)
    collapse_toggled = Signal(str)

    COLUMNS = ["", "Item", "Rarity", "Qty", "Type", "Value", "Weight", "Description"]

    def __init__(self, app: TrackerApp, project_name: str, group: GroupView,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._app = app
        self._project_name = project_name
        self._group = group
        self.setFrameShape(QFrame.Shape.StyledPanel)
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(4)

        header = QHBoxLayout()
        toggle_btn = QPushButton("▶" if self._group.collapsed else "▼")
        toggle_btn.setFixedWidth(28)
        toggle_btn.setFlat(True)
        toggle_btn.setToolTip(f"{'Expand' if self._group.collapsed else 'Collapse'} {self._group.name}")
        toggle_btn.clicked.connect(lambda: self.collapse_toggled.emit(self._group.group_id))
        header.addWidget(toggle_btn)

        progress = self._group.progress
        title = QLabel(f"<b>{self._group.name or 'General'}</b>  "
                       f"({progress.completed}/{progress.total} - {progress.percentage}%)")
        header.addWidget(title, stretch=1)
        layout.addLayout(header)

        if self._group.collapsed:
            return

        table = QTableWidget(len(self._group.items), len(self.COLUMNS))
        table.setHorizontalHeaderLabels(self.COLUMNS)
        table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        table.verticalHeader().setVisible(False)
        table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)
        table.horizontalHeader().setSectionResizeMode(7, QHeaderView.ResizeMode.Stretch)

        for row, item in enumerate(self._group.items):
            completed = self._app.store.is_item_completed(self._project_name, item.id)
            reference = self._app.reference_item(item.name)

            check = QTableWidgetItem()
            check.setFlags(Qt.ItemFlag.ItemIsUserCheckable | Qt.ItemFlag.ItemIsEnabled)
            check.setCheckState(Qt.CheckState.Checked if completed else Qt.CheckState.Unchecked)
            check.setData(Qt.ItemDataRole.UserRole, item.id)
            table.setItem(row, 0, check)

            name_item = QTableWidgetItem(item.name)
            if completed:
                font = name_item.font()
                font.setStrikeOut(True)
                name_item.setFont(font)
            table.setItem(row, 1, name_item)

            rarity = reference.rarity if reference else ""
            rarity_item = QTableWidgetItem(rarity.capitalize() if rarity else "-")
            if rarity in RARITY_COLORS:
                rarity_item.setForeground(QBrush(QColor(RARITY_COLORS[rarity])))
            table.setItem(row, 2, rarity_item)

            table.setItem(row, 3, QTableWidgetItem(str(item.quantity)))
            table.setItem(row, 4, QTableWidgetItem(display_value(reference.item_type if reference else None)))
            table.setItem(row, 5, QTableWidgetItem(display_value(reference.value if reference else None)))
            table.setItem(row, 6, QTableWidgetItem(display_value(reference.weight if reference else None)))
            table.setItem(row, 7, QTableWidgetItem(display_value(reference.description if reference else None)))

        table.itemChanged.connect(self._on_item_changed)
        table.setFixedHeight(
            table.horizontalHeader().height() + sum(table.rowHeight(r) for r in range(table.rowCount())) + 4
        )
        layout.addWidget(table)

    def _on_item_changed(self, cell: QTableWidgetItem) -> None:
        if cell.column() != 0:
            return
        item_id = cell.data(Qt.ItemDataRole.UserRole)
        if item_id:
            self.item_toggled.emit(item_id)


class ProjectWidget(QWidget):
    """All requirement groups of one project, with a search box and overall progress."""

    def __init__(self, app: TrackerApp, project_name: str, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._app = app
        self._project_name = project_name
        self._group_widgets: List[RequirementGroupWidget] = []

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(app.config.search.debounce_ms)
        self._search_timer.timeout.connect(self.refresh)

        self._setup_ui()

    @property
    def project_name(self) -> str:
        return self._project_name

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)

        self._progress = ProgressWidget()
        layout.addWidget(self._progress)

        self._search = QLineEdit()
        self._search.setPlaceholderText(f"Search items in {self._project_name}...")
        self._search.setClearButtonEnabled(True)
        self._search.setMaxLength(self._app.config.search.max_length)
        self._search.textChanged.connect(lambda _text: self._search_timer.start())
        layout.addWidget(self._search)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        self._groups_container = QWidget()
        self._groups_layout = QVBoxLayout(self._groups_container)
        self._groups_layout.setContentsMargins(0, 0, 0, 0)
        self._groups_layout.setSpacing(8)
        self._empty_label = QLabel("Project Not Found")
        self._empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._empty_label.hide()
        self._groups_layout.addWidget(self._empty_label)
        self._groups_layout.addStretch()
        scroll.setWidget(self._groups_container)
        layout.addWidget(scroll, stretch=1)

    def _clear_groups(self) -> None:
        for widget in self._group_widgets:
            self._groups_layout.removeWidget(widget)
            widget.deleteLater()
        self._group_widgets.clear()

    def refresh(self) -> None:
        """Rebuild every group from current state."""
        term = validate_search_term(self._search.text(), self._app.config.search.max_length)
        view = self._app.project_view(self._project_name, term)

        self._progress.set_progress(view.progress)
        self._clear_groups()

        self._empty_label.setVisible(not view.found)
        for index, group in enumerate(view.groups):
            widget = RequirementGroupWidget(self._app, self._project_name, group)
            widget.item_toggled.connect(self._on_item_toggled)
            widget.collapse_toggled.connect(self._on_collapse_toggled)
            self._groups_layout.insertWidget(index, widget)
            self._group_widgets.append(widget)

    # The app redraws synchronously, which deletes the emitting widget, so
    # mutations are queued until the signal has returned.

    def _on_item_toggled(self, item_id: str) -> None:
        QTimer.singleShot(0, lambda: self._app.toggle_item(self._project_name, item_id))

    def _on_collapse_toggled(self, group_id: str) -> None:
        QTimer.singleShot(0, lambda: self._app.toggle_group_collapse(group_id))
