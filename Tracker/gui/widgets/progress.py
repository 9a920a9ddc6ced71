"""Progress bar with a 'completed/total (pct%)' caption."""
from __future__ import annotations

from typing import Optional

from PySide6.QtWidgets import QHBoxLayout, QLabel, QProgressBar, QWidget

from ...models import Progress


class ProgressWidget(QWidget):
    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)

        self._bar = QProgressBar()
        self._bar.setRange(0, 100)
        self._bar.setTextVisible(False)
        self._bar.setMaximumHeight(12)
        layout.addWidget(self._bar, stretch=1)

        self._label = QLabel("0/0 (0%)")
        self._label.setMinimumWidth(110)
        layout.addWidget(self._label)

    def set_progress(self, progress: Progress) -> None:
        self._bar.setValue(progress.percentage)
        self._label.setText(str(progress))
