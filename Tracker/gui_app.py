#!/usr/bin/env python
"""
GUI entry point for the ARC Item Tracker.

Usage:
    python -m Tracker.gui_app
    arc-tracker-gui  (if installed via pip)
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication

from .gui import MainWindow


def main(config_path: Optional[Path] = None) -> int:
    """
    Launch the GUI application.

    Parameters
    ----------
    config_path : Path, optional
        Path to config YAML. Defaults to Tracker/DefaultTrackerConfig.yaml

    Returns
    -------
    int
        Exit code (0 for success)
    """
    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    app = QApplication(sys.argv)
    app.setApplicationName("ARC Item Tracker")
    app.setApplicationVersion("0.1.0")
    app.setOrganizationName("ArcItemTracker")
    app.setStyle("Fusion")

    window = MainWindow(config_path)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
