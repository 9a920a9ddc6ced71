"""PySide6 desktop front end for the item tracker."""

from .main_window import MainWindow

__all__ = ["MainWindow"]
