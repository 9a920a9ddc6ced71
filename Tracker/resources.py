"""
Resource path utilities for frozen (PyInstaller) and development modes.

Bundled item data lives in ``Data/`` at the project root and the default
configuration next to this module. Both resolve the same way whether the
tracker runs from a checkout or from a packaged executable.
"""
from __future__ import annotations

import sys
from pathlib import Path


def get_resource_path(relative_path: str) -> Path:
    """
    Get absolute path to a bundled resource, works for dev and PyInstaller.

    Parameters
    ----------
    relative_path : str
        Path relative to project root (e.g., "Data/quest_items.json")

    Returns
    -------
    Path
        Absolute path to the resource

    Examples
    --------
    >>> config_path = get_resource_path("Tracker/DefaultTrackerConfig.yaml")
    >>> data_path = get_resource_path("Data/all_items.json")
    """
    if getattr(sys, 'frozen', False):
        # sys._MEIPASS is the temp folder PyInstaller extracts into
        base_path = Path(sys._MEIPASS)  # type: ignore[attr-defined]
    else:
        # This file is in Tracker/, so parent.parent is project root
        base_path = Path(__file__).resolve().parent.parent
    return base_path / relative_path


def get_data_dir() -> Path:
    """Directory holding the bundled project and reference JSON files."""
    return get_resource_path("Data")


def is_frozen() -> bool:
    """True when running as a packaged executable."""
    return getattr(sys, 'frozen', False)
