"""Tracker package for ARC Raiders project item tracking."""
from .config import load_config, save_config, TrackerConfig, ProjectSource, ConfigError
from .catalog import Catalog, NoDataAvailableError, NON_KEEPABLE_QUEST_ITEMS
from .fetch import fetch_json, FetchError
from .identity import compute_identity, compute_group_identity
from .models import Item, ReferenceItem, RemainingSummary, Progress
from .state_store import StateStore, UNDEFINED
from .storage import (
    StorageBackend,
    StorageError,
    MemoryStorageBackend,
    FileStorageBackend,
    SQLiteStorageBackend,
    create_storage,
)
from .tracker import TrackerApp, TABS
from .tracker_logging import LogLevel, TrackerLogger, create_logger, create_string_logger

__all__ = [
    "load_config",
    "save_config",
    "TrackerConfig",
    "ProjectSource",
    "ConfigError",
    "Catalog",
    "NoDataAvailableError",
    "NON_KEEPABLE_QUEST_ITEMS",
    "fetch_json",
    "FetchError",
    "compute_identity",
    "compute_group_identity",
    "Item",
    "ReferenceItem",
    "RemainingSummary",
    "Progress",
    "StateStore",
    "UNDEFINED",
    # Storage backends
    "StorageBackend",
    "StorageError",
    "MemoryStorageBackend",
    "FileStorageBackend",
    "SQLiteStorageBackend",
    "create_storage",
    "TrackerApp",
    "TABS",
    "LogLevel",
    "TrackerLogger",
    "create_logger",
    "create_string_logger",
]
