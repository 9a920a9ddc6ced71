"""
Path-addressed application state mirrored to durable storage.

The state tree is a nested dict. Completion flags live at
``<project>.<item_id>``, group collapse flags at ``collapsed.<group_id>`` and
the theme name at ``theme``. Every mutation persists the whole tree and then
synchronously notifies listeners registered for that exact path.

Paths are either dot-separated strings or tuples of keys. Use a tuple when a
key may itself contain a dot (project names are free text); item and group
identities never do.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Sequence, Set, Tuple, Union

from .config import DEFAULT_THEME, THEMES
from .storage import StorageBackend, StorageError
from .tracker_logging import TrackerLogger, create_logger

DEFAULT_STATE_KEY = "arc-item-tracker-state"
DEFAULT_THEME_KEY = "arc-item-tracker-theme"

COLLAPSED_KEY = "collapsed"
THEME_KEY = "theme"

StatePath = Union[str, Sequence[str]]
Listener = Callable[[str, Any], None]


class _Undefined:
    """Sentinel for 'no value at this path'. Falsy, singleton."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()


def split_path(path: StatePath) -> Tuple[str, ...]:
    """Normalise a path into a tuple of keys."""
    keys = tuple(path.split(".")) if isinstance(path, str) else tuple(str(k) for k in path)
    if not keys:
        raise ValueError("State path cannot be empty")
    return keys


def lookup(tree: Any, keys: Sequence[str], default: Any = UNDEFINED) -> Any:
    """Walk keys through nested dicts, stopping at the first missing key."""
    current = tree
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


class StateStore:
    """
    Owns the mutable state tree.

    One instance is created by the application and handed to every
    collaborator that reads or writes state. Storage failures are logged and
    never propagated; the in-memory tree stays authoritative for the session.

    Parameters
    ----------
    storage : StorageBackend
        Durable key-value storage for the state blob and the theme name.
    logger : TrackerLogger, optional
        Destination for warnings. Defaults to a SUMMARY-level stderr logger.
    state_key, theme_key : str
        Storage keys for the JSON tree and the standalone theme value.
    default_theme : str
        Theme used when neither storage key provides a valid one.
    """

    def __init__(
        self,
        storage: StorageBackend,
        logger: Optional[TrackerLogger] = None,
        *,
        state_key: str = DEFAULT_STATE_KEY,
        theme_key: str = DEFAULT_THEME_KEY,
        default_theme: str = DEFAULT_THEME,
    ):
        self._storage = storage
        self._logger = logger or create_logger()
        self._state_key = state_key
        self._theme_key = theme_key
        self._default_theme = default_theme if default_theme in THEMES else DEFAULT_THEME
        self._state: Dict[str, Any] = {}
        self._listeners: Dict[Tuple[str, ...], Set[Listener]] = {}

    # -------------------------------------------------------------------------
    # Loading and persistence
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """Read the saved tree; fall back to an empty one on any problem."""
        try:
            saved = self._storage.get_item(self._state_key)
            if saved:
                loaded = json.loads(saved)
                if not isinstance(loaded, dict):
                    raise ValueError(f"expected a JSON object, got {type(loaded).__name__}")
                self._state = loaded
            else:
                self._state = {}
        except (StorageError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            self._logger.log_state_load_failed(exc)
            self._state = {}

        self._initialize_structure()
        self._logger.log_state_loaded(sorted(self._state))

    def _initialize_structure(self) -> None:
        """Ensure the collapse map and the theme exist."""
        if not isinstance(self._state.get(COLLAPSED_KEY), dict):
            self._state[COLLAPSED_KEY] = {}

        # The dedicated theme key wins over the copy embedded in the tree
        stored_theme = self._read_theme_key()
        if stored_theme in THEMES:
            self._state[THEME_KEY] = stored_theme
        elif self._state.get(THEME_KEY) not in THEMES:
            self._state[THEME_KEY] = self._default_theme

    def _read_theme_key(self) -> Optional[str]:
        try:
            return self._storage.get_item(self._theme_key)
        except StorageError as exc:
            self._logger.log_state_load_failed(exc)
            return None

    def save(self) -> bool:
        """Persist the whole tree. Returns False (and logs) on failure."""
        try:
            self._storage.set_item(self._state_key, json.dumps(self._state))
        except (StorageError, TypeError, ValueError) as exc:
            self._logger.log_state_save_failed(exc)
            return False
        return True

    # -------------------------------------------------------------------------
    # Path access
    # -------------------------------------------------------------------------

    def get(self, path: StatePath, default: Any = UNDEFINED) -> Any:
        """Return the value at path, or default if any key is missing."""
        return lookup(self._state, split_path(path), default)

    def set(self, path: StatePath, value: Any) -> None:
        """Assign value at path, creating intermediate dicts, then persist and notify."""
        keys = split_path(path)
        current = self._state
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

        path_str = ".".join(keys)
        self._logger.log_state_change(path_str, value)
        self.save()
        self._notify_listeners(keys, value)

    def toggle(self, path: StatePath) -> bool:
        """Flip the boolean at path (missing counts as False). Returns the new value."""
        new_value = not bool(self.get(path, False))
        self.set(path, new_value)
        return new_value

    # -------------------------------------------------------------------------
    # Item completion
    # -------------------------------------------------------------------------

    def is_item_completed(self, project_name: str, item_id: str) -> bool:
        return bool(self.get((project_name, item_id), False))

    def set_item_completed(self, project_name: str, item_id: str, completed: bool) -> None:
        self.set((project_name, item_id), bool(completed))

    def toggle_item(self, project_name: str, item_id: str) -> bool:
        return self.toggle((project_name, item_id))

    # -------------------------------------------------------------------------
    # Group collapse
    # -------------------------------------------------------------------------

    def is_group_collapsed(self, group_id: str) -> bool:
        return bool(self.get((COLLAPSED_KEY, group_id), False))

    def set_group_collapsed(self, group_id: str, collapsed: bool) -> None:
        self.set((COLLAPSED_KEY, group_id), bool(collapsed))

    def toggle_group_collapse(self, group_id: str) -> bool:
        return self.toggle((COLLAPSED_KEY, group_id))

    # -------------------------------------------------------------------------
    # Theme
    # -------------------------------------------------------------------------

    def get_theme(self) -> str:
        theme = self.get(THEME_KEY, self._default_theme)
        return theme if theme in THEMES else self._default_theme

    def set_theme(self, theme: str) -> None:
        """Write the theme into the tree and under its own storage key."""
        if theme not in THEMES:
            raise ValueError(f"Unknown theme '{theme}', expected one of {', '.join(THEMES)}")
        self.set(THEME_KEY, theme)
        try:
            self._storage.set_item(self._theme_key, theme)
        except StorageError as exc:
            self._logger.log_state_save_failed(exc)

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_listener(self, path: StatePath, callback: Listener) -> None:
        """
        Call callback(path, value) whenever set() touches exactly this path.

        Paths match key by key, so ("a.b", "c") and "a.b.c" are distinct.
        """
        self._listeners.setdefault(split_path(path), set()).add(callback)

    def remove_listener(self, path: StatePath, callback: Listener) -> None:
        listeners = self._listeners.get(split_path(path))
        if listeners is not None:
            listeners.discard(callback)

    def _notify_listeners(self, keys: Tuple[str, ...], value: Any) -> None:
        path = ".".join(keys)
        # Copy so a callback may unregister itself
        for callback in list(self._listeners.get(keys, ())):
            try:
                callback(path, value)
            except Exception as exc:
                self._logger.log_listener_error(path, exc)

    # -------------------------------------------------------------------------
    # Whole-tree access
    # -------------------------------------------------------------------------

    def get_state(self) -> Dict[str, Any]:
        """Shallow copy of the tree. Nested dicts are shared; do not mutate them."""
        return dict(self._state)

    def clear_state(self) -> None:
        """Drop all state and remove both storage keys."""
        for key in (self._state_key, self._theme_key):
            try:
                self._storage.remove_item(key)
            except StorageError as exc:
                self._logger.log_storage_clear_failed(key, exc)
        self._state = {}
        self._initialize_structure()
