"""Load, normalise, and save tracker configuration from DefaultTrackerConfig.yaml."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .resources import get_data_dir, get_resource_path
from .tracker_logging import LogLevel

DEFAULT_CONFIG_PATH = get_resource_path("Tracker/DefaultTrackerConfig.yaml")

THEMES = ("light", "dark")
DEFAULT_THEME = "light"

QUEST_PROJECT_NAME = "Quest items"

STORAGE_BACKENDS = ("file", "sqlite", "memory")


class ConfigError(Exception):
    """Raised when the configuration file is invalid."""


@dataclass(frozen=True)
class ProjectSource:
    """A named project file and the tab it is shown under."""
    name: str
    location: str  # file name under Data/, absolute path, or http(s) URL
    tab: str = ""

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(("http://", "https://"))


# Project files shipped with the tracker
DEFAULT_PROJECT_SOURCES: List[ProjectSource] = [
    ProjectSource("Expedition Project", "expedition_project.json", "expedition"),
    ProjectSource(QUEST_PROJECT_NAME, "quest_items.json", "quests"),
    ProjectSource("Scrappy items", "scrappy_items.json", "scrappy"),
    ProjectSource("Workshop items", "workshop_items.json", "workshop"),
]

DEFAULT_REFERENCE_SOURCE = "all_items.json"


@dataclass
class PaginationSettings:
    items_per_page: int = 20
    options: List[int] = field(default_factory=lambda: [10, 20, 50])
    max_items_per_page: int = 100


@dataclass
class SearchSettings:
    max_length: int = 100
    debounce_ms: int = 300


@dataclass
class StorageSettings:
    backend: str = "file"
    key_prefix: str = "arc-item-tracker"
    directory: Optional[Path] = None  # None = platform user data directory

    @property
    def state_key(self) -> str:
        return f"{self.key_prefix}-state"

    @property
    def theme_key(self) -> str:
        return f"{self.key_prefix}-theme"


@dataclass
class FetchSettings:
    timeout_seconds: float = 10.0
    max_retries: int = 2
    cache_enabled: bool = False
    cache_name: str = "arc_tracker_cache"
    cache_expire_seconds: Optional[int] = 3600


@dataclass
class TrackerConfig:
    projects: List[ProjectSource] = field(default_factory=lambda: list(DEFAULT_PROJECT_SOURCES))
    reference_source: str = DEFAULT_REFERENCE_SOURCE
    quest_project: str = QUEST_PROJECT_NAME
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
    search: SearchSettings = field(default_factory=SearchSettings)
    theme: str = DEFAULT_THEME
    storage: StorageSettings = field(default_factory=StorageSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    log_level: str = "SUMMARY"

    def project_for_tab(self, tab: str) -> Optional[str]:
        """Map a tab name (e.g. 'quests') to its project name."""
        for source in self.projects:
            if source.tab == tab:
                return source.name
        return None

    def tab_for_project(self, project_name: str) -> Optional[str]:
        """Map a project name to its tab name."""
        for source in self.projects:
            if source.name == project_name:
                return source.tab or None
        return None


def resolve_source(location: str, data_dir: Optional[Path] = None) -> str:
    """
    Resolve a configured source into something fetch_json can open.

    URLs and absolute paths pass through; bare file names and relative paths
    are resolved against the bundled Data/ directory.
    """
    if location.startswith(("http://", "https://")):
        return location
    path = Path(location).expanduser()
    if path.is_absolute():
        return str(path)
    return str((data_dir or get_data_dir()) / path)


def _parse_int(raw: Any, default: int, *, key: str, minimum: int = 0) -> int:
    """Parse an int option, rejecting booleans and junk."""
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise ConfigError(f"Invalid integer for '{key}': {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid integer for '{key}': {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def _parse_bool(raw: Any, default: bool, *, key: str) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Invalid boolean value for '{key}': {raw!r}")


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested mapping under key; empty when the key is missing or blank."""
    section = raw.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return section


def _parse_projects(raw: Any) -> List[ProjectSource]:
    if raw is None:
        return list(DEFAULT_PROJECT_SOURCES)
    if not isinstance(raw, list):
        raise ConfigError("'projects' must be a list")

    projects: List[ProjectSource] = []
    seen: set[str] = set()
    for block in raw:
        if not isinstance(block, dict):
            raise ConfigError(f"Invalid project entry: {block!r}")
        name = str(block.get("name", "")).strip()
        source = str(block.get("source", "")).strip()
        if not name or not source:
            raise ConfigError(f"Project entries need 'name' and 'source': {block!r}")
        if name in seen:
            raise ConfigError(f"Duplicate project name: {name}")
        seen.add(name)
        projects.append(ProjectSource(name=name, location=source, tab=str(block.get("tab", "")).strip()))
    return projects


def load_config(path: Optional[Path] = None) -> TrackerConfig:
    """Load and normalise configuration YAML into TrackerConfig dataclass."""
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        return TrackerConfig()

    try:
        with cfg_path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {cfg_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Top level of {cfg_path} must be a mapping")

    # Pagination
    pag_raw = _section(raw, "pagination")
    max_per_page = _parse_int(pag_raw.get("maxItemsPerPage"), 100, key="maxItemsPerPage", minimum=1)
    options = [
        _parse_int(opt, 0, key="pagination.options", minimum=1)
        for opt in pag_raw.get("options", [10, 20, 50]) or []
    ]
    pagination = PaginationSettings(
        items_per_page=min(
            _parse_int(pag_raw.get("itemsPerPage"), 20, key="itemsPerPage", minimum=1),
            max_per_page,
        ),
        options=[opt for opt in options if opt <= max_per_page] or [10, 20, 50],
        max_items_per_page=max_per_page,
    )

    # Search
    search_raw = _section(raw, "search")
    search = SearchSettings(
        max_length=_parse_int(search_raw.get("maxLength"), 100, key="maxLength", minimum=1),
        debounce_ms=_parse_int(search_raw.get("debounceMs"), 300, key="debounceMs"),
    )

    # Theme
    theme = str(raw.get("theme", DEFAULT_THEME)).strip().lower()
    if theme not in THEMES:
        raise ConfigError(f"Unknown theme '{theme}', expected one of {', '.join(THEMES)}")

    # Storage
    storage_raw = _section(raw, "storage")
    backend = str(storage_raw.get("backend", "file")).strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigError(f"Unknown storage backend '{backend}'")
    directory = storage_raw.get("directory")
    storage = StorageSettings(
        backend=backend,
        key_prefix=str(storage_raw.get("keyPrefix", "arc-item-tracker")).strip() or "arc-item-tracker",
        directory=Path(directory).expanduser() if directory else None,
    )

    # Fetching
    fetch_raw = _section(raw, "fetch")
    expire_raw = fetch_raw.get("cacheExpireSeconds", 3600)
    try:
        timeout = float(fetch_raw.get("timeoutSeconds", 10.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid float for 'timeoutSeconds': {fetch_raw.get('timeoutSeconds')!r}") from exc
    if timeout <= 0:
        raise ConfigError("'timeoutSeconds' must be positive")
    fetch = FetchSettings(
        timeout_seconds=timeout,
        max_retries=_parse_int(fetch_raw.get("maxRetries"), 2, key="maxRetries"),
        cache_enabled=_parse_bool(fetch_raw.get("cacheEnabled"), False, key="cacheEnabled"),
        cache_name=str(fetch_raw.get("cacheName", "arc_tracker_cache")),
        cache_expire_seconds=None if expire_raw is None else _parse_int(
            expire_raw, 3600, key="cacheExpireSeconds"
        ),
    )

    log_level = str(raw.get("logLevel", "SUMMARY")).strip().upper()
    if log_level not in LogLevel.__members__:
        raise ConfigError(f"Unknown log level '{log_level}'")

    return TrackerConfig(
        projects=_parse_projects(raw.get("projects")),
        reference_source=str(raw.get("referenceData", DEFAULT_REFERENCE_SOURCE)),
        quest_project=str(raw.get("questProject", QUEST_PROJECT_NAME)),
        pagination=pagination,
        search=search,
        theme=theme,
        storage=storage,
        fetch=fetch,
        log_level=log_level,
    )


def save_config(config: TrackerConfig, path: Optional[Path] = None) -> None:
    """
    Save TrackerConfig back to a YAML file.

    Parameters
    ----------
    config : TrackerConfig
        The configuration to save
    path : Path, optional
        Path to save to. Defaults to DefaultTrackerConfig.yaml
    """
    cfg_path = path or DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    data["projects"] = [
        {"name": p.name, "tab": p.tab, "source": p.location} for p in config.projects
    ]
    data["referenceData"] = config.reference_source
    data["questProject"] = config.quest_project
    data["pagination"] = {
        "itemsPerPage": config.pagination.items_per_page,
        "options": list(config.pagination.options),
        "maxItemsPerPage": config.pagination.max_items_per_page,
    }
    data["search"] = {
        "maxLength": config.search.max_length,
        "debounceMs": config.search.debounce_ms,
    }
    data["theme"] = config.theme
    data["storage"] = {
        "backend": config.storage.backend,
        "keyPrefix": config.storage.key_prefix,
        "directory": str(config.storage.directory) if config.storage.directory else None,
    }
    data["fetch"] = {
        "timeoutSeconds": config.fetch.timeout_seconds,
        "maxRetries": config.fetch.max_retries,
        "cacheEnabled": config.fetch.cache_enabled,
        "cacheName": config.fetch.cache_name,
        "cacheExpireSeconds": config.fetch.cache_expire_seconds,
    }
    data["logLevel"] = config.log_level

    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, allow_unicode=True, sort_keys=False)
