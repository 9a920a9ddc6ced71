"""
Application orchestrator shared by the command-line and desktop front ends.

TrackerApp owns the single StateStore and Catalog for a session. Front ends
call its mutators and re-render from its view methods; every mutation is
followed by an explicit ``on_change`` notification.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pandas as pd

from .catalog import ALL_PROJECTS, Catalog, NoDataAvailableError
from .config import THEMES, TrackerConfig, load_config
from .identity import compute_group_identity
from .models import Item, Progress, ReferenceItem, RemainingSummary
from .state_store import StateStore
from .storage import MemoryStorageBackend, StorageBackend, StorageError, create_storage
from .tracker_logging import TrackerLogger, create_logger
from .views import (
    Page,
    filter_project_items,
    filter_remaining,
    paginate_frame,
    percentage,
    reference_frame,
    search_reference,
    validate_items_per_page,
    validate_search_term,
)

ALL_TAB = "all"
WIKI_TAB = "wiki"

# Tab key -> label; project tabs resolve to project names through the config
TABS: Dict[str, str] = {
    ALL_TAB: "All Items",
    "expedition": "Expedition Project",
    "quests": "Quest items",
    "scrappy": "Scrappy items",
    "workshop": "Workshop items",
    WIKI_TAB: "Item Database",
}

ChangeCallback = Callable[[str], None]


@dataclass
class GroupView:
    """One requirement group as a project tab shows it."""
    name: str
    group_id: str
    items: List[Item]
    collapsed: bool
    progress: Progress


@dataclass
class ProjectView:
    name: str
    groups: List[GroupView] = field(default_factory=list)
    progress: Progress = field(default_factory=lambda: Progress(0, 0, 0))

    @property
    def found(self) -> bool:
        return bool(self.groups) or self.progress.total > 0


@dataclass
class ReferencePage:
    """A page of the item database plus the counts for its footer."""
    page: Page
    rows: pd.DataFrame
    unfiltered_total: int

    def describe(self) -> str:
        return self.page.describe(self.unfiltered_total)


class TrackerApp:
    """
    Session controller.

    Parameters
    ----------
    config : TrackerConfig, optional
        Loaded configuration. Defaults to the bundled defaults.
    store : StateStore, optional
        Built from ``config.storage`` when omitted. An unusable storage
        location falls back to memory with a warning.
    catalog : Catalog, optional
        Built from ``config`` when omitted.
    logger : TrackerLogger, optional
        Shared by the store and the catalog when they are built here.
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        store: Optional[StateStore] = None,
        catalog: Optional[Catalog] = None,
        logger: Optional[TrackerLogger] = None,
        storage: Optional[StorageBackend] = None,
    ):
        self.config = config or TrackerConfig()
        self.logger = logger or create_logger(self.config.log_level)
        self._storage = storage
        if store is None and storage is None:
            try:
                self._storage = create_storage(self.config.storage)
            except StorageError as exc:
                self.logger.log_storage_unavailable(self.config.storage.backend, exc)
                self._storage = MemoryStorageBackend()
        self.store = store or StateStore(
            self._storage,
            self.logger,
            state_key=self.config.storage.state_key,
            theme_key=self.config.storage.theme_key,
            default_theme=self.config.theme,
        )
        self.catalog = catalog or Catalog(
            self.logger,
            quest_project=self.config.quest_project,
            fetch_settings=self.config.fetch,
        )

        self.load_error: Optional[str] = None
        self.current_tab = ALL_TAB
        self.search_term = ""
        self.current_page = 1
        self.items_per_page = self.config.pagination.items_per_page
        self._reference_frame: Optional[pd.DataFrame] = None
        self._subscribers: List[ChangeCallback] = []

    @classmethod
    def from_config_file(cls, path: Optional[Path] = None,
                         logger: Optional[TrackerLogger] = None) -> "TrackerApp":
        config = load_config(path)
        return cls(config, logger=logger)

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    def initialize(self) -> bool:
        """
        Load saved state, then every data source.

        Returns False when no project file could be loaded; ``load_error``
        then holds the message to show and the catalog stays empty.
        """
        self.store.load()
        self.load_error = None
        try:
            self.catalog.load_all(self.config.projects, self.config.reference_source)
        except NoDataAvailableError as exc:
            self.load_error = f"{exc}. Check the configured sources and try again."
        self._reference_frame = None
        self._emit("initialize")
        return self.load_error is None

    # -------------------------------------------------------------------------
    # Change notification
    # -------------------------------------------------------------------------

    def subscribe(self, callback: ChangeCallback) -> None:
        """callback(reason) runs after every mutation; registering twice is a no-op."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _emit(self, reason: str) -> None:
        for callback in list(self._subscribers):
            try:
                callback(reason)
            except Exception as exc:
                self.logger.error("APP", f"Error in change subscriber for '{reason}': {exc!r}")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def toggle_item(self, project_name: str, item_id: str) -> bool:
        """Flip one item's completion and refresh the registry."""
        completed = self.store.toggle_item(project_name, item_id)
        self.catalog.rebuild_item_totals()
        self._emit("item")
        return completed

    def toggle_group_collapse(self, group_id: str) -> bool:
        collapsed = self.store.toggle_group_collapse(group_id)
        self._emit("collapse")
        return collapsed

    def set_theme(self, theme: str) -> None:
        self.store.set_theme(theme)
        self._emit("theme")

    def toggle_theme(self) -> str:
        current = self.store.get_theme()
        theme = THEMES[(THEMES.index(current) + 1) % len(THEMES)]
        self.set_theme(theme)
        return theme

    @property
    def theme(self) -> str:
        return self.store.get_theme()

    def reset(self) -> None:
        """Forget all progress, collapse flags and the theme choice."""
        self.store.clear_state()
        self.catalog.rebuild_item_totals()
        self._emit("reset")

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def set_tab(self, tab: str) -> None:
        if tab not in TABS:
            raise ValueError(f"Unknown tab '{tab}', expected one of {', '.join(TABS)}")
        self.current_tab = tab
        self._emit("tab")

    def project_for_tab(self, tab: str) -> Optional[str]:
        """Project name behind a tab key, None for 'all' and 'wiki'."""
        if tab in (ALL_TAB, WIKI_TAB):
            return None
        return self.config.project_for_tab(tab) or TABS.get(tab)

    def set_search(self, term: object) -> str:
        """Validate and apply a search term; the item database restarts at page 1."""
        self.search_term = validate_search_term(term, self.config.search.max_length, self.logger)
        self.current_page = 1
        self._emit("search")
        return self.search_term

    def change_items_per_page(self, value: object) -> bool:
        """Apply a page size. Invalid values are logged and ignored."""
        per_page = validate_items_per_page(
            value, self.config.pagination.max_items_per_page, self.logger
        )
        if per_page is None:
            return False
        self.items_per_page = per_page
        self.current_page = 1
        self._emit("pagination")
        return True

    def change_page(self, page: int) -> bool:
        """Move to a page of the item database; out-of-range pages are ignored."""
        info = self.reference_page(page=1).page
        if page < 1 or page > info.total_pages:
            return False
        self.current_page = page
        self._emit("pagination")
        return True

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def remaining_view(self, term: Optional[str] = None) -> Dict[str, RemainingSummary]:
        """Combined remaining items across projects, filtered by term."""
        summaries = self.catalog.remaining_across_all_projects(self.store)
        filtered = filter_remaining(summaries, self.search_term if term is None else term)
        self.logger.log_remaining_summary(filtered)
        return filtered

    def project_view(self, project_name: str, term: Optional[str] = None) -> ProjectView:
        """Requirement groups of one project with their collapse state and progress."""
        if project_name not in self.catalog.project_names:
            return ProjectView(project_name)

        reference = {item.name.lower(): item for item in self.catalog.get_reference_items()}
        term = self.search_term if term is None else term
        groups = self.catalog.group_by_requirement(self.catalog.get_project(project_name), project_name)

        views = []
        for name, members in groups.items():
            visible = filter_project_items(members, term, reference)
            if not visible:
                continue
            group_id = compute_group_identity(name)
            views.append(GroupView(
                name=name,
                group_id=group_id,
                items=visible,
                collapsed=self.store.is_group_collapsed(group_id),
                progress=self.catalog.group_progress(members, project_name, self.store),
            ))
        return ProjectView(
            name=project_name,
            groups=views,
            progress=self.catalog.project_progress(project_name, self.store),
        )

    def overall_progress(self) -> Progress:
        return self.catalog.overall_progress(self.store)

    def completed_count(self, project_name: str = ALL_PROJECTS) -> int:
        if project_name == ALL_PROJECTS:
            items = self.catalog.all_project_items()
        else:
            items = self.catalog.project_items(project_name)
        return self.catalog.completed_count(project_name, items, self.store)

    def reference_item(self, name: str) -> Optional[ReferenceItem]:
        return self.catalog.get_reference_item(name)

    def _all_reference_rows(self) -> pd.DataFrame:
        if self._reference_frame is None:
            self._reference_frame = reference_frame(self.catalog.get_reference_items())
        return self._reference_frame

    def reference_page(self, term: Optional[str] = None, page: Optional[int] = None,
                       per_page: Optional[int] = None) -> ReferencePage:
        """One page of the item database after searching."""
        frame = self._all_reference_rows()
        filtered = search_reference(frame, self.search_term if term is None else term)
        info, rows = paginate_frame(
            filtered,
            self.current_page if page is None else page,
            self.items_per_page if per_page is None else per_page,
        )
        return ReferencePage(page=info, rows=rows, unfiltered_total=len(frame))

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def remaining_frame(self, include_complete: bool = False, term: str = "") -> pd.DataFrame:
        """Combined remaining view as a table, one row per item name matching term."""
        rows = []
        for name, summary in self.remaining_view(term).items():
            if summary.is_complete and not include_complete:
                continue
            reference = self.catalog.get_reference_item(name)
            rows.append({
                "name": name,
                "remaining": summary.remaining_quantity,
                "total": summary.total_quantity,
                "completed": summary.completed_quantity,
                "percent_complete": percentage(summary.completed_quantity, summary.total_quantity),
                "rarity": reference.rarity if reference else "",
                "projects": "; ".join(
                    f"{p.project_name} ({p.quantity})" for p in summary.projects
                ),
            })
        columns = ["name", "remaining", "total", "completed", "percent_complete", "rarity", "projects"]
        return pd.DataFrame(rows, columns=columns)

    def export_remaining(self, path: Path, include_complete: bool = False, term: str = "") -> int:
        """
        Write the remaining items to CSV. Returns the number of rows written.

        Only items matching term are written; the session search is not applied.
        """
        frame = self.remaining_frame(include_complete, term)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(path, index=False)
        self.logger.info("EXPORT", f"Wrote {len(frame)} items to {path}")
        return len(frame)

    @property
    def storage(self) -> Optional[StorageBackend]:
        """Backend behind the state store, or None when only a store was passed in."""
        return self._storage

    def close(self) -> None:
        self._subscribers.clear()
        if self._storage is not None:
            self._storage.close()
