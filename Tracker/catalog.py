"""Catalog and aggregation engine for tracked items.

This module provides functionality to:
1. Load project item lists and the reference item database, concurrently
2. Build the cross-project Item Total Registry keyed by item identity
3. Split multi-requirement items into independently completable copies
4. Derive remaining/completed quantities against a StateStore

The catalog itself is immutable after loading; everything state-dependent is
computed on demand from the StateStore passed in.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .config import QUEST_PROJECT_NAME, FetchSettings, ProjectSource, resolve_source
from .fetch import FetchError, JSONPayload, fetch_json
from .identity import compute_group_identity, compute_identity
from .models import (
    RECORD_LIST_ADAPTER,
    Item,
    ItemInstance,
    ItemTotal,
    Progress,
    ProjectContribution,
    ReferenceItem,
    RemainingSummary,
)
from .state_store import StateStore
from .tracker_logging import TrackerLogger, create_logger
from .views import percentage

# Pseudo project name for lists mixing items from every project
ALL_PROJECTS = "all"

# Quest collectables that cannot be kept in inventory (mission-only items)
NON_KEEPABLE_QUEST_ITEMS: FrozenSet[str] = frozenset({
    "Burletta I",
    "Armored Patrol Key Card",
    "Battle Plans",
    "Battery Cell",
    "Celeste's Journal 1",
    "Celeste's Journal 2",
    "Communication Device",
    "Deflated Football",
    "Duct Tape",
    "ESR Analyzer",
    "Flag",
    "Helmet",
    "LiDAR Scanner",
    "Major Aiva's Mementos",
    "Possibly Toxic Plant",
    "Romance Book",
    "Detective Book",
    "Adventure Book",
    "First Wave Tape",
    "First Wave Compass",
    "First Wave Rations",
})

Fetcher = Callable[[str], JSONPayload]


class NoDataAvailableError(Exception):
    """Raised when none of the project sources could be loaded."""


class Catalog:
    """
    Read-only item catalog plus the derived Item Total Registry.

    Parameters
    ----------
    logger : TrackerLogger, optional
        Destination for load warnings and summaries.
    quest_project : str
        Project whose non-keepable items get special treatment.
    non_keepable : frozenset of str
        Item names that are mission-only in the quest project.
    fetcher : callable, optional
        ``fetcher(source) -> payload``. Defaults to :func:`fetch_json`.
    fetch_settings : FetchSettings, optional
        Passed to the default fetcher for remote sources.
    data_dir : Path, optional
        Directory that relative source locations resolve against.
    """

    compute_identity = staticmethod(compute_identity)
    compute_group_identity = staticmethod(compute_group_identity)

    def __init__(
        self,
        logger: Optional[TrackerLogger] = None,
        *,
        quest_project: str = QUEST_PROJECT_NAME,
        non_keepable: FrozenSet[str] = NON_KEEPABLE_QUEST_ITEMS,
        fetcher: Optional[Fetcher] = None,
        fetch_settings: Optional[FetchSettings] = None,
        data_dir: Optional[Path] = None,
        max_workers: int = 4,
    ):
        self._logger = logger or create_logger()
        self._quest_project = quest_project
        self._non_keepable = frozenset(non_keepable)
        self._fetch_settings = fetch_settings or FetchSettings()
        self._fetcher: Fetcher = fetcher or (lambda source: fetch_json(source, self._fetch_settings))
        self._data_dir = data_dir
        self._max_workers = max(1, max_workers)

        self._projects: Dict[str, List[Item]] = {}
        self._reference_items: List[ReferenceItem] = []
        self._reference_index: Dict[str, ReferenceItem] = {}  # lowercased name -> item
        self._item_totals: Dict[str, ItemTotal] = {}

    @property
    def quest_project(self) -> str:
        return self._quest_project

    @property
    def project_names(self) -> List[str]:
        return list(self._projects)

    def is_non_keepable(self, item_name: str, project_name: str) -> bool:
        """True for mission-only quest items."""
        return project_name == self._quest_project and item_name in self._non_keepable

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _fetch_records(self, location: str) -> List[Any]:
        payload = self._fetcher(location)
        try:
            return RECORD_LIST_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise FetchError(f"{location} does not contain a list of records") from exc

    def _load_source(self, source: ProjectSource) -> List[Item]:
        location = resolve_source(source.location, self._data_dir)
        items: List[Item] = []
        skipped = 0
        for record in self._fetch_records(location):
            try:
                items.append(Item.model_validate(record))
            except ValidationError:
                skipped += 1
        if skipped:
            self._logger.log_invalid_records(location, skipped)
        return items

    def load_projects(self, sources: Sequence[ProjectSource]) -> None:
        """
        Load every project source independently.

        A source that fails is logged and left out. Projects keep the order
        of ``sources``.

        Raises
        ------
        NoDataAvailableError
            If no source could be loaded at all.
        """
        sources = list(sources)
        loaded: Dict[str, List[Item]] = {}

        with ThreadPoolExecutor(max_workers=self._max_workers,
                                thread_name_prefix="CatalogLoad") as executor:
            futures = [(source, executor.submit(self._load_source, source)) for source in sources]
            for source, future in futures:
                try:
                    items = future.result()
                except FetchError as exc:
                    self._logger.log_source_failed(source.name, source.location, exc)
                    continue
                loaded[source.name] = items
                self._logger.log_source_loaded(source.name, len(items), source.location)

        self._projects = loaded
        if not loaded:
            self._item_totals = {}
            self._logger.log_no_data()
            raise NoDataAvailableError("No item files could be loaded")

        self.rebuild_item_totals()
        self._logger.log_catalog_summary(self._projects)

    def load_reference_data(self, source: str) -> None:
        """Load the item database. Any failure leaves an empty reference set."""
        location = resolve_source(source, self._data_dir)
        try:
            records = self._fetch_records(location)
        except FetchError as exc:
            self._logger.log_reference_failed(location, exc)
            self._set_reference_items([])
            return

        items: List[ReferenceItem] = []
        skipped = 0
        for record in records:
            try:
                items.append(ReferenceItem.model_validate(record))
            except ValidationError:
                skipped += 1
        if skipped:
            self._logger.log_invalid_records(location, skipped)

        self._set_reference_items(items)
        self._logger.log_reference_loaded(len(items), location)

    def _set_reference_items(self, items: List[ReferenceItem]) -> None:
        self._reference_items = items
        index: Dict[str, ReferenceItem] = {}
        for item in items:
            # First entry wins, like a linear search would
            index.setdefault(item.name.lower(), item)
        self._reference_index = index

    def load_all(self, project_sources: Sequence[ProjectSource], reference_source: str) -> None:
        """
        Load project files and the reference data concurrently.

        The reference load never fails; a NoDataAvailableError from the
        project load is raised only after both have finished.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="CatalogInit") as executor:
            reference_future = executor.submit(self.load_reference_data, reference_source)
            projects_future = executor.submit(self.load_projects, project_sources)
            reference_future.result()
            projects_future.result()

    # -------------------------------------------------------------------------
    # Item Total Registry
    # -------------------------------------------------------------------------

    def rebuild_item_totals(self) -> None:
        """Recompute the registry from scratch. Safe to call repeatedly."""
        totals: Dict[str, ItemTotal] = {}
        instance_count = 0

        for project_name, items in self._projects.items():
            for item in items:
                for requirement in item.requirement_tokens:
                    item_id = compute_identity(item.name, requirement)
                    totals.setdefault(item_id, ItemTotal()).add(
                        ItemInstance(project_name, item.quantity, requirement)
                    )
                    instance_count += 1

        self._item_totals = totals
        self._logger.log_item_totals_rebuilt(len(totals), instance_count)
        self._logger.log_item_totals(totals)

    def remaining_for(self, item_id: str, store: StateStore) -> int:
        """Quantity of item_id still needed across all projects (never negative)."""
        total = self._item_totals.get(item_id)
        if total is None:
            return 0

        remaining = total.total_needed
        for instance in total.instances:
            if store.is_item_completed(instance.project_name, item_id):
                remaining -= instance.quantity
        return max(0, remaining)

    # -------------------------------------------------------------------------
    # Grouping and aggregation
    # -------------------------------------------------------------------------

    def group_by_requirement(self, items: Iterable[Item], project_name: str) -> Dict[str, List[Item]]:
        """
        Bucket items by single requirement token.

        Every item is copied once per token with its identity recomputed for
        that token. In the quest project, groups made up entirely of
        non-keepable items are dropped.
        """
        groups: Dict[str, List[Item]] = {}
        for item in items:
            for requirement in item.requirement_tokens:
                groups.setdefault(requirement, []).append(item.for_requirement(requirement))

        if project_name == self._quest_project:
            groups = {
                name: members for name, members in groups.items()
                if any(member.name not in self._non_keepable for member in members)
            }
        return groups

    def project_items(self, project_name: str) -> List[Item]:
        """Per-requirement copies of a project's items, as shown in its groups."""
        groups = self.group_by_requirement(self._projects.get(project_name, []), project_name)
        return [item for members in groups.values() for item in members]

    def all_project_items(self) -> List[Item]:
        """Per-requirement copies from every project, tagged with their project."""
        return [
            item.with_project(project_name)
            for project_name in self._projects
            for item in self.project_items(project_name)
        ]

    def remaining_across_all_projects(self, store: StateStore) -> Dict[str, RemainingSummary]:
        """
        Combined view keyed by item display name, sorted by name.

        An item instance counts as completed only when every one of its
        per-requirement identities is completed in its project. Non-keepable
        quest items are left out entirely.
        """
        summaries: Dict[str, RemainingSummary] = {}

        for project_name, items in self._projects.items():
            for item in items:
                if self.is_non_keepable(item.name, project_name):
                    continue

                completed = all(
                    store.is_item_completed(project_name, item_id)
                    for item_id in item.split_identities
                )

                summary = summaries.setdefault(item.name, RemainingSummary())
                summary.total_quantity += item.quantity
                if completed:
                    summary.completed_quantity += item.quantity
                summary.projects.append(ProjectContribution(
                    project_name=project_name,
                    quantity=item.quantity,
                    requirement=item.requirement,
                    completed=completed,
                ))

        for summary in summaries.values():
            summary.remaining_quantity = max(0, summary.total_quantity - summary.completed_quantity)

        return dict(sorted(summaries.items(), key=lambda kv: kv[0].casefold()))

    def completed_count(self, project_name: str, items: Iterable[Item], store: StateStore) -> int:
        """
        Count completed items.

        With ``project_name == "all"`` each item is looked up under its own
        ``project_name`` so lists mixing several projects count correctly.
        """
        if project_name == ALL_PROJECTS:
            return sum(
                1 for item in items
                if store.is_item_completed(item.project_name or project_name, item.id)
            )
        return sum(1 for item in items if store.is_item_completed(project_name, item.id))

    def group_progress(self, items: Sequence[Item], project_name: str, store: StateStore) -> Progress:
        completed = self.completed_count(project_name, items, store)
        return Progress(completed, len(items), percentage(completed, len(items)))

    def project_progress(self, project_name: str, store: StateStore) -> Progress:
        return self.group_progress(self.project_items(project_name), project_name, store)

    def overall_progress(self, store: StateStore) -> Progress:
        return self.group_progress(self.all_project_items(), ALL_PROJECTS, store)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_projects(self) -> Dict[str, List[Item]]:
        return {name: list(items) for name, items in self._projects.items()}

    def get_project(self, project_name: str) -> List[Item]:
        return list(self._projects.get(project_name, []))

    def get_reference_items(self) -> List[ReferenceItem]:
        return list(self._reference_items)

    def get_item_totals(self) -> Dict[str, ItemTotal]:
        return dict(self._item_totals)

    def get_reference_item(self, item_name: str) -> Optional[ReferenceItem]:
        """Case-insensitive lookup in the item database."""
        return self._reference_index.get(item_name.lower())

    def get_item_rarity(self, item_name: str) -> str:
        reference = self.get_reference_item(item_name)
        return reference.rarity if reference else ""

    def clear(self) -> None:
        """Forget all loaded data."""
        self._projects = {}
        self._item_totals = {}
        self._set_reference_items([])
