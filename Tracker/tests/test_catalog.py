"""Tests for the catalog and aggregation engine.

Validates that:
1. Project loading tolerates per-source failures and keeps source order
2. The item total registry always sums its instances
3. Multi-requirement items split into independently completable copies
4. Non-keepable quest items are hidden where they should be
5. Cross-project remaining quantities and progress follow completion state
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest

from Tracker.catalog import ALL_PROJECTS, Catalog, NoDataAvailableError
from Tracker.config import ProjectSource
from Tracker.fetch import FetchError
from Tracker.models import Item
from Tracker.state_store import StateStore
from Tracker.storage import MemoryStorageBackend
from Tracker.tracker_logging import create_string_logger

PROJECT_A = [
    {"name": "Battery Cell", "quantity": 2, "requirement": "Station X, Station Y"},
    {"name": "Metal Parts", "quantity": "3", "requirement": "Station X"},
]

QUEST = [
    {"name": "Battery Cell", "quantity": 1, "requirement": "Q1"},
    {"name": "LiDAR Scanner", "requirement": "Q1"},
    {"name": "Duct Tape", "requirement": "Q2"},
    {"name": "Wires", "quantity": 2, "requirement": "Q2"},
]

PROJECT_B = [
    {"name": "Metal Parts", "quantity": 5, "requirement": "Station X"},
]

REFERENCE = [
    {"name": "Metal Parts", "rarity": "Common", "item_type": "Basic Material"},
    {"name": "Wires", "rarity": "Uncommon"},
    {"name": "wires", "rarity": "Epic"},
]

SOURCES = [
    ProjectSource("Project A", "a.json", "expedition"),
    ProjectSource("Quest items", "quest.json", "quests"),
    ProjectSource("Project B", "b.json", "workshop"),
]


def make_fetcher(payloads: Dict[str, object]):
    """Fetcher serving payloads by file name; unknown names fail like a missing file."""
    def fetcher(location: str):
        name = Path(location).name
        if name not in payloads:
            raise FetchError(f"Unable to read {location}")
        return payloads[name]
    return fetcher


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def logger():
    logger, _buffer = create_string_logger()
    return logger


@pytest.fixture
def payloads() -> Dict[str, object]:
    return {"a.json": PROJECT_A, "quest.json": QUEST, "b.json": PROJECT_B, "ref.json": REFERENCE}


@pytest.fixture
def catalog(payloads, logger) -> Catalog:
    catalog = Catalog(logger, fetcher=make_fetcher(payloads), data_dir=Path("data"))
    catalog.load_all(SOURCES, "ref.json")
    return catalog


@pytest.fixture
def store(logger) -> StateStore:
    store = StateStore(MemoryStorageBackend(), logger)
    store.load()
    return store


# ---------------------------------------------------------------------------
# Tests: Loading
# ---------------------------------------------------------------------------

class TestLoading:

    def test_projects_in_source_order(self, catalog):
        assert catalog.project_names == ["Project A", "Quest items", "Project B"]

    def test_items_parsed(self, catalog):
        metal = catalog.get_project("Project A")[1]
        assert metal.name == "Metal Parts"
        assert metal.quantity == 3

    def test_failed_source_is_absent(self, payloads, logger):
        del payloads["quest.json"]
        catalog = Catalog(logger, fetcher=make_fetcher(payloads))
        catalog.load_projects(SOURCES)

        assert catalog.project_names == ["Project A", "Project B"]
        assert any("Quest items" in e.message for e in logger.get_warnings())

    def test_non_list_payload_fails_source(self, payloads, logger):
        payloads["b.json"] = {"name": "Metal Parts"}
        catalog = Catalog(logger, fetcher=make_fetcher(payloads))
        catalog.load_projects(SOURCES)
        assert "Project B" not in catalog.project_names

    def test_invalid_records_skipped(self, logger):
        catalog = Catalog(logger, fetcher=make_fetcher({"a.json": [{"quantity": 2}, {"name": "Ok"}, "junk"]}))
        catalog.load_projects([ProjectSource("Project A", "a.json")])

        assert [item.name for item in catalog.get_project("Project A")] == ["Ok"]
        assert any("Skipped 2 invalid records" in e.message for e in logger.get_warnings())

    def test_all_sources_failing_raises(self, logger):
        catalog = Catalog(logger, fetcher=make_fetcher({}))
        with pytest.raises(NoDataAvailableError, match="No item files could be loaded"):
            catalog.load_projects(SOURCES)
        assert catalog.get_projects() == {}
        assert catalog.get_item_totals() == {}

    def test_reference_failure_is_not_fatal(self, payloads, logger):
        del payloads["ref.json"]
        catalog = Catalog(logger, fetcher=make_fetcher(payloads))
        catalog.load_all(SOURCES, "ref.json")

        assert catalog.get_reference_items() == []
        assert len(catalog.project_names) == 3

    def test_project_failure_raised_after_reference_load(self, logger):
        catalog = Catalog(logger, fetcher=make_fetcher({"ref.json": REFERENCE}))
        with pytest.raises(NoDataAvailableError):
            catalog.load_all(SOURCES, "ref.json")
        assert len(catalog.get_reference_items()) == 3

    def test_accessors_return_copies(self, catalog):
        catalog.get_projects()["Project A"].clear()
        catalog.get_reference_items().clear()
        assert len(catalog.get_project("Project A")) == 2
        assert len(catalog.get_reference_items()) == 3

    def test_clear(self, catalog):
        catalog.clear()
        assert catalog.project_names == []
        assert catalog.get_item_totals() == {}
        assert catalog.get_reference_item("Wires") is None


# ---------------------------------------------------------------------------
# Tests: Reference lookups
# ---------------------------------------------------------------------------

class TestReferenceLookup:

    def test_case_insensitive(self, catalog):
        assert catalog.get_reference_item("METAL PARTS").item_type == "Basic Material"

    def test_first_entry_wins(self, catalog):
        assert catalog.get_item_rarity("Wires") == "uncommon"

    def test_unknown_item(self, catalog):
        assert catalog.get_reference_item("Snap Hook") is None
        assert catalog.get_item_rarity("Snap Hook") == ""


# ---------------------------------------------------------------------------
# Tests: Item total registry
# ---------------------------------------------------------------------------

class TestItemTotals:

    def test_totals_sum_instances(self, catalog):
        for total in catalog.get_item_totals().values():
            assert total.total_needed == sum(i.quantity for i in total.instances)

    def test_shared_identity_across_projects(self, catalog):
        total = catalog.get_item_totals()["metal-parts-station-x"]
        assert total.total_needed == 8
        assert sorted(i.project_name for i in total.instances) == ["Project A", "Project B"]

    def test_registry_keyed_by_split_identity(self, catalog):
        totals = catalog.get_item_totals()
        assert totals["battery-cell-station-x"].total_needed == 2
        assert totals["battery-cell-station-y"].total_needed == 2
        assert totals["battery-cell-q1"].total_needed == 1

    def test_rebuild_is_idempotent(self, catalog):
        before = {k: v.total_needed for k, v in catalog.get_item_totals().items()}
        catalog.rebuild_item_totals()
        catalog.rebuild_item_totals()
        after = {k: v.total_needed for k, v in catalog.get_item_totals().items()}
        assert before == after

    def test_remaining_for(self, catalog, store):
        assert catalog.remaining_for("metal-parts-station-x", store) == 8
        store.set_item_completed("Project A", "metal-parts-station-x", True)
        assert catalog.remaining_for("metal-parts-station-x", store) == 5
        store.set_item_completed("Project B", "metal-parts-station-x", True)
        assert catalog.remaining_for("metal-parts-station-x", store) == 0

    def test_remaining_for_unknown_id(self, catalog, store):
        assert catalog.remaining_for("nothing", store) == 0


# ---------------------------------------------------------------------------
# Tests: Requirement grouping
# ---------------------------------------------------------------------------

class TestGrouping:

    def test_split_into_groups(self, catalog):
        groups = catalog.group_by_requirement(catalog.get_project("Project A"), "Project A")

        assert list(groups) == ["Station X", "Station Y"]
        assert [i.id for i in groups["Station X"]] == ["battery-cell-station-x", "metal-parts-station-x"]
        assert [i.id for i in groups["Station Y"]] == ["battery-cell-station-y"]

    def test_empty_requirement_group(self, catalog):
        items = [Item.model_validate({"name": "Cooling Fan"})]
        groups = catalog.group_by_requirement(items, "Project A")
        assert list(groups) == [""]
        assert groups[""][0].id == "cooling-fan"

    def test_non_keepable_only_quest_group_dropped(self, catalog):
        groups = catalog.group_by_requirement(catalog.get_project("Quest items"), "Quest items")

        assert "Q1" not in groups
        assert [i.name for i in groups["Q2"]] == ["Duct Tape", "Wires"]

    def test_non_keepable_group_kept_outside_quest_project(self, catalog):
        items = [Item.model_validate({"name": "Battery Cell", "requirement": "Q1"})]
        assert list(catalog.group_by_requirement(items, "Project A")) == ["Q1"]

    def test_is_non_keepable(self, catalog):
        assert catalog.is_non_keepable("LiDAR Scanner", "Quest items")
        assert not catalog.is_non_keepable("LiDAR Scanner", "Project A")
        assert not catalog.is_non_keepable("Wires", "Quest items")


# ---------------------------------------------------------------------------
# Tests: Remaining across projects
# ---------------------------------------------------------------------------

class TestRemainingAcrossProjects:

    def test_keys_sorted_and_non_keepable_skipped(self, catalog, store):
        summaries = catalog.remaining_across_all_projects(store)
        assert list(summaries) == ["Battery Cell", "Metal Parts", "Wires"]

    def test_battery_cell_split_scenario(self, catalog, store):
        store.set_item_completed("Project A", "battery-cell-station-x", True)
        summary = catalog.remaining_across_all_projects(store)["Battery Cell"]
        assert summary.total_quantity == 2
        assert summary.completed_quantity == 0
        assert summary.remaining_quantity == 2

        store.set_item_completed("Project A", "battery-cell-station-y", True)
        summary = catalog.remaining_across_all_projects(store)["Battery Cell"]
        assert summary.completed_quantity == 2
        assert summary.remaining_quantity == 0
        assert summary.is_complete

    def test_contributions(self, catalog, store):
        store.set_item_completed("Project B", "metal-parts-station-x", True)
        summary = catalog.remaining_across_all_projects(store)["Metal Parts"]

        assert summary.total_quantity == 8
        assert summary.remaining_quantity == 3
        by_project = {p.project_name: p for p in summary.projects}
        assert by_project["Project B"].completed
        assert not by_project["Project A"].completed
        assert by_project["Project A"].quantity == 3


# ---------------------------------------------------------------------------
# Tests: Completed counts and progress
# ---------------------------------------------------------------------------

class TestProgress:

    def test_completed_count_single_project(self, catalog, store):
        items = catalog.project_items("Project A")
        store.set_item_completed("Project A", "battery-cell-station-y", True)
        assert catalog.completed_count("Project A", items, store) == 1

    def test_all_mode_uses_item_project(self, catalog, store):
        store.set_item_completed("Project B", "metal-parts-station-x", True)
        items = catalog.all_project_items()
        assert catalog.completed_count(ALL_PROJECTS, items, store) == 1

    def test_all_mode_without_project_name(self, catalog, store):
        items = [Item.model_validate({"name": "Loose"})]
        store.set_item_completed(ALL_PROJECTS, "loose", True)
        assert catalog.completed_count(ALL_PROJECTS, items, store) == 1

    def test_project_progress(self, catalog, store):
        assert str(catalog.project_progress("Project A", store)) == "0/3 (0%)"
        store.set_item_completed("Project A", "battery-cell-station-x", True)
        assert str(catalog.project_progress("Project A", store)) == "1/3 (33%)"
        store.set_item_completed("Project A", "battery-cell-station-y", True)
        assert str(catalog.project_progress("Project A", store)) == "2/3 (67%)"

    def test_quest_progress_counts_visible_items(self, catalog, store):
        assert catalog.project_progress("Quest items", store).total == 2

    def test_overall_progress(self, catalog, store):
        progress = catalog.overall_progress(store)
        assert progress.total == 6
        assert progress.percentage == 0

    def test_unknown_project_progress(self, catalog, store):
        progress = catalog.project_progress("Nope", store)
        assert (progress.completed, progress.total, progress.percentage) == (0, 0, 0)
