"""Tests for the TrackerApp orchestrator and the command-line front end."""
from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest
import yaml

from Tracker.catalog import Catalog
from Tracker.config import ProjectSource, StorageSettings, TrackerConfig
from Tracker.fetch import FetchError
from Tracker.run_tracker import main
from Tracker.state_store import DEFAULT_THEME_KEY
from Tracker.storage import MemoryStorageBackend
from Tracker.tracker import TABS, TrackerApp
from Tracker.tracker_logging import create_string_logger

PROJECTS = {
    "expedition.json": [
        {"name": "Metal Parts", "quantity": 150, "requirement": "Stage 1"},
        {"name": "Battery", "quantity": 4, "requirement": "Stage 1, Stage 2"},
    ],
    "quests.json": [
        {"name": "Battery Cell", "requirement": "A Bad Feeling"},
        {"name": "Wires", "quantity": 2, "requirement": "Power Out"},
    ],
}

REFERENCE = [
    {"name": f"Item {n:02d}", "rarity": "Common" if n % 2 else "Rare", "item_type": "Recyclable"}
    for n in range(45)
]


def fetch_from(payloads):
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
def config() -> TrackerConfig:
    return TrackerConfig(
        projects=[
            ProjectSource("Expedition Project", "expedition.json", "expedition"),
            ProjectSource("Quest items", "quests.json", "quests"),
        ],
        reference_source="reference.json",
    )


@pytest.fixture
def logger():
    logger, _buffer = create_string_logger()
    return logger


@pytest.fixture
def storage() -> MemoryStorageBackend:
    return MemoryStorageBackend()


def build_app(config, logger, storage, payloads) -> TrackerApp:
    catalog = Catalog(logger, quest_project=config.quest_project, fetcher=fetch_from(payloads))
    return TrackerApp(config, catalog=catalog, logger=logger, storage=storage)


@pytest.fixture
def app(config, logger, storage) -> TrackerApp:
    app = build_app(config, logger, storage, {**PROJECTS, "reference.json": REFERENCE})
    assert app.initialize()
    return app


# ---------------------------------------------------------------------------
# Tests: Startup
# ---------------------------------------------------------------------------

class TestInitialize:

    def test_loads_everything(self, app):
        assert app.load_error is None
        assert app.catalog.project_names == ["Expedition Project", "Quest items"]
        assert len(app.catalog.get_reference_items()) == 45

    def test_no_data_is_not_fatal(self, config, logger, storage):
        app = build_app(config, logger, storage, {"reference.json": REFERENCE})

        assert app.initialize() is False
        assert "No item files could be loaded" in app.load_error
        assert app.remaining_view() == {}
        assert app.overall_progress().total == 0

    def test_restores_saved_progress(self, config, logger, storage):
        first = build_app(config, logger, storage, PROJECTS)
        first.initialize()
        first.toggle_item("Quest items", "wires-power-out")

        second = build_app(config, logger, storage, PROJECTS)
        second.initialize()
        assert second.store.is_item_completed("Quest items", "wires-power-out")

    @pytest.mark.parametrize("backend", ["file", "sqlite"])
    def test_unusable_storage_falls_back_to_memory(self, config, logger, tmp_path, backend):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config.storage = StorageSettings(backend=backend, directory=blocker / "sub")
        catalog = Catalog(logger, quest_project=config.quest_project, fetcher=fetch_from(PROJECTS))

        app = TrackerApp(config, catalog=catalog, logger=logger)

        assert isinstance(app.storage, MemoryStorageBackend)
        assert app.initialize()
        assert app.toggle_item("Quest items", "wires-power-out") is True
        assert any("progress will not be saved" in e.message for e in logger.get_warnings())
        app.close()


# ---------------------------------------------------------------------------
# Tests: Mutations and change notification
# ---------------------------------------------------------------------------

class TestMutations:

    def test_toggle_item_notifies(self, app):
        reasons = []
        app.subscribe(reasons.append)

        assert app.toggle_item("Quest items", "wires-power-out") is True
        assert app.store.is_item_completed("Quest items", "wires-power-out")
        assert reasons == ["item"]

        assert app.toggle_item("Quest items", "wires-power-out") is False
        assert not app.store.is_item_completed("Quest items", "wires-power-out")

    def test_unsubscribe(self, app):
        reasons = []
        app.subscribe(reasons.append)
        app.unsubscribe(reasons.append)
        app.toggle_theme()
        assert reasons == []

    def test_failing_subscriber_is_isolated(self, app, logger):
        reasons = []

        def broken(reason):
            raise RuntimeError("redraw failed")

        app.subscribe(broken)
        app.subscribe(reasons.append)
        app.toggle_item("Quest items", "wires-power-out")

        assert reasons == ["item"]
        assert any("redraw failed" in e.message for e in logger.get_warnings())

    def test_toggle_updates_remaining(self, app):
        assert app.remaining_view()["Wires"].remaining_quantity == 2
        app.toggle_item("Quest items", "wires-power-out")
        assert app.remaining_view()["Wires"].is_complete

    def test_toggle_group_collapse(self, app):
        assert app.toggle_group_collapse("stage-1") is True
        view = app.project_view("Expedition Project")
        assert [g.collapsed for g in view.groups] == [True, False]

    def test_theme(self, app, storage):
        assert app.theme == "light"
        assert app.toggle_theme() == "dark"
        assert storage.get_item(DEFAULT_THEME_KEY) == "dark"
        assert app.toggle_theme() == "light"

    def test_invalid_theme(self, app):
        with pytest.raises(ValueError):
            app.set_theme("purple")

    def test_reset(self, app):
        app.toggle_item("Quest items", "wires-power-out")
        app.set_theme("dark")
        app.reset()

        assert not app.store.is_item_completed("Quest items", "wires-power-out")
        assert app.theme == "light"


# ---------------------------------------------------------------------------
# Tests: Navigation and views
# ---------------------------------------------------------------------------

class TestNavigation:

    def test_tabs(self):
        assert list(TABS) == ["all", "expedition", "quests", "scrappy", "workshop", "wiki"]

    def test_set_tab(self, app):
        app.set_tab("quests")
        assert app.current_tab == "quests"
        with pytest.raises(ValueError):
            app.set_tab("inventory")

    def test_project_for_tab(self, app):
        assert app.project_for_tab("quests") == "Quest items"
        assert app.project_for_tab("expedition") == "Expedition Project"
        assert app.project_for_tab("scrappy") == "Scrappy items"
        assert app.project_for_tab("all") is None
        assert app.project_for_tab("wiki") is None

    def test_project_view_groups(self, app):
        view = app.project_view("Expedition Project")
        assert [g.name for g in view.groups] == ["Stage 1", "Stage 2"]
        assert [i.id for i in view.groups[0].items] == ["metal-parts-stage-1", "battery-stage-1"]
        assert str(view.progress) == "0/3 (0%)"

    def test_project_view_hides_non_keepable_group(self, app):
        view = app.project_view("Quest items")
        assert [g.name for g in view.groups] == ["Power Out"]

    def test_project_view_search(self, app):
        view = app.project_view("Expedition Project", "battery")
        assert [len(g.items) for g in view.groups] == [1, 1]

    def test_unknown_project_view(self, app):
        assert not app.project_view("Nope").found

    def test_completed_count(self, app):
        app.toggle_item("Expedition Project", "battery-stage-2")
        assert app.completed_count() == 1
        assert app.completed_count("Expedition Project") == 1
        assert app.completed_count("Quest items") == 0


# ---------------------------------------------------------------------------
# Tests: Item database paging
# ---------------------------------------------------------------------------

class TestReferencePaging:

    def test_first_page(self, app):
        result = app.reference_page()
        assert len(result.rows) == 20
        assert result.page.total_pages == 3
        assert result.describe() == "Showing 1-20 of 45 items"

    def test_change_page(self, app):
        assert app.change_page(3) is True
        assert len(app.reference_page().rows) == 5
        assert app.change_page(4) is False
        assert app.change_page(0) is False
        assert app.current_page == 3

    def test_search_resets_page(self, app):
        app.change_page(2)
        app.set_search("rare")
        assert app.current_page == 1
        result = app.reference_page()
        assert result.page.total_items == 23
        assert result.describe() == "Showing 1-20 of 23 items (filtered from 45 total)"

    def test_search_term_truncated(self, app, config):
        term = app.set_search("x" * 500)
        assert len(term) == config.search.max_length

    def test_change_items_per_page(self, app):
        assert app.change_items_per_page("50") is True
        assert app.reference_page().page.total_pages == 1
        assert app.change_items_per_page(0) is False
        assert app.change_items_per_page(101) is False
        assert app.items_per_page == 50


# ---------------------------------------------------------------------------
# Tests: Export
# ---------------------------------------------------------------------------

class TestExport:

    def test_export_remaining(self, app, tmp_path):
        app.toggle_item("Quest items", "wires-power-out")
        path = tmp_path / "out" / "remaining.csv"

        count = app.export_remaining(path)

        frame = pd.read_csv(path)
        assert count == len(frame) == 2
        assert list(frame["name"]) == ["Battery", "Metal Parts"]
        assert frame.loc[1, "remaining"] == 150

    def test_export_includes_complete_on_request(self, app, tmp_path):
        app.toggle_item("Quest items", "wires-power-out")
        assert app.export_remaining(tmp_path / "all.csv", include_complete=True) == 3

    def test_export_ignores_database_search(self, app, tmp_path):
        app.toggle_item("Quest items", "wires-power-out")
        app.set_search("zzzz-no-such-item")
        assert app.export_remaining(tmp_path / "out.csv") == 2

    def test_export_with_term(self, app, tmp_path):
        path = tmp_path / "metal.csv"
        assert app.export_remaining(path, term="metal") == 1
        assert list(pd.read_csv(path)["name"]) == ["Metal Parts"]


# ---------------------------------------------------------------------------
# Tests: Command line
# ---------------------------------------------------------------------------

@pytest.fixture
def cli_config(tmp_path) -> Path:
    for name, records in {**PROJECTS, "reference.json": REFERENCE}.items():
        (tmp_path / name).write_text(json.dumps(records), encoding="utf-8")
    path = tmp_path / "tracker.yaml"
    path.write_text(yaml.safe_dump({
        "projects": [
            {"name": "Expedition Project", "tab": "expedition",
             "source": str(tmp_path / "expedition.json")},
            {"name": "Quest items", "tab": "quests", "source": str(tmp_path / "quests.json")},
        ],
        "referenceData": str(tmp_path / "reference.json"),
        "storage": {"backend": "memory"},
        "logLevel": "SILENT",
    }), encoding="utf-8")
    return path


class TestCommandLine:

    def test_remaining_view(self, cli_config, capsys):
        assert main(["-c", str(cli_config)]) == 0
        out = capsys.readouterr().out
        assert "Overall progress: 0/4 (0%)" in out
        assert "Metal Parts" in out
        assert "Battery Cell" not in out

    def test_project_by_tab(self, cli_config, capsys):
        assert main(["-c", str(cli_config), "-p", "quests",
                     "--toggle", "quests", "wires-power-out"]) == 0
        out = capsys.readouterr().out
        assert "Quest items / wires-power-out: completed" in out
        assert "[x] Wires x2" in out
        assert "A Bad Feeling" not in out

    def test_wiki_page(self, cli_config, capsys):
        assert main(["-c", str(cli_config), "--wiki", "--page", "3"]) == 0
        assert "Showing 41-45 of 45 items" in capsys.readouterr().out

    def test_export(self, cli_config, tmp_path, capsys):
        target = tmp_path / "remaining.csv"
        assert main(["-c", str(cli_config), "--export-csv", str(target)]) == 0
        assert len(pd.read_csv(target)) == 3

    def test_export_uses_search(self, cli_config, tmp_path, capsys):
        target = tmp_path / "battery.csv"
        assert main(["-c", str(cli_config), "--search", "battery", "--export-csv", str(target)]) == 0
        assert list(pd.read_csv(target)["name"]) == ["Battery"]

    def test_config_error(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("theme: purple\n", encoding="utf-8")
        assert main(["-c", str(path)]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_no_data(self, tmp_path, capsys):
        path = tmp_path / "empty.yaml"
        path.write_text(yaml.safe_dump({
            "projects": [{"name": "Missing", "source": str(tmp_path / "nope.json")}],
            "referenceData": str(tmp_path / "nope.json"),
            "storage": {"backend": "memory"},
            "logLevel": "SILENT",
        }), encoding="utf-8")
        assert main(["-c", str(path)]) == 1
        assert "No item files could be loaded" in capsys.readouterr().err
