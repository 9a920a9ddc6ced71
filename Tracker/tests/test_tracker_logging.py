"""Tests for the structured tracker logger."""
from __future__ import annotations

import pytest

from Tracker.models import ItemInstance, ItemTotal, RemainingSummary
from Tracker.tracker_logging import LogLevel, create_logger, create_string_logger


class TestLevels:

    def test_entries_above_level_dropped(self):
        logger, buffer = create_string_logger(LogLevel.MINIMAL)
        logger.info("APP", "hidden")
        logger.warning("APP", "shown")

        assert [e.message for e in logger.get_all_entries()] == ["WARNING: shown"]
        assert "[APP] WARNING: shown" in buffer.getvalue()

    def test_silent_logs_nothing(self):
        logger, buffer = create_string_logger(LogLevel.SILENT)
        logger.error("APP", "nothing")
        assert logger.get_all_entries() == []
        assert buffer.getvalue() == ""

    @pytest.mark.parametrize("level", ["debug", "DEBUG", 40, LogLevel.DEBUG])
    def test_create_logger_accepts_names_and_ints(self, level):
        assert create_logger(level).level is LogLevel.DEBUG

    def test_warnings_filter(self):
        logger, _buffer = create_string_logger()
        logger.info("CATALOG", "loaded")
        logger.log_no_data()
        logger.log_state_save_failed(OSError("disk full"))

        assert [e.category for e in logger.get_warnings()] == ["CATALOG", "STATE"]
        assert len(logger.get_entries_by_category("CATALOG")) == 2

    def test_clear(self):
        logger, _buffer = create_string_logger()
        logger.warning("APP", "stale")
        logger.clear()
        assert logger.get_warnings() == []


class TestTables:

    def test_item_totals_only_at_trace(self):
        totals = {"wires-power-out": ItemTotal()}
        totals["wires-power-out"].add(ItemInstance("Quest items", 2, "Power Out"))

        logger, _buffer = create_string_logger(LogLevel.DEBUG)
        logger.log_item_totals(totals)
        assert logger.get_all_entries() == []

        logger, buffer = create_string_logger(LogLevel.TRACE)
        logger.log_item_totals(totals)
        assert "Item Total Registry" in buffer.getvalue()
        assert "wires-power-out" in buffer.getvalue()

    def test_remaining_summary(self):
        logger, buffer = create_string_logger(LogLevel.DETAILED)
        logger.log_remaining_summary({
            "Wires": RemainingSummary(2, 0, 2),
            "Fabric": RemainingSummary(3, 3, 0),
        })
        text = buffer.getvalue()
        assert "1 of 2 items still needed" in text
        assert "Wires" in text
        assert "Fabric" not in text.split("Remaining Items", 1)[1]

    def test_log_file(self, tmp_path):
        path = tmp_path / "tracker.log"
        with create_logger(LogLevel.SUMMARY, log_file=path) as logger:
            logger.output = None
            logger.info("APP", "written")
        assert "written" in path.read_text(encoding="utf-8")
