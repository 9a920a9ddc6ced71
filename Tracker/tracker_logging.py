"""
Structured logging for the item tracker.

Verbosity levels:
    - MINIMAL: Warnings, errors and load failures
    - SUMMARY: Catalog overview and key counts
    - DETAILED: Per-project tables, state details
    - DEBUG: Every toggle and registry rebuild
    - TRACE: Everything including per-instance registry rows

Usage:
    from Tracker.tracker_logging import TrackerLogger, LogLevel

    logger = TrackerLogger(level=LogLevel.DETAILED)
    catalog = Catalog(logger=logger)
    store = StateStore(storage, logger=logger)
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TextIO, Tuple, Union


class LogLevel(IntEnum):
    """How much the tracker reports; each level includes the ones below it."""
    SILENT = 0      # nothing
    MINIMAL = 10    # Warnings, errors and load failures
    SUMMARY = 20    # Catalog overview and key counts
    DETAILED = 30   # Per-project tables, state details
    DEBUG = 40      # Every toggle and registry rebuild
    TRACE = 50      # Per-instance registry rows


@dataclass
class LogEntry:
    """One recorded message, kept for the log viewer and for tests."""
    timestamp: datetime
    level: LogLevel
    category: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def format(self, include_timestamp: bool = True, include_level: bool = True) -> str:
        """Render as '[time] [LEVEL] [CATEGORY] message'."""
        prefix = []
        if include_timestamp:
            prefix.append("[" + self.timestamp.strftime("%H:%M:%S.%f")[:-3] + "]")
        if include_level:
            prefix.append(f"[{self.level.name:<8}]")
        prefix.append(f"[{self.category}]")
        return " ".join(prefix + [self.message])


@dataclass
class TrackerLogger:
    """
    Structured logger shared by the state store, catalog and front ends.

    Every accepted entry is appended to ``entries`` and echoed, formatted,
    to ``output`` and to ``log_to_file`` when one is given.

    Attributes
    ----------
    level : LogLevel
        Entries more verbose than this are dropped
    output : TextIO | None
        Stream for formatted lines; sys.stderr when None
    log_to_file : Path | None
        File that formatted lines are appended to
    entries : list[LogEntry]
        Accepted entries, oldest first
    """
    level: LogLevel = LogLevel.SUMMARY
    output: Optional[TextIO] = None
    log_to_file: Optional[Path] = None
    include_timestamp: bool = True
    include_level: bool = True
    entries: List[LogEntry] = field(default_factory=list)
    _file_handle: Optional[TextIO] = field(default=None, repr=False)

    def __post_init__(self):
        if self.output is None:
            self.output = sys.stderr
        if self.log_to_file:
            self._file_handle = open(self.log_to_file, "a", encoding="utf-8")

    def close(self):
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _log(self, level: LogLevel, category: str, message: str,
             data: Optional[Dict[str, Any]] = None) -> None:
        if level > self.level:
            return

        entry = LogEntry(datetime.now(), level, category, message, data)
        self.entries.append(entry)

        line = entry.format(self.include_timestamp, self.include_level) + "\n"
        for stream in (self.output, self._file_handle):
            if stream:
                stream.write(line)
                stream.flush()

    def _log_table(self, level: LogLevel, category: str,
                   headers: List[str], rows: List[List[Any]],
                   title: Optional[str] = None) -> None:
        """Log rows as a fixed-width text table, one entry per line."""
        if level > self.level:
            return

        cells = [[str(value) for value in row] for row in [headers] + rows]
        widths = [max(len(row[col]) for row in cells) for col in range(len(headers))]

        def render(row: List[str]) -> str:
            return " | ".join(value.ljust(width) for value, width in zip(row, widths))

        heading = render(cells[0])
        lines = [title, "=" * len(title)] if title else []
        lines += [heading, "-" * len(heading)]
        lines += [render(row) for row in cells[1:]]

        for line in lines:
            self._log(level, category, line)

    # -------------------------------------------------------------------------
    # Generic warnings and errors
    # -------------------------------------------------------------------------

    def warning(self, category: str, message: str, **data: Any) -> None:
        """Log a recoverable problem. Shown at every level except SILENT."""
        self._log(LogLevel.MINIMAL, category, f"WARNING: {message}", data or None)

    def error(self, category: str, message: str, **data: Any) -> None:
        """Log a failure that degraded the session."""
        self._log(LogLevel.MINIMAL, category, f"ERROR: {message}", data or None)

    def info(self, category: str, message: str) -> None:
        self._log(LogLevel.SUMMARY, category, message)

    def debug(self, category: str, message: str) -> None:
        self._log(LogLevel.DEBUG, category, message)

    # -------------------------------------------------------------------------
    # Catalog loading
    # -------------------------------------------------------------------------

    def log_source_loaded(self, project_name: str, item_count: int, location: str) -> None:
        self._log(LogLevel.SUMMARY, "CATALOG",
                  f"Loaded {item_count} items for '{project_name}' from {location}")

    def log_source_failed(self, project_name: str, location: str, error: BaseException) -> None:
        self.warning("CATALOG", f"Could not load {location} for '{project_name}': {error}",
                     project=project_name, location=location)

    def log_invalid_records(self, location: str, skipped: int) -> None:
        self.warning("CATALOG", f"Skipped {skipped} invalid records in {location}",
                     location=location, skipped=skipped)

    def log_no_data(self) -> None:
        self.error("CATALOG", "No item files could be loaded")

    def log_reference_loaded(self, item_count: int, location: str) -> None:
        self._log(LogLevel.SUMMARY, "REFERENCE",
                  f"Loaded {item_count} reference items from {location}")

    def log_reference_failed(self, location: str, error: BaseException) -> None:
        self.warning("REFERENCE", f"Could not load reference data from {location}: {error}",
                     location=location)

    def log_catalog_summary(self, projects: Mapping[str, List[Any]]) -> None:
        """Log the per-project item counts after loading."""
        total = sum(len(items) for items in projects.values())
        self._log(LogLevel.SUMMARY, "CATALOG",
                  f"Catalog ready: {len(projects)} projects, {total} items")

        if self.level >= LogLevel.DETAILED and projects:
            rows = [[name, len(items)] for name, items in projects.items()]
            self._log_table(LogLevel.DETAILED, "CATALOG",
                            ["Project", "Items"], rows, title="Loaded Projects")

    # -------------------------------------------------------------------------
    # Item totals registry
    # -------------------------------------------------------------------------

    def log_item_totals_rebuilt(self, identity_count: int, instance_count: int) -> None:
        self._log(LogLevel.DEBUG, "TOTALS",
                  f"Rebuilt item totals: {identity_count} identities, "
                  f"{instance_count} instances")

    def log_item_totals(self, totals: Mapping[str, Any], top_n: int = 25) -> None:
        """Log the registry as a table (TRACE level)."""
        if self.level < LogLevel.TRACE:
            return

        rows = []
        for item_id, total in sorted(totals.items(), key=lambda kv: -kv[1].total_needed)[:top_n]:
            projects = ", ".join(i.project_name for i in total.instances)
            rows.append([item_id, total.total_needed, projects])

        if len(totals) > top_n:
            rows.append(["...", f"({len(totals) - top_n} more)", ""])

        if rows:
            self._log_table(LogLevel.TRACE, "TOTALS",
                            ["Item ID", "Needed", "Projects"], rows,
                            title="Item Total Registry")

    # -------------------------------------------------------------------------
    # State store
    # -------------------------------------------------------------------------

    def log_state_loaded(self, top_level_keys: List[str]) -> None:
        self._log(LogLevel.DETAILED, "STATE",
                  f"Loaded saved state with keys: {', '.join(top_level_keys) or '(none)'}")

    def log_state_load_failed(self, error: BaseException) -> None:
        self.warning("STATE", f"Could not load saved state: {error}")

    def log_state_save_failed(self, error: BaseException) -> None:
        self.warning("STATE", f"Could not save state: {error}")

    def log_storage_unavailable(self, backend: str, error: BaseException) -> None:
        self.warning("STATE", f"{backend} storage unavailable, progress will not be saved: {error}",
                     backend=backend)

    def log_storage_clear_failed(self, key: str, error: BaseException) -> None:
        self.warning("STATE", f"Could not remove stored key '{key}': {error}")

    def log_listener_error(self, path: str, error: BaseException) -> None:
        self.error("STATE", f"Error in state listener for '{path}': {error!r}")

    def log_state_change(self, path: str, value: Any) -> None:
        self._log(LogLevel.DEBUG, "STATE", f"{path} = {value!r}")

    # -------------------------------------------------------------------------
    # Aggregated views
    # -------------------------------------------------------------------------

    def log_remaining_summary(self, summaries: Mapping[str, Any], top_n: int = 20) -> None:
        """Log the combined remaining-items view."""
        if self.level < LogLevel.DETAILED:
            return

        outstanding = [(name, s) for name, s in summaries.items() if s.remaining_quantity > 0]
        self._log(LogLevel.DETAILED, "REMAINING",
                  f"{len(outstanding)} of {len(summaries)} items still needed")

        rows = [
            [name, s.remaining_quantity, s.total_quantity]
            for name, s in sorted(outstanding, key=lambda kv: -kv[1].remaining_quantity)[:top_n]
        ]
        if len(outstanding) > top_n:
            rows.append(["...", f"({len(outstanding) - top_n} more)", ""])
        if rows:
            self._log_table(LogLevel.DETAILED, "REMAINING",
                            ["Item", "Remaining", "Total"], rows,
                            title="Remaining Items")

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def get_all_entries(self) -> List[LogEntry]:
        return list(self.entries)

    def get_entries_by_category(self, category: str) -> List[LogEntry]:
        return [entry for entry in self.entries if entry.category == category]

    def get_warnings(self) -> List[LogEntry]:
        """Entries logged through warning() or error()."""
        return [entry for entry in self.entries
                if entry.message.startswith(("WARNING:", "ERROR:"))]

    def clear(self) -> None:
        self.entries.clear()


def create_logger(
    level: Union[LogLevel, str, int] = LogLevel.SUMMARY,
    output: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> TrackerLogger:
    """
    Build a TrackerLogger from a level given in any of the usual forms.

    Parameters
    ----------
    level : LogLevel | str | int
        Level member, its name (case-insensitive) or its numeric value.
    output : TextIO | None
        Stream for formatted lines; sys.stderr when None.
    log_file : Path | None
        File to append formatted lines to.
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]
    else:
        level = LogLevel(level)
    return TrackerLogger(level=level, output=output, log_to_file=log_file)


def create_string_logger(level: LogLevel = LogLevel.DETAILED) -> Tuple[TrackerLogger, StringIO]:
    """Logger writing into an in-memory buffer, for tests and the GUI log viewer."""
    buffer = StringIO()
    return TrackerLogger(level=level, output=buffer), buffer
