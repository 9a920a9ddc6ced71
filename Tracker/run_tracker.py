#!/usr/bin/env python
"""CLI entry point for the ARC Raiders item tracker."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import THEMES, ConfigError, load_config
from .tracker import ALL_TAB, TABS, TrackerApp
from .tracker_logging import LogLevel, create_logger
from .views import display_value, format_contributions, format_quantity


def format_remaining(app: TrackerApp) -> str:
    """Format the combined remaining-items view for display."""
    summaries = app.remaining_view()
    if not summaries:
        return "No items found."

    width = max(len(name) for name in summaries)
    lines = [f"Overall progress: {app.overall_progress()}", ""]
    for name, summary in summaries.items():
        rarity = app.catalog.get_item_rarity(name) or "-"
        lines.append(
            f"  {name:<{width}}  {format_quantity(summary):>10}  {rarity:<10}  "
            f"{format_contributions(summary)}"
        )
    return "\n".join(lines)


def format_project(app: TrackerApp, project_name: str) -> str:
    """Format one project's requirement groups for display."""
    view = app.project_view(project_name)
    if not view.found:
        return f"Project not found: {project_name}"

    lines = [f"{project_name}: {view.progress}"]
    for group in view.groups:
        marker = "+" if group.collapsed else "-"
        lines.append(f"\n{marker} {group.name or '(no requirement)'} "
                     f"({group.progress.completed}/{group.progress.total} - "
                     f"{group.progress.percentage}%)")
        if group.collapsed:
            continue
        for item in group.items:
            done = "x" if app.store.is_item_completed(project_name, item.id) else " "
            lines.append(f"  [{done}] {item.name} x{item.quantity}  ({item.id})")
    return "\n".join(lines)


def format_reference(app: TrackerApp, page: int, per_page: int) -> str:
    """Format one page of the item database."""
    result = app.reference_page(page=page, per_page=per_page)
    lines = []
    for row in result.rows.itertuples(index=False):
        lines.append(
            f"  {row.name:<32} {display_value(row.rarity):<10} {display_value(row.item_type):<20} "
            f"{display_value(row.value):>8} {display_value(row.weight):>8}"
        )
    lines.append("")
    lines.append(f"{result.describe()}  (page {result.page.number} of {result.page.total_pages})")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Track the items still needed for ARC Raiders projects."
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: Tracker/DefaultTrackerConfig.yaml)",
    )
    parser.add_argument(
        "-p",
        "--project",
        type=str,
        default=None,
        help=f"Show one project, by name or tab ({', '.join(t for t in TABS if t not in ('all', 'wiki'))})",
    )
    parser.add_argument(
        "-s",
        "--search",
        type=str,
        default="",
        help="Filter items by name, project, requirement, type or description",
    )
    parser.add_argument(
        "--toggle",
        nargs=2,
        metavar=("PROJECT", "ITEM_ID"),
        action="append",
        default=[],
        help="Toggle completion of an item (may be repeated)",
    )
    parser.add_argument(
        "--theme",
        choices=THEMES,
        default=None,
        help="Set the colour theme",
    )
    parser.add_argument(
        "--wiki",
        action="store_true",
        help="Browse the item database instead of the checklist",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Item database page (default: 1)",
    )
    parser.add_argument(
        "--per-page",
        type=int,
        default=None,
        help="Item database page size (default from config)",
    )
    parser.add_argument(
        "--export-csv",
        type=Path,
        default=None,
        help="Write the remaining items to a CSV file",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear all saved progress before doing anything else",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=[level.name for level in LogLevel],
        help="Logging verbosity (default from config)",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    logger = create_logger(args.log_level or config.log_level)
    app = TrackerApp(config, logger=logger)
    try:
        if not app.initialize():
            print(app.load_error, file=sys.stderr)
            return 1

        if args.reset:
            app.reset()
            print("Progress cleared.")

        for project, item_id in args.toggle:
            project_name = app.project_for_tab(project) or project
            completed = app.toggle_item(project_name, item_id)
            print(f"{project_name} / {item_id}: {'completed' if completed else 'not completed'}")

        if args.theme:
            app.set_theme(args.theme)
            print(f"Theme: {app.theme}")

        search = ""
        if args.search:
            search = app.set_search(args.search)

        if args.wiki:
            per_page = app.items_per_page
            if args.per_page is not None:
                if not app.change_items_per_page(args.per_page):
                    print(f"Ignoring invalid page size: {args.per_page}", file=sys.stderr)
                per_page = app.items_per_page
            print(format_reference(app, args.page, per_page))
        elif args.project and args.project != ALL_TAB:
            print(format_project(app, app.project_for_tab(args.project) or args.project))
        else:
            print(format_remaining(app))

        if args.export_csv:
            count = app.export_remaining(args.export_csv, term=search)
            print(f"\nExported {count} items to {args.export_csv}")
    finally:
        app.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
