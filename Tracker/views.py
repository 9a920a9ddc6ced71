"""
View logic shared by the command-line and desktop front ends.

Nothing here touches widgets or terminals: search filtering, pagination,
progress percentages and placeholder rendering for missing metadata.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from .models import Item, ReferenceItem, RemainingSummary
from .tracker_logging import TrackerLogger

T = TypeVar("T")

PLACEHOLDER = "-"

REFERENCE_COLUMNS = ["name", "rarity", "value", "weight", "item_type", "description", "icon"]
REFERENCE_SEARCH_COLUMNS = ["name", "item_type", "description", "rarity"]


def percentage(completed: int, total: int) -> int:
    """Rounded completion percentage; 0 for an empty list."""
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


def display_value(value: Any) -> str:
    """Render optional metadata, using a dash when it is missing."""
    if value is None or value == "":
        return PLACEHOLDER
    if isinstance(value, float) and math.isnan(value):
        return PLACEHOLDER
    return str(value)


def format_quantity(summary: RemainingSummary) -> str:
    """'Complete' or 'remaining/total' for the combined view."""
    if summary.is_complete:
        return "Complete"
    return f"{summary.remaining_quantity}/{summary.total_quantity}"


def format_contributions(summary: RemainingSummary) -> str:
    return ", ".join(f"{p.project_name} ({p.quantity})" for p in summary.projects)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def validate_search_term(value: Any, max_length: int = 100,
                         logger: Optional[TrackerLogger] = None) -> str:
    """Trim a search term and cap its length."""
    if not isinstance(value, str):
        return ""
    trimmed = value.strip()
    if len(trimmed) > max_length:
        if logger:
            logger.warning("SEARCH", f"Search term too long: {len(trimmed)} characters. "
                                     f"Max allowed: {max_length}")
        return trimmed[:max_length]
    return trimmed


def validate_items_per_page(value: Any, max_items: int = 100,
                            logger: Optional[TrackerLogger] = None) -> Optional[int]:
    """Return a page size in [1, max_items], or None if value is unusable."""
    try:
        num = int(str(value).strip())
    except (TypeError, ValueError):
        num = None
    if num is None or num < 1 or num > max_items:
        if logger:
            logger.warning("PAGINATION", f"Invalid items per page: {value!r}. "
                                         f"Must be between 1 and {max_items}")
        return None
    return num


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Page:
    """One page of a list. Page numbers are 1-based."""
    number: int
    per_page: int
    total_items: int
    total_pages: int

    @property
    def start(self) -> int:
        return (self.number - 1) * self.per_page

    @property
    def end(self) -> int:
        return min(self.start + self.per_page, self.total_items)

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages

    def describe(self, unfiltered_total: Optional[int] = None) -> str:
        first = self.start + 1 if self.total_items else 0
        text = f"Showing {first}-{self.end} of {self.total_items} items"
        if unfiltered_total is not None and unfiltered_total != self.total_items:
            text += f" (filtered from {unfiltered_total} total)"
        return text


def page_for(total_items: int, page: int, per_page: int) -> Page:
    """Clamp page into range for a list of total_items."""
    per_page = max(1, per_page)
    total_pages = max(1, math.ceil(total_items / per_page))
    return Page(
        number=min(max(1, page), total_pages),
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    )


def paginate(items: Sequence[T], page: int, per_page: int) -> Tuple[Page, List[T]]:
    info = page_for(len(items), page, per_page)
    return info, list(items[info.start:info.end])


def paginate_frame(frame: pd.DataFrame, page: int, per_page: int) -> Tuple[Page, pd.DataFrame]:
    info = page_for(len(frame), page, per_page)
    return info, frame.iloc[info.start:info.end]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

def filter_remaining(summaries: Mapping[str, RemainingSummary], term: str) -> Dict[str, RemainingSummary]:
    """Keep items whose name or any contributing project matches term."""
    term = term.lower().strip()
    if not term:
        return dict(summaries)
    return {
        name: summary for name, summary in summaries.items()
        if term in name.lower()
        or any(term in p.project_name.lower() for p in summary.projects)
    }


def filter_project_items(
    items: Iterable[Item],
    term: str,
    reference: Optional[Mapping[str, ReferenceItem]] = None,
) -> List[Item]:
    """
    Keep items matching term by name, requirement, or reference type/description.

    ``reference`` maps lowercased item names to their database entries.
    """
    term = term.lower().strip()
    items = list(items)
    if not term:
        return items

    matches = []
    for item in items:
        ref = (reference or {}).get(item.name.lower())
        haystack = [item.name, item.requirement]
        if ref is not None:
            haystack.extend([ref.item_type, ref.description])
        if any(term in text.lower() for text in haystack if text):
            matches.append(item)
    return matches


def reference_frame(items: Iterable[ReferenceItem]) -> pd.DataFrame:
    """Tabulate the item database for searching and paging."""
    rows = [
        {
            "name": item.name,
            "rarity": item.rarity,
            "value": item.value,
            "weight": item.weight,
            "item_type": item.item_type,
            "description": item.description,
            "icon": item.icon,
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=REFERENCE_COLUMNS, dtype=object)


def search_reference(frame: pd.DataFrame, term: str) -> pd.DataFrame:
    """Case-insensitive substring search over name, type, description and rarity."""
    term = term.lower().strip()
    if not term or frame.empty:
        return frame

    mask = pd.Series(False, index=frame.index)
    for column in REFERENCE_SEARCH_COLUMNS:
        mask |= frame[column].fillna("").astype(str).str.lower().str.contains(term, regex=False)
    return frame[mask].reset_index(drop=True)
