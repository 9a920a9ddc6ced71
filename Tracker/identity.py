"""Deterministic identities for items and requirement groups.

An item's identity is the unit of completion tracking. It combines the item
name with a single requirement token so the same item needed at two
workshop stations is tracked as two independent entries:

    >>> compute_identity("Battery Cell", "Station X")
    'battery-cell-station-x'
    >>> compute_identity("Battery Cell")
    'battery-cell'

Every character outside [a-z0-9] becomes one '-'; runs are not collapsed.
Distinct inputs collide only when their slugs are equal.
"""
from __future__ import annotations

import re
from typing import List, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")

SEPARATOR = "-"


def slugify(text: str) -> str:
    return _NON_ALNUM.sub(SEPARATOR, text.lower())


def compute_identity(name: str, requirement: Optional[str] = None) -> str:
    """Identity for an item needed for one requirement token."""
    base_id = slugify(name)
    if requirement:
        return f"{base_id}{SEPARATOR}{slugify(requirement)}"
    return base_id


def compute_group_identity(group_name: str) -> str:
    """Identity for a requirement group, used as its collapse-state key."""
    return slugify(group_name)


def split_requirements(requirement: Optional[str]) -> List[str]:
    """Split a comma-separated requirement string into trimmed tokens.

    An empty requirement yields a single empty token so the item still
    lands in exactly one group.
    """
    return [token.strip() for token in (requirement or "").split(",")]
