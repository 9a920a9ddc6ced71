"""Typed records for catalog data and the aggregates derived from it."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .identity import compute_identity, split_requirements

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Shape of a project or reference file; each record is validated on its own
RECORD_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[Any])


def parse_quantity(raw: Any) -> int:
    """
    Parse a quantity the way the item files need it.

    Accepts ints, floats and strings with a leading integer ("3", " 2 pcs").
    Anything unparsable, zero or negative becomes 1.
    """
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        value = int(raw) if raw == raw and abs(raw) != float("inf") else 0
    elif isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        value = int(match.group(1)) if match else 0
    else:
        value = 0
    return value if value >= 1 else 1


class Item(BaseModel):
    """
    One required item as listed in a project file.

    ``id`` defaults to the identity of (name, requirement). Copies produced by
    :meth:`for_requirement` carry a single requirement token and the identity
    recomputed for it.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    quantity: int = 1
    requirement: str = ""
    id: str = ""
    project_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and isinstance(data.get("name"), str):
            requirement = data.get("requirement")
            data = {
                **data,
                "id": compute_identity(
                    data["name"].strip(),
                    requirement.strip() if isinstance(requirement, str) else None,
                ),
            }
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value: Any) -> int:
        return parse_quantity(value)

    @field_validator("requirement", mode="before")
    @classmethod
    def _normalise_requirement(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @property
    def requirement_tokens(self) -> List[str]:
        return split_requirements(self.requirement)

    @property
    def split_identities(self) -> List[str]:
        """Identity of every per-requirement copy of this item."""
        return [compute_identity(self.name, token) for token in self.requirement_tokens]

    def for_requirement(self, requirement: str) -> "Item":
        """Independent copy for a single requirement token."""
        return self.model_copy(update={
            "requirement": requirement,
            "id": compute_identity(self.name, requirement),
        })

    def with_project(self, project_name: str) -> "Item":
        """Copy tagged with its project, for lists mixing several projects."""
        return self.model_copy(update={"project_name": project_name})


class ReferenceItem(BaseModel):
    """
    Item database entry used for display enrichment.

    Only ``name`` is required; the rest is optional metadata passed through
    to the presentation layer as-is.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    rarity: str = ""
    value: Optional[Any] = None
    item_type: str = ""
    description: str = ""
    icon: Optional[str] = None
    workbench: Optional[Any] = None
    stat_block: Optional[Dict[str, Any]] = None
    loadout_slots: Optional[Any] = None
    flavor_text: Optional[str] = None
    subcategory: Optional[str] = None
    shield_type: Optional[str] = None
    loot_area: Optional[Any] = None
    sources: Optional[Any] = None
    ammo_type: Optional[str] = None
    locations: Optional[Any] = None

    @field_validator("rarity", mode="before")
    @classmethod
    def _lower_rarity(cls, value: Any) -> str:
        return str(value).lower() if value else ""

    @field_validator("item_type", "description", mode="before")
    @classmethod
    def _empty_if_missing(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def weight(self) -> Optional[str]:
        """Weight as shown in tables (e.g. '0.5 kg'), None when unknown."""
        raw = (self.stat_block or {}).get("weight")
        return f"{raw} kg" if raw else None


# ---------------------------------------------------------------------------
# Derived aggregates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemInstance:
    """One occurrence of an item identity in a project."""
    project_name: str
    quantity: int
    requirement: str


@dataclass
class ItemTotal:
    """Registry entry: total_needed is always the sum of instance quantities."""
    total_needed: int = 0
    instances: List[ItemInstance] = field(default_factory=list)

    def add(self, instance: ItemInstance) -> None:
        self.instances.append(instance)
        self.total_needed += instance.quantity


@dataclass(frozen=True)
class ProjectContribution:
    """How much of an item one project needs, and whether it is done."""
    project_name: str
    quantity: int
    requirement: str
    completed: bool


@dataclass
class RemainingSummary:
    """Combined-view totals for one display name across projects."""
    total_quantity: int = 0
    completed_quantity: int = 0
    remaining_quantity: int = 0
    projects: List[ProjectContribution] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.remaining_quantity == 0


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    percentage: int

    def __str__(self) -> str:
        return f"{self.completed}/{self.total} ({self.percentage}%)"
