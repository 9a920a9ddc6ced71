"""Widget subpackage for the tracker tabs."""

from .progress import ProgressWidget
from .all_items import AllItemsWidget, RARITY_COLORS
from .project_view import ProjectWidget, RequirementGroupWidget
from .item_database import ItemDatabaseWidget

__all__ = [
    "ProgressWidget",
    "AllItemsWidget",
    "RARITY_COLORS",
    "ProjectWidget",
    "RequirementGroupWidget",
    "ItemDatabaseWidget",
]
