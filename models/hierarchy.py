"""
Hierarchy schemas.

Levels are user-defined classification dimensions (Contract, Category,
Product); nodes are the selectable values in a level, organized as a tree
through parent_id.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema

# Assignment levels are managed elsewhere and never imported from Excel
NON_IMPORTABLE_LEVEL_KEYS = frozenset({"engineer", "manager"})

HIERARCHY_FIELD_PREFIX = "hierarchy:"


class HierarchyLevel(BaseSchema):
    """A hierarchy level as stored in `hierarchy_levels`."""

    id: str = Field(..., description="Level UUID")
    name: str = Field(..., description="Display name, e.g. 'Contract'")
    key: str = Field(..., description="Stable key, e.g. 'contract'")
    sort_order: int = Field(1, description="Position in the tree, shallowest first")
    is_required: bool = False
    is_active: bool = True

    @property
    def field_key(self) -> str:
        """Mapping key used by the import wizard."""
        return f"{HIERARCHY_FIELD_PREFIX}{self.id}"

    @property
    def field_label(self) -> str:
        return f"Hierarchy:{self.name}"

    @property
    def importable(self) -> bool:
        return self.key not in NON_IMPORTABLE_LEVEL_KEYS


class HierarchyNode(BaseSchema):
    """A hierarchy node as stored in `hierarchy_nodes`."""

    id: str = Field(..., description="Node UUID")
    level_id: str = Field(..., description="Owning level UUID")
    label: str = Field(..., min_length=1)
    code: Optional[str] = None
    parent_id: Optional[str] = None


class HierarchyNodeCreate(BaseSchema):
    """Create a hierarchy node."""

    level_id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=100)
    parent_id: Optional[str] = None


class NodeCreationResult(BaseSchema):
    """Outcome of one node creation attempted during an import."""

    level_id: str
    label: str
    parent_id: Optional[str] = None
    node_id: Optional[str] = None
    created: bool = False
    error: Optional[str] = None


class HierarchyFieldOption(BaseSchema):
    """A hierarchy level offered as a mappable import column."""

    key: str
    label: str
    level_id: str
