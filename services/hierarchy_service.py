"""
Hierarchy service for levels and nodes.

Explicit repository over the `hierarchy_levels` and `hierarchy_nodes`
tables. Callers pass it where hierarchy data is needed instead of
reading shared state.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.hierarchy import HierarchyLevel, HierarchyNode, HierarchyNodeCreate
from exceptions import DatabaseError, HierarchyLevelNotFoundError

logger = structlog.get_logger(__name__)


class HierarchyService:
    """
    Hierarchy data access.

    Handles listing levels/nodes and creating nodes.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.levels_table = "hierarchy_levels"
        self.nodes_table = "hierarchy_nodes"

    # ===================
    # READ OPERATIONS
    # ===================

    def list_levels(self, tenant_id: Optional[str] = None) -> list[HierarchyLevel]:
        """
        Get hierarchy levels, shallowest first.

        Args:
            tenant_id: Restrict to one tenant

        Returns:
            Levels ordered by sort_order
        """
        logger.debug("listing_hierarchy_levels", tenant_id=tenant_id)

        try:
            query = self.db.table(self.levels_table).select("*")
            if tenant_id:
                query = query.eq("tenant_id", tenant_id)
            result = query.order("sort_order").execute()

            levels = [HierarchyLevel(**row) for row in result.data or []]
            levels.sort(key=lambda level: level.sort_order)

            logger.debug("hierarchy_levels_retrieved", count=len(levels))
            return levels

        except Exception as e:
            logger.error("list_hierarchy_levels_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def list_nodes(
        self,
        tenant_id: Optional[str] = None,
        level_id: Optional[str] = None
    ) -> list[HierarchyNode]:
        """
        Get hierarchy nodes.

        Args:
            tenant_id: Restrict to one tenant
            level_id: Restrict to one level

        Returns:
            List of HierarchyNode
        """
        logger.debug("listing_hierarchy_nodes", tenant_id=tenant_id, level_id=level_id)

        try:
            query = self.db.table(self.nodes_table).select("*")
            if tenant_id:
                query = query.eq("tenant_id", tenant_id)
            if level_id:
                query = query.eq("level_id", level_id)
            result = query.order("label").execute()

            return [HierarchyNode(**row) for row in result.data or []]

        except Exception as e:
            logger.error("list_hierarchy_nodes_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_level(self, level_id: str, tenant_id: Optional[str] = None) -> HierarchyLevel:
        """
        Get a single level.

        Raises:
            HierarchyLevelNotFoundError: If the level doesn't exist
        """
        for level in self.list_levels(tenant_id):
            if level.id == level_id:
                return level
        raise HierarchyLevelNotFoundError(level_id)

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create_node(
        self,
        data: HierarchyNodeCreate,
        tenant_id: Optional[str] = None
    ) -> HierarchyNode:
        """
        Create a hierarchy node.

        Args:
            data: Level id, label, optional code and parent id
            tenant_id: Owning tenant

        Returns:
            Created node with its database id

        Raises:
            DatabaseError: If the insert fails
        """
        logger.info(
            "creating_hierarchy_node",
            level_id=data.level_id,
            label=data.label,
            parent_id=data.parent_id
        )

        payload = data.model_dump()
        if tenant_id:
            payload["tenant_id"] = tenant_id

        try:
            result = self.db.table(self.nodes_table).insert(payload).execute()
        except Exception as e:
            logger.error(
                "create_hierarchy_node_failed",
                level_id=data.level_id,
                label=data.label,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No data returned")

        node = HierarchyNode(**result.data[0])
        logger.info("hierarchy_node_created", node_id=node.id, level_id=node.level_id)
        return node


# Singleton instance for convenience
_hierarchy_service: Optional[HierarchyService] = None


def get_hierarchy_service() -> HierarchyService:
    """Get or create HierarchyService instance."""
    global _hierarchy_service
    if _hierarchy_service is None:
        _hierarchy_service = HierarchyService()
    return _hierarchy_service
