"""
Hierarchy auto-create for order imports.

When the user opts in, every import row's hierarchy labels are resolved
to node ids level by level (shallowest first), creating missing nodes on
the way. The node found or created at one level is the parent of the
next. Nodes are deduplicated by (level, parent, normalized label) across
the whole run, seeded with the nodes that already exist.

Creation is strictly sequential. Each attempt produces a
NodeCreationResult so a partially failed run can be inspected and
retried; a retry finds the nodes that did get created.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
import structlog

from exceptions import AppError
from models.hierarchy import (
    HierarchyLevel,
    HierarchyNode,
    HierarchyNodeCreate,
    NodeCreationResult,
)
from models.order_import import ImportRow
from utils.text_utils import normalize_label

logger = structlog.get_logger(__name__)

NodeKey = tuple[str, str, str]


@dataclass
class HierarchyCreationReport:
    """Rows with resolved node ids plus one result per attempted creation."""
    rows: list[ImportRow] = field(default_factory=list)
    results: list[NodeCreationResult] = field(default_factory=list)

    @property
    def created(self) -> list[NodeCreationResult]:
        return [r for r in self.results if r.created]

    @property
    def failed(self) -> list[NodeCreationResult]:
        return [r for r in self.results if r.error]

    @property
    def success(self) -> bool:
        return not self.failed


def node_key(level_id: str, parent_id: Optional[str], label: str) -> NodeKey:
    return (level_id, parent_id or "", normalize_label(label))


class HierarchyPathResolver:
    """
    Find-or-create hierarchy paths for import rows.

    Args:
        node_store: Object with create_node(HierarchyNodeCreate, tenant_id=...)
            returning a HierarchyNode (HierarchyService in production)
        levels: All hierarchy levels
        existing_nodes: Nodes already stored, used to avoid duplicates
        tenant_id: Owning tenant for created nodes
    """

    def __init__(
        self,
        node_store: Any,
        levels: Iterable[HierarchyLevel],
        existing_nodes: Iterable[HierarchyNode],
        tenant_id: Optional[str] = None,
    ):
        self.node_store = node_store
        self.levels = sorted(levels, key=lambda level: level.sort_order)
        self.tenant_id = tenant_id
        # None marks a path whose creation already failed in this run
        self._known: dict[NodeKey, Optional[str]] = {}
        for node in existing_nodes:
            self._known.setdefault(node_key(node.level_id, node.parent_id, node.label), node.id)

    def resolve_rows(
        self,
        rows: Iterable[ImportRow],
        mapped_level_ids: set[str],
    ) -> HierarchyCreationReport:
        """
        Resolve every row's hierarchy labels to node ids.

        Args:
            rows: Validated import rows (hierarchy holds level_id → label)
            mapped_level_ids: Levels that have a mapped column

        Returns:
            HierarchyCreationReport with updated row copies and creation results
        """
        report = HierarchyCreationReport()
        for row in rows:
            hierarchy = self._resolve_path(row.hierarchy or {}, mapped_level_ids, report)
            report.rows.append(row.model_copy(update={"hierarchy": hierarchy or None}))

        logger.info(
            "hierarchy_paths_resolved",
            rows=len(report.rows),
            created=len(report.created),
            failed=len(report.failed)
        )
        return report

    def _resolve_path(
        self,
        hierarchy: dict[str, str],
        mapped_level_ids: set[str],
        report: HierarchyCreationReport,
    ) -> dict[str, str]:
        resolved = dict(hierarchy)
        parent_id: Optional[str] = None
        chain_broken = False

        for level in self.levels:
            if level.id not in mapped_level_ids:
                continue

            label = (resolved.get(level.id) or "").strip()
            if chain_broken or not label:
                # A gap in the path: parent resets and deeper levels stay unset
                parent_id = None
                chain_broken = True
                resolved.pop(level.id, None)
                continue

            key = node_key(level.id, parent_id, label)
            if key in self._known:
                node_id = self._known[key]
            else:
                result = self._create_node(level, label, parent_id)
                report.results.append(result)
                node_id = result.node_id
                self._known[key] = node_id

            if node_id is None:
                parent_id = None
                chain_broken = True
                resolved.pop(level.id, None)
                continue

            resolved[level.id] = node_id
            parent_id = node_id

        return resolved

    def _create_node(
        self,
        level: HierarchyLevel,
        label: str,
        parent_id: Optional[str],
    ) -> NodeCreationResult:
        try:
            node = self.node_store.create_node(
                HierarchyNodeCreate(level_id=level.id, label=label, parent_id=parent_id),
                tenant_id=self.tenant_id,
            )
        except AppError as e:
            error = e.message
        except Exception as e:
            error = str(e)
        else:
            return NodeCreationResult(
                level_id=level.id,
                label=label,
                parent_id=parent_id,
                node_id=node.id,
                created=True,
            )

        logger.warning(
            "hierarchy_node_create_failed",
            level_id=level.id,
            label=label,
            parent_id=parent_id,
            error=error
        )
        return NodeCreationResult(
            level_id=level.id,
            label=label,
            parent_id=parent_id,
            error=error,
        )
