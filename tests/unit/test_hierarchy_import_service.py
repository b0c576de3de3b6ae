"""
Unit tests for hierarchy find-or-create during import.
"""

from typing import Optional

import pytest

from exceptions import DatabaseError
from models.hierarchy import HierarchyNode, HierarchyNodeCreate
from services.hierarchy_import_service import HierarchyPathResolver, node_key
from tests.factories import HierarchyFactory, ImportRowFactory


class FakeNodeStore:
    """In-memory stand-in for HierarchyService.create_node."""

    def __init__(self, fail_labels: tuple[str, ...] = ()):
        self.created: list[HierarchyNodeCreate] = []
        self.fail_labels = set(fail_labels)

    def create_node(self, data: HierarchyNodeCreate, tenant_id: Optional[str] = None) -> HierarchyNode:
        if data.label in self.fail_labels:
            raise DatabaseError("insert", "duplicate key value")
        self.created.append(data)
        return HierarchyNode(
            id=f"node-{len(self.created)}",
            level_id=data.level_id,
            label=data.label,
            parent_id=data.parent_id,
        )


@pytest.fixture
def levels():
    return HierarchyFactory.levels("Contract", "Category", "Product")


@pytest.fixture
def all_mapped(levels):
    return {level.id for level in levels}


class TestPathCreation:

    def test_shared_path_created_once(self, levels, all_mapped):
        """Two rows on the same path create each node exactly once."""
        store = FakeNodeStore()
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[], tenant_id="t-1")
        path = {"lvl-contract": "C-1", "lvl-category": "Doors", "lvl-product": "Oak"}
        rows = [
            ImportRowFactory.create(hierarchy=dict(path)),
            ImportRowFactory.create(hierarchy=dict(path)),
        ]

        report = resolver.resolve_rows(rows, all_mapped)

        assert [n.label for n in store.created] == ["C-1", "Doors", "Oak"]
        assert report.success is True
        assert len(report.created) == 3
        assert report.rows[0].hierarchy == report.rows[1].hierarchy == {
            "lvl-contract": "node-1",
            "lvl-category": "node-2",
            "lvl-product": "node-3",
        }

    def test_parent_chain(self, levels, all_mapped):
        store = FakeNodeStore()
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[])
        row = ImportRowFactory.create(hierarchy={"lvl-contract": "C-1", "lvl-category": "Doors"})

        resolver.resolve_rows([row], all_mapped)

        assert store.created[0].parent_id is None
        assert store.created[1].parent_id == "node-1"

    def test_same_label_under_different_parents(self, levels, all_mapped):
        store = FakeNodeStore()
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[])
        rows = [
            ImportRowFactory.create(hierarchy={"lvl-contract": "C-1", "lvl-category": "Doors"}),
            ImportRowFactory.create(hierarchy={"lvl-contract": "C-2", "lvl-category": "Doors"}),
        ]

        resolver.resolve_rows(rows, all_mapped)

        assert [n.label for n in store.created] == ["C-1", "Doors", "C-2", "Doors"]

    def test_existing_nodes_reused_case_insensitively(self, levels, all_mapped):
        store = FakeNodeStore()
        existing = [
            HierarchyFactory.node("lvl-contract", "C-1", id="existing-c1"),
            HierarchyFactory.node("lvl-category", "Doors", parent_id="existing-c1", id="existing-doors"),
        ]
        resolver = HierarchyPathResolver(store, levels, existing_nodes=existing)
        row = ImportRowFactory.create(hierarchy={
            "lvl-contract": "  c-1 ",
            "lvl-category": "DOORS",
            "lvl-product": "Oak",
        })

        report = resolver.resolve_rows([row], all_mapped)

        assert [n.label for n in store.created] == ["Oak"]
        assert store.created[0].parent_id == "existing-doors"
        assert report.rows[0].hierarchy["lvl-contract"] == "existing-c1"

    def test_unmapped_levels_ignored(self, levels):
        store = FakeNodeStore()
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[])
        row = ImportRowFactory.create(hierarchy={"lvl-contract": "C-1"})

        report = resolver.resolve_rows([row], {"lvl-contract"})

        assert report.rows[0].hierarchy == {"lvl-contract": "node-1"}

    def test_row_without_hierarchy(self, levels, all_mapped):
        resolver = HierarchyPathResolver(FakeNodeStore(), levels, existing_nodes=[])

        report = resolver.resolve_rows([ImportRowFactory.create()], all_mapped)

        assert report.rows[0].hierarchy is None
        assert report.results == []


class TestChainBreaks:

    def test_blank_middle_level_leaves_deeper_unset(self, levels, all_mapped):
        store = FakeNodeStore()
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[])
        row = ImportRowFactory.create(hierarchy={"lvl-contract": "C-1", "lvl-product": "Oak"})

        report = resolver.resolve_rows([row], all_mapped)

        assert [n.label for n in store.created] == ["C-1"]
        assert report.rows[0].hierarchy == {"lvl-contract": "node-1"}

    def test_failure_recorded_and_deeper_levels_skipped(self, levels, all_mapped):
        store = FakeNodeStore(fail_labels=("Doors",))
        resolver = HierarchyPathResolver(store, levels, existing_nodes=[])
        path = {"lvl-contract": "C-1", "lvl-category": "Doors", "lvl-product": "Oak"}
        rows = [
            ImportRowFactory.create(hierarchy=dict(path)),
            ImportRowFactory.create(hierarchy=dict(path)),
        ]

        report = resolver.resolve_rows(rows, all_mapped)

        assert report.success is False
        assert len(report.failed) == 1
        assert "duplicate key value" in report.failed[0].error
        # Failed path is not retried for the second row
        assert [n.label for n in store.created] == ["C-1"]
        assert report.rows[0].hierarchy == {"lvl-contract": "node-1"}


def test_node_key_normalizes_label():
    assert node_key("lvl", None, " Oak ") == node_key("lvl", "", "oak")
