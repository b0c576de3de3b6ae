"""
Unit tests for status/priority value mappings.
"""

from models.order import OrderStatus, Priority
from services.value_mapping_service import (
    match_enum,
    resolve_priority,
    resolve_status,
    seed_priority_mapping,
    seed_status_mapping,
    unique_column_values,
)
from tests.factories import RawRowFactory


class TestUniqueColumnValues:

    def test_distinct_trimmed_in_file_order(self):
        rows = RawRowFactory.from_records([
            {"Status": " Klar "},
            {"Status": "Draft"},
            {"Status": "Klar"},
            {"Status": ""},
        ])

        assert unique_column_values(rows, "Status") == ["Klar", "Draft"]

    def test_unmapped_column(self):
        rows = RawRowFactory.from_records([{"Status": "Draft"}])
        assert unique_column_values(rows, None) == []


class TestSeedMapping:

    def test_known_values_matched(self):
        seed = seed_status_mapping(["In Production", "Ready for engineering"], {})

        assert seed.mapping == {
            "In Production": OrderStatus.IN_PRODUCTION,
            "Ready for engineering": OrderStatus.READY_FOR_ENGINEERING,
        }
        assert seed.defaulted == []

    def test_unknown_values_default(self):
        """Unrecognized status falls back to draft, priority to normal."""
        status_seed = seed_status_mapping(["Klar"], {})
        priority_seed = seed_priority_mapping(["Sofort"], {})

        assert status_seed.mapping["Klar"] == OrderStatus.DRAFT
        assert status_seed.defaulted == ["Klar"]
        assert priority_seed.mapping["Sofort"] == Priority.NORMAL
        assert priority_seed.defaulted == ["Sofort"]

    def test_existing_entries_never_overwritten(self):
        existing = {"Klar": OrderStatus.READY_FOR_PRODUCTION}

        seed = seed_status_mapping(["Klar", "Draft"], existing)

        assert seed.mapping["Klar"] == OrderStatus.READY_FOR_PRODUCTION
        assert seed.mapping["Draft"] == OrderStatus.DRAFT
        assert seed.defaulted == []

    def test_existing_mapping_not_mutated(self):
        existing = {}
        seed_status_mapping(["Klar"], existing)
        assert existing == {}


class TestResolve:

    def test_explicit_mapping_wins(self):
        mapping = {"Klar": OrderStatus.READY_FOR_PRODUCTION}
        assert resolve_status("Klar", mapping) == OrderStatus.READY_FOR_PRODUCTION

    def test_auto_normalize_without_mapping(self):
        assert resolve_priority("HIGH", {}) == Priority.HIGH

    def test_default_on_failure(self):
        assert resolve_status("Klar", {}) == OrderStatus.DRAFT
        assert resolve_priority("", {}) == Priority.NORMAL

    def test_match_enum_blank(self):
        assert match_enum("   ", Priority) is None
