"""
Value mappings for status and priority columns.

Raw spreadsheet values ("Klar", "High!", "In Production") are translated
to OrderStatus / Priority. Defaults are proposed with normalize_enum and
fall back to a safe value when the text isn't a legal enum value. The
fallback is reported as "defaulted" so the user can review it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional, TypeVar
import structlog

from models.order import OrderStatus, Priority, DEFAULT_STATUS, DEFAULT_PRIORITY
from models.order_import import RawRow
from utils.text_utils import normalize_enum

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)


@dataclass
class ValueMappingSeed:
    """Result of seeding a value mapping."""
    mapping: dict = field(default_factory=dict)
    defaulted: list[str] = field(default_factory=list)


def unique_column_values(rows: Iterable[RawRow], column: Optional[str]) -> list[str]:
    """Distinct trimmed, non-empty values of a column, in file order."""
    if not column:
        return []
    seen: dict[str, None] = {}
    for row in rows:
        value = row.text(column)
        if value:
            seen.setdefault(value, None)
    return list(seen)


def match_enum(raw: str, enum_cls: type[E]) -> Optional[E]:
    """Enum member whose value equals normalize_enum(raw), if any."""
    normalized = normalize_enum(raw)
    if not normalized:
        return None
    try:
        return enum_cls(normalized)
    except ValueError:
        return None


def seed_value_mapping(
    values: Iterable[str],
    existing: Mapping[str, E],
    enum_cls: type[E],
    default: E,
) -> ValueMappingSeed:
    """
    Propose a target for every raw value that has no mapping yet.

    Args:
        values: Distinct raw values from the mapped column
        existing: Mapping already in place (user choices win, never overwritten)
        enum_cls: OrderStatus or Priority
        default: Fallback when the value isn't recognized

    Returns:
        ValueMappingSeed with the merged mapping and the values that fell
        back to the default in this pass
    """
    result = ValueMappingSeed(mapping=dict(existing))
    for value in values:
        if value in result.mapping:
            continue
        matched = match_enum(value, enum_cls)
        if matched is None:
            result.mapping[value] = default
            result.defaulted.append(value)
        else:
            result.mapping[value] = matched

    if result.defaulted:
        logger.info(
            "value_mapping_defaulted",
            enum=enum_cls.__name__,
            default=default.value,
            values=result.defaulted[:20],
            count=len(result.defaulted)
        )
    return result


def seed_status_mapping(
    values: Iterable[str],
    existing: Mapping[str, OrderStatus],
) -> ValueMappingSeed:
    return seed_value_mapping(values, existing, OrderStatus, DEFAULT_STATUS)


def seed_priority_mapping(
    values: Iterable[str],
    existing: Mapping[str, Priority],
) -> ValueMappingSeed:
    return seed_value_mapping(values, existing, Priority, DEFAULT_PRIORITY)


def resolve_enum(
    raw: str,
    mapping: Mapping[str, E],
    enum_cls: type[E],
    default: E,
) -> E:
    """Explicit mapping for the exact raw value, else auto-normalize, else default."""
    if raw and raw in mapping:
        return mapping[raw]
    matched = match_enum(raw, enum_cls)
    return default if matched is None else matched


def resolve_status(raw: str, mapping: Mapping[str, OrderStatus]) -> OrderStatus:
    return resolve_enum(raw, mapping, OrderStatus, DEFAULT_STATUS)


def resolve_priority(raw: str, mapping: Mapping[str, Priority]) -> Priority:
    return resolve_enum(raw, mapping, Priority, DEFAULT_PRIORITY)
