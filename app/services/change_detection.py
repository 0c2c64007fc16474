"""Detect which unified fields differ between an incoming and a stored patent."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from app.services.validation import coerce_date

# Returns True when the two values count as different.
FieldComparator = Callable[[Any, Any], bool]

GENERAL_UPDATE = "general_update"


def scalars_differ(new: Any, existing: Any) -> bool:
    return new != existing


def to_instant(value: Any) -> Optional[datetime]:
    """Normalise native dates, ISO strings and store timestamps to one datetime."""

    if isinstance(value, (datetime, date, str)):
        return coerce_date(value)
    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        return coerce_date(to_datetime())
    return None


def dates_differ(new: Any, existing: Any) -> bool:
    if not new and not existing:
        return False
    if not new or not existing:
        return True
    new_instant = to_instant(new)
    existing_instant = to_instant(existing)
    if new_instant is None or existing_instant is None:
        # Unknown representation.
        return True
    return new_instant != existing_instant


def lengths_differ(new: Any, existing: Any) -> bool:
    new_is_list = isinstance(new, list)
    existing_is_list = isinstance(existing, list)
    if new_is_list and existing_is_list:
        return len(new) != len(existing)
    return new_is_list != existing_is_list


CHANGE_TABLE: Tuple[Tuple[str, FieldComparator], ...] = (
    ("title", scalars_differ),
    ("abstract", scalars_differ),
    ("description", scalars_differ),
    ("kind_code", scalars_differ),
    ("dates.filing", dates_differ),
    ("dates.publication", dates_differ),
    ("dates.grant", dates_differ),
    ("dates.priority", dates_differ),
    ("inventors", lengths_differ),
    ("assignees", lengths_differ),
    ("claims", lengths_differ),
    ("classifications", lengths_differ),
    ("citations", lengths_differ),
)


def lookup(document: Mapping[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def detect_changed_fields(
    new_document: Mapping[str, Any],
    existing_document: Mapping[str, Any],
    table: Sequence[Tuple[str, FieldComparator]] = CHANGE_TABLE,
) -> List[str]:
    """Field paths whose comparator reports a difference, or ``["general_update"]``."""

    changed = [
        path
        for path, differs in table
        if differs(lookup(new_document, path), lookup(existing_document, path))
    ]
    return changed or [GENERAL_UPDATE]
