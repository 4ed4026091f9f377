from __future__ import annotations
"""Filtering and ordering of listing items for display."""
from datetime import datetime, timezone
from typing import Iterable

from .models import FILTER_TYPES, SORT_FIELDS, SORT_ORDERS, ObjectItem
from .storage import ValidationFailure


def parse_timestamp(value: str | None) -> float:
    """Seconds since the epoch for an ISO-8601 string; ``0`` when unknown."""

    if not value:
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _sort_value(item: ObjectItem, sort_by: str):
    if sort_by == "size":
        return item.size or 0
    if sort_by == "modified":
        return parse_timestamp(item.last_modified)
    return item.key


def matches_filter(item: ObjectItem, filter_type: str) -> bool:
    if filter_type == "images":
        return item.is_folder or item.is_image
    if filter_type == "folders":
        return item.is_folder
    return True


def check_view_options(filter_type: str, sort_by: str, sort_order: str) -> None:
    if filter_type not in FILTER_TYPES:
        raise ValidationFailure(f"Unknown filter type: {filter_type!r}")
    if sort_by not in SORT_FIELDS:
        raise ValidationFailure(f"Unknown sort field: {sort_by!r}")
    if sort_order not in SORT_ORDERS:
        raise ValidationFailure(f"Unknown sort order: {sort_order!r}")


def derive_view(
    items: Iterable[ObjectItem],
    *,
    search_query: str = "",
    filter_type: str = "all",
    sort_by: str = "name",
    sort_order: str = "asc",
) -> list[ObjectItem]:
    """Return the searched, filtered and sorted projection of ``items``.

    Folders always precede files. Items with equal sort values keep
    ascending key order whatever ``sort_order`` is.
    """

    check_view_options(filter_type, sort_by, sort_order)
    query = search_query.lower()
    view = [
        item
        for item in items
        if (not query or query in item.key.lower()) and matches_filter(item, filter_type)
    ]
    # Each pass is stable, so earlier passes act as tie-breakers.
    view.sort(key=lambda item: item.key)
    view.sort(key=lambda item: _sort_value(item, sort_by), reverse=sort_order == "desc")
    view.sort(key=lambda item: not item.is_folder)
    return view
