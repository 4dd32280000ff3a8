"""
Position bookkeeping shared by risk assessments and method steps.

Both children carry a 1-based integer position (`sort_order` or
`step_number`). These helpers operate on already-loaded rows; the
caller flushes, so a shift and the insert that caused it land in the
same unit of work.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ramsflow.core.errors import ErrorCode, InvalidOperationError


def next_position(items: Sequence[Any], attr: str) -> int:
    return max((getattr(item, attr) for item in items), default=0) + 1


def validate_position(position: int) -> None:
    if position < 1:
        raise InvalidOperationError(
            "Position must be at least 1",
            code=ErrorCode.RAMS_INVALID_POSITION,
            detail={"position": position},
        )


def shift_from(items: Sequence[Any], attr: str, position: int) -> None:
    """Move every item at or after `position` down by one slot."""
    for item in items:
        if getattr(item, attr) >= position:
            setattr(item, attr, getattr(item, attr) + 1)


def renumber(items: Sequence[Any], attr: str) -> None:
    """Compact positions to 1..N, keeping the current relative order."""
    ordered = sorted(items, key=lambda item: getattr(item, attr))
    for index, item in enumerate(ordered, start=1):
        setattr(item, attr, index)


def apply_order(items: Sequence[Any], attr: str, ordered_ids: Sequence[str], label: str) -> None:
    """
    Number `ordered_ids` 1..N in list order.

    Every id must belong to `items` and appear once. Items left out of
    the list keep their relative order and follow the listed ones.
    """
    by_id = {item.id: item for item in items}
    if len(set(ordered_ids)) != len(ordered_ids) or any(i not in by_id for i in ordered_ids):
        raise InvalidOperationError(
            f"One or more {label} IDs are invalid",
            code=ErrorCode.RAMS_INVALID_ORDER,
        )

    listed = set(ordered_ids)
    remainder = sorted(
        (item for item in items if item.id not in listed),
        key=lambda item: getattr(item, attr),
    )
    for index, item in enumerate([by_id[i] for i in ordered_ids] + remainder, start=1):
        setattr(item, attr, index)
