"""Deterministic row sorting for diff tables and hierarchical paths."""

import logging
from typing import Any, Callable, Iterable, TypeVar

import pandas as pd

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PATH_SEGMENTS = 10


def sort_rows(
    items: list[T],
    columns: list[int],
    values: Callable[[T], tuple] = lambda item: item,
) -> list[T]:
    """Sort items by the given value positions in stable lexicographic order.

    Args:
        items: Rows (or objects wrapping rows) to sort
        columns: Value positions to sort by, most significant first
        values: Returns the value tuple of an item

    Returns:
        New sorted list (input is not modified)

    Sorting semantics:
        - Case-insensitive comparison for text values
        - Numeric comparison for integer columns
        - None values sort last
        - Stable sort: equal keys keep their input order
    """
    if len(items) < 2 or not columns:
        return list(items)

    frame = pd.DataFrame(
        {
            f"c{position}": [values(item)[col] for item in items]
            for position, col in enumerate(columns)
        }
    )
    by = list(frame.columns)
    frame = frame.sort_values(by=by, kind="stable", na_position="last", key=_sort_key)
    return [items[i] for i in frame.index]


def _sort_key(series: pd.Series) -> pd.Series:
    if series.dtype == object:
        return series.map(lambda v: v.lower() if isinstance(v, str) else v)
    return series


def path_sort_segments(
    path: str, delimiter: str = "OU=", max_segments: int = MAX_PATH_SEGMENTS
) -> list[str]:
    """Split a hierarchical path into root-first sort segments.

    ``"OU=Sales,OU=Corp,DC=root"`` split on ``"OU="`` gives
    ``["Corp,DC=root", "Sales,", "", ...]``: the segment closest to the root
    is compared first. A value without the delimiter is a root and gets a
    leading space so it sorts ahead of its descendants.

    Args:
        path: Delimiter-segmented path (e.g. a distinguished name)
        delimiter: Segment delimiter
        max_segments: Number of segments returned; deeper paths are truncated

    Returns:
        Exactly ``max_segments`` strings
    """
    parts = path.split(delimiter) if delimiter else [path]
    if len(parts) == 1:
        segments = [" " + parts[0]]
    else:
        if len(parts) > max_segments:
            logger.info(
                f"Container: '{path}' is deeper than '{max_segments}' levels. "
                "Display sequence may be a little out-of-order."
            )
        segments = [parts[len(parts) - 1 - i] for i in range(min(len(parts), max_segments))]

    return segments + [""] * (max_segments - len(segments))


def path_sorted(
    paths: Iterable[str], delimiter: str = "OU=", max_segments: int = MAX_PATH_SEGMENTS
) -> list[str]:
    """Sort paths root-first using :func:`path_sort_segments`."""
    paths = list(paths)
    segments = [tuple(path_sort_segments(p, delimiter, max_segments)) for p in paths]
    order = sort_rows(list(range(len(paths))), list(range(max_segments)), lambda i: segments[i])
    return [paths[i] for i in order]


def sort_values(items: Iterable[Any]) -> list[Any]:
    """Case-insensitive stable sort of plain values."""
    items = list(items)
    return sort_rows(items, [0], lambda item: (item,))
