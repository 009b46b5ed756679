"""Filtering, ordering and limiting over an index cache."""

from __future__ import annotations

import functools
import math
import re

from liltodo.models import Direction, FilterKind, ListOptions, OrderKey, Task, TaskFilter

NUMERIC_COLUMNS = ("id", "pri")

FILTER_SYMBOLS = {
    "&": FilterKind.ALL,
    "|": FilterKind.ANY,
    "/": FilterKind.MATCH,
}


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def matches(task_filter: TaskFilter, entry: dict) -> bool:
    tags = entry.get("tags", [])
    if task_filter.kind == FilterKind.ALL:
        return all(tag in tags for tag in task_filter.params)
    if task_filter.kind == FilterKind.ANY:
        return any(tag in tags for tag in task_filter.params)
    if task_filter.kind == FilterKind.MATCH:
        pattern = task_filter.params[0] if task_filter.params else ""
        return re.search(pattern, entry.get("title", ""), re.IGNORECASE) is not None
    return True


def parse_filter(expr: str) -> TaskFilter:
    """Parse ``"& a b"``, ``"| a b"`` or ``"/ regex"``. Empty means no filter.

    Raises ValueError for an unknown leading symbol.
    """
    if not expr.strip():
        return TaskFilter()
    symbol, *params = expr.split()
    if symbol not in FILTER_SYMBOLS:
        raise ValueError(f"Bad filter '{expr}'. Use '& tags', '| tags' or '/ regex'.")
    kind = FILTER_SYMBOLS[symbol]
    if kind == FilterKind.MATCH:
        # the regex may itself contain spaces
        params = [expr.strip()[1:].strip()]
    return TaskFilter(kind, tuple(params))


def format_filter(task_filter: TaskFilter) -> str:
    if task_filter.kind == FilterKind.NONE:
        return ""
    symbol = next(s for s, k in FILTER_SYMBOLS.items() if k == task_filter.kind)
    return " ".join([symbol, *task_filter.params])


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def parse_order(expr: str) -> tuple[OrderKey, ...]:
    """Parse ``"-pri id"``: columns in priority order, ``-`` prefix for descending."""
    keys = []
    for word in expr.split():
        if word.startswith("-"):
            keys.append(OrderKey(word[1:], Direction.DESC))
        else:
            keys.append(OrderKey(word, Direction.ASC))
    return tuple(keys)


def format_order(order: tuple[OrderKey, ...]) -> str:
    return " ".join(("-" if k.direction == Direction.DESC else "") + k.column for k in order)


def _numeric(value) -> tuple[int, float, str]:
    # finite numbers sort before anything that isn't one (nan and inf included)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1, 0.0, str(value)
    if not math.isfinite(number):
        return 1, 0.0, str(value)
    return 0, number, ""


def _column_value(column: str, task_id: str, entry: dict):
    value = task_id if column == "id" else entry.get(column)
    if column in NUMERIC_COLUMNS:
        return _numeric(value)
    return "" if value is None else value


def compare_entries(order: tuple[OrderKey, ...], a: tuple[str, dict], b: tuple[str, dict]) -> int:
    """Lexicographic comparison of two (id, entry) pairs over the order keys."""
    for key in order:
        va = _column_value(key.column, *a)
        vb = _column_value(key.column, *b)
        if va == vb:
            continue
        result = -1 if va < vb else 1
        return -result if key.direction == Direction.DESC else result
    return 0


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


def run_query(index: dict[str, dict], options: ListOptions) -> list[Task]:
    """Apply filter, order and limit to an index mapping."""
    entries = [(tid, entry) for tid, entry in index.items() if matches(options.filter, entry)]
    if options.order:
        entries.sort(key=functools.cmp_to_key(functools.partial(compare_entries, options.order)))
    if options.limit is not None:
        entries = entries[: max(options.limit, 0)]
    return [Task.from_index_entry(int(tid), entry) for tid, entry in entries]
