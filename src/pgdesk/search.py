"""In-memory row filtering behind the advanced search panel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence


class SearchOperator(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    GREATER = "greater"
    LESS = "less"
    BETWEEN = "between"


@dataclass(frozen=True)
class SearchFilter:
    operator: SearchOperator
    value: str
    column: Optional[str] = None
    second_value: Optional[str] = None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(left: Any, right: Any) -> Optional[int]:
    """Three-way compare, numerically when both sides are numbers, else as text."""
    if left is None:
        return None
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        a, b = left_num, right_num
    else:
        a, b = _text(left).lower(), _text(right).lower()
    return (a > b) - (a < b)


def value_matches(value: Any, search_filter: SearchFilter) -> bool:
    op = SearchOperator(search_filter.operator)
    if op is SearchOperator.CONTAINS:
        return search_filter.value.lower() in _text(value).lower()
    if op is SearchOperator.EQUALS:
        return _text(value).lower() == search_filter.value.lower()
    if op is SearchOperator.GREATER:
        result = _compare(value, search_filter.value)
        return result is not None and result > 0
    if op is SearchOperator.LESS:
        result = _compare(value, search_filter.value)
        return result is not None and result < 0
    # between, inclusive on both ends
    low = _compare(value, search_filter.value)
    high = _compare(value, search_filter.second_value or search_filter.value)
    return low is not None and high is not None and low >= 0 and high <= 0


def row_matches(row: Mapping[str, Any], search_filter: SearchFilter) -> bool:
    if search_filter.column:
        return value_matches(row.get(search_filter.column), search_filter)
    return any(value_matches(value, search_filter) for value in row.values())


def filter_rows(
    rows: Iterable[Mapping[str, Any]],
    filters: Sequence[SearchFilter] = (),
    global_search: str = "",
) -> list[dict]:
    """Keep rows that match the global search text and every filter."""
    needle = (global_search or "").strip().lower()
    matched = []
    for row in rows:
        if needle and not any(needle in _text(value).lower() for value in row.values()):
            continue
        if all(row_matches(row, search_filter) for search_filter in filters):
            matched.append(dict(row))
    return matched
