"""Filtering and sorting for the cross-group expense list."""

from collections.abc import Callable, Iterable
from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel

from .models import Expense

SortKey = Literal[
    "date-asc", "date-desc", "amount-asc", "amount-desc", "title-asc", "title-desc"
]

# sort key -> (key function, reverse)
_SORTS: dict[str, tuple[Callable[[Expense], Any], bool]] = {
    "date-asc": (lambda e: _naive(e.created_at), False),
    "date-desc": (lambda e: _naive(e.created_at), True),
    "amount-asc": (lambda e: e.amount, False),
    "amount-desc": (lambda e: e.amount, True),
    "title-asc": (lambda e: e.title.lower(), False),
    "title-desc": (lambda e: e.title.lower(), True),
}


class ExpenseFilter(BaseModel):
    """Filters applied to an expense list. None / 'all' means no filter."""

    search: str = ""
    category: str = "all"
    group_id: str = "all"
    date_from: date | None = None
    date_to: date | None = None
    sort_by: SortKey = "date-desc"


def _naive(value: datetime) -> datetime:
    """Drop tzinfo so API timestamps compare against plain dates."""
    return value.replace(tzinfo=None)


def _matches_search(expense: Expense, search: str) -> bool:
    needle = search.lower()
    return (
        needle in expense.title.lower()
        or needle in (expense.notes or "").lower()
        or needle in expense.paid_by.name.lower()
    )


def filter_and_sort_expenses(
    expenses: Iterable[Expense], filters: ExpenseFilter | None = None
) -> list[Expense]:
    """
    Apply search, category, group and date filters, then sort.

    The search matches title, notes or payer name, case-insensitively.
    date_to is inclusive up to the end of that day.

    Args:
        expenses: Expenses to filter
        filters: Filter settings (defaults to no filters, newest first)

    Returns:
        A new filtered and sorted list
    """
    filters = filters or ExpenseFilter()
    result = list(expenses)

    if filters.search:
        result = [e for e in result if _matches_search(e, filters.search)]

    if filters.category != "all":
        result = [e for e in result if e.category == filters.category]

    if filters.group_id != "all":
        result = [e for e in result if e.group_id == filters.group_id]

    if filters.date_from:
        start = datetime.combine(filters.date_from, time.min)
        result = [e for e in result if _naive(e.created_at) >= start]

    if filters.date_to:
        end = datetime.combine(filters.date_to, time.max)
        result = [e for e in result if _naive(e.created_at) <= end]

    key, reverse = _SORTS[filters.sort_by]
    result.sort(key=key, reverse=reverse)

    return result


def unique_categories(expenses: Iterable[Expense]) -> list[str]:
    """Distinct categories in first-seen order."""
    return list(dict.fromkeys(e.category for e in expenses))


def unique_groups(expenses: Iterable[Expense]) -> dict[str, str]:
    """Map of group ID to group name for expenses that carry a group."""
    groups: dict[str, str] = {}
    for expense in expenses:
        if expense.group_id and expense.group_id not in groups:
            groups[expense.group_id] = expense.group_name or "Unknown Group"
    return groups
