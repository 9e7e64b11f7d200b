"""Split defaults and validation for new expenses."""

import logging
from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import ExpenseValidationError
from .models import ExpenseDraft, SplitType

logger = logging.getLogger(__name__)

SPLIT_TOLERANCE = Decimal("0.01")
CENT = Decimal("0.01")


def to_decimal(value: str | float | int | Decimal) -> Decimal:
    """
    Parse a user- or API-supplied amount into a Decimal.

    Floats go through str() so 0.1 stays 0.1 and not its binary expansion.

    Raises:
        ExpenseValidationError: If the value is not a number
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ExpenseValidationError(f"Invalid amount: {value!r}") from e


def default_percentage_splits(member_ids: Sequence[str]) -> dict[str, Decimal]:
    """
    Divide 100% between members as evenly as possible in whole points.

    Each member gets floor(100 / n); the leftover points go one each to the
    first members so the total is exactly 100.

    Example:
        3 members -> 34, 33, 33
    """
    if not member_ids:
        return {}

    count = len(member_ids)
    equal_percentage = 100 // count
    remaining = 100 - equal_percentage * count

    return {
        member_id: Decimal(equal_percentage + (1 if index < remaining else 0))
        for index, member_id in enumerate(member_ids)
    }


def default_exact_splits(
    amount: Decimal, member_ids: Sequence[str]
) -> dict[str, Decimal]:
    """Divide an amount equally between members, each rounded to the cent."""
    if not member_ids:
        return {}

    share = (amount / len(member_ids)).quantize(CENT, rounding=ROUND_HALF_UP)
    return {member_id: share for member_id in member_ids}


def build_expense_draft(
    title: str,
    amount: str | float | Decimal,
    group_id: str,
    selected_member_ids: Sequence[str],
    split_type: SplitType = "equal",
    custom_splits: Mapping[str, str | float | Decimal] | None = None,
    category: str = "general",
    notes: str = "",
) -> ExpenseDraft:
    """
    Validate expense input and build the draft to send to the API.

    Args:
        title: Expense title
        amount: Expense amount
        group_id: Group the expense belongs to
        selected_member_ids: Members taking part in the expense
        split_type: 'equal', 'percentage' or 'exact'
        custom_splits: Percentage or amount per member (ignored for equal splits)
        category: Expense category
        notes: Free-text notes

    Returns:
        A validated ExpenseDraft

    Raises:
        ExpenseValidationError: If any check fails
    """
    if not title.strip() or not str(amount).strip():
        raise ExpenseValidationError("Title and amount are required")

    parsed_amount = to_decimal(amount)
    if not parsed_amount.is_finite() or parsed_amount <= 0:
        raise ExpenseValidationError("Please enter a valid amount")

    member_ids = list(dict.fromkeys(selected_member_ids))
    if not member_ids:
        raise ExpenseValidationError(
            "At least one group member must be selected for the expense"
        )

    if split_type == "equal":
        return ExpenseDraft(
            title=title.strip(),
            amount=parsed_amount,
            group_id=group_id,
            split_type=split_type,
            selected_member_ids=member_ids,
            category=category,
            notes=notes,
        )

    # Custom splits only cover selected members; missing values count as zero
    raw_splits = custom_splits or {}
    filtered_splits = {
        member_id: to_decimal(raw_splits.get(member_id, 0)) for member_id in member_ids
    }
    total = sum(filtered_splits.values(), Decimal("0"))

    if split_type == "percentage":
        if abs(total - 100) > SPLIT_TOLERANCE:
            raise ExpenseValidationError("Percentage splits must add up to 100%")
    elif split_type == "exact":
        if abs(total - parsed_amount) > SPLIT_TOLERANCE:
            raise ExpenseValidationError(
                f"Exact splits must add up to the expense amount (${parsed_amount:.2f})"
            )
    else:
        raise ExpenseValidationError(f"Unknown split type: {split_type}")

    logger.debug(f"Built {split_type} split for {len(member_ids)} members: {total}")

    return ExpenseDraft(
        title=title.strip(),
        amount=parsed_amount,
        group_id=group_id,
        split_type=split_type,
        selected_member_ids=member_ids,
        splits=filtered_splits,
        category=category,
        notes=notes,
    )
