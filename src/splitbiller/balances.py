"""Balance reconciliation for a group's expenses.

Everything here is a pure function over an in-memory snapshot of expenses.
Results are never patched incrementally: after any settle or delete the
caller refetches the expense list and calls these functions again.

Share policy: the personal summary counts ALL splits, settled or not.
Settlement status is only looked at by the pairwise debts, the "yet to pay"
total and the "others' contributions" total.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal

from .models import (
    DirectDebt,
    Expense,
    Group,
    GroupBalances,
    SettledPayment,
    User,
    UserBalanceSummary,
)

# Anything at or below one cent is treated as settled
SETTLEMENT_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def compute_user_balance_summary(
    current_user_id: str, expenses: Iterable[Expense]
) -> UserBalanceSummary:
    """
    Compute the current user's share, contribution and net balance.

    Args:
        current_user_id: The acting user's ID
        expenses: Expenses of the group

    Returns:
        Summary where net_balance = total_contribution - total_share
    """
    total_share = ZERO
    total_contribution = ZERO

    for expense in expenses:
        user_split = expense.get_split(current_user_id)
        if user_split is not None:
            total_share += user_split.share

        if expense.is_paid_by(current_user_id):
            total_contribution += expense.amount

    return UserBalanceSummary(
        total_share=total_share,
        total_contribution=total_contribution,
        net_balance=total_contribution - total_share,
    )


def compute_direct_debts(
    current_user_id: str,
    members: Sequence[User] | None,
    expenses: Iterable[Expense],
) -> list[DirectDebt]:
    """
    Compute unsettled pairwise balances between the current user and each member.

    For each member m:
        a = m's unsettled shares on expenses the current user paid
        b = current user's unsettled shares on expenses m paid
        net = a - b

    A debt is emitted only when abs(net) exceeds SETTLEMENT_TOLERANCE.

    Args:
        current_user_id: The acting user's ID
        members: Group members in stored order (the current user is skipped)
        expenses: Expenses of the group

    Returns:
        Debt records in member order
    """
    if not members:
        return []

    expense_list = list(expenses)
    debts = []

    for member in members:
        if member.id == current_user_id:
            continue

        paid_by_user_for_member = ZERO
        paid_by_member_for_user = ZERO

        for expense in expense_list:
            if expense.is_paid_by(current_user_id):
                member_split = expense.get_split(member.id)
                if member_split is not None and not member_split.settled:
                    paid_by_user_for_member += member_split.share

            if expense.is_paid_by(member.id):
                user_split = expense.get_split(current_user_id)
                if user_split is not None and not user_split.settled:
                    paid_by_member_for_user += user_split.share

        net = paid_by_user_for_member - paid_by_member_for_user

        if abs(net) > SETTLEMENT_TOLERANCE:
            debts.append(
                DirectDebt(
                    member=member,
                    amount=abs(net),
                    is_current_user_creditor=net > 0,
                )
            )

    return debts


def compute_others_yet_to_pay(
    current_user_id: str, expenses: Iterable[Expense]
) -> Decimal:
    """Total of other members' unsettled shares on expenses the current user paid."""
    total = ZERO
    for expense in expenses:
        if not expense.is_paid_by(current_user_id):
            continue
        for split in expense.splits:
            if split.user.id != current_user_id and not split.settled:
                total += split.share
    return total


def compute_others_total_contributions(
    current_user_id: str, expenses: Iterable[Expense]
) -> Decimal:
    """Total of the current user's settled shares on expenses paid by others.

    This is what the current user has already reimbursed to other members.
    """
    total = ZERO
    for expense in expenses:
        if expense.is_paid_by(current_user_id):
            continue
        user_split = expense.get_split(current_user_id)
        if user_split is not None and user_split.settled:
            total += user_split.share
    return total


def compute_total_expenses(expenses: Iterable[Expense]) -> Decimal:
    """Sum of all expense amounts."""
    return sum((expense.amount for expense in expenses), ZERO)


def settled_payments_received(
    current_user_id: str, expenses: Iterable[Expense]
) -> list[SettledPayment]:
    """
    List settled splits of other members on expenses the current user paid.

    One row per settled split, in expense order.
    """
    payments = []
    for expense in expenses:
        if not expense.is_paid_by(current_user_id):
            continue
        for split in expense.splits:
            if split.user.id == current_user_id or not split.settled:
                continue
            payments.append(
                SettledPayment(
                    expense_id=expense.id,
                    expense_title=expense.title,
                    counterparty=split.user,
                    amount=split.share,
                    created_at=expense.created_at,
                    settled_at=split.settled_at,
                )
            )
    return payments


def settled_payments_made(
    current_user_id: str, expenses: Iterable[Expense]
) -> list[SettledPayment]:
    """
    List expenses paid by others where the current user's split is settled.

    The counterparty of each row is the payer.
    """
    payments = []
    for expense in expenses:
        if expense.is_paid_by(current_user_id):
            continue
        user_split = expense.get_split(current_user_id)
        if user_split is None or not user_split.settled:
            continue
        payments.append(
            SettledPayment(
                expense_id=expense.id,
                expense_title=expense.title,
                counterparty=expense.paid_by,
                amount=user_split.share,
                created_at=expense.created_at,
                settled_at=user_split.settled_at,
            )
        )
    return payments


def expenses_to_settle_with(
    current_user_id: str, member_id: str, expenses: Iterable[Expense]
) -> list[Expense]:
    """Expenses paid by the current user where the member still has an unsettled split."""
    relevant = []
    for expense in expenses:
        if not expense.is_paid_by(current_user_id):
            continue
        member_split = expense.get_split(member_id)
        if member_split is not None and not member_split.settled:
            relevant.append(expense)
    return relevant


def reconcile_group(
    current_user_id: str,
    group: Group,
    expenses: Sequence[Expense],
    generation: int = 0,
) -> GroupBalances:
    """
    Build a full balance snapshot for a group view.

    Args:
        current_user_id: The acting user's ID
        group: The group (its member order drives the debt order)
        expenses: Freshly fetched expenses of the group
        generation: Fetch sequence number the snapshot belongs to

    Returns:
        GroupBalances with every derived aggregate recomputed from scratch
    """
    return GroupBalances(
        group=group,
        expenses=list(expenses),
        summary=compute_user_balance_summary(current_user_id, expenses),
        direct_debts=compute_direct_debts(current_user_id, group.members, expenses),
        others_yet_to_pay=compute_others_yet_to_pay(current_user_id, expenses),
        others_total_contributions=compute_others_total_contributions(
            current_user_id, expenses
        ),
        total_expenses=compute_total_expenses(expenses),
        payments_received=settled_payments_received(current_user_id, expenses),
        payments_made=settled_payments_made(current_user_id, expenses),
        generation=generation,
    )
