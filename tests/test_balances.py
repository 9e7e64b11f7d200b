"""Tests for group balance reconciliation."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from splitbiller.balances import (
    SETTLEMENT_TOLERANCE,
    compute_direct_debts,
    compute_others_total_contributions,
    compute_others_yet_to_pay,
    compute_total_expenses,
    compute_user_balance_summary,
    expenses_to_settle_with,
    reconcile_group,
    settled_payments_made,
    settled_payments_received,
)
from splitbiller.models import Expense, Group, Split, User

ALICE = User(id="a", name="Alice", email="alice@example.com")
BOB = User(id="b", name="Bob", email="bob@example.com")
CAROL = User(id="c", name="Carol", email="carol@example.com")


# Helper function for tests
def make_expense(
    id: str,
    amount: str,
    paid_by: User,
    shares: list[tuple[User, str]],
    settled: set[str] | None = None,
) -> Expense:
    """Create an Expense; user IDs in `settled` get settled splits."""
    settled = settled or set()
    return Expense(
        id=id,
        title=f"Expense {id}",
        amount=Decimal(amount),
        paid_by=paid_by,
        split_type="exact",
        splits=[
            Split(
                user=user,
                share=Decimal(share),
                settled=user.id in settled,
                settled_at=(
                    datetime(2025, 3, 2, tzinfo=UTC) if user.id in settled else None
                ),
            )
            for user, share in shares
        ],
        created_at=datetime(2025, 3, 1, tzinfo=UTC),
    )


@pytest.fixture
def dinner():
    """A paid $30 split equally among A, B, C, all unsettled."""
    return make_expense(
        "e1", "30", ALICE, [(ALICE, "10"), (BOB, "10"), (CAROL, "10")]
    )


class TestUserBalanceSummary:
    """Tests for compute_user_balance_summary."""

    def test_equal_three_way_split(self, dinner):
        """A paid $30 for three: share 10, contribution 30, net +20."""
        summary = compute_user_balance_summary("a", [dinner])

        assert summary.total_share == Decimal("10")
        assert summary.total_contribution == Decimal("30")
        assert summary.net_balance == Decimal("20")

    def test_debtor_has_negative_net(self, dinner):
        """B did not pay anything, so B is a net debtor."""
        summary = compute_user_balance_summary("b", [dinner])

        assert summary.total_contribution == Decimal("0")
        assert summary.net_balance == Decimal("-10")

    def test_contribution_ignores_settlement(self, dinner):
        """Settling B's split leaves A's contribution at 30."""
        settled = make_expense(
            "e1",
            "30",
            ALICE,
            [(ALICE, "10"), (BOB, "10"), (CAROL, "10")],
            settled={"b"},
        )

        assert compute_user_balance_summary("a", [settled]).total_contribution == (
            compute_user_balance_summary("a", [dinner]).total_contribution
        )

    def test_share_includes_settled_splits(self):
        """The user's own settled split still counts toward their share."""
        expense = make_expense(
            "e1", "20", BOB, [(ALICE, "10"), (BOB, "10")], settled={"a"}
        )

        assert compute_user_balance_summary("a", [expense]).total_share == Decimal("10")

    def test_contribution_equals_sum_of_paid_amounts(self):
        """Contribution is the sum of amounts of expenses the user paid."""
        expenses = [
            make_expense("e1", "12.34", ALICE, [(ALICE, "6.17"), (BOB, "6.17")]),
            make_expense("e2", "50", BOB, [(ALICE, "25"), (BOB, "25")]),
            make_expense(
                "e3", "7.66", ALICE, [(BOB, "7.66")], settled={"b"}
            ),
        ]

        summary = compute_user_balance_summary("a", expenses)

        assert summary.total_contribution == Decimal("20.00")
        assert summary.net_balance == summary.total_contribution - summary.total_share

    def test_user_without_split_has_zero_share(self, dinner):
        """A user outside the expense contributes nothing to share."""
        summary = compute_user_balance_summary("z", [dinner])

        assert summary.total_share == Decimal("0")
        assert summary.net_balance == Decimal("0")

    def test_empty_expenses(self):
        """No expenses degenerate to zeros."""
        summary = compute_user_balance_summary("a", [])

        assert summary.total_share == 0
        assert summary.total_contribution == 0
        assert summary.net_balance == 0


class TestDirectDebts:
    """Tests for compute_direct_debts."""

    def test_equal_three_way_split(self, dinner):
        """B and C each owe A $10, in member order."""
        debts = compute_direct_debts("a", [BOB, CAROL], [dinner])

        assert [(d.member.id, d.amount, d.is_current_user_creditor) for d in debts] == [
            ("b", Decimal("10"), True),
            ("c", Decimal("10"), True),
        ]

    def test_settled_member_is_omitted(self):
        """Once B's split is settled B no longer appears."""
        expense = make_expense(
            "e1",
            "30",
            ALICE,
            [(ALICE, "10"), (BOB, "10"), (CAROL, "10")],
            settled={"b"},
        )

        debts = compute_direct_debts("a", [BOB, CAROL], [expense])

        assert [d.member.id for d in debts] == ["c"]

    def test_mutual_expenses_are_netted(self):
        """A paid 20 split with B, B paid 10 split with A: B owes A 5."""
        expenses = [
            make_expense("e1", "20", ALICE, [(ALICE, "10"), (BOB, "10")]),
            make_expense("e2", "10", BOB, [(ALICE, "5"), (BOB, "5")]),
        ]

        debts = compute_direct_debts("a", [BOB], expenses)

        assert len(debts) == 1
        assert debts[0].member == BOB
        assert debts[0].amount == Decimal("5")
        assert debts[0].is_current_user_creditor is True

    def test_current_user_as_debtor(self):
        """From B's point of view the same debt points the other way."""
        expenses = [
            make_expense("e1", "20", ALICE, [(ALICE, "10"), (BOB, "10")]),
            make_expense("e2", "10", BOB, [(ALICE, "5"), (BOB, "5")]),
        ]

        debts = compute_direct_debts("b", [ALICE], expenses)

        assert debts[0].amount == Decimal("5")
        assert debts[0].is_current_user_creditor is False

    def test_balanced_member_is_omitted(self):
        """Equal amounts in both directions emit nothing."""
        expenses = [
            make_expense("e1", "20", ALICE, [(ALICE, "10"), (BOB, "10")]),
            make_expense("e2", "20", BOB, [(ALICE, "10"), (BOB, "10")]),
        ]

        assert compute_direct_debts("a", [BOB], expenses) == []

    def test_amounts_within_tolerance_are_omitted(self):
        """A one-cent difference counts as settled."""
        expenses = [
            make_expense("e1", "20.01", ALICE, [(ALICE, "10"), (BOB, "10.01")]),
            make_expense("e2", "20", BOB, [(ALICE, "10"), (BOB, "10")]),
        ]

        debts = compute_direct_debts("a", [BOB], expenses)

        assert debts == []

    def test_never_emits_amount_at_or_below_tolerance(self):
        """Every emitted debt is strictly above the tolerance."""
        expenses = [
            make_expense("e1", "0.02", ALICE, [(BOB, "0.02")]),
            make_expense("e2", "0.01", ALICE, [(CAROL, "0.01")]),
        ]

        debts = compute_direct_debts("a", [BOB, CAROL], expenses)

        assert [d.member.id for d in debts] == ["b"]
        assert all(d.amount > SETTLEMENT_TOLERANCE for d in debts)

    def test_current_user_in_members_is_skipped(self, dinner):
        """Passing the full member list does not produce a self-debt."""
        debts = compute_direct_debts("a", [ALICE, BOB, CAROL], [dinner])

        assert "a" not in [d.member.id for d in debts]
        assert len(debts) == 2

    def test_expenses_between_other_members_are_ignored(self):
        """B paying for C does not affect A's debts."""
        expense = make_expense("e1", "10", BOB, [(CAROL, "10")])

        assert compute_direct_debts("a", [BOB, CAROL], [expense]) == []

    def test_missing_members_yield_empty(self, dinner):
        """No member list gives no debts."""
        assert compute_direct_debts("a", None, [dinner]) == []
        assert compute_direct_debts("a", [], [dinner]) == []

    def test_idempotent(self, dinner):
        """Same input, same output."""
        first = compute_direct_debts("a", [BOB, CAROL], [dinner])
        second = compute_direct_debts("a", [BOB, CAROL], [dinner])

        assert first == second

    def test_accepts_generator_of_expenses(self, dinner):
        """Expenses may be a one-shot iterable."""
        debts = compute_direct_debts("a", [BOB, CAROL], (e for e in [dinner]))

        assert len(debts) == 2


class TestSettlementMetrics:
    """Tests for the yet-to-pay and contributions totals."""

    def test_others_yet_to_pay_counts_unsettled_shares_of_others(self):
        """Only other members' unsettled shares on the user's expenses count."""
        expenses = [
            make_expense(
                "e1",
                "30",
                ALICE,
                [(ALICE, "10"), (BOB, "10"), (CAROL, "10")],
                settled={"c"},
            ),
            make_expense("e2", "8", BOB, [(ALICE, "4"), (BOB, "4")]),
        ]

        assert compute_others_yet_to_pay("a", expenses) == Decimal("10")

    def test_others_total_contributions_counts_settled_own_shares(self):
        """The user's settled shares on others' expenses count."""
        expenses = [
            make_expense(
                "e1", "20", BOB, [(ALICE, "10"), (BOB, "10")], settled={"a"}
            ),
            make_expense("e2", "12", CAROL, [(ALICE, "6"), (CAROL, "6")]),
            make_expense(
                "e3", "10", ALICE, [(ALICE, "5"), (BOB, "5")], settled={"a", "b"}
            ),
        ]

        assert compute_others_total_contributions("a", expenses) == Decimal("10")

    def test_total_expenses(self, dinner):
        """Total is the sum of amounts."""
        other = make_expense("e2", "12.50", BOB, [(BOB, "12.50")])

        assert compute_total_expenses([dinner, other]) == Decimal("42.50")
        assert compute_total_expenses([]) == Decimal("0")


class TestSettlementHistory:
    """Tests for settled payment history and settle candidates."""

    def test_payments_received_one_row_per_settled_split(self):
        """Each settled split of another member on the user's expense is a row."""
        expense = make_expense(
            "e1",
            "30",
            ALICE,
            [(ALICE, "10"), (BOB, "10"), (CAROL, "10")],
            settled={"a", "b", "c"},
        )

        rows = settled_payments_received("a", [expense])

        assert [(r.counterparty.id, r.amount) for r in rows] == [
            ("b", Decimal("10")),
            ("c", Decimal("10")),
        ]
        assert rows[0].settled_at == datetime(2025, 3, 2, tzinfo=UTC)

    def test_payments_made_uses_payer_as_counterparty(self):
        """A settled split on someone else's expense is a payment made."""
        expenses = [
            make_expense(
                "e1", "20", BOB, [(ALICE, "10"), (BOB, "10")], settled={"a"}
            ),
            make_expense("e2", "20", CAROL, [(ALICE, "10"), (CAROL, "10")]),
        ]

        rows = settled_payments_made("a", expenses)

        assert len(rows) == 1
        assert rows[0].counterparty == BOB
        assert rows[0].expense_id == "e1"

    def test_expenses_to_settle_with(self):
        """Only the user's expenses with the member's unsettled split qualify."""
        expenses = [
            make_expense("e1", "20", ALICE, [(ALICE, "10"), (BOB, "10")]),
            make_expense(
                "e2", "20", ALICE, [(ALICE, "10"), (BOB, "10")], settled={"b"}
            ),
            make_expense("e3", "20", BOB, [(ALICE, "10"), (BOB, "10")]),
            make_expense("e4", "20", ALICE, [(ALICE, "10"), (CAROL, "10")]),
        ]

        relevant = expenses_to_settle_with("a", "b", expenses)

        assert [e.id for e in relevant] == ["e1"]


class TestReconcileGroup:
    """Tests for the full group snapshot."""

    def test_snapshot_combines_all_metrics(self, dinner):
        """The snapshot matches the individual functions."""
        group = Group(id="g1", name="Trip", members=[ALICE, BOB, CAROL])

        balances = reconcile_group("a", group, [dinner], generation=3)

        assert balances.generation == 3
        assert balances.summary.net_balance == Decimal("20")
        assert [d.member.id for d in balances.direct_debts] == ["b", "c"]
        assert balances.others_yet_to_pay == Decimal("20")
        assert balances.others_total_contributions == Decimal("0")
        assert balances.total_expenses == Decimal("30")
        assert balances.payments_received == []
        assert balances.payments_made == []

    def test_recomputes_from_refreshed_expenses(self, dinner):
        """After B settles, a fresh snapshot drops B and keeps the contribution."""
        group = Group(id="g1", name="Trip", members=[ALICE, BOB, CAROL])
        refreshed = make_expense(
            "e1",
            "30",
            ALICE,
            [(ALICE, "10"), (BOB, "10"), (CAROL, "10")],
            settled={"b"},
        )

        before = reconcile_group("a", group, [dinner], generation=1)
        after = reconcile_group("a", group, [refreshed], generation=2)

        assert [d.member.id for d in before.direct_debts] == ["b", "c"]
        assert [d.member.id for d in after.direct_debts] == ["c"]
        assert after.summary.total_contribution == Decimal("30")
        assert [p.counterparty.id for p in after.payments_received] == ["b"]
