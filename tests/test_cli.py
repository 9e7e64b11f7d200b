"""Tests for the CLI commands (service mocked)."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from splitbiller.cli import app
from splitbiller.display import format_money
from splitbiller.exceptions import NotFoundError
from splitbiller.models import Group, InviteInfo, JoinOutcome, User

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the session store at a temporary database."""
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "splitbiller.db"))
    monkeypatch.setenv("SPLITBILLER_API_URL", "http://api.test")


class TestFormatMoney:
    """Tests for accounting-style money formatting."""

    def test_positive(self):
        assert format_money(Decimal("85.02"), use_color=False) == " $85.02 "

    def test_negative_uses_parentheses(self):
        assert format_money(Decimal("-1234.5"), use_color=False) == "($1,234.50)"


class TestInvitationsJoin:
    """Tests for `invitations join`."""

    @pytest.mark.parametrize(
        "outcome, expected",
        [
            (JoinOutcome.JOINED, "Joined Trip"),
            (JoinOutcome.ALREADY_MEMBER, "already a member of Trip"),
            (JoinOutcome.LOGIN_REQUIRED, "Log in as bob@example.com"),
            (JoinOutcome.REGISTER_REQUIRED, "No account for bob@example.com"),
        ],
    )
    @patch("splitbiller.cli.SplitBillerService")
    def test_outcome_messages(self, mock_service_class, outcome, expected):
        info = InviteInfo(group_id="g1", group_name="Trip", email="bob@example.com")
        mock_service_class.return_value.join_with_invite.return_value = (outcome, info)

        result = runner.invoke(app, ["invitations", "join", "tok"])

        assert result.exit_code == 0
        assert expected in result.output


class TestErrorHandling:
    """Errors are printed and turned into exit code 1."""

    def test_not_logged_in(self):
        """Commands that need a session fail cleanly without one."""
        result = runner.invoke(app, ["groups", "list"])

        assert result.exit_code == 1
        assert "Not logged in" in result.output

    @patch("splitbiller.cli.SplitBillerService")
    def test_api_error(self, mock_service_class):
        mock_service_class.return_value.get_expense.side_effect = NotFoundError(
            "Expense not found", status_code=404
        )

        result = runner.invoke(app, ["expenses", "show", "missing"])

        assert result.exit_code == 1
        assert "Expense not found" in result.output


class TestExpensesAdd:
    """Tests for `expenses add`."""

    @patch("splitbiller.cli.display_group_balances")
    @patch("splitbiller.cli.SplitBillerService")
    def test_defaults_to_every_member(self, mock_service_class, mock_display):
        """Without --member the expense is split among the whole group."""
        service = mock_service_class.return_value
        service.get_group.return_value = Group(
            id="g1",
            name="Trip",
            members=[User(id="a", name="Alice"), User(id="b", name="Bob")],
        )

        result = runner.invoke(
            app, ["expenses", "add", "g1", "--title", "Taxi", "--amount", "12"]
        )

        assert result.exit_code == 0
        service.load_group_balances.assert_not_called()
        draft = service.add_expense.call_args.args[0]
        assert draft.selected_member_ids == ["a", "b"]
        assert draft.amount == Decimal("12")
