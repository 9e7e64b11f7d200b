"""Rich rendering of groups, expenses, balances and invitations."""

from decimal import Decimal

from rich.console import Console
from rich.table import Table

from .models import (
    Expense,
    Group,
    GroupBalances,
    Invitation,
    SettledPayment,
    UserStats,
)

console = Console()


def format_money(amount: Decimal | float, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"($[red]{abs_amount:,.2f}[/red])"
        return f"(${abs_amount:,.2f})"
    if use_color:
        return f" [green]${abs_amount:,.2f}[/green] "
    return f" ${abs_amount:,.2f} "


def _date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "—"


def display_groups(groups: list[Group], current_user_id: str):
    """Display the user's groups."""
    table = Table(title="Groups", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Members", justify="right")
    table.add_column("Created", style="dim")

    for group in groups:
        name = group.name
        if group.is_creator(current_user_id):
            name += " [dim](owner)[/dim]"
        table.add_row(group.id, name, str(len(group.members)), _date(group.created_at))

    console.print(table)


def display_group_balances(balances: GroupBalances, current_user_id: str):
    """Display the balance dashboard of a group."""
    group = balances.group
    summary = balances.summary

    console.print(f"\n[bold]{group.name}[/bold] [dim]({group.id})[/dim]")
    members = ", ".join(
        f"{m.name} (You)" if m.id == current_user_id else m.name for m in group.members
    )
    console.print(f"  Members: {members}")
    console.print(f"  Total expenses: {format_money(balances.total_expenses)}")
    console.print()

    console.print("[bold]Your balance:[/bold]")
    console.print(f"  Your share:          {format_money(summary.total_share)}")
    console.print(f"  Your contributions:  {format_money(summary.total_contribution)}")
    console.print(f"  Net balance:         {format_money(summary.net_balance)}")
    console.print(f"  Others yet to pay:   {format_money(balances.others_yet_to_pay)}")
    console.print(
        f"  You reimbursed:      {format_money(balances.others_total_contributions)}"
    )
    console.print()

    if not balances.direct_debts:
        console.print("[green]✓ All settled up[/green]")
    else:
        table = Table(title="Who owes whom", show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Direction")
        table.add_column("Amount", justify="right", width=12)

        for debt in balances.direct_debts:
            if debt.is_current_user_creditor:
                direction = "[green]owes you[/green]"
                amount = format_money(debt.amount)
            else:
                direction = "[red]you owe[/red]"
                amount = format_money(-debt.amount)
            table.add_row(debt.member.name, direction, amount)

        console.print(table)

    if balances.expenses:
        console.print()
        display_expenses(balances.expenses, current_user_id, title="Expenses")

    if balances.payments_received:
        console.print()
        _display_payments(balances.payments_received, "Settled with you", "Paid to")
    if balances.payments_made:
        console.print()
        _display_payments(balances.payments_made, "You settled", "Paid by")


def _display_payments(payments: list[SettledPayment], title: str, party_header: str):
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan")
    table.add_column(party_header)
    table.add_column("Date", style="dim")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Settled on", style="dim")

    for payment in payments:
        table.add_row(
            payment.expense_title,
            payment.counterparty.name,
            _date(payment.created_at),
            format_money(payment.amount, use_color=False),
            _date(payment.settled_at) if payment.settled_at else "Settled",
        )

    console.print(table)


def display_expenses(
    expenses: list[Expense], current_user_id: str, title: str = "Expenses"
):
    """Display expenses with the current user's share of each."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Category", style="yellow")
    table.add_column("Paid by")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Your share", justify="right", width=12)
    table.add_column("Date", style="dim")

    for expense in expenses:
        payer = "You" if expense.is_paid_by(current_user_id) else expense.paid_by.name
        split = expense.get_split(current_user_id)
        if split is None:
            share = "—"
        else:
            share = format_money(split.share, use_color=False)
            if split.settled:
                share += " ✓"

        table.add_row(
            expense.id,
            expense.title,
            expense.category,
            payer,
            format_money(expense.amount, use_color=False),
            share,
            _date(expense.created_at),
        )

    console.print(table)


def display_expense(expense: Expense, current_user_id: str):
    """Display one expense and its splits."""
    console.print(f"\n[bold]{expense.title}[/bold] [dim]({expense.id})[/dim]")
    console.print(f"  Amount: {format_money(expense.amount)}")
    payer = "You" if expense.is_paid_by(current_user_id) else expense.paid_by.name
    console.print(f"  Paid by: {payer}")
    console.print(f"  Split: {expense.split_type}")
    console.print(f"  Category: {expense.category}")
    console.print(f"  Date: {_date(expense.created_at)}")
    if expense.group_name:
        console.print(f"  Group: {expense.group_name}")
    if expense.notes:
        console.print(f"  Notes: {expense.notes}")
    console.print()

    table = Table(title="Splits", show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("Share", justify="right", width=12)
    table.add_column("Status")

    for split in expense.splits:
        name = split.user.name
        if split.user.id == current_user_id:
            name += " (You)"
        if split.settled:
            status = f"[green]Settled[/green] {_date(split.settled_at)}"
        else:
            status = "[yellow]Pending[/yellow]"
        table.add_row(name, format_money(split.share, use_color=False), status)

    console.print(table)


def display_invitations(invitations: list[Invitation], title: str = "Invitations"):
    """Display invitations."""
    if not invitations:
        console.print("[dim]No pending invitations.[/dim]")
        return

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Group", style="cyan")
    table.add_column("Email")
    table.add_column("Invited by")
    table.add_column("Sent", style="dim")

    for invitation in invitations:
        table.add_row(
            invitation.id,
            invitation.group_name or invitation.group_id,
            invitation.email,
            invitation.invited_by or "—",
            _date(invitation.created_at),
        )

    console.print(table)


def display_stats(stats: UserStats):
    """Display server-computed stats across all groups."""
    console.print("\n[bold]Your stats:[/bold]")
    console.print(f"  Groups: {stats.total_groups}")
    console.print(f"  Expenses: {stats.total_expenses}")
    console.print(f"  You are owed: {format_money(stats.total_owed)}")
    console.print(f"  You owe:      {format_money(-stats.total_owing)}")
    console.print(f"  Overall:      {format_money(stats.overall_balance)}")
