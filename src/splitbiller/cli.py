"""CLI for SplitBiller using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import typer

from .config import load_settings
from .db import Database
from .display import (
    console,
    display_expense,
    display_expenses,
    display_group_balances,
    display_groups,
    display_invitations,
    display_stats,
    format_money,
)
from .exceptions import NothingToSettleError, NotLoggedInError, SplitBillerError
from .expenses import ExpenseFilter
from .models import Invitation, JoinOutcome
from .service import SplitBillerService
from .session import SessionManager
from .splits import build_expense_draft
from .ui import confirm_action, select_debt_interactive, select_member_interactive

app = typer.Typer(
    name="splitbiller",
    help="Split expenses with your groups from the terminal",
)
groups_app = typer.Typer(help="Manage groups and group balances")
expenses_app = typer.Typer(help="Manage expenses")
invitations_app = typer.Typer(help="Manage invitations")

app.add_typer(groups_app, name="groups")
app.add_typer(expenses_app, name="expenses")
app.add_typer(invitations_app, name="invitations")

VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Downgrade httpx logging to DEBUG (network requests are too noisy at INFO)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def open_service(verbose: bool = False) -> Iterator[SplitBillerService]:
    """
    Build the service from settings and close the session store afterwards.

    Errors are printed and turned into exit code 1 (re-raised with --verbose).
    """
    setup_logging(verbose)
    db = None

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield SplitBillerService(settings, SessionManager(db))
    except SplitBillerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    except ValueError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


# ============================================================================
# Auth
# ============================================================================


@app.command()
def login(
    email: str = typer.Option(..., prompt=True, help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    verbose: bool = VerboseOption,
):
    """Log in and store the session."""
    with open_service(verbose) as service:
        session = service.login(email, password)
        console.print(f"[green]✓ Logged in as {session.user.name}[/green]")


@app.command()
def register(
    name: str = typer.Option(..., prompt=True),
    email: str = typer.Option(..., prompt=True),
    phone: str = typer.Option("", prompt=True),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True
    ),
    verbose: bool = VerboseOption,
):
    """Create an account and log in."""
    with open_service(verbose) as service:
        session = service.register(name, email, password, phone)
        console.print(f"[green]✓ Welcome, {session.user.name}![/green]")


@app.command()
def logout(verbose: bool = VerboseOption):
    """Forget the stored session."""
    with open_service(verbose) as service:
        service.logout()
        console.print("[green]✓ Logged out[/green]")


@app.command()
def whoami(verbose: bool = VerboseOption):
    """Show the logged-in user's profile."""
    with open_service(verbose) as service:
        user = service.get_profile()
        console.print(f"\n[bold]{user.name}[/bold] [dim]({user.id})[/dim]")
        console.print(f"  Email: {user.email}")
        if user.username:
            console.print(f"  Username: {user.username}")
        if user.phone:
            console.print(f"  Phone: {user.phone}")


@app.command()
def profile(
    name: str = typer.Option("", help="New display name"),
    username: str = typer.Option("", help="New username"),
    email: str = typer.Option("", help="New email"),
    phone: str = typer.Option("", help="New phone number"),
    change_password: bool = typer.Option(
        False, "--change-password", help="Prompt for a new password"
    ),
    verbose: bool = VerboseOption,
):
    """Update profile fields (only the ones given are changed)."""
    password = ""
    if change_password:
        password = typer.prompt("New password", hide_input=True)
        confirm = typer.prompt("Confirm new password", hide_input=True)
        if password != confirm:
            console.print("[red]Passwords do not match[/red]")
            raise typer.Exit(1)

    with open_service(verbose) as service:
        user = service.update_profile(
            name=name, username=username, email=email, phone=phone, password=password
        )
        console.print(f"[green]✓ Profile updated for {user.name}[/green]")


@app.command()
def stats(verbose: bool = VerboseOption):
    """Show balances across all groups."""
    with open_service(verbose) as service:
        display_stats(service.get_user_stats())


# ============================================================================
# Groups
# ============================================================================


@groups_app.command("list")
def groups_list(
    search: str = typer.Option("", "--search", "-s", help="Filter by name"),
    verbose: bool = VerboseOption,
):
    """List your groups."""
    with open_service(verbose) as service:
        groups = service.list_groups()
        if search:
            groups = [g for g in groups if search.lower() in g.name.lower()]

        if not groups:
            console.print("[yellow]No groups found.[/yellow]")
            return
        display_groups(groups, service.sessions.current.user_id)


@groups_app.command("create")
def groups_create(name: str, verbose: bool = VerboseOption):
    """Create a group."""
    with open_service(verbose) as service:
        group = service.create_group(name)
        suffix = f" [dim]({group.id})[/dim]" if group else ""
        console.print(f"[green]✓ Created group {name}[/green]{suffix}")


@groups_app.command("show")
def groups_show(group_id: str, verbose: bool = VerboseOption):
    """Show a group's balances, debts and expenses."""
    with open_service(verbose) as service:
        console.print("\n[bold blue]Fetching group...[/bold blue]")
        balances = service.load_group_balances(group_id)
        display_group_balances(balances, service.sessions.current.user_id)


@groups_app.command("delete")
def groups_delete(
    group_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = VerboseOption,
):
    """Delete a group and all its expenses."""
    if not yes and not confirm_action(
        "⚠️  Delete this group and all its expenses?"
    ):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    with open_service(verbose) as service:
        service.delete_group(group_id)
        console.print("[green]✓ Group deleted[/green]")


@groups_app.command("invite")
def groups_invite(
    group_id: str,
    email: str,
    message: str = typer.Option("", "--message", "-m", help="Personal message"),
    verbose: bool = VerboseOption,
):
    """Invite someone to a group by email."""
    with open_service(verbose) as service:
        service.invite_member(group_id, email, message)
        console.print(f"[green]✓ Invitation sent to {email}[/green]")


@groups_app.command("invitations")
def groups_invitations(group_id: str, verbose: bool = VerboseOption):
    """List a group's pending invitations."""
    with open_service(verbose) as service:
        display_invitations(
            service.list_group_invitations(group_id), title="Pending invitations"
        )


@groups_app.command("resend")
def groups_resend(group_id: str, invitation_id: str, verbose: bool = VerboseOption):
    """Resend a pending invitation."""
    with open_service(verbose) as service:
        service.resend_invitation(group_id, invitation_id)
        console.print("[green]✓ Invitation resent[/green]")


@groups_app.command("settle")
def groups_settle(
    group_id: str,
    member_id: str = typer.Option(
        None, "--member", help="Member to settle with (prompts when omitted)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = VerboseOption,
):
    """Mark everything a member owes you in a group as settled."""
    with open_service(verbose) as service:
        balances = service.load_group_balances(group_id)

        if member_id is None:
            debt = select_debt_interactive(balances.direct_debts)
            if debt is None:
                return
            if not debt.is_current_user_creditor:
                console.print(
                    f"[yellow]You owe {debt.member.name}; they settle it from "
                    f"their side.[/yellow]"
                )
                return
            member_id = debt.member.id
            amount = format_money(debt.amount, use_color=False).strip()
            prompt = f"Mark {amount} from {debt.member.name} as settled?"
        else:
            prompt = "Mark this member's unsettled splits as settled?"

        if not yes and not confirm_action(prompt):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        try:
            balances = service.settle_debt_with(group_id, member_id)
        except NothingToSettleError as e:
            console.print(f"[yellow]{e}[/yellow]")
            return

        console.print("[green]✓ Settled[/green]")
        display_group_balances(balances, service.sessions.current.user_id)


# ============================================================================
# Expenses
# ============================================================================


@expenses_app.command("list")
def expenses_list(
    search: str = typer.Option("", "--search", "-s", help="Search title, notes, payer"),
    category: str = typer.Option("all", "--category", help="Category filter"),
    group_id: str = typer.Option("all", "--group", help="Group ID filter"),
    date_from: datetime = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: datetime = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
    sort_by: str = typer.Option(
        "date-desc",
        "--sort",
        help="date-asc, date-desc, amount-asc, amount-desc, title-asc, title-desc",
    ),
    verbose: bool = VerboseOption,
):
    """List your expenses across all groups."""
    with open_service(verbose) as service:
        filters = ExpenseFilter(
            search=search,
            category=category,
            group_id=group_id,
            date_from=date_from.date() if date_from else None,
            date_to=date_to.date() if date_to else None,
            sort_by=sort_by,
        )
        expenses = service.list_expenses(filters)
        if not expenses:
            console.print("[yellow]No expenses found.[/yellow]")
            return
        display_expenses(expenses, service.sessions.current.user_id)


@expenses_app.command("show")
def expenses_show(expense_id: str, verbose: bool = VerboseOption):
    """Show one expense and its splits."""
    with open_service(verbose) as service:
        expense = service.get_expense(expense_id)
        display_expense(expense, service.sessions.current.user_id)


def _parse_shares(shares: list[str]) -> dict[str, str]:
    """Parse repeated MEMBER_ID=VALUE options."""
    parsed = {}
    for item in shares:
        member_id, sep, value = item.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected MEMBER_ID=VALUE, got {item!r}")
        parsed[member_id.strip()] = value.strip()
    return parsed


@expenses_app.command("add")
def expenses_add(
    group_id: str,
    title: str = typer.Option(..., "--title", "-t", prompt=True),
    amount: str = typer.Option(..., "--amount", "-a", prompt=True),
    split_type: str = typer.Option(
        "equal", "--split", help="equal, percentage or exact"
    ),
    members: list[str] = typer.Option(
        None, "--member", help="Member ID to include (default: everyone)"
    ),
    shares: list[str] = typer.Option(
        None, "--share", help="MEMBER_ID=VALUE for percentage/exact splits"
    ),
    category: str = typer.Option("general", "--category"),
    notes: str = typer.Option("", "--notes"),
    verbose: bool = VerboseOption,
):
    """Add an expense to a group."""
    custom_splits = _parse_shares(shares or [])

    with open_service(verbose) as service:
        if members:
            selected = list(members)
        elif custom_splits:
            selected = list(custom_splits)
        else:
            group = service.get_group(group_id)
            selected = [member.id for member in group.members]

        draft = build_expense_draft(
            title=title,
            amount=amount,
            group_id=group_id,
            selected_member_ids=selected,
            split_type=split_type,
            custom_splits=custom_splits,
            category=category,
            notes=notes,
        )
        balances = service.add_expense(draft)

        console.print(f"[green]✓ Added {title}[/green]")
        display_group_balances(balances, service.sessions.current.user_id)


@expenses_app.command("delete")
def expenses_delete(
    expense_id: str,
    group_id: str = typer.Option(None, "--group", help="Show group balances after"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = VerboseOption,
):
    """Delete an expense."""
    if not yes and not confirm_action("⚠️  Delete this expense?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    with open_service(verbose) as service:
        balances = service.delete_expense(expense_id, group_id)
        console.print("[green]✓ Expense deleted[/green]")
        if balances:
            display_group_balances(balances, service.sessions.current.user_id)


@expenses_app.command("settle")
def expenses_settle(
    expense_id: str,
    group_id: str = typer.Option(None, "--group", help="Show group balances after"),
    verbose: bool = VerboseOption,
):
    """Mark every split of an expense as settled."""
    with open_service(verbose) as service:
        balances = service.settle_expense(expense_id, group_id)
        console.print("[green]✓ Expense settled[/green]")
        if balances:
            display_group_balances(balances, service.sessions.current.user_id)


@expenses_app.command("settle-split")
def expenses_settle_split(
    expense_id: str,
    user_id: str = typer.Argument(None, help="Member ID (prompts when omitted)"),
    group_id: str = typer.Option(None, "--group", help="Show group balances after"),
    verbose: bool = VerboseOption,
):
    """Mark one member's split of an expense as settled."""
    with open_service(verbose) as service:
        if user_id is None:
            expense = service.get_expense(expense_id)
            unsettled = [s.user for s in expense.splits if not s.settled]
            user_id = select_member_interactive(unsettled, prompt="Settle split of")
            if user_id is None:
                return

        balances = service.settle_split(expense_id, user_id, group_id)
        console.print("[green]✓ Split settled[/green]")
        if balances:
            display_group_balances(balances, service.sessions.current.user_id)


# ============================================================================
# Invitations
# ============================================================================


@invitations_app.command("list")
def invitations_list(verbose: bool = VerboseOption):
    """List invitations addressed to you."""
    with open_service(verbose) as service:
        display_invitations(service.list_invitations())


@invitations_app.command("accept")
def invitations_accept(invitation_id: str, verbose: bool = VerboseOption):
    """Accept an invitation."""
    with open_service(verbose) as service:
        service.accept_invitation(invitation_id)
        console.print("[green]✓ Invitation accepted[/green]")


@invitations_app.command("reject")
def invitations_reject(invitation_id: str, verbose: bool = VerboseOption):
    """Reject an invitation."""
    with open_service(verbose) as service:
        service.reject_invitation(invitation_id)
        console.print("[green]✓ Invitation rejected[/green]")


@invitations_app.command("join")
def invitations_join(token: str, verbose: bool = VerboseOption):
    """Join a group from an invite link token."""
    with open_service(verbose) as service:
        outcome, info = service.join_with_invite(token)
        group = info.group_name or info.group_id

        if outcome is JoinOutcome.JOINED:
            console.print(f"[green]✓ Joined {group}[/green]")
        elif outcome is JoinOutcome.ALREADY_MEMBER:
            console.print(f"[green]You are already a member of {group}[/green]")
        elif outcome is JoinOutcome.LOGIN_REQUIRED:
            console.print(
                f"[yellow]Log in as {info.email} first, then run "
                f"[cyan]splitbiller invitations join {token}[/cyan][/yellow]"
            )
        else:
            console.print(
                f"[yellow]No account for {info.email} yet. Run "
                f"[cyan]splitbiller register[/cyan], then join again.[/yellow]"
            )


@invitations_app.command("watch")
def invitations_watch(
    interval: float = typer.Option(None, "--interval", help="Seconds between polls"),
    verbose: bool = VerboseOption,
):
    """Poll for new invitations until interrupted."""

    def report(new: list[Invitation]):
        for invitation in new:
            sender = f" from {invitation.invited_by}" if invitation.invited_by else ""
            console.print(
                f"[bold]🔔 Invitation to {invitation.group_name}{sender}[/bold] "
                f"[dim]({invitation.id})[/dim]"
            )

    with open_service(verbose) as service:
        if not service.sessions.is_active:
            raise NotLoggedInError()
        poller = service.watch_invitations(report, interval=interval)
        console.print("[dim]Watching for invitations, Ctrl+C to stop...[/dim]")

        with poller:
            try:
                poller.wait()
            except KeyboardInterrupt:
                console.print("\n[yellow]Stopped.[/yellow]")

        if not service.sessions.is_active:
            console.print("[red]Session expired. Please log in again.[/red]")


if __name__ == "__main__":
    app()
