"""Interactive prompts for picking members and confirming actions."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import DirectDebt, User

logger = logging.getLogger(__name__)


def member_label(member: User) -> str:
    """Display label used for completion and matching."""
    if member.email:
        return f"{member.name} <{member.email}>"
    return member.name


class MemberCompleter(Completer):
    """Fuzzy search completer for group members."""

    def __init__(self, members: list[User]):
        """Initialize the completer with the selectable members."""
        self.members = members
        self.label_to_id = {member_label(member): member.id for member in members}

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for label in self.label_to_id:
            if not query or self._fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label,
                    start_position=-len(document.text),
                    display=label,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="al" matches "Alice <alice@example.com>"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_member_interactive(members: list[User], prompt: str = "Member") -> str | None:
    """
    Interactive member selection with fuzzy search.

    Args:
        members: Members to choose from
        prompt: Prompt label

    Returns:
        Selected member ID, or None to skip
    """
    if not members:
        print("\n⚠️  No members to choose from")
        return None

    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    completer = MemberCompleter(members)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt(f"{prompt}: ", complete_while_typing=True)

            if not result:
                return None

            member_id = completer.label_to_id.get(result)
            if member_id:
                logger.info(f"User selected member: {result}")
                return member_id

            print("❌ Unknown member. Please select from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def select_debt_interactive(debts: list[DirectDebt]) -> DirectDebt | None:
    """
    Pick one of the open debts to settle.

    Returns:
        The selected debt, or None to cancel
    """
    if not debts:
        print("\n✓ All settled up")
        return None

    print("\n💸 Open balances:\n")
    for idx, debt in enumerate(debts):
        direction = "owes you" if debt.is_current_user_creditor else "you owe"
        print(f"  [{idx + 1}] {debt.member.name} {direction} ${debt.amount:,.2f}")
    print()

    try:
        response = input(f"Select [1-{len(debts)}, or q to quit]: ").strip().lower()

        if response in ("q", "quit", ""):
            return None

        selection = int(response) - 1
        if 0 <= selection < len(debts):
            return debts[selection]

        print("❌ Invalid selection")
        return None

    except (ValueError, KeyboardInterrupt, EOFError):
        print("\n⏭️  Cancelled")
        return None


def confirm_action(message: str, default: bool = False) -> bool:
    """
    Simple yes/no confirmation.

    Args:
        message: Question to ask
        default: Answer used when the user just presses Enter

    Returns:
        True if confirmed
    """
    suffix = "[Y/n]" if default else "[y/N]"
    try:
        response = input(f"{message} {suffix} ").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return False

    if not response:
        return default
    return response in ("y", "yes")
