"""
Assistant chat helpers.

The conversation starts with a context message holding the user's data
as JSON. It is sent to the model with every turn but never shown; the
UI renders from the second message on.

Some requests are answered locally without calling the model: signing
out, switching theme, and navigating to a page.
"""

import json
import re
from typing import Literal, NamedTuple, Optional

from financeflow.models.ai import ChatMessage
from financeflow.models.finance import Snapshot


GREETING = (
    "Hello! I'm your AI Financial Assistant. Ask me anything about the data "
    "you see in the app, or give me commands like 'go to settings' or 'dark mode'."
)

DATA_UPDATED_PREFIX = "Your financial data has been updated. "

# Section title and payload key, in the order the model sees them
_CONTEXT_SECTIONS = (
    ("ACCOUNTS", "accounts"),
    ("TRANSACTIONS", "transactions"),
    ("BUDGETS", "budgets"),
    ("INVESTMENTS", "investments"),
    ("DEBTS", "debts"),
    ("FAMILY MEMBERS", "familyMembers"),
    ("RECURRING PAYMENTS", "recurringPayments"),
)

_NAVIGATION = re.compile(r"^(go to|navigate to|show me|open)\s+(.*)")


class Tab(NamedTuple):
    """A page the assistant can navigate to."""
    id: str
    label: str


class LocalCommand(NamedTuple):
    """A chat request handled without the model."""
    action: Literal["sign_out", "set_theme", "navigate", "unknown_page"]
    target: Optional[str] = None
    reply: Optional[str] = None


def build_context_message(snapshot: Snapshot) -> str:
    payload = snapshot.to_payload(include_unreadable=False)
    sections = "\n\n".join(
        f"{title}:\n{json.dumps(payload[key], indent=2, ensure_ascii=False)}"
        for title, key in _CONTEXT_SECTIONS
    )
    return f"Here is my financial data. Use this context to answer my questions.\n\n{sections}"


def build_initial_messages(snapshot: Snapshot, data_updated: bool = False) -> list[ChatMessage]:
    """
    Start (or restart) a conversation about the given snapshot.

    Args:
        snapshot: The user's current data
        data_updated: Restarting because the data changed; the greeting
                      says so
    """
    greeting = DATA_UPDATED_PREFIX + GREETING if data_updated else GREETING
    return [
        ChatMessage(sender="user", text=build_context_message(snapshot)),
        ChatMessage(sender="ai", text=greeting),
    ]


def visible_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Messages to render: everything after the context message."""
    return messages[1:]


def parse_local_command(text: str, tabs: list[Tab]) -> Optional[LocalCommand]:
    """
    Recognize a request the app can handle itself.

    Returns:
        The command, or None if the text should go to the model
    """
    command = text.lower().strip()

    if command in ("sign out", "log out"):
        return LocalCommand(action="sign_out")
    if "dark mode" in command or "dark theme" in command:
        return LocalCommand(
            action="set_theme",
            target="dark",
            reply="No problem, I've switched to dark mode for you.",
        )
    if "light mode" in command or "light theme" in command:
        return LocalCommand(
            action="set_theme",
            target="light",
            reply="Of course, switched to light mode.",
        )

    match = _NAVIGATION.match(command)
    if match and match.group(2).strip():
        query = match.group(2).strip()
        tab = next(
            (t for t in tabs if query in t.label.lower() or query in t.id.lower()),
            None,
        )
        if tab is None:
            return LocalCommand(
                action="unknown_page",
                reply=f'Sorry, I\'m not sure which page you mean by "{query}".',
            )
        return LocalCommand(
            action="navigate",
            target=tab.id,
            reply=f"You got it. Navigating to {tab.label}.",
        )
    return None
