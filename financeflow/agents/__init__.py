"""AI Agents package."""

from financeflow.agents.ai_agents import FinanceAIAgent, summarize_recent_spending
from financeflow.agents.chat import (
    GREETING,
    LocalCommand,
    Tab,
    build_initial_messages,
    parse_local_command,
    visible_messages,
)
from financeflow.agents.errors import (
    AIError,
    AIServiceError,
    EmptyAIResponseError,
    InvalidAIRequestError,
)

__all__ = [
    "FinanceAIAgent",
    "summarize_recent_spending",
    # Chat helpers
    "GREETING",
    "LocalCommand",
    "Tab",
    "build_initial_messages",
    "parse_local_command",
    "visible_messages",
    # Exceptions
    "AIError",
    "AIServiceError",
    "EmptyAIResponseError",
    "InvalidAIRequestError",
]
