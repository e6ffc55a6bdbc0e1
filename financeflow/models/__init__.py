"""
Data Models Package

This package contains all Pydantic models used in FamilyFinance.
All data flowing through the system must conform to these schemas.
"""

from financeflow.models.finance import (
    DEFAULT_BUDGETS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    SELF_MEMBER,
    SELF_MEMBER_NAME,
    Account,
    Budget,
    Debt,
    FamilyMember,
    Gender,
    Goal,
    Investment,
    RecurringPayment,
    Snapshot,
    Transaction,
    TransactionType,
    categories_for,
    parse_date,
    parse_number,
)
from financeflow.models.ai import (
    ChatMessage,
    ChatReply,
    DreamPlan,
    DreamPlanResult,
    DreamStep,
    FinancialTip,
    VideoStory,
)
from financeflow.models.user import UserRecord
from financeflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Account",
    "Budget",
    "DEFAULT_BUDGETS",
    "Debt",
    "EXPENSE_CATEGORIES",
    "FamilyMember",
    "Gender",
    "Goal",
    "INCOME_CATEGORIES",
    "Investment",
    "RecurringPayment",
    "SELF_MEMBER",
    "SELF_MEMBER_NAME",
    "Snapshot",
    "Transaction",
    "TransactionType",
    "categories_for",
    "parse_date",
    "parse_number",
    # AI models
    "ChatMessage",
    "ChatReply",
    "DreamPlan",
    "DreamPlanResult",
    "DreamStep",
    "FinancialTip",
    "VideoStory",
    # User models
    "UserRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
