"""
State package.

The in-memory snapshot, the pure reducer that changes it, derived
aggregates, and the session sync that loads and autosaves it.
"""

from financeflow.state.aggregates import (
    BudgetProgress,
    CategoryTotal,
    MemberActivity,
    Totals,
    UpcomingPayment,
    compute_aggregates,
    compute_budget_progress,
    compute_expense_breakdown,
    compute_family_activity,
    compute_goal_progress,
    describe_due_payments,
    next_due_date,
    payments_due_within,
    recent_transactions,
    upcoming_payments,
)
from financeflow.state.ids import IdGenerator
from financeflow.state.reducer import (
    MutationResult,
    MutationStatus,
    RejectionReason,
    reduce,
)
from financeflow.state.store import ChangeCause, FinanceStore, StateChange
from financeflow.state.sync import SessionSync

__all__ = [
    # Aggregates
    "BudgetProgress",
    "CategoryTotal",
    "MemberActivity",
    "Totals",
    "UpcomingPayment",
    "compute_aggregates",
    "compute_budget_progress",
    "compute_expense_breakdown",
    "compute_family_activity",
    "compute_goal_progress",
    "describe_due_payments",
    "next_due_date",
    "payments_due_within",
    "recent_transactions",
    "upcoming_payments",
    # Reducer
    "IdGenerator",
    "MutationResult",
    "MutationStatus",
    "RejectionReason",
    "reduce",
    # Store
    "ChangeCause",
    "FinanceStore",
    "StateChange",
    "SessionSync",
]
