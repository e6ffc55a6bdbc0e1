"""
Aggregates and Projections

Read-only figures derived from a snapshot: totals, expense breakdown,
family activity, budget and goal progress, and upcoming bills.

Everything here is a pure function. The hot aggregates are memoized with
lru_cache keyed on the collection tuples themselves; snapshot entities are
frozen and hashable, so an unchanged collection is a cache hit and any edit
is a miss.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict

from financeflow.models.finance import (
    SELF_MEMBER,
    Budget,
    FamilyMember,
    Gender,
    Goal,
    RecurringPayment,
    Transaction,
    TransactionType,
)


class Totals(BaseModel):
    """Income, expenses and balance over a list of transactions."""

    model_config = ConfigDict(frozen=True)

    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal


class CategoryTotal(BaseModel):
    """Summed spend for one category."""

    model_config = ConfigDict(frozen=True)

    category: str
    amount: Decimal


class MemberActivity(BaseModel):
    """One family hub entry: a member's recent spending."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    gender: Gender
    total_spent: Decimal
    top_category: Optional[str] = None


class BudgetProgress(BaseModel):
    """How much of a category budget has been spent."""

    model_config = ConfigDict(frozen=True)

    category: str
    budget: Decimal
    spent: Decimal
    percentage: Decimal
    remaining: Decimal

    @property
    def over_budget(self) -> bool:
        return self.spent > self.budget


class UpcomingPayment(BaseModel):
    """A recurring payment with its next due date."""

    model_config = ConfigDict(frozen=True)

    payment: RecurringPayment
    next_due_date: date
    days_until_due: int


# =============================================================================
# TOTALS
# =============================================================================

@lru_cache(maxsize=32)
def compute_aggregates(transactions: tuple[Transaction, ...]) -> Totals:
    """Sum income and expenses; balance is income minus expenses."""
    income = sum(
        (t.amount for t in transactions if t.type == TransactionType.INCOME),
        Decimal(0),
    )
    expenses = sum(
        (t.amount for t in transactions if t.type == TransactionType.EXPENSE),
        Decimal(0),
    )
    return Totals(
        total_income=income,
        total_expenses=expenses,
        balance=income - expenses,
    )


def _sum_by_category(transactions) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        totals[t.category] += t.amount
    return totals


@lru_cache(maxsize=32)
def compute_expense_breakdown(
    transactions: tuple[Transaction, ...],
) -> tuple[CategoryTotal, ...]:
    """Expense totals per category, largest first."""
    totals = _sum_by_category(
        t for t in transactions if t.type == TransactionType.EXPENSE
    )
    entries = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        CategoryTotal(category=category, amount=amount)
        for category, amount in entries
    )


# =============================================================================
# FAMILY ACTIVITY
# =============================================================================

@lru_cache(maxsize=32)
def compute_family_activity(
    transactions: tuple[Transaction, ...],
    family_members: tuple[FamilyMember, ...],
    today: date,
    window_days: int = 30,
    limit: int = 5,
) -> tuple[MemberActivity, ...]:
    """
    Recent spending per household member.

    Only expenses dated within `window_days` of `today` count. "Me" comes
    first and covers unattributed transactions; stored members follow in
    their stored order. At most `limit` entries are returned.
    """
    since = today - timedelta(days=window_days)
    recent = [
        t for t in transactions
        if t.type == TransactionType.EXPENSE
        and t.date is not None
        and t.date >= since
    ]

    by_member: dict[str, list[Transaction]] = defaultdict(list)
    for t in recent:
        by_member[t.member_name].append(t)

    activity = []
    for member in (SELF_MEMBER, *family_members)[:limit]:
        spent = by_member.get(member.name, [])
        per_category = _sum_by_category(spent)
        top_category = max(per_category, key=per_category.get) if per_category else None
        activity.append(MemberActivity(
            id=member.id,
            name=member.name,
            gender=member.gender,
            total_spent=sum((t.amount for t in spent), Decimal(0)),
            top_category=top_category,
        ))
    return tuple(activity)


def recent_transactions(
    transactions: tuple[Transaction, ...],
    limit: int = 5,
) -> tuple[Transaction, ...]:
    """The first `limit` transactions (the list is kept newest first)."""
    return transactions[:limit]


# =============================================================================
# BUDGETS AND GOALS
# =============================================================================

def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return Decimal(0)
    return part / whole * 100


@lru_cache(maxsize=32)
def compute_budget_progress(
    budgets: tuple[Budget, ...],
    transactions: tuple[Transaction, ...],
) -> tuple[BudgetProgress, ...]:
    """Spend against each budget, counting every expense in its category."""
    spent = _sum_by_category(
        t for t in transactions if t.type == TransactionType.EXPENSE
    )
    return tuple(
        BudgetProgress(
            category=b.category,
            budget=b.amount,
            spent=spent.get(b.category, Decimal(0)),
            percentage=_percentage(spent.get(b.category, Decimal(0)), b.amount),
            remaining=b.amount - spent.get(b.category, Decimal(0)),
        )
        for b in budgets
    )


def compute_goal_progress(goal: Goal) -> Decimal:
    """Percentage of the goal's target saved so far."""
    return _percentage(goal.current_amount, goal.target_amount)


# =============================================================================
# RECURRING PAYMENTS
# =============================================================================

def _due_date_in(year: int, month: int, due_day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(due_day, last_day))


def next_due_date(payment: RecurringPayment, today: date) -> date:
    """This month's due date, or next month's if it has already passed."""
    due = _due_date_in(today.year, today.month, payment.due_day)
    if due < today:
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        due = _due_date_in(year, month, payment.due_day)
    return due


def upcoming_payments(
    payments: tuple[RecurringPayment, ...],
    today: date,
) -> list[UpcomingPayment]:
    """All recurring payments with their next due date, soonest first."""
    upcoming = []
    for payment in payments:
        due = next_due_date(payment, today)
        upcoming.append(UpcomingPayment(
            payment=payment,
            next_due_date=due,
            days_until_due=(due - today).days,
        ))
    upcoming.sort(key=lambda u: u.next_due_date)
    return upcoming


def payments_due_within(
    payments: tuple[RecurringPayment, ...],
    today: date,
    days: int = 7,
) -> list[UpcomingPayment]:
    """Payments falling due in the next `days` days (today included)."""
    return [u for u in upcoming_payments(payments, today) if 0 <= u.days_until_due <= days]


def describe_due_payments(
    payments: tuple[RecurringPayment, ...],
    today: date,
    days: int = 7,
) -> str:
    """Plain-language reminder of the bills due soon."""
    due_soon = payments_due_within(payments, today, days)
    if not due_soon:
        return f"You have no bills due within the next {days} days."

    noun = "bill" if len(due_soon) == 1 else "bills"
    details = ". ".join(
        f"{u.payment.description} for {u.payment.amount:,.2f} rupees is due on "
        f"{u.next_due_date.strftime('%B')} {u.next_due_date.day}"
        for u in due_soon
    )
    return f"You have {len(due_soon)} upcoming {noun} this week. {details}."
