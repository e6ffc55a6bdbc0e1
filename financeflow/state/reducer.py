"""
Snapshot Reducer

Every change to a user's data is a command applied by a pure function:

    reduce(snapshot, command) -> Outcome(snapshot, result)

The reducer never mutates its input and never raises for a rejected or
no-op command. Instead the MutationResult says what happened:
- APPLIED: a new snapshot was produced
- REJECTED: the command was refused (e.g., duplicate member name)
- UNCHANGED: the target did not exist, nothing to do

Commands that create entities carry the id the store already assigned,
so the reducer stays deterministic.

DESIGN DECISION: Cross-collection rules live here, not in callers.
Deleting a family member rewrites that member's transactions to "Me"
in the same returned snapshot, so no caller can observe (or forget)
one half of the change.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from financeflow.models.finance import (
    SELF_MEMBER_NAME,
    Amount,
    FamilyMember,
    Gender,
    Goal,
    RecurringPayment,
    Snapshot,
    Transaction,
)


# =============================================================================
# RESULTS
# =============================================================================

class MutationStatus(str, Enum):
    """What a command did to the snapshot."""
    APPLIED = "applied"
    REJECTED = "rejected"
    UNCHANGED = "unchanged"


class RejectionReason(str, Enum):
    """Why a command was refused."""
    EMPTY_NAME = "empty_name"
    DUPLICATE_NAME = "duplicate_name"
    RESERVED_NAME = "reserved_name"


class MutationResult(BaseModel):
    """
    Result of applying one command.

    The presentation layer uses `reason` to tell the user why nothing
    happened instead of failing silently.
    """

    model_config = ConfigDict(frozen=True)

    status: MutationStatus
    reason: Optional[str] = None
    entity_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == MutationStatus.APPLIED

    @classmethod
    def applied(cls, entity_id: Optional[int] = None) -> "MutationResult":
        return cls(status=MutationStatus.APPLIED, entity_id=entity_id)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "MutationResult":
        return cls(status=MutationStatus.REJECTED, reason=reason.value)

    @classmethod
    def unchanged(cls, reason: str) -> "MutationResult":
        return cls(status=MutationStatus.UNCHANGED, reason=reason)


class Outcome(NamedTuple):
    """Snapshot after a command, and what the command did."""
    snapshot: Snapshot
    result: MutationResult


# =============================================================================
# COMMANDS
# =============================================================================

class Command(BaseModel):
    """Base class for snapshot commands."""

    model_config = ConfigDict(frozen=True)


class LoadSnapshot(Command):
    """Replace everything with a normalized stored snapshot."""
    raw: Optional[dict] = None


class ResetToDefaults(Command):
    """Clear all collections; budgets go back to the defaults."""


class AddTransaction(Command):
    transaction: Transaction


class DeleteTransaction(Command):
    id: int


class UpdateBudget(Command):
    category: str
    amount: Amount


class AddFamilyMember(Command):
    id: int
    name: str
    gender: Gender = Gender.OTHER


class DeleteFamilyMember(Command):
    id: int


class AddGoal(Command):
    goal: Goal


class UpdateGoal(Command):
    id: int
    changes: dict[str, Any]


class DeleteGoal(Command):
    id: int


class AddRecurringPayment(Command):
    payment: RecurringPayment


class DeleteRecurringPayment(Command):
    id: int


# =============================================================================
# HANDLERS
# =============================================================================

def _by_date_descending(transaction: Transaction) -> tuple:
    # Invalid dates sort after every real date
    if transaction.date is None:
        return (1, 0)
    return (0, -transaction.date.toordinal())


def _by_name(member: FamilyMember) -> tuple:
    return (member.name.casefold(), member.name)


def _load(snapshot: Snapshot, command: LoadSnapshot) -> Outcome:
    return Outcome(Snapshot.from_raw(command.raw), MutationResult.applied())


def _reset(snapshot: Snapshot, command: ResetToDefaults) -> Outcome:
    return Outcome(Snapshot(), MutationResult.applied())


def _add_transaction(snapshot: Snapshot, command: AddTransaction) -> Outcome:
    transactions = sorted(
        (command.transaction, *snapshot.transactions),
        key=_by_date_descending,
    )
    return Outcome(
        snapshot.model_copy(update={"transactions": tuple(transactions)}),
        MutationResult.applied(command.transaction.id),
    )


def _delete_transaction(snapshot: Snapshot, command: DeleteTransaction) -> Outcome:
    remaining = tuple(t for t in snapshot.transactions if t.id != command.id)
    if len(remaining) == len(snapshot.transactions):
        return Outcome(snapshot, MutationResult.unchanged("transaction_not_found"))
    return Outcome(
        snapshot.model_copy(update={"transactions": remaining}),
        MutationResult.applied(command.id),
    )


def _update_budget(snapshot: Snapshot, command: UpdateBudget) -> Outcome:
    if not any(b.category == command.category for b in snapshot.budgets):
        return Outcome(snapshot, MutationResult.unchanged("budget_not_found"))

    budgets = tuple(
        b.model_copy(update={"amount": command.amount})
        if b.category == command.category else b
        for b in snapshot.budgets
    )
    return Outcome(
        snapshot.model_copy(update={"budgets": budgets}),
        MutationResult.applied(),
    )


def _add_family_member(snapshot: Snapshot, command: AddFamilyMember) -> Outcome:
    name = command.name.strip()
    if not name:
        return Outcome(snapshot, MutationResult.rejected(RejectionReason.EMPTY_NAME))

    folded = name.casefold()
    if folded == SELF_MEMBER_NAME.casefold():
        return Outcome(snapshot, MutationResult.rejected(RejectionReason.RESERVED_NAME))
    if any(m.name.casefold() == folded for m in snapshot.family_members):
        return Outcome(snapshot, MutationResult.rejected(RejectionReason.DUPLICATE_NAME))

    member = FamilyMember(id=command.id, name=name, gender=command.gender)
    members = sorted((*snapshot.family_members, member), key=_by_name)
    return Outcome(
        snapshot.model_copy(update={"family_members": tuple(members)}),
        MutationResult.applied(member.id),
    )


def _delete_family_member(snapshot: Snapshot, command: DeleteFamilyMember) -> Outcome:
    member = next((m for m in snapshot.family_members if m.id == command.id), None)
    if member is None:
        return Outcome(snapshot, MutationResult.unchanged("member_not_found"))

    members = tuple(m for m in snapshot.family_members if m.id != command.id)
    transactions = tuple(
        t.model_copy(update={"member": SELF_MEMBER_NAME})
        if t.member == member.name else t
        for t in snapshot.transactions
    )
    return Outcome(
        snapshot.model_copy(
            update={"family_members": members, "transactions": transactions}
        ),
        MutationResult.applied(member.id),
    )


def _add_goal(snapshot: Snapshot, command: AddGoal) -> Outcome:
    goal = command.goal.model_copy(update={"current_amount": Decimal(0)})
    return Outcome(
        snapshot.model_copy(update={"goals": (*snapshot.goals, goal)}),
        MutationResult.applied(goal.id),
    )


_GOAL_FIELDS = {
    "name": "name",
    "target_amount": "target_amount",
    "targetAmount": "target_amount",
    "current_amount": "current_amount",
    "currentAmount": "current_amount",
}


def _update_goal(snapshot: Snapshot, command: UpdateGoal) -> Outcome:
    goal = next((g for g in snapshot.goals if g.id == command.id), None)
    if goal is None:
        return Outcome(snapshot, MutationResult.unchanged("goal_not_found"))

    changes = {
        _GOAL_FIELDS[key]: value
        for key, value in command.changes.items()
        if key in _GOAL_FIELDS
    }
    try:
        updated = Goal.model_validate({**goal.model_dump(), **changes})
    except ValidationError:
        return Outcome(snapshot, MutationResult.unchanged("invalid_goal_update"))
    if updated == goal:
        return Outcome(snapshot, MutationResult.unchanged("no_changes"))

    goals = tuple(updated if g.id == goal.id else g for g in snapshot.goals)
    return Outcome(
        snapshot.model_copy(update={"goals": goals}),
        MutationResult.applied(goal.id),
    )


def _delete_goal(snapshot: Snapshot, command: DeleteGoal) -> Outcome:
    remaining = tuple(g for g in snapshot.goals if g.id != command.id)
    if len(remaining) == len(snapshot.goals):
        return Outcome(snapshot, MutationResult.unchanged("goal_not_found"))
    return Outcome(
        snapshot.model_copy(update={"goals": remaining}),
        MutationResult.applied(command.id),
    )


def _add_recurring_payment(snapshot: Snapshot, command: AddRecurringPayment) -> Outcome:
    payments = (*snapshot.recurring_payments, command.payment)
    return Outcome(
        snapshot.model_copy(update={"recurring_payments": payments}),
        MutationResult.applied(command.payment.id),
    )


def _delete_recurring_payment(
    snapshot: Snapshot,
    command: DeleteRecurringPayment,
) -> Outcome:
    remaining = tuple(p for p in snapshot.recurring_payments if p.id != command.id)
    if len(remaining) == len(snapshot.recurring_payments):
        return Outcome(snapshot, MutationResult.unchanged("payment_not_found"))
    return Outcome(
        snapshot.model_copy(update={"recurring_payments": remaining}),
        MutationResult.applied(command.id),
    )


_HANDLERS: dict[type, Callable[[Snapshot, Any], Outcome]] = {
    LoadSnapshot: _load,
    ResetToDefaults: _reset,
    AddTransaction: _add_transaction,
    DeleteTransaction: _delete_transaction,
    UpdateBudget: _update_budget,
    AddFamilyMember: _add_family_member,
    DeleteFamilyMember: _delete_family_member,
    AddGoal: _add_goal,
    UpdateGoal: _update_goal,
    DeleteGoal: _delete_goal,
    AddRecurringPayment: _add_recurring_payment,
    DeleteRecurringPayment: _delete_recurring_payment,
}


def reduce(snapshot: Snapshot, command: Command) -> Outcome:
    """
    Apply a command to a snapshot.

    Raises:
        TypeError: If the command type is unknown
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command: {type(command).__name__}")
    return handler(snapshot, command)
