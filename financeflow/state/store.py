"""
Finance Store

The single owner of a user's in-memory snapshot.

The store applies commands through the pure reducer, assigns entity ids,
and tells subscribers about every applied change. It knows nothing about
storage or the UI:
- SessionSync subscribes to schedule saves
- The presentation layer reads projections and calls the mutation methods

Two counters travel with the snapshot:
- version: bumped on every applied change, sent with each save so storage
  can apply last-write-wins
- generation: bumped on load and reset, so a response requested before a
  sign-out can be recognized as stale and dropped
"""

from datetime import date
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional

import structlog

from financeflow.models.finance import (
    Budget,
    FamilyMember,
    Gender,
    Goal,
    RecurringPayment,
    Snapshot,
    Transaction,
)
from financeflow.state import aggregates
from financeflow.state.ids import IdGenerator
from financeflow.state.reducer import (
    AddFamilyMember,
    AddGoal,
    AddRecurringPayment,
    AddTransaction,
    Command,
    DeleteFamilyMember,
    DeleteGoal,
    DeleteRecurringPayment,
    DeleteTransaction,
    LoadSnapshot,
    MutationResult,
    MutationStatus,
    ResetToDefaults,
    UpdateBudget,
    UpdateGoal,
    reduce,
)


logger = structlog.get_logger(__name__)


class ChangeCause(str, Enum):
    """Why the snapshot changed."""
    LOAD = "load"
    RESET = "reset"
    MUTATION = "mutation"


class StateChange(NamedTuple):
    """Delivered to subscribers after every applied change."""
    snapshot: Snapshot
    version: int
    cause: ChangeCause


Listener = Callable[[StateChange], None]


class FinanceStore:
    """
    Holds the current snapshot and exposes every mutation as a method.

    Mutations never raise for a refused or no-op request; they return a
    MutationResult. Only applied results bump the version and notify.
    """

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        today: Callable[[], date] = date.today,
        activity_window_days: int = 30,
        family_hub_limit: int = 5,
        upcoming_payment_days: int = 7,
    ):
        self._ids = id_generator or IdGenerator()
        self._versions = IdGenerator()
        self._today = today
        self._activity_window_days = activity_window_days
        self._family_hub_limit = family_hub_limit
        self._upcoming_payment_days = upcoming_payment_days

        self._snapshot = Snapshot()
        self._version = 0
        self._generation = 0
        self._listeners: list[Listener] = []

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for applied changes.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, command: Command, cause: ChangeCause) -> MutationResult:
        snapshot, result = reduce(self._snapshot, command)
        command_name = type(command).__name__

        if result.status == MutationStatus.REJECTED:
            logger.info("mutation_rejected", command=command_name, reason=result.reason)
            return result
        if result.status == MutationStatus.UNCHANGED:
            logger.debug("mutation_unchanged", command=command_name, reason=result.reason)
            return result

        self._snapshot = snapshot
        self._version = self._versions.next_id()
        if cause != ChangeCause.MUTATION:
            self._generation += 1
        logger.debug(
            "mutation_applied",
            command=command_name,
            entity_id=result.entity_id,
            version=self._version,
        )

        change = StateChange(snapshot=snapshot, version=self._version, cause=cause)
        for listener in list(self._listeners):
            listener(change)
        return result

    def _mutate(self, command: Command) -> MutationResult:
        return self._dispatch(command, ChangeCause.MUTATION)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def load_snapshot(self, raw: Optional[dict]) -> MutationResult:
        """Replace the whole snapshot with a normalized stored one."""
        result = self._dispatch(LoadSnapshot(raw=raw), ChangeCause.LOAD)
        for entity_id in self._existing_ids():
            self._ids.observe(entity_id)
        logger.info(
            "snapshot_loaded",
            transactions=len(self._snapshot.transactions),
            family_members=len(self._snapshot.family_members),
            generation=self._generation,
        )
        return result

    def reset_to_defaults(self) -> MutationResult:
        """Empty every collection; budgets go back to the defaults."""
        return self._dispatch(ResetToDefaults(), ChangeCause.RESET)

    def _existing_ids(self) -> list[int]:
        s = self._snapshot
        collections = (
            s.transactions, s.family_members, s.goals,
            s.recurring_payments, s.accounts, s.investments, s.debts,
        )
        ids = [item.id for collection in collections for item in collection]
        return ids + s.unreadable_ids()

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_transaction(self, fields: dict[str, Any]) -> MutationResult:
        """
        Add a transaction with a fresh id.

        Args:
            fields: description, amount, date, type, category and optional
                    member (snake_case or camelCase keys). Any id is ignored.

        Raises:
            pydantic.ValidationError: If the type is missing or unknown
        """
        transaction = Transaction.model_validate({**fields, "id": self._ids.next_id()})
        return self._mutate(AddTransaction(transaction=transaction))

    def delete_transaction(self, transaction_id: int) -> MutationResult:
        return self._mutate(DeleteTransaction(id=transaction_id))

    def update_budget(self, category: str, amount: Any) -> MutationResult:
        """Set the amount of an existing budget. Unknown categories are left alone."""
        return self._mutate(UpdateBudget(category=category, amount=amount))

    def add_family_member(self, name: str, gender: Gender = Gender.OTHER) -> MutationResult:
        """Add a member; empty, reserved and duplicate names are rejected."""
        return self._mutate(AddFamilyMember(id=self._ids.next_id(), name=name, gender=gender))

    def delete_family_member(self, member_id: int) -> MutationResult:
        """Remove a member and move their transactions to "Me"."""
        return self._mutate(DeleteFamilyMember(id=member_id))

    def add_goal(self, fields: dict[str, Any]) -> MutationResult:
        """Add a savings goal. Saved progress always starts at zero."""
        goal = Goal.model_validate({**fields, "id": self._ids.next_id()})
        return self._mutate(AddGoal(goal=goal))

    def update_goal(self, goal_id: int, changes: dict[str, Any]) -> MutationResult:
        """Merge name and amount changes into a goal. The id cannot change."""
        return self._mutate(UpdateGoal(id=goal_id, changes=changes))

    def delete_goal(self, goal_id: int) -> MutationResult:
        return self._mutate(DeleteGoal(id=goal_id))

    def add_recurring_payment(self, fields: dict[str, Any]) -> MutationResult:
        payment = RecurringPayment.model_validate({**fields, "id": self._ids.next_id()})
        return self._mutate(AddRecurringPayment(payment=payment))

    def delete_recurring_payment(self, payment_id: int) -> MutationResult:
        return self._mutate(DeleteRecurringPayment(id=payment_id))

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._version

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._snapshot.transactions

    @property
    def budgets(self) -> tuple[Budget, ...]:
        return self._snapshot.budgets

    @property
    def family_members(self) -> tuple[FamilyMember, ...]:
        return self._snapshot.family_members

    @property
    def goals(self) -> tuple[Goal, ...]:
        return self._snapshot.goals

    @property
    def recurring_payments(self) -> tuple[RecurringPayment, ...]:
        return self._snapshot.recurring_payments

    @property
    def totals(self) -> aggregates.Totals:
        return aggregates.compute_aggregates(self._snapshot.transactions)

    @property
    def expense_breakdown(self) -> tuple[aggregates.CategoryTotal, ...]:
        return aggregates.compute_expense_breakdown(self._snapshot.transactions)

    @property
    def family_activity(self) -> tuple[aggregates.MemberActivity, ...]:
        return aggregates.compute_family_activity(
            self._snapshot.transactions,
            self._snapshot.family_members,
            self._today(),
            self._activity_window_days,
            self._family_hub_limit,
        )

    @property
    def budget_progress(self) -> tuple[aggregates.BudgetProgress, ...]:
        return aggregates.compute_budget_progress(
            self._snapshot.budgets, self._snapshot.transactions
        )

    @property
    def upcoming_payments(self) -> list[aggregates.UpcomingPayment]:
        return aggregates.upcoming_payments(self._snapshot.recurring_payments, self._today())

    @property
    def due_payments_summary(self) -> str:
        return aggregates.describe_due_payments(
            self._snapshot.recurring_payments,
            self._today(),
            self._upcoming_payment_days,
        )

    def recent_transactions(self, limit: int = 5) -> tuple[Transaction, ...]:
        return aggregates.recent_transactions(self._snapshot.transactions, limit)
