"""
Core Data Models for FamilyFinance

These models define the schemas for every collection in a user's snapshot.
They are designed to:
1. Coerce untrusted stored values into safe numbers and dates
2. Be immutable, so a snapshot can be shared and hashed
3. Serialize to the camelCase wire format used by storage and the AI context

DESIGN DECISION: Normalization never raises for bad numbers or dates.
Every numeric field goes through `parse_number` and every transaction date
through `parse_date`. A record that is structurally unusable (no id, unknown
transaction type) is logged and set aside unchanged, so it survives the
next save.
"""

import json
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

import structlog
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel


logger = structlog.get_logger(__name__)


# =============================================================================
# COERCION RULES
# =============================================================================

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _finite(number: Decimal) -> Decimal:
    # Amounts go out as floats, so they must fit in one
    if not number.is_finite() or not math.isfinite(float(number)):
        return Decimal(0)
    return number


def parse_number(value: Any) -> Decimal:
    """
    Parse any stored value into a finite Decimal.

    None, non-numeric text, NaN, infinities and magnitudes too large for a
    float all become 0. Text with a numeric prefix keeps the prefix
    ("12.5kg" -> 12.5).
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return _finite(value)

    match = _NUMBER_PREFIX.match(str(value))
    if not match:
        return Decimal(0)
    try:
        number = Decimal(match.group(1))
    except InvalidOperation:
        return Decimal(0)
    return _finite(number)


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a stored transaction date.

    Accepts date, datetime, ISO-8601 text and epoch milliseconds.
    Returns None (the "invalid date") for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


# Numbers are Decimal in memory and plain floats on the wire
Amount = Annotated[
    Decimal,
    BeforeValidator(parse_number),
    PlainSerializer(float, return_type=float, when_used="json"),
]
TransactionDate = Annotated[Optional[date], BeforeValidator(parse_date)]


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class Gender(str, Enum):
    """Gender of a family member (drives the avatar in the UI)."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


# =============================================================================
# ENTITIES
# =============================================================================

class FinanceModel(BaseModel):
    """Base for all snapshot entities: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class Transaction(FinanceModel):
    """
    A single income or expense entry.

    `member` is the name of the family member the entry belongs to.
    None means the account owner ("Me").
    """

    id: int
    description: str = ""
    amount: Amount = Decimal(0)
    date: TransactionDate = None
    type: TransactionType
    category: str = ""
    member: Optional[str] = None

    @property
    def member_name(self) -> str:
        """Name this transaction is attributed to, defaulting to "Me"."""
        return self.member or SELF_MEMBER_NAME


class Budget(FinanceModel):
    """Monthly spending limit for one expense category."""

    category: str
    amount: Amount = Decimal(0)


class FamilyMember(FinanceModel):
    """A household member transactions can be attributed to."""

    id: int
    name: str = Field(..., min_length=1)
    gender: Gender = Gender.OTHER

    @field_validator("gender", mode="before")
    @classmethod
    def fallback_gender(cls, v: Any) -> Gender:
        """Unknown genders degrade to OTHER."""
        try:
            return Gender(v)
        except ValueError:
            return Gender.OTHER


class Goal(FinanceModel):
    """A savings goal."""

    id: int
    name: str = ""
    target_amount: Amount = Decimal(0)
    current_amount: Amount = Decimal(0)


class RecurringPayment(FinanceModel):
    """A bill due on the same day every month."""

    id: int
    description: str = ""
    amount: Amount = Decimal(0)
    due_day: int = Field(default=1, ge=1, le=31)

    @field_validator("due_day", mode="before")
    @classmethod
    def clamp_due_day(cls, v: Any) -> int:
        """Coerce the due day into 1-31."""
        day = min(max(parse_number(v), Decimal(1)), Decimal(31))
        return int(day)


class Account(FinanceModel):
    """A bank, card or cash account."""

    id: int
    name: str = ""
    type: str = ""
    balance: Amount = Decimal(0)


class Investment(FinanceModel):
    """A holding in a stock, fund or other asset."""

    id: int
    name: str = ""
    type: str = ""
    quantity: Amount = Decimal(0)
    purchase_price: Amount = Decimal(0)
    current_value: Amount = Decimal(0)


class Debt(FinanceModel):
    """A loan, card balance or mortgage."""

    id: int
    name: str = ""
    type: str = ""
    total_amount: Amount = Decimal(0)
    amount_paid: Amount = Decimal(0)
    interest_rate: Amount = Decimal(0)
    min_payment: Amount = Decimal(0)


# =============================================================================
# CATALOGUE
# =============================================================================

INCOME_CATEGORIES: tuple[str, ...] = (
    "Salary",
    "Freelance",
    "Bonus",
    "Investment",
    "Other",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Groceries",
    "Rent/Mortgage",
    "Utilities",
    "Transportation",
    "Dining Out",
    "Entertainment",
    "Shopping",
    "Health",
    "Education",
    "Agriculture",
    "Other",
)

DEFAULT_BUDGETS: tuple[Budget, ...] = (
    Budget(category="Groceries", amount=15000),
    Budget(category="Dining Out", amount=5000),
    Budget(category="Shopping", amount=8000),
    Budget(category="Transportation", amount=3000),
    Budget(category="Entertainment", amount=4000),
    Budget(category="Health", amount=2000),
    Budget(category="Agriculture", amount=1000),
)

SELF_MEMBER_NAME = "Me"

# The account owner. Never stored in family_members and never deletable.
SELF_MEMBER = FamilyMember(id=0, name=SELF_MEMBER_NAME, gender=Gender.OTHER)


def categories_for(kind: TransactionType) -> tuple[str, ...]:
    """Categories offered for a transaction type."""
    if kind == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


# =============================================================================
# SNAPSHOT
# =============================================================================

class Snapshot(FinanceModel):
    """
    One user's complete data at a point in time.

    Collections are tuples so the snapshot (and each collection) is hashable.

    `unreadable` holds stored records that failed validation, as
    (collection alias, JSON text) pairs. They are invisible to the app but
    written back by `to_payload`, so saving never deletes them.
    """

    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = DEFAULT_BUDGETS
    family_members: tuple[FamilyMember, ...] = ()
    goals: tuple[Goal, ...] = ()
    recurring_payments: tuple[RecurringPayment, ...] = ()
    accounts: tuple[Account, ...] = ()
    investments: tuple[Investment, ...] = ()
    debts: tuple[Debt, ...] = ()
    unreadable: tuple[tuple[str, str], ...] = Field(default=(), exclude=True)

    @classmethod
    def from_raw(cls, raw: Optional[dict]) -> "Snapshot":
        """
        Normalize an untrusted stored snapshot.

        Missing collections take their defaults (budgets fall back to
        DEFAULT_BUDGETS). Numbers and dates are coerced; records that
        cannot be read at all are kept aside in `unreadable`.
        """
        raw = raw or {}
        collections: dict[str, tuple] = {}
        unreadable: list[tuple[str, str]] = []

        for name, model in _COLLECTION_MODELS.items():
            alias = cls.model_fields[name].alias or name
            value = raw.get(alias, raw.get(name))
            if value is None:
                continue
            if not isinstance(value, (list, tuple)):
                logger.warning("snapshot_collection_malformed", collection=alias)
                collections[name] = ()
                continue

            records = []
            for record in value:
                try:
                    records.append(model.model_validate(record))
                except ValidationError as e:
                    logger.warning(
                        "snapshot_record_unreadable",
                        collection=alias,
                        error_count=e.error_count(),
                    )
                    unreadable.append(
                        (alias, json.dumps(record, sort_keys=True, default=str))
                    )
            collections[name] = tuple(records)

        return cls(**collections, unreadable=tuple(unreadable))

    def unreadable_ids(self) -> list[int]:
        """Integer ids found on unreadable records."""
        ids = []
        for _, text in self.unreadable:
            record = json.loads(text)
            if not isinstance(record, dict):
                continue
            try:
                ids.append(int(str(record.get("id"))))
            except ValueError:
                continue
        return ids

    def to_payload(self, include_unreadable: bool = True) -> dict:
        """
        Serialize to the JSON-ready camelCase format storage keeps.

        Unreadable records go back into their collections unless
        `include_unreadable` is False.
        """
        payload = self.model_dump(mode="json", by_alias=True)
        if not include_unreadable:
            return payload
        for alias, text in self.unreadable:
            payload[alias].append(json.loads(text))
        return payload


_COLLECTION_MODELS: dict[str, type[FinanceModel]] = {
    "transactions": Transaction,
    "budgets": Budget,
    "family_members": FamilyMember,
    "goals": Goal,
    "recurring_payments": RecurringPayment,
    "accounts": Account,
    "investments": Investment,
    "debts": Debt,
}
