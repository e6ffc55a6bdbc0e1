"""
Tests for FamilyFinance

Test strategy:
1. Unit tests for individual components (models, reducer, aggregates)
2. Integration tests for flows (auth, gateway, sync) on in-memory storage
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from financeflow.models import (
    DEFAULT_BUDGETS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    DreamPlan,
    FamilyMember,
    Gender,
    RecurringPayment,
    Snapshot,
    Transaction,
    TransactionType,
    categories_for,
    parse_date,
    parse_number,
)


class TestCoercion:
    """Tests for number and date coercion of stored values."""

    def test_parse_number_plain_values(self):
        """Test ints, floats and numeric strings parse."""
        assert parse_number(12) == Decimal("12")
        assert parse_number("250.50") == Decimal("250.50")
        assert parse_number(" -3 ") == Decimal("-3")

    def test_parse_number_keeps_numeric_prefix(self):
        """Test text with a numeric prefix keeps the prefix."""
        assert parse_number("12.5kg") == Decimal("12.5")

    def test_parse_number_falls_back_to_zero(self):
        """Test unreadable values become zero."""
        for value in (None, "", "abc", "NaN", "Infinity", float("nan"), float("inf")):
            assert parse_number(value) == Decimal(0)

    @pytest.mark.parametrize("value", ["1e400", "-1e400", "1e1000000", Decimal("1e999999")])
    def test_parse_number_beyond_float_range_is_zero(self, value):
        """Test magnitudes no float can hold become zero."""
        assert parse_number(value) == Decimal(0)

    def test_parse_number_keeps_large_floats(self):
        """Test the largest float-sized values survive."""
        assert parse_number("1e300") == Decimal("1e300")

    def test_parse_date_iso_text(self):
        """Test ISO dates and datetimes parse to a date."""
        assert parse_date("2024-06-01") == date(2024, 6, 1)
        assert parse_date("2024-06-01T10:30:00.000Z") == date(2024, 6, 1)

    def test_parse_date_epoch_milliseconds(self):
        """Test epoch milliseconds parse in UTC."""
        assert parse_date(1717200000000) == date(2024, 6, 1)

    def test_parse_date_invalid_is_none(self):
        """Test unreadable dates become the invalid date (None)."""
        for value in (None, "", "not a date", True, [2024]):
            assert parse_date(value) is None


class TestFinanceModels:
    """Tests for snapshot entity models."""

    def test_transaction_from_camel_case(self):
        """Test wire-format fields populate the model."""
        t = Transaction.model_validate({
            "id": 1, "description": " Milk ", "amount": "40",
            "date": "2024-06-01", "type": "expense", "category": "Groceries",
        })
        assert t.description == "Milk"
        assert t.amount == Decimal("40")
        assert t.type == TransactionType.EXPENSE

    def test_transaction_member_defaults_to_me(self):
        """Test unattributed transactions belong to Me."""
        t = Transaction(id=1, type=TransactionType.INCOME)
        assert t.member is None
        assert t.member_name == "Me"

    def test_transaction_rejects_unknown_type(self):
        """Test an unknown transaction type is a validation error."""
        with pytest.raises(ValidationError):
            Transaction.model_validate({"id": 1, "type": "transfer"})

    def test_transaction_is_immutable(self):
        """Test entities are frozen."""
        t = Transaction(id=1, type=TransactionType.EXPENSE)
        with pytest.raises(ValidationError):
            t.amount = Decimal(5)

    def test_family_member_unknown_gender_is_other(self):
        """Test unknown genders degrade to OTHER."""
        member = FamilyMember.model_validate({"id": 1, "name": "Asha", "gender": "unknown"})
        assert member.gender == Gender.OTHER

    def test_recurring_payment_due_day_clamped(self):
        """Test due day is forced into 1-31."""
        assert RecurringPayment(id=1, due_day=45).due_day == 31
        assert RecurringPayment(id=1, due_day="0").due_day == 1

    def test_recurring_payment_huge_due_day(self):
        """Test enormous stored due days clamp without building huge ints."""
        assert RecurringPayment(id=1, due_day="1e300").due_day == 31
        assert RecurringPayment(id=1, due_day="-1e300").due_day == 1
        assert RecurringPayment(id=1, due_day="1e999999999").due_day == 1

    def test_categories_for_type(self):
        """Test each transaction type has its own category list."""
        assert categories_for(TransactionType.INCOME) == INCOME_CATEGORIES
        assert categories_for(TransactionType.EXPENSE) == EXPENSE_CATEGORIES
        assert "Agriculture" in EXPENSE_CATEGORIES


class TestSnapshot:
    """Tests for snapshot normalization and serialization."""

    def test_empty_snapshot_has_default_budgets(self):
        """Test a missing budgets collection takes the defaults."""
        assert Snapshot.from_raw({}).budgets == DEFAULT_BUDGETS
        assert Snapshot.from_raw(None).budgets == DEFAULT_BUDGETS

    def test_empty_budgets_list_stays_empty(self):
        """Test an explicitly empty budgets list is kept."""
        assert Snapshot.from_raw({"budgets": []}).budgets == ()

    def test_from_raw_coerces_values(self):
        """Test numbers and dates are coerced on load."""
        snapshot = Snapshot.from_raw({
            "transactions": [
                {"id": 1, "amount": "oops", "date": "garbage", "type": "expense"},
            ],
            "goals": [{"id": 2, "name": "Car", "targetAmount": "5e5"}],
        })
        t = snapshot.transactions[0]
        assert t.amount == Decimal(0)
        assert t.date is None
        assert snapshot.goals[0].target_amount == Decimal("5e5")

    def test_from_raw_sets_aside_unusable_records(self):
        """Test records without an id or with a bad type are hidden but kept."""
        snapshot = Snapshot.from_raw({
            "transactions": [
                {"id": 1, "type": "income", "amount": 10},
                {"type": "income"},
                {"id": 3, "type": "Expense", "amount": "40"},
            ],
        })
        assert [t.id for t in snapshot.transactions] == [1]
        assert len(snapshot.unreadable) == 2
        assert snapshot.unreadable_ids() == [3]

    def test_unreadable_records_written_back(self):
        """Test unreadable records come back unchanged in the payload."""
        odd = {"id": 3, "type": "Expense", "amount": "40", "note": "kept"}
        snapshot = Snapshot.from_raw({"transactions": [odd], "goals": ["junk"]})

        payload = snapshot.to_payload()

        assert payload["transactions"] == [odd]
        assert payload["goals"] == ["junk"]
        assert snapshot.to_payload(include_unreadable=False)["transactions"] == []

    def test_from_raw_malformed_collection_is_empty(self):
        """Test a collection that isn't a list becomes empty."""
        snapshot = Snapshot.from_raw({"familyMembers": "nope"})
        assert snapshot.family_members == ()

    def test_to_payload_uses_wire_format(self):
        """Test payload keys are camelCase and numbers are floats."""
        snapshot = Snapshot.from_raw({
            "transactions": [{"id": 1, "type": "expense", "amount": "12.5", "date": "2024-06-01"}],
            "recurringPayments": [{"id": 2, "description": "Rent", "amount": 100, "dueDay": 5}],
        })
        payload = snapshot.to_payload()
        assert set(payload) >= {"transactions", "budgets", "familyMembers", "recurringPayments"}
        assert payload["transactions"][0]["amount"] == 12.5
        assert payload["transactions"][0]["date"] == "2024-06-01"
        assert payload["recurringPayments"][0]["dueDay"] == 5

    def test_payload_reloads_to_equal_snapshot(self):
        """Test a saved payload loads back to the same snapshot."""
        snapshot = Snapshot.from_raw({
            "transactions": [{"id": 1, "type": "expense", "amount": 40, "member": "Asha"}],
            "familyMembers": [{"id": 2, "name": "Asha", "gender": "female"}],
        })
        assert Snapshot.from_raw(snapshot.to_payload()) == snapshot


class TestDreamPlan:
    """Tests for the structured dream plan contract."""

    def test_parses_camel_case_json(self):
        """Test the model's JSON output parses."""
        plan = DreamPlan.model_validate_json(
            '{"title": "Trip", "summary": "Go", "estimatedCost": "₹1L", '
            '"timeline": "1 year", "steps": [{"title": "Save", "description": "Monthly"}]}'
        )
        assert plan.estimated_cost == "₹1L"
        assert plan.steps[0].title == "Save"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            description="User signed in",
        )
        assert event.event_type == AuditEventType.SIGNED_IN
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.snapshot_loaded("me@example.com", {"transactions": 3})
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "snapshot_loaded"
        assert log_dict["details"]["transactions"] == 3

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.mutation_rejected("me@example.com", "add_family_member", "duplicate_name")
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "mutation_rejected"  # event_type
        assert row[4] == "me@example.com"  # actor
        assert row[11] == "True"  # is_user_action

    def test_save_failed_is_warning(self):
        """Test failed saves are recorded as warnings with the version."""
        correlation_id = uuid4()
        event = AuditEventBuilder.snapshot_save_failed("me@example.com", 7, "boom", correlation_id)
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "7"
        assert event.correlation_id == correlation_id
        assert event.error_message == "boom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
