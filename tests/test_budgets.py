"""Tests for budget evaluation and write validation."""

import pytest
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from zen_ledger.engine import BudgetEvaluator
from zen_ledger.models import Budget, MonthPeriod, Transaction, TransactionType
from zen_ledger.services.storage import InMemoryBackend
from zen_ledger.store import LedgerStore, new_id
from zen_ledger.validation import LedgerValidator, ValidationRejectedError, parse_amount


UTC = ZoneInfo("UTC")

# Default category "3" is Food & Dining (expense), "9" is Salary (income)
FOOD = "3"
SALARY = "9"


def make_store(*amounts, category_id=FOOD, budget="100"):
    store = LedgerStore(InMemoryBackend())
    store.load()
    store.upsert_budget(Budget(category_id=category_id, amount=Decimal(budget)))
    for amount in amounts:
        store.add_transaction(Transaction(
            id=new_id(),
            amount=Decimal(amount),
            category_id=category_id,
            type=TransactionType.EXPENSE,
            timestamp=datetime(2024, 3, 10, 12, 0, tzinfo=UTC),
        ))
    return store


class TestBudgetEvaluator:
    """Tests for the write-time budget check."""

    def test_exactly_at_cap_is_not_over(self):
        """Test the comparison is strict."""
        evaluator = BudgetEvaluator(make_store("60"), UTC)
        result = evaluator.evaluate(FOOD, 3, 2024, Decimal("40"))
        assert not result.over_budget
        assert result.spent_including_candidate == Decimal("100")

    def test_one_cent_over_cap(self):
        """Test cap + 0.01 is over."""
        evaluator = BudgetEvaluator(make_store("60"), UTC)
        assert evaluator.evaluate(FOOD, 3, 2024, Decimal("40.01")).over_budget

    def test_exclusion_on_edit(self):
        """Test an edited transaction's stored amount is not double counted."""
        store = make_store("200", "150", budget="250")
        edited_id = store.transactions[0].id
        evaluator = BudgetEvaluator(store, UTC)

        result = evaluator.evaluate(
            FOOD, 3, 2024, Decimal("80"), exclude_transaction_id=edited_id
        )
        remaining = sum(t.amount for t in store.transactions if t.id != edited_id)
        assert result.spent_including_candidate == remaining + Decimal("80")

    def test_exclusion_scenario_against_280(self):
        """Test 200 existing plus an edit to 80 evaluates against 280."""
        store = make_store("200", "50", budget="270")
        edited = next(t for t in store.transactions if t.amount == Decimal("50"))
        result = BudgetEvaluator(store, UTC).evaluate(
            FOOD, 3, 2024, Decimal("80"), exclude_transaction_id=edited.id
        )
        assert result.spent_including_candidate == Decimal("280")
        assert result.over_budget

    def test_no_budget_never_over(self):
        """Test categories without a budget are never over."""
        store = make_store("5000")
        evaluator = BudgetEvaluator(store, UTC)
        result = evaluator.evaluate("4", 3, 2024, Decimal("1"))
        assert result.budget_amount is not None  # default budgets exist

        store.remove_category("4")
        result = evaluator.evaluate("4", 3, 2024, Decimal("1"))
        assert not result.over_budget
        assert result.budget_amount is None

    def test_other_months_are_ignored(self):
        """Test only the candidate's month counts."""
        evaluator = BudgetEvaluator(make_store("99"), UTC)
        assert not evaluator.evaluate(FOOD, 4, 2024, Decimal("99")).over_budget

    def test_evaluate_at_timestamp(self):
        """Test evaluation by timestamp resolves the local month."""
        evaluator = BudgetEvaluator(make_store("99"), UTC)
        result = evaluator.evaluate_at(
            FOOD, datetime(2024, 3, 31, 9, 0, tzinfo=UTC), Decimal("2")
        )
        assert result.over_budget

    def test_statuses(self):
        """Test per-category usage for a month."""
        store = make_store("150")
        statuses = BudgetEvaluator(store, UTC).statuses(MonthPeriod(year=2024, month=3))
        assert len(statuses) == 8
        food = next(s for s in statuses if s.category_id == FOOD)
        assert food.spent == Decimal("150")
        assert food.is_over
        assert food.over_by == Decimal("50")
        assert food.percentage == Decimal("100")


class TestLedgerValidator:
    """Tests for write validation."""

    def setup_method(self):
        self.store = LedgerStore(InMemoryBackend())
        self.store.load()
        self.validator = LedgerValidator(self.store)

    def test_valid_expense(self):
        """Test a well-formed expense passes."""
        result = self.validator.validate_transaction("12.50", FOOD, TransactionType.EXPENSE)
        assert result.is_valid

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None, "NaN"])
    def test_rejects_bad_amounts(self, amount):
        """Test non-positive and non-numeric amounts are errors."""
        result = self.validator.validate_transaction(amount, FOOD, TransactionType.EXPENSE)
        assert result.has_errors
        assert result.issues[0].field == "amount"

    def test_rejects_missing_category(self):
        """Test a category is required."""
        result = self.validator.validate_transaction("5", "", TransactionType.EXPENSE)
        assert result.issues[0].issue_type == "missing"

    def test_rejects_unknown_category(self):
        """Test the category must exist."""
        result = self.validator.validate_transaction("5", "nope", TransactionType.EXPENSE)
        assert result.issues[0].issue_type == "unknown_reference"

    def test_type_mismatch_on_create_only(self):
        """Test creation checks type against category; edits may drift."""
        created = self.validator.validate_transaction("5", SALARY, TransactionType.EXPENSE)
        edited = self.validator.validate_transaction(
            "5", SALARY, TransactionType.EXPENSE, creating=False
        )
        assert created.issues[0].issue_type == "type_mismatch"
        assert edited.is_valid

    def test_budget_and_category_checks(self):
        """Test budget caps and category names."""
        assert self.validator.validate_budget(FOOD, "0").has_errors
        assert self.validator.validate_budget("nope", "10").has_errors
        assert self.validator.validate_category("   ").has_errors
        warning_only = self.validator.validate_category("Gym", is_recurring=True)
        assert warning_only.is_valid
        assert warning_only.issues[0].severity == "warning"

    def test_raise_for(self):
        """Test rejected results raise with their issues attached."""
        result = self.validator.validate_transaction("0", FOOD, TransactionType.EXPENSE)
        with pytest.raises(ValidationRejectedError) as excinfo:
            self.validator.raise_for(result)
        assert excinfo.value.result is result
        assert "greater than zero" in str(excinfo.value)

    def test_user_friendly_summary(self):
        """Test the summary lists every error."""
        result = self.validator.validate_transaction("0", "nope", TransactionType.EXPENSE)
        summary = self.validator.get_user_friendly_summary(result)
        assert summary.startswith("This record could not be saved:")
        assert "Category nope does not exist" in summary

    def test_parse_amount(self):
        """Test numeric parsing."""
        assert parse_amount("12.5") == Decimal("12.5")
        assert parse_amount(3) == Decimal("3")
        assert parse_amount(True) is None
        assert parse_amount("Infinity") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
