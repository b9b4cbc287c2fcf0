from datetime import datetime
from decimal import Decimal

from budgetwise.domain.records import (
    budget_from_record,
    budget_to_record,
    records_from_backup,
    transaction_from_record,
    transaction_to_record,
)


def test_transaction_from_app_record() -> None:
    transaction = transaction_from_record({
        "id": "tx-1",
        "amount": -42.5,
        "type": "expense",
        "category": "Food",
        "title": "Lunch",
        "date": "2024-03-01T12:30:00.000Z",
        "tags": '["work", "work", " lunch "]',
    })
    assert transaction.id == "tx-1"
    assert transaction.amount == Decimal("42.5")
    assert transaction.date == datetime(2024, 3, 1, 12, 30)
    assert transaction.tags == ("work", "lunch")
    assert transaction.currency == "USD"
    assert transaction.account == "main"


def test_transaction_with_bad_values_is_kept() -> None:
    transaction = transaction_from_record({"amount": "abc", "date": "not a date", "tags": "a,b"})
    assert transaction.amount == 0
    assert transaction.date is None
    assert transaction.tags == ("a", "b")
    assert transaction.id.startswith("txn_")


def test_transaction_record_round_trip() -> None:
    original = transaction_from_record({
        "amount": "19.99",
        "category": "Fun",
        "date": "2024-02-02T08:00:00",
        "currency": "EUR",
    })
    assert transaction_from_record(transaction_to_record(original)) == original


def test_budget_from_camel_case_record() -> None:
    budget = budget_from_record({
        "id": "b-1",
        "category": "Food",
        "amount": "500",
        "spent": "120.50",
        "period": "weekly",
        "startDate": "2024-03-01T00:00:00Z",
        "warningThreshold": 90,
        "isActive": "false",
    })
    assert budget.id == "b-1"
    assert budget.start_date == datetime(2024, 3, 1)
    assert budget.end_date == datetime(2024, 3, 8)
    assert budget.warning_threshold == 90.0
    assert budget.is_active is False
    assert budget.notifications is True
    assert budget_from_record(budget_to_record(budget)) == budget


def test_backup_import_skips_invalid_records() -> None:
    payload = {
        "version": "1.0.0",
        "data": {
            "transactions": [
                {"id": "ok", "amount": 10, "category": "Food", "date": "2024-03-01"},
                {"id": "bad", "amount": 10, "type": "refund"},
            ],
            "budgets": [
                {"id": "b-ok", "category": "Food", "amount": 100, "startDate": "2024-03-01T00:00:00"},
                {"id": "b-bad", "category": "Food", "amount": 100, "startDate": "someday"},
            ],
        },
    }
    transactions, budgets = records_from_backup(payload)
    assert [item.id for item in transactions] == ["ok"]
    assert [item.id for item in budgets] == ["b-ok"]


def test_backup_lists_at_top_level() -> None:
    transactions, budgets = records_from_backup({"transactions": [{"amount": 1}]})
    assert len(transactions) == 1
    assert budgets == []


def test_budget_warning_threshold_keeps_zero() -> None:
    record = {"category": "Food", "amount": "100", "startDate": "2024-03-01T00:00:00"}
    assert budget_from_record({**record, "warningThreshold": 0}).warning_threshold == 0.0
    assert budget_from_record({**record, "warningThreshold": "0"}).warning_threshold == 0.0
    assert budget_from_record(record).warning_threshold == 80.0
    assert budget_from_record({**record, "warningThreshold": "high"}).warning_threshold == 80.0
