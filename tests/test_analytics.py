from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from budgetwise.domain.currency import CurrencyTable
from budgetwise.errors import InvalidRangeError
from budgetwise.models import Transaction
from budgetwise.services.analytics import (
    TransactionAnalytics,
    classify_interval,
    interval_confidence,
    normalize_title,
)

NOW = datetime(2024, 3, 15, 12, 0)


def tx(amount: str, category: str = "Food", when: datetime | None = NOW, **extra) -> Transaction:
    return Transaction(amount=Decimal(amount), category=category, date=when, **extra)


@pytest.fixture
def analytics() -> TransactionAnalytics:
    return TransactionAnalytics()


def test_normalize_title() -> None:
    assert normalize_title("Netflix #123!") == "netflix"
    assert normalize_title("  Rent - March 2024 ") == "rent  march"
    assert normalize_title("2024") == ""


def test_classify_interval_bounds() -> None:
    assert classify_interval(25.0) == "monthly"
    assert classify_interval(35.0) == "monthly"
    assert classify_interval(7.0) == "weekly"
    assert classify_interval(8.5) is None
    assert classify_interval(60.0) is None


def test_interval_confidence() -> None:
    assert interval_confidence([30.0]) == 0.0
    assert interval_confidence([30.0, 30.0]) == 1.0
    assert 0.0 < interval_confidence([20.0, 40.0]) < 1.0


def test_summarize_by_type(analytics: TransactionAnalytics) -> None:
    summary = analytics.summarize([
        tx("1000", "Salary", type="income"),
        tx("40"),
        tx("60", "Transport"),
        tx("250", "Savings", type="transfer"),
    ])
    assert summary.income == Decimal("1000")
    assert summary.expense == Decimal("100")
    assert summary.transfer == Decimal("250")
    assert summary.net == Decimal("900")


def test_category_breakdown_sorted_by_total(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("50"),
        tx("30"),
        tx("100", "Transport"),
        tx("500", "Salary", type="income"),
    ]
    breakdown = analytics.category_breakdown(transactions)
    assert [(item.category, item.total, item.count) for item in breakdown] == [
        ("Transport", Decimal("100"), 1),
        ("Food", Decimal("80"), 2),
    ]
    income = analytics.category_breakdown(transactions, "income")
    assert [item.category for item in income] == ["Salary"]


def test_category_breakdown_of_two_categories(analytics: TransactionAnalytics) -> None:
    transactions = [tx("50"), tx("30"), tx("40", "Transport")]
    breakdown = analytics.category_breakdown(transactions)
    assert [(item.category, item.total, item.count) for item in breakdown] == [
        ("Food", Decimal("80"), 2),
        ("Transport", Decimal("40"), 1),
    ]


def test_breakdown_ties_break_by_name(analytics: TransactionAnalytics) -> None:
    breakdown = analytics.category_breakdown([tx("10", "Zoo"), tx("10", "Art")])
    assert [item.category for item in breakdown] == ["Art", "Zoo"]


def test_breakdown_totals_match_expense_summary(analytics: TransactionAnalytics) -> None:
    transactions = [tx("12.5"), tx("7.25", "Books"), tx("3", "Books"), tx("99", type="income")]
    breakdown = analytics.category_breakdown(transactions)
    assert sum((item.total for item in breakdown), Decimal("0")) == analytics.summarize(transactions).expense


def test_date_range_filtering(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("10", when=datetime(2024, 3, 1, 8, 0)),
        tx("20", when=datetime(2024, 3, 10, 23, 59)),
        tx("40", when=datetime(2024, 3, 11)),
    ]
    summary = analytics.summarize(transactions, start=date(2024, 3, 1), end=date(2024, 3, 10))
    assert summary.expense == Decimal("30")


def test_inverted_range_raises(analytics: TransactionAnalytics) -> None:
    with pytest.raises(InvalidRangeError):
        analytics.summarize([], start=date(2024, 3, 10), end=date(2024, 3, 1))


def test_undated_transactions_only_count_without_bounds(analytics: TransactionAnalytics) -> None:
    transactions = [tx("10", when=None), tx("5")]
    assert analytics.summarize(transactions).expense == Decimal("15")
    assert analytics.summarize(transactions, start=date(2024, 1, 1)).expense == Decimal("5")
    assert analytics.daily_bucket(transactions, 1, NOW) == {"2024-03-15": Decimal("5")}


def test_daily_bucket_covers_every_day(analytics: TransactionAnalytics) -> None:
    buckets = analytics.daily_bucket([], 7, NOW)
    assert list(buckets) == [
        "2024-03-09", "2024-03-10", "2024-03-11", "2024-03-12",
        "2024-03-13", "2024-03-14", "2024-03-15",
    ]
    assert all(value == 0 for value in buckets.values())


def test_daily_bucket_sums_expenses(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("10", when=datetime(2024, 3, 14, 9, 0)),
        tx("5", when=datetime(2024, 3, 14, 18, 0)),
        tx("100", when=datetime(2024, 3, 14), type="income"),
        tx("1", when=datetime(2024, 3, 1)),
    ]
    buckets = analytics.daily_bucket(transactions, 3, NOW)
    assert buckets == {
        "2024-03-13": Decimal("0"),
        "2024-03-14": Decimal("15"),
        "2024-03-15": Decimal("0"),
    }
    assert analytics.daily_bucket(transactions, 0, NOW) == {}


def test_monthly_trend_crosses_year(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("100", when=datetime(2023, 12, 5)),
        tx("2000", "Salary", when=datetime(2024, 1, 1), type="income"),
        tx("50", when=datetime(2024, 2, 20)),
        tx("999", when=datetime(2023, 8, 1)),
    ]
    trend = analytics.monthly_trend(transactions, 4, NOW)
    assert [point.month for point in trend] == ["2023-12", "2024-01", "2024-02", "2024-03"]
    assert [point.expense for point in trend] == [Decimal("100"), 0, Decimal("50"), 0]
    assert trend[1].income == Decimal("2000")
    assert analytics.monthly_trend(transactions, 0, NOW) == []


def test_detect_monthly_subscription(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("100", "Entertainment", when=datetime(2024, 1, 1), description="Netflix"),
        tx("100", "Entertainment", when=datetime(2024, 1, 31), description="Netflix"),
        tx("100", "Entertainment", when=datetime(2024, 3, 1), description="Netflix"),
    ]
    patterns = analytics.detect_recurring(transactions, NOW)
    assert len(patterns) == 1
    pattern = patterns[0]
    assert pattern.normalized_title == "netflix"
    assert pattern.frequency == "monthly"
    assert pattern.average_amount == Decimal("100")
    assert pattern.occurrences == 3
    assert pattern.average_interval == pytest.approx(30.0)
    assert pattern.confidence > 0.9


def test_untitled_monthly_expenses_group_by_category(analytics: TransactionAnalytics) -> None:
    transactions = [
        Transaction(amount=Decimal("100"), category="Food", date=datetime(2024, 1, 1) + timedelta(days=day))
        for day in (0, 30, 60)
    ]
    patterns = analytics.detect_recurring(transactions, NOW)
    assert len(patterns) == 1
    pattern = patterns[0]
    assert pattern.normalized_title == "food"
    assert pattern.frequency == "monthly"
    assert pattern.average_amount == Decimal("100")
    assert pattern.confidence > 0.9


def test_detect_weekly_groups_by_normalized_title(analytics: TransactionAnalytics) -> None:
    start = datetime(2024, 2, 1)
    transactions = [
        tx("12", when=start + timedelta(days=7 * week), title=f"Gym class #{week}")
        for week in range(4)
    ]
    patterns = analytics.detect_recurring(transactions, NOW)
    assert [(p.normalized_title, p.frequency, p.occurrences) for p in patterns] == [
        ("gym class", "weekly", 4),
    ]


def test_two_occurrences_are_not_recurring(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("9.99", when=datetime(2024, 1, 1), title="Spotify"),
        tx("9.99", when=datetime(2024, 2, 1), title="Spotify"),
    ]
    assert analytics.detect_recurring(transactions, NOW) == []


def test_irregular_intervals_are_not_recurring(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("30", when=datetime(2024, 1, 1), title="Dinner"),
        tx("30", when=datetime(2024, 1, 3), title="Dinner"),
        tx("30", when=datetime(2024, 1, 5), title="Dinner"),
    ]
    assert analytics.detect_recurring(transactions, NOW) == []


def test_future_transactions_are_ignored_by_recurring(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("10", when=datetime(2024, 2, 1), title="Rent"),
        tx("10", when=datetime(2024, 3, 1), title="Rent"),
        tx("10", when=datetime(2024, 3, 31), title="Rent"),
    ]
    assert analytics.detect_recurring(transactions, NOW) == []
    assert len(analytics.detect_recurring(transactions)) == 1


def test_min_occurrences_floor() -> None:
    assert TransactionAnalytics(min_occurrences=1).min_occurrences == 3
    assert TransactionAnalytics(min_occurrences=5).min_occurrences == 5


def test_spending_trend_growth(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("100", when=datetime(2024, 2, 10)),
        tx("150", when=datetime(2024, 3, 2)),
        tx("1000", when=datetime(2024, 3, 3), type="income"),
    ]
    trend = analytics.spending_trend(transactions, NOW)
    assert trend.this_month == Decimal("150")
    assert trend.last_month == Decimal("100")
    assert trend.growth == pytest.approx(0.5)


def test_spending_trend_without_last_month(analytics: TransactionAnalytics) -> None:
    trend = analytics.spending_trend([tx("200")], NOW)
    assert trend.last_month == 0
    assert trend.growth == 0.0
    assert analytics.monthly_growth([tx("200")], NOW) == 0.0


def test_spending_trend_january_compares_december(analytics: TransactionAnalytics) -> None:
    transactions = [tx("100", when=datetime(2023, 12, 20)), tx("50", when=datetime(2024, 1, 5))]
    trend = analytics.spending_trend(transactions, datetime(2024, 1, 10))
    assert trend.last_month == Decimal("100")
    assert trend.growth == pytest.approx(-0.5)


def test_time_pattern(analytics: TransactionAnalytics) -> None:
    pattern = analytics.time_pattern([
        tx("30", when=datetime(2024, 3, 9)),   # Saturday
        tx("20", when=datetime(2024, 3, 10)),  # Sunday
        tx("15", when=datetime(2024, 3, 11)),
        tx("5", when=None),
    ])
    assert pattern.weekend_total == Decimal("50")
    assert pattern.weekday_total == Decimal("15")


def test_category_spending_uses_trailing_window(analytics: TransactionAnalytics) -> None:
    transactions = [
        tx("10", when=datetime(2024, 1, 1)),
        tx("99", when=datetime(2023, 6, 1)),
        tx("5", "Books", when=datetime(2024, 3, 20)),
    ]
    breakdown = analytics.category_spending(transactions, NOW, months_back=6)
    assert [(item.category, item.total) for item in breakdown] == [("Food", Decimal("10"))]


def test_amounts_converted_to_reporting_currency() -> None:
    analytics = TransactionAnalytics(CurrencyTable.with_defaults(), "USD")
    summary = analytics.summarize([tx("85", currency="EUR"), tx("15")])
    assert summary.expense == Decimal("115")
