import re
import statistics
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from budgetwise.domain.currency import CurrencyTable
from budgetwise.domain.dates import (
    add_months,
    day_span,
    is_weekend,
    last_days,
    month_key,
    previous_month_key,
    range_end,
    range_start,
    to_naive_utc,
)
from budgetwise.errors import InvalidRangeError
from budgetwise.logger import get_logger
from budgetwise.models import (
    ZERO,
    CategoryTotal,
    Frequency,
    MonthlyTrendPoint,
    RecurringPattern,
    SpendingTrend,
    TimePattern,
    Transaction,
    TransactionSummary,
    TransactionType,
)

logger = get_logger(__name__)

DEFAULT_MIN_OCCURRENCES = 3
MONTHLY_INTERVAL = (25.0, 35.0)
WEEKLY_INTERVAL = (6.0, 8.0)

_DIGITS = re.compile(r"\d+")
_PUNCTUATION = re.compile(r"[^\w\s]")

DateBound = date | datetime | None


def normalize_title(title: str) -> str:
    text = _DIGITS.sub("", title.lower())
    return _PUNCTUATION.sub("", text).strip()


def classify_interval(mean_gap: float) -> Frequency | None:
    if MONTHLY_INTERVAL[0] <= mean_gap <= MONTHLY_INTERVAL[1]:
        return "monthly"
    if WEEKLY_INTERVAL[0] <= mean_gap <= WEEKLY_INTERVAL[1]:
        return "weekly"
    return None


def interval_confidence(gaps: list[float]) -> float:
    if len(gaps) < 2:
        return 0.0
    mean = statistics.fmean(gaps)
    if mean == 0:
        return 0.0
    return max(0.0, min(1.0, 1.0 - statistics.pstdev(gaps) / mean))


class TransactionAnalytics:
    """
    Aggregations over an in-memory snapshot of transactions.

    All operations are pure folds. When a currency table and a reporting
    currency are supplied, each amount is converted to the reporting currency
    before it is added to a total.

    Transactions whose date could not be parsed (``date is None``) still count
    in unfiltered type summaries and breakdowns, but every date-filtered or
    date-bucketed operation skips them.
    """

    def __init__(
        self,
        currency_table: CurrencyTable | None = None,
        currency: str | None = None,
        min_occurrences: int = DEFAULT_MIN_OCCURRENCES,
    ):
        self.currency_table = currency_table
        self.currency = currency
        self.min_occurrences = max(DEFAULT_MIN_OCCURRENCES, min_occurrences)

    def _amount(self, transaction: Transaction) -> Decimal:
        if (
            self.currency_table is None
            or self.currency is None
            or transaction.currency == self.currency
        ):
            return transaction.amount
        return self.currency_table.convert(transaction.amount, transaction.currency, self.currency)

    def _filter_range(
        self,
        transactions: Iterable[Transaction],
        start: DateBound,
        end: DateBound,
    ) -> list[Transaction]:
        lower = range_start(start)
        upper = range_end(end)
        if lower is not None and upper is not None and upper < lower:
            raise InvalidRangeError(start, end)
        if lower is None and upper is None:
            return list(transactions)

        selected = []
        for transaction in transactions:
            if transaction.date is None:
                continue
            if lower is not None and transaction.date < lower:
                continue
            if upper is not None and transaction.date > upper:
                continue
            selected.append(transaction)
        return selected

    def summarize(
        self,
        transactions: Iterable[Transaction],
        start: DateBound = None,
        end: DateBound = None,
    ) -> TransactionSummary:
        totals = {"income": ZERO, "expense": ZERO, "transfer": ZERO}
        for transaction in self._filter_range(transactions, start, end):
            totals[transaction.type] += self._amount(transaction)
        return TransactionSummary(**totals)

    def category_breakdown(
        self,
        transactions: Iterable[Transaction],
        transaction_type: TransactionType = "expense",
        start: DateBound = None,
        end: DateBound = None,
    ) -> list[CategoryTotal]:
        totals: dict[str, Decimal] = {}
        counts: dict[str, int] = {}
        for transaction in self._filter_range(transactions, start, end):
            if transaction.type != transaction_type:
                continue
            category = transaction.category
            totals[category] = totals.get(category, ZERO) + self._amount(transaction)
            counts[category] = counts.get(category, 0) + 1

        ordered = sorted(totals, key=lambda category: (-totals[category], category))
        return [
            CategoryTotal(category=category, total=totals[category], count=counts[category])
            for category in ordered
        ]

    def daily_bucket(
        self,
        transactions: Iterable[Transaction],
        days: int,
        reference_date: date | datetime,
    ) -> dict[str, Decimal]:
        """Expense totals for the ``days`` days ending at ``reference_date``, oldest first."""
        if days <= 0:
            return {}
        if isinstance(reference_date, datetime):
            reference_date = to_naive_utc(reference_date)
        buckets = {day.isoformat(): ZERO for day in last_days(reference_date, days)}
        for transaction in transactions:
            if transaction.type != "expense" or transaction.date is None:
                continue
            key = transaction.date.date().isoformat()
            if key in buckets:
                buckets[key] += self._amount(transaction)
        return buckets

    def monthly_trend(
        self,
        transactions: Iterable[Transaction],
        months: int,
        now: datetime,
    ) -> list[MonthlyTrendPoint]:
        if months <= 0:
            return []
        first_of_month = datetime(now.year, now.month, 1)
        keys = [month_key(add_months(first_of_month, -offset)) for offset in range(months - 1, -1, -1)]
        income = dict.fromkeys(keys, ZERO)
        expense = dict.fromkeys(keys, ZERO)

        for transaction in transactions:
            if transaction.date is None:
                continue
            key = month_key(transaction.date)
            if key not in income:
                continue
            if transaction.type == "income":
                income[key] += self._amount(transaction)
            elif transaction.type == "expense":
                expense[key] += self._amount(transaction)

        return [MonthlyTrendPoint(month=key, income=income[key], expense=expense[key]) for key in keys]

    def detect_recurring(
        self,
        transactions: Iterable[Transaction],
        now: datetime | None = None,
    ) -> list[RecurringPattern]:
        cutoff = to_naive_utc(now) if now is not None else None
        groups: dict[str, list[Transaction]] = {}
        for transaction in transactions:
            if transaction.date is None:
                continue
            if cutoff is not None and transaction.date > cutoff:
                continue
            title = normalize_title(transaction.label)
            if not title:
                continue
            groups.setdefault(title, []).append(transaction)

        patterns: list[RecurringPattern] = []
        for title, members in groups.items():
            if len(members) < self.min_occurrences:
                continue
            members.sort(key=lambda item: item.date)
            gaps = [day_span(prev.date, curr.date) for prev, curr in zip(members, members[1:])]
            mean_gap = statistics.fmean(gaps)
            frequency = classify_interval(mean_gap)
            if frequency is None:
                continue

            amounts = [self._amount(member) for member in members]
            patterns.append(
                RecurringPattern(
                    normalized_title=title,
                    frequency=frequency,
                    average_amount=sum(amounts, ZERO) / len(amounts),
                    confidence=interval_confidence(gaps),
                    occurrences=len(members),
                    average_interval=mean_gap,
                )
            )

        logger.debug(
            "[ANALYTICS] %d recurring patterns from %d title groups.",
            len(patterns),
            len(groups),
        )
        return patterns

    def spending_trend(self, transactions: Iterable[Transaction], now: datetime) -> SpendingTrend:
        this_key = month_key(now)
        last_key = previous_month_key(now)
        this_month = ZERO
        last_month = ZERO
        for transaction in transactions:
            if transaction.type != "expense" or transaction.date is None:
                continue
            key = month_key(transaction.date)
            if key == this_key:
                this_month += self._amount(transaction)
            elif key == last_key:
                last_month += self._amount(transaction)

        # No spending last month reports zero growth rather than an infinite rate.
        growth = float((this_month - last_month) / last_month) if last_month > 0 else 0.0
        return SpendingTrend(this_month=this_month, last_month=last_month, growth=growth)

    def monthly_growth(self, transactions: Iterable[Transaction], now: datetime) -> float:
        return self.spending_trend(transactions, now).growth

    def time_pattern(self, transactions: Iterable[Transaction]) -> TimePattern:
        weekend = ZERO
        weekday = ZERO
        for transaction in transactions:
            if transaction.type != "expense" or transaction.date is None:
                continue
            if is_weekend(transaction.date):
                weekend += self._amount(transaction)
            else:
                weekday += self._amount(transaction)
        return TimePattern(weekend_total=weekend, weekday_total=weekday)

    def category_spending(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
        months_back: int = 6,
    ) -> list[CategoryTotal]:
        """Expense breakdown over the trailing ``months_back`` months."""
        end = to_naive_utc(now)
        return self.category_breakdown(transactions, "expense", add_months(end, -months_back), end)
