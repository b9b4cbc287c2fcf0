import asyncio
from datetime import datetime

from budgetwise.domain.budgets import BudgetLedger
from budgetwise.domain.currency import CurrencyTable
from budgetwise.domain.dates import to_naive_utc
from budgetwise.errors import UnknownCurrencyError
from budgetwise.integration.store import FinanceStore, TransactionFilter
from budgetwise.logger import get_logger
from budgetwise.models import (
    Budget,
    BudgetStatus,
    DashboardReport,
    Insight,
    Recommendation,
    Transaction,
)
from budgetwise.services.analytics import DEFAULT_MIN_OCCURRENCES, TransactionAnalytics
from budgetwise.services.insights import InsightGenerator

logger = get_logger(__name__)

DAILY_WINDOW_DAYS = 7


class BudgetSync:
    """
    Keeps budget ``spent`` totals in step with recorded expenses.

    Adjustments to one budget are serialized with a per-budget lock; the
    budget is re-read inside the lock so concurrent writers never apply a
    transition to a stale total.
    """

    def __init__(self, store: FinanceStore, ledger: BudgetLedger):
        self.store = store
        self.ledger = ledger
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, budget_id: str) -> asyncio.Lock:
        lock = self._locks.get(budget_id)
        if lock is None:
            lock = self._locks[budget_id] = asyncio.Lock()
        return lock

    async def _current(self, budget_id: str) -> Budget | None:
        for budget in await self.store.list_budgets(active_only=True):
            if budget.id == budget_id:
                return budget
        return None

    async def _adjust(self, transaction: Transaction, direction: int) -> list[Budget]:
        table = self.ledger.currency_table
        if table is not None and transaction.currency not in table:
            logger.warning(
                "[LEDGER] Transaction %s uses unsupported currency %s; budgets not adjusted.",
                transaction.id,
                transaction.currency,
            )
            return []
        updated: list[Budget] = []
        for budget in await self.store.list_budgets(active_only=True):
            if not self.ledger.applies_to(budget, transaction):
                continue
            if table is not None and budget.currency not in table:
                logger.warning(
                    "[LEDGER] Budget %s uses unsupported currency %s; not adjusted.",
                    budget.id,
                    budget.currency,
                )
                continue
            async with self._lock_for(budget.id):
                current = await self._current(budget.id)
                if current is None:
                    continue
                changed = self.ledger.apply_transaction(current, transaction, direction)
                await self.store.persist_budget_spent(changed.id, changed.spent)
                updated.append(changed)
                logger.info(
                    "[LEDGER] Budget %s (%s) spent %s -> %s.",
                    changed.id,
                    changed.category,
                    current.spent,
                    changed.spent,
                )
        return updated

    def _check_currency(self, transaction: Transaction) -> None:
        table = self.ledger.currency_table
        if table is not None and transaction.currency not in table:
            raise UnknownCurrencyError(transaction.currency)

    async def record_transaction(self, transaction: Transaction) -> list[Budget]:
        """
        Store ``transaction`` and apply it to matching budgets.

        An existing transaction with the same id is reversed first, so
        re-posting a record never counts its amount twice. Unknown currency
        codes are rejected before anything is written.
        """
        self._check_currency(transaction)
        previous = await self.store.get_transaction(transaction.id)
        if previous is not None:
            await self._adjust(previous, -1)
        await self.store.add_transaction(transaction)
        return await self._adjust(transaction, 1)

    async def remove_transaction(self, transaction_id: str) -> Transaction | None:
        removed = await self.store.delete_transaction(transaction_id)
        if removed is None:
            return None
        await self._adjust(removed, -1)
        return removed

    async def replace_transaction(self, transaction: Transaction) -> list[Budget]:
        """Edit a transaction: reverse the stored version, then apply the new one."""
        return await self.record_transaction(transaction)


class ReportService:
    def __init__(
        self,
        store: FinanceStore,
        currency_table: CurrencyTable,
        *,
        lookback_months: int = 6,
        trend_months: int = 6,
        min_occurrences: int = DEFAULT_MIN_OCCURRENCES,
    ):
        self.store = store
        self.currency_table = currency_table
        self.lookback_months = lookback_months
        self.trend_months = trend_months
        self.min_occurrences = min_occurrences

    @property
    def currency(self) -> str | None:
        active = self.currency_table.active
        return active.code if active else None

    def analytics(self) -> TransactionAnalytics:
        return TransactionAnalytics(self.currency_table, self.currency, self.min_occurrences)

    def insight_generator(self) -> InsightGenerator:
        return InsightGenerator(self.currency_table, self.currency)

    def ledger(self) -> BudgetLedger:
        return BudgetLedger(self.currency_table)

    async def transactions(self, criteria: TransactionFilter | None = None) -> list[Transaction]:
        """Stored transactions, minus those in a currency the table cannot convert."""
        stored = await self.store.list_transactions(criteria)
        usable = [t for t in stored if t.currency in self.currency_table]
        if len(usable) < len(stored):
            skipped = sorted({t.currency for t in stored} - {t.currency for t in usable})
            logger.warning(
                "[REPORT] Skipping %d transaction(s) in unsupported currencies: %s.",
                len(stored) - len(usable),
                ", ".join(skipped),
            )
        return usable

    async def budget_statuses(self, now: datetime) -> list[BudgetStatus]:
        ledger = self.ledger()
        return [ledger.status(budget, now) for budget in await self.store.list_budgets(active_only=True)]

    async def recommendations(self, now: datetime) -> list[Recommendation]:
        transactions = await self.transactions()
        budgets = await self.store.list_budgets(active_only=True)
        breakdown = self.analytics().category_spending(transactions, now, self.lookback_months)
        return self.insight_generator().budget_recommendations(breakdown, budgets, self.lookback_months)

    async def insights(self, now: datetime) -> list[Insight]:
        transactions = await self.transactions()
        budgets = await self.store.list_budgets(active_only=True)
        return self._insights(transactions, budgets, now)

    def _insights(self, transactions: list[Transaction], budgets: list[Budget], now: datetime) -> list[Insight]:
        analytics = self.analytics()
        generator = self.insight_generator()
        breakdown = analytics.category_spending(transactions, now, self.lookback_months)
        insights = generator.spending_insights(
            breakdown,
            analytics.time_pattern(transactions),
            analytics.spending_trend(transactions, now),
        )
        return insights + generator.budget_alerts(budgets, self.ledger())

    async def dashboard(self, now: datetime) -> DashboardReport:
        now = to_naive_utc(now)
        transactions = await self.transactions()
        budgets = await self.store.list_budgets(active_only=True)
        analytics = self.analytics()
        month_start = datetime(now.year, now.month, 1)
        breakdown = analytics.category_spending(transactions, now, self.lookback_months)

        report = DashboardReport(
            generated_at=now,
            currency=self.currency or "",
            summary=analytics.summarize(transactions, month_start, now),
            category_breakdown=analytics.category_breakdown(transactions, "expense", month_start, now),
            daily=analytics.daily_bucket(transactions, DAILY_WINDOW_DAYS, now),
            trend=analytics.monthly_trend(transactions, self.trend_months, now),
            recurring=analytics.detect_recurring(transactions, now),
            insights=self._insights(transactions, budgets, now),
            recommendations=self.insight_generator().budget_recommendations(
                breakdown, budgets, self.lookback_months
            ),
            budgets=[self.ledger().status(budget, now) for budget in budgets],
        )
        logger.debug(
            "[REPORT] Dashboard built from %d transactions and %d budgets.",
            len(transactions),
            len(budgets),
        )
        return report
