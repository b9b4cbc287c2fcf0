from collections.abc import Iterable, Sequence
from decimal import Decimal

from budgetwise.domain.budgets import BudgetLedger
from budgetwise.domain.currency import CurrencyTable
from budgetwise.logger import get_logger
from budgetwise.models import (
    Budget,
    CategoryTotal,
    Insight,
    Recommendation,
    SpendingTrend,
    TimePattern,
)

logger = get_logger(__name__)

NEW_BUDGET_FACTOR = Decimal("1.10")
INCREASE_FACTOR = Decimal("1.15")
DECREASE_FACTOR = Decimal("1.05")
OVER_UTILIZATION = Decimal("1.20")
UNDER_UTILIZATION = Decimal("0.70")
WEEKEND_FACTOR = Decimal("1.3")
GROWTH_THRESHOLD = 0.15


class InsightGenerator:
    """
    Turns analytics output into advisory messages.

    Pure: it only reads its arguments. Amounts in messages are rendered with
    the currency table (the app's default table when none is given).
    """

    def __init__(self, currency_table: CurrencyTable | None = None, currency: str | None = None):
        self.currency_table = currency_table or CurrencyTable.with_defaults()
        self.currency = currency

    def _money(self, amount: Decimal) -> str:
        return self.currency_table.format(amount, self.currency)

    def budget_recommendations(
        self,
        breakdown: Sequence[CategoryTotal],
        budgets: Iterable[Budget],
        months: int = 6,
    ) -> list[Recommendation]:
        """
        Compare average monthly spend per category with its budget.

        Inactive budgets are ignored. When a category has several active
        budgets, the first one in ``budgets`` order is the one compared.
        """
        by_category: dict[str, Budget] = {}
        for budget in budgets:
            if budget.is_active:
                by_category.setdefault(budget.category, budget)

        divisor = Decimal(max(1, months))
        recommendations: list[Recommendation] = []
        for item in breakdown:
            if item.total <= 0:
                continue
            average = item.total / divisor
            budget = by_category.get(item.category)

            if budget is None:
                recommendations.append(Recommendation(
                    type="new",
                    category=item.category,
                    suggested_amount=average * NEW_BUDGET_FACTOR,
                    average_monthly=average,
                    reason=f"Based on your average monthly spending of {self._money(average)}",
                ))
                continue

            if budget.amount <= 0:
                recommendations.append(Recommendation(
                    type="increase",
                    category=item.category,
                    suggested_amount=average * INCREASE_FACTOR,
                    average_monthly=average,
                    current_amount=budget.amount,
                    reason="This budget has no limit set",
                ))
                continue

            utilization = average / budget.amount
            if utilization > OVER_UTILIZATION:
                recommendations.append(Recommendation(
                    type="increase",
                    category=item.category,
                    suggested_amount=average * INCREASE_FACTOR,
                    average_monthly=average,
                    current_amount=budget.amount,
                    reason=f"You're consistently exceeding this budget by {(utilization - 1) * 100:.1f}%",
                ))
            elif utilization < UNDER_UTILIZATION:
                recommendations.append(Recommendation(
                    type="decrease",
                    category=item.category,
                    suggested_amount=average * DECREASE_FACTOR,
                    average_monthly=average,
                    current_amount=budget.amount,
                    reason=f"You're only using {utilization * 100:.1f}% of this budget",
                ))

        logger.debug("[INSIGHTS] %d budget recommendations.", len(recommendations))
        return recommendations

    def spending_insights(
        self,
        breakdown: Sequence[CategoryTotal],
        time_pattern: TimePattern,
        trend: SpendingTrend,
    ) -> list[Insight]:
        insights: list[Insight] = []

        if breakdown:
            top = min(breakdown, key=lambda item: (-item.total, item.category))
            insights.append(Insight(
                type="top_category",
                title="Highest Spending Category",
                description=f"You spend the most on {top.category} with {self._money(top.total)} this period.",
                icon="pie-chart",
                color="#6366F1",
            ))

        weekend = time_pattern.weekend_total
        weekday = time_pattern.weekday_total
        if weekend > weekday * WEEKEND_FACTOR:
            if weekday > 0:
                description = f"You spend {(weekend / weekday - 1) * 100:.1f}% more on weekends."
            else:
                description = "All of your recorded spending happened on weekends."
            insights.append(Insight(
                type="weekend_spending",
                title="Weekend Spending Alert",
                description=description,
                icon="calendar",
                color="#F59E0B",
            ))

        if trend.growth > GROWTH_THRESHOLD:
            insights.append(Insight(
                type="spending_increase",
                title="Spending Increase",
                description=f"Your spending has increased by {trend.growth * 100:.1f}% this month.",
                icon="trending-up",
                color="#EF4444",
            ))
        elif trend.growth < -GROWTH_THRESHOLD:
            insights.append(Insight(
                type="spending_decrease",
                title="Great Progress!",
                description=f"You've reduced spending by {abs(trend.growth) * 100:.1f}% this month.",
                icon="trending-down",
                color="#10B981",
            ))

        return insights

    def budget_alerts(self, budgets: Iterable[Budget], ledger: BudgetLedger | None = None) -> list[Insight]:
        """One alert per active budget that is over or near its limit, over taking precedence."""
        ledger = ledger or BudgetLedger(self.currency_table)
        alerts: list[Insight] = []
        for budget in budgets:
            if not budget.is_active or not budget.notifications:
                continue
            badge = ledger.badge(budget)
            if badge == "ok":
                continue

            code = budget.currency if budget.currency in self.currency_table else None
            spent = self.currency_table.format(budget.spent, code)
            limit = self.currency_table.format(budget.amount, code)
            if badge == "over":
                alerts.append(Insight(
                    type="over_budget",
                    title=f"Budget Alert: {budget.category}",
                    description=f"You've exceeded your {budget.category} budget! Spent {spent} of {limit}",
                    icon="alert-circle",
                    color="#EF4444",
                ))
            else:
                percent = ledger.progress_percent(budget)
                alerts.append(Insight(
                    type="near_limit",
                    title=f"Budget Alert: {budget.category}",
                    description=f"You've used {percent:.1f}% of your {budget.category} budget ({spent} of {limit})",
                    icon="alert-triangle",
                    color="#F59E0B",
                ))
        return alerts
