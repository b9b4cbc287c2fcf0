import math
from datetime import datetime
from decimal import Decimal
from typing import Any

from budgetwise.domain.currency import Amount, CurrencyTable, to_decimal
from budgetwise.domain.dates import day_span, to_naive_utc
from budgetwise.logger import get_logger
from budgetwise.models import ZERO, Badge, Budget, BudgetStatus, Transaction

logger = get_logger(__name__)

HUNDRED = Decimal("100")


def reschedule_budget(budget: Budget, **updates: Any) -> Budget:
    """
    Return a copy of ``budget`` with ``updates`` applied.

    A new ``period`` or ``start_date`` re-derives ``end_date`` unless the
    caller passes one explicitly.
    """
    data = budget.model_dump()
    data.update(updates)
    if ({"period", "start_date"} & updates.keys()) and "end_date" not in updates:
        data["end_date"] = None
    return Budget.model_validate(data)


class BudgetLedger:
    """
    Consumption state of budgets.

    The ledger never mutates a budget: transitions return a new instance and
    the caller persists it. Over-budget and near-limit overlap (a budget that
    is over is also near its limit); ``status`` picks one badge for display.
    """

    def __init__(self, currency_table: CurrencyTable | None = None):
        self.currency_table = currency_table

    def progress_percent(self, budget: Budget) -> Decimal:
        if budget.amount <= 0:
            return ZERO
        return budget.spent / budget.amount * HUNDRED

    def remaining(self, budget: Budget) -> Decimal:
        return max(ZERO, budget.amount - budget.spent)

    def is_over_budget(self, budget: Budget) -> bool:
        return budget.spent > budget.amount

    def is_near_limit(self, budget: Budget) -> bool:
        return self.progress_percent(budget) >= to_decimal(budget.warning_threshold)

    def days_remaining(self, budget: Budget, now: datetime) -> int:
        return math.ceil(day_span(to_naive_utc(now), budget.end_date))

    def add_expense(self, budget: Budget, amount: Amount) -> Budget:
        return budget.model_copy(update={"spent": budget.spent + to_decimal(amount)})

    def remove_expense(self, budget: Budget, amount: Amount) -> Budget:
        return budget.model_copy(update={"spent": max(ZERO, budget.spent - to_decimal(amount))})

    def applies_to(self, budget: Budget, transaction: Transaction) -> bool:
        return (
            budget.is_active
            and transaction.type == "expense"
            and transaction.category == budget.category
        )

    def apply_transaction(self, budget: Budget, transaction: Transaction, direction: int = 1) -> Budget:
        if direction not in (1, -1):
            raise ValueError(f"direction must be +1 or -1, got {direction}")
        if not self.applies_to(budget, transaction):
            return budget

        amount = transaction.amount
        if self.currency_table is not None and transaction.currency != budget.currency:
            amount = self.currency_table.convert(amount, transaction.currency, budget.currency)

        logger.debug(
            "[LEDGER] %s %s on budget %s (%s).",
            "Adding" if direction > 0 else "Reversing",
            amount,
            budget.id,
            budget.category,
        )
        if direction > 0:
            return self.add_expense(budget, amount)
        return self.remove_expense(budget, amount)

    def badge(self, budget: Budget) -> Badge:
        if self.is_over_budget(budget):
            return "over"
        if self.is_near_limit(budget):
            return "near"
        return "ok"

    def status(self, budget: Budget, now: datetime) -> BudgetStatus:
        return BudgetStatus(
            budget_id=budget.id,
            category=budget.category,
            amount=budget.amount,
            spent=budget.spent,
            progress_percent=self.progress_percent(budget),
            remaining=self.remaining(budget),
            is_over_budget=self.is_over_budget(budget),
            is_near_limit=self.is_near_limit(budget),
            days_remaining=self.days_remaining(budget, now),
            badge=self.badge(budget),
        )
