from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from budgetwise.domain.dates import add_months, parse_date, utcnow

TransactionType = Literal["income", "expense", "transfer"]
BudgetPeriod = Literal["weekly", "monthly", "yearly"]
SymbolPosition = Literal["before", "after"]
Frequency = Literal["weekly", "monthly"]
RecommendationType = Literal["new", "increase", "decrease"]
Badge = Literal["over", "near", "ok"]
SuggestionSource = Literal["merchant", "keyword", "default"]

ZERO = Decimal("0")


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def period_end(start: datetime, period: str) -> datetime:
    if period == "weekly":
        return start + timedelta(days=7)
    if period == "yearly":
        return add_months(start, 12)
    return add_months(start, 1)


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: _new_id("txn"))
    amount: Decimal = Field(ge=0)
    type: TransactionType = "expense"
    category: str = ""
    title: str = ""
    description: str = ""
    date: datetime | None = None  # None when the stored date could not be parsed
    currency: str = "USD"
    account: str = "main"
    tags: tuple[str, ...] = ()

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime | None:
        return parse_date(value)

    @property
    def label(self) -> str:
        return self.title or self.description or self.category


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: _new_id("budget"))
    name: str = ""
    category: str
    amount: Decimal = Field(ge=0)
    spent: Decimal = Field(default=ZERO, ge=0)
    period: BudgetPeriod = "monthly"
    start_date: datetime
    end_date: datetime
    currency: str = "USD"
    warning_threshold: float = 80.0
    is_active: bool = True
    notifications: bool = True

    @model_validator(mode="before")
    @classmethod
    def _derive_end_date(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        start = parse_date(data.get("start_date")) if data.get("start_date") is not None else utcnow()
        if start is None:
            raise ValueError(f"Invalid start_date: {data.get('start_date')!r}")
        data["start_date"] = start
        if data.get("end_date") is None:
            data["end_date"] = period_end(start, data.get("period") or "monthly")
        return data

    @field_validator("end_date", mode="before")
    @classmethod
    def _parse_end_date(cls, value: Any) -> datetime:
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"Invalid end_date: {value!r}")
        return parsed


class Currency(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str = ""
    symbol: str
    exchange_rate: Decimal = Field(default=Decimal("1"), gt=0)
    is_default: bool = False
    position: SymbolPosition = "before"
    decimal_places: int = Field(default=2, ge=0)

    @model_validator(mode="after")
    def _check_base_rate(self) -> "Currency":
        if self.is_default and self.exchange_rate != 1:
            raise ValueError(f"Default currency {self.code} must have an exchange rate of 1.")
        return self


class TransactionSummary(BaseModel):
    income: Decimal = ZERO
    expense: Decimal = ZERO
    transfer: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class CategoryTotal(BaseModel):
    category: str
    total: Decimal
    count: int


class MonthlyTrendPoint(BaseModel):
    month: str  # YYYY-MM
    income: Decimal = ZERO
    expense: Decimal = ZERO


class TimePattern(BaseModel):
    weekend_total: Decimal = ZERO
    weekday_total: Decimal = ZERO


class SpendingTrend(BaseModel):
    this_month: Decimal = ZERO
    last_month: Decimal = ZERO
    growth: float = 0.0


class RecurringPattern(BaseModel):
    normalized_title: str
    frequency: Frequency
    average_amount: Decimal
    confidence: float = Field(ge=0.0, le=1.0)
    occurrences: int
    average_interval: float


class Recommendation(BaseModel):
    type: RecommendationType
    category: str
    suggested_amount: Decimal
    average_monthly: Decimal
    current_amount: Decimal | None = None
    reason: str


class Insight(BaseModel):
    type: str
    title: str
    description: str
    icon: str
    color: str


class CategorySuggestion(BaseModel):
    category: str
    source: SuggestionSource
    matched: str | None = None


class BudgetStatus(BaseModel):
    budget_id: str
    category: str
    amount: Decimal
    spent: Decimal
    progress_percent: Decimal
    remaining: Decimal
    is_over_budget: bool
    is_near_limit: bool
    days_remaining: int
    badge: Badge


class DashboardReport(BaseModel):
    generated_at: datetime
    currency: str
    summary: TransactionSummary
    category_breakdown: list[CategoryTotal]
    daily: dict[str, Decimal]
    trend: list[MonthlyTrendPoint]
    recurring: list[RecurringPattern]
    insights: list[Insight]
    recommendations: list[Recommendation]
    budgets: list[BudgetStatus]
