from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from budgetwise.models import Budget, BudgetPeriod, Transaction, TransactionType


class TransactionCreate(BaseModel):
    id: str | None = None
    amount: Decimal = Field(ge=0)
    type: TransactionType = "expense"
    category: str = ""
    title: str = ""
    description: str = ""
    date: datetime | None = None
    currency: str = "USD"
    account: str = "main"
    tags: list[str] = []

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    def to_transaction(self, now: datetime) -> Transaction:
        data = self.model_dump(exclude_none=True)
        data.setdefault("date", now)
        return Transaction(**data)


class TransactionResult(BaseModel):
    transaction: Transaction
    budgets: list[Budget]


class BudgetCreate(BaseModel):
    name: str = ""
    category: str
    amount: Decimal = Field(ge=0)
    spent: Decimal = Field(default=Decimal("0"), ge=0)
    period: BudgetPeriod = "monthly"
    start_date: datetime | None = None
    end_date: datetime | None = None
    currency: str = "USD"
    warning_threshold: float | None = None
    notifications: bool = True

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()


class ActiveCurrencyRequest(BaseModel):
    code: str


class ConversionResponse(BaseModel):
    amount: Decimal
    from_code: str
    to_code: str
    result: Decimal
    formatted: str


class ImportResult(BaseModel):
    transactions: int
    budgets: int
