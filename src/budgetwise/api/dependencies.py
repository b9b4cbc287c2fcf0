from datetime import datetime

from fastapi import HTTPException, Request

from budgetwise.domain.currency import CurrencyTable
from budgetwise.domain.dates import utcnow
from budgetwise.integration.store import FinanceStore
from budgetwise.services.reports import BudgetSync, ReportService
from budgetwise.services.suggestions import CategorySuggester


def _require(request: Request, name: str, detail: str = "Service not initialized"):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=500, detail=detail)
    return value


def get_store(request: Request) -> FinanceStore:
    return _require(request, "store", "Store not configured")


def get_currency_table(request: Request) -> CurrencyTable:
    return _require(request, "currency_table")


def get_report_service(request: Request) -> ReportService:
    return _require(request, "reports")


def get_budget_sync(request: Request) -> BudgetSync:
    return _require(request, "budget_sync")


def get_suggester(request: Request) -> CategorySuggester:
    return _require(request, "suggester")


def get_now() -> datetime:
    """Reference time for time-relative reports; overridden in tests."""
    return utcnow()
