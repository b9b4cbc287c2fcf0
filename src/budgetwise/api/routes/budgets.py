from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from budgetwise.api.dependencies import (
    get_budget_sync,
    get_currency_table,
    get_now,
    get_report_service,
    get_store,
)
from budgetwise.api.schemas import BudgetCreate, ImportResult, TransactionCreate, TransactionResult
from budgetwise.core import settings
from budgetwise.domain.currency import CurrencyTable
from budgetwise.domain.dates import range_end, range_start
from budgetwise.errors import UnknownCurrencyError
from budgetwise.integration.store import FinanceStore, TransactionFilter
from budgetwise.logger import get_logger
from budgetwise.models import Budget, BudgetStatus, Transaction, TransactionType
from budgetwise.services.reports import BudgetSync, ReportService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/budgets", response_model=list[BudgetStatus])
async def list_budgets(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[BudgetStatus]:
    return await reports.budget_statuses(now)


@router.post("/api/budgets", response_model=Budget)
async def create_budget(
    req: BudgetCreate,
    store: Annotated[FinanceStore, Depends(get_store)],
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
    now: Annotated[datetime, Depends(get_now)],
) -> Budget:
    if req.currency not in table:
        raise HTTPException(status_code=404, detail=str(UnknownCurrencyError(req.currency)))
    data = req.model_dump(exclude_none=True)
    data.setdefault("start_date", now)
    data.setdefault("warning_threshold", settings.get_warning_threshold())
    budget = Budget(**data)
    logger.info("[BUDGET] Created %s budget for '%s' (%s).", budget.period, budget.category, budget.amount)
    return await store.add_budget(budget)


@router.get("/api/transactions", response_model=list[Transaction])
async def list_transactions(
    store: Annotated[FinanceStore, Depends(get_store)],
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
    category: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Transaction]:
    criteria = TransactionFilter(
        type=transaction_type,
        category=category,
        date_from=range_start(start_date),
        date_to=range_end(end_date),
    )
    return await store.list_transactions(criteria)


@router.post("/api/transactions", response_model=TransactionResult)
async def record_transaction(
    req: TransactionCreate,
    sync: Annotated[BudgetSync, Depends(get_budget_sync)],
    now: Annotated[datetime, Depends(get_now)],
) -> TransactionResult:
    transaction = req.to_transaction(now)
    try:
        budgets = await sync.record_transaction(transaction)
    except UnknownCurrencyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TransactionResult(transaction=transaction, budgets=budgets)


@router.put("/api/transactions/{transaction_id}", response_model=TransactionResult)
async def replace_transaction(
    transaction_id: str,
    req: TransactionCreate,
    sync: Annotated[BudgetSync, Depends(get_budget_sync)],
    now: Annotated[datetime, Depends(get_now)],
) -> TransactionResult:
    transaction = req.model_copy(update={"id": transaction_id}).to_transaction(now)
    try:
        budgets = await sync.replace_transaction(transaction)
    except UnknownCurrencyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TransactionResult(transaction=transaction, budgets=budgets)


@router.delete("/api/transactions/{transaction_id}", response_model=Transaction)
async def delete_transaction(
    transaction_id: str,
    sync: Annotated[BudgetSync, Depends(get_budget_sync)],
) -> Transaction:
    removed = await sync.remove_transaction(transaction_id)
    if removed is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return removed


@router.post("/api/import", response_model=ImportResult)
async def import_backup(
    payload: Annotated[dict[str, Any], Body()],
    store: Annotated[FinanceStore, Depends(get_store)],
) -> ImportResult:
    transactions, budgets = await store.import_backup(payload)
    return ImportResult(transactions=transactions, budgets=budgets)
