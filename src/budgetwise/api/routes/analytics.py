from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from budgetwise.api.dependencies import get_now, get_report_service
from budgetwise.errors import InvalidRangeError
from budgetwise.models import (
    CategoryTotal,
    DashboardReport,
    Insight,
    MonthlyTrendPoint,
    Recommendation,
    RecurringPattern,
    TransactionSummary,
    TransactionType,
)
from budgetwise.services.reports import ReportService

router = APIRouter()


@router.get("/api/dashboard", response_model=DashboardReport)
async def get_dashboard(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
) -> DashboardReport:
    return await reports.dashboard(now)


@router.get("/api/analytics/summary", response_model=TransactionSummary)
async def get_summary(
    reports: Annotated[ReportService, Depends(get_report_service)],
    start_date: date | None = None,
    end_date: date | None = None,
) -> TransactionSummary:
    transactions = await reports.transactions()
    try:
        return reports.analytics().summarize(transactions, start_date, end_date)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/api/analytics/categories", response_model=list[CategoryTotal])
async def get_category_breakdown(
    reports: Annotated[ReportService, Depends(get_report_service)],
    transaction_type: Annotated[TransactionType, Query(alias="type")] = "expense",
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[CategoryTotal]:
    transactions = await reports.transactions()
    try:
        return reports.analytics().category_breakdown(transactions, transaction_type, start_date, end_date)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/api/analytics/daily")
async def get_daily_expenses(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
    days: Annotated[int, Query(ge=1, le=366)] = 7,
) -> dict[str, Decimal]:
    return reports.analytics().daily_bucket(await reports.transactions(), days, now)


@router.get("/api/analytics/trend", response_model=list[MonthlyTrendPoint])
async def get_monthly_trend(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
    months: Annotated[int | None, Query(ge=1, le=120)] = None,
) -> list[MonthlyTrendPoint]:
    return reports.analytics().monthly_trend(
        await reports.transactions(),
        months or reports.trend_months,
        now,
    )


@router.get("/api/analytics/recurring", response_model=list[RecurringPattern])
async def get_recurring(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[RecurringPattern]:
    return reports.analytics().detect_recurring(await reports.transactions(), now)


@router.get("/api/insights", response_model=list[Insight])
async def get_insights(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[Insight]:
    return await reports.insights(now)


@router.get("/api/recommendations", response_model=list[Recommendation])
async def get_recommendations(
    reports: Annotated[ReportService, Depends(get_report_service)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[Recommendation]:
    return await reports.recommendations(now)
