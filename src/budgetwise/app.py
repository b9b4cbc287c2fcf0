from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from budgetwise.api.routes import analytics, budgets, currencies, suggestions
from budgetwise.api.routes import settings as settings_routes
from budgetwise.core import settings
from budgetwise.domain.budgets import BudgetLedger
from budgetwise.domain.currency import CurrencyTable
from budgetwise.integration.store import JsonFileStore
from budgetwise.logger import get_logger, setup_logging
from budgetwise.services.reports import BudgetSync, ReportService
from budgetwise.services.suggestions import CategorySuggester

logger = get_logger(__name__)


def build_currency_table() -> CurrencyTable:
    table = CurrencyTable.with_defaults(rates=settings.get_exchange_rates())
    display = settings.get_display_currency()
    if display in table:
        table.set_active(display)
    else:
        logger.warning("DISPLAY_CURRENCY=%s is not supported; using %s.", display, table.default.code)
    return table


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = JsonFileStore(settings.DATA_DIR)
        table = build_currency_table()
        reports = ReportService(
            store,
            table,
            lookback_months=settings.get_lookback_months(),
            trend_months=settings.get_trend_months(),
            min_occurrences=settings.get_recurring_min_occurrences(),
        )

        app.state.store = store
        app.state.currency_table = table
        app.state.reports = reports
        app.state.budget_sync = BudgetSync(store, BudgetLedger(table))
        app.state.suggester = CategorySuggester()

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="BudgetWise Analytics", lifespan=lifespan)

    app.include_router(analytics.router)
    app.include_router(budgets.router)
    app.include_router(currencies.router)
    app.include_router(suggestions.router)
    app.include_router(settings_routes.router)

    return app


app = create_app()
