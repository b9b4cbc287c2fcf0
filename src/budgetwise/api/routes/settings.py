from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from budgetwise.api.dependencies import get_currency_table
from budgetwise.core import configuration
from budgetwise.domain.currency import CurrencyTable
from budgetwise.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/settings")
async def get_settings(
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
) -> dict[str, object]:
    return configuration.build_config_context({currency.code for currency in table.currencies})


@router.post("/api/settings")
async def update_settings(
    request: Request,
    values: Annotated[dict[str, str], Body()],
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
) -> dict[str, dict[str, str]]:
    errors, updates = configuration.apply_config_updates(
        values,
        {currency.code for currency in table.currencies},
    )
    if errors:
        logger.warning("[CONFIG] Rejected settings update: %s", errors)
        raise HTTPException(status_code=400, detail=errors)
    configuration.apply_runtime_updates(request.app, updates)
    return {"updated": updates}
