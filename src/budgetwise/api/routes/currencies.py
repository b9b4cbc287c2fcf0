from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from budgetwise.api.dependencies import get_currency_table
from budgetwise.api.schemas import ActiveCurrencyRequest, ConversionResponse
from budgetwise.domain.currency import CurrencyTable
from budgetwise.errors import UnknownCurrencyError
from budgetwise.models import Currency

router = APIRouter()


@router.get("/api/currencies")
async def list_currencies(
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
) -> dict[str, object]:
    active = table.active
    default = table.default
    return {
        "active": active.code if active else None,
        "default": default.code if default else None,
        "currencies": [currency.model_dump(mode="json") for currency in table.currencies],
    }


@router.put("/api/currencies/active", response_model=Currency)
async def set_active_currency(
    req: ActiveCurrencyRequest,
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
) -> Currency:
    try:
        return table.set_active(req.code.upper())
    except UnknownCurrencyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/api/currencies/convert", response_model=ConversionResponse)
async def convert_amount(
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
    amount: Decimal,
    from_code: Annotated[str, Query(alias="from")],
    to_code: Annotated[str, Query(alias="to")],
) -> ConversionResponse:
    try:
        result = table.convert(amount, from_code.upper(), to_code.upper())
    except UnknownCurrencyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ConversionResponse(
        amount=amount,
        from_code=from_code.upper(),
        to_code=to_code.upper(),
        result=result,
        formatted=table.format(result, to_code.upper()),
    )


@router.get("/api/currencies/format")
async def format_amount(
    table: Annotated[CurrencyTable, Depends(get_currency_table)],
    amount: Decimal,
    code: str | None = None,
) -> dict[str, str]:
    try:
        return {"formatted": table.format(amount, code.upper() if code else None)}
    except UnknownCurrencyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
