from typing import Annotated

from fastapi import APIRouter, Depends, Query

from budgetwise.api.dependencies import get_suggester
from budgetwise.models import CategorySuggestion
from budgetwise.services.suggestions import MAX_AUTOFILL, CategorySuggester

router = APIRouter()


@router.get("/api/suggestions/category", response_model=CategorySuggestion)
async def suggest_category(
    suggester: Annotated[CategorySuggester, Depends(get_suggester)],
    title: Annotated[str, Query(min_length=1)],
) -> CategorySuggestion:
    return suggester.suggest(title)


@router.get("/api/suggestions/autofill")
async def autofill_titles(
    suggester: Annotated[CategorySuggester, Depends(get_suggester)],
    q: str = "",
    category: str | None = None,
    limit: Annotated[int, Query(ge=1, le=20)] = MAX_AUTOFILL,
) -> list[str]:
    return suggester.autofill(q, category, limit)
