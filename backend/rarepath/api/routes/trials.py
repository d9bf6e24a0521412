from typing import List, Optional

from fastapi import APIRouter, Query

from ...schemas.literature import EnhancedSearchResult
from ...schemas.trial import Trial
from ...services.search_service import search_service

router = APIRouter()


@router.get("/search", response_model=List[Trial])
async def search_trials(
    condition: str = Query(..., min_length=1),
    state: Optional[str] = Query(None, description="Two-letter US state code")
):
    """Top-ranked trials for a condition. Registry failures yield an empty list."""
    return await search_service.search(condition, state)


@router.get("/search/enhanced", response_model=EnhancedSearchResult)
async def enhanced_search_trials(
    condition: str = Query(..., min_length=1),
    state: Optional[str] = None
):
    """Ranked trials plus related PubMed literature."""
    return await search_service.enhanced_search(condition, state)
