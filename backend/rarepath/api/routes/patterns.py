from typing import Optional

from fastapi import APIRouter, Query

from ...mining.pattern_mining import PatternMiningEngine
from ...schemas.patterns import PatternMiningResult
from ...services.clinical_trials_api import clinical_trials_service

router = APIRouter()

pattern_mining_engine = PatternMiningEngine(clinical_trials_service)


@router.get("/{condition}", response_model=PatternMiningResult)
async def mine_patterns(
    condition: str,
    max_trials: Optional[int] = Query(None, ge=1, le=5000, description="Corpus size cap")
):
    """
    Mine eligibility patterns and research insights across trials for a condition.

    Registry failures for individual search terms shrink the corpus instead
    of failing the request.
    """
    return await pattern_mining_engine.mine_patterns(condition, max_trials)
