"""
Ranked Trial Search

Fetches trials for a disease and orders them by a simple relevance score:

    +3   a location in the requested state
    +1   a US location (when no state, or a US-wide search, was requested)
    +1   recruiting / active / enrolling status
    +0.5 eligibility text longer than 50 characters
"""

import asyncio
import logging
import re
from typing import List, Optional, Tuple

from ..schemas.literature import EnhancedSearchResult, PubMedSearchResult
from ..schemas.trial import Trial
from .clinical_trials_api import ClinicalTrialsService, clinical_trials_service
from .literature_service import LiteratureService, literature_service

logger = logging.getLogger(__name__)

SEARCH_FETCH_LIMIT = 25
SEARCH_RESULT_LIMIT = 10
STATE_MATCH_SCORE = 3.0
US_LOCATION_SCORE = 1.0
ACTIVE_STATUS_SCORE = 1.0
DETAILED_CRITERIA_SCORE = 0.5
DETAILED_CRITERIA_MIN_LENGTH = 50
US_ALIASES = {"US", "USA", "UNITED STATES"}
ACTIVE_STATUS_PATTERN = re.compile(r"recruiting|active|enrolling", re.IGNORECASE)


def score_trial(trial: Trial, state: Optional[str] = None) -> float:
    score = 0.0

    if state:
        state_upper = state.upper()
        if any(state_upper in location.upper() for location in trial.locations):
            score += STATE_MATCH_SCORE

    if not state or state.upper() in US_ALIASES:
        if any(re.search(r"united states", location, re.IGNORECASE) for location in trial.locations):
            score += US_LOCATION_SCORE

    if trial.status and ACTIVE_STATUS_PATTERN.search(trial.status):
        score += ACTIVE_STATUS_SCORE

    if trial.eligibility_text and len(trial.eligibility_text) > DETAILED_CRITERIA_MIN_LENGTH:
        score += DETAILED_CRITERIA_SCORE

    return score


class SearchService:
    def __init__(
        self,
        trials_client: Optional[ClinicalTrialsService] = None,
        literature: Optional[LiteratureService] = None
    ):
        self.trials_client = trials_client or clinical_trials_service
        self.literature = literature or literature_service

    async def search(self, disease: str, state: Optional[str] = None) -> List[Trial]:
        """
        Top-ranked trials for a disease. Any failure yields an empty list.
        """
        try:
            trials = await self.trials_client.search_trials(disease, state=state, max_results=SEARCH_FETCH_LIMIT)
        except Exception as e:
            logger.error(f"Trial search failed for '{disease}': {e}")
            return []

        if not trials:
            logger.info(f"No trials found for '{disease}' in state '{state or 'any'}'")
            return []

        scored: List[Tuple[float, Trial]] = [(score_trial(t, state), t) for t in trials]
        # sorted() is stable, so equal scores keep registry order
        ranked = sorted(scored, key=lambda pair: -pair[0])[:SEARCH_RESULT_LIMIT]
        logger.info(f"Returning {len(ranked)} ranked trials for '{disease}'")
        return [trial for _, trial in ranked]

    async def enhanced_search(self, disease: str, state: Optional[str] = None) -> EnhancedSearchResult:
        """Ranked trials plus condition literature, with trials enriched by their publications."""
        try:
            trials, publications = await asyncio.gather(
                self.search(disease, state),
                self.literature.search_research_by_condition(disease, 20),
            )
            enriched = await self.literature.enrich_trials_with_publications(trials) if trials else []
        except Exception as e:
            logger.error(f"Enhanced search failed for '{disease}': {e}")
            return EnhancedSearchResult(
                trials=[],
                publications=PubMedSearchResult(articles=[], total_count=0, query=disease),
                enriched_trials=[],
            )

        logger.info(f"Enhanced search found {len(trials)} trials, {len(publications.articles)} publications")
        return EnhancedSearchResult(trials=trials, publications=publications, enriched_trials=enriched)


# Singleton instance
search_service = SearchService()
