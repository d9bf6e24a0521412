"""
Literature Service

Publication context for trials and conditions, built on the PubMed client.
Nothing in the eligibility decision depends on this module.
"""

import logging
import re
from collections import Counter
from typing import List, Optional

from ..core.config import Settings, settings as default_settings
from ..schemas.literature import (
    InvestigatorCount,
    JournalCount,
    LiteratureInsights,
    PubMedArticle,
    PubMedSearchResult,
    TrialPublicationSummary,
    TrialWithPublications,
    YearCount,
)
from ..schemas.trial import Trial
from .pubmed_api import PubMedClient, pubmed_client
from .ttl_cache import TTLCache

logger = logging.getLogger(__name__)

OUTCOME_KEYWORDS = [
    "results", "outcomes", "efficacy", "safety", "endpoint",
    "primary outcome", "secondary outcome", "final analysis",
    "interim analysis", "completed", "follow-up",
]
STOP_WORDS = {
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "was", "are", "were", "be", "been", "have", "has", "had",
    "study", "trial", "clinical", "patients", "treatment", "therapy",
}
TOP_JOURNALS = 10
TOP_INVESTIGATORS = 15
TOP_KEYWORDS = 10
SIMILAR_SEARCH_KEYWORDS = 2
SIMILAR_SEARCH_LIMIT = 50


def is_outcome_publication(article: PubMedArticle) -> bool:
    text = f"{article.title} {article.abstract}".lower()
    return any(keyword in text for keyword in OUTCOME_KEYWORDS)


def latest_publication(publications: List[PubMedArticle]) -> Optional[PubMedArticle]:
    if not publications:
        return None
    return max(publications, key=lambda pub: pub.publish_date)


def extract_keywords(publications: List[PubMedArticle]) -> List[str]:
    """Most frequent non-stop-words (longer than three letters) across titles and abstracts."""
    text = " ".join(f"{pub.title} {pub.abstract}" for pub in publications).lower()
    words = re.sub(r"[^\w\s]", " ", text).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(TOP_KEYWORDS)]


def publication_summary(publications: List[PubMedArticle]) -> str:
    if not publications:
        return "No publications found for this trial."

    count = len(publications)
    summary = f"{count} publication{'s' if count > 1 else ''} found"

    outcome_count = sum(1 for pub in publications if is_outcome_publication(pub))
    if outcome_count:
        summary += f", including {outcome_count} with outcome results"

    years = [int(pub.publish_date[:4]) for pub in publications if pub.publish_date[:4].isdigit()]
    if years:
        summary += f". Most recent publication: {max(years)}"

    return summary + "."


class LiteratureService:
    """
    Publication lookups with a short-lived cache for condition searches.
    """

    def __init__(self, client: Optional[PubMedClient] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.client = client or pubmed_client
        self.cache = TTLCache(self.settings.LITERATURE_CACHE_TTL_SECONDS)

    async def search_research_by_condition(self, condition: str, max_results: int = 20) -> PubMedSearchResult:
        cache_key = f"condition:{condition}:{max_results}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Using cached PubMed results for '{condition}'")
            return cached

        result = await self.client.search_by_condition(condition, max_results)
        self.cache.set(cache_key, result)
        return result

    async def enrich_trials_with_publications(self, trials: List[Trial]) -> List[TrialWithPublications]:
        logger.info(f"Enriching {len(trials)} trials with publication data")
        publications_by_trial = await self.client.get_publications_for_trials([t.nct_id for t in trials])

        enriched = []
        for trial in trials:
            publications = publications_by_trial.get(trial.nct_id, [])
            enriched.append(
                TrialWithPublications(
                    **trial.model_dump(),
                    publications=publications,
                    publication_count=len(publications),
                    has_outcomes=any(is_outcome_publication(pub) for pub in publications),
                    latest_publication=latest_publication(publications),
                )
            )
        return enriched

    def generate_research_insights(self, articles: List[PubMedArticle]) -> LiteratureInsights:
        study_types = Counter(article.study_type or "Unknown" for article in articles)
        journals = Counter(article.journal for article in articles if article.journal)
        years = Counter(article.publish_date.split("-")[0] for article in articles if article.publish_date)
        authors = Counter(author for article in articles for author in article.authors if author)

        outcome_trials = [
            nct_id
            for article in articles if is_outcome_publication(article)
            for nct_id in article.nct_ids
        ]

        return LiteratureInsights(
            total_publications=len(articles),
            study_types=dict(study_types),
            top_journals=[JournalCount(journal=j, count=c) for j, c in journals.most_common(TOP_JOURNALS)],
            publication_trend=[YearCount(year=y, count=years[y]) for y in sorted(years)],
            outcome_trials=list(dict.fromkeys(outcome_trials)),
            leading_investigators=[
                InvestigatorCount(name=n, count=c) for n, c in authors.most_common(TOP_INVESTIGATORS)
            ],
        )

    async def find_similar_trials(self, condition: str, publications: List[PubMedArticle]) -> List[str]:
        keywords = extract_keywords(publications)[:SIMILAR_SEARCH_KEYWORDS]
        query = " ".join([condition, *keywords])
        result = await self.search_research_by_condition(query, SIMILAR_SEARCH_LIMIT)
        return list(dict.fromkeys(nct_id for article in result.articles for nct_id in article.nct_ids))

    async def get_trial_publication_summary(self, nct_id: str) -> TrialPublicationSummary:
        publications = await self.client.search_by_nct_id(nct_id)

        if not publications:
            outcome_status = "unknown"
        elif any(is_outcome_publication(pub) for pub in publications):
            outcome_status = "published"
        else:
            outcome_status = "pending"

        return TrialPublicationSummary(
            publications=publications,
            summary=publication_summary(publications),
            outcome_status=outcome_status,
        )


# Singleton instance
literature_service = LiteratureService()
