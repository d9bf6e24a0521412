from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .trial import Trial


class PubMedArticle(BaseModel):
    model_config = ConfigDict(frozen=True)

    pmid: str
    title: str
    authors: List[str] = Field(default_factory=list)
    journal: str = ""
    publish_date: str = ""  # "YYYY", "YYYY-MM" or "YYYY-MM-DD"
    abstract: str = ""
    doi: Optional[str] = None
    nct_ids: List[str] = Field(default_factory=list)
    study_type: Optional[str] = None
    url: str


class PubMedSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    articles: List[PubMedArticle] = Field(default_factory=list)
    total_count: int = 0
    query: str


class JournalCount(BaseModel):
    journal: str
    count: int


class YearCount(BaseModel):
    year: str
    count: int


class InvestigatorCount(BaseModel):
    name: str
    count: int


class LiteratureInsights(BaseModel):
    """Aggregate view over a set of articles for one condition."""
    total_publications: int
    study_types: Dict[str, int] = Field(default_factory=dict)
    top_journals: List[JournalCount] = Field(default_factory=list)
    publication_trend: List[YearCount] = Field(default_factory=list)
    outcome_trials: List[str] = Field(default_factory=list)
    leading_investigators: List[InvestigatorCount] = Field(default_factory=list)


class TrialWithPublications(Trial):
    publications: List[PubMedArticle] = Field(default_factory=list)
    publication_count: int = 0
    has_outcomes: bool = False
    latest_publication: Optional[PubMedArticle] = None


class TrialPublicationSummary(BaseModel):
    publications: List[PubMedArticle] = Field(default_factory=list)
    summary: str
    outcome_status: Literal["published", "pending", "unknown"]


class EnhancedSearchResult(BaseModel):
    trials: List[Trial] = Field(default_factory=list)
    publications: PubMedSearchResult
    enriched_trials: List[TrialWithPublications] = Field(default_factory=list)
