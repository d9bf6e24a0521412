from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TrialPattern(BaseModel):
    """A pattern observed across many trials of one condition."""
    model_config = ConfigDict(frozen=True)

    pattern_type: Literal["eligibility", "outcome", "design", "geographic", "temporal"]
    pattern: str
    confidence: float
    supporting_trials: List[str] = Field(default_factory=list)
    insight: str
    recommendation: Optional[str] = None


class AgePatterns(BaseModel):
    model_config = ConfigDict(frozen=True)

    frequency: float
    min_age: int
    max_age: int
    most_common_range: Tuple[int, int]


class GeneticRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    required: bool
    specific_mutations: List[str] = Field(default_factory=list)
    frequency: float


class CriteriaTermFrequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    frequency: float


class EligibilityPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    criteria_type: str
    frequency: float
    total_trials: int
    associated_outcomes: List[str] = Field(default_factory=list)
    genetic_requirements: Optional[GeneticRequirements] = None
    age_patterns: AgePatterns
    criteria_patterns: List[CriteriaTermFrequency] = Field(default_factory=list)


class ResearchInsight(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Literal["trend", "gap", "opportunity", "risk"]
    title: str
    description: str
    evidence: List[str] = Field(default_factory=list)
    confidence: float
    actionable: bool
    recommendation: Optional[str] = None


class PatternMiningResult(BaseModel):
    """Everything the mining engine reports for one condition."""
    model_config = ConfigDict(frozen=True)

    condition: str
    trials_analyzed: int
    eligibility_patterns: List[EligibilityPattern] = Field(default_factory=list)
    research_insights: List[ResearchInsight] = Field(default_factory=list)
    patterns: List[TrialPattern] = Field(default_factory=list)
