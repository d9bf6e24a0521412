from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


Band = Literal["High", "Medium", "Low"]
Intent = Literal["include", "exclude"]
CriterionStatus = Literal["hit", "miss", "unknown"]
ComparisonOperator = Literal[">", ">=", "<", "<=", "=", "between"]

MAX_REASONS = 4
MAX_UNCERTAINTIES = 3


class ExtractedValue(BaseModel):
    """What a rule's regular expressions pulled out of the trial text."""
    model_config = ConfigDict(frozen=True)

    raw: str
    value: Optional[Union[int, float, str]] = None
    operator: Optional[ComparisonOperator] = None
    unit: Optional[str] = None
    range: Optional[Tuple[float, float]] = None  # inclusive [lo, hi]


class CriterionResult(BaseModel):
    """
    Outcome of one catalog rule for one trial/patient pair.

    `hit` is relative to the intent: for an include rule the patient
    satisfies the requirement, for an exclude rule the patient matches
    the disqualifying condition.
    """
    model_config = ConfigDict(frozen=True)

    intent: Intent
    criterion: str
    status: CriterionStatus
    confidence: float = Field(..., ge=0.0, le=1.0)
    extracted_value: Optional[str] = None
    patient_value: Optional[Union[int, float, str]] = None
    reason: str

    @model_validator(mode="after")
    def _confidence_matches_status(self) -> "CriterionResult":
        if (self.status == "unknown") != (self.confidence == 0):
            raise ValueError("confidence must be 0 exactly when status is 'unknown'")
        return self


class EligibilityDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    band: Band
    reasons: List[str] = Field(default_factory=list, max_length=MAX_REASONS)
    uncertainties: List[str] = Field(default_factory=list, max_length=MAX_UNCERTAINTIES)
    follow_up_question: Optional[str] = None


class EnhancedEligibilityDecision(EligibilityDecision):
    score: float
    criteria: List[CriterionResult] = Field(default_factory=list)
    hard_failures: List[CriterionResult] = Field(default_factory=list)
