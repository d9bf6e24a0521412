from typing import List

from pydantic import BaseModel, Field

from .eligibility import EligibilityDecision, EnhancedEligibilityDecision, Intent
from .patient import LegacyPatientInput, PatientInput
from .trial import Trial


class LegacyEligibilityRequest(BaseModel):
    """Legacy heuristic check for one patient against one trial."""
    patient: LegacyPatientInput
    trial: Trial


class EligibilityRequest(BaseModel):
    """Structured check; `patient.kind` selects the legacy or clinical variant."""
    patient: PatientInput
    trial: Trial


class LegacyEligibilityResponse(BaseModel):
    decision: EligibilityDecision
    explanation: str


class EligibilityResponse(BaseModel):
    decision: EnhancedEligibilityDecision
    explanation: str


class CriterionSummary(BaseModel):
    """Public view of one registered rule."""
    id: str
    name: str
    intent: Intent
    priority: int
    follow_up_question: str
    pattern_count: int = Field(..., description="Number of regular expressions the rule tries")


class CriteriaCatalogResponse(BaseModel):
    criteria: List[CriterionSummary] = Field(default_factory=list)
