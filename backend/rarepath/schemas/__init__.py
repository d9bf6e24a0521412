from .patient import (
    ClinicalPatientProfile,
    DiagnosisCodes,
    LabValues,
    LegacyPatientInput,
    PatientInput,
    PerformanceStatus,
    TriState,
    to_clinical_profile,
)
from .trial import Trial
from .eligibility import (
    Band,
    CriterionResult,
    EligibilityDecision,
    EnhancedEligibilityDecision,
    ExtractedValue,
)
from .patterns import (
    AgePatterns,
    CriteriaTermFrequency,
    EligibilityPattern,
    GeneticRequirements,
    PatternMiningResult,
    ResearchInsight,
    TrialPattern,
)

__all__ = [
    "ClinicalPatientProfile",
    "DiagnosisCodes",
    "LabValues",
    "LegacyPatientInput",
    "PatientInput",
    "PerformanceStatus",
    "TriState",
    "to_clinical_profile",
    "Trial",
    "Band",
    "CriterionResult",
    "EligibilityDecision",
    "EnhancedEligibilityDecision",
    "ExtractedValue",
    "AgePatterns",
    "CriteriaTermFrequency",
    "EligibilityPattern",
    "GeneticRequirements",
    "PatternMiningResult",
    "ResearchInsight",
    "TrialPattern",
]
