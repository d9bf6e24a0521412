"""
Eligibility Decision Aggregator

Two decision paths over one trial/patient pair:

- EligibilityAgent: the legacy heuristic path. Keyword checks over the
  lower-cased eligibility text plus the trial's numeric age bounds.
- EligibilityAgentV2: the structured path. Runs every catalog rule and
  folds the results into a band, a score and a follow-up question.

The two paths overlap but are not reconciled; each is tested
on its own.

Both are deterministic: no randomness, no clock.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.eligibility import (
    MAX_REASONS,
    MAX_UNCERTAINTIES,
    Band,
    CriterionResult,
    EligibilityDecision,
    EnhancedEligibilityDecision,
)
from ..schemas.patient import (
    ClinicalPatientProfile,
    LegacyPatientInput,
    PatientInput,
    to_clinical_profile,
)
from ..schemas.trial import Trial
from .criterion_catalog import CriterionExtractor, get_criterion, get_highest_priority_unknown
from .criterion_evaluator import CriterionEvaluator

logger = logging.getLogger(__name__)


# =============================================================================
# STEP 1: BAND REDUCER
# Medium is the start state. Low is absorbing: nothing promotes out of it,
# so a disqualifying match can never be undone by a later rule.
# =============================================================================

class BandTransition(str, Enum):
    KEEP = "keep"
    PROMOTE = "promote"
    DEMOTE = "demote"
    DISQUALIFY = "disqualify"


INITIAL_BAND: Band = "Medium"

# Coarse band -> score mapping; per-criterion weighting would plug in here
BAND_SCORES: Dict[str, float] = {"High": 15.0, "Medium": 10.0, "Low": 5.0}

LIMITED_INFORMATION = "Limited eligibility information available"


def apply_transition(band: Band, transition: BandTransition) -> Band:
    if transition == BandTransition.DISQUALIFY:
        return "Low"
    if transition == BandTransition.DEMOTE:
        return "Medium" if band == "High" else "Low"
    if transition == BandTransition.PROMOTE:
        return "High" if band == "Medium" else band
    return band


def fold_band(transitions: Iterable[BandTransition], initial: Band = INITIAL_BAND) -> Band:
    band = initial
    for transition in transitions:
        band = apply_transition(band, transition)
    return band


def transition_for(result: CriterionResult) -> BandTransition:
    """How one catalog result moves the band."""
    if result.status == "unknown":
        return BandTransition.KEEP
    if result.intent == "include":
        return BandTransition.PROMOTE if result.status == "hit" else BandTransition.DEMOTE
    # exclude intent: a hit is a hard failure, a miss is neutral
    return BandTransition.DISQUALIFY if result.status == "hit" else BandTransition.KEEP


class ExplanationCollector:
    """Collects reasons and uncertainties in evaluation order, without duplicates."""

    def __init__(self):
        self.reasons: List[str] = []
        self.uncertainties: List[str] = []

    def reason(self, text: str) -> None:
        if text not in self.reasons:
            self.reasons.append(text)

    def uncertainty(self, text: str) -> None:
        if text not in self.uncertainties:
            self.uncertainties.append(text)

    def finalize(self) -> Tuple[List[str], List[str]]:
        """Capped lists; never returns an empty explanation."""
        if not self.reasons and not self.uncertainties:
            self.uncertainties.append(LIMITED_INFORMATION)
        return self.reasons[:MAX_REASONS], self.uncertainties[:MAX_UNCERTAINTIES]


# =============================================================================
# STEP 2: LEGACY HEURISTIC PATH
# =============================================================================

GENETIC_KEYWORDS = ("genetic", "molecular", "mutation", "confirmed diagnosis")
PRIOR_THERAPY_EXCLUSION_KEYWORDS = (
    "no prior treatment",
    "treatment-naïve",
    "treatment naive",
    "previous therapy excluded",
)
ALL_STAGES_KEYWORDS = ("all disease stages", "all stages")
OBSERVATIONAL_PHASES = ("observational", "natural history")

GENETIC_QUESTION = "Do you have a confirmed genetic diagnosis?"
PRIOR_THERAPY_QUESTION = "Have you received any prior disease-specific therapy?"


class EligibilityAgent:
    """
    Legacy heuristic eligibility check.

    Works on the raw lower-cased eligibility text with substring checks
    rather than the criterion catalog.
    """

    def evaluate(self, patient: LegacyPatientInput, trial: Trial) -> EligibilityDecision:
        band: Band = INITIAL_BAND
        explanation = ExplanationCollector()
        follow_up_question: Optional[str] = None

        eligibility_text = (trial.eligibility_text or "").lower()
        logger.debug(
            f"EligibilityAgent for {trial.nct_id}: text_length={len(eligibility_text)} "
            f"genotype_known={patient.genotype_known} prior_therapy={patient.prior_therapy}"
        )

        # Age against the trial's numeric bounds
        age = patient.age_years
        min_age, max_age = trial.min_age_years, trial.max_age_years
        if age is not None and min_age is not None and max_age is not None:
            if min_age <= age <= max_age:
                explanation.reason("Age within eligibility range")
                band = apply_transition(band, BandTransition.PROMOTE)
            else:
                explanation.uncertainty("Age outside stated range")
                band = apply_transition(band, BandTransition.DEMOTE)
        elif age is not None and (min_age is not None or max_age is not None):
            if min_age is not None and age >= min_age:
                explanation.reason("Age meets minimum requirement")
            elif max_age is not None and age <= max_age:
                explanation.reason("Age meets maximum requirement")
            else:
                explanation.uncertainty("Age may not meet requirements")
                band = apply_transition(band, BandTransition.DEMOTE)

        # Genetic confirmation
        has_genetic_requirement = any(k in eligibility_text for k in GENETIC_KEYWORDS)
        logger.debug(f"  has_genetic_requirement={has_genetic_requirement}")
        if has_genetic_requirement:
            if patient.genotype_known == "yes":
                explanation.reason("Genetic diagnosis aligns with criteria")
                band = apply_transition(band, BandTransition.PROMOTE)
            elif patient.genotype_known == "no":
                explanation.uncertainty("Genetic diagnosis may be required")
                band = apply_transition(band, BandTransition.DEMOTE)
            else:
                explanation.uncertainty("Genetic confirmation likely required")
                follow_up_question = GENETIC_QUESTION

        # Prior therapy exclusion
        if any(k in eligibility_text for k in PRIOR_THERAPY_EXCLUSION_KEYWORDS):
            if patient.prior_therapy == "yes":
                explanation.uncertainty("Prior therapy may be exclusion")
                band = apply_transition(band, BandTransition.DISQUALIFY)
            elif patient.prior_therapy == "no":
                explanation.reason("Treatment-naïve status matches criteria")
            else:
                explanation.uncertainty("Prior therapy status may affect eligibility")
                if follow_up_question is None:
                    follow_up_question = PRIOR_THERAPY_QUESTION

        if any(k in eligibility_text for k in ALL_STAGES_KEYWORDS):
            explanation.reason("Study accepts all disease stages")

        if trial.phase and trial.phase.strip().lower() in OBSERVATIONAL_PHASES:
            explanation.reason("Observational study with broad inclusion")
            band = apply_transition(band, BandTransition.PROMOTE)

        reasons, uncertainties = explanation.finalize()
        return EligibilityDecision(
            band=band,
            reasons=reasons,
            uncertainties=uncertainties,
            follow_up_question=follow_up_question,
        )


# =============================================================================
# STEP 3: STRUCTURED (CATALOG) PATH
# =============================================================================

class EligibilityAgentV2:
    """
    Structured eligibility check over the criterion catalog.

    Accepts either patient variant; the variant is resolved once here and
    everything downstream works on a ClinicalPatientProfile.
    """

    def __init__(self, catalog: Optional[Sequence[CriterionExtractor]] = None):
        self.evaluator = CriterionEvaluator(catalog)

    def evaluate(self, patient: PatientInput, trial: Trial) -> EnhancedEligibilityDecision:
        profile = to_clinical_profile(patient)
        return self.evaluate_profile(profile, trial)

    def evaluate_profile(self, patient: ClinicalPatientProfile, trial: Trial) -> EnhancedEligibilityDecision:
        results = self.evaluator.evaluate_all(trial.eligibility_text, patient)

        band: Band = INITIAL_BAND
        explanation = ExplanationCollector()
        hard_failures: List[CriterionResult] = []

        for result in results:
            transition = transition_for(result)
            band = apply_transition(band, transition)

            if transition == BandTransition.DISQUALIFY:
                hard_failures.append(result)
                explanation.uncertainty(result.reason)
            elif result.status == "unknown" or transition == BandTransition.DEMOTE:
                explanation.uncertainty(result.reason)
            else:
                explanation.reason(result.reason)

        reasons, uncertainties = explanation.finalize()
        return EnhancedEligibilityDecision(
            band=band,
            score=BAND_SCORES[band],
            reasons=reasons,
            uncertainties=uncertainties,
            follow_up_question=self._follow_up_question(results),
            criteria=results,
            hard_failures=hard_failures,
        )

    def _follow_up_question(self, results: List[CriterionResult]) -> Optional[str]:
        pending = get_highest_priority_unknown(results, self.evaluator.catalog)
        if pending is None:
            return None
        rule = get_criterion(pending.criterion, self.evaluator.catalog)
        return rule.follow_up_question if rule else None


# Singleton instances
eligibility_agent = EligibilityAgent()
eligibility_agent_v2 = EligibilityAgentV2()
