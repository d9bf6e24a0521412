"""
Criterion Evaluator

Applies catalog rules to one trial's eligibility text and one patient.
A rule whose patterns find nothing contributes nothing: silence, not an
"unknown" result.
"""

import logging
from typing import List, Optional, Sequence

from ..schemas.eligibility import CriterionResult
from ..schemas.patient import ClinicalPatientProfile
from .criterion_catalog import (
    CRITERION_CATALOG,
    CriterionExtractor,
    catalog_in_priority_order,
    get_criterion,
)

logger = logging.getLogger(__name__)


class CriterionEvaluator:
    """Runs rules from a catalog (the global one unless another is given)."""

    def __init__(self, catalog: Optional[Sequence[CriterionExtractor]] = None):
        self.catalog = CRITERION_CATALOG if catalog is None else catalog

    def evaluate(
        self,
        rule: CriterionExtractor,
        eligibility_text: Optional[str],
        patient: ClinicalPatientProfile
    ) -> Optional[CriterionResult]:
        """
        Evaluate one rule.

        Returns None when the trial text does not mention the criterion.
        Otherwise the rule's evaluator is called exactly once.
        """
        if not eligibility_text:
            return None

        try:
            extracted = rule.extractor(eligibility_text)
            if extracted is None:
                return None
            return rule.evaluator(extracted, patient)
        except Exception:
            # Rule errors are contained to the rule
            logger.exception(f"Criterion '{rule.id}' failed; treating it as not mentioned")
            return None

    def evaluate_all(
        self,
        eligibility_text: Optional[str],
        patient: ClinicalPatientProfile
    ) -> List[CriterionResult]:
        """Evaluate every rule, in priority order, keeping only non-silent results."""
        results = []
        for rule in catalog_in_priority_order(self.catalog):
            result = self.evaluate(rule, eligibility_text, patient)
            if result is not None:
                results.append(result)
        return results


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def evaluate_single_criterion(
    criterion_id: str,
    eligibility_text: Optional[str],
    patient: ClinicalPatientProfile
) -> Optional[CriterionResult]:
    """
    Evaluate one registered rule by id.

    Returns None when the text does not mention the criterion.
    Raises KeyError when no rule is registered under criterion_id.

    Example:
        result = evaluate_single_criterion(
            "age",
            "Inclusion Criteria: ages 18 to 65 years",
            ClinicalPatientProfile(diagnosis="NPC", age_years=40),
        )
    """
    rule = get_criterion(criterion_id)
    if rule is None:
        raise KeyError(f"Unknown criterion: {criterion_id}")
    return CriterionEvaluator().evaluate(rule, eligibility_text, patient)
