"""
Eligibility Matching Module

Rule catalog, per-rule evaluation and the band/score aggregation that turns
one patient and one trial into an eligibility decision.
"""

from .criterion_catalog import (
    # Rule descriptor
    CriterionExtractor,

    # Registry
    CRITERION_CATALOG,
    register_criterion,
    get_criterion,
    catalog_in_priority_order,
    get_highest_priority_unknown,

    # Confidence constants
    RANGE_MATCH_CONFIDENCE,
    DEFINITE_MISS_CONFIDENCE,
    LEXICAL_MATCH_CONFIDENCE,
    NO_INFORMATION_CONFIDENCE,
)
from .criterion_evaluator import CriterionEvaluator, evaluate_single_criterion
from .eligibility import (
    BAND_SCORES,
    BandTransition,
    EligibilityAgent,
    EligibilityAgentV2,
    apply_transition,
    fold_band,

    # Global instances
    eligibility_agent,
    eligibility_agent_v2,
)
from .reasoning import explain_decision

__all__ = [
    "CriterionExtractor",
    "CRITERION_CATALOG",
    "register_criterion",
    "get_criterion",
    "catalog_in_priority_order",
    "get_highest_priority_unknown",
    "RANGE_MATCH_CONFIDENCE",
    "DEFINITE_MISS_CONFIDENCE",
    "LEXICAL_MATCH_CONFIDENCE",
    "NO_INFORMATION_CONFIDENCE",
    "CriterionEvaluator",
    "evaluate_single_criterion",
    "BAND_SCORES",
    "BandTransition",
    "EligibilityAgent",
    "EligibilityAgentV2",
    "apply_transition",
    "fold_band",
    "eligibility_agent",
    "eligibility_agent_v2",
    "explain_decision",
]
