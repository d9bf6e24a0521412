"""
Reasoning Summary

Turns an eligibility decision into one short paragraph a patient can read.
"""

from typing import Union

from ..schemas.eligibility import EligibilityDecision, EnhancedEligibilityDecision
from ..schemas.trial import Trial

BAND_PHRASES = {
    "High": "This trial appears highly suitable",
    "Medium": "This trial shows moderate suitability",
    "Low": "This trial has limited suitability",
}


def explain_decision(
    trial: Trial,
    decision: Union[EligibilityDecision, EnhancedEligibilityDecision]
) -> str:
    """
    Build a one-paragraph explanation for a decision.

    Args:
        trial: The trial the decision was made for
        decision: Output of either eligibility path

    Returns:
        A sentence (or two) ending with a period
    """
    explanation = BAND_PHRASES[decision.band]

    if decision.reasons:
        top_reasons = " and ".join(decision.reasons[:2]).lower()
        explanation += f" because {top_reasons}"

    if trial.phase:
        explanation += f" for this {trial.phase} study"

    if decision.uncertainties:
        explanation += f". However, {decision.uncertainties[0].lower()} which may affect eligibility"

    if not explanation.endswith("."):
        explanation += "."

    return explanation
