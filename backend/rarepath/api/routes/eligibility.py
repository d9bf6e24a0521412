from fastapi import APIRouter, HTTPException

from ...matching.criterion_catalog import CRITERION_CATALOG, CriterionExtractor, catalog_in_priority_order, get_criterion
from ...matching.eligibility import eligibility_agent, eligibility_agent_v2
from ...matching.reasoning import explain_decision
from ...schemas.api import (
    CriteriaCatalogResponse,
    CriterionSummary,
    EligibilityRequest,
    EligibilityResponse,
    LegacyEligibilityRequest,
    LegacyEligibilityResponse,
)

router = APIRouter()


def _summarize(rule: CriterionExtractor) -> CriterionSummary:
    return CriterionSummary(
        id=rule.id,
        name=rule.name,
        intent=rule.intent,
        priority=rule.priority,
        follow_up_question=rule.follow_up_question,
        pattern_count=len(rule.patterns),
    )


@router.post("/legacy", response_model=LegacyEligibilityResponse)
async def evaluate_legacy(request: LegacyEligibilityRequest):
    """Keyword-based eligibility check using only age, genotype and prior therapy."""
    decision = eligibility_agent.evaluate(request.patient, request.trial)
    return LegacyEligibilityResponse(decision=decision, explanation=explain_decision(request.trial, decision))


@router.post("", response_model=EligibilityResponse)
async def evaluate(request: EligibilityRequest):
    """
    Structured eligibility check over the criterion catalog.

    Accepts either a legacy or a clinical patient, tagged by `kind`.
    """
    decision = eligibility_agent_v2.evaluate(request.patient, request.trial)
    return EligibilityResponse(decision=decision, explanation=explain_decision(request.trial, decision))


@router.get("/criteria", response_model=CriteriaCatalogResponse)
async def list_criteria():
    """Registered rules, highest priority first."""
    return CriteriaCatalogResponse(criteria=[_summarize(rule) for rule in catalog_in_priority_order(CRITERION_CATALOG)])


@router.get("/criteria/{criterion_id}", response_model=CriterionSummary)
async def get_criterion_summary(criterion_id: str):
    rule = get_criterion(criterion_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Unknown criterion: {criterion_id}")
    return _summarize(rule)
