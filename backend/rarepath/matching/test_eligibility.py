"""
Tests for the eligibility decision paths and the reasoning summary

Run with: python -m pytest backend/rarepath/matching/test_eligibility.py -v
"""

from dataclasses import replace

import pytest

from rarepath.matching.criterion_catalog import AGE_CRITERION
from rarepath.matching.eligibility import (
    BAND_SCORES,
    GENETIC_QUESTION,
    LIMITED_INFORMATION,
    PRIOR_THERAPY_QUESTION,
    BandTransition,
    EligibilityAgent,
    EligibilityAgentV2,
    ExplanationCollector,
    apply_transition,
    eligibility_agent,
    eligibility_agent_v2,
    fold_band,
)
from rarepath.matching.reasoning import explain_decision
from rarepath.schemas.eligibility import EligibilityDecision
from rarepath.schemas.patient import ClinicalPatientProfile, LegacyPatientInput
from rarepath.schemas.trial import Trial


def make_trial(**fields) -> Trial:
    defaults = {"nct_id": "NCT01234567", "title": "Natural history of NPC"}
    defaults.update(fields)
    return Trial(**defaults)


# =============================================================================
# BAND REDUCER
# =============================================================================

def test_band_transitions():
    assert apply_transition("Medium", BandTransition.PROMOTE) == "High"
    assert apply_transition("High", BandTransition.PROMOTE) == "High"
    assert apply_transition("High", BandTransition.DEMOTE) == "Medium"
    assert apply_transition("Medium", BandTransition.DEMOTE) == "Low"
    assert apply_transition("High", BandTransition.DISQUALIFY) == "Low"
    assert apply_transition("Medium", BandTransition.KEEP) == "Medium"


def test_low_is_absorbing():
    """Nothing after a disqualifying match can improve the band."""
    band = fold_band([BandTransition.DISQUALIFY, BandTransition.PROMOTE, BandTransition.PROMOTE])
    assert band == "Low"


# =============================================================================
# LEGACY PATH
# =============================================================================

def test_legacy_age_hit_with_prior_therapy_conflict():
    print("\n" + "=" * 60)
    print("TEST: Legacy end-to-end")
    print("=" * 60)

    trial = make_trial(min_age_years=18, max_age_years=75, eligibility_text="treatment-naïve patients only")
    patient = LegacyPatientInput(age_years=52, prior_therapy="yes")

    decision = eligibility_agent.evaluate(patient, trial)
    print(f"Band: {decision.band}")
    print(f"Reasons: {decision.reasons}")
    print(f"Uncertainties: {decision.uncertainties}")

    assert decision.band == "Low"
    assert decision.reasons == ["Age within eligibility range"]
    assert decision.uncertainties == ["Prior therapy may be exclusion"]


def test_legacy_age_outside_range_demotes():
    trial = make_trial(min_age_years=18, max_age_years=40)
    decision = eligibility_agent.evaluate(LegacyPatientInput(age_years=52), trial)
    assert decision.band == "Low"
    assert decision.uncertainties == ["Age outside stated range"]


def test_legacy_single_age_bound():
    decision = eligibility_agent.evaluate(LegacyPatientInput(age_years=30), make_trial(min_age_years=18))
    assert decision.reasons == ["Age meets minimum requirement"]
    assert decision.band == "Medium"

    decision = eligibility_agent.evaluate(LegacyPatientInput(age_years=10), make_trial(min_age_years=18))
    assert decision.uncertainties == ["Age may not meet requirements"]
    assert decision.band == "Low"


def test_legacy_genetic_unknown_asks_follow_up():
    trial = make_trial(eligibility_text="Diagnosis genetically confirmed. No prior treatment allowed.")
    decision = eligibility_agent.evaluate(LegacyPatientInput(), trial)

    assert decision.follow_up_question == GENETIC_QUESTION
    assert "Genetic confirmation likely required" in decision.uncertainties
    assert "Prior therapy status may affect eligibility" in decision.uncertainties
    assert decision.band == "Medium"


def test_legacy_prior_therapy_follow_up_when_no_genetic_question():
    trial = make_trial(eligibility_text="Treatment naive subjects")
    decision = eligibility_agent.evaluate(LegacyPatientInput(), trial)
    assert decision.follow_up_question == PRIOR_THERAPY_QUESTION


def test_legacy_reasons_are_capped():
    trial = make_trial(
        min_age_years=18,
        max_age_years=75,
        phase="Observational",
        eligibility_text="Genetic confirmation required; treatment naive; all stages accepted",
    )
    patient = LegacyPatientInput(age_years=30, genotype_known="yes", prior_therapy="no")
    decision = eligibility_agent.evaluate(patient, trial)

    assert decision.band == "High"
    assert decision.reasons == [
        "Age within eligibility range",
        "Genetic diagnosis aligns with criteria",
        "Treatment-naïve status matches criteria",
        "Study accepts all disease stages",
    ]


def test_explanation_collector_drops_repeats():
    explanation = ExplanationCollector()
    explanation.reason("Age within eligibility range")
    explanation.reason("Age within eligibility range")
    explanation.uncertainty("Prior therapy may be exclusion")
    explanation.uncertainty("Prior therapy may be exclusion")

    reasons, uncertainties = explanation.finalize()
    assert reasons == ["Age within eligibility range"]
    assert uncertainties == ["Prior therapy may be exclusion"]


def test_legacy_without_information():
    decision = eligibility_agent.evaluate(LegacyPatientInput(), make_trial())
    assert decision.band == "Medium"
    assert decision.reasons == []
    assert decision.uncertainties == [LIMITED_INFORMATION]
    assert decision.follow_up_question is None


def test_legacy_is_deterministic():
    trial = make_trial(min_age_years=2, max_age_years=40, eligibility_text="Molecular diagnosis required")
    patient = LegacyPatientInput(age_years=12, genotype_known="no")
    first = EligibilityAgent().evaluate(patient, trial)
    second = EligibilityAgent().evaluate(patient, trial)
    assert first.model_dump_json() == second.model_dump_json()


# =============================================================================
# STRUCTURED PATH
# =============================================================================

def test_structured_follow_up_uses_highest_priority_unknown():
    trial = make_trial(eligibility_text="No prior treatment. Inclusion Criteria: ages 18 to 65 years")
    decision = eligibility_agent_v2.evaluate(ClinicalPatientProfile(diagnosis="NPC"), trial)

    assert [c.criterion for c in decision.criteria] == ["age", "prior_therapy_exclusion"]
    assert decision.follow_up_question == "How old are you?"
    assert decision.band == "Medium"
    assert decision.score == BAND_SCORES["Medium"]


def test_structured_genetic_unknown_asks_follow_up():
    trial = make_trial(eligibility_text="Genetically confirmed diagnosis of NPC")
    decision = eligibility_agent_v2.evaluate(LegacyPatientInput(), trial)
    assert decision.follow_up_question == "Do you have a confirmed genetic diagnosis?"


def test_structured_exclusion_hit_is_hard_failure():
    trial = make_trial(eligibility_text="Ages 18 to 75 years. Treatment-naïve patients only.")
    patient = LegacyPatientInput(age_years=52, prior_therapy="yes")
    decision = eligibility_agent_v2.evaluate(patient, trial)

    assert decision.band == "Low"
    assert decision.score == BAND_SCORES["Low"]
    assert [f.criterion for f in decision.hard_failures] == ["prior_therapy_exclusion"]
    assert decision.follow_up_question is None


def test_structured_all_hits_is_high():
    trial = make_trial(eligibility_text="Ages 18 to 75 years. Genetically confirmed. ECOG 0-2.")
    patient = ClinicalPatientProfile(
        diagnosis="NPC",
        age_years=30,
        genotype_known="yes",
        performance={"ecog": 1},
    )
    decision = eligibility_agent_v2.evaluate(patient, trial)
    assert decision.band == "High"
    assert decision.score == 15
    assert len(decision.reasons) == 3
    assert decision.hard_failures == []


def test_structured_same_reason_from_two_rules_appears_once():
    twin = replace(AGE_CRITERION, id="age_twin", priority=9)
    agent = EligibilityAgentV2([AGE_CRITERION, twin])
    trial = make_trial(eligibility_text="Inclusion Criteria: ages 18 to 65 years")

    known = agent.evaluate(ClinicalPatientProfile(diagnosis="NPC", age_years=40), trial)
    assert len(known.criteria) == 2
    assert known.criteria[0].reason == known.criteria[1].reason
    assert known.reasons == [known.criteria[0].reason]

    unknown = agent.evaluate(ClinicalPatientProfile(diagnosis="NPC"), trial)
    assert len(unknown.criteria) == 2
    assert unknown.uncertainties == ["Patient age not provided"]


def test_structured_without_text_reports_limited_information():
    decision = EligibilityAgentV2().evaluate(ClinicalPatientProfile(diagnosis="NPC"), make_trial())
    assert decision.criteria == []
    assert decision.uncertainties == [LIMITED_INFORMATION]


def test_structured_is_deterministic():
    trial = make_trial(eligibility_text="Ages 18 to 65. Pregnant women excluded. ECOG ≤ 1")
    patient = ClinicalPatientProfile(diagnosis="NPC", age_years=33, sex_at_birth="female")
    first = eligibility_agent_v2.evaluate(patient, trial)
    second = eligibility_agent_v2.evaluate(patient, trial)
    assert first.model_dump_json() == second.model_dump_json()


# =============================================================================
# REASONING SUMMARY
# =============================================================================

def test_explain_decision():
    trial = make_trial(phase="PHASE2")
    decision = EligibilityDecision(
        band="High",
        reasons=["Age within eligibility range", "Genetic diagnosis aligns with criteria", "Other"],
        uncertainties=["Prior therapy status may affect eligibility"],
    )
    assert explain_decision(trial, decision) == (
        "This trial appears highly suitable because age within eligibility range and "
        "genetic diagnosis aligns with criteria for this PHASE2 study. However, prior therapy "
        "status may affect eligibility which may affect eligibility."
    )


def test_explain_decision_minimal():
    decision = EligibilityDecision(band="Low")
    assert explain_decision(make_trial(), decision) == "This trial has limited suitability."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
