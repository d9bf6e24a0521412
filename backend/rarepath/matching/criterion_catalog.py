"""
Criterion Catalog

A flat registry of eligibility rules. Each rule pairs an ordered list of
regular expressions with a pure extractor (trial text -> ExtractedValue)
and a pure evaluator (ExtractedValue + patient -> CriterionResult).

Rules are plain records, not subclasses: a new rule is added by appending
a descriptor with `register_criterion`, and nothing that dispatches over
the catalog has to change.
"""

import re
from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, List, Optional, Sequence, Tuple

from ..schemas.eligibility import CriterionResult, ExtractedValue, Intent
from ..schemas.patient import ClinicalPatientProfile


# =============================================================================
# STEP 1: RULE DESCRIPTOR AND CONFIDENCE CONSTANTS
# =============================================================================

# Fixed per branch, reflecting how much the linguistic pattern can be trusted
RANGE_MATCH_CONFIDENCE = 0.9
DEFINITE_MISS_CONFIDENCE = 0.9
LEXICAL_MATCH_CONFIDENCE = 0.8
NO_INFORMATION_CONFIDENCE = 0.0

Extractor = Callable[[str], Optional[ExtractedValue]]
Evaluator = Callable[[ExtractedValue, ClinicalPatientProfile], CriterionResult]


@dataclass(frozen=True)
class CriterionExtractor:
    """
    Descriptor for one eligibility rule.

    priority is only used to choose which unresolved rule becomes the
    follow-up question (higher wins, ties go to the earlier registration).
    """
    id: str
    name: str
    intent: Intent
    patterns: Tuple[Pattern, ...]
    extractor: Extractor
    evaluator: Evaluator
    priority: int
    follow_up_question: str


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _first_match(patterns: Sequence[Pattern], text: str) -> Optional[Tuple[int, Match]]:
    """Return (index, match) for the first pattern, in declaration order, that matches."""
    for index, pattern in enumerate(patterns):
        match = pattern.search(text)
        if match:
            return index, match
    return None


def _unknown(criterion: str, intent: Intent, extracted: ExtractedValue, reason: str) -> CriterionResult:
    return CriterionResult(
        intent=intent,
        criterion=criterion,
        status="unknown",
        confidence=NO_INFORMATION_CONFIDENCE,
        extracted_value=extracted.raw,
        patient_value=None,
        reason=reason,
    )


def _compare(actual: float, extracted: ExtractedValue) -> bool:
    if extracted.operator == "between" and extracted.range is not None:
        low, high = extracted.range
        return low <= actual <= high
    if extracted.value is None:
        return False
    threshold = float(extracted.value)
    if extracted.operator == ">=":
        return actual >= threshold
    if extracted.operator == ">":
        return actual > threshold
    if extracted.operator == "<=":
        return actual <= threshold
    if extracted.operator == "<":
        return actual < threshold
    if extracted.operator == "=":
        return actual == threshold
    return False


# =============================================================================
# STEP 2: AGE REQUIREMENTS
# Range patterns come first so "ages 18 to 65" is never read as a bare minimum
# =============================================================================

AGE_RANGE_PATTERNS = _compile(
    r"\bage[sd]?\s*:?\s*(?:between|from)?\s*(\d+)\s*(?:years?\s*)?(?:-|–|to|and)\s*(\d+)",  # "Age: 18-65", "aged 18 years to 65"
    r"(\d+)\s*(?:years?\s*)?(?:-|–|to)\s*(\d+)\s*years?\s*(?:of\s*age|old)",   # "18-65 years of age"
    r"\bbetween\s*(\d+)\s*(?:years?\s*)?and\s*(\d+)\s*years?\s*(?:of\s*age|old)",  # "between 18 and 65 years of age"
    r"\badults?\s*(?:aged\s*)?(\d+)\s*(?:-|–|to)\s*(\d+)",                     # "adults 18–75 years"
)
AGE_MIN_PATTERNS = _compile(
    r"(?:≥|>=|at least)\s*(\d+)\s*years?\s*(?:of\s*age|old)",                  # "≥12 years of age"
    r"(\d+)\s*years?\s*(?:of\s*age\s*|old\s*)?(?:or|and)\s*(?:older|above|over)",  # "18 years or older"
    r"\bage[sd]?\s*(\d+)\s*(?:or|and)\s*(?:older|above|over)",                 # "ages 18 and older"
    r"\bage[sd]?\s*:?\s*(?:≥|>=|at least)\s*(\d+)",                            # "Age ≥ 18 years"
)
AGE_MAX_PATTERNS = _compile(
    r"(?:≤|<=|no more than|maximum(?:\s*age)?(?:\s*of)?)\s*(\d+)\s*years?\s*(?:of\s*age|old)",  # "no more than 75 years old"
    r"(\d+)\s*years?\s*(?:of\s*age\s*|old\s*)?(?:or|and)\s*(?:younger|under|below)",
    r"\bage[sd]?\s*:?\s*(?:≤|<=)\s*(\d+)",                                     # "Age ≤ 65"
)
AGE_PATTERNS = AGE_RANGE_PATTERNS + AGE_MIN_PATTERNS + AGE_MAX_PATTERNS


def extract_age(text: str) -> Optional[ExtractedValue]:
    found = _first_match(AGE_PATTERNS, text)
    if found is None:
        return None
    index, match = found
    if index < len(AGE_RANGE_PATTERNS):
        low, high = int(match.group(1)), int(match.group(2))
        return ExtractedValue(raw=match.group(0), operator="between", range=(low, high), unit="years")
    operator = ">=" if index < len(AGE_RANGE_PATTERNS) + len(AGE_MIN_PATTERNS) else "<="
    return ExtractedValue(raw=match.group(0), operator=operator, value=int(match.group(1)), unit="years")


def evaluate_age(extracted: ExtractedValue, patient: ClinicalPatientProfile) -> CriterionResult:
    if patient.age_years is None:
        return _unknown("age", "include", extracted, "Patient age not provided")

    hit = _compare(patient.age_years, extracted)
    return CriterionResult(
        intent="include",
        criterion="age",
        status="hit" if hit else "miss",
        confidence=RANGE_MATCH_CONFIDENCE,
        extracted_value=extracted.raw,
        patient_value=patient.age_years,
        reason=(
            f"Age {patient.age_years} meets requirement: {extracted.raw}"
            if hit else
            f"Age {patient.age_years} does not meet requirement: {extracted.raw}"
        ),
    )


AGE_CRITERION = CriterionExtractor(
    id="age",
    name="Age Requirements",
    intent="include",
    patterns=AGE_PATTERNS,
    extractor=extract_age,
    evaluator=evaluate_age,
    priority=10,
    follow_up_question="How old are you?",
)


# =============================================================================
# STEP 3: GENETIC / MOLECULAR CONFIRMATION
# =============================================================================

GENETIC_PATTERNS = _compile(
    r"genetic(?:ally)?\s*confirmed",
    r"molecular(?:ly)?\s*confirmed",
    r"confirmed\s*(?:genetic\s*)?diagnosis",
)


def extract_genetic_requirement(text: str) -> Optional[ExtractedValue]:
    found = _first_match(GENETIC_PATTERNS, text)
    if found is None:
        return None
    return ExtractedValue(raw=found[1].group(0), value="required")


def evaluate_genetic_requirement(extracted: ExtractedValue, patient: ClinicalPatientProfile) -> CriterionResult:
    if patient.genotype_known == "yes" or (patient.gene and patient.diagnosis_codes is not None):
        return CriterionResult(
            intent="include",
            criterion="genetic",
            status="hit",
            confidence=LEXICAL_MATCH_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="confirmed",
            reason="Genetic diagnosis is confirmed",
        )
    if patient.genotype_known == "no":
        return CriterionResult(
            intent="include",
            criterion="genetic",
            status="miss",
            confidence=DEFINITE_MISS_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="not confirmed",
            reason="Genetic confirmation required but not available",
        )
    return _unknown("genetic", "include", extracted, "Genetic confirmation status unknown")


GENETIC_CRITERION = CriterionExtractor(
    id="genetic",
    name="Genetic Confirmation",
    intent="include",
    patterns=GENETIC_PATTERNS,
    extractor=extract_genetic_requirement,
    evaluator=evaluate_genetic_requirement,
    priority=9,
    follow_up_question="Do you have a confirmed genetic diagnosis?",
)


# =============================================================================
# STEP 4: PRIOR THERAPY EXCLUSION
# =============================================================================

PRIOR_THERAPY_PATTERNS = _compile(
    r"no\s*prior\s*(?:systemic\s*)?(?:anti-?cancer\s*)?(?:treatment|therapy)",
    r"treatment[-\s]na[iï]ve",
    r"na[iï]ve\s*to\s*(?:systemic\s*)?treatment",
    r"no\s*previous\s*(?:treatment|therapy)",
)


def extract_prior_therapy_exclusion(text: str) -> Optional[ExtractedValue]:
    found = _first_match(PRIOR_THERAPY_PATTERNS, text)
    if found is None:
        return None
    return ExtractedValue(raw=found[1].group(0), value="excluded")


def evaluate_prior_therapy_exclusion(extracted: ExtractedValue, patient: ClinicalPatientProfile) -> CriterionResult:
    lines = patient.lines_of_therapy
    if patient.prior_therapy == "yes" or (lines is not None and lines > 0):
        return CriterionResult(
            intent="exclude",
            criterion="prior_therapy_exclusion",
            status="hit",
            confidence=LEXICAL_MATCH_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="has prior therapy",
            reason="Patient has prior therapy but trial excludes prior treatment",
        )
    if patient.prior_therapy == "no" or lines == 0:
        return CriterionResult(
            intent="exclude",
            criterion="prior_therapy_exclusion",
            status="miss",
            confidence=DEFINITE_MISS_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="treatment naive",
            reason="Patient is treatment-naive, meets exclusion requirement",
        )
    return _unknown("prior_therapy_exclusion", "exclude", extracted, "Prior therapy status unknown")


PRIOR_THERAPY_EXCLUSION_CRITERION = CriterionExtractor(
    id="prior_therapy_exclusion",
    name="Prior Therapy Exclusion",
    intent="exclude",
    patterns=PRIOR_THERAPY_PATTERNS,
    extractor=extract_prior_therapy_exclusion,
    evaluator=evaluate_prior_therapy_exclusion,
    priority=8,
    follow_up_question="Have you received any prior disease-specific therapy?",
)


# =============================================================================
# STEP 5: ECOG PERFORMANCE STATUS
# ECOG 0-4 scale: lower is better (0 = fully active)
# =============================================================================

ECOG_RANGE_PATTERNS = _compile(
    r"ecog\s*(?:performance\s*status\s*)?(?:\(ps\)\s*)?(?:of\s*)?(\d)\s*(?:-|–|to|or)\s*(\d)",  # "ECOG 0-2", "ECOG 0 or 1"
)
ECOG_MAX_PATTERNS = _compile(
    r"ecog\s*(?:performance\s*status\s*)?(?:score\s*)?(?:of\s*)?(\d)\s*or\s*(?:less|lower|better)",  # "ECOG 1 or less"
    r"ecog\s*(?:performance\s*status\s*)?(?:score\s*)?(?:of\s*)?(≤|<=|<)\s*(\d)",                    # "ECOG ≤ 1"
)
ECOG_PATTERNS = ECOG_RANGE_PATTERNS + ECOG_MAX_PATTERNS


def extract_ecog(text: str) -> Optional[ExtractedValue]:
    found = _first_match(ECOG_PATTERNS, text)
    if found is None:
        return None
    index, match = found
    if index < len(ECOG_RANGE_PATTERNS):
        low, high = sorted((int(match.group(1)), int(match.group(2))))
        return ExtractedValue(raw=match.group(0), operator="between", range=(low, high))
    if match.lastindex == 1:
        return ExtractedValue(raw=match.group(0), operator="<=", value=int(match.group(1)))
    operator = "<" if match.group(1) == "<" else "<="
    return ExtractedValue(raw=match.group(0), operator=operator, value=int(match.group(2)))


def evaluate_ecog(extracted: ExtractedValue, patient: ClinicalPatientProfile) -> CriterionResult:
    ecog = patient.performance.ecog
    if ecog is None:
        return _unknown("ecog", "include", extracted, "Patient ECOG status not provided")

    hit = _compare(ecog, extracted)
    return CriterionResult(
        intent="include",
        criterion="ecog",
        status="hit" if hit else "miss",
        confidence=RANGE_MATCH_CONFIDENCE,
        extracted_value=extracted.raw,
        patient_value=ecog,
        reason=(
            f"ECOG {ecog} meets requirement: {extracted.raw}"
            if hit else
            f"ECOG {ecog} does not meet requirement: {extracted.raw}"
        ),
    )


ECOG_CRITERION = CriterionExtractor(
    id="ecog",
    name="Performance Status",
    intent="include",
    patterns=ECOG_PATTERNS,
    extractor=extract_ecog,
    evaluator=evaluate_ecog,
    priority=7,
    follow_up_question="How would you describe your current activity level (ECOG performance status)?",
)


# =============================================================================
# STEP 6: PREGNANCY / LACTATION EXCLUSION
# =============================================================================

PREGNANCY_PATTERNS = _compile(
    r"\bpregnant\b",
    r"\bbreast[-\s]?feeding\b",
    r"\blactating\b",
    r"\bnursing\s+(?:women|mothers)\b",
)


def extract_pregnancy_exclusion(text: str) -> Optional[ExtractedValue]:
    found = _first_match(PREGNANCY_PATTERNS, text)
    if found is None:
        return None
    return ExtractedValue(raw=found[1].group(0), value="excluded")


def evaluate_pregnancy_exclusion(extracted: ExtractedValue, patient: ClinicalPatientProfile) -> CriterionResult:
    if patient.pregnant == "yes" or patient.lactating == "yes":
        return CriterionResult(
            intent="exclude",
            criterion="pregnancy_exclusion",
            status="hit",
            confidence=DEFINITE_MISS_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="pregnant or lactating",
            reason="Trial excludes pregnant or breastfeeding patients",
        )
    if patient.sex_at_birth == "male" or (patient.pregnant == "no" and patient.lactating == "no"):
        return CriterionResult(
            intent="exclude",
            criterion="pregnancy_exclusion",
            status="miss",
            confidence=DEFINITE_MISS_CONFIDENCE,
            extracted_value=extracted.raw,
            patient_value="not pregnant or lactating",
            reason="Patient is not pregnant or breastfeeding",
        )
    return _unknown("pregnancy_exclusion", "exclude", extracted, "Pregnancy and lactation status unknown")


PREGNANCY_EXCLUSION_CRITERION = CriterionExtractor(
    id="pregnancy_exclusion",
    name="Pregnancy or Lactation Exclusion",
    intent="exclude",
    patterns=PREGNANCY_PATTERNS,
    extractor=extract_pregnancy_exclusion,
    evaluator=evaluate_pregnancy_exclusion,
    priority=6,
    follow_up_question="Are you currently pregnant or breastfeeding?",
)


# =============================================================================
# STEP 7: REGISTRY
# =============================================================================

CRITERION_CATALOG: List[CriterionExtractor] = [
    AGE_CRITERION,
    GENETIC_CRITERION,
    PRIOR_THERAPY_EXCLUSION_CRITERION,
    ECOG_CRITERION,
    PREGNANCY_EXCLUSION_CRITERION,
]


def register_criterion(
    descriptor: CriterionExtractor,
    catalog: Optional[List[CriterionExtractor]] = None
) -> CriterionExtractor:
    """Append a rule to the catalog. Ids must be unique."""
    target = CRITERION_CATALOG if catalog is None else catalog
    if any(existing.id == descriptor.id for existing in target):
        raise ValueError(f"Criterion '{descriptor.id}' is already registered")
    target.append(descriptor)
    return descriptor


def get_criterion(
    criterion_id: str,
    catalog: Optional[Sequence[CriterionExtractor]] = None
) -> Optional[CriterionExtractor]:
    source = CRITERION_CATALOG if catalog is None else catalog
    for descriptor in source:
        if descriptor.id == criterion_id:
            return descriptor
    return None


def catalog_in_priority_order(
    catalog: Optional[Sequence[CriterionExtractor]] = None
) -> List[CriterionExtractor]:
    """Rules sorted by descending priority; equal priorities keep declaration order."""
    source = CRITERION_CATALOG if catalog is None else catalog
    return sorted(source, key=lambda descriptor: -descriptor.priority)


def get_highest_priority_unknown(
    results: Sequence[CriterionResult],
    catalog: Optional[Sequence[CriterionExtractor]] = None
) -> Optional[CriterionResult]:
    """
    Pick the unresolved result whose rule should drive the follow-up question.

    Highest rule priority wins; ties are broken by catalog declaration order.
    Results for rules that are not in the catalog rank below every registered rule.
    """
    source = list(CRITERION_CATALOG if catalog is None else catalog)
    position = {descriptor.id: index for index, descriptor in enumerate(source)}
    priority = {descriptor.id: descriptor.priority for descriptor in source}

    unknowns = [result for result in results if result.status == "unknown"]
    if not unknowns:
        return None

    return min(
        unknowns,
        key=lambda result: (
            result.criterion not in priority,
            -priority.get(result.criterion, 0),
            position.get(result.criterion, len(source)),
        ),
    )
