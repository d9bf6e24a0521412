"""
Pattern Mining Engine

Turns a condition name into corpus-level statistics:

1. Corpus assembly: search-term variants, one bounded batch per variant,
   de-duplicated by NCT id and truncated.
2. Eligibility patterns: age bounds, genetic-requirement frequency,
   common criteria terms.
3. Research insights: phase, geography, sponsor. Each rule yields at most
   one insight and only when its threshold is crossed.
4. Cross-trial patterns: genetic confirmation, drug-focused design.

All thresholds and confidences are heuristics read from Settings.
"""

import asyncio
import logging
import math
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

from ..core.config import Settings, settings as default_settings
from ..schemas.patterns import (
    AgePatterns,
    CriteriaTermFrequency,
    EligibilityPattern,
    GeneticRequirements,
    PatternMiningResult,
    ResearchInsight,
    TrialPattern,
)
from ..schemas.trial import Trial

logger = logging.getLogger(__name__)


GENETIC_TERMS = ["genetic", "mutation", "variant", "genotype", "molecular", "confirmed diagnosis"]
CROSS_TRIAL_GENETIC_TERMS = ["genetic", "molecular"]
COMMON_CRITERIA_TERMS = [
    "performance status",
    "prior therapy",
    "organ function",
    "laboratory values",
    "informed consent",
    "life expectancy",
]
MUTATION_PATTERN = re.compile(r"[A-Z]\d+[A-Z]")

SYNONYMS: Dict[str, List[str]] = {
    "cancer": ["carcinoma", "tumor", "neoplasm", "malignancy"],
    "diabetes": ["diabetic", "hyperglycemia"],
    "alzheimer": ["dementia", "cognitive decline"],
}
NIEMANN_PICK_TERMS = ["lysosomal storage disease", "sphingolipidosis"]
NON_INDUSTRY_MARKERS = ("university", "hospital", "institute")

SUPPORTING_TRIAL_LIMIT = 10
TOP_COUNTRIES = 3
TOP_SPONSORS = 5
DEFAULT_MIN_AGE = 0
DEFAULT_MAX_AGE = 100


# =============================================================================
# HELPERS
# =============================================================================

def generate_search_terms(condition: str) -> List[str]:
    """
    Expand a condition name into search-term variants.

    The condition itself always comes first; duplicates are dropped while
    keeping first-seen order.
    """
    terms = [condition]
    lowered = condition.lower()

    if "disease" in lowered:
        terms.append(re.sub("disease", "disorder", condition, flags=re.IGNORECASE))
        terms.append(re.sub("disease", "syndrome", condition, flags=re.IGNORECASE))

    if re.search(r"type\s+[A-Za-z0-9]+", condition, flags=re.IGNORECASE):
        stripped = re.sub(r"type\s+[A-Za-z0-9]+", "", condition, flags=re.IGNORECASE)
        stripped = re.sub(r"\s+", " ", stripped).strip()
        if stripped:
            terms.append(stripped)

    if "niemann-pick" in lowered:
        terms.extend(NIEMANN_PICK_TERMS)

    for key, synonyms in SYNONYMS.items():
        if key in lowered:
            terms.extend(synonyms)

    unique_terms = list(dict.fromkeys(terms))
    logger.debug(f"Search terms for '{condition}': {unique_terms}")
    return unique_terms


def deduplicate_trials(trials: List[Trial]) -> List[Trial]:
    """Drop repeated NCT ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for trial in trials:
        if not trial.nct_id or trial.nct_id in seen:
            continue
        seen.add(trial.nct_id)
        unique.append(trial)
    return unique


def parse_age(age: Optional[str]) -> Optional[int]:
    """First integer in a registry age string ("18 Years" -> 18)."""
    if not age:
        return None
    match = re.search(r"(\d+)", age)
    return int(match.group(1)) if match else None


def normalize_phase(phase: str) -> str:
    """Registry phase code in canonical form: "Phase II" / "phase 2" -> "PHASE2"."""
    code = re.sub(r"[\s_\-]+", "", phase.upper())
    roman = {"IV": "4", "III": "3", "II": "2", "I": "1"}
    match = re.fullmatch(r"PHASE(IV|III|II|I)", code)
    if match:
        return f"PHASE{roman[match.group(1)]}"
    return code


def _ratio(count: int, total: int) -> float:
    return count / total if total else 0.0


def _trial_age_bounds(trial: Trial) -> Tuple[Optional[int], Optional[int]]:
    min_age = parse_age(trial.minimum_age)
    max_age = parse_age(trial.maximum_age)
    if min_age is None and trial.min_age_years is not None:
        min_age = int(trial.min_age_years)
    if max_age is None and trial.max_age_years is not None:
        max_age = int(trial.max_age_years)
    return min_age, max_age


# =============================================================================
# ENGINE
# =============================================================================

class PatternMiningEngine:
    """
    Mines a corpus of trials for one condition.

    search_client is anything with
    `async fetch_trials(term: str, page_size: int) -> List[Trial]`,
    normally the ClinicalTrials.gov service.
    """

    def __init__(self, search_client, settings: Optional[Settings] = None):
        self.search_client = search_client
        self.settings = settings or default_settings

    async def mine_patterns(self, condition: str, max_trials: Optional[int] = None) -> PatternMiningResult:
        max_trials = max_trials or self.settings.MINING_MAX_TRIALS
        logger.info(f"Mining patterns for '{condition}' across up to {max_trials} trials")

        trials = await self.fetch_corpus(condition, max_trials)
        logger.info(f"Fetched {len(trials)} trials for '{condition}'")

        return PatternMiningResult(
            condition=condition,
            trials_analyzed=len(trials),
            eligibility_patterns=self.analyze_eligibility_patterns(trials),
            research_insights=self.identify_research_insights(trials),
            patterns=self.extract_cross_trial_patterns(trials),
        )

    # ===== STEP 1: CORPUS ASSEMBLY =====

    async def fetch_corpus(self, condition: str, max_trials: int) -> List[Trial]:
        terms = generate_search_terms(condition)
        batch_size = math.ceil(max_trials / len(terms))
        window = max(1, self.settings.MINING_CONCURRENCY)

        collected: List[Trial] = []
        for start in range(0, len(terms), window):
            if start > 0 and self.settings.MINING_BATCH_DELAY_SECONDS > 0:
                await asyncio.sleep(self.settings.MINING_BATCH_DELAY_SECONDS)
            batches = await asyncio.gather(
                *(self._fetch_batch(term, batch_size) for term in terms[start:start + window])
            )
            for batch in batches:
                collected.extend(batch)

        return deduplicate_trials(collected)[:max_trials]

    async def _fetch_batch(self, term: str, batch_size: int) -> List[Trial]:
        try:
            return await self.search_client.fetch_trials(term, batch_size)
        except Exception as e:
            logger.warning(f"Failed to fetch trials for term '{term}': {e}")
            return []

    # ===== STEP 2: ELIGIBILITY PATTERNS =====

    def analyze_eligibility_patterns(self, trials: List[Trial]) -> List[EligibilityPattern]:
        criteria = [t.eligibility_text for t in trials if t.eligibility_text]
        age_patterns = self.analyze_age_patterns(trials)

        return [
            EligibilityPattern(
                criteria_type="Age Requirements",
                frequency=age_patterns.frequency,
                total_trials=len(trials),
                associated_outcomes=[],
                age_patterns=age_patterns,
                genetic_requirements=self.analyze_genetic_requirements(criteria),
                criteria_patterns=self.analyze_criteria_patterns(criteria),
            )
        ]

    def analyze_age_patterns(self, trials: List[Trial]) -> AgePatterns:
        bounds = [_trial_age_bounds(t) for t in trials]
        bounds = [(low, high) for low, high in bounds if low is not None or high is not None]

        minimums = [low for low, _ in bounds if low is not None]
        maximums = [high for _, high in bounds if high is not None]
        complete = [(low, high) for low, high in bounds if low is not None and high is not None]

        if complete:
            most_common_range = (
                round(sum(low for low, _ in complete) / len(complete)),
                round(sum(high for _, high in complete) / len(complete)),
            )
        else:
            most_common_range = (DEFAULT_MIN_AGE, DEFAULT_MAX_AGE)

        return AgePatterns(
            frequency=_ratio(len(bounds), len(trials)),
            min_age=min(minimums) if minimums else DEFAULT_MIN_AGE,
            max_age=max(maximums) if maximums else DEFAULT_MAX_AGE,
            most_common_range=most_common_range,
        )

    def analyze_genetic_requirements(self, criteria: List[str]) -> GeneticRequirements:
        required_count = 0
        mutations: List[str] = []

        for text in criteria:
            lowered = text.lower()
            if any(term in lowered for term in GENETIC_TERMS):
                required_count += 1
            mutations.extend(MUTATION_PATTERN.findall(text))

        frequency = _ratio(required_count, len(criteria))
        return GeneticRequirements(
            required=frequency > self.settings.GENETIC_REQUIREMENT_THRESHOLD,
            specific_mutations=list(dict.fromkeys(mutations)),
            frequency=frequency,
        )

    def analyze_criteria_patterns(self, criteria: List[str]) -> List[CriteriaTermFrequency]:
        lowered = [text.lower() for text in criteria]
        return [
            CriteriaTermFrequency(
                term=term,
                frequency=_ratio(sum(1 for text in lowered if term in text), len(lowered)),
            )
            for term in COMMON_CRITERIA_TERMS
        ]

    # ===== STEP 3: RESEARCH INSIGHTS =====

    def identify_research_insights(self, trials: List[Trial]) -> List[ResearchInsight]:
        insights = []
        for rule in (self.analyze_trial_phases, self.analyze_geographic_patterns, self.analyze_sponsor_patterns):
            insight = rule(trials)
            if insight is not None:
                insights.append(insight)
        return insights

    def analyze_trial_phases(self, trials: List[Trial]) -> Optional[ResearchInsight]:
        phase_counts = Counter(normalize_phase(p) for t in trials for p in t.phases if p)
        total = sum(phase_counts.values())
        if not total:
            return None

        phase1, phase2 = phase_counts.get("PHASE1", 0), phase_counts.get("PHASE2", 0)
        early_share = (phase1 + phase2) / total
        if early_share <= self.settings.EARLY_PHASE_INSIGHT_THRESHOLD:
            return None

        return ResearchInsight(
            category="trend",
            title="Research Field in Early Development",
            description=(
                f"{round(early_share * 100)}% of trials are in Phase 1-2, indicating this is an "
                f"emerging research area with many experimental treatments."
            ),
            evidence=[f"{phase1} Phase 1 trials", f"{phase2} Phase 2 trials"],
            confidence=self.settings.PHASE_INSIGHT_CONFIDENCE,
            actionable=True,
            recommendation=(
                "Consider early-phase trials for access to cutting-edge treatments, "
                "but be aware of higher risks and uncertainty."
            ),
        )

    def analyze_geographic_patterns(self, trials: List[Trial]) -> Optional[ResearchInsight]:
        # One count per trial site, so multi-site countries weigh more
        country_counts = Counter(c for t in trials for c in t.countries if c)
        top_countries = country_counts.most_common(TOP_COUNTRIES)
        if not top_countries:
            return None

        names = ", ".join(country for country, _ in top_countries)
        return ResearchInsight(
            category="opportunity",
            title="Geographic Research Concentration",
            description=(
                f"Research is concentrated in {names}, which may indicate centers of "
                f"excellence or funding patterns."
            ),
            evidence=[f"{country}: {count} trials" for country, count in top_countries],
            confidence=self.settings.GEOGRAPHIC_INSIGHT_CONFIDENCE,
            actionable=True,
            recommendation="Consider trials in these regions for access to leading research programs.",
        )

    def analyze_sponsor_patterns(self, trials: List[Trial]) -> Optional[ResearchInsight]:
        sponsor_counts = Counter(t.lead_sponsor for t in trials if t.lead_sponsor)
        top_sponsors = sponsor_counts.most_common(TOP_SPONSORS)
        if not top_sponsors:
            return None

        industry = [
            (sponsor, count) for sponsor, count in top_sponsors
            if not any(marker in sponsor.lower() for marker in NON_INDUSTRY_MARKERS)
        ]
        industry_share = len(industry) / len(top_sponsors)
        if industry_share <= self.settings.INDUSTRY_SPONSOR_THRESHOLD:
            return None

        return ResearchInsight(
            category="trend",
            title="High Industry Investment",
            description=(
                f"{round(industry_share * 100)}% of leading sponsors are pharmaceutical companies, "
                f"indicating strong commercial interest."
            ),
            evidence=[f"{sponsor}: {count} trials" for sponsor, count in industry],
            confidence=self.settings.SPONSOR_INSIGHT_CONFIDENCE,
            actionable=True,
            recommendation="Strong industry involvement suggests potential for drug approval and commercialization.",
        )

    # ===== STEP 4: CROSS-TRIAL PATTERNS =====

    def extract_cross_trial_patterns(self, trials: List[Trial]) -> List[TrialPattern]:
        patterns = []
        for finder in (self.find_common_eligibility_pattern, self.find_design_pattern):
            pattern = finder(trials)
            if pattern is not None:
                patterns.append(pattern)
        return patterns

    def find_common_eligibility_pattern(self, trials: List[Trial]) -> Optional[TrialPattern]:
        criteria = [t.eligibility_text.lower() for t in trials if t.eligibility_text]
        genetic_count = sum(1 for text in criteria if any(term in text for term in CROSS_TRIAL_GENETIC_TERMS))
        share = _ratio(genetic_count, len(criteria))
        if share <= self.settings.GENETIC_PATTERN_THRESHOLD:
            return None

        return TrialPattern(
            pattern_type="eligibility",
            pattern="Genetic confirmation required",
            confidence=share,
            supporting_trials=self._supporting_trials(trials),
            insight=f"{round(share * 100)}% of trials require genetic or molecular confirmation of diagnosis.",
            recommendation="Ensure genetic testing is completed before applying to trials in this condition.",
        )

    def find_design_pattern(self, trials: List[Trial]) -> Optional[TrialPattern]:
        intervention_types = [kind for t in trials for kind in t.intervention_types if kind]
        drug_count = sum(1 for kind in intervention_types if kind.upper() == "DRUG")
        share = _ratio(drug_count, len(intervention_types))
        if share <= self.settings.DRUG_FOCUS_THRESHOLD:
            return None

        return TrialPattern(
            pattern_type="design",
            pattern="Drug-focused research",
            confidence=share,
            supporting_trials=self._supporting_trials(trials),
            insight=f"{round(share * 100)}% of interventions are drug-based therapies.",
            recommendation=(
                "Research is heavily focused on pharmaceutical interventions rather than devices or procedures."
            ),
        )

    @staticmethod
    def _supporting_trials(trials: List[Trial]) -> List[str]:
        return [t.nct_id for t in trials[:SUPPORTING_TRIAL_LIMIT]]
