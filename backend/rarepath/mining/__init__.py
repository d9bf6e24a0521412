"""
Pattern Mining Module

Corpus-level statistics over many trials of one condition.
"""

from .pattern_mining import (
    PatternMiningEngine,
    deduplicate_trials,
    generate_search_terms,
    normalize_phase,
    parse_age,
)

__all__ = [
    "PatternMiningEngine",
    "deduplicate_trials",
    "generate_search_terms",
    "normalize_phase",
    "parse_age",
]
