from . import eligibility, patterns, trials

__all__ = ["eligibility", "patterns", "trials"]
