"""RarePath clinical-trial eligibility and pattern-mining engine."""

__version__ = "0.1.0"
