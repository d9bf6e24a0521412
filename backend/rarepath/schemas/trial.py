from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Trial(BaseModel):
    """A registered clinical trial, as returned by the trial search collaborator."""
    model_config = ConfigDict(frozen=True)

    nct_id: str
    title: str
    phase: Optional[str] = None                   # display string, e.g. "PHASE1, PHASE2"
    phases: List[str] = Field(default_factory=list)  # registry codes, e.g. ["PHASE1", "PHASE2"]
    locations: List[str] = Field(default_factory=list)  # "facility, city, state, country"
    countries: List[str] = Field(default_factory=list)
    eligibility_text: Optional[str] = None
    min_age_years: Optional[float] = None
    max_age_years: Optional[float] = None
    minimum_age: Optional[str] = None             # raw registry value, e.g. "18 Years"
    maximum_age: Optional[str] = None
    status: Optional[str] = None
    lead_sponsor: Optional[str] = None
    intervention_types: List[str] = Field(default_factory=list)
