from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


TriState = Literal["yes", "no", "unknown"]
SerologyStatus = Literal["positive", "negative", "unknown"]


class PerformanceStatus(BaseModel):
    """ECOG / Karnofsky performance scores."""
    model_config = ConfigDict(frozen=True)

    ecog: Optional[int] = Field(None, ge=0, le=4)
    karnofsky: Optional[int] = Field(None, ge=0, le=100)


class LabValues(BaseModel):
    """Most recent laboratory values. Units follow common trial conventions."""
    model_config = ConfigDict(frozen=True)

    anc: Optional[float] = None              # x10^9/L
    platelets: Optional[float] = None        # x10^9/L
    hemoglobin: Optional[float] = None       # g/dL
    creatinine_cl: Optional[float] = None    # mL/min
    egfr: Optional[float] = None             # mL/min/1.73m2
    ast: Optional[float] = None              # x ULN
    alt: Optional[float] = None              # x ULN
    bilirubin: Optional[float] = None        # x ULN
    inr: Optional[float] = None
    albumin: Optional[float] = None          # g/dL
    lvef_pct: Optional[float] = None
    qtcf: Optional[float] = None             # ms


class DiagnosisCodes(BaseModel):
    model_config = ConfigDict(frozen=True)

    icd10: List[str] = Field(default_factory=list)
    orpha: List[str] = Field(default_factory=list)
    omim: List[str] = Field(default_factory=list)


class LegacyPatientInput(BaseModel):
    """The three-question intake used by the legacy heuristic path."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["legacy"] = "legacy"
    age_years: Optional[int] = Field(None, ge=0)
    genotype_known: TriState = "unknown"
    prior_therapy: TriState = "unknown"


class ClinicalPatientProfile(BaseModel):
    """
    Full clinical profile evaluated by the structured criterion catalog.

    Every clinical field is either tri-state or an optional numeric.
    An absent value is a valid answer ("not provided"), not an error.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["clinical"] = "clinical"

    # Demographics
    age_years: Optional[int] = Field(None, ge=0)
    sex_at_birth: Literal["male", "female", "unknown"] = "unknown"

    # Diagnosis
    diagnosis: str
    diagnosis_codes: Optional[DiagnosisCodes] = None
    gene: Optional[str] = None
    variant_zygosity: Literal[
        "heterozygous", "homozygous", "compound_heterozygous", "hemizygous", "unknown"
    ] = "unknown"
    disease_stage: Literal["early", "intermediate", "advanced", "unknown"] = "unknown"
    genotype_known: TriState = "unknown"

    # Performance
    performance: PerformanceStatus = Field(default_factory=PerformanceStatus)

    # Treatment history
    lines_of_therapy: Optional[int] = Field(None, ge=0)
    radiotherapy_within_days: Optional[int] = Field(None, ge=0)
    washout_days: Optional[int] = Field(None, ge=0)
    prior_therapy: TriState = "unknown"

    # Reproductive status
    pregnant: TriState = "unknown"
    lactating: TriState = "unknown"
    contraception: Literal["adequate", "inadequate", "not_applicable", "unknown"] = "unknown"

    labs: LabValues = Field(default_factory=LabValues)

    # Infections
    hbv: SerologyStatus = "unknown"
    hcv: SerologyStatus = "unknown"
    hiv: SerologyStatus = "unknown"

    # Neurological
    cns_mets: TriState = "unknown"
    seizures: TriState = "unknown"

    # Concomitant medications
    strong_cyp3a: TriState = "unknown"
    anticoagulants: TriState = "unknown"
    qt_prolonging: TriState = "unknown"

    contraindications: List[str] = Field(default_factory=list)


# Tagged union decided once when the request is validated
PatientInput = Annotated[
    Union[LegacyPatientInput, ClinicalPatientProfile],
    Field(discriminator="kind"),
]


def to_clinical_profile(patient: Union[LegacyPatientInput, ClinicalPatientProfile]) -> ClinicalPatientProfile:
    """Lift a legacy intake into a clinical profile; clinical profiles pass through."""
    if isinstance(patient, ClinicalPatientProfile):
        return patient
    return ClinicalPatientProfile(
        age_years=patient.age_years,
        genotype_known=patient.genotype_known,
        prior_therapy=patient.prior_therapy,
        diagnosis="Unknown",
    )
