from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path

# Find the backend directory (where .env is located)
BACKEND_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "RarePath Eligibility Engine"
    LOG_LEVEL: str = "INFO"

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"
    ALLOWED_ORIGINS: Optional[str] = None

    # ClinicalTrials.gov API
    CLINICAL_TRIALS_API_BASE: str = "https://clinicaltrials.gov/api/v2"
    CLINICAL_TRIALS_PAGE_SIZE_CAP: int = 50

    # PubMed (NCBI E-utilities)
    PUBMED_API_BASE: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    PUBLICATION_BATCH_SIZE: int = 5
    PUBLICATION_BATCH_DELAY_SECONDS: float = 0.2
    LITERATURE_CACHE_TTL_SECONDS: float = 300.0

    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Pattern mining - corpus assembly
    MINING_MAX_TRIALS: int = 1000
    MINING_BATCH_DELAY_SECONDS: float = 0.1  # politeness pause between registry batches
    MINING_CONCURRENCY: int = 1  # search terms fetched together inside one delay window

    # Pattern mining - documented heuristics, not statistically derived
    GENETIC_REQUIREMENT_THRESHOLD: float = 0.3
    GENETIC_PATTERN_THRESHOLD: float = 0.5
    EARLY_PHASE_INSIGHT_THRESHOLD: float = 0.7
    INDUSTRY_SPONSOR_THRESHOLD: float = 0.6
    DRUG_FOCUS_THRESHOLD: float = 0.8
    PHASE_INSIGHT_CONFIDENCE: float = 0.8
    GEOGRAPHIC_INSIGHT_CONFIDENCE: float = 0.7
    SPONSOR_INSIGHT_CONFIDENCE: float = 0.7


settings = Settings()
