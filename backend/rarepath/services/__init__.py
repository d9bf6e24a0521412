from .clinical_trials_api import ClinicalTrialsAPIError, ClinicalTrialsService, clinical_trials_service
from .literature_service import LiteratureService, literature_service
from .pubmed_api import PubMedClient, pubmed_client
from .search_service import SearchService, search_service
from .ttl_cache import TTLCache

__all__ = [
    "ClinicalTrialsAPIError",
    "ClinicalTrialsService",
    "clinical_trials_service",
    "LiteratureService",
    "literature_service",
    "PubMedClient",
    "pubmed_client",
    "SearchService",
    "search_service",
    "TTLCache",
]
