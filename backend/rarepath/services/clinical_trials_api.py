"""
ClinicalTrials.gov API v2 Client

Fetches studies for a search term and maps them onto Trial records.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import Settings, settings as default_settings
from ..schemas.trial import Trial

logger = logging.getLogger(__name__)

# Full state names used by registry location strings for a few common states
STATE_ALIASES = {
    "CA": "CALIFORNIA",
    "NY": "NEW YORK",
    "FL": "FLORIDA",
    "TX": "TEXAS",
}


class ClinicalTrialsAPIError(Exception):
    """Raised when the registry cannot be reached or answers with an error."""


def to_years(age: Optional[str]) -> Optional[float]:
    """
    Convert a registry age string to years.

    "18 Years" -> 18, "6 Months" -> 0.5, "30 Days" -> 0.1.
    Returns None for missing or unparsable values.
    """
    if not age:
        return None
    match = re.match(r"\s*(\d+)", age)
    if not match:
        return None
    n = int(match.group(1))
    if re.search(r"month", age, re.IGNORECASE):
        return round(n / 12, 1)
    if re.search(r"day", age, re.IGNORECASE):
        return round(n / 365, 1)
    return n


def parse_study(study: Dict[str, Any]) -> Trial:
    """
    Map one raw v2 study onto a Trial.

    Args:
        study: Raw study object from the /studies endpoint

    Returns:
        Trial with display strings filled in and ages converted to years
    """
    protocol = study.get("protocolSection") or {}
    identification = protocol.get("identificationModule") or {}
    design = protocol.get("designModule") or {}
    eligibility = protocol.get("eligibilityModule") or {}
    status_module = protocol.get("statusModule") or {}
    locations_module = protocol.get("contactsLocationsModule") or {}
    sponsors = protocol.get("sponsorCollaboratorsModule") or {}
    arms = protocol.get("armsInterventionsModule") or {}

    nct_id = identification.get("nctId") or ""
    title = (
        identification.get("officialTitle")
        or identification.get("briefTitle")
        or nct_id
        or "Untitled study"
    )

    phases = design.get("phases")
    if isinstance(phases, list):
        phase = ", ".join(phases)
    else:
        phases = []
        phase = design.get("phase") or ""

    locations = []
    countries = []
    for location in locations_module.get("locations") or []:
        parts = [location.get(key) for key in ("facility", "city", "state", "country")]
        locations.append(", ".join(p for p in parts if p))
        if location.get("country"):
            countries.append(location["country"])

    minimum_age = eligibility.get("minimumAge")
    maximum_age = eligibility.get("maximumAge")
    overall_status = status_module.get("overallStatus")

    return Trial(
        nct_id=nct_id,
        title=title,
        phase=phase or None,
        phases=phases,
        locations=locations,
        countries=countries,
        eligibility_text=eligibility.get("eligibilityCriteria") or eligibility.get("criteria"),
        min_age_years=to_years(minimum_age),
        max_age_years=to_years(maximum_age),
        minimum_age=minimum_age,
        maximum_age=maximum_age,
        status=overall_status.lower() if overall_status else None,
        lead_sponsor=(sponsors.get("leadSponsor") or {}).get("name"),
        intervention_types=[i["type"] for i in arms.get("interventions") or [] if i.get("type")],
    )


def location_in_state(location: str, state: str) -> bool:
    location_upper = location.upper()
    state_upper = state.upper()
    if (
        f", {state_upper}" in location_upper
        or f"{state_upper} " in location_upper
        or location_upper.endswith(state_upper)
    ):
        return True
    alias = STATE_ALIASES.get(state_upper)
    return alias is not None and alias in location_upper


def filter_by_state(trials: List[Trial], state: str) -> List[Trial]:
    return [t for t in trials if any(location_in_state(loc, state) for loc in t.locations)]


class ClinicalTrialsService:
    """
    Async client for the ClinicalTrials.gov v2 /studies endpoint.

    The underlying httpx.AsyncClient is created lazily and reused; pass one
    in to control transport (tests use httpx.MockTransport).
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT_SECONDS)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_studies(self, term: str, page_size: int) -> List[Dict[str, Any]]:
        """
        Raw studies for a search term.

        Raises:
            ClinicalTrialsAPIError: on transport failure or a non-success status
        """
        params = {
            "format": "json",
            "query.term": term,
            "pageSize": str(min(page_size, self.settings.CLINICAL_TRIALS_PAGE_SIZE_CAP)),
        }
        url = f"{self.settings.CLINICAL_TRIALS_API_BASE}/studies"

        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ClinicalTrialsAPIError(
                f"ClinicalTrials.gov returned status {e.response.status_code} for '{term}'"
            ) from e
        except httpx.HTTPError as e:
            raise ClinicalTrialsAPIError(f"ClinicalTrials.gov request failed for '{term}': {e}") from e
        except ValueError as e:
            raise ClinicalTrialsAPIError(f"ClinicalTrials.gov returned invalid JSON for '{term}'") from e

        studies = data.get("studies") if isinstance(data, dict) else None
        if not isinstance(studies, list):
            logger.warning(f"ClinicalTrials.gov response for '{term}' has no studies list")
            return []

        logger.info(f"ClinicalTrials.gov returned {len(studies)} studies for '{term}'")
        return studies

    async def fetch_trials(self, term: str, page_size: int) -> List[Trial]:
        studies = await self.fetch_studies(term, page_size)
        return [parse_study(study) for study in studies]

    async def search_trials(self, condition: str, state: Optional[str] = None, max_results: int = 25) -> List[Trial]:
        """
        Trials for a condition, optionally restricted to one US state.

        Args:
            condition: Free-text condition name
            state: Two-letter state code (or a name fragment)
            max_results: Upper bound on returned trials
        """
        trials = await self.fetch_trials(condition, max_results)

        if state:
            filtered = filter_by_state(trials, state)
            logger.info(f"State filtering for '{state}': {len(trials)} -> {len(filtered)} trials")
            if not filtered and trials:
                logger.warning(f"No trials found in state '{state}' for '{condition}'")
            trials = filtered

        return trials[:max_results]


# Singleton instance
clinical_trials_service = ClinicalTrialsService()
