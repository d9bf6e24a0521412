"""
Tests for the registry, literature and cache services

Run with: python -m pytest backend/rarepath/services/test_services.py -v

HTTP is served by httpx.MockTransport; nothing touches the network.
"""

import httpx
import pytest

from rarepath.core.config import Settings
from rarepath.schemas.literature import PubMedArticle, PubMedSearchResult
from rarepath.schemas.trial import Trial
from rarepath.services.clinical_trials_api import (
    ClinicalTrialsAPIError,
    ClinicalTrialsService,
    location_in_state,
    parse_study,
    to_years,
)
from rarepath.services.literature_service import LiteratureService, extract_keywords, publication_summary
from rarepath.services.pubmed_api import (
    PubMedClient,
    determine_study_type,
    extract_nct_ids,
    parse_pubmed_xml,
)
from rarepath.services.search_service import SearchService, score_trial
from rarepath.services.ttl_cache import TTLCache

TEST_SETTINGS = Settings(
    CLINICAL_TRIALS_API_BASE="https://registry.test/api/v2",
    PUBMED_API_BASE="https://eutils.test",
    PUBLICATION_BATCH_DELAY_SECONDS=0,
)

STUDY = {
    "protocolSection": {
        "identificationModule": {"nctId": "NCT00000001", "briefTitle": "Brief", "officialTitle": "Official"},
        "designModule": {"phases": ["PHASE1", "PHASE2"]},
        "eligibilityModule": {
            "eligibilityCriteria": "Inclusion: genetically confirmed NPC",
            "minimumAge": "6 Months",
            "maximumAge": "65 Years",
        },
        "statusModule": {"overallStatus": "RECRUITING"},
        "contactsLocationsModule": {
            "locations": [
                {"facility": "UCSF", "city": "San Francisco", "state": "California", "country": "United States"},
                {"city": "Paris", "country": "France"},
            ]
        },
        "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Acme Therapeutics"}},
        "armsInterventionsModule": {"interventions": [{"type": "DRUG"}, {"type": "OTHER"}]},
    }
}

PUBMED_XML = """<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>111</PMID>
      <Article>
        <Journal><Title>Orphanet Journal of Rare Diseases</Title></Journal>
        <ArticleTitle>Randomized controlled trial of arimoclomol (NCT02612129)</ArticleTitle>
        <Abstract><AbstractText>Efficacy results for NCT02612129 and NCT02612129.</AbstractText></Abstract>
        <AuthorList>
          <Author><LastName>Mengel</LastName><ForeName>Eugen</ForeName></Author>
          <Author><CollectiveName>NPC Study Group</CollectiveName></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
    <PubmedData>
      <History><PubMedPubDate><Year>1999</Year></PubMedPubDate></History>
      <ArticleIdList><ArticleId IdType="doi">10.1186/s13023-021-01894-3</ArticleId></ArticleIdList>
    </PubmedData>
  </PubmedArticle>
</PubmedArticleSet>
"""


def make_trial(nct_id: str, **fields) -> Trial:
    return Trial(nct_id=nct_id, title=f"Study {nct_id}", **fields)


# =============================================================================
# TTL CACHE
# =============================================================================

class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_ttl_cache_expires_on_read():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", "v")

    clock.now = 5
    assert cache.get("k") == "v"
    assert "k" in cache

    clock.now = 10
    assert "k" not in cache
    assert len(cache) == 1  # still stored until read
    assert cache.get("k") is None
    assert len(cache) == 0

    assert cache.stats() == {"hits": 1, "misses": 1, "sets": 1, "evictions": 1, "size": 0}


def test_ttl_cache_purge_and_clear():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=1, clock=clock)
    cache.set("a", 1)
    clock.now = 0.5
    cache.set("b", 2)
    clock.now = 1.2
    assert cache.purge_expired() == 1
    assert cache.get("b") == 2
    cache.clear()
    assert len(cache) == 0


# =============================================================================
# CLINICALTRIALS.GOV
# =============================================================================

def test_to_years():
    assert to_years("18 Years") == 18
    assert to_years("6 Months") == 0.5
    assert to_years("30 Days") == 0.1
    assert to_years("N/A") is None
    assert to_years(None) is None


def test_parse_study():
    trial = parse_study(STUDY)
    assert trial.nct_id == "NCT00000001"
    assert trial.title == "Official"
    assert trial.phase == "PHASE1, PHASE2"
    assert trial.phases == ["PHASE1", "PHASE2"]
    assert trial.locations == ["UCSF, San Francisco, California, United States", "Paris, France"]
    assert trial.countries == ["United States", "France"]
    assert trial.min_age_years == 0.5
    assert trial.max_age_years == 65
    assert trial.minimum_age == "6 Months"
    assert trial.status == "recruiting"
    assert trial.lead_sponsor == "Acme Therapeutics"
    assert trial.intervention_types == ["DRUG", "OTHER"]


def test_parse_study_falls_back_to_untitled():
    assert parse_study({}).title == "Untitled study"
    assert parse_study({"protocolSection": {"identificationModule": {"nctId": "NCT9"}}}).title == "NCT9"


def test_location_in_state():
    assert location_in_state("UCSF, San Francisco, California, United States", "CA")
    assert location_in_state("Clinic, Austin, TX", "tx")
    assert not location_in_state("Mayo Clinic, Rochester, Minnesota, United States", "CA")


def _registry(handler) -> ClinicalTrialsService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ClinicalTrialsService(client=client, settings=TEST_SETTINGS)


@pytest.mark.asyncio
async def test_fetch_studies_caps_page_size():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        seen["path"] = request.url.path
        return httpx.Response(200, json={"studies": [STUDY]})

    service = _registry(handler)
    studies = await service.fetch_studies("NPC", 500)
    await service.close()

    assert len(studies) == 1
    assert seen["path"] == "/api/v2/studies"
    assert seen["pageSize"] == "50"
    assert seen["query.term"] == "NPC"
    assert seen["format"] == "json"


@pytest.mark.asyncio
async def test_fetch_studies_raises_on_error_status():
    service = _registry(lambda request: httpx.Response(503))
    with pytest.raises(ClinicalTrialsAPIError):
        await service.fetch_studies("NPC", 10)


@pytest.mark.asyncio
async def test_fetch_studies_without_studies_list():
    service = _registry(lambda request: httpx.Response(200, json={"totalCount": 0}))
    assert await service.fetch_studies("NPC", 10) == []


@pytest.mark.asyncio
async def test_search_trials_filters_by_state():
    other = {
        "protocolSection": {
            "identificationModule": {"nctId": "NCT00000002"},
            "contactsLocationsModule": {"locations": [{"city": "Rochester", "state": "Minnesota"}]},
        }
    }
    service = _registry(lambda request: httpx.Response(200, json={"studies": [other, STUDY]}))
    trials = await service.search_trials("NPC", state="CA")
    assert [t.nct_id for t in trials] == ["NCT00000001"]


# =============================================================================
# RANKED SEARCH
# =============================================================================

class FakeTrialsClient:
    def __init__(self, trials=None, error=None):
        self.trials = trials or []
        self.error = error

    async def search_trials(self, condition, state=None, max_results=25):
        if self.error:
            raise self.error
        return self.trials


def test_score_trial():
    trial = make_trial(
        "NCT1",
        locations=["UCSF, San Francisco, CA, United States"],
        status="recruiting",
        eligibility_text="x" * 51,
    )
    assert score_trial(trial) == 2.5
    assert score_trial(trial, "CA") == 4.5
    assert score_trial(make_trial("NCT2", status="completed")) == 0


@pytest.mark.asyncio
async def test_search_ranks_and_keeps_order_for_ties():
    trials = [
        make_trial("NCT_A", status="completed"),
        make_trial("NCT_B", locations=["Site, Boston, MA, United States"], status="recruiting"),
        make_trial("NCT_C", status="completed"),
        make_trial("NCT_D", locations=["Site, Boston, MA, United States"]),
    ]
    service = SearchService(trials_client=FakeTrialsClient(trials), literature=None)
    ranked = await service.search("NPC")
    assert [t.nct_id for t in ranked] == ["NCT_B", "NCT_D", "NCT_A", "NCT_C"]


@pytest.mark.asyncio
async def test_search_returns_top_ten():
    trials = [make_trial(f"NCT{i}") for i in range(25)]
    service = SearchService(trials_client=FakeTrialsClient(trials))
    assert len(await service.search("NPC")) == 10


@pytest.mark.asyncio
async def test_search_failure_is_empty():
    service = SearchService(trials_client=FakeTrialsClient(error=ClinicalTrialsAPIError("down")))
    assert await service.search("NPC") == []


class FakeLiterature:
    async def search_research_by_condition(self, condition, max_results=20):
        return PubMedSearchResult(articles=[], total_count=0, query=condition)

    async def enrich_trials_with_publications(self, trials):
        raise RuntimeError("pubmed down")


@pytest.mark.asyncio
async def test_enhanced_search_failure_is_empty_envelope():
    service = SearchService(trials_client=FakeTrialsClient([make_trial("NCT1")]), literature=FakeLiterature())
    result = await service.enhanced_search("NPC")
    assert result.trials == []
    assert result.enriched_trials == []
    assert result.publications.query == "NPC"


# =============================================================================
# PUBMED
# =============================================================================

def test_parse_pubmed_xml():
    [article] = parse_pubmed_xml(PUBMED_XML)
    assert article.pmid == "111"
    assert article.journal == "Orphanet Journal of Rare Diseases"
    assert article.authors == ["Eugen Mengel"]
    assert article.doi == "10.1186/s13023-021-01894-3"
    assert article.nct_ids == ["NCT02612129"]
    assert article.study_type == "Randomized Controlled Trial"
    assert article.url == "https://pubmed.ncbi.nlm.nih.gov/111/"


def test_study_type_and_nct_ids():
    assert determine_study_type("A cohort of patients", "") == "Observational Study"
    assert determine_study_type("Systematic review", "") == "Systematic Review/Meta-analysis"
    assert determine_study_type("Natural history", "") == "Research Article"
    assert extract_nct_ids("NCT00000001 then NCT00000002 then NCT00000001") == ["NCT00000001", "NCT00000002"]


def _pubmed(handler) -> PubMedClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PubMedClient(client=client, settings=TEST_SETTINGS)


@pytest.mark.asyncio
async def test_search_by_condition():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("esearch.fcgi"):
            assert request.url.params["term"] == "Niemann-Pick[Title/Abstract]"
            return httpx.Response(200, json={"esearchresult": {"idlist": ["111"], "count": "42"}})
        return httpx.Response(200, text=PUBMED_XML)

    result = await _pubmed(handler).search_by_condition("Niemann-Pick!")
    assert result.total_count == 42
    assert [a.pmid for a in result.articles] == ["111"]


@pytest.mark.asyncio
async def test_malformed_xml_yields_no_articles():
    client = _pubmed(lambda request: httpx.Response(200, text="<PubmedArticleSet><broken"))
    assert await client.fetch_articles(["111"]) == []


@pytest.mark.asyncio
async def test_publications_for_trials_in_batches():
    looked_up = []

    class RecordingClient(PubMedClient):
        async def search_by_nct_id(self, nct_id):
            looked_up.append(nct_id)
            return []

    client = RecordingClient(settings=Settings(PUBLICATION_BATCH_SIZE=2, PUBLICATION_BATCH_DELAY_SECONDS=0))
    result = await client.get_publications_for_trials(["NCT1", "NCT2", "NCT3"])
    assert looked_up == ["NCT1", "NCT2", "NCT3"]
    assert result == {"NCT1": [], "NCT2": [], "NCT3": []}


# =============================================================================
# LITERATURE SERVICE
# =============================================================================

def make_article(pmid: str, **fields) -> PubMedArticle:
    defaults = {"title": "", "url": f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/"}
    defaults.update(fields)
    return PubMedArticle(pmid=pmid, **defaults)


class CountingPubMed:
    def __init__(self, publications=None):
        self.calls = 0
        self.publications = publications or {}

    async def search_by_condition(self, condition, max_results=20):
        self.calls += 1
        return PubMedSearchResult(articles=[], total_count=0, query=condition)

    async def search_by_nct_id(self, nct_id):
        return self.publications.get(nct_id, [])

    async def get_publications_for_trials(self, nct_ids):
        return {nct_id: self.publications.get(nct_id, []) for nct_id in nct_ids}


@pytest.mark.asyncio
async def test_condition_search_is_cached():
    client = CountingPubMed()
    service = LiteratureService(client=client, settings=TEST_SETTINGS)
    await service.search_research_by_condition("NPC")
    await service.search_research_by_condition("NPC")
    await service.search_research_by_condition("NPC", 5)
    assert client.calls == 2
    assert service.cache.stats()["hits"] == 1


@pytest.mark.asyncio
async def test_enrich_trials_with_publications():
    older = make_article("1", title="Interim analysis", publish_date="2019-04")
    newer = make_article("2", title="Design paper", publish_date="2021")
    service = LiteratureService(client=CountingPubMed({"NCT1": [older, newer]}), settings=TEST_SETTINGS)

    [with_pubs, without] = await service.enrich_trials_with_publications([make_trial("NCT1"), make_trial("NCT2")])
    assert with_pubs.publication_count == 2
    assert with_pubs.has_outcomes is True
    assert with_pubs.latest_publication.pmid == "2"
    assert without.publication_count == 0
    assert without.latest_publication is None


def test_generate_research_insights():
    articles = [
        make_article("1", title="Efficacy results", journal="JIMD", publish_date="2020-01",
                     authors=["A One", "B Two"], nct_ids=["NCT1"], study_type="Clinical Trial"),
        make_article("2", title="Case report", journal="JIMD", publish_date="2018",
                     authors=["A One"], study_type="Case Report/Series"),
    ]
    insights = LiteratureService(client=CountingPubMed(), settings=TEST_SETTINGS).generate_research_insights(articles)
    assert insights.total_publications == 2
    assert insights.study_types == {"Clinical Trial": 1, "Case Report/Series": 1}
    assert insights.top_journals[0].journal == "JIMD"
    assert [y.year for y in insights.publication_trend] == ["2018", "2020"]
    assert insights.outcome_trials == ["NCT1"]
    assert insights.leading_investigators[0].name == "A One"


@pytest.mark.asyncio
async def test_trial_publication_summary():
    pubs = {"NCT1": [make_article("1", title="Final analysis", publish_date="2022-05-01")]}
    service = LiteratureService(client=CountingPubMed(pubs), settings=TEST_SETTINGS)

    summary = await service.get_trial_publication_summary("NCT1")
    assert summary.outcome_status == "published"
    assert summary.summary == "1 publication found, including 1 with outcome results. Most recent publication: 2022."

    empty = await service.get_trial_publication_summary("NCT2")
    assert empty.outcome_status == "unknown"
    assert empty.summary == "No publications found for this trial."


def test_keywords_and_summary_helpers():
    articles = [make_article("1", title="Arimoclomol arimoclomol miglustat", abstract="the study of patients")]
    assert extract_keywords(articles)[:2] == ["arimoclomol", "miglustat"]
    assert publication_summary([]) == "No publications found for this trial."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
