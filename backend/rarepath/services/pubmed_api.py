"""
PubMed E-utilities Client

esearch (JSON) to find PMIDs, efetch (XML) to read the articles.
Every public call degrades to an empty result on HTTP or parse errors.
"""

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import httpx

from ..core.config import Settings, settings as default_settings
from ..schemas.literature import PubMedArticle, PubMedSearchResult

logger = logging.getLogger(__name__)

NCT_ID_PATTERN = re.compile(r"NCT\d{8}")
MAX_AUTHORS = 10
NCT_SEARCH_LIMIT = 10


def build_condition_query(condition: str) -> str:
    clean = re.sub(r"[^\w\s-]", "", condition).strip()
    return f"{clean}[Title/Abstract]"


def extract_nct_ids(text: str) -> List[str]:
    """NCT ids mentioned in free text, de-duplicated in order of appearance."""
    return list(dict.fromkeys(NCT_ID_PATTERN.findall(text)))


def determine_study_type(title: str, abstract: str) -> str:
    text = f"{title} {abstract}".lower()
    if "randomized controlled trial" in text or "rct" in text:
        return "Randomized Controlled Trial"
    if "clinical trial" in text:
        return "Clinical Trial"
    if "observational" in text or "cohort" in text:
        return "Observational Study"
    if "systematic review" in text or "meta-analysis" in text:
        return "Systematic Review/Meta-analysis"
    if "case report" in text or "case series" in text:
        return "Case Report/Series"
    return "Research Article"


def _text(node: ET.Element, path: str) -> str:
    el = node.find(path)
    return "".join(el.itertext()).strip() if el is not None else ""


def _publication_date(article: ET.Element) -> str:
    pub_date = article.find(".//PubDate")
    if pub_date is None:
        return ""
    year = _text(pub_date, "Year")
    month = _text(pub_date, "Month")
    day = _text(pub_date, "Day")
    if year and month and day:
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
    if year and month:
        return f"{year}-{month.zfill(2)}"
    return year


def _doi(article: ET.Element) -> Optional[str]:
    for article_id in article.iter("ArticleId"):
        if article_id.get("IdType") == "doi":
            return "".join(article_id.itertext()).strip() or None
    return None


def _authors(article: ET.Element) -> List[str]:
    authors = []
    for author in article.iter("Author"):
        last_name = _text(author, "LastName")
        if last_name:
            authors.append(f"{_text(author, 'ForeName')} {last_name}".strip())
    return authors[:MAX_AUTHORS]


def parse_pubmed_xml(xml_text: str) -> List[PubMedArticle]:
    """
    Parse an efetch XML payload.

    Raises:
        ET.ParseError: if the payload is not well-formed XML
    """
    root = ET.fromstring(xml_text)
    articles = []
    for node in root.iter("PubmedArticle"):
        pmid = _text(node, ".//PMID")
        if not pmid:
            continue
        title = _text(node, ".//ArticleTitle")
        abstract = _text(node, ".//AbstractText")
        articles.append(
            PubMedArticle(
                pmid=pmid,
                title=title,
                authors=_authors(node),
                journal=_text(node, ".//Journal/Title"),
                publish_date=_publication_date(node),
                abstract=abstract,
                doi=_doi(node),
                nct_ids=extract_nct_ids(f"{title} {abstract}"),
                study_type=determine_study_type(title, abstract),
                url=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            )
        )
    return articles


class PubMedClient:
    """Async PubMed client sharing one httpx.AsyncClient."""

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

    async def _esearch(self, term: str, retmax: int, sort: str, **extra: str) -> Dict:
        params = {
            "db": "pubmed",
            "term": term,
            "retmax": str(retmax),
            "retmode": "json",
            "sort": sort,
            **extra,
        }
        response = await self.client.get(f"{self.settings.PUBMED_API_BASE}/esearch.fcgi", params=params)
        response.raise_for_status()
        return response.json().get("esearchresult") or {}

    async def fetch_articles(self, pmids: List[str]) -> List[PubMedArticle]:
        if not pmids:
            return []
        params = {
            "db": "pubmed",
            "id": ",".join(pmids),
            "retmode": "xml",
            "rettype": "abstract",
        }
        try:
            response = await self.client.get(f"{self.settings.PUBMED_API_BASE}/efetch.fcgi", params=params)
            response.raise_for_status()
            return parse_pubmed_xml(response.text)
        except (httpx.HTTPError, ET.ParseError) as e:
            logger.warning(f"Failed to fetch PubMed articles {pmids[:3]}...: {e}")
            return []

    async def search_by_condition(self, condition: str, max_results: int = 20) -> PubMedSearchResult:
        query = build_condition_query(condition)
        try:
            result = await self._esearch(query, max_results, "relevance", field="title/abstract")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"PubMed search failed for '{condition}': {e}")
            return PubMedSearchResult(articles=[], total_count=0, query=condition)

        pmids = result.get("idlist") or []
        logger.info(f"Found {len(pmids)} PubMed articles for '{condition}'")
        if not pmids:
            return PubMedSearchResult(articles=[], total_count=0, query=query)

        return PubMedSearchResult(
            articles=await self.fetch_articles(pmids),
            total_count=int(result.get("count") or 0),
            query=query,
        )

    async def search_by_nct_id(self, nct_id: str) -> List[PubMedArticle]:
        try:
            result = await self._esearch(f'"{nct_id}"[All Fields]', NCT_SEARCH_LIMIT, "pub date")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"PubMed search failed for {nct_id}: {e}")
            return []

        pmids = result.get("idlist") or []
        logger.debug(f"Found {len(pmids)} publications for {nct_id}")
        return await self.fetch_articles(pmids)

    async def get_publications_for_trials(self, nct_ids: List[str]) -> Dict[str, List[PubMedArticle]]:
        """
        Publications per NCT id.

        Ids are looked up in concurrent batches of PUBLICATION_BATCH_SIZE with
        a short pause between batches.
        """
        results: Dict[str, List[PubMedArticle]] = {}
        batch_size = max(1, self.settings.PUBLICATION_BATCH_SIZE)

        for start in range(0, len(nct_ids), batch_size):
            batch = nct_ids[start:start + batch_size]
            articles = await asyncio.gather(*(self.search_by_nct_id(nct_id) for nct_id in batch))
            results.update(zip(batch, articles))

            if start + batch_size < len(nct_ids) and self.settings.PUBLICATION_BATCH_DELAY_SECONDS > 0:
                await asyncio.sleep(self.settings.PUBLICATION_BATCH_DELAY_SECONDS)

        return results


# Singleton instance
pubmed_client = PubMedClient()
