"""
PubMed Adapter - NCBI E-utilities integration for biomedical literature.

Two-step retrieval:
1. esearch returns the PMIDs matching a query (JSON)
2. efetch returns the full records for those PMIDs (XML)

API Documentation: https://www.ncbi.nlm.nih.gov/books/NBK25500/
"""
import logging
from typing import Dict, List, Optional

from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.literature.normalizer import normalize_items
from medical_mcp.models import DocumentSource, NormalizedDocument

from .base import LiteratureAdapter, ToolResult

logger = logging.getLogger(__name__)


class PubMedAdapter(LiteratureAdapter):
    """
    Searches PubMed and fetches article records by PMID.

    Features:
    - Relevance-sorted esearch with a per-term result cap
    - efetch XML parsed per article (title, abstract, journal, year, authors, DOI)
    - Optional NCBI API key / contact email from Settings
    """

    @property
    def name(self) -> str:
        return "pubmed"

    @property
    def description(self) -> str:
        return "Searches PubMed (NCBI E-utilities) for biomedical research articles."

    @property
    def esearch_endpoint(self) -> str:
        return f"{self.settings.pubmed_api_base}/esearch.fcgi"

    @property
    def efetch_endpoint(self) -> str:
        return f"{self.settings.pubmed_api_base}/efetch.fcgi"

    def _credentials(self) -> Dict[str, str]:
        params = {}
        if self.settings.ncbi_api_key:
            params["api_key"] = self.settings.ncbi_api_key
        if self.settings.ncbi_email:
            params["email"] = self.settings.ncbi_email
        return params

    async def search_ids(self, term: str, limit: Optional[int] = None) -> List[str]:
        """
        API: /esearch.fcgi?db=pubmed&term={term}&retmode=json&retmax={limit}
        """
        params = {
            "db": "pubmed",
            "term": term,
            "retmode": "json",
            "retmax": limit or self.settings.pubmed_results_per_term,
            "sort": "relevance",
            **self._credentials(),
        }
        data = await self._get_object(self.esearch_endpoint, params)

        # Response structure: {"esearchresult": {"idlist": ["123", ...]}}
        return list((data.get("esearchresult") or {}).get("idlist") or [])

    async def fetch_xml(self, pmids: List[str]) -> str:
        """
        API: /efetch.fcgi?db=pubmed&id={pmid,pmid}&retmode=xml
        """
        params = {
            "db": "pubmed",
            "id": ",".join(pmids),
            "retmode": "xml",
            **self._credentials(),
        }
        response = await self._get(self.efetch_endpoint, params)
        return response.text

    async def fetch_documents(self, term: str, limit: Optional[int] = None) -> List[NormalizedDocument]:
        pmids = await self.search_ids(term, limit)
        if not pmids:
            logger.debug("PubMed returned no ids for %r", term)
            return []

        xml_text = await self.fetch_xml(pmids)
        return normalize_items(xml_text, DocumentSource.CITATION_INDEX)

    async def get_article(self, pmid: str) -> ToolResult:
        """
        Fetch a single article by PMID.

        Args:
            pmid: PubMed identifier

        Returns:
            ToolResult with a NormalizedDocument, or a failure when the PMID
            is unknown or the request fails
        """
        pmid = (pmid or "").strip()
        if not pmid:
            return ToolResult.fail("Empty PMID provided", source=self.name)

        try:
            xml_text = await self.fetch_xml([pmid])
        except SourceUnavailableError as e:
            return self._fail(e, pmid=pmid)

        documents = [doc for doc in normalize_items(xml_text, DocumentSource.CITATION_INDEX) if doc.id == pmid]
        if not documents:
            return ToolResult.fail(f"No article found with PMID: {pmid}", source=self.name, pmid=pmid, not_found=True)

        return ToolResult.ok(data=documents[0], source=self.name, pmid=pmid)

