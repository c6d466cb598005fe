"""
Google Scholar Adapter - best-effort scrape of the Scholar results page.

Scholar has no public API. Result cards are parsed with BeautifulSoup:
- h3.gs_rt      title and link
- div.gs_a      "authors - journal, year - host" line
- div.gs_rs     snippet used as the abstract
- div.gs_fl     "Cited by N" link

A random delay from settings.scholar_delay_range precedes every request.
Layout changes yield an empty result list, not an error.
"""
import asyncio
import logging
import random
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from medical_mcp.literature.normalizer import normalize_items
from medical_mcp.models import DocumentSource, NormalizedDocument

from .base import LiteratureAdapter

logger = logging.getLogger(__name__)

_TITLE_TAG_RE = re.compile(r"^\s*\[(?:PDF|HTML|BOOK|B|CITATION|C|DOC)\]\s*", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")
_CITED_BY_RE = re.compile(r"Cited by (\d+)")


def parse_scholar_html(html_text: str, max_results: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Extract raw result dicts from a Scholar results page.

    Returns:
        Dicts with title, url, authors, journal, year, abstract, citations
        and publication_info keys, in page order
    """
    soup = BeautifulSoup(html_text or "", "html.parser")
    results = []

    for card in soup.select("div.gs_ri"):
        heading = card.select_one("h3.gs_rt")
        if heading is None:
            continue

        link = heading.find("a")
        title = _TITLE_TAG_RE.sub("", heading.get_text(" ", strip=True))

        info_node = card.select_one("div.gs_a")
        publication_info = info_node.get_text(" ", strip=True) if info_node else ""
        # "A Smith, B Jones - The Lancet, 2020 - thelancet.com"
        parts = [part.strip() for part in publication_info.split(" - ")]
        authors = parts[0] if parts and parts[0] else ""
        venue = parts[1] if len(parts) > 1 else ""
        year_match = _YEAR_RE.search(venue) or _YEAR_RE.search(publication_info)
        journal = _YEAR_RE.sub("", venue).strip(" ,") if venue else ""

        snippet = card.select_one("div.gs_rs")
        citations = None
        footer = card.select_one("div.gs_fl")
        if footer is not None:
            cited = _CITED_BY_RE.search(footer.get_text(" ", strip=True))
            if cited:
                citations = int(cited.group(1))

        results.append({
            "title": title,
            "url": link.get("href") if link is not None else None,
            "authors": authors,
            "journal": journal,
            "year": year_match.group(1) if year_match else None,
            "abstract": snippet.get_text(" ", strip=True) if snippet else "",
            "citations": citations,
            "publication_info": publication_info,
        })

        if max_results and len(results) >= max_results:
            break

    return results


class ScholarAdapter(LiteratureAdapter):
    """Searches Google Scholar by scraping the HTML results page."""

    @property
    def name(self) -> str:
        return "google_scholar"

    @property
    def description(self) -> str:
        return "Searches Google Scholar for academic research articles (HTML scrape)."

    def _headers(self) -> Dict[str, str]:
        # Scholar blocks obvious bot agents
        return {
            "User-Agent": self.settings.scholar_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    async def _polite_delay(self):
        low, high = self.settings.scholar_delay_range
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))

    async def fetch_documents(self, term: str, limit: Optional[int] = None) -> List[NormalizedDocument]:
        max_results = limit or self.settings.scholar_max_results
        await self._polite_delay()

        response = await self._get(
            self.settings.scholar_url,
            {"q": term, "hl": "en", "num": max_results},
        )
        raw_results = parse_scholar_html(response.text, max_results)
        if not raw_results:
            logger.info("Scholar page for %r had no parseable results", term)
        return normalize_items(raw_results, DocumentSource.ACADEMIC_SEARCH)
