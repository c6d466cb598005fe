"""
Document normalization - turns per-source raw items into NormalizedDocument.

Every "trust the external shape" assumption lives here:
- PubMed efetch XML (regex tag extraction, one block per PubmedArticle)
- Google Scholar result dicts produced by the scraper
- ClinicalTrials.gov v2 study JSON

Items without a title or a stable id are dropped, never raised.
"""
import html
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from medical_mcp.exceptions import MalformedDocumentError
from medical_mcp.models import (
    NO_ABSTRACT,
    UNKNOWN,
    DocumentSource,
    NormalizedDocument,
    title_key,
)

logger = logging.getLogger(__name__)

PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
TRIAL_URL = "https://clinicaltrials.gov/study/{nct_id}"

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_YEAR_RE = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")

# PubMed efetch XML
_ARTICLE_BLOCK_RE = re.compile(r"<PubmedArticle\b[^>]*>([\s\S]*?)</PubmedArticle>")
_PMID_RE = re.compile(r"<PMID[^>]*>([^<]*)</PMID>")
_TITLE_RE = re.compile(r"<ArticleTitle[^>]*>([\s\S]*?)</ArticleTitle>")
_ABSTRACT_RE = re.compile(r"<AbstractText[^>]*>([\s\S]*?)</AbstractText>")
_JOURNAL_RE = re.compile(r"<Journal\b[^>]*>[\s\S]*?<Title>([^<]*)</Title>")
_PUB_YEAR_RE = re.compile(r"<PubDate[^>]*>[\s\S]*?<Year>([^<]*)</Year>")
_MEDLINE_DATE_RE = re.compile(r"<PubDate[^>]*>[\s\S]*?<MedlineDate>(\d{4})")
_AUTHOR_RE = re.compile(r"<Author\b[^>]*>([\s\S]*?)</Author>")
_LAST_NAME_RE = re.compile(r"<LastName>([^<]*)</LastName>")
_FORE_NAME_RE = re.compile(r"<ForeName>([^<]*)</ForeName>")
_COLLECTIVE_NAME_RE = re.compile(r"<CollectiveName>([\s\S]*?)</CollectiveName>")
_DOI_RE = re.compile(r'<ELocationID[^>]*EIdType="doi"[^>]*>([^<]*)</ELocationID>')
_ARTICLE_ID_DOI_RE = re.compile(r'<ArticleId[^>]*IdType="doi"[^>]*>([^<]*)</ArticleId>')


def strip_markup(text: Optional[str]) -> str:
    """Remove HTML/XML tags, unescape entities and collapse whitespace."""
    if not text:
        return ""
    cleaned = _TAG_RE.sub(" ", text)
    cleaned = html.unescape(cleaned)
    # Unescaping can surface encoded tags (&lt;i&gt;)
    cleaned = _TAG_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def text_key(text: str) -> str:
    """Fact deduplication key: lowercase, punctuation stripped, spaces collapsed."""
    return _WHITESPACE_RE.sub(" ", _PUNCTUATION_RE.sub("", text.lower())).strip()


def dedupe_documents(documents: Iterable[NormalizedDocument]) -> List[NormalizedDocument]:
    """Drop documents whose title key was already seen, keeping fetch order."""
    seen = set()
    unique = []
    for doc in documents:
        key = doc.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(doc)
    return unique


def _first(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


# ============================================================================
# PubMed (citation index)
# ============================================================================

def parse_pubmed_xml(xml_text: str) -> List[Dict[str, Any]]:
    """
    Split an efetch response into per-article raw dicts.

    Each PubmedArticle block is parsed on its own so that authors, abstract
    sections and DOIs never leak between articles.
    """
    if not xml_text:
        return []

    blocks = _ARTICLE_BLOCK_RE.findall(xml_text)
    if not blocks and "<PMID" in xml_text:
        blocks = [xml_text]

    articles = []
    for block in blocks:
        authors = []
        for author_xml in _AUTHOR_RE.findall(block):
            last = _first(_LAST_NAME_RE, author_xml)
            fore = _first(_FORE_NAME_RE, author_xml)
            if last:
                authors.append(f"{fore} {last}" if fore else last)
            else:
                collective = _first(_COLLECTIVE_NAME_RE, author_xml)
                if collective:
                    authors.append(strip_markup(collective))

        abstract_parts = [strip_markup(part) for part in _ABSTRACT_RE.findall(block)]

        articles.append({
            "pmid": _first(_PMID_RE, block),
            "title": _first(_TITLE_RE, block),
            "abstract": " ".join(part for part in abstract_parts if part),
            "journal": _first(_JOURNAL_RE, block),
            "year": _first(_PUB_YEAR_RE, block) or _first(_MEDLINE_DATE_RE, block),
            "authors": authors,
            "doi": _first(_DOI_RE, block) or _first(_ARTICLE_ID_DOI_RE, block),
        })
    return articles


def parse_pubmed_article(raw: Dict[str, Any]) -> NormalizedDocument:
    pmid = (raw.get("pmid") or "").strip()
    title = strip_markup(raw.get("title"))
    if not pmid or not title:
        raise MalformedDocumentError(f"PubMed item missing pmid or title: {raw.get('pmid')!r}")

    return NormalizedDocument(
        id=pmid,
        title=title,
        abstract=strip_markup(raw.get("abstract")) or NO_ABSTRACT,
        journal=strip_markup(raw.get("journal")) or UNKNOWN,
        year=(raw.get("year") or None),
        authors=[a for a in (raw.get("authors") or []) if a],
        url=PUBMED_ARTICLE_URL.format(pmid=pmid),
        doi=raw.get("doi") or None,
        source=DocumentSource.CITATION_INDEX,
    )


# ============================================================================
# Google Scholar (academic search)
# ============================================================================

def parse_scholar_result(raw: Dict[str, Any]) -> NormalizedDocument:
    """
    Scholar results have no native id: the result URL is used, falling back
    to the title key.
    """
    title = strip_markup(raw.get("title"))
    if not title:
        raise MalformedDocumentError("Scholar item missing title")

    url = (raw.get("url") or "").strip() or None
    doc_id = url or f"scholar:{title_key(title)}"
    if doc_id == "scholar:":
        raise MalformedDocumentError(f"Scholar item has no usable id: {title!r}")

    authors = raw.get("authors") or []
    if isinstance(authors, str):
        authors = [a.strip() for a in authors.split(",") if a.strip()]

    year = raw.get("year")
    if not year:
        year = _first(_YEAR_RE, raw.get("publication_info") or "")

    return NormalizedDocument(
        id=doc_id,
        title=title,
        abstract=strip_markup(raw.get("abstract")) or NO_ABSTRACT,
        journal=strip_markup(raw.get("journal")) or UNKNOWN,
        year=year or None,
        authors=authors,
        url=url,
        source=DocumentSource.ACADEMIC_SEARCH,
    )


# ============================================================================
# ClinicalTrials.gov v2 (trials registry)
# ============================================================================

def parse_trial_study(raw: Dict[str, Any]) -> NormalizedDocument:
    protocol = raw.get("protocolSection") or {}
    identification = protocol.get("identificationModule") or {}
    description = protocol.get("descriptionModule") or {}
    status = protocol.get("statusModule") or {}
    sponsors = protocol.get("sponsorCollaboratorsModule") or {}

    nct_id = (identification.get("nctId") or "").strip()
    title = strip_markup(identification.get("briefTitle") or identification.get("officialTitle"))
    if not nct_id or not title:
        raise MalformedDocumentError(f"Trial record missing nctId or title: {nct_id!r}")

    start_date = (status.get("startDateStruct") or {}).get("date") or ""
    lead_sponsor = (sponsors.get("leadSponsor") or {}).get("name")

    return NormalizedDocument(
        id=nct_id,
        title=title,
        abstract=strip_markup(description.get("briefSummary")) or NO_ABSTRACT,
        journal="ClinicalTrials.gov",
        year=_first(_YEAR_RE, start_date),
        authors=[lead_sponsor] if lead_sponsor else [],
        url=TRIAL_URL.format(nct_id=nct_id),
        source=DocumentSource.TRIALS_REGISTRY,
    )


_PARSERS: Dict[DocumentSource, Callable[[Dict[str, Any]], NormalizedDocument]] = {
    DocumentSource.CITATION_INDEX: parse_pubmed_article,
    DocumentSource.ACADEMIC_SEARCH: parse_scholar_result,
    DocumentSource.TRIALS_REGISTRY: parse_trial_study,
}


def normalize_item(raw: Dict[str, Any], source: DocumentSource) -> Optional[NormalizedDocument]:
    """Normalize one raw item; malformed items yield None."""
    try:
        return _PARSERS[source](raw)
    except MalformedDocumentError as e:
        logger.debug("Dropping malformed %s item: %s", source.value, e)
        return None


def normalize_items(
    raw_items: Union[str, Iterable[Dict[str, Any]]],
    source: DocumentSource,
) -> List[NormalizedDocument]:
    """
    Normalize a batch of raw items from one source and deduplicate them.

    Args:
        raw_items: efetch XML text (citation index) or an iterable of raw dicts
        source: Which source produced the items

    Returns:
        Normalized documents in input order, first title occurrence kept
    """
    if isinstance(raw_items, str):
        if source is not DocumentSource.CITATION_INDEX:
            raise ValueError(f"Raw text input is only supported for PubMed XML, got {source.value}")
        raw_items = parse_pubmed_xml(raw_items)

    documents = []
    for raw in raw_items:
        doc = normalize_item(raw, source)
        if doc is not None:
            documents.append(doc)
    return dedupe_documents(documents)
