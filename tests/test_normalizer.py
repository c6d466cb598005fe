"""
Document normalizer tests.

Covers:
1. Markup stripping and dedup keys
2. PubMed efetch XML parsing (per-article blocks)
3. Scholar and ClinicalTrials.gov raw items
4. Dropping malformed items and deduplicating batches
"""
import pytest

from medical_mcp.literature.normalizer import (
    dedupe_documents,
    normalize_item,
    normalize_items,
    parse_pubmed_xml,
    strip_markup,
    text_key,
    title_key,
)
from medical_mcp.models import NO_ABSTRACT, UNKNOWN, DocumentSource


# ============================================================================
# Sample payloads
# ============================================================================

PUBMED_XML = """<?xml version="1.0" ?>
<PubmedArticleSet>
<PubmedArticle>
  <MedlineCitation Status="MEDLINE">
    <PMID Version="1">111</PMID>
    <Article PubModel="Print">
      <Journal>
        <ISSN IssnType="Print">0140-6736</ISSN>
        <JournalIssue CitedMedium="Print">
          <PubDate><Year>2020</Year><Month>Mar</Month></PubDate>
        </JournalIssue>
        <Title>The Lancet</Title>
      </Journal>
      <ArticleTitle>Warfarin and <i>aspirin</i> co-therapy</ArticleTitle>
      <Abstract>
        <AbstractText Label="BACKGROUND">Major bleeding risk &amp; INR changes.</AbstractText>
        <AbstractText Label="CONCLUSIONS">Monitor INR closely.</AbstractText>
      </Abstract>
      <AuthorList>
        <Author><LastName>Smith</LastName><ForeName>Anna</ForeName></Author>
        <Author><CollectiveName>Bleeding Study Group</CollectiveName></Author>
      </AuthorList>
      <ELocationID EIdType="doi" ValidYN="Y">10.1000/abc</ELocationID>
    </Article>
  </MedlineCitation>
</PubmedArticle>
<PubmedArticle>
  <MedlineCitation Status="MEDLINE">
    <PMID Version="1">222</PMID>
    <Article PubModel="Print">
      <Journal>
        <JournalIssue><PubDate><MedlineDate>2019 Jan-Feb</MedlineDate></PubDate></JournalIssue>
        <Title>BMJ</Title>
      </Journal>
      <ArticleTitle>Second article</ArticleTitle>
    </Article>
  </MedlineCitation>
</PubmedArticle>
<PubmedArticle>
  <MedlineCitation Status="MEDLINE">
    <PMID Version="1">333</PMID>
    <Article PubModel="Print">
      <ArticleTitle></ArticleTitle>
    </Article>
  </MedlineCitation>
</PubmedArticle>
</PubmedArticleSet>
"""


def make_trial(nct_id="NCT00000001", title="Aspirin for primary prevention", summary="A <b>randomized</b> trial."):
    return {
        "protocolSection": {
            "identificationModule": {"nctId": nct_id, "briefTitle": title},
            "descriptionModule": {"briefSummary": summary},
            "statusModule": {"startDateStruct": {"date": "2018-05"}},
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "NIH"}},
        }
    }


# ============================================================================
# Helpers
# ============================================================================

class TestTextHelpers:
    """Markup stripping and dedup keys."""

    def test_strip_markup_removes_tags_and_entities(self):
        assert strip_markup("<p>Hello <b>world</b></p>") == "Hello world"
        assert strip_markup("A &amp; B") == "A & B"

    def test_strip_markup_removes_encoded_tags(self):
        assert strip_markup("&lt;i&gt;italic&lt;/i&gt; text") == "italic text"

    def test_strip_markup_handles_none(self):
        assert strip_markup(None) == ""

    def test_title_key_ignores_case_and_punctuation(self):
        assert title_key("Warfarin: A Review!") == title_key("warfarin a review")

    def test_text_key_collapses_whitespace(self):
        assert text_key("  Active   Bleeding. ") == "active bleeding"


# ============================================================================
# PubMed
# ============================================================================

class TestPubMedParsing:
    """efetch XML → NormalizedDocument."""

    def test_parses_each_article_block_separately(self):
        articles = parse_pubmed_xml(PUBMED_XML)
        assert [a["pmid"] for a in articles] == ["111", "222", "333"]
        # Authors of the first article never leak into the second
        assert articles[1]["authors"] == []

    def test_normalizes_fields(self):
        docs = normalize_items(PUBMED_XML, DocumentSource.CITATION_INDEX)
        first = docs[0]

        assert first.id == "111"
        assert first.title == "Warfarin and aspirin co-therapy"
        assert first.abstract == "Major bleeding risk & INR changes. Monitor INR closely."
        assert first.journal == "The Lancet"
        assert first.year == "2020"
        assert first.authors == ["Anna Smith", "Bleeding Study Group"]
        assert first.doi == "10.1000/abc"
        assert first.url == "https://pubmed.ncbi.nlm.nih.gov/111/"

    def test_missing_abstract_gets_sentinel(self):
        docs = normalize_items(PUBMED_XML, DocumentSource.CITATION_INDEX)
        second = docs[1]
        assert second.abstract == NO_ABSTRACT
        assert second.year == "2019"

    def test_article_without_title_is_dropped(self):
        docs = normalize_items(PUBMED_XML, DocumentSource.CITATION_INDEX)
        assert [d.id for d in docs] == ["111", "222"]

    def test_no_markup_survives_normalization(self):
        for doc in normalize_items(PUBMED_XML, DocumentSource.CITATION_INDEX):
            assert "<" not in doc.title and ">" not in doc.title
            assert "<" not in doc.abstract and ">" not in doc.abstract

    def test_empty_xml(self):
        assert normalize_items("", DocumentSource.CITATION_INDEX) == []

    def test_text_input_rejected_for_other_sources(self):
        with pytest.raises(ValueError):
            normalize_items("<html></html>", DocumentSource.ACADEMIC_SEARCH)


# ============================================================================
# Scholar / Trials
# ============================================================================

class TestOtherSources:
    """Scholar result dicts and ClinicalTrials.gov studies."""

    def test_scholar_result_uses_url_as_id(self):
        doc = normalize_item(
            {
                "title": "Aspirin <b>dosing</b>",
                "url": "https://example.org/aspirin",
                "authors": "A Smith, B Jones",
                "journal": "Circulation",
                "publication_info": "A Smith, B Jones - Circulation, 2017 - ahajournals.org",
            },
            DocumentSource.ACADEMIC_SEARCH,
        )
        assert doc.id == "https://example.org/aspirin"
        assert doc.title == "Aspirin dosing"
        assert doc.authors == ["A Smith", "B Jones"]
        assert doc.year == "2017"
        assert doc.source == DocumentSource.ACADEMIC_SEARCH

    def test_scholar_result_without_url_falls_back_to_title_key(self):
        doc = normalize_item({"title": "Aspirin Dosing"}, DocumentSource.ACADEMIC_SEARCH)
        assert doc.id == "scholar:aspirindosing"
        assert doc.journal == UNKNOWN

    def test_scholar_result_without_title_is_dropped(self):
        assert normalize_item({"url": "https://example.org"}, DocumentSource.ACADEMIC_SEARCH) is None

    def test_trial_study(self):
        doc = normalize_item(make_trial(), DocumentSource.TRIALS_REGISTRY)
        assert doc.id == "NCT00000001"
        assert doc.abstract == "A randomized trial."
        assert doc.journal == "ClinicalTrials.gov"
        assert doc.year == "2018"
        assert doc.authors == ["NIH"]
        assert doc.url == "https://clinicaltrials.gov/study/NCT00000001"

    def test_trial_without_nct_id_is_dropped(self):
        assert normalize_item(make_trial(nct_id=""), DocumentSource.TRIALS_REGISTRY) is None


# ============================================================================
# Deduplication
# ============================================================================

class TestDeduplication:
    """First occurrence per title key wins."""

    def test_keeps_first_occurrence(self, make_document):
        docs = [
            make_document("1", "Warfarin: a review"),
            make_document("2", "WARFARIN - A REVIEW"),
            make_document("3", "Aspirin"),
        ]
        assert [d.id for d in dedupe_documents(docs)] == ["1", "3"]

    def test_non_latin_titles_are_kept(self, make_document):
        docs = [
            make_document("1", "华法林的安全性"),
            make_document("2", "华法林的安全性。"),
            make_document("3", "Варфарин при беременности"),
            make_document("4", "???"),
            make_document("5", "!!!"),
        ]
        assert [d.id for d in dedupe_documents(docs)] == ["1", "3", "4", "5"]
        assert title_key("Варфарин при беременности") == "варфаринприбеременности"

    def test_dedup_is_idempotent(self, make_document):
        docs = [
            make_document("1", "Warfarin: a review"),
            make_document("2", "warfarin a review"),
            make_document("3", "Aspirin"),
            make_document("4", "Aspirin."),
        ]
        once = dedupe_documents(docs)
        assert dedupe_documents(once) == once

    def test_trial_batch_is_deduplicated(self):
        studies = [
            make_trial("NCT1", "Aspirin trial"),
            make_trial("NCT2", "ASPIRIN TRIAL"),
        ]
        docs = normalize_items(studies, DocumentSource.TRIALS_REGISTRY)
        assert [d.id for d in docs] == ["NCT1"]
