"""
Source adapter tests.

The HTTP client is replaced by an AsyncMock, so no network access is needed.
"""
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from medical_mcp.config import Settings
from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.models import DrugLabel, HealthIndicator, RxNormConcept
from medical_mcp.sources import (
    ClinicalTrialsAdapter,
    FDALabelAdapter,
    PubMedAdapter,
    RxNormAdapter,
    ScholarAdapter,
    WHOStatisticsAdapter,
)
from medical_mcp.sources.scholar import parse_scholar_html


# ============================================================================
# Helpers
# ============================================================================

def json_response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status = Mock()
    return response


def text_response(text):
    response = Mock()
    response.text = text
    response.raise_for_status = Mock()
    return response


def status_error_response(status_code):
    response = Mock()
    response.raise_for_status = Mock(side_effect=httpx.HTTPStatusError(
        f"HTTP {status_code}",
        request=Mock(),
        response=Mock(status_code=status_code),
    ))
    return response


def attach_client(adapter, **get_behaviour):
    mock_client = AsyncMock()
    for key, value in get_behaviour.items():
        setattr(mock_client.get, key, value)
    mock_client.is_closed = False
    adapter._client = mock_client
    return mock_client


EFETCH_XML = """<PubmedArticleSet>
<PubmedArticle><MedlineCitation>
  <PMID Version="1">12345</PMID>
  <Article>
    <Journal><JournalIssue><PubDate><Year>2022</Year></PubDate></JournalIssue><Title>JAMA</Title></Journal>
    <ArticleTitle>Aspirin for primary prevention</ArticleTitle>
    <Abstract><AbstractText>Aspirin reduced events.</AbstractText></Abstract>
  </Article>
</MedlineCitation></PubmedArticle>
</PubmedArticleSet>"""

SCHOLAR_HTML = """
<html><body>
<div class="gs_r gs_or gs_scl">
  <div class="gs_ri">
    <h3 class="gs_rt"><span class="gs_ctc">[PDF]</span> <a href="https://example.org/statins">Statins and <b>cardiovascular</b> outcomes</a></h3>
    <div class="gs_a">J Doe, R Roe - The Lancet, 2019 - thelancet.com</div>
    <div class="gs_rs">Statins reduce major vascular events.</div>
    <div class="gs_fl"><a href="#">Cite</a> <a href="#">Cited by 321</a></div>
  </div>
</div>
<div class="gs_r gs_or gs_scl">
  <div class="gs_ri">
    <h3 class="gs_rt">Citation only result</h3>
    <div class="gs_a">A Author - 2001</div>
  </div>
</div>
</body></html>
"""


# ============================================================================
# PubMed
# ============================================================================

class TestPubMedAdapter:

    @pytest.mark.asyncio
    async def test_search_then_fetch(self):
        adapter = PubMedAdapter(Settings())
        mock_client = attach_client(adapter, side_effect=[
            json_response({"esearchresult": {"idlist": ["12345"]}}),
            text_response(EFETCH_XML),
        ])

        documents = await adapter.fetch_documents('"aspirin" AND "prevention"', limit=3)

        assert [d.id for d in documents] == ["12345"]
        assert documents[0].journal == "JAMA"
        esearch_params = mock_client.get.call_args_list[0].kwargs["params"]
        assert esearch_params["retmax"] == 3
        assert esearch_params["sort"] == "relevance"
        efetch_params = mock_client.get.call_args_list[1].kwargs["params"]
        assert efetch_params["id"] == "12345"

    @pytest.mark.asyncio
    async def test_no_ids_skips_efetch(self):
        adapter = PubMedAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"esearchresult": {"idlist": []}}))

        assert await adapter.fetch_documents("nothing") == []
        assert mock_client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_api_key_sent_when_configured(self):
        adapter = PubMedAdapter(Settings(ncbi_api_key="secret"))
        mock_client = attach_client(adapter, return_value=json_response({"esearchresult": {"idlist": []}}))

        await adapter.search_ids("aspirin")

        assert mock_client.get.call_args.kwargs["params"]["api_key"] == "secret"

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self):
        adapter = PubMedAdapter(Settings())
        attach_client(adapter, side_effect=httpx.TimeoutException("timed out"))

        result = await adapter.search("aspirin")

        assert result.success is False
        assert "timeout" in result.error.lower()

    @pytest.mark.asyncio
    async def test_fetch_documents_raises_source_unavailable(self):
        adapter = PubMedAdapter(Settings())
        attach_client(adapter, return_value=status_error_response(503))

        with pytest.raises(SourceUnavailableError) as exc_info:
            await adapter.fetch_documents("aspirin")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_get_article(self):
        adapter = PubMedAdapter(Settings())
        attach_client(adapter, return_value=text_response(EFETCH_XML))

        result = await adapter.get_article("12345")

        assert result.success is True
        assert result.data.title == "Aspirin for primary prevention"

    @pytest.mark.asyncio
    async def test_get_article_not_found(self):
        adapter = PubMedAdapter(Settings())
        attach_client(adapter, return_value=text_response("<PubmedArticleSet></PubmedArticleSet>"))

        result = await adapter.get_article("99999")

        assert result.success is False
        assert result.error == "No article found with PMID: 99999"
        assert result.metadata["not_found"] is True

    @pytest.mark.asyncio
    async def test_empty_query(self):
        result = await PubMedAdapter(Settings()).search("")
        assert result.success is False
        assert "Empty" in result.error


# ============================================================================
# openFDA
# ============================================================================

class TestFDALabelAdapter:

    LABEL = {
        "openfda": {
            "brand_name": ["Tylenol"],
            "generic_name": ["ACETAMINOPHEN"],
            "manufacturer_name": ["McNeil"],
            "route": ["ORAL"],
            "unexpected_field": ["ignored"],
        },
        "purpose": ["Pain reliever"],
        "warnings": ["Liver warning"],
        "effective_time": "20230101",
    }

    @pytest.mark.asyncio
    async def test_search_drugs(self):
        adapter = FDALabelAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"results": [self.LABEL]}))

        result = await adapter.search_drugs("Tylenol", limit=5)

        assert result.success is True
        assert isinstance(result.data[0], DrugLabel)
        assert result.data[0].openfda.brand_name == ["Tylenol"]
        params = mock_client.get.call_args.kwargs["params"]
        assert params == {"search": "openfda.brand_name:Tylenol", "limit": 5}

    @pytest.mark.asyncio
    async def test_not_found_status_is_empty_result(self):
        adapter = FDALabelAdapter(Settings())
        attach_client(adapter, return_value=status_error_response(404))

        result = await adapter.search_drugs("Nonexistium")

        assert result.success is True
        assert result.data == []

    @pytest.mark.asyncio
    async def test_server_error_is_failure(self):
        adapter = FDALabelAdapter(Settings())
        attach_client(adapter, return_value=status_error_response(500))

        result = await adapter.search_drugs("Tylenol")

        assert result.success is False
        assert "500" in result.error

    @pytest.mark.asyncio
    async def test_get_drug_by_ndc_not_found(self):
        adapter = FDALabelAdapter(Settings())
        attach_client(adapter, return_value=json_response({"results": []}))

        result = await adapter.get_drug_by_ndc("0000-0000")

        assert result.success is False
        assert result.error == "No drug found with NDC: 0000-0000"
        assert result.metadata["not_found"] is True

    @pytest.mark.asyncio
    async def test_label_for_drug_matches_brand_or_generic(self):
        adapter = FDALabelAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"results": [self.LABEL]}))

        label = await adapter.fetch_label_for_drug("acetaminophen")

        assert label.warnings == ["Liver warning"]
        search = mock_client.get.call_args.kwargs["params"]["search"]
        assert search == 'openfda.brand_name:"acetaminophen" OR openfda.generic_name:"acetaminophen"'


# ============================================================================
# WHO / RxNorm / ClinicalTrials.gov
# ============================================================================

class TestWHOStatisticsAdapter:

    @pytest.mark.asyncio
    async def test_indicators_with_country_filter(self):
        adapter = WHOStatisticsAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"value": [
            {"IndicatorCode": "WHOSIS_000001", "SpatialDim": "USA", "TimeDim": 2019, "Value": "78.5",
             "NumericValue": 78.5, "Date": "2020-12-04"},
        ]}))

        result = await adapter.get_health_indicators("Life expectancy at birth (years)", "USA")

        assert result.success is True
        point = result.data[0]
        assert isinstance(point, HealthIndicator)
        assert (point.spatial_dim, point.time_dim, point.numeric_value) == ("USA", "2019", 78.5)
        params = mock_client.get.call_args.kwargs["params"]
        assert params["$filter"] == "IndicatorName eq 'Life expectancy at birth (years)' and SpatialDim eq 'USA'"

    @pytest.mark.asyncio
    async def test_quotes_are_escaped(self):
        adapter = WHOStatisticsAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"value": []}))

        await adapter.get_health_indicators("Children's health")

        params = mock_client.get.call_args.kwargs["params"]
        assert params["$filter"] == "IndicatorName eq 'Children''s health'"


class TestRxNormAdapter:

    @pytest.mark.asyncio
    async def test_flattens_groups_and_skips_suppressed(self):
        adapter = RxNormAdapter(Settings())
        attach_client(adapter, return_value=json_response({"drugGroup": {"conceptGroup": [
            {"tty": "SBD", "conceptProperties": [
                {"rxcui": "1", "name": "Lipitor 10 MG", "tty": "SBD", "language": "ENG", "suppress": "N"},
                {"rxcui": "2", "name": "Obsolete", "tty": "SBD", "suppress": "O"},
            ]},
            {"tty": "SCD"},
            {"tty": "SCD", "conceptProperties": [
                {"rxcui": "3", "name": "atorvastatin 10 MG", "tty": "SCD", "synonym": ""},
            ]},
        ]}}))

        result = await adapter.execute("atorvastatin")

        assert result.success is True
        assert all(isinstance(c, RxNormConcept) for c in result.data)
        assert [c.rxcui for c in result.data] == ["1", "3"]

    @pytest.mark.asyncio
    async def test_no_drug_group(self):
        adapter = RxNormAdapter(Settings())
        attach_client(adapter, return_value=json_response({"drugGroup": {"name": "xyz"}}))

        result = await adapter.execute("xyz")

        assert result.success is True
        assert result.data == []


class TestUnexpectedPayloads:
    """A JSON array where an object is expected fails the call instead of raising."""

    @pytest.mark.asyncio
    async def test_fda_list_payload(self):
        adapter = FDALabelAdapter(Settings())
        attach_client(adapter, return_value=json_response([{"results": []}]))

        result = await adapter.search_drugs("Tylenol")

        assert result.success is False
        assert result.error == "openfda: Unexpected payload: list"

    @pytest.mark.asyncio
    async def test_who_list_payload(self):
        adapter = WHOStatisticsAdapter(Settings())
        attach_client(adapter, return_value=json_response([]))

        result = await adapter.get_health_indicators("Life expectancy")

        assert result.success is False
        assert "Unexpected payload" in result.error

    @pytest.mark.asyncio
    async def test_rxnorm_list_payload(self):
        adapter = RxNormAdapter(Settings())
        attach_client(adapter, return_value=json_response(["metformin"]))

        result = await adapter.execute("metformin")

        assert result.success is False
        assert "Unexpected payload" in result.error


class TestClinicalTrialsAdapter:

    @pytest.mark.asyncio
    async def test_studies_normalized(self):
        adapter = ClinicalTrialsAdapter(Settings())
        mock_client = attach_client(adapter, return_value=json_response({"studies": [
            {"protocolSection": {
                "identificationModule": {"nctId": "NCT01", "briefTitle": "Statin trial"},
                "descriptionModule": {"briefSummary": "Summary."},
            }},
            {"protocolSection": {"identificationModule": {"briefTitle": "No id"}}},
        ]}))

        documents = await adapter.fetch_documents("statin")

        assert [d.id for d in documents] == ["NCT01"]
        params = mock_client.get.call_args.kwargs["params"]
        assert params["query.term"] == "statin"
        assert params["pageSize"] == Settings().trials_max_results


# ============================================================================
# Google Scholar
# ============================================================================

class TestScholar:

    def test_parse_result_cards(self):
        results = parse_scholar_html(SCHOLAR_HTML)

        assert len(results) == 2
        first = results[0]
        assert first["title"] == "Statins and cardiovascular outcomes"
        assert first["url"] == "https://example.org/statins"
        assert first["authors"] == "J Doe, R Roe"
        assert first["journal"] == "The Lancet"
        assert first["year"] == "2019"
        assert first["abstract"] == "Statins reduce major vascular events."
        assert first["citations"] == 321

        second = results[1]
        assert second["url"] is None
        assert second["year"] == "2001"
        assert second["citations"] is None

    def test_parse_respects_max_results(self):
        assert len(parse_scholar_html(SCHOLAR_HTML, max_results=1)) == 1

    def test_unrecognized_layout(self):
        assert parse_scholar_html("<html><body><p>captcha</p></body></html>") == []

    @pytest.mark.asyncio
    async def test_fetch_documents(self):
        adapter = ScholarAdapter(Settings(scholar_delay_range=(0.0, 0.0)))
        mock_client = attach_client(adapter, return_value=text_response(SCHOLAR_HTML))

        documents = await adapter.fetch_documents("statins")

        assert [d.id for d in documents] == ["https://example.org/statins", "scholar:citationonlyresult"]
        assert documents[0].authors == ["J Doe", "R Roe"]
        assert mock_client.get.call_args.kwargs["params"]["q"] == "statins"

    def test_browser_user_agent(self):
        adapter = ScholarAdapter(Settings())
        assert adapter._headers()["User-Agent"] == Settings().scholar_user_agent
