"""
Tool registry and HTTP API tests.

Covers:
1. Tool registry lookup and argument validation
2. FastAPI endpoints: /health, /tools, /tools/{name}
3. Error mapping: unknown tool -> 404, invalid arguments -> 422
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from medical_mcp.exceptions import UnknownToolError
from medical_mcp.main import app
from medical_mcp.sources import ToolResult
from medical_mcp.tools import TOOLS, call_tool, get_tool

INTERACTION_CORPUS_TITLE = "Warfarin and aspirin: a major bleeding interaction"


def interaction_corpus(make_document):
    return [
        make_document(
            "100",
            INTERACTION_CORPUS_TITLE,
            "Concomitant use of warfarin and aspirin increases bleeding risk. Monitor INR closely.",
        )
    ]


class TestToolRegistry:

    def test_all_tools_registered(self):
        assert len(TOOLS) == 16
        assert "get-drug-safety-info" in TOOLS
        assert "search-medical-journals" in TOOLS

    def test_unknown_tool(self):
        with pytest.raises(UnknownToolError):
            get_tool("no-such-tool")

    def test_arguments_are_stripped(self):
        args = get_tool("check-drug-interactions").parse({"drug1": " warfarin ", "drug2": "aspirin"})
        assert args.drug1 == "warfarin"

    def test_invalid_arguments(self):
        tool = get_tool("search-drugs")
        with pytest.raises(ValidationError):
            tool.parse({"query": "tylenol", "limit": 51})
        with pytest.raises(ValidationError):
            tool.parse({"query": "   "})
        with pytest.raises(ValidationError):
            tool.parse({"query": "tylenol", "unexpected": True})

    @pytest.mark.asyncio
    async def test_call_tool_renders_text(self, make_service, make_document):
        service = make_service(default=interaction_corpus(make_document))

        text = await call_tool(service, "check-drug-interactions", {"drug1": "warfarin", "drug2": "aspirin"})

        assert "**Drug Interaction Check: warfarin + aspirin**" in text
        assert "🔴 **MAJOR**" in text

    @pytest.mark.asyncio
    async def test_source_failure_rendered_as_error_text(self, make_service):
        service = make_service()
        service.rxnorm.execute = AsyncMock(return_value=ToolResult.fail("RxNorm API error (503)"))

        text = await call_tool(service, "search-drug-nomenclature", {"query": "metformin"})

        assert text == "Error searching RxNorm: RxNorm API error (503)"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


class TestHTTPApi:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_list_tools(self, client):
        response = client.get("/tools")
        assert response.status_code == 200

        tools = response.json()
        assert len(tools) == 16
        by_name = {tool["name"]: tool for tool in tools}
        assert "drug_name" in by_name["get-drug-safety-info"]["parameters"]["properties"]

    def test_unknown_tool_404(self, client):
        response = client.post("/tools/no-such-tool", json={})
        assert response.status_code == 404

    def test_invalid_arguments_422(self, client, make_service):
        app.state.service = make_service()

        assert client.post("/tools/search-drugs", json={"query": ""}).status_code == 422
        assert client.post("/tools/search-drugs", json={"query": "tylenol", "limit": 51}).status_code == 422
        assert client.post("/tools/generate-differential-diagnosis", json={"symptoms": []}).status_code == 422

    def test_blank_symptoms_422(self, client, make_service):
        service = make_service()
        app.state.service = service

        response = client.post("/tools/generate-differential-diagnosis", json={"symptoms": [" "]})

        assert response.status_code == 422
        service.pubmed.fetch_documents.assert_not_called()

    def test_interaction_check(self, client, make_service, make_document):
        app.state.service = make_service(default=interaction_corpus(make_document))

        response = client.post("/tools/check-drug-interactions", json={"drug1": "warfarin", "drug2": "aspirin"})

        assert response.status_code == 200
        body = response.json()
        assert body["tool"] == "check-drug-interactions"
        assert "MAJOR" in body["text"]

    def test_drug_details_not_found(self, client, make_service):
        service = make_service()
        service.fda.get_drug_by_ndc = AsyncMock(
            return_value=ToolResult.fail("No drug found with NDC: 0000-0000", not_found=True)
        )
        app.state.service = service

        response = client.post("/tools/get-drug-details", json={"ndc": "0000-0000"})

        assert response.status_code == 200
        assert response.json()["text"] == "No drug found with NDC: 0000-0000"
