"""
MCP stdio server exposing the medical tools.

Run with the `medical-mcp` console script. stdout carries the MCP
protocol, so everything else (logs, startup notice) goes to stderr.
"""
import logging
from typing import List, Optional

from fastmcp import FastMCP
from pydantic import ValidationError

from medical_mcp.aggregation import MedicalSearchService
from medical_mcp.config import settings
from medical_mcp.exceptions import CallerContractViolation
from medical_mcp.logging_config import configure_logging
from medical_mcp.tools import TOOLS, call_tool

logger = logging.getLogger(__name__)

SAFETY_NOTICE = (
    "Medical MCP server running. All information is retrieved from live sources "
    "and extracted heuristically; it is for educational purposes only and not a "
    "substitute for professional medical judgment."
)

mcp = FastMCP(
    "medical-mcp",
    instructions=(
        "Medical information service: FDA drug labels, WHO statistics, RxNorm, PubMed, "
        "Google Scholar, ClinicalTrials.gov, plus aggregated drug safety, interaction, "
        "diagnostic and lab reference answers."
    ),
)

_service: Optional[MedicalSearchService] = None


def get_service() -> MedicalSearchService:
    """Get or create the shared search service."""
    global _service
    if _service is None:
        _service = MedicalSearchService(settings)
    return _service


async def _run(name: str, **arguments) -> str:
    try:
        return await call_tool(get_service(), name, arguments)
    except (ValidationError, CallerContractViolation) as e:
        logger.info("Rejected arguments for %s: %s", name, e)
        return f"Invalid arguments for {name}: {e}"


@mcp.tool(name="search-drugs", description=TOOLS["search-drugs"].description)
async def search_drugs(query: str, limit: int = 10) -> str:
    return await _run("search-drugs", query=query, limit=limit)


@mcp.tool(name="get-drug-details", description=TOOLS["get-drug-details"].description)
async def get_drug_details(ndc: str) -> str:
    return await _run("get-drug-details", ndc=ndc)


@mcp.tool(name="get-health-statistics", description=TOOLS["get-health-statistics"].description)
async def get_health_statistics(indicator: str, country: Optional[str] = None, limit: int = 10) -> str:
    return await _run("get-health-statistics", indicator=indicator, country=country, limit=limit)


@mcp.tool(name="search-medical-literature", description=TOOLS["search-medical-literature"].description)
async def search_medical_literature(query: str, max_results: int = 10) -> str:
    return await _run("search-medical-literature", query=query, max_results=max_results)


@mcp.tool(name="get-article-details", description=TOOLS["get-article-details"].description)
async def get_article_details(pmid: str) -> str:
    return await _run("get-article-details", pmid=pmid)


@mcp.tool(name="search-drug-nomenclature", description=TOOLS["search-drug-nomenclature"].description)
async def search_drug_nomenclature(query: str) -> str:
    return await _run("search-drug-nomenclature", query=query)


@mcp.tool(name="search-google-scholar", description=TOOLS["search-google-scholar"].description)
async def search_google_scholar(query: str) -> str:
    return await _run("search-google-scholar", query=query)


@mcp.tool(name="search-clinical-guidelines", description=TOOLS["search-clinical-guidelines"].description)
async def search_clinical_guidelines(query: str, organization: Optional[str] = None) -> str:
    return await _run("search-clinical-guidelines", query=query, organization=organization)


@mcp.tool(name="get-drug-safety-info", description=TOOLS["get-drug-safety-info"].description)
async def get_drug_safety_info(drug_name: str) -> str:
    return await _run("get-drug-safety-info", drug_name=drug_name)


@mcp.tool(name="check-drug-interactions", description=TOOLS["check-drug-interactions"].description)
async def check_drug_interactions(drug1: str, drug2: str) -> str:
    return await _run("check-drug-interactions", drug1=drug1, drug2=drug2)


@mcp.tool(name="generate-differential-diagnosis", description=TOOLS["generate-differential-diagnosis"].description)
async def generate_differential_diagnosis(symptoms: List[str]) -> str:
    return await _run("generate-differential-diagnosis", symptoms=symptoms)


@mcp.tool(name="get-risk-calculators", description=TOOLS["get-risk-calculators"].description)
async def get_risk_calculators(condition: Optional[str] = None) -> str:
    return await _run("get-risk-calculators", condition=condition)


@mcp.tool(name="get-lab-values", description=TOOLS["get-lab-values"].description)
async def get_lab_values(test_name: Optional[str] = None) -> str:
    return await _run("get-lab-values", test_name=test_name)


@mcp.tool(name="get-diagnostic-criteria", description=TOOLS["get-diagnostic-criteria"].description)
async def get_diagnostic_criteria(condition: str) -> str:
    return await _run("get-diagnostic-criteria", condition=condition)


@mcp.tool(name="search-medical-databases", description=TOOLS["search-medical-databases"].description)
async def search_medical_databases(query: str) -> str:
    return await _run("search-medical-databases", query=query)


@mcp.tool(name="search-medical-journals", description=TOOLS["search-medical-journals"].description)
async def search_medical_journals(query: str) -> str:
    return await _run("search-medical-journals", query=query)


def main():
    configure_logging()
    logger.warning(SAFETY_NOTICE)
    mcp.run()


if __name__ == "__main__":
    main()
