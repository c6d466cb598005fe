"""
Tool registry shared by the MCP server and the HTTP app.

Each tool has a pydantic argument model and an async handler that takes
the MedicalSearchService plus validated arguments and returns one text
blob. Invalid arguments raise pydantic.ValidationError or
CallerContractViolation before any adapter call is made.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from medical_mcp import formatting
from medical_mcp.aggregation import MedicalSearchService
from medical_mcp.exceptions import UnknownToolError
from medical_mcp.sources import ToolResult

logger = logging.getLogger(__name__)


# ============================================================================
# Argument schemas
# ============================================================================

class ToolArguments(BaseModel):
    model_config = {"str_strip_whitespace": True, "extra": "forbid"}


class QueryArgs(ToolArguments):
    query: str = Field(..., min_length=1, description="Search term")


class SearchDrugsArgs(ToolArguments):
    query: str = Field(..., min_length=1, description="Drug name to search for (brand name)")
    limit: int = Field(10, ge=1, le=50, description="Number of results to return")


class DrugDetailsArgs(ToolArguments):
    ndc: str = Field(..., min_length=1, description="National Drug Code (NDC) of the drug")


class HealthStatisticsArgs(ToolArguments):
    indicator: str = Field(..., min_length=1, description="Health indicator to search for (e.g., 'Life expectancy')")
    country: Optional[str] = Field(None, description="Country code (e.g., 'USA', 'GBR')")
    limit: int = Field(10, ge=1, le=20, description="Number of results to return")


class LiteratureArgs(ToolArguments):
    query: str = Field(..., min_length=1, description="Medical topic or condition to search for")
    max_results: int = Field(10, ge=1, le=20, description="Maximum number of articles to return")


class ArticleArgs(ToolArguments):
    pmid: str = Field(..., min_length=1, description="PubMed ID (PMID) of the article")


class GuidelineArgs(ToolArguments):
    query: str = Field(..., min_length=1, description="Medical condition or topic")
    organization: Optional[str] = Field(None, description="Specific medical organization (e.g., 'American Heart Association')")


class DrugArgs(ToolArguments):
    drug_name: str = Field(..., min_length=1, description="Name of the drug")


class InteractionArgs(ToolArguments):
    drug1: str = Field(..., min_length=1, description="First drug name")
    drug2: str = Field(..., min_length=1, description="Second drug name")


class DifferentialArgs(ToolArguments):
    symptoms: List[str] = Field(..., min_length=1, description="List of presenting symptoms")


class ConditionArgs(ToolArguments):
    condition: str = Field(..., min_length=1, description="Medical condition")


class OptionalConditionArgs(ToolArguments):
    condition: Optional[str] = Field(None, description="Medical condition (omit to list common calculators)")


class LabArgs(ToolArguments):
    test_name: Optional[str] = Field(None, description="Laboratory test name (omit to list common tests)")


# ============================================================================
# Handlers
# ============================================================================

def _error_text(action: str, result: ToolResult) -> str:
    return f"Error {action}: {result.error}"


async def _search_drugs(service: MedicalSearchService, args: SearchDrugsArgs) -> str:
    result = await service.fda.search_drugs(args.query, args.limit)
    if not result.success:
        return _error_text("searching drugs", result)
    return formatting.format_drug_search(args.query, result.data)


async def _drug_details(service: MedicalSearchService, args: DrugDetailsArgs) -> str:
    result = await service.fda.get_drug_by_ndc(args.ndc)
    if not result.success and not result.metadata.get("not_found"):
        return _error_text("fetching drug details", result)
    return formatting.format_drug_details(args.ndc, result.data)


async def _health_statistics(service: MedicalSearchService, args: HealthStatisticsArgs) -> str:
    result = await service.who.get_health_indicators(args.indicator, args.country)
    if not result.success:
        return _error_text("fetching health statistics", result)
    return formatting.format_health_statistics(args.indicator, args.country, result.data, args.limit)


async def _literature(service: MedicalSearchService, args: LiteratureArgs) -> str:
    result = await service.pubmed.search(args.query, args.max_results)
    if not result.success:
        return _error_text("searching medical literature", result)
    return formatting.format_literature(args.query, result.data)


async def _article(service: MedicalSearchService, args: ArticleArgs) -> str:
    result = await service.pubmed.get_article(args.pmid)
    if not result.success and not result.metadata.get("not_found"):
        return _error_text("fetching article details", result)
    return formatting.format_article(args.pmid, result.data)


async def _nomenclature(service: MedicalSearchService, args: QueryArgs) -> str:
    result = await service.rxnorm.execute(args.query)
    if not result.success:
        return _error_text("searching RxNorm", result)
    return formatting.format_rxnorm(args.query, result.data)


async def _scholar(service: MedicalSearchService, args: QueryArgs) -> str:
    result = await service.scholar.search(args.query)
    if not result.success:
        return _error_text("searching Google Scholar", result)
    return formatting.format_scholar(args.query, result.data)


async def _guidelines(service: MedicalSearchService, args: GuidelineArgs) -> str:
    guidelines = await service.search_clinical_guidelines(args.query, args.organization)
    return formatting.format_guidelines(args.query, args.organization, guidelines)


async def _drug_safety(service: MedicalSearchService, args: DrugArgs) -> str:
    return formatting.format_drug_safety(await service.get_drug_safety_info(args.drug_name))


async def _interactions(service: MedicalSearchService, args: InteractionArgs) -> str:
    interactions = await service.check_drug_interactions(args.drug1, args.drug2)
    return formatting.format_interactions(args.drug1, args.drug2, interactions)


async def _differential(service: MedicalSearchService, args: DifferentialArgs) -> str:
    return formatting.format_differential(await service.generate_differential_diagnosis(args.symptoms))


async def _risk_calculators(service: MedicalSearchService, args: OptionalConditionArgs) -> str:
    calculators = await service.get_risk_calculators(args.condition)
    return formatting.format_risk_calculators(calculators, args.condition or None)


async def _lab_values(service: MedicalSearchService, args: LabArgs) -> str:
    return formatting.format_lab_values(await service.get_lab_values(args.test_name))


async def _diagnostic_criteria(service: MedicalSearchService, args: ConditionArgs) -> str:
    return formatting.format_diagnostic_criteria(await service.get_diagnostic_criteria(args.condition))


async def _databases(service: MedicalSearchService, args: QueryArgs) -> str:
    return formatting.format_database_results(await service.search_medical_databases(args.query))


async def _journals(service: MedicalSearchService, args: QueryArgs) -> str:
    return formatting.format_journal_results(args.query, await service.search_medical_journals(args.query))


# ============================================================================
# Registry
# ============================================================================

Handler = Callable[[MedicalSearchService, Any], Awaitable[str]]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    arguments: Type[ToolArguments]
    handler: Handler

    def parse(self, arguments: Optional[Dict[str, Any]]) -> ToolArguments:
        return self.arguments.model_validate(arguments or {})


TOOLS: Dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool("search-drugs", "Search for drug information using FDA database", SearchDrugsArgs, _search_drugs),
        Tool("get-drug-details", "Get detailed information about a specific drug by NDC (National Drug Code)", DrugDetailsArgs, _drug_details),
        Tool("get-health-statistics", "Get health statistics and indicators from WHO Global Health Observatory", HealthStatisticsArgs, _health_statistics),
        Tool("search-medical-literature", "Search for medical research articles in PubMed", LiteratureArgs, _literature),
        Tool("get-article-details", "Get detailed information about a specific medical article by PMID", ArticleArgs, _article),
        Tool("search-drug-nomenclature", "Search for drug information using RxNorm (standardized drug nomenclature)", QueryArgs, _nomenclature),
        Tool("search-google-scholar", "Search for academic research articles using Google Scholar", QueryArgs, _scholar),
        Tool("search-clinical-guidelines", "Search for clinical guidelines and practice recommendations from medical organizations", GuidelineArgs, _guidelines),
        Tool("get-drug-safety-info", "Get drug safety information including pregnancy and lactation data", DrugArgs, _drug_safety),
        Tool("check-drug-interactions", "Check for potential drug-drug interactions between two medications", InteractionArgs, _interactions),
        Tool("generate-differential-diagnosis", "Generate differential diagnosis based on presenting symptoms", DifferentialArgs, _differential),
        Tool("get-risk-calculators", "Get medical risk calculators for clinical decision making", OptionalConditionArgs, _risk_calculators),
        Tool("get-lab-values", "Get normal lab value ranges and critical values", LabArgs, _lab_values),
        Tool("get-diagnostic-criteria", "Get diagnostic criteria for specific medical conditions", ConditionArgs, _diagnostic_criteria),
        Tool("search-medical-databases", "Search PubMed, Google Scholar and ClinicalTrials.gov in one call", QueryArgs, _databases),
        Tool("search-medical-journals", "Search for articles in top medical journals (NEJM, Lancet, JAMA, BMJ, ...)", QueryArgs, _journals),
    )
}


def get_tool(name: str) -> Tool:
    try:
        return TOOLS[name]
    except KeyError:
        raise UnknownToolError(f"Unknown tool: {name}") from None


async def call_tool(service: MedicalSearchService, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
    """
    Validate arguments and run one tool.

    Raises:
        UnknownToolError: No tool with that name
        pydantic.ValidationError: Arguments do not match the tool's schema
        CallerContractViolation: Arguments are well-typed but unusable
    """
    tool = get_tool(name)
    args = tool.parse(arguments)
    logger.info("Calling tool %s", name)
    return await tool.handler(service, args)
