"""
RxNorm Adapter - NIH RxNav API integration for standardized drug names.

Uses the NIH RxNav drugs endpoint to list the RxNorm concepts (RxCUI,
term type, synonyms) that match a drug name.

API Documentation: https://lhncbc.nlm.nih.gov/RxNav/APIs/api-RxNorm.getDrugs.html
"""
import logging
from typing import List

from pydantic import ValidationError

from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.models import RxNormConcept

from .base import SourceAdapter, ToolResult

logger = logging.getLogger(__name__)


class RxNormAdapter(SourceAdapter):
    """
    Looks up RxNorm concepts for a drug name using the NIH RxNav API.

    Features:
    - Brand and generic names both accepted
    - Concepts from every concept group (SBD, SCD, BN, ...) flattened in API order
    - Suppressed concepts skipped
    """

    @property
    def name(self) -> str:
        return "rxnorm"

    @property
    def description(self) -> str:
        return (
            "Looks up standardized drug nomenclature (RxCUI, term type, synonyms) "
            "from the NIH RxNav API."
        )

    @property
    def drugs_endpoint(self) -> str:
        return f"{self.settings.rxnav_api_base}/drugs.json"

    async def fetch_concepts(self, query: str) -> List[RxNormConcept]:
        """
        API: /drugs.json?name={name}

        Raises:
            SourceUnavailableError: The API could not be queried
        """
        data = await self._get_object(self.drugs_endpoint, {"name": query})

        # Response structure: {"drugGroup": {"conceptGroup": [{"tty": "SBD", "conceptProperties": [...]}]}}
        drug_group = data.get("drugGroup") or {}
        if not isinstance(drug_group, dict):
            raise SourceUnavailableError(self.name, "Unexpected drugGroup payload")
        concepts = []
        for group in drug_group.get("conceptGroup") or []:
            for raw in group.get("conceptProperties") or []:
                if raw.get("suppress") not in (None, "", "N"):
                    continue
                try:
                    concepts.append(RxNormConcept.model_validate(raw))
                except ValidationError as e:
                    logger.debug("Skipping unparseable RxNorm concept: %s", e)
        return concepts

    async def execute(self, query: str) -> ToolResult:
        """
        Look up RxNorm concepts for a drug.

        Args:
            query: Drug name (brand or generic)

        Returns:
            ToolResult with a list of RxNormConcept (possibly empty) or error
        """
        if not query or not query.strip():
            return ToolResult.fail("Empty drug name provided", source=self.name)

        try:
            concepts = await self.fetch_concepts(query.strip())
        except SourceUnavailableError as e:
            return self._fail(e, search_term=query)

        return ToolResult.ok(
            data=concepts,
            search_term=query,
            source=self.name,
            api_endpoint=self.drugs_endpoint,
            count=len(concepts),
        )
