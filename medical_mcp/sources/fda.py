"""
openFDA Adapter - FDA drug label database.

API Documentation: https://open.fda.gov/apis/drug/label/
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.models import DrugLabel

from .base import SourceAdapter, ToolResult

logger = logging.getLogger(__name__)


class FDALabelAdapter(SourceAdapter):
    """
    Looks up structured product labels in openFDA.

    openFDA answers a search without matches with HTTP 404; that case is
    an empty result, not a failure.
    """

    @property
    def name(self) -> str:
        return "openfda"

    @property
    def description(self) -> str:
        return "Searches FDA drug labels by brand name, generic name or NDC."

    @property
    def label_endpoint(self) -> str:
        return f"{self.settings.fda_api_base}/drug/label.json"

    async def fetch_labels(self, search: str, limit: int = 1) -> List[DrugLabel]:
        """
        API: /drug/label.json?search={search}&limit={limit}

        Raises:
            SourceUnavailableError: The API could not be queried
        """
        params: Dict[str, Any] = {"search": search, "limit": limit}
        if self.settings.fda_api_key:
            params["api_key"] = self.settings.fda_api_key

        try:
            data = await self._get_object(self.label_endpoint, params)
        except SourceUnavailableError as e:
            if e.status_code == 404:
                return []
            raise

        labels = []
        for raw in data.get("results") or []:
            try:
                labels.append(DrugLabel.model_validate(raw))
            except ValidationError as e:
                logger.debug("Skipping unparseable FDA label: %s", e)
        return labels

    async def search_drugs(self, query: str, limit: int = 10) -> ToolResult:
        """
        Search drug labels by brand name.

        Returns:
            ToolResult with a list of DrugLabel (possibly empty) or error
        """
        if not query or not query.strip():
            return ToolResult.fail("Empty drug name provided", source=self.name)

        try:
            labels = await self.fetch_labels(f"openfda.brand_name:{query.strip()}", limit)
        except SourceUnavailableError as e:
            return self._fail(e, search_term=query)

        return ToolResult.ok(data=labels, search_term=query, source=self.name, count=len(labels))

    async def get_drug_by_ndc(self, ndc: str) -> ToolResult:
        """
        Get one drug label by National Drug Code.

        Returns:
            ToolResult with a DrugLabel, or a failure when nothing matches
        """
        ndc = (ndc or "").strip()
        if not ndc:
            return ToolResult.fail("Empty NDC provided", source=self.name)

        try:
            labels = await self.fetch_labels(f"openfda.product_ndc:{ndc}", 1)
        except SourceUnavailableError as e:
            return self._fail(e, ndc=ndc)

        if not labels:
            return ToolResult.fail(f"No drug found with NDC: {ndc}", source=self.name, ndc=ndc, not_found=True)
        return ToolResult.ok(data=labels[0], source=self.name, ndc=ndc)

    async def fetch_label_for_drug(self, drug_name: str) -> Optional[DrugLabel]:
        """
        First label whose brand or generic name matches the drug.

        Raises:
            SourceUnavailableError: The API could not be queried
        """
        search = f'openfda.brand_name:"{drug_name}" OR openfda.generic_name:"{drug_name}"'
        labels = await self.fetch_labels(search, 1)
        return labels[0] if labels else None
