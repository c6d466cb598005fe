"""
ClinicalTrials.gov Adapter - registry API v2.

API Documentation: https://clinicaltrials.gov/data-api/api
"""
from typing import List, Optional

from medical_mcp.literature.normalizer import normalize_items
from medical_mcp.models import DocumentSource, NormalizedDocument

from .base import LiteratureAdapter


class ClinicalTrialsAdapter(LiteratureAdapter):
    """Searches registered clinical studies by free-text term."""

    @property
    def name(self) -> str:
        return "clinical_trials"

    @property
    def description(self) -> str:
        return "Searches ClinicalTrials.gov for registered clinical studies."

    @property
    def studies_endpoint(self) -> str:
        return f"{self.settings.clinical_trials_api_base}/studies"

    async def fetch_documents(self, term: str, limit: Optional[int] = None) -> List[NormalizedDocument]:
        """
        API: /studies?query.term={term}&pageSize={limit}&format=json
        """
        data = await self._get_object(
            self.studies_endpoint,
            {
                "query.term": term,
                "pageSize": limit or self.settings.trials_max_results,
                "format": "json",
            },
        )

        # Response structure: {"studies": [{"protocolSection": {...}}], "nextPageToken": ...}
        studies = data.get("studies") or []
        return normalize_items(studies, DocumentSource.TRIALS_REGISTRY)
