"""
WHO Adapter - Global Health Observatory OData API.

API Documentation: https://www.who.int/data/gho/info/gho-odata-api
"""
import logging
from typing import List, Optional

from pydantic import ValidationError

from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.models import HealthIndicator

from .base import SourceAdapter, ToolResult

logger = logging.getLogger(__name__)


def _odata_literal(value: str) -> str:
    """Quote a string for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


class WHOStatisticsAdapter(SourceAdapter):
    """Reads health indicator data points from the WHO GHO."""

    @property
    def name(self) -> str:
        return "who"

    @property
    def description(self) -> str:
        return "Gets health statistics and indicators from the WHO Global Health Observatory."

    @property
    def indicator_endpoint(self) -> str:
        return f"{self.settings.who_api_base}/Indicator"

    async def fetch_indicators(self, indicator: str, country: Optional[str] = None) -> List[HealthIndicator]:
        """
        API: /Indicator?$filter=IndicatorName eq '{indicator}' [and SpatialDim eq '{country}']

        Raises:
            SourceUnavailableError: The API could not be queried
        """
        odata_filter = f"IndicatorName eq {_odata_literal(indicator)}"
        if country:
            odata_filter += f" and SpatialDim eq {_odata_literal(country)}"

        data = await self._get_object(
            self.indicator_endpoint,
            {"$filter": odata_filter, "$format": "json"},
        )

        # Response structure: {"value": [{"IndicatorCode": ..., "SpatialDim": ...}]}
        indicators = []
        for raw in data.get("value") or []:
            try:
                indicators.append(HealthIndicator.model_validate(raw))
            except ValidationError as e:
                logger.debug("Skipping unparseable WHO data point: %s", e)
        return indicators

    async def get_health_indicators(self, indicator: str, country: Optional[str] = None) -> ToolResult:
        """
        Returns:
            ToolResult with a list of HealthIndicator (possibly empty) or error
        """
        if not indicator or not indicator.strip():
            return ToolResult.fail("Empty indicator provided", source=self.name)

        country = country.strip() if country else None
        try:
            indicators = await self.fetch_indicators(indicator.strip(), country)
        except SourceUnavailableError as e:
            return self._fail(e, indicator=indicator, country=country)

        return ToolResult.ok(
            data=indicators,
            indicator=indicator,
            country=country,
            source=self.name,
            count=len(indicators),
        )
