"""
Abstract base classes for external data source adapters.

All adapters follow a standardized contract:
1. name: Unique identifier for the source
2. description: Human-readable description of what the source provides
3. A lazily created httpx.AsyncClient, released with close()
4. Public calls return ToolResult with success status and data/error

Literature adapters additionally expose fetch_documents(), the low-level
call used by the fan-out, which raises SourceUnavailableError on failure.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from medical_mcp.config import Settings, settings as default_settings
from medical_mcp.exceptions import SourceUnavailableError
from medical_mcp.models import NormalizedDocument

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """
    Standardized result from an adapter call.

    Attributes:
        success: Whether the call succeeded
        data: Output data if successful (type depends on adapter)
        error: Error message if failed
        metadata: Additional execution metadata (search term, counts, ...)
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Add timestamp to metadata."""
        if "timestamp" not in self.metadata:
            self.metadata["timestamp"] = datetime.now(timezone.utc).isoformat()

    @classmethod
    def ok(cls, data: Any, **metadata) -> "ToolResult":
        """Create successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata) -> "ToolResult":
        """Create failed result."""
        return cls(success=False, error=error, metadata=metadata)


class SourceAdapter(ABC):
    """
    Base class for all source adapters.

    Each adapter owns one httpx.AsyncClient configured from Settings
    (timeout, user agent). The client is created on first use.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.timeout = self.settings.http_timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the source."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this source provides."""
        pass

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.user_agent}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers(),
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        GET a URL, mapping every transport or HTTP failure to SourceUnavailableError.
        """
        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise SourceUnavailableError(self.name, f"API timeout: {url}") from e
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                self.name,
                f"API error ({e.response.status_code}): {str(e)}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(self.name, f"Request failed: {str(e)}") from e
        return response

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._get(url, params)
        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailableError(self.name, f"Invalid JSON response: {str(e)}") from e

    async def _get_object(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON object; any other payload shape is a source failure."""
        data = await self._get_json(url, params)
        if not isinstance(data, dict):
            raise SourceUnavailableError(self.name, f"Unexpected payload: {type(data).__name__}")
        return data

    def _fail(self, error: Exception, **metadata) -> ToolResult:
        logger.warning("%s call failed: %s", self.name, error)
        return ToolResult.fail(str(error), source=self.name, **metadata)

    def __repr__(self) -> str:
        return f"<SourceAdapter: {self.name}>"


class LiteratureAdapter(SourceAdapter):
    """
    Extension of SourceAdapter for sources whose results normalize to
    NormalizedDocument (PubMed, Google Scholar, ClinicalTrials.gov).
    """

    @abstractmethod
    async def fetch_documents(self, term: str, limit: Optional[int] = None) -> List[NormalizedDocument]:
        """
        Run one search term and return normalized, deduplicated documents.

        Args:
            term: Query string in the source's own syntax
            limit: Maximum number of raw results to request

        Returns:
            Normalized documents in the source's result order

        Raises:
            SourceUnavailableError: The source could not be queried
        """
        pass

    async def search(self, query: str, limit: Optional[int] = None) -> ToolResult:
        """
        Search the source for documents.

        Returns:
            ToolResult with a list of NormalizedDocument or error
        """
        if not query or not query.strip():
            return ToolResult.fail("Empty search query provided", source=self.name)

        try:
            documents = await self.fetch_documents(query.strip(), limit)
        except SourceUnavailableError as e:
            return self._fail(e, search_term=query)

        return ToolResult.ok(
            data=documents,
            search_term=query,
            source=self.name,
            count=len(documents),
        )
