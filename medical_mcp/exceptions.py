"""
Error taxonomy.

- SourceUnavailableError: one adapter call failed (network, HTTP status,
  unparseable payload). Recovered by the fan-out as an empty result.
- MalformedDocumentError: a raw source item lacks a title or stable id.
  Recovered by the normalizer by dropping the item.
- CallerContractViolation: invalid tool arguments, rejected before any
  adapter call is made.
- UnknownToolError: a tool name that is not registered.

"No facts found" is not an error: aggregates fall back to sentinel values.
"""
from typing import Optional


class MedicalSearchError(Exception):
    """Base class for all errors raised by this package."""


class SourceUnavailableError(MedicalSearchError):
    """An external data source could not be queried."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class MalformedDocumentError(MedicalSearchError):
    """A raw source item is missing mandatory fields."""


class CallerContractViolation(MedicalSearchError, ValueError):
    """Tool arguments violate the operation's contract."""


class UnknownToolError(MedicalSearchError, KeyError):
    """No tool is registered under the requested name."""
