"""
External data source adapters.

Each adapter follows a standardized interface:
- Defined by the abstract SourceAdapter base class
- Owns a lazily created httpx.AsyncClient configured from Settings
- Returns ToolResult with success/failure status from its public calls
"""
from .base import LiteratureAdapter, SourceAdapter, ToolResult
from .clinical_trials import ClinicalTrialsAdapter
from .fda import FDALabelAdapter
from .pubmed import PubMedAdapter
from .rxnorm import RxNormAdapter
from .scholar import ScholarAdapter
from .who import WHOStatisticsAdapter

__all__ = [
    "SourceAdapter",
    "LiteratureAdapter",
    "ToolResult",
    "ClinicalTrialsAdapter",
    "FDALabelAdapter",
    "PubMedAdapter",
    "RxNormAdapter",
    "ScholarAdapter",
    "WHOStatisticsAdapter",
]
