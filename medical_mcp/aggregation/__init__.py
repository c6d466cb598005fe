"""
Query fan-out and aggregation.

Components:
- search_terms: versioned, ordered PubMed query batteries
- fanout: sequential early-stop and parallel all-settle search modes
- trace: per-call audit trail (term, adapter, status, timing)
- service: MedicalSearchService, folding extracted facts into answers

Usage:
    from medical_mcp.aggregation import MedicalSearchService

    service = MedicalSearchService()
    interactions = await service.check_drug_interactions("warfarin", "aspirin")
"""
from .fanout import Deadline, EarlyStopResult, FanOut
from .search_terms import SEARCH_TERMS_VERSION
from .service import MedicalSearchService
from .trace import CallStatus, SearchCall, SearchTrace

__all__ = [
    "Deadline",
    "EarlyStopResult",
    "FanOut",
    "SEARCH_TERMS_VERSION",
    "MedicalSearchService",
    "CallStatus",
    "SearchCall",
    "SearchTrace",
]
