"""
Shared fixtures: documents, mocked adapters and a service wired to them.
"""
from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from medical_mcp.aggregation import MedicalSearchService
from medical_mcp.config import Settings
from medical_mcp.models import NO_ABSTRACT, NormalizedDocument


def _document(doc_id: str, title: str, abstract: str = NO_ABSTRACT, **fields) -> NormalizedDocument:
    fields.setdefault("journal", "Test Journal")
    fields.setdefault("year", "2021")
    fields.setdefault("url", f"https://pubmed.ncbi.nlm.nih.gov/{doc_id}/")
    return NormalizedDocument(id=doc_id, title=title, abstract=abstract, **fields)


def _adapter(name: str) -> Mock:
    adapter = Mock()
    adapter.name = name
    adapter.close = AsyncMock()
    adapter.fetch_documents = AsyncMock(return_value=[])
    return adapter


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no aggregation deadline and no Scholar delay."""
    return Settings(aggregation_deadline_seconds=0, scholar_delay_range=(0.0, 0.0))


@pytest.fixture
def make_document() -> Callable[..., NormalizedDocument]:
    return _document


@pytest.fixture
def make_adapter() -> Callable[[str], Mock]:
    return _adapter


@pytest.fixture
def make_service(test_settings):
    """
    Build a MedicalSearchService whose adapters are all mocks.

    `corpus` maps a PubMed search term to the documents it returns; terms
    not in the corpus return `default` (empty unless given).
    """
    def _make(
        corpus: Optional[Dict[str, List[NormalizedDocument]]] = None,
        default: Optional[List[NormalizedDocument]] = None,
        **adapters,
    ) -> MedicalSearchService:
        mocks = {
            "pubmed": _adapter("pubmed"),
            "scholar": _adapter("google_scholar"),
            "trials": _adapter("clinical_trials"),
            "fda": _adapter("openfda"),
            "who": _adapter("who"),
            "rxnorm": _adapter("rxnorm"),
        }
        mocks["fda"].fetch_label_for_drug = AsyncMock(return_value=None)

        if corpus is not None or default is not None:
            def fetch(term, limit=None):
                return list((corpus or {}).get(term, default or []))
            mocks["pubmed"].fetch_documents = AsyncMock(side_effect=fetch)

        mocks.update(adapters)
        return MedicalSearchService(test_settings, **mocks)

    return _make
