"""
Pydantic models for documents, extracted facts and aggregate answers.

Three layers:
- NormalizedDocument: one source-agnostic literature record
- ExtractedFact: one structured data point pulled from a document
- Aggregate answers: per-query results folded from many facts

Raw-source models (DrugLabel, HealthIndicator, RxNormConcept) mirror the
JSON payloads of the non-literature sources and are rendered directly.
"""
import re
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

NO_ABSTRACT = "No abstract available"
UNKNOWN = "Unknown"
LITERATURE_REVIEW = "Literature Review"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_WORD_RE = re.compile(r"[\W_]")


def title_key(title: str) -> str:
    """
    Deduplication key: lowercase title with all non-alphanumerics removed.

    Titles without ASCII letters or digits (non-Latin scripts) keep their
    casefolded word characters instead.
    """
    key = _NON_ALNUM_RE.sub("", title.lower())
    return key or _NON_WORD_RE.sub("", title.casefold())


class DocumentSource(str, Enum):
    """Origin of a normalized document"""
    CITATION_INDEX = "citation_index"
    ACADEMIC_SEARCH = "academic_search"
    TRIALS_REGISTRY = "trials_registry"
    GUIDELINE = "guideline"


class PregnancyCategoryValue(str, Enum):
    """FDA pregnancy letter category; N = not classified"""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    X = "X"
    N = "N"


class LactationSafetyValue(str, Enum):
    SAFE = "Safe"
    CAUTION = "Caution"
    AVOID = "Avoid"
    UNKNOWN = "Unknown"


class InteractionSeverityValue(str, Enum):
    MINOR = "Minor"
    MODERATE = "Moderate"
    MAJOR = "Major"
    CONTRAINDICATED = "Contraindicated"


# ============================================================================
# Documents
# ============================================================================

class SourceCitation(BaseModel):
    """Provenance shown next to an answer."""
    id: str
    title: str
    journal: str = UNKNOWN
    year: Optional[str] = None
    url: Optional[str] = None


class NormalizedDocument(BaseModel):
    """
    Source-agnostic literature record.

    Title and abstract are markup-free; missing optional text fields hold
    sentinel strings so extractors always operate on strings.
    """
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    abstract: str = NO_ABSTRACT
    journal: str = UNKNOWN
    year: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    doi: Optional[str] = None
    source: DocumentSource = DocumentSource.CITATION_INDEX

    model_config = {"frozen": True}

    @property
    def text(self) -> str:
        """Title and abstract, the corpus every extractor reads."""
        return f"{self.title} {self.abstract}"

    def dedup_key(self) -> str:
        """Title key, or the document id when the title has no word characters."""
        return title_key(self.title) or f"id:{self.id}"

    def citation(self) -> SourceCitation:
        return SourceCitation(
            id=self.id,
            title=self.title,
            journal=self.journal,
            year=self.year,
            url=self.url,
        )


# ============================================================================
# Extracted facts (tagged union on `kind`)
# ============================================================================

class FactKind(str, Enum):
    PREGNANCY_CATEGORY = "pregnancy_category"
    LACTATION_SAFETY = "lactation_safety"
    CONTRAINDICATION = "contraindication"
    INTERACTION_SEVERITY = "interaction_severity"
    LAB_RANGE = "lab_range"
    CRITICAL_VALUE = "critical_value"
    CRITERIA_ITEM = "criteria_item"
    RED_FLAG = "red_flag"
    DIFFERENTIAL_ITEM = "differential_item"
    CALCULATOR_CANDIDATE = "calculator_candidate"
    GUIDELINE_META = "guideline_meta"


class _Fact(BaseModel):
    source_id: str = ""

    model_config = {"frozen": True, "use_enum_values": True}


class PregnancyCategory(_Fact):
    kind: Literal["pregnancy_category"] = "pregnancy_category"
    value: PregnancyCategoryValue


class LactationSafety(_Fact):
    kind: Literal["lactation_safety"] = "lactation_safety"
    value: LactationSafetyValue


class Contraindication(_Fact):
    kind: Literal["contraindication"] = "contraindication"
    text: str


class InteractionSeverity(_Fact):
    kind: Literal["interaction_severity"] = "interaction_severity"
    value: InteractionSeverityValue


class LabRange(_Fact):
    """A reference range as written in the text; low > high is passed through."""
    kind: Literal["lab_range"] = "lab_range"
    low: float
    high: float
    units: str
    age_group: Optional[str] = None


class CriticalValue(_Fact):
    kind: Literal["critical_value"] = "critical_value"
    low: Optional[float] = None
    high: Optional[float] = None


class CriteriaItem(_Fact):
    kind: Literal["criteria_item"] = "criteria_item"
    category: str
    items: List[str]
    required_count: int = Field(1, ge=0)


class RedFlag(_Fact):
    kind: Literal["red_flag"] = "red_flag"
    text: str


class DifferentialItem(_Fact):
    kind: Literal["differential_item"] = "differential_item"
    text: str


class CalculatorCandidate(_Fact):
    kind: Literal["calculator_candidate"] = "calculator_candidate"
    name: str
    parameters: List[str] = Field(default_factory=list)
    validation: str = LITERATURE_REVIEW


class GuidelineMeta(_Fact):
    kind: Literal["guideline_meta"] = "guideline_meta"
    organization: str = UNKNOWN
    category: str = "General"
    evidence_level: str = "Expert Opinion"
    year: Optional[str] = None


ExtractedFact = Annotated[
    Union[
        PregnancyCategory,
        LactationSafety,
        Contraindication,
        InteractionSeverity,
        LabRange,
        CriticalValue,
        CriteriaItem,
        RedFlag,
        DifferentialItem,
        CalculatorCandidate,
        GuidelineMeta,
    ],
    Field(discriminator="kind"),
]


# ============================================================================
# Aggregate answers
# ============================================================================

class _Aggregate(BaseModel):
    model_config = {"use_enum_values": True, "validate_default": True}


class PregnancySafety(_Aggregate):
    pregnancy_category: PregnancyCategoryValue = PregnancyCategoryValue.N
    evidence_level: str = UNKNOWN
    sources: List[SourceCitation] = Field(default_factory=list)


class LactationSafetyResult(_Aggregate):
    lactation_safety: LactationSafetyValue = LactationSafetyValue.UNKNOWN
    evidence_level: str = UNKNOWN
    sources: List[SourceCitation] = Field(default_factory=list)


class FDAWarnings(_Aggregate):
    warnings: List[str] = Field(default_factory=list)
    monitoring_requirements: List[str] = Field(default_factory=list)
    last_updated: Optional[str] = None
    found: bool = False


class DrugInteraction(_Aggregate):
    drug1: str
    drug2: Optional[str] = None
    severity: InteractionSeverityValue = InteractionSeverityValue.MODERATE
    description: str
    clinical_effects: str = "Not described in source"
    management: str = "Consult current prescribing information"
    evidence_level: str = LITERATURE_REVIEW
    source: Optional[SourceCitation] = None


class DrugSafetyInfo(_Aggregate):
    """Composite safety profile; scalar fields never need a null check."""
    drug_name: str
    pregnancy_category: PregnancyCategoryValue = PregnancyCategoryValue.N
    lactation_safety: LactationSafetyValue = LactationSafetyValue.UNKNOWN
    contraindications: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    monitoring_requirements: List[str] = Field(default_factory=list)
    interactions: List[DrugInteraction] = Field(default_factory=list)
    evidence_level: str = UNKNOWN
    sources: List[SourceCitation] = Field(default_factory=list)
    sources_searched: int = 0
    successful_sources: int = 0
    last_updated: Optional[str] = None


class PossibleDiagnosis(_Aggregate):
    diagnosis: str
    probability: str = "Moderate"
    key_findings: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    source: Optional[SourceCitation] = None


class DifferentialDiagnosis(_Aggregate):
    symptoms: List[str]
    possible_diagnoses: List[PossibleDiagnosis] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    urgent_considerations: List[str] = Field(default_factory=list)
    sources: List[SourceCitation] = Field(default_factory=list)


class RiskCalculator(_Aggregate):
    name: str
    condition: str
    description: str = ""
    parameters: List[str] = Field(default_factory=list)
    validation: str = LITERATURE_REVIEW
    references: List[str] = Field(default_factory=list)
    source: Optional[SourceCitation] = None


class NormalRange(_Aggregate):
    low: float
    high: float
    units: str
    age_group: Optional[str] = None


class CriticalValues(_Aggregate):
    low: Optional[float] = None
    high: Optional[float] = None


class LabValue(_Aggregate):
    test_name: str
    normal_ranges: List[NormalRange] = Field(default_factory=list)
    critical_values: CriticalValues = Field(default_factory=CriticalValues)
    age_groups: List[str] = Field(default_factory=list)
    sources: List[SourceCitation] = Field(default_factory=list)


class CriteriaEntry(_Aggregate):
    category: str
    items: List[str] = Field(default_factory=list)
    required_count: int = Field(1, ge=0)


class CriteriaSet(_Aggregate):
    name: str
    source: str = LITERATURE_REVIEW
    criteria: List[CriteriaEntry] = Field(default_factory=list)


class DiagnosticCriteria(_Aggregate):
    condition: str
    criteria_sets: List[CriteriaSet] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    differential_diagnosis: List[str] = Field(default_factory=list)
    sources: List[SourceCitation] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.criteria_sets)


class ClinicalGuideline(_Aggregate):
    title: str
    organization: str = UNKNOWN
    year: Optional[str] = None
    category: str = "General"
    evidence_level: str = "Expert Opinion"
    description: str = ""
    url: Optional[str] = None
    source_id: str = ""


class DatabaseSearchResults(_Aggregate):
    query: str
    documents: List[NormalizedDocument] = Field(default_factory=list)
    source_counts: Dict[str, int] = Field(default_factory=dict)
    failed_sources: List[str] = Field(default_factory=list)


# ============================================================================
# Raw-source models
# ============================================================================

class OpenFDAFields(BaseModel):
    brand_name: List[str] = Field(default_factory=list)
    generic_name: List[str] = Field(default_factory=list)
    manufacturer_name: List[str] = Field(default_factory=list)
    product_ndc: List[str] = Field(default_factory=list)
    substance_name: List[str] = Field(default_factory=list)
    route: List[str] = Field(default_factory=list)
    dosage_form: List[str] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class DrugLabel(BaseModel):
    """One openFDA drug label (structured product label sections)."""
    openfda: OpenFDAFields = Field(default_factory=OpenFDAFields)
    purpose: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    adverse_reactions: List[str] = Field(default_factory=list)
    drug_interactions: List[str] = Field(default_factory=list)
    dosage_and_administration: List[str] = Field(default_factory=list)
    clinical_pharmacology: List[str] = Field(default_factory=list)
    effective_time: str = ""

    model_config = {"extra": "ignore"}


class HealthIndicator(BaseModel):
    """One WHO Global Health Observatory data point."""
    indicator_code: str = Field("", alias="IndicatorCode")
    spatial_dim: str = Field("", alias="SpatialDim")
    time_dim: str = Field("", alias="TimeDim")
    value: Optional[str] = Field(None, alias="Value")
    numeric_value: Optional[float] = Field(None, alias="NumericValue")
    low: Optional[float] = Field(None, alias="Low")
    high: Optional[float] = Field(None, alias="High")
    comments: Optional[str] = Field(None, alias="Comments")
    date: Optional[str] = Field(None, alias="Date")

    model_config = {"extra": "ignore", "populate_by_name": True, "coerce_numbers_to_str": True}


class RxNormConcept(BaseModel):
    rxcui: str
    name: str
    synonym: str = ""
    tty: str = ""
    language: str = ""
    suppress: str = ""

    model_config = {"extra": "ignore"}
