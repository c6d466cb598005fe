"""
Pattern Extraction Engine - pure text → fact functions.

Each extractor:
1. Short-circuits unless one of its trigger cues is present
2. Tries its capture patterns in precedence order
3. Filters captured spans for validity
4. Returns a list of facts (empty when nothing is found)

Extractors never raise for string input and never depend on each other.
`extract()` runs a selection of them over one NormalizedDocument.
"""
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from medical_mcp.extraction import patterns as p
from medical_mcp.literature.normalizer import text_key
from medical_mcp.models import (
    UNKNOWN,
    CalculatorCandidate,
    Contraindication,
    CriteriaItem,
    CriticalValue,
    DifferentialItem,
    FactKind,
    GuidelineMeta,
    InteractionSeverity,
    LabRange,
    LactationSafety,
    NormalizedDocument,
    PregnancyCategory,
    RedFlag,
)


def _has_trigger(lowered: str, triggers: Iterable) -> bool:
    for trigger in triggers:
        if isinstance(trigger, str):
            if trigger in lowered:
                return True
        elif trigger.search(lowered):
            return True
    return False


def _spans(lowered: str, patterns: Sequence, min_length: int, max_length: Optional[int] = None) -> List[str]:
    """Collect group(1) of every match of every pattern, deduplicated in order."""
    spans = []
    seen = set()
    for pattern in patterns:
        for match in pattern.finditer(lowered):
            span = match.group(1).strip()
            if len(span) <= min_length:
                continue
            if max_length is not None and len(span) >= max_length:
                continue
            key = text_key(span)
            if key and key not in seen:
                seen.add(key)
                spans.append(span)
    return spans


def sentences(text: str) -> List[str]:
    return [s.strip() for s in p.SENTENCE_SPLIT.split(text) if s.strip()]


def first_sentence_with(text: str, cue) -> Optional[str]:
    """First sentence whose lowercased form matches `cue`."""
    for sentence in sentences(text):
        if cue.search(sentence.lower()):
            return sentence
    return None


def _sentence_around(text: str, start: int, end: int) -> str:
    left = text.rfind(". ", 0, start)
    right = text.find(". ", end)
    return text[left + 2 if left >= 0 else 0:right if right >= 0 else len(text)]


# ============================================================================
# Drug safety
# ============================================================================

def extract_pregnancy_category(text: str, source_id: str = "") -> List[PregnancyCategory]:
    """FDA letter category; the first pattern that matches wins."""
    lowered = text.lower()
    if not _has_trigger(lowered, p.PREGNANCY_TRIGGERS):
        return []

    for pattern in p.PREGNANCY_CATEGORY_PATTERNS:
        match = pattern.search(lowered)
        if match:
            return [PregnancyCategory(value=match.group(1).upper(), source_id=source_id)]
    return []


def extract_lactation_safety(text: str, source_id: str = "") -> List[LactationSafety]:
    """Safe / Caution / Avoid from keyword rules; unclassified text yields nothing."""
    lowered = text.lower()
    if not _has_trigger(lowered, p.LACTATION_TRIGGERS):
        return []

    for value, any_of, none_of in p.LACTATION_RULES:
        if any(cue.search(lowered) for cue in any_of) and not any(cue.search(lowered) for cue in none_of):
            return [LactationSafety(value=value, source_id=source_id)]
    return []


def extract_contraindications(text: str, source_id: str = "") -> List[Contraindication]:
    lowered = text.lower()
    if not _has_trigger(lowered, p.CONTRAINDICATION_TRIGGERS):
        return []

    spans = _spans(
        lowered,
        p.CONTRAINDICATION_PATTERNS,
        min_length=p.CONTRAINDICATION_MIN_LENGTH,
        max_length=p.CONTRAINDICATION_MAX_LENGTH,
    )
    return [Contraindication(text=span, source_id=source_id) for span in spans]


def extract_interaction_severity(text: str, source_id: str = "") -> List[InteractionSeverity]:
    """
    Severity of an interaction described in the text.

    Precedence is Contraindicated > Major > Minor, with Moderate as the
    default once the text is about an interaction at all.
    """
    lowered = text.lower()
    if not _has_trigger(lowered, p.INTERACTION_TRIGGERS):
        return []

    for severity, cue in p.SEVERITY_CUES:
        if cue.search(lowered):
            return [InteractionSeverity(value=severity, source_id=source_id)]
    return [InteractionSeverity(value=p.DEFAULT_SEVERITY, source_id=source_id)]


# ============================================================================
# Lab values
# ============================================================================

def _is_unit(token: str) -> bool:
    if not p.LAB_UNIT_TOKEN.match(token):
        return False
    return "/" in token or "%" in token or token.lower() in p.KNOWN_UNITS


def extract_age_groups(text: str) -> List[str]:
    lowered = text.lower()
    groups = []
    for pattern in p.AGE_GROUP_PATTERNS:
        for match in pattern.finditer(lowered):
            group = match.group(0)
            if group not in groups:
                groups.append(group)
    return groups


def extract_lab_ranges(text: str, source_id: str = "") -> List[LabRange]:
    """
    Reference ranges written as "<low>-<high> <units>" or "<low> to <high> <units>".

    Low and high are kept as written, even when low > high. Each range gets
    the first age group mentioned in its own sentence.
    """
    if not _has_trigger(text.lower(), p.LAB_RANGE_TRIGGERS):
        return []

    ranges = []
    seen = set()
    for pattern in p.LAB_RANGE_PATTERNS:
        for match in pattern.finditer(text):
            low, high, units = match.group(1), match.group(2), match.group(3)
            if not _is_unit(units):
                continue
            key = (float(low), float(high), units.lower())
            if key in seen:
                continue
            seen.add(key)

            sentence_groups = extract_age_groups(_sentence_around(text, match.start(), match.end()))
            ranges.append(LabRange(
                low=float(low),
                high=float(high),
                units=units,
                age_group=sentence_groups[0] if sentence_groups else None,
                source_id=source_id,
            ))
    return ranges


def extract_critical_values(text: str, source_id: str = "") -> List[CriticalValue]:
    """"critical value < x" sets the low bound, "> x" the high bound; first per side."""
    lowered = text.lower()
    if not _has_trigger(lowered, p.CRITICAL_VALUE_TRIGGERS):
        return []

    low = high = None
    for match in p.CRITICAL_VALUE_PATTERN.finditer(lowered):
        operator, number = match.group(1), float(match.group(2))
        if operator == "<" and low is None:
            low = number
        elif operator == ">" and high is None:
            high = number

    if low is None and high is None:
        return []
    return [CriticalValue(low=low, high=high, source_id=source_id)]


# ============================================================================
# Diagnostic criteria, red flags, differential diagnosis
# ============================================================================

def _required_count(span: str) -> int:
    for pattern in p.REQUIRED_COUNT_PATTERNS:
        match = pattern.search(span)
        if match:
            word = match.group(1)
            return int(word) if word.isdigit() else p.COUNT_WORDS[word]
    return p.DEFAULT_REQUIRED_COUNT


def extract_criteria_sets(text: str, source_id: str = "") -> List[CriteriaItem]:
    lowered = text.lower()
    if not _has_trigger(lowered, p.CRITERIA_TRIGGERS):
        return []

    facts = []
    for span in _spans(lowered, p.CRITERIA_PATTERNS, min_length=p.CRITERIA_MIN_LENGTH):
        items = [item for item in p.CRITERIA_ITEM_SEPARATOR.split(span) if len(item) > 2]
        facts.append(CriteriaItem(
            category=p.CRITERIA_CATEGORY,
            items=items or [span],
            required_count=_required_count(span),
            source_id=source_id,
        ))
    return facts


def extract_red_flags(text: str, source_id: str = "") -> List[RedFlag]:
    lowered = text.lower()
    if not _has_trigger(lowered, p.RED_FLAG_TRIGGERS):
        return []

    spans = _spans(lowered, p.RED_FLAG_PATTERNS, min_length=p.RED_FLAG_MIN_LENGTH)
    return [RedFlag(text=span, source_id=source_id) for span in spans]


def extract_differential_items(
    text: str,
    source_id: str = "",
    max_length: Optional[int] = None,
) -> List[DifferentialItem]:
    """
    Candidate diagnoses following "differential diagnosis includes",
    "consider" or "rule out". Each matched span is kept whole, so
    "nausea and vomiting of pregnancy" stays one item.
    """
    lowered = text.lower()
    if not _has_trigger(lowered, p.DIFFERENTIAL_TRIGGERS):
        return []

    spans = _spans(lowered, p.DIFFERENTIAL_PATTERNS, min_length=p.DIFFERENTIAL_MIN_LENGTH, max_length=max_length)
    return [DifferentialItem(text=span, source_id=source_id) for span in spans]


def suggest_next_steps(text: str) -> List[str]:
    lowered = text.lower()
    steps = [step for step, cue in p.NEXT_STEP_CUES if cue.search(lowered)]
    return steps or [p.DEFAULT_NEXT_STEP]


def urgent_conditions_in(diagnosis: str) -> List[str]:
    lowered = diagnosis.lower()
    return [condition for condition in p.URGENT_CONDITIONS if condition in lowered]


# ============================================================================
# Risk calculators
# ============================================================================

def extract_calculator_name(title: str, abstract: str = "") -> Optional[str]:
    """Calculator name in original case; per pattern the title is tried first."""
    for pattern in p.CALCULATOR_NAME_PATTERNS:
        match = pattern.search(title) or pattern.search(abstract)
        if match:
            return match.group(1)
    return None


def extract_calculator_parameters(text: str) -> List[str]:
    lowered = text.lower()
    return [name for name, cue in p.CALCULATOR_PARAMETER_CUES if cue.search(lowered)]


def extract_calculator_validation(text: str) -> str:
    lowered = text.lower()
    for label, cues in p.CALCULATOR_VALIDATION_RULES:
        if any(cue in lowered for cue in cues):
            return label
    return p.DEFAULT_CALCULATOR_VALIDATION


def extract_calculator_candidate(title: str, abstract: str = "", source_id: str = "") -> List[CalculatorCandidate]:
    text = f"{title} {abstract}"
    if not _has_trigger(text.lower(), p.CALCULATOR_TRIGGERS):
        return []

    name = extract_calculator_name(title, abstract)
    if not name:
        return []
    return [CalculatorCandidate(
        name=name,
        parameters=extract_calculator_parameters(text),
        validation=extract_calculator_validation(text),
        source_id=source_id,
    )]


# ============================================================================
# Clinical guidelines
# ============================================================================

def extract_guideline_meta(text: str, year: Optional[str] = None, source_id: str = "") -> List[GuidelineMeta]:
    """Organization, category and evidence level; always returns one fact."""
    lowered = text.lower()

    organization = next(
        (name for name, cue in p.GUIDELINE_ORGANIZATIONS if cue.search(lowered)),
        None,
    )
    category = next(
        (name for name, cues in p.GUIDELINE_CATEGORIES if any(cue in lowered for cue in cues)),
        p.DEFAULT_GUIDELINE_CATEGORY,
    )

    evidence_level = None
    for pattern, label in p.EVIDENCE_LEVEL_PATTERNS:
        match = pattern.search(lowered)
        if match:
            evidence_level = label.format(match.group(1).upper())
            break
    if evidence_level is None:
        evidence_level = next(
            (label for label, cues in p.EVIDENCE_LEVEL_KEYWORDS if any(cue in lowered for cue in cues)),
            p.DEFAULT_EVIDENCE_LEVEL,
        )

    return [GuidelineMeta(
        organization=organization or UNKNOWN,
        category=category,
        evidence_level=evidence_level,
        year=year,
        source_id=source_id,
    )]


# ============================================================================
# Document-level dispatch
# ============================================================================

EXTRACTORS: Dict[FactKind, Callable[[NormalizedDocument], list]] = {
    FactKind.PREGNANCY_CATEGORY: lambda doc: extract_pregnancy_category(doc.text, doc.id),
    FactKind.LACTATION_SAFETY: lambda doc: extract_lactation_safety(doc.text, doc.id),
    FactKind.CONTRAINDICATION: lambda doc: extract_contraindications(doc.text, doc.id),
    FactKind.INTERACTION_SEVERITY: lambda doc: extract_interaction_severity(doc.text, doc.id),
    FactKind.LAB_RANGE: lambda doc: extract_lab_ranges(doc.text, doc.id),
    FactKind.CRITICAL_VALUE: lambda doc: extract_critical_values(doc.text, doc.id),
    FactKind.CRITERIA_ITEM: lambda doc: extract_criteria_sets(doc.text, doc.id),
    FactKind.RED_FLAG: lambda doc: extract_red_flags(doc.text, doc.id),
    FactKind.DIFFERENTIAL_ITEM: lambda doc: extract_differential_items(doc.text, doc.id),
    FactKind.CALCULATOR_CANDIDATE: lambda doc: extract_calculator_candidate(doc.title, doc.abstract, doc.id),
    FactKind.GUIDELINE_META: lambda doc: extract_guideline_meta(doc.text, doc.year, doc.id),
}


def extract(document: NormalizedDocument, kinds: Iterable[FactKind]) -> list:
    """
    Run the requested extractors over one document.

    Args:
        document: A normalized document
        kinds: Fact kinds to extract, in the order their facts should appear

    Returns:
        All facts found, each carrying the document id as provenance
    """
    facts = []
    for kind in kinds:
        facts.extend(EXTRACTORS[FactKind(kind)](document))
    return facts
