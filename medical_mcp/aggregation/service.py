"""
Medical Search Service - folds extracted facts into aggregate answers.

Each public operation:
1. Validates its arguments (CallerContractViolation before any call)
2. Renders its search-term battery
3. Fans out to the sources (early stop or parallel, see fanout.py)
4. Runs the extractors on every returned document
5. Folds the facts into a fully shaped aggregate with sentinel defaults

Source failures never escape an operation: they are logged, recorded in
the SearchTrace and contribute nothing.
"""
import asyncio
import logging
from functools import partial
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from medical_mcp.config import Settings, settings as default_settings
from medical_mcp.exceptions import CallerContractViolation
from medical_mcp.extraction import patterns
from medical_mcp.extraction.extractors import (
    extract_age_groups,
    extract_calculator_candidate,
    extract_contraindications,
    extract_criteria_sets,
    extract_critical_values,
    extract_differential_items,
    extract_guideline_meta,
    extract_interaction_severity,
    extract_lab_ranges,
    extract_lactation_safety,
    extract_pregnancy_category,
    extract_red_flags,
    first_sentence_with,
    sentences,
    suggest_next_steps,
    urgent_conditions_in,
)
from medical_mcp.literature.normalizer import dedupe_documents, text_key
from medical_mcp.models import (
    LITERATURE_REVIEW,
    NO_ABSTRACT,
    UNKNOWN,
    ClinicalGuideline,
    CriteriaEntry,
    CriteriaSet,
    CriticalValues,
    DatabaseSearchResults,
    DiagnosticCriteria,
    DifferentialDiagnosis,
    DrugInteraction,
    DrugSafetyInfo,
    FDAWarnings,
    LabValue,
    LactationSafetyResult,
    NormalizedDocument,
    NormalRange,
    PossibleDiagnosis,
    PregnancySafety,
    RiskCalculator,
    SourceCitation,
)
from medical_mcp.sources import (
    ClinicalTrialsAdapter,
    FDALabelAdapter,
    PubMedAdapter,
    RxNormAdapter,
    ScholarAdapter,
    WHOStatisticsAdapter,
)

from . import search_terms as terms
from .fanout import Deadline, FanOut
from .trace import SearchTrace

logger = logging.getLogger(__name__)

NOT_DESCRIBED = "Not described in source"
CONSULT_PRESCRIBING_INFO = "Consult current prescribing information"
JOURNAL_RESULTS_PER_TERM = 3


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise CallerContractViolation(f"{field_name} must not be empty")
    return str(value).strip()


def _append_unique(target: List[str], seen: set, texts: Iterable[str]):
    """Append texts whose normalized form has not been seen, keeping first occurrences."""
    for text in texts:
        key = text_key(text)
        if key and key not in seen:
            seen.add(key)
            target.append(text)


def _unique_citations(citations: Iterable[Optional[SourceCitation]]) -> List[SourceCitation]:
    seen = set()
    unique = []
    for citation in citations:
        if citation is not None and citation.id not in seen:
            seen.add(citation.id)
            unique.append(citation)
    return unique


def _summary(document: NormalizedDocument) -> str:
    if document.abstract == NO_ABSTRACT:
        return ""
    found = sentences(document.abstract)
    return found[0] if found else ""


def _reference(document: NormalizedDocument) -> str:
    parts = [document.title, document.journal if document.journal != UNKNOWN else None, document.year]
    return ". ".join(part for part in parts if part)


class MedicalSearchService:
    """
    Entry point for every aggregated medical query.

    Usage:
        service = MedicalSearchService()
        info = await service.get_drug_safety_info("warfarin")
        await service.close()

    Adapters can be injected (tests pass mocks); otherwise they are built
    from the given Settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pubmed: Optional[PubMedAdapter] = None,
        scholar: Optional[ScholarAdapter] = None,
        trials: Optional[ClinicalTrialsAdapter] = None,
        fda: Optional[FDALabelAdapter] = None,
        who: Optional[WHOStatisticsAdapter] = None,
        rxnorm: Optional[RxNormAdapter] = None,
        call_timeout: Optional[float] = None,
    ):
        self.settings = settings or default_settings
        self.pubmed = pubmed or PubMedAdapter(self.settings)
        self.scholar = scholar or ScholarAdapter(self.settings)
        self.trials = trials or ClinicalTrialsAdapter(self.settings)
        self.fda = fda or FDALabelAdapter(self.settings)
        self.who = who or WHOStatisticsAdapter(self.settings)
        self.rxnorm = rxnorm or RxNormAdapter(self.settings)
        self.call_timeout = call_timeout

    @property
    def adapters(self) -> list:
        return [self.pubmed, self.scholar, self.trials, self.fda, self.who, self.rxnorm]

    async def close(self):
        """Close every adapter's HTTP client."""
        for adapter in self.adapters:
            await adapter.close()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _fanout(self, operation: str, deadline: Optional[float], trace: Optional[SearchTrace]) -> FanOut:
        if deadline is None:
            deadline = self.settings.aggregation_deadline
        return FanOut(
            trace if trace is not None else SearchTrace(operation=operation),
            Deadline(deadline),
            self.call_timeout,
        )

    def _pubmed_fetch(self, limit: Optional[int] = None):
        return partial(self.pubmed.fetch_documents, limit=limit)

    async def _early_stop(self, fanout: FanOut, battery: Sequence[str], detector):
        return await fanout.sequential_early_stop(battery, self._pubmed_fetch(), detector, self.pubmed.name)

    async def _parallel(self, fanout: FanOut, battery: Sequence[str], limit: Optional[int] = None):
        return await fanout.parallel_all(battery, self._pubmed_fetch(limit), self.pubmed.name)

    def _interaction_from(
        self,
        document: NormalizedDocument,
        drug1: str,
        drug2: Optional[str] = None,
    ) -> Optional[DrugInteraction]:
        severity = extract_interaction_severity(document.text, document.id)
        if not severity:
            return None

        return DrugInteraction(
            drug1=drug1,
            drug2=drug2,
            severity=severity[0].value,
            description=f"Interaction reported in: {document.title}",
            clinical_effects=first_sentence_with(document.abstract, patterns.INTERACTION_EFFECT_CUE) or NOT_DESCRIBED,
            management=first_sentence_with(document.abstract, patterns.INTERACTION_MANAGEMENT_CUE) or CONSULT_PRESCRIBING_INFO,
            evidence_level=LITERATURE_REVIEW,
            source=document.citation(),
        )

    # ------------------------------------------------------------------
    # Drug safety
    # ------------------------------------------------------------------

    async def _pregnancy_safety(self, drug: str, fanout: FanOut) -> PregnancySafety:
        result = await self._early_stop(
            fanout,
            terms.render(terms.PREGNANCY_TERMS, drug=drug),
            lambda doc: extract_pregnancy_category(doc.text, doc.id),
        )
        if not result.found:
            return PregnancySafety()
        return PregnancySafety(
            pregnancy_category=result.facts[0].value,
            evidence_level=LITERATURE_REVIEW,
            sources=[result.document.citation()],
        )

    async def _lactation_safety(self, drug: str, fanout: FanOut) -> LactationSafetyResult:
        result = await self._early_stop(
            fanout,
            terms.render(terms.LACTATION_TERMS, drug=drug),
            lambda doc: extract_lactation_safety(doc.text, doc.id),
        )
        if not result.found:
            return LactationSafetyResult()
        return LactationSafetyResult(
            lactation_safety=result.facts[0].value,
            evidence_level=LITERATURE_REVIEW,
            sources=[result.document.citation()],
        )

    async def _contraindications(self, drug: str, fanout: FanOut) -> Tuple[List[str], List[SourceCitation]]:
        documents = await self._parallel(fanout, terms.render(terms.CONTRAINDICATION_TERMS, drug=drug))

        found: List[str] = []
        seen: set = set()
        sources = []
        for document in documents:
            facts = extract_contraindications(document.text, document.id)
            if facts:
                _append_unique(found, seen, (fact.text for fact in facts))
                sources.append(document.citation())
        return found, sources

    async def _fda_warnings(self, drug: str, fanout: FanOut) -> FDAWarnings:
        label = await fanout.single(drug, self.fda.fetch_label_for_drug, self.fda.name)
        if label is None:
            return FDAWarnings()

        return FDAWarnings(
            warnings=list(label.warnings),
            monitoring_requirements=[
                text for text in label.dosage_and_administration if "monitor" in text.lower()
            ],
            last_updated=label.effective_time or None,
            found=True,
        )

    async def _interaction_profile(self, drug: str, fanout: FanOut) -> List[DrugInteraction]:
        documents = await self._parallel(fanout, terms.render(terms.INTERACTION_PROFILE_TERMS, drug=drug))
        interactions = []
        for document in documents:
            interaction = self._interaction_from(document, drug)
            if interaction is not None:
                interactions.append(interaction)
        return interactions

    async def get_pregnancy_safety(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> PregnancySafety:
        drug = _require(drug_name, "drug_name")
        return await self._pregnancy_safety(drug, self._fanout("pregnancy_safety", deadline, trace))

    async def get_lactation_safety(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> LactationSafetyResult:
        drug = _require(drug_name, "drug_name")
        return await self._lactation_safety(drug, self._fanout("lactation_safety", deadline, trace))

    async def get_contraindications(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> Tuple[List[str], List[SourceCitation]]:
        drug = _require(drug_name, "drug_name")
        return await self._contraindications(drug, self._fanout("contraindications", deadline, trace))

    async def get_fda_warnings(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> FDAWarnings:
        drug = _require(drug_name, "drug_name")
        return await self._fda_warnings(drug, self._fanout("fda_warnings", deadline, trace))

    async def get_drug_interaction_profile(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[DrugInteraction]:
        drug = _require(drug_name, "drug_name")
        return await self._interaction_profile(drug, self._fanout("interaction_profile", deadline, trace))

    async def get_drug_safety_info(
        self,
        drug_name: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> DrugSafetyInfo:
        """
        Composite safety profile from five concurrent sub-searches:
        pregnancy, lactation, contraindications, FDA label warnings and
        interactions.

        A sub-search counts as successful when at least one of its source
        calls succeeded. All-failed sub-searches leave sentinel values.
        """
        drug = _require(drug_name, "drug_name")
        fanout = self._fanout("drug_safety_info", deadline, trace)

        branches = {
            "pregnancy": fanout.child("pregnancy_safety"),
            "lactation": fanout.child("lactation_safety"),
            "contraindications": fanout.child("contraindications"),
            "fda_warnings": fanout.child("fda_warnings"),
            "interactions": fanout.child("interaction_profile"),
        }
        results = await asyncio.gather(
            self._pregnancy_safety(drug, branches["pregnancy"]),
            self._lactation_safety(drug, branches["lactation"]),
            self._contraindications(drug, branches["contraindications"]),
            self._fda_warnings(drug, branches["fda_warnings"]),
            self._interaction_profile(drug, branches["interactions"]),
            return_exceptions=True,
        )

        defaults = [PregnancySafety(), LactationSafetyResult(), ([], []), FDAWarnings(), []]
        for index, (name, result) in enumerate(zip(branches, results)):
            if isinstance(result, Exception):
                logger.warning("Drug safety branch %s failed for %r: %s", name, drug, result)
                results[index] = defaults[index]
        pregnancy, lactation, (contraindications, contraindication_sources), fda, interactions = results

        for branch in branches.values():
            fanout.trace.merge(branch.trace)

        sources = _unique_citations(
            pregnancy.sources
            + lactation.sources
            + contraindication_sources
            + [interaction.source for interaction in interactions]
        )

        return DrugSafetyInfo(
            drug_name=drug,
            pregnancy_category=pregnancy.pregnancy_category,
            lactation_safety=lactation.lactation_safety,
            contraindications=contraindications,
            warnings=fda.warnings,
            monitoring_requirements=fda.monitoring_requirements,
            interactions=interactions,
            evidence_level=LITERATURE_REVIEW if sources else UNKNOWN,
            sources=sources,
            sources_searched=len(branches),
            successful_sources=sum(1 for branch in branches.values() if branch.trace.success_count > 0),
            last_updated=fda.last_updated,
        )

    async def check_drug_interactions(
        self,
        drug1: str,
        drug2: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[DrugInteraction]:
        """Interactions reported by documents that mention both drugs."""
        first = _require(drug1, "drug1")
        second = _require(drug2, "drug2")
        fanout = self._fanout("check_drug_interactions", deadline, trace)

        documents = await self._parallel(
            fanout,
            terms.render(terms.DRUG_PAIR_INTERACTION_TERMS, drug1=first, drug2=second),
        )

        interactions = []
        for document in documents:
            lowered = document.text.lower()
            if first.lower() not in lowered or second.lower() not in lowered:
                continue
            interaction = self._interaction_from(document, first, second)
            if interaction is not None:
                interactions.append(interaction)
        return interactions

    # ------------------------------------------------------------------
    # Diagnostic support
    # ------------------------------------------------------------------

    async def generate_differential_diagnosis(
        self,
        symptoms: Sequence[str],
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> DifferentialDiagnosis:
        """
        Candidate diagnoses mentioned after "differential diagnosis includes",
        "consider" or "rule out" in the literature for the given symptoms.

        Every candidate is rated Moderate.
        """
        cleaned = [s.strip() for s in symptoms or [] if s and s.strip()]
        if not cleaned:
            raise CallerContractViolation("symptoms must contain at least one non-empty symptom")

        fanout = self._fanout("differential_diagnosis", deadline, trace)
        documents = await self._parallel(
            fanout,
            terms.render(terms.DIFFERENTIAL_TERMS, symptoms=" ".join(cleaned).lower()),
        )

        candidates: Dict[str, dict] = {}
        red_flags: List[str] = []
        red_flag_keys: set = set()
        for document in documents:
            items = extract_differential_items(
                document.text, document.id, max_length=patterns.DIFFERENTIAL_TOOL_MAX_LENGTH
            )
            for item in items:
                entry = candidates.setdefault(text_key(item.text), {"text": item.text, "documents": []})
                entry["documents"].append(document)
            _append_unique(red_flags, red_flag_keys, (flag.text for flag in extract_red_flags(document.text, document.id)))

        possible = []
        urgent: List[str] = []
        urgent_keys: set = set()
        for entry in candidates.values():
            supporting = entry["documents"]
            corpus = " ".join(doc.text.lower() for doc in supporting)
            possible.append(PossibleDiagnosis(
                diagnosis=entry["text"],
                probability="Moderate",
                key_findings=[symptom for symptom in cleaned if symptom.lower() in corpus],
                next_steps=suggest_next_steps(supporting[0].text),
                source=supporting[0].citation(),
            ))
            _append_unique(
                urgent,
                urgent_keys,
                (f"Urgent evaluation to exclude {condition}" for condition in urgent_conditions_in(entry["text"])),
            )

        return DifferentialDiagnosis(
            symptoms=cleaned,
            possible_diagnoses=possible,
            red_flags=red_flags,
            urgent_considerations=urgent,
            sources=[document.citation() for document in documents],
        )

    async def _risk_calculator(self, condition: str, fanout: FanOut) -> Optional[RiskCalculator]:
        result = await self._early_stop(
            fanout,
            terms.render(terms.RISK_CALCULATOR_TERMS, condition=condition),
            lambda doc: extract_calculator_candidate(doc.title, doc.abstract, doc.id),
        )
        if not result.found:
            return None

        candidate = result.facts[0]
        return RiskCalculator(
            name=candidate.name,
            condition=condition,
            description=_summary(result.document) or result.document.title,
            parameters=candidate.parameters,
            validation=candidate.validation,
            references=[_reference(result.document)],
            source=result.document.citation(),
        )

    async def get_risk_calculators(
        self,
        condition: Optional[str] = None,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[RiskCalculator]:
        """
        One calculator per condition (first match wins), conditions searched
        concurrently. Without a condition the default catalog is searched.
        """
        conditions = [condition.strip()] if condition and condition.strip() else list(terms.DEFAULT_CALCULATOR_CONDITIONS)
        fanout = self._fanout("risk_calculators", deadline, trace)

        branches = [fanout.child(f"risk_calculator:{name}") for name in conditions]
        results = await asyncio.gather(
            *[self._risk_calculator(name, branch) for name, branch in zip(conditions, branches)],
            return_exceptions=True,
        )
        for branch in branches:
            fanout.trace.merge(branch.trace)

        calculators = []
        seen = set()
        for name, result in zip(conditions, results):
            if isinstance(result, Exception):
                logger.warning("Risk calculator search for %r failed: %s", name, result)
                continue
            if result is not None and text_key(result.name) not in seen:
                seen.add(text_key(result.name))
                calculators.append(result)
        return calculators

    async def _lab_value(self, test_name: str, fanout: FanOut) -> LabValue:
        documents = await self._parallel(fanout, terms.render(terms.LAB_VALUE_TERMS, test=test_name))

        ranges: List[NormalRange] = []
        range_keys = set()
        critical_low = critical_high = None
        age_groups: List[str] = []
        sources = []
        for document in documents:
            found_ranges = extract_lab_ranges(document.text, document.id)
            critical = extract_critical_values(document.text, document.id)
            if not found_ranges and not critical:
                continue

            for found in found_ranges:
                key = (found.low, found.high, found.units.lower(), found.age_group)
                if key not in range_keys:
                    range_keys.add(key)
                    ranges.append(NormalRange(
                        low=found.low,
                        high=found.high,
                        units=found.units,
                        age_group=found.age_group,
                    ))
            for value in critical:
                # later documents overwrite earlier ones
                if value.low is not None:
                    critical_low = value.low
                if value.high is not None:
                    critical_high = value.high
            for group in extract_age_groups(document.text):
                if group not in age_groups:
                    age_groups.append(group)
            sources.append(document.citation())

        return LabValue(
            test_name=test_name,
            normal_ranges=ranges,
            critical_values=CriticalValues(low=critical_low, high=critical_high),
            age_groups=age_groups,
            sources=sources,
        )

    async def get_lab_values(
        self,
        test_name: Optional[str] = None,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[LabValue]:
        """Reference ranges for one test, or for the default catalog of tests."""
        tests = [test_name.strip()] if test_name and test_name.strip() else list(terms.DEFAULT_LAB_TESTS)
        fanout = self._fanout("lab_values", deadline, trace)

        branches = [fanout.child(f"lab_value:{name}") for name in tests]
        results = await asyncio.gather(
            *[self._lab_value(name, branch) for name, branch in zip(tests, branches)],
            return_exceptions=True,
        )
        for branch in branches:
            fanout.trace.merge(branch.trace)

        lab_values = []
        for name, result in zip(tests, results):
            if isinstance(result, Exception):
                logger.warning("Lab value search for %r failed: %s", name, result)
                lab_values.append(LabValue(test_name=name))
            else:
                lab_values.append(result)
        return lab_values

    async def get_diagnostic_criteria(
        self,
        condition: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> DiagnosticCriteria:
        """Criteria, red flags and differentials from the first document stating criteria."""
        name = _require(condition, "condition")
        fanout = self._fanout("diagnostic_criteria", deadline, trace)

        result = await self._early_stop(
            fanout,
            terms.render(terms.DIAGNOSTIC_CRITERIA_TERMS, condition=name),
            lambda doc: extract_criteria_sets(doc.text, doc.id),
        )
        if not result.found:
            return DiagnosticCriteria(condition=name)

        document = result.document
        source_label = ", ".join(part for part in (document.journal, document.year) if part and part != UNKNOWN)
        return DiagnosticCriteria(
            condition=name,
            criteria_sets=[CriteriaSet(
                name=document.title,
                source=source_label or LITERATURE_REVIEW,
                criteria=[
                    CriteriaEntry(category=fact.category, items=fact.items, required_count=fact.required_count)
                    for fact in result.facts
                ],
            )],
            red_flags=[flag.text for flag in extract_red_flags(document.text, document.id)],
            differential_diagnosis=[item.text for item in extract_differential_items(document.text, document.id)],
            sources=[document.citation()],
        )

    # ------------------------------------------------------------------
    # Literature
    # ------------------------------------------------------------------

    async def search_clinical_guidelines(
        self,
        query: str,
        organization: Optional[str] = None,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[ClinicalGuideline]:
        """
        Guideline documents for a topic, each annotated with organization,
        category and evidence level. With an organization, only documents
        attributed to it are kept.
        """
        topic = _require(query, "query")
        organization = organization.strip() if organization and organization.strip() else None
        fanout = self._fanout("clinical_guidelines", deadline, trace)

        battery = terms.render(terms.GUIDELINE_TERMS, query=topic)
        if organization:
            battery = terms.render(terms.ORGANIZATION_GUIDELINE_TERMS, query=topic, organization=organization) + battery
        documents = await self._parallel(fanout, battery)

        guidelines = []
        for document in documents:
            meta = extract_guideline_meta(document.text, document.year, document.id)[0]
            if organization:
                wanted = organization.lower()
                attributed = meta.organization.lower()
                if wanted not in document.text.lower() and wanted not in attributed and attributed not in wanted:
                    continue
            guidelines.append(ClinicalGuideline(
                title=document.title,
                organization=meta.organization,
                year=document.year,
                category=meta.category,
                evidence_level=meta.evidence_level,
                description=_summary(document),
                url=document.url,
                source_id=document.id,
            ))
        return guidelines

    async def search_medical_databases(
        self,
        query: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> DatabaseSearchResults:
        """Same query against PubMed, Google Scholar and ClinicalTrials.gov at once."""
        topic = _require(query, "query")
        fanout = self._fanout("medical_databases", deadline, trace)

        adapters = [self.pubmed, self.scholar, self.trials]
        per_source = await fanout.gather([(adapter.name, topic, adapter.fetch_documents) for adapter in adapters])

        return DatabaseSearchResults(
            query=topic,
            documents=dedupe_documents(doc for docs in per_source for doc in docs),
            source_counts={adapter.name: len(docs) for adapter, docs in zip(adapters, per_source)},
            failed_sources=fanout.trace.failed_adapters,
        )

    async def search_medical_journals(
        self,
        query: str,
        deadline: Optional[float] = None,
        trace: Optional[SearchTrace] = None,
    ) -> List[NormalizedDocument]:
        """PubMed search restricted to each journal of the top-journal list."""
        topic = _require(query, "query")
        fanout = self._fanout("medical_journals", deadline, trace)
        battery = [terms.JOURNAL_TERM.format(journal=journal, query=topic) for journal in terms.TOP_JOURNALS]
        return await self._parallel(fanout, battery, limit=JOURNAL_RESULTS_PER_TERM)
