"""
Response formatting - renders adapter results and aggregates as Markdown.

Every clinical answer ends with a disclaimer: extraction is heuristic and
results are not for clinical use. "Nothing found" answers suggest
different search terms instead of failing.
"""
from typing import List, Optional

from medical_mcp.models import (
    NO_ABSTRACT,
    UNKNOWN,
    ClinicalGuideline,
    DatabaseSearchResults,
    DiagnosticCriteria,
    DifferentialDiagnosis,
    DrugInteraction,
    DrugLabel,
    DrugSafetyInfo,
    HealthIndicator,
    LabValue,
    NormalizedDocument,
    RiskCalculator,
    RxNormConcept,
    SourceCitation,
)

NOT_SPECIFIED = "Not specified"

PREGNANCY_CATEGORY_NOTES = {
    "A": "Safe - Adequate studies show no risk to fetus",
    "B": "Generally Safe - Animal studies show no risk, limited human data",
    "C": "Use with Caution - Animal studies show adverse effects, limited human data",
    "D": "Risk - Evidence of human fetal risk, use only if benefits justify risk",
    "X": "Contraindicated - Studies show fetal abnormalities, contraindicated in pregnancy",
    "N": "Not Classified - Insufficient data available",
}

LACTATION_NOTES = {
    "Safe": "Safe for breastfeeding",
    "Caution": "Use with caution, monitor infant",
    "Avoid": "Avoid during breastfeeding",
    "Unknown": "Unknown safety profile",
}

SEVERITY_LABELS = {
    "Contraindicated": "❌ **CONTRAINDICATED**",
    "Major": "🔴 **MAJOR**",
    "Moderate": "🟡 **MODERATE**",
    "Minor": "🟢 **MINOR**",
}

PROBABILITY_LABELS = {
    "High": "🔴 **HIGH**",
    "Moderate": "🟡 **MODERATE**",
    "Low": "🟢 **LOW**",
}


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _first(values: List[str], default: str = NOT_SPECIFIED) -> str:
    return values[0] if values else default


def _numbered(items: List[str], indent: str = "") -> List[str]:
    return [f"{indent}{index}. {item}" for index, item in enumerate(items, start=1)]


def _disclaimer(subject: str, source_lines: List[str], always: List[str], never: str) -> List[str]:
    lines = [
        "",
        "🚨 **CRITICAL SAFETY WARNING:**",
        f"{subject}",
        "",
        "**DYNAMIC DATA SOURCE:**",
        *[f"• {line}" for line in source_lines],
        "",
        "**ALWAYS:**",
        *[f"• {line}" for line in always],
        "",
        f"**{never}**",
    ]
    return lines


def _citations(sources: List[SourceCitation], limit: int = 5) -> List[str]:
    if not sources:
        return []
    lines = ["**Sources:**"]
    for index, source in enumerate(sources[:limit], start=1):
        details = ", ".join(part for part in (source.journal, source.year) if part and part != UNKNOWN)
        line = f"{index}. {source.title}"
        if details:
            line += f" ({details})"
        if source.url:
            line += f" - {source.url}"
        lines.append(line)
    if len(sources) > limit:
        lines.append(f"... and {len(sources) - limit} more")
    lines.append("")
    return lines


# ============================================================================
# Raw-source tools
# ============================================================================

def format_drug_search(query: str, labels: List[DrugLabel]) -> str:
    if not labels:
        return f'No drugs found matching "{query}". Try a different search term.'

    lines = [f'**Drug Search Results for "{query}"**', "", f"Found {len(labels)} drug(s)", ""]
    for index, label in enumerate(labels, start=1):
        openfda = label.openfda
        lines.append(f"{index}. **{_first(openfda.brand_name, 'Unknown Brand')}**")
        lines.append(f"   Generic Name: {_first(openfda.generic_name)}")
        lines.append(f"   Manufacturer: {_first(openfda.manufacturer_name)}")
        lines.append(f"   Route: {_first(openfda.route)}")
        lines.append(f"   Dosage Form: {_first(openfda.dosage_form)}")
        if label.purpose:
            lines.append(f"   Purpose: {truncate(label.purpose[0], 200)}")
        lines.append(f"   Last Updated: {label.effective_time or NOT_SPECIFIED}")
        lines.append("")
    return "\n".join(lines)


def format_drug_details(ndc: str, label: Optional[DrugLabel]) -> str:
    if label is None:
        return f"No drug found with NDC: {ndc}"

    openfda = label.openfda
    lines = [
        f"**Drug Details for NDC: {ndc}**",
        "",
        "**Basic Information:**",
        f"- Brand Name: {_first(openfda.brand_name)}",
        f"- Generic Name: {_first(openfda.generic_name)}",
        f"- Manufacturer: {_first(openfda.manufacturer_name)}",
        f"- Route: {_first(openfda.route)}",
        f"- Dosage Form: {_first(openfda.dosage_form)}",
        f"- Last Updated: {label.effective_time or NOT_SPECIFIED}",
        "",
    ]
    if label.purpose:
        lines += ["**Purpose/Uses:**", *_numbered(label.purpose), ""]
    if label.warnings:
        lines += ["**Warnings:**", *_numbered([truncate(w, 300) for w in label.warnings]), ""]
    if label.drug_interactions:
        lines += ["**Drug Interactions:**", *_numbered([truncate(i, 300) for i in label.drug_interactions]), ""]
    return "\n".join(lines)


def format_health_statistics(
    indicator: str,
    country: Optional[str],
    indicators: List[HealthIndicator],
    limit: int = 10,
) -> str:
    where = f" in {country}" if country else ""
    if not indicators:
        return f'No health indicators found for "{indicator}"{where}. Try a different search term.'

    lines = [f"**Health Statistics: {indicator}**", ""]
    if country:
        lines.append(f"Country: {country}")
    lines += [f"Found {len(indicators)} data points", ""]
    for index, point in enumerate(indicators[:limit], start=1):
        lines.append(f"{index}. **{point.spatial_dim}** ({point.time_dim})")
        lines.append(f"   Value: {point.value if point.value is not None else 'N/A'} {point.comments or ''}".rstrip())
        lines.append(f"   Numeric Value: {point.numeric_value if point.numeric_value is not None else 'N/A'}")
        if point.low is not None and point.high is not None:
            lines.append(f"   Range: {point.low} - {point.high}")
        lines.append(f"   Date: {point.date or NOT_SPECIFIED}")
        lines.append("")
    return "\n".join(lines)


def _document_lines(index: int, document: NormalizedDocument) -> List[str]:
    lines = [f"{index}. **{document.title}**"]
    if document.authors:
        authors = ", ".join(document.authors[:5])
        lines.append(f"   Authors: {authors}{' et al.' if len(document.authors) > 5 else ''}")
    lines.append(f"   Journal: {document.journal}")
    lines.append(f"   Year: {document.year or 'Date not available'}")
    lines.append(f"   ID: {document.id}")
    if document.doi:
        lines.append(f"   DOI: {document.doi}")
    if document.url and document.url != document.id:
        lines.append(f"   URL: {document.url}")
    if document.abstract != NO_ABSTRACT:
        lines.append(f"   Abstract: {truncate(document.abstract, 300)}")
    lines.append("")
    return lines


def format_literature(query: str, documents: List[NormalizedDocument]) -> str:
    if not documents:
        return f'No medical articles found for "{query}". Try a different search term.'

    lines = [f'**Medical Literature Search: "{query}"**', "", f"Found {len(documents)} article(s)", ""]
    for index, document in enumerate(documents, start=1):
        lines += _document_lines(index, document)
    return "\n".join(lines)


def format_article(pmid: str, document: Optional[NormalizedDocument]) -> str:
    if document is None:
        return f"No article found with PMID: {pmid}"

    lines = [f"**Article Details for PMID: {pmid}**", "", f"**Title:** {document.title}", ""]
    if document.authors:
        lines += [f"**Authors:** {', '.join(document.authors)}", ""]
    lines.append(f"**Journal:** {document.journal}")
    lines.append(f"**Publication Date:** {document.year or 'Date not available'}")
    if document.doi:
        lines.append(f"**DOI:** {document.doi}")
    if document.url:
        lines.append(f"**URL:** {document.url}")
    lines += ["", "**Abstract:**", document.abstract]
    return "\n".join(lines)


def format_rxnorm(query: str, concepts: List[RxNormConcept]) -> str:
    if not concepts:
        return f'No drugs found in RxNorm database for "{query}". Try a different search term.'

    lines = [f'**RxNorm Drug Search: "{query}"**', "", f"Found {len(concepts)} drug(s)", ""]
    for index, concept in enumerate(concepts, start=1):
        lines.append(f"{index}. **{concept.name}**")
        lines.append(f"   RxCUI: {concept.rxcui}")
        lines.append(f"   Term Type: {concept.tty or NOT_SPECIFIED}")
        lines.append(f"   Language: {concept.language or NOT_SPECIFIED}")
        if concept.synonym:
            lines.append(f"   Synonym: {concept.synonym}")
        lines.append("")
    return "\n".join(lines)


def format_scholar(query: str, documents: List[NormalizedDocument]) -> str:
    if not documents:
        return (
            f'No academic articles found for "{query}". This could be due to:\n'
            "- No results matching your query\n"
            "- Google Scholar rate limiting\n"
            "- Network connectivity issues\n\n"
            "Try refining your search terms or try again later."
        )

    lines = [f'**Google Scholar Search: "{query}"**', "", f"Found {len(documents)} article(s)", ""]
    for index, document in enumerate(documents, start=1):
        lines += _document_lines(index, document)
    return "\n".join(lines)


# ============================================================================
# Aggregated answers
# ============================================================================

def format_guidelines(query: str, organization: Optional[str], guidelines: List[ClinicalGuideline]) -> str:
    if not guidelines:
        scope = f" from {organization}" if organization else ""
        return (
            f'No clinical guidelines found for "{query}"{scope}. Try a different search term '
            "or check if the condition has established guidelines."
        )

    lines = [f'**Clinical Guidelines Search: "{query}"**', ""]
    if organization:
        lines.append(f"Organization Filter: {organization}")
    lines += [f"Found {len(guidelines)} guideline(s)", ""]
    for index, guideline in enumerate(guidelines, start=1):
        lines.append(f"{index}. **{guideline.title}**")
        lines.append(f"   Organization: {guideline.organization}")
        lines.append(f"   Year: {guideline.year or 'Unknown'}")
        lines.append(f"   Category: {guideline.category}")
        lines.append(f"   Evidence Level: {guideline.evidence_level}")
        if guideline.description:
            lines.append(f"   Description: {truncate(guideline.description, 300)}")
        if guideline.url:
            lines.append(f"   URL: {guideline.url}")
        lines.append("")
    lines.append("⚠️  **Important:** Guideline attribution and evidence levels are inferred from the text. Always read the source guideline.")
    return "\n".join(lines)


def format_drug_safety(info: DrugSafetyInfo) -> str:
    lines = [f"**Drug Safety Information: {info.drug_name}**", ""]
    lines.append(f"Sources searched: {info.sources_searched} (successful: {info.successful_sources})")
    lines.append("")

    lines.append("**Pregnancy Safety:**")
    lines.append(f"- FDA Category: {info.pregnancy_category}")
    lines.append(f"  {PREGNANCY_CATEGORY_NOTES.get(info.pregnancy_category, PREGNANCY_CATEGORY_NOTES['N'])}")
    lines.append("")

    lines.append("**Lactation Safety:**")
    lines.append(f"- Breastfeeding: {info.lactation_safety}")
    lines.append(f"  {LACTATION_NOTES.get(info.lactation_safety, LACTATION_NOTES['Unknown'])}")

    if info.contraindications:
        lines += ["", "**Contraindications:**", *_numbered(info.contraindications)]
    if info.warnings:
        lines += ["", "**Warnings:**", *_numbered([truncate(w, 300) for w in info.warnings])]
    if info.monitoring_requirements:
        lines += ["", "**Monitoring Requirements:**", *_numbered([truncate(m, 300) for m in info.monitoring_requirements])]
    if info.interactions:
        lines += ["", "**Reported Interactions:**"]
        for index, interaction in enumerate(info.interactions, start=1):
            lines.append(f"{index}. {SEVERITY_LABELS.get(interaction.severity, interaction.severity)} - {interaction.description}")

    lines += ["", f"**Evidence Level:** {info.evidence_level}"]
    if info.last_updated:
        lines.append(f"**Label Last Updated:** {info.last_updated}")
    lines.append("")
    lines += _citations(info.sources)

    lines += _disclaimer(
        "This drug safety information is for educational purposes only and may not be complete or current.",
        [
            "Information retrieved from live FDA and PubMed searches",
            "Categories and contraindications are extracted from text by pattern matching",
            "Data freshness depends on source database updates and API availability",
        ],
        [
            "Consult with a qualified healthcare provider for personalized medical advice",
            "Check current drug safety databases and prescribing information",
            "Consider individual patient factors and medical history",
        ],
        "NEVER make medication decisions based solely on this information.",
    )
    return "\n".join(lines)


def format_interactions(drug1: str, drug2: str, interactions: List[DrugInteraction]) -> str:
    if not interactions:
        return (
            f'No known interactions found between "{drug1}" and "{drug2}". However, this does not '
            "guarantee safety - always consult with a healthcare provider before combining medications."
        )

    lines = [f"**Drug Interaction Check: {drug1} + {drug2}**", "", f"Found {len(interactions)} potential interaction(s)", ""]
    for index, interaction in enumerate(interactions, start=1):
        lines.append(f"{index}. **{interaction.drug1} + {interaction.drug2 or 'other drugs'}**")
        lines.append(f"   Severity: {SEVERITY_LABELS.get(interaction.severity, interaction.severity)}")
        lines.append(f"   Description: {interaction.description}")
        lines.append(f"   Clinical Effects: {interaction.clinical_effects}")
        lines.append(f"   Management: {interaction.management}")
        lines.append(f"   Evidence Level: {interaction.evidence_level}")
        if interaction.source and interaction.source.url:
            lines.append(f"   Source: {interaction.source.url}")
        lines.append("")

    lines += _disclaimer(
        "This drug interaction information is for educational purposes only and may not be complete or current.",
        [
            "Information retrieved from live PubMed database searches",
            "Severity is inferred from wording in the literature",
        ],
        [
            "Consult with a qualified healthcare provider before combining medications",
            "Check current drug interaction databases",
            "Monitor patients closely for adverse effects",
        ],
        "NEVER make medication decisions based solely on this information.",
    )
    return "\n".join(lines)


def format_differential(diagnosis: DifferentialDiagnosis) -> str:
    lines = ["**Differential Diagnosis Generator**", "", f"**Presenting Symptoms:** {', '.join(diagnosis.symptoms)}", ""]

    if diagnosis.possible_diagnoses:
        lines.append("**Possible Diagnoses:**")
        for index, candidate in enumerate(diagnosis.possible_diagnoses, start=1):
            lines.append(f"{index}. **{candidate.diagnosis}**")
            lines.append(f"   Probability: {PROBABILITY_LABELS.get(candidate.probability, candidate.probability)}")
            if candidate.key_findings:
                lines.append(f"   Key Findings: {', '.join(candidate.key_findings)}")
            lines.append(f"   Next Steps: {', '.join(candidate.next_steps)}")
            lines.append("")
    else:
        lines += ["No candidate diagnoses were found in the literature. Try different or more specific symptoms.", ""]

    if diagnosis.red_flags:
        lines += ["**🚨 Red Flags to Watch For:**", *_numbered(diagnosis.red_flags), ""]
    if diagnosis.urgent_considerations:
        lines += ["**⚡ Urgent Considerations:**", *_numbered(diagnosis.urgent_considerations), ""]
    lines += _citations(diagnosis.sources)

    lines += _disclaimer(
        "This is a simplified diagnostic aid for educational purposes only. It is NOT a substitute for clinical judgment or professional medical evaluation.",
        [
            "Diagnostic suggestions generated from live PubMed literature searches",
            "Results based on current medical literature and research",
        ],
        [
            "Perform a thorough clinical assessment",
            "Consult with appropriate specialists when needed",
            "Document your clinical reasoning",
        ],
        "NEVER rely solely on this tool for patient care decisions.",
    )
    return "\n".join(lines)


def format_risk_calculators(calculators: List[RiskCalculator], condition: Optional[str] = None) -> str:
    if not calculators:
        scope = f' for "{condition}"' if condition else ""
        return f"No risk calculators found{scope}. Try a different or more specific condition."

    title = f"**Risk Calculators: {condition}**" if condition else "**Available Medical Risk Calculators**"
    lines = [title, "", f"Found {len(calculators)} calculator(s)", ""]
    for index, calculator in enumerate(calculators, start=1):
        lines.append(f"{index}. **{calculator.name}**")
        lines.append(f"   Condition: {calculator.condition}")
        if calculator.description:
            lines.append(f"   Description: {truncate(calculator.description, 300)}")
        if calculator.parameters:
            lines.append(f"   Parameters: {', '.join(calculator.parameters)}")
        lines.append(f"   Validation: {calculator.validation}")
        if calculator.references:
            lines.append(f"   References: {'; '.join(calculator.references)}")
        lines.append("")

    lines.append(
        "⚠️  **Important:** These calculators are clinical decision support tools. Always use them in "
        "conjunction with clinical judgment and consider individual patient factors."
    )
    return "\n".join(lines)


def format_lab_values(lab_values: List[LabValue]) -> str:
    lines = ["**Laboratory Value Reference**", "", f"Searched {len(lab_values)} test(s)", ""]

    for index, lab in enumerate(lab_values, start=1):
        lines.append(f"{index}. **{lab.test_name}**")
        if lab.normal_ranges:
            lines.append("   **Reference Ranges:**")
            for found in lab.normal_ranges:
                group = f" ({found.age_group})" if found.age_group else ""
                lines.append(f"   - {found.low:g} - {found.high:g} {found.units}{group}")
        else:
            lines.append("   No reference ranges found in the literature. Try a different test name.")

        critical = lab.critical_values
        if critical.low is not None or critical.high is not None:
            low = f"< {critical.low:g}" if critical.low is not None else "N/A"
            high = f"> {critical.high:g}" if critical.high is not None else "N/A"
            lines.append(f"   Critical Values: Low {low}, High {high}")
        if lab.age_groups:
            lines.append(f"   Populations mentioned: {', '.join(lab.age_groups)}")
        if lab.sources:
            lines.append(f"   Sources: {len(lab.sources)} article(s)")
        lines.append("")

    lines.append(
        "⚠️  **Important:** Normal ranges may vary between laboratories. Always refer to your local "
        "lab's reference ranges. These values are for general guidance only."
    )
    return "\n".join(lines)


def format_diagnostic_criteria(criteria: DiagnosticCriteria) -> str:
    if not criteria.found:
        return (
            f'No diagnostic criteria found for "{criteria.condition}". This system searches medical '
            "literature dynamically - try different search terms or check the spelling."
        )

    lines = [f"**Diagnostic Criteria: {criteria.condition}**", ""]
    for criteria_set in criteria.criteria_sets:
        lines += [f"**{criteria_set.name}** ({criteria_set.source})", ""]
        for index, entry in enumerate(criteria_set.criteria, start=1):
            lines.append(f"{index}. **{entry.category}**")
            lines.append(f"   Required: {entry.required_count} of the following:")
            lines += _numbered(entry.items, indent="   ")
            lines.append("")

    if criteria.differential_diagnosis:
        lines += ["**Differential Diagnosis:**", *_numbered(criteria.differential_diagnosis), ""]
    if criteria.red_flags:
        lines += ["**🚨 Red Flags:**", *_numbered(criteria.red_flags), ""]
    lines += _citations(criteria.sources)

    lines += _disclaimer(
        "These diagnostic criteria are for clinical reference only and may not reflect the most current guidelines.",
        [
            "Criteria extracted from live PubMed literature searches",
            "Information freshness depends on literature publication and indexing",
        ],
        [
            "Use criteria in conjunction with clinical judgment",
            "Consult current clinical guidelines and protocols",
            "Seek specialist consultation when appropriate",
        ],
        "NEVER use these criteria as the sole basis for diagnosis.",
    )
    return "\n".join(lines)


def format_database_results(results: DatabaseSearchResults) -> str:
    counts = ", ".join(f"{name}: {count}" for name, count in results.source_counts.items())
    if not results.documents:
        message = f'No results found for "{results.query}" in any database. Try a different search term.'
        if results.failed_sources:
            message += f"\nUnavailable sources: {', '.join(results.failed_sources)}"
        return message

    lines = [f'**Medical Database Search: "{results.query}"**', "", f"Found {len(results.documents)} unique result(s) ({counts})"]
    if results.failed_sources:
        lines.append(f"Unavailable sources: {', '.join(results.failed_sources)}")
    lines.append("")
    for index, document in enumerate(results.documents, start=1):
        lines += _document_lines(index, document)
    return "\n".join(lines)


def format_journal_results(query: str, documents: List[NormalizedDocument]) -> str:
    if not documents:
        return f'No articles found for "{query}" in the top medical journals. Try a broader search term.'

    lines = [f'**Top Medical Journals Search: "{query}"**', "", f"Found {len(documents)} article(s)", ""]
    for index, document in enumerate(documents, start=1):
        lines += _document_lines(index, document)
    return "\n".join(lines)
