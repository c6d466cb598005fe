"""
Pattern extraction engine tests.

Each extractor is tested in isolation on short texts: trigger gating,
precedence between patterns and span filtering.
"""
from medical_mcp.extraction import (
    extract,
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
    suggest_next_steps,
    urgent_conditions_in,
)
from medical_mcp.models import FactKind, LabRange


class TestPregnancyCategory:

    def test_first_pattern_wins(self):
        facts = extract_pregnancy_category(
            "Labeled pregnancy category A, although some sources list category C."
        )
        assert len(facts) == 1
        assert facts[0].value == "A"

    def test_fda_category(self):
        assert extract_pregnancy_category("An FDA category X drug.")[0].value == "X"

    def test_letter_must_stand_alone(self):
        assert extract_pregnancy_category("Pregnancy category assessment was inconclusive.") == []

    def test_requires_trigger(self):
        assert extract_pregnancy_category("A category B drug.") == []

    def test_source_id_is_kept(self):
        assert extract_pregnancy_category("Pregnancy category D.", "pmid-1")[0].source_id == "pmid-1"


class TestLactationSafety:

    def test_safe(self):
        assert extract_lactation_safety("Sertraline is compatible with breastfeeding.")[0].value == "Safe"

    def test_caution(self):
        facts = extract_lactation_safety("Use with caution during lactation and monitor the infant.")
        assert facts[0].value == "Caution"

    def test_safety_in_title_counts_as_safe(self):
        facts = extract_lactation_safety("Safety of levetiracetam during lactation No abstract available")
        assert facts[0].value == "Safe"

    def test_unsafe_is_not_safe(self):
        facts = extract_lactation_safety("Considered unsafe in breastfeeding; avoid.")
        assert facts[0].value == "Avoid"

    def test_negated_safe_falls_through(self):
        facts = extract_lactation_safety("Not safe during breastfeeding; avoid use.")
        assert facts[0].value == "Avoid"

    def test_unclassified_text(self):
        assert extract_lactation_safety("Lactation data are limited.") == []

    def test_requires_trigger(self):
        assert extract_lactation_safety("Safe in adults.") == []


class TestContraindications:

    def test_span_length_filter(self):
        facts = extract_contraindications(
            "Warfarin is contraindicated in patients with active bleeding. "
            "It should not be used in pregnancy."
        )
        assert [f.text for f in facts] == ["patients with active bleeding"]

    def test_overlong_span_dropped(self):
        text = "Contraindicated in " + "patients with a very long list of conditions " * 3
        assert extract_contraindications(text) == []

    def test_requires_trigger(self):
        assert extract_contraindications("Avoid in patients with renal failure.") == []


class TestInteractionSeverity:

    def test_contraindicated_beats_minor(self):
        facts = extract_interaction_severity("This interaction is contraindicated; minor effects were also seen.")
        assert facts[0].value == "Contraindicated"

    def test_major(self):
        assert extract_interaction_severity("A severe interaction with bleeding.")[0].value == "Major"

    def test_minor(self):
        assert extract_interaction_severity("A mild interaction.")[0].value == "Minor"

    def test_default_moderate(self):
        assert extract_interaction_severity("A pharmacokinetic interaction was observed.")[0].value == "Moderate"

    def test_requires_trigger(self):
        assert extract_interaction_severity("Major bleeding was observed.") == []


class TestLabRanges:

    def test_dash_range(self):
        facts = extract_lab_ranges("The normal range 13.8-17.2 g/dL was used.")
        assert len(facts) == 1
        assert (facts[0].low, facts[0].high, facts[0].units) == (13.8, 17.2, "g/dL")
        assert facts[0].age_group is None
        assert isinstance(facts[0], LabRange)

    def test_to_range_with_age_group(self):
        facts = extract_lab_ranges("Reference range in adults is 0.6 to 1.2 mg/dL.")
        assert (facts[0].low, facts[0].high, facts[0].units) == (0.6, 1.2, "mg/dL")
        assert facts[0].age_group == "adults"

    def test_age_span_is_not_a_range(self):
        facts = extract_lab_ranges("Normal range for ages 18-65 years is 3.5-5.0 mmol/L.")
        assert [(f.low, f.high, f.units) for f in facts] == [(3.5, 5.0, "mmol/L")]
        assert facts[0].age_group == "18-65 years"

    def test_low_above_high_is_kept(self):
        facts = extract_lab_ranges("Normal range 10-5 mg in this assay.")
        assert (facts[0].low, facts[0].high) == (10.0, 5.0)

    def test_duplicates_removed(self):
        facts = extract_lab_ranges("Normal range 3.5-5.0 mmol/L. Reference range 3.5-5.0 MMOL/L.")
        assert len(facts) == 1

    def test_requires_trigger(self):
        assert extract_lab_ranges("Levels of 3.5-5.0 mmol/L were seen.") == []


class TestCriticalValues:

    def test_low_and_high(self):
        facts = extract_critical_values("Critical value < 7 g/dL; critical value > 20 g/dL.")
        assert (facts[0].low, facts[0].high) == (7.0, 20.0)

    def test_first_per_side(self):
        facts = extract_critical_values("Critical value < 7. Another critical value < 5.")
        assert facts[0].low == 7.0
        assert facts[0].high is None

    def test_nothing_found(self):
        assert extract_critical_values("Critical values were not reported.") == []


class TestDiagnosticText:
    """Criteria, red flags and differential diagnosis."""

    def test_criteria_items(self):
        facts = extract_criteria_sets("Diagnostic criteria: fever; rash; joint pain. Other text.")
        assert len(facts) == 1
        assert facts[0].items == ["fever", "rash", "joint pain"]
        assert facts[0].required_count == 1
        assert facts[0].category == "Diagnostic Criteria"

    def test_criteria_required_count(self):
        facts = extract_criteria_sets(
            "Diagnostic criteria require at least two of the following: fever, rash, arthritis."
        )
        assert facts[0].required_count == 2
        assert "rash" in facts[0].items

    def test_red_flags(self):
        facts = extract_red_flags("Red flags: sudden severe headache and neck stiffness.")
        assert [f.text for f in facts] == ["sudden severe headache and neck stiffness"]

    def test_differential_span_kept_whole(self):
        facts = extract_differential_items(
            "The differential diagnosis includes nausea and vomiting of pregnancy."
        )
        assert [f.text for f in facts] == ["nausea and vomiting of pregnancy"]

    def test_differential_each_cue_gives_an_item(self):
        facts = extract_differential_items("Consider pericarditis. Rule out pulmonary embolism. Consider flu.")
        assert [f.text for f in facts] == ["pericarditis", "pulmonary embolism"]

    def test_differential_max_length(self):
        text = "Consider " + "x" * 60
        assert len(extract_differential_items(text)) == 1
        assert extract_differential_items(text, max_length=50) == []

    def test_next_steps(self):
        assert suggest_next_steps("Obtain an ECG and troponin levels.") == ["ECG", "Laboratory testing"]
        assert suggest_next_steps("Nothing specific.") == ["Clinical evaluation"]

    def test_urgent_conditions(self):
        assert urgent_conditions_in("acute pulmonary embolism") == ["pulmonary embolism"]
        assert urgent_conditions_in("tension headache") == []


class TestRiskCalculators:

    def test_candidate(self):
        facts = extract_calculator_candidate(
            "The CHA2DS2-VASc score in atrial fibrillation: a validated cohort study",
            "Age, sex and hypertension are included.",
            "pmid-9",
        )
        assert len(facts) == 1
        assert facts[0].name == "CHA2DS2-VASc score"
        assert facts[0].parameters == ["age", "sex", "hypertension"]
        assert facts[0].validation == "Validated"
        assert facts[0].source_id == "pmid-9"

    def test_no_name_no_candidate(self):
        assert extract_calculator_candidate("Risk factors in elderly patients") == []


class TestGuidelineMeta:

    def test_organization_category_and_level(self):
        meta = extract_guideline_meta(
            "2020 American Heart Association guideline for hypertension. Level of evidence A.", "2020"
        )[0]
        assert meta.organization == "American Heart Association"
        assert meta.category == "Cardiology"
        assert meta.evidence_level == "Level A"
        assert meta.year == "2020"

    def test_class_level(self):
        assert extract_guideline_meta("Class III recommendation.")[0].evidence_level == "Class III"

    def test_keyword_level(self):
        meta = extract_guideline_meta("A systematic review and meta-analysis.")[0]
        assert meta.evidence_level == "Systematic Review"

    def test_defaults(self):
        meta = extract_guideline_meta("Some text.")[0]
        assert (meta.organization, meta.category, meta.evidence_level) == ("Unknown", "General", "Expert Opinion")


class TestExtractDispatch:

    def test_runs_requested_kinds_in_order(self, make_document):
        doc = make_document("42", "Pregnancy category D", "A major interaction.")
        facts = extract(doc, [FactKind.PREGNANCY_CATEGORY, FactKind.INTERACTION_SEVERITY])

        assert [f.kind for f in facts] == ["pregnancy_category", "interaction_severity"]
        assert [f.value for f in facts] == ["D", "Major"]
        assert all(f.source_id == "42" for f in facts)
