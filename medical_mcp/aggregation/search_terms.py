"""
Search-term batteries.

Ordered PubMed query templates per operation. Order matters: early-stop
searches try templates first to last, parallel searches concatenate
results in template order. Bump SEARCH_TERMS_VERSION whenever a battery
changes.
"""
from typing import Iterable, List

SEARCH_TERMS_VERSION = "1.1"

# Drug safety
PREGNANCY_TERMS = (
    '"{drug}" AND "pregnancy" AND ("FDA category" OR "pregnancy category")',
    '"{drug}" AND "teratogenic" AND "pregnancy"',
    '"{drug}" AND "fetal" AND "safety"',
    '"{drug}" AND "reproductive" AND "toxicity"',
)

LACTATION_TERMS = (
    '"{drug}" AND "lactation" AND "safety"',
    '"{drug}" AND "breastfeeding" AND "safe"',
    '"{drug}" AND "milk" AND "transfer"',
    '"{drug}" AND "lactmed"',
)

CONTRAINDICATION_TERMS = (
    '"{drug}" AND "contraindication"',
    '"{drug}" AND "contraindicated"',
    '"{drug}" AND "avoid" AND "pregnancy"',
    '"{drug}" AND "not recommended"',
)

INTERACTION_PROFILE_TERMS = (
    '"{drug}" AND "drug interaction"',
    '"{drug}" AND "pharmacokinetic" AND "interaction"',
    '"{drug}" AND "cyp" AND "inhibition"',
)

DRUG_PAIR_INTERACTION_TERMS = (
    '"{drug1}" AND "{drug2}" AND "interaction"',
    '"{drug1}" AND "{drug2}" AND "drug interaction"',
    '"{drug1}" AND "{drug2}" AND ("adverse" OR "risk")',
)

# Diagnostic support
DIFFERENTIAL_TERMS = (
    '"{symptoms}" AND "differential diagnosis"',
    '"{symptoms}" AND "diagnosis" AND "symptoms"',
    '"{symptoms}" AND "clinical presentation"',
)

RISK_CALCULATOR_TERMS = (
    '"{condition}" AND "risk calculator"',
    '"{condition}" AND "scoring system"',
    '"{condition}" AND "risk assessment"',
    '"{condition}" AND "prognostic score"',
)

LAB_VALUE_TERMS = (
    '"{test}" AND "normal range"',
    '"{test}" AND "reference range"',
    '"{test}" AND "critical value"',
    '"{test}" AND "pregnancy" AND "range"',
)

DIAGNOSTIC_CRITERIA_TERMS = (
    '"{condition}" AND "diagnostic criteria"',
    '"{condition}" AND "DSM"',
    '"{condition}" AND "ICD"',
    '"{condition}" AND "diagnosis" AND "criteria"',
)

# Guidelines and journals
GUIDELINE_TERMS = (
    '"{query}" AND "guideline"[Publication Type]',
    '"{query}" AND "practice guideline"[Publication Type]',
    '"{query}" AND ("guideline" OR "recommendation") AND "consensus"',
)

ORGANIZATION_GUIDELINE_TERMS = (
    '"{query}" AND "{organization}" AND ("guideline" OR "recommendation")',
)

JOURNAL_TERM = '"{journal}"[Journal] AND ({query})'

TOP_JOURNALS = (
    "N Engl J Med",
    "Lancet",
    "JAMA",
    "BMJ",
    "Ann Intern Med",
    "Nat Med",
)

# Catalogs used when no entity is given
DEFAULT_CALCULATOR_CONDITIONS = (
    "cardiovascular disease",
    "atrial fibrillation",
    "pulmonary embolism",
    "pneumonia",
    "preeclampsia",
)

DEFAULT_LAB_TESTS = (
    "hemoglobin",
    "creatinine",
    "potassium",
    "sodium",
    "glucose",
    "thyroid stimulating hormone",
)


def render(templates: Iterable[str], **values: str) -> List[str]:
    """Fill a battery's templates in order."""
    return [template.format(**values) for template in templates]
