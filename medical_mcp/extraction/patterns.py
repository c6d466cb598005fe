"""
Pattern library for the extraction engine.

Every trigger, capture pattern and cue list used by the extractors lives
here as named module data. Tuples are ordered: for single-valued facts the
first entry that produces a result wins.

Unless noted otherwise, patterns are matched against the lowercased
"title abstract" text.
"""
import re

from medical_mcp.models import (
    LITERATURE_REVIEW,
    InteractionSeverityValue,
    LactationSafetyValue,
)

_NUM = r"(\d+(?:\.\d+)?)"
_SPAN = r"([^.]*)"

# ============================================================================
# Pregnancy category
# ============================================================================

PREGNANCY_TRIGGERS = (
    re.compile(r"pregnancy\s+category"),
    re.compile(r"fda\s+category"),
    re.compile(r"category\s+[a-dx]\s+pregnancy"),
)

PREGNANCY_CATEGORY_PATTERNS = (
    re.compile(r"pregnancy\s+category\s+([a-dx])\b"),
    re.compile(r"fda\s+category\s+([a-dx])\b"),
    re.compile(r"category\s+([a-dx])\s+pregnancy"),
)

# ============================================================================
# Lactation safety
# ============================================================================

LACTATION_TRIGGERS = ("lactation", "breastfeeding", "breast-feeding", "breast milk")

# (value, any-of cues, none-of cues); first satisfied rule wins
LACTATION_RULES = (
    (
        LactationSafetyValue.SAFE,
        # substring: "safety" in a title counts
        (re.compile(r"safe"), re.compile(r"compatible with breast-?feeding")),
        (re.compile(r"\bnot\s+safe\b"), re.compile(r"\bunsafe\b")),
    ),
    (
        LactationSafetyValue.CAUTION,
        (re.compile(r"\bcaution"), re.compile(r"\bmonitor")),
        (),
    ),
    (
        LactationSafetyValue.AVOID,
        (re.compile(r"\bavoid"), re.compile(r"\bcontraindicated\b")),
        (),
    ),
)

# ============================================================================
# Contraindications
# ============================================================================

CONTRAINDICATION_TRIGGERS = ("contraindication", "contraindicated")

CONTRAINDICATION_PATTERNS = (
    re.compile(r"contraindicated in " + _SPAN),
    re.compile(r"avoid in " + _SPAN),
    re.compile(r"not recommended for " + _SPAN),
    re.compile(r"should not be used in " + _SPAN),
)

# Exclusive bounds on the captured span length
CONTRAINDICATION_MIN_LENGTH = 10
CONTRAINDICATION_MAX_LENGTH = 100

# ============================================================================
# Interaction severity
# ============================================================================

INTERACTION_TRIGGERS = ("interaction", "contraindicat")

# Precedence: Contraindicated > Major > Minor > Moderate (default)
SEVERITY_CUES = (
    (InteractionSeverityValue.CONTRAINDICATED, re.compile(r"\bcontraindicated\b")),
    (InteractionSeverityValue.MAJOR, re.compile(r"\b(?:major|severe)\b")),
    (InteractionSeverityValue.MINOR, re.compile(r"\b(?:minor|mild)\b")),
)
DEFAULT_SEVERITY = InteractionSeverityValue.MODERATE

INTERACTION_EFFECT_CUE = re.compile(
    r"\b(?:risk|bleeding|toxicity|increase[sd]?|decrease[sd]?|elevat\w*|"
    r"reduc\w*|potentiat\w*|adverse)\b"
)
INTERACTION_MANAGEMENT_CUE = re.compile(
    r"\b(?:monitor\w*|adjust\w*|avoid\w*|dose reduction|reduce the dose|"
    r"recommend\w*|caution)\b"
)

# ============================================================================
# Lab values
# ============================================================================

LAB_RANGE_TRIGGERS = ("normal range", "reference range", "reference interval", "normal value")

# Matched case-insensitively on the original-case text so units keep their case
LAB_RANGE_PATTERNS = (
    re.compile(_NUM + r"\s*[-–]\s*" + _NUM + r"\s*([a-zA-Zµμ/%]+)", re.IGNORECASE),
    re.compile(_NUM + r"\s+to\s+" + _NUM + r"\s*([a-zA-Zµμ/%]+)", re.IGNORECASE),
)

LAB_UNIT_TOKEN = re.compile(r"^[a-zA-Zµμ/%]+$")

# Unit tokens accepted without a "/" or "%"
KNOWN_UNITS = frozenset({
    "g", "mg", "mcg", "µg", "μg", "ug", "ng", "pg",
    "mmol", "µmol", "μmol", "umol", "nmol", "pmol", "meq",
    "iu", "u", "mu", "miu", "l", "dl", "ml", "fl", "mmhg", "bpm",
    "cells", "sec", "seconds", "s", "min", "ratio", "units",
})

CRITICAL_VALUE_TRIGGERS = ("critical value", "alert value", "panic value")

CRITICAL_VALUE_PATTERN = re.compile(
    r"(?:critical|alert|panic)\s*values?\s*(?:of\s*|:\s*)?([<>])\s*" + _NUM
)

AGE_GROUP_PATTERNS = (
    re.compile(r"\b\d+\s*(?:-|to)\s*\d+\s*years?\b"),
    re.compile(r"\badults?\b"),
    re.compile(r"\b(?:pediatric|paediatric|children)\b"),
    re.compile(r"\b(?:newborns?|neonates?|neonatal)\b"),
    re.compile(r"\bpregnan(?:t|cy)\b"),
    re.compile(r"\belderly\b"),
)

# ============================================================================
# Diagnostic criteria, red flags, differential diagnosis
# ============================================================================

CRITERIA_TRIGGERS = ("criteria",)

CRITERIA_PATTERNS = (
    re.compile(r"diagnostic\s*criteria\s*:?\s*" + _SPAN),
    re.compile(r"criteria\s*:?\s*" + _SPAN),
)
CRITERIA_MIN_LENGTH = 10
CRITERIA_CATEGORY = "Diagnostic Criteria"
CRITERIA_ITEM_SEPARATOR = re.compile(r"\s*[;,]\s*")

_COUNT_WORD = r"(\d+|one|two|three|four|five|six|seven|eight|nine)"
REQUIRED_COUNT_PATTERNS = (
    re.compile(r"at\s+least\s+" + _COUNT_WORD),
    re.compile(_COUNT_WORD + r"\s+(?:or\s+more\s+)?of\s+the\s+following"),
)
COUNT_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9,
}
DEFAULT_REQUIRED_COUNT = 1

RED_FLAG_TRIGGERS = ("red flag", "warning sign", "urgent")

RED_FLAG_PATTERNS = (
    re.compile(r"red\s*flags?\s*:?\s*" + _SPAN),
    re.compile(r"warning\s*signs?\s*:?\s*" + _SPAN),
    re.compile(r"urgent\s*:?\s*" + _SPAN),
)
RED_FLAG_MIN_LENGTH = 5

DIFFERENTIAL_TRIGGERS = ("differential", "consider", "rule out")

DIFFERENTIAL_PATTERNS = (
    re.compile(r"differential\s*diagnos[ie]s\s*(?:includes?\s*|:\s*)?" + _SPAN),
    re.compile(r"\bconsider\b\s*:?\s*" + _SPAN),
    re.compile(r"\brule\s*out\b\s*:?\s*" + _SPAN),
)
DIFFERENTIAL_MIN_LENGTH = 5
# Used by the differential diagnosis tool; criteria searches keep long spans
DIFFERENTIAL_TOOL_MAX_LENGTH = 50

# Diagnoses that warrant an urgent work-up when they show up in a differential
URGENT_CONDITIONS = (
    "myocardial infarction",
    "acute coronary syndrome",
    "pulmonary embolism",
    "aortic dissection",
    "sepsis",
    "stroke",
    "meningitis",
    "subarachnoid hemorrhage",
    "ectopic pregnancy",
    "pneumothorax",
    "anaphylaxis",
    "diabetic ketoacidosis",
    "cardiac tamponade",
    "appendicitis",
)

NEXT_STEP_CUES = (
    ("ECG", re.compile(r"\b(?:ecg|ekg|electrocardiogra\w*)\b")),
    ("Imaging", re.compile(r"\b(?:ct|mri|x-ray|radiograph\w*|ultrasound|imaging|echocardiogra\w*)\b")),
    ("Laboratory testing", re.compile(r"\b(?:troponin|d-dimer|blood tests?|laboratory|serum|cbc)\b")),
    ("Biopsy", re.compile(r"\bbiops\w*")),
    ("Specialist referral", re.compile(r"\brefer(?:ral)?\b")),
)
DEFAULT_NEXT_STEP = "Clinical evaluation"

# ============================================================================
# Risk calculators
# ============================================================================

CALCULATOR_TRIGGERS = ("calculator", "score", "risk")

# Matched on original-case text: title first, then abstract, per pattern
CALCULATOR_NAME_PATTERNS = (
    re.compile(r"\b([A-Z][a-z]+ [A-Z][a-z]+ [Ss]core)\b"),
    re.compile(r"\b([A-Z][a-z]+ [Rr]isk [Cc]alculator)\b"),
    re.compile(r"\b([A-Z][a-z]+ [Ss]coring [Ss]ystem)\b"),
    re.compile(r"\b([A-Z][A-Z0-9]+(?:[-–][A-Za-z0-9]+)* (?:[Ss]core|[Rr]ule|[Cc]riteria))\b"),
)

CALCULATOR_PARAMETER_CUES = (
    ("age", re.compile(r"\bage\b")),
    ("sex", re.compile(r"\b(?:sex|gender)\b")),
    ("weight", re.compile(r"\bweight\b")),
    ("height", re.compile(r"\bheight\b")),
    ("BMI", re.compile(r"\b(?:bmi|body mass index)\b")),
    ("blood pressure", re.compile(r"\bblood\s*pressure\b")),
    ("heart rate", re.compile(r"\bheart\s*rate\b")),
    ("respiratory rate", re.compile(r"\brespiratory\s*rate\b")),
    ("temperature", re.compile(r"\btemperature\b")),
    ("oxygen saturation", re.compile(r"\b(?:oxygen saturation|spo2)\b")),
    ("creatinine", re.compile(r"\bcreatinine\b")),
    ("cholesterol", re.compile(r"\bcholesterol\b")),
    ("diabetes", re.compile(r"\bdiabet\w*")),
    ("smoking", re.compile(r"\bsmok\w*")),
    ("hypertension", re.compile(r"\bhypertensi\w*")),
)

CALCULATOR_VALIDATION_RULES = (
    ("Validated", ("validated", "validation")),
    ("Prospective Study", ("prospective", "cohort")),
)
DEFAULT_CALCULATOR_VALIDATION = LITERATURE_REVIEW

# ============================================================================
# Clinical guidelines
# ============================================================================

GUIDELINE_ORGANIZATIONS = (
    ("American Heart Association", re.compile(r"american heart association|\baha\b")),
    ("American College of Cardiology", re.compile(r"american college of cardiology|\bacc\b")),
    ("European Society of Cardiology", re.compile(r"european society of cardiology|\besc\b")),
    ("World Health Organization", re.compile(r"world health organi[sz]ation")),
    ("NICE", re.compile(r"national institute for health and (?:care|clinical) excellence|\bnice\b")),
    ("USPSTF", re.compile(r"preventive services task force|\buspstf\b")),
    ("CDC", re.compile(r"centers for disease control|\bcdc\b")),
    ("IDSA", re.compile(r"infectious diseases society of america|\bidsa\b")),
    ("American Diabetes Association", re.compile(r"american diabetes association")),
    ("ACOG", re.compile(r"american college of obstetricians|\bacog\b")),
    ("American Academy of Pediatrics", re.compile(r"american academy of pediatrics|\baap\b")),
    ("NCCN", re.compile(r"national comprehensive cancer network|\bnccn\b")),
    ("ASCO", re.compile(r"american society of clinical oncology|\basco\b")),
    ("ESMO", re.compile(r"european society for medical oncology|\besmo\b")),
    ("American College of Physicians", re.compile(r"american college of physicians")),
    ("KDIGO", re.compile(r"\bkdigo\b")),
    ("GOLD", re.compile(r"global initiative for chronic obstructive lung disease")),
    ("GINA", re.compile(r"global initiative for asthma|\bgina\b")),
)

GUIDELINE_CATEGORIES = (
    ("Cardiology", ("cardi", "heart", "hypertension", "atrial", "coronary")),
    ("Endocrinology", ("diabet", "thyroid", "insulin", "obesity")),
    ("Obstetrics", ("pregnan", "obstet", "prenatal", "postpartum")),
    ("Pediatrics", ("pediatric", "paediatric", "children", "infant", "neonat")),
    ("Oncology", ("cancer", "tumor", "tumour", "oncolog", "carcinoma")),
    ("Infectious Disease", ("infection", "antibiotic", "antimicrobial", "hiv", "sepsis", "vaccin")),
    ("Pulmonology", ("asthma", "copd", "pulmonary", "respiratory")),
    ("Neurology", ("stroke", "epilep", "migraine", "dementia", "neurolog")),
    ("Psychiatry", ("depress", "anxiety", "schizophren", "bipolar", "psychiatr")),
    ("Nephrology", ("kidney", "renal", "dialysis")),
    ("Gastroenterology", ("liver", "hepat", "bowel", "gastro", "pancrea")),
)
DEFAULT_GUIDELINE_CATEGORY = "General"

# (pattern, label template); "{0}" is the upper-cased capture
EVIDENCE_LEVEL_PATTERNS = (
    (re.compile(r"\b(?:level|grade)\s+(?:of\s+evidence\s+)?([abc1-4])\b"), "Level {0}"),
    (re.compile(r"\bclass\s+(iv|i{1,3})\b"), "Class {0}"),
)
EVIDENCE_LEVEL_KEYWORDS = (
    ("Systematic Review", ("meta-analysis", "systematic review")),
    ("Randomized Controlled Trials", ("randomized", "randomised")),
    ("Expert Consensus", ("consensus",)),
)
DEFAULT_EVIDENCE_LEVEL = "Expert Opinion"

# ============================================================================
# Sentences
# ============================================================================

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
