"""
Pattern extraction engine.

Pure functions that turn the title and abstract of a normalized document
into structured facts (pregnancy category, lab ranges, criteria, ...).
All regular expressions live in `patterns`.
"""
from .extractors import (
    EXTRACTORS,
    extract,
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
    suggest_next_steps,
    urgent_conditions_in,
)

__all__ = [
    "EXTRACTORS",
    "extract",
    "extract_age_groups",
    "extract_calculator_candidate",
    "extract_contraindications",
    "extract_criteria_sets",
    "extract_critical_values",
    "extract_differential_items",
    "extract_guideline_meta",
    "extract_interaction_severity",
    "extract_lab_ranges",
    "extract_lactation_safety",
    "extract_pregnancy_category",
    "extract_red_flags",
    "suggest_next_steps",
    "urgent_conditions_in",
]
