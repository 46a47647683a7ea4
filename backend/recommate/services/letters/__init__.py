"""
Letter Generation Services

Variable resolution, template interpolation, and the versioned store for
master and per-destination letters.
"""

from .interpolation import InterpolationResult, interpolate, interpolate_template, find_variables
from .variables import (
    VariableResolver,
    PLACEHOLDER_INSTITUTION,
    PLACEHOLDER_PROGRAM,
    SYSTEM_VARIABLES,
    format_long_date,
    generate_variable_name,
    is_valid_variable_name,
    preview_variables,
    sample_variables,
    variable_catalog,
)
from .version_store import LetterVersionStore, GeneratedLetter, GeneratedLetters, apply_destination_values

__all__ = [
    "InterpolationResult",
    "interpolate",
    "interpolate_template",
    "find_variables",
    "VariableResolver",
    "PLACEHOLDER_INSTITUTION",
    "PLACEHOLDER_PROGRAM",
    "SYSTEM_VARIABLES",
    "format_long_date",
    "generate_variable_name",
    "is_valid_variable_name",
    "preview_variables",
    "sample_variables",
    "variable_catalog",
    "LetterVersionStore",
    "GeneratedLetter",
    "GeneratedLetters",
    "apply_destination_values",
]
