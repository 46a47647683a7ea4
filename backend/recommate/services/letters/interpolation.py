"""
Template Interpolator

Replaces {{ name }} tokens with resolved values. Matching on the name is
case-insensitive and tolerates surrounding whitespace. Values are inserted
as raw strings (no HTML escaping). Names with no value become an empty
string and are reported back so authors can spot typos.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List

VARIABLE_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


@dataclass(frozen=True)
class InterpolationResult:
    """Interpolated text plus names that had no value."""
    content: str
    unresolved: List[str] = field(default_factory=list)


def find_variables(content: str) -> List[str]:
    """Distinct variable names referenced by a template, lowercased, in order."""
    seen: List[str] = []
    for match in VARIABLE_PATTERN.finditer(content or ""):
        name = match.group(1).lower()
        if name not in seen:
            seen.append(name)
    return seen


def interpolate(content: str, variables: Dict[str, str]) -> InterpolationResult:
    """
    Substitute every {{ name }} token in a single pass.

    Substituted values are never rescanned, so a value containing braces
    is inserted verbatim.
    """
    lookup = {key.lower(): ("" if value is None else str(value)) for key, value in variables.items()}
    unresolved: List[str] = []

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1).lower()
        if name in lookup:
            return lookup[name]
        if name not in unresolved:
            unresolved.append(name)
        return ""

    result = VARIABLE_PATTERN.sub(_replace, content or "")
    return InterpolationResult(content=result, unresolved=unresolved)


def interpolate_template(content: str, variables: Dict[str, str]) -> str:
    """Shorthand returning only the interpolated text."""
    return interpolate(content, variables).content
