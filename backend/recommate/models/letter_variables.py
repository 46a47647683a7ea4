"""
Letter Variable Models

Closed records for the values a template can reference. Each record
maps its fields to template variable names; only LetterVariables.as_mapping()
produces the open string-keyed map handed to the interpolator.
"""

from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional


def _record_mapping(record) -> Dict[str, str]:
    return {f.name: getattr(record, f.name) or "" for f in fields(record)}


@dataclass(frozen=True)
class StudentVariables:
    """Student identity."""
    student_name: str = ""
    student_first_name: str = ""
    student_email: str = ""
    student_phone: str = ""


@dataclass(frozen=True)
class ApplicationVariables:
    """Where the student is applying (placeholders in master letters)."""
    program: str = ""
    institution: str = ""
    degree_type: str = ""


@dataclass(frozen=True)
class AcademicVariables:
    """Academic history with the professor and free-text responses."""
    course_taken: str = ""
    grade: str = ""
    semester_year: str = ""
    relationship_description: str = ""
    achievements: str = ""
    personal_statement: str = ""
    additional_notes: str = ""


@dataclass(frozen=True)
class ProfessorVariables:
    """Letter author, pulled from the request's owning professor."""
    professor_name: str = ""
    professor_title: str = ""
    department: str = ""
    professor_institution: str = ""
    professor_email: str = ""


@dataclass(frozen=True)
class LetterVariables:
    """All resolved values for one letter."""
    student: StudentVariables
    application: ApplicationVariables
    academic: AcademicVariables
    professor: ProfessorVariables
    date: str
    custom: Dict[str, str] = field(default_factory=dict)

    def as_mapping(self) -> Dict[str, str]:
        """
        Flatten into the interpolation map.

        Custom question answers are merged first so a custom variable can
        never shadow a system variable.
        """
        mapping: Dict[str, str] = {}
        for name, value in self.custom.items():
            mapping[name.lower()] = "" if value is None else str(value)
        for record in (self.student, self.application, self.academic, self.professor):
            mapping.update(_record_mapping(record))
        mapping["date"] = self.date
        return mapping


@dataclass(frozen=True)
class TemplateVariable:
    """Catalog entry shown in template-authoring UIs."""
    name: str
    description: str
    category: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description, "category": self.category}


HEADER_ITEMS = ("title", "department", "institution", "address", "email", "phone")


@dataclass(frozen=True)
class HeaderConfig:
    """Which professor fields appear in the letterhead, in order."""
    show_name: bool = True
    items: List[str] = field(default_factory=lambda: ["title", "department", "institution", "email"])

    @classmethod
    def from_json(cls, data: Optional[dict]) -> "HeaderConfig":
        if not data:
            return cls()
        items = [item for item in data.get("items", []) if item in HEADER_ITEMS]
        return cls(show_name=bool(data.get("show_name", True)), items=items)

    def to_json(self) -> dict:
        return {"show_name": self.show_name, "items": list(self.items)}


@dataclass
class BrandingBundle:
    """Professor identity and images used to lay out a PDF."""
    name: str
    title: str = ""
    department: str = ""
    institution: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""
    letterhead_image: Optional[str] = None
    signature_image: Optional[str] = None
    header: HeaderConfig = field(default_factory=HeaderConfig)

    def header_lines(self) -> List[str]:
        """Configured header fields that have a value, in configured order."""
        lines = []
        for item in self.header.items:
            value = getattr(self, item, "")
            if value:
                lines.append(value)
        return lines
