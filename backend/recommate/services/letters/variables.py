"""
Variable Resolver

Builds the values a template can reference from a request, its owning
professor and, optionally, one destination. Master letters resolve
program/institution to the [PROGRAM] / [INSTITUTION] placeholder tokens.

Also exposes the variable catalog used by template-authoring UIs.
"""
from __future__ import annotations
import logging
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models.db_models import LetterRequestDB, DestinationDB, ProfessorDB
from ...models.letter_variables import (
    StudentVariables, ApplicationVariables, AcademicVariables,
    ProfessorVariables, LetterVariables, TemplateVariable,
)

logger = logging.getLogger(__name__)

# Placeholders stored in master letters in place of destination values
PLACEHOLDER_INSTITUTION = "[INSTITUTION]"
PLACEHOLDER_PROGRAM = "[PROGRAM]"

VARIABLE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
MAX_VARIABLE_NAME_LENGTH = 50


# =============================================================================
# CATALOG
# =============================================================================

SYSTEM_VARIABLES: List[TemplateVariable] = [
    TemplateVariable("student_name", "Student full name", "Student"),
    TemplateVariable("student_first_name", "Student first name", "Student"),
    TemplateVariable("student_email", "Student email", "Student"),
    TemplateVariable("student_phone", "Student phone", "Student"),
    TemplateVariable("program", "Program applying to", "Application"),
    TemplateVariable("institution", "Institution applying to", "Application"),
    TemplateVariable("degree_type", "Degree type (MS, PhD, etc.)", "Application"),
    TemplateVariable("course_taken", "Course taken with professor", "Academic"),
    TemplateVariable("grade", "Grade in course", "Academic"),
    TemplateVariable("semester_year", "Semester and year", "Academic"),
    TemplateVariable("relationship_description", "How the student knows the professor", "Student Responses"),
    TemplateVariable("achievements", "Notable achievements", "Student Responses"),
    TemplateVariable("personal_statement", "Personal statement", "Student Responses"),
    TemplateVariable("additional_notes", "Additional notes", "Student Responses"),
    TemplateVariable("professor_name", "Professor name", "Professor"),
    TemplateVariable("professor_title", "Professor title", "Professor"),
    TemplateVariable("department", "Department name", "Professor"),
    TemplateVariable("professor_institution", "Professor institution", "Professor"),
    TemplateVariable("professor_email", "Professor email", "Professor"),
    TemplateVariable("date", "Current date", "System"),
]

SYSTEM_VARIABLE_NAMES = frozenset(v.name for v in SYSTEM_VARIABLES)


def format_long_date(value: date) -> str:
    """Long-form US date, e.g. 'October 18, 2026'."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def generate_variable_name(label: str) -> str:
    """Derive a variable name from a question label."""
    name = re.sub(r"[^a-z0-9]+", "_", (label or "").lower()).strip("_")
    name = name[:MAX_VARIABLE_NAME_LENGTH]
    if name and not name[0].isalpha():
        name = f"q_{name}"[:MAX_VARIABLE_NAME_LENGTH]
    return name or "variable"


def is_valid_variable_name(name: str) -> bool:
    return bool(name) and len(name) <= MAX_VARIABLE_NAME_LENGTH and bool(VARIABLE_NAME_PATTERN.match(name))


def custom_question_variables(questions: Optional[List[Dict[str, Any]]]) -> List[TemplateVariable]:
    """Catalog entries for professor-defined intake questions."""
    entries = []
    for question in questions or []:
        name = question.get("variable_name")
        if not name or name in SYSTEM_VARIABLE_NAMES:
            continue
        entries.append(TemplateVariable(name, question.get("label") or name, "Custom"))
    return entries


def variable_catalog(professor: Optional[ProfessorDB] = None) -> List[Dict[str, str]]:
    """System variables followed by the professor's custom question variables."""
    entries = list(SYSTEM_VARIABLES)
    if professor is not None:
        entries.extend(custom_question_variables(professor.custom_questions))
    return [entry.to_dict() for entry in entries]


def sample_variables(today: Optional[date] = None) -> Dict[str, str]:
    """Fixed sample values for template previews."""
    return LetterVariables(
        student=StudentVariables(
            student_name="Jane Smith",
            student_first_name="Jane",
            student_email="jane.smith@example.com",
            student_phone="(555) 123-4567",
        ),
        application=ApplicationVariables(
            program="Master of Science in Computer Science",
            institution="Stanford University",
            degree_type="MS",
        ),
        academic=AcademicVariables(
            course_taken="CS 101 - Introduction to Programming",
            grade="A",
            semester_year="Fall 2024",
            relationship_description="Student in my introductory programming course",
            achievements="Top project award",
        ),
        professor=ProfessorVariables(
            professor_name="Dr. John Doe",
            professor_title="Associate Professor",
            department="Computer Science",
            professor_institution="State University",
            professor_email="john.doe@example.edu",
        ),
        date=format_long_date(today or date.today()),
    ).as_mapping()


def preview_variables(professor: Optional[ProfessorDB] = None, today: Optional[date] = None) -> Dict[str, str]:
    """Sample values plus one "[label]" stand-in per custom question."""
    variables = {}
    if professor is not None:
        for entry in custom_question_variables(professor.custom_questions):
            variables[entry.name] = f"[{entry.description}]"
    variables.update(sample_variables(today))
    return variables


def _stringify_answer(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v is not None)
    return str(value)


# =============================================================================
# RESOLVER
# =============================================================================

class VariableResolver:
    """
    Resolve template variables for a request.

    Program/institution priority: placeholder tokens (master mode), then the
    destination's values, then the request's own fallback values.
    """

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today

    def resolve(
        self,
        request_id: str,
        destination: Optional[DestinationDB] = None,
        use_placeholders: bool = False,
    ) -> LetterVariables:
        request = self.db.query(LetterRequestDB).filter(LetterRequestDB.id == request_id).first()
        if not request:
            raise NotFoundError("Request not found")
        return self.resolve_for(request, destination, use_placeholders)

    def resolve_for(
        self,
        request: LetterRequestDB,
        destination: Optional[DestinationDB] = None,
        use_placeholders: bool = False,
    ) -> LetterVariables:
        """Resolve against an already loaded request."""
        professor = request.professor

        if use_placeholders:
            program = PLACEHOLDER_PROGRAM
            institution = PLACEHOLDER_INSTITUTION
        elif destination is not None:
            program = destination.program_name or request.program_applying or ""
            institution = destination.institution_name or request.institution_applying or ""
        else:
            program = request.program_applying or ""
            institution = request.institution_applying or ""

        student_name = (request.student_name or "").strip()
        custom = {
            str(name): _stringify_answer(value)
            for name, value in (request.custom_fields or {}).items()
        }

        return LetterVariables(
            student=StudentVariables(
                student_name=student_name,
                student_first_name=student_name.split(" ")[0] if student_name else "",
                student_email=request.student_email or "",
                student_phone=request.student_phone or "",
            ),
            application=ApplicationVariables(
                program=program,
                institution=institution,
                degree_type=request.degree_type or "",
            ),
            academic=AcademicVariables(
                course_taken=request.course_taken or "",
                grade=request.grade or "",
                semester_year=request.semester_year or "",
                relationship_description=request.relationship_description or "",
                achievements=request.achievements or "",
                personal_statement=request.personal_statement or "",
                additional_notes=request.additional_notes or "",
            ),
            professor=ProfessorVariables(
                professor_name=professor.name if professor else "",
                professor_title=(professor.title or "") if professor else "",
                department=(professor.department or "") if professor else "",
                professor_institution=(professor.institution or "") if professor else "",
                professor_email=(professor.email or "") if professor else "",
            ),
            date=format_long_date(self.today()),
            custom=custom,
        )
