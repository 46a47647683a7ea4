"""Recommate - Data Models"""
from .db_models import (
    # Enums
    RequestStatus, SubmissionStatus, SubmissionMethod,
    STUDENT_EDITABLE_STATUSES, GENERATABLE_STATUSES,
    # Tables
    ProfessorDB, LetterRequestDB, DestinationDB, DocumentDB, TemplateDB, LetterDB,
)
from .letter_variables import (
    StudentVariables, ApplicationVariables, AcademicVariables,
    ProfessorVariables, LetterVariables, TemplateVariable,
    HeaderConfig, BrandingBundle,
)

__all__ = [
    "RequestStatus", "SubmissionStatus", "SubmissionMethod",
    "STUDENT_EDITABLE_STATUSES", "GENERATABLE_STATUSES",
    "ProfessorDB", "LetterRequestDB", "DestinationDB", "DocumentDB", "TemplateDB", "LetterDB",
    "StudentVariables", "ApplicationVariables", "AcademicVariables",
    "ProfessorVariables", "LetterVariables", "TemplateVariable",
    "HeaderConfig", "BrandingBundle",
]
