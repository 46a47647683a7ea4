"""Recommate - Service Layer"""
from .storage import FileStore
from .access_code import create_access_code, generate_unique_code, normalize_code
from .request_service import RequestService
from .student_service import StudentService, student_view
from .document_service import DocumentService
from .template_service import TemplateService
from .professor_service import ProfessorService, professor_to_dict
from .letters import LetterVersionStore, VariableResolver, variable_catalog
from .pdf import PdfService, WeasyPrintRenderer
from .delivery import DeliveryTracker, SmtpMailer

__all__ = [
    "FileStore",
    "create_access_code",
    "generate_unique_code",
    "normalize_code",
    "RequestService",
    "StudentService",
    "student_view",
    "DocumentService",
    "TemplateService",
    "ProfessorService",
    "professor_to_dict",
    "LetterVersionStore",
    "VariableResolver",
    "variable_catalog",
    "PdfService",
    "WeasyPrintRenderer",
    "DeliveryTracker",
    "SmtpMailer",
]
