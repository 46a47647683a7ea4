"""
Recommate - Student Router
Unauthenticated intake endpoints; the access code is the credential.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import RecommateError
from ..models.db_models import SubmissionMethod
from ..services.document_service import DocumentService, UploadedFile, document_to_dict
from ..services.student_service import StudentService, student_view

router = APIRouter(prefix="/student", tags=["student"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class ValidateCodeRequest(BaseModel):
    code: str

    @field_validator('code')
    @classmethod
    def validate_code_length(cls, v):
        v = v.strip()
        if not 6 <= len(v) <= 12:
            raise ValueError('Access code must be 6 to 12 characters')
        return v.upper()


class ValidateCodeResponse(BaseModel):
    valid: bool
    status: Optional[str] = None
    reason: Optional[str] = None
    professor_email: Optional[str] = None


class StudentInfoRequest(BaseModel):
    student_name: str
    student_email: EmailStr
    student_phone: Optional[str] = None
    program_applying: Optional[str] = None
    institution_applying: Optional[str] = None
    degree_type: Optional[str] = None
    course_taken: Optional[str] = None
    grade: Optional[str] = None
    semester_year: Optional[str] = None
    relationship_description: Optional[str] = None
    achievements: Optional[str] = None
    personal_statement: Optional[str] = None
    additional_notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None

    @field_validator('student_name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name is required')
        return v


class DestinationRequest(BaseModel):
    institution_name: str
    program_name: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    portal_url: Optional[str] = None
    portal_instructions: Optional[str] = None
    method: SubmissionMethod
    deadline: Optional[datetime] = None


class DestinationResponse(BaseModel):
    id: str
    institution_name: str
    program_name: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    portal_url: Optional[str] = None
    portal_instructions: Optional[str] = None
    method: str
    deadline: Optional[datetime] = None


class DocumentResponse(BaseModel):
    id: str
    original_name: str
    mime_type: str
    size: int
    label: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class UploadDocumentsResponse(BaseModel):
    uploaded: List[DocumentResponse]
    rejected: List[str] = []


class StudentRequestResponse(BaseModel):
    id: str
    access_code: str
    status: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    student_phone: Optional[str] = None
    program_applying: Optional[str] = None
    institution_applying: Optional[str] = None
    degree_type: Optional[str] = None
    course_taken: Optional[str] = None
    grade: Optional[str] = None
    semester_year: Optional[str] = None
    relationship_description: Optional[str] = None
    achievements: Optional[str] = None
    personal_statement: Optional[str] = None
    additional_notes: Optional[str] = None
    custom_fields: Dict[str, Any] = {}
    questions: List[Dict[str, Any]] = []
    deadline: Optional[datetime] = None
    destinations: List[DestinationResponse] = []
    documents: List[DocumentResponse] = []


class MessageResponse(BaseModel):
    message: str


def _destination_response(destination) -> DestinationResponse:
    return DestinationResponse(
        id=destination.id,
        institution_name=destination.institution_name,
        program_name=destination.program_name,
        recipient_name=destination.recipient_name,
        recipient_email=destination.recipient_email,
        portal_url=destination.portal_url,
        portal_instructions=destination.portal_instructions,
        method=destination.method.value,
        deadline=destination.deadline,
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/validate", response_model=ValidateCodeResponse)
async def validate_code(request: ValidateCodeRequest, db: Session = Depends(get_db)):
    """Check an access code before showing the intake form."""
    return StudentService(db).validate_code(request.code)


@router.get("/{code}", response_model=StudentRequestResponse)
async def get_request(code: str, db: Session = Depends(get_db)):
    try:
        data = StudentService(db).get_request_by_code(code)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return StudentRequestResponse(**data)


@router.put("/{code}", response_model=StudentRequestResponse)
async def update_info(code: str, request: StudentInfoRequest, db: Session = Depends(get_db)):
    service = StudentService(db)
    try:
        updated = service.update_student_info(code, request.model_dump())
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return StudentRequestResponse(**student_view(updated))


@router.post("/{code}/destinations", response_model=DestinationResponse, status_code=status.HTTP_201_CREATED)
async def add_destination(code: str, request: DestinationRequest, db: Session = Depends(get_db)):
    try:
        destination = StudentService(db).add_destination(code, request.model_dump())
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _destination_response(destination)


@router.put("/{code}/destinations/{destination_id}", response_model=DestinationResponse)
async def update_destination(
    code: str,
    destination_id: str,
    request: DestinationRequest,
    db: Session = Depends(get_db)
):
    try:
        destination = StudentService(db).update_destination(code, destination_id, request.model_dump())
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _destination_response(destination)


@router.delete("/{code}/destinations/{destination_id}", response_model=MessageResponse)
async def delete_destination(code: str, destination_id: str, db: Session = Depends(get_db)):
    try:
        StudentService(db).delete_destination(code, destination_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Destination removed")


@router.post("/{code}/submit", response_model=StudentRequestResponse)
async def submit(code: str, db: Session = Depends(get_db)):
    """Hand the request to the professor."""
    try:
        submitted = StudentService(db).submit_request(code)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return StudentRequestResponse(**student_view(submitted))


# =============================================================================
# DOCUMENTS
# =============================================================================

@router.post("/{code}/documents", response_model=UploadDocumentsResponse)
async def upload_documents(
    code: str,
    files: List[UploadFile] = File(...),
    label: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    service: DocumentService = Depends(get_document_service)
):
    """Upload supporting documents (PDF, Word, PNG, JPEG or GIF, up to 10 at once)."""
    uploads = [
        UploadedFile(filename=f.filename or "", content_type=f.content_type or "", data=await f.read())
        for f in files
    ]
    try:
        result = service.add_documents(code, uploads, label=label, description=description)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return UploadDocumentsResponse(
        uploaded=[DocumentResponse(**document_to_dict(d)) for d in result.uploaded],
        rejected=result.rejected,
    )


@router.delete("/{code}/documents/{document_id}", response_model=MessageResponse)
async def delete_document(
    code: str,
    document_id: str,
    service: DocumentService = Depends(get_document_service)
):
    try:
        service.delete_document(code, document_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Document deleted")
