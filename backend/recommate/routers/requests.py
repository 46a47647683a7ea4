"""
Recommate - Requests Router
Professor-side management of student letter requests.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_professor
from ..database import get_db
from ..errors import RecommateError
from ..models.db_models import DestinationDB, LetterRequestDB, ProfessorDB, RequestStatus
from ..services.request_service import RequestService, DEFAULT_PAGE_SIZE
from ..services.document_service import DocumentService, document_to_dict
from .letters import LetterResponse, letter_response
from .student import DocumentResponse, get_document_service

router = APIRouter(prefix="/requests", tags=["requests"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CreateRequestRequest(BaseModel):
    deadline: Optional[datetime] = None
    professor_notes: Optional[str] = None


class UpdateRequestRequest(BaseModel):
    """Only provided fields are updated; explicit null clears deadline or notes."""
    deadline: Optional[datetime] = None
    professor_notes: Optional[str] = None
    status: Optional[RequestStatus] = None


class DestinationResponse(BaseModel):
    id: str
    institution_name: str
    program_name: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    portal_url: Optional[str] = None
    portal_instructions: Optional[str] = None
    method: str
    status: str
    deadline: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


class RequestSummary(BaseModel):
    id: str
    access_code: str
    status: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    program_applying: Optional[str] = None
    institution_applying: Optional[str] = None
    deadline: Optional[datetime] = None
    destination_count: int = 0
    letter_count: int = 0
    student_submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RequestDetail(RequestSummary):
    student_phone: Optional[str] = None
    degree_type: Optional[str] = None
    course_taken: Optional[str] = None
    grade: Optional[str] = None
    semester_year: Optional[str] = None
    relationship_description: Optional[str] = None
    achievements: Optional[str] = None
    personal_statement: Optional[str] = None
    additional_notes: Optional[str] = None
    custom_fields: Optional[Dict[str, Any]] = None
    questions: Optional[List[Dict[str, Any]]] = None
    professor_notes: Optional[str] = None
    code_generated_at: Optional[datetime] = None
    destinations: List[DestinationResponse] = []
    documents: List[DocumentResponse] = []
    letters: List[LetterResponse] = []


class RequestListResponse(BaseModel):
    requests: List[RequestSummary]
    total: int


class RequestStatsResponse(BaseModel):
    total: int
    pending: int
    submitted: int
    in_progress: int
    completed: int
    archived: int
    upcoming_deadlines: List[RequestSummary]


def destination_response(destination: DestinationDB) -> DestinationResponse:
    return DestinationResponse(
        id=destination.id,
        institution_name=destination.institution_name,
        program_name=destination.program_name,
        recipient_name=destination.recipient_name,
        recipient_email=destination.recipient_email,
        portal_url=destination.portal_url,
        portal_instructions=destination.portal_instructions,
        method=destination.method.value,
        status=destination.status.value,
        deadline=destination.deadline,
        sent_at=destination.sent_at,
        confirmed_at=destination.confirmed_at,
        failure_reason=destination.failure_reason,
    )


def _summary_fields(request: LetterRequestDB) -> Dict[str, Any]:
    return {
        "id": request.id,
        "access_code": request.access_code,
        "status": request.status.value,
        "student_name": request.student_name,
        "student_email": request.student_email,
        "program_applying": request.program_applying,
        "institution_applying": request.institution_applying,
        "deadline": request.deadline,
        "destination_count": len(request.destinations),
        "letter_count": len(request.letters),
        "student_submitted_at": request.student_submitted_at,
        "created_at": request.created_at,
    }


def request_summary(request: LetterRequestDB) -> RequestSummary:
    return RequestSummary(**_summary_fields(request))


def request_detail(request: LetterRequestDB) -> RequestDetail:
    letters = sorted(request.letters, key=lambda l: l.version, reverse=True)
    return RequestDetail(
        **_summary_fields(request),
        student_phone=request.student_phone,
        degree_type=request.degree_type,
        course_taken=request.course_taken,
        grade=request.grade,
        semester_year=request.semester_year,
        relationship_description=request.relationship_description,
        achievements=request.achievements,
        personal_statement=request.personal_statement,
        additional_notes=request.additional_notes,
        custom_fields=request.custom_fields,
        questions=request.questions,
        professor_notes=request.professor_notes,
        code_generated_at=request.code_generated_at,
        destinations=[destination_response(d) for d in request.destinations],
        documents=[DocumentResponse(**document_to_dict(d)) for d in request.documents],
        letters=[letter_response(l) for l in letters],
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("", response_model=RequestListResponse)
async def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Search over student name, email and access code; soonest deadline first."""
    requests, total = RequestService(db).list_requests(
        current_professor.id, status=status_filter, search=search, limit=limit, offset=offset
    )
    return RequestListResponse(requests=[request_summary(r) for r in requests], total=total)


@router.get("/stats", response_model=RequestStatsResponse)
async def get_stats(
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    stats = RequestService(db).get_request_stats(current_professor.id)
    stats["upcoming_deadlines"] = [request_summary(r) for r in stats["upcoming_deadlines"]]
    return RequestStatsResponse(**stats)


@router.post("", response_model=RequestDetail, status_code=status.HTTP_201_CREATED)
async def create_request(
    request: CreateRequestRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Create a request and hand its access code to the student."""
    try:
        created = RequestService(db).create_request(
            current_professor, deadline=request.deadline, professor_notes=request.professor_notes
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return request_detail(created)


@router.get("/{request_id}", response_model=RequestDetail)
async def get_request(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        found = RequestService(db).get_request(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return request_detail(found)


@router.put("/{request_id}", response_model=RequestDetail)
async def update_request(
    request_id: str,
    request: UpdateRequestRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    data = request.model_dump(exclude_unset=True)
    try:
        updated = RequestService(db).update_request(current_professor.id, request_id, **data)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return request_detail(updated)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Delete a request with its destinations, documents and letters."""
    try:
        RequestService(db).delete_request(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{request_id}/regenerate-code", response_model=RequestDetail)
async def regenerate_code(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        updated = RequestService(db).regenerate_access_code(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return request_detail(updated)


@router.get("/{request_id}/documents/{document_id}")
async def download_document(
    request_id: str,
    document_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    service: DocumentService = Depends(get_document_service)
):
    """Download a supporting document the student uploaded."""
    try:
        document = service.get_document(current_professor.id, document_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if document.request_id != request_id:
        raise HTTPException(status_code=404, detail="Document not found")

    return FileResponse(document.path, media_type=document.mime_type, filename=document.original_name)
