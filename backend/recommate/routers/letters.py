"""
Recommate - Letters Router

Letter generation and versioning, PDF rendering, and delivery.

Endpoints:
A) POST /api/letters/generate           - Master letter with [INSTITUTION]/[PROGRAM] placeholders
B) POST /api/letters/generate-all       - Master plus one letter per destination
C) POST /api/letters/request/{id}/sync  - Copy master prose to every destination
D) POST /api/letters/{id}/pdf           - Render and store the PDF
E) POST /api/letters/{id}/send          - Email the finalized PDF to a destination
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_professor
from ..database import get_db
from ..errors import RecommateError
from ..models.db_models import DestinationDB, LetterDB, ProfessorDB
from ..services.delivery import DeliveryTracker, attachment_filename
from ..services.letters import LetterVersionStore
from ..services.pdf import PdfService
from ..services.pdf.service import pdf_is_current

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/letters", tags=["letters"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_pdf_service(db: Session = Depends(get_db)) -> PdfService:
    return PdfService(db)


def get_delivery_tracker(db: Session = Depends(get_db)) -> DeliveryTracker:
    return DeliveryTracker(db)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class GenerateRequest(BaseModel):
    request_id: str
    template_id: str


class UpdateContentRequest(BaseModel):
    content: str


class SendLetterRequest(BaseModel):
    destination_id: str


class MarkFailedRequest(BaseModel):
    reason: str


class LetterResponse(BaseModel):
    id: str
    request_id: str
    destination_id: Optional[str] = None
    template_id: Optional[str] = None
    content: str
    version: int
    is_finalized: bool
    is_master: bool
    has_pdf: bool
    pdf_generated_at: Optional[datetime] = None
    content_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GeneratedLetterResponse(BaseModel):
    letter: LetterResponse
    unresolved: List[str] = []


class GeneratedLettersResponse(BaseModel):
    master: LetterResponse
    destination_letters: List[LetterResponse]
    unresolved: List[str] = []


class LettersWithDestinationsResponse(BaseModel):
    master: Optional[LetterResponse] = None
    by_destination: List[LetterResponse]


class DestinationStatusResponse(BaseModel):
    id: str
    request_id: str
    institution_name: str
    program_name: Optional[str] = None
    method: str
    status: str
    sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


class PdfStatusResponse(BaseModel):
    letter_id: str
    up_to_date: bool
    pdf_generated_at: Optional[datetime] = None


class DeleteResponse(BaseModel):
    deleted: int


class EmailStatusResponse(BaseModel):
    configured: bool


def letter_response(letter: LetterDB) -> LetterResponse:
    return LetterResponse(
        id=letter.id,
        request_id=letter.request_id,
        destination_id=letter.destination_id,
        template_id=letter.template_id,
        content=letter.content,
        version=letter.version,
        is_finalized=letter.is_finalized,
        is_master=letter.is_master,
        has_pdf=bool(letter.pdf_path),
        pdf_generated_at=letter.pdf_generated_at,
        content_updated_at=letter.content_updated_at,
        created_at=letter.created_at,
        updated_at=letter.updated_at,
    )


def destination_status_response(destination: DestinationDB) -> DestinationStatusResponse:
    return DestinationStatusResponse(
        id=destination.id,
        request_id=destination.request_id,
        institution_name=destination.institution_name,
        program_name=destination.program_name,
        method=destination.method.value,
        status=destination.status.value,
        sent_at=destination.sent_at,
        confirmed_at=destination.confirmed_at,
        failure_reason=destination.failure_reason,
    )


# =============================================================================
# GENERATION
# =============================================================================

@router.post("/generate", response_model=GeneratedLetterResponse, status_code=status.HTTP_201_CREATED)
async def generate_master(
    request: GenerateRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Generate (or re-version) the master letter for a request."""
    try:
        result = LetterVersionStore(db).generate_master(
            current_professor.id, request.request_id, request.template_id
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return GeneratedLetterResponse(letter=letter_response(result.letter), unresolved=result.unresolved)


@router.post("/generate-all", response_model=GeneratedLettersResponse, status_code=status.HTTP_201_CREATED)
async def generate_all(
    request: GenerateRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Generate the master and one letter per destination from a template."""
    try:
        result = LetterVersionStore(db).generate_all_for_destinations(
            current_professor.id, request.request_id, request.template_id
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return GeneratedLettersResponse(
        master=letter_response(result.master),
        destination_letters=[letter_response(l) for l in result.destination_letters],
        unresolved=result.unresolved,
    )


# =============================================================================
# PER-REQUEST QUERIES
# =============================================================================

@router.get("/request/{request_id}", response_model=List[LetterResponse])
async def list_letters(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letters = LetterVersionStore(db).list_letters_for_request(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [letter_response(l) for l in letters]


@router.get("/request/{request_id}/master", response_model=Optional[LetterResponse])
async def get_master_letter(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).get_master_letter(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter) if letter else None


@router.get("/request/{request_id}/with-destinations", response_model=LettersWithDestinationsResponse)
async def get_letters_with_destinations(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        result = LetterVersionStore(db).get_letters_with_destinations(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    master = result["master"]
    return LettersWithDestinationsResponse(
        master=letter_response(master) if master else None,
        by_destination=[letter_response(l) for l in result["by_destination"]],
    )


@router.get("/request/{request_id}/destination/{destination_id}", response_model=Optional[LetterResponse])
async def get_letter_for_destination(
    request_id: str,
    destination_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).get_letter_for_destination(
            current_professor.id, request_id, destination_id
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter) if letter else None


@router.post("/request/{request_id}/sync", response_model=List[LetterResponse])
async def sync_master(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Propagate the master letter's current text to every destination."""
    try:
        letters = LetterVersionStore(db).sync_master_to_destinations(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [letter_response(l) for l in letters]


@router.delete("/request/{request_id}", response_model=DeleteResponse)
async def delete_all_letters(
    request_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Delete every letter of a request and reopen it for generation."""
    try:
        deleted = LetterVersionStore(db).delete_all_for_request(current_professor.id, request_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return DeleteResponse(deleted=deleted)


# =============================================================================
# SINGLE LETTER
# =============================================================================

@router.get("/{letter_id}", response_model=LetterResponse)
async def get_letter(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).get_letter(current_professor.id, letter_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter)


@router.put("/{letter_id}", response_model=LetterResponse)
async def update_letter(
    letter_id: str,
    request: UpdateContentRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).update_content(current_professor.id, letter_id, request.content)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter)


@router.post("/{letter_id}/finalize", response_model=LetterResponse)
async def finalize_letter(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).finalize(current_professor.id, letter_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter)


@router.post("/{letter_id}/unfinalize", response_model=LetterResponse)
async def unfinalize_letter(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        letter = LetterVersionStore(db).unfinalize(current_professor.id, letter_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return letter_response(letter)


@router.delete("/{letter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_letter(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        LetterVersionStore(db).delete_letter(current_professor.id, letter_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# =============================================================================
# PDF
# =============================================================================

@router.post("/{letter_id}/pdf", response_model=PdfStatusResponse)
def generate_pdf(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    pdf_service: PdfService = Depends(get_pdf_service)
):
    """Render the letter to PDF, replacing any previous file."""
    try:
        pdf_service.generate_pdf(current_professor.id, letter_id)
        letter = pdf_service.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return PdfStatusResponse(
        letter_id=letter.id,
        up_to_date=pdf_is_current(letter, pdf_service.store),
        pdf_generated_at=letter.pdf_generated_at,
    )


@router.get("/{letter_id}/pdf")
async def download_pdf(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    pdf_service: PdfService = Depends(get_pdf_service)
):
    try:
        path = pdf_service.get_pdf_path(current_professor.id, letter_id)
        letter = pdf_service.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return FileResponse(
        path,
        media_type="application/pdf",
        filename=attachment_filename(letter.request.student_name),
    )


@router.get("/{letter_id}/pdf/status", response_model=PdfStatusResponse)
async def pdf_status(
    letter_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    pdf_service: PdfService = Depends(get_pdf_service)
):
    """Whether the stored PDF reflects the current letter content."""
    try:
        up_to_date = pdf_service.is_pdf_up_to_date(current_professor.id, letter_id)
        letter = pdf_service.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return PdfStatusResponse(
        letter_id=letter.id,
        up_to_date=up_to_date,
        pdf_generated_at=letter.pdf_generated_at,
    )


# =============================================================================
# DELIVERY
# =============================================================================

@router.get("/email/status", response_model=EmailStatusResponse)
def email_status(
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    return EmailStatusResponse(configured=tracker.email_configured())


@router.post("/{letter_id}/send", response_model=DestinationStatusResponse)
def send_letter(
    letter_id: str,
    request: SendLetterRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    """Email a finalized letter with an up-to-date PDF to one destination."""
    try:
        destination = tracker.send_letter(current_professor.id, letter_id, request.destination_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return destination_status_response(destination)


@router.post("/destination/{destination_id}/mark-sent", response_model=DestinationStatusResponse)
async def mark_sent(
    destination_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        destination = tracker.mark_sent(current_professor.id, destination_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return destination_status_response(destination)


@router.post("/destination/{destination_id}/confirm", response_model=DestinationStatusResponse)
async def mark_confirmed(
    destination_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        destination = tracker.mark_confirmed(current_professor.id, destination_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return destination_status_response(destination)


@router.post("/destination/{destination_id}/fail", response_model=DestinationStatusResponse)
async def mark_failed(
    destination_id: str,
    request: MarkFailedRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        destination = tracker.mark_failed(current_professor.id, destination_id, request.reason)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return destination_status_response(destination)


@router.post("/destination/{destination_id}/reset", response_model=DestinationStatusResponse)
async def reset_destination(
    destination_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    tracker: DeliveryTracker = Depends(get_delivery_tracker)
):
    try:
        destination = tracker.reset(current_professor.id, destination_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return destination_status_response(destination)
