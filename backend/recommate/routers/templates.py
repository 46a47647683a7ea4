"""
Recommate - Templates Router
Letter template CRUD, text and PDF previews, and the variable catalog.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_professor
from ..database import get_db
from ..errors import RecommateError
from ..models.db_models import ProfessorDB, TemplateDB
from ..services.letters import variable_catalog
from ..services.pdf import PdfService
from ..services.template_service import TemplateService
from .letters import get_pdf_service

router = APIRouter(prefix="/templates", tags=["templates"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class TemplateVariableModel(BaseModel):
    name: str
    description: Optional[str] = None
    required: bool = False
    category: Optional[str] = None
    example: Optional[str] = None


class CreateTemplateRequest(BaseModel):
    name: str
    content: str
    description: Optional[str] = None
    variables: Optional[List[TemplateVariableModel]] = None
    category: Optional[str] = None
    is_default: bool = False


class UpdateTemplateRequest(BaseModel):
    name: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    variables: Optional[List[TemplateVariableModel]] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class PreviewRequest(BaseModel):
    content: str


class PreviewResponse(BaseModel):
    content: str
    unresolved: List[str] = []


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    content: str
    variables: Optional[List[Dict[str, Any]]] = None
    category: Optional[str] = None
    is_active: bool
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VariableResponse(BaseModel):
    name: str
    description: str
    category: str


def template_response(template: TemplateDB) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        name=template.name,
        description=template.description,
        content=template.content,
        variables=template.variables,
        category=template.category,
        is_active=template.is_active,
        is_default=template.is_default,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    active_only: bool = False,
    category: Optional[str] = None,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Default template first, then alphabetical."""
    templates = TemplateService(db).list_templates(current_professor.id, active_only, category)
    return [template_response(t) for t in templates]


@router.get("/variables", response_model=List[VariableResponse])
async def list_variables(current_professor: ProfessorDB = Depends(get_current_professor)):
    """System variables plus the professor's custom question variables."""
    return variable_catalog(current_professor)


@router.post("/preview", response_model=PreviewResponse)
async def preview_template(
    request: PreviewRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Interpolate template content with sample values."""
    return TemplateService(db).preview_template(request.content, current_professor)


@router.post("/preview-pdf")
def preview_pdf(
    request: PreviewRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    pdf_service: PdfService = Depends(get_pdf_service)
):
    """Render template content with sample values on the professor's letterhead."""
    try:
        document = pdf_service.preview_pdf(current_professor, request.content)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return Response(
        content=document.pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": 'inline; filename="preview.pdf"'},
    )


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: CreateTemplateRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    variables = [v.model_dump() for v in request.variables] if request.variables is not None else None
    try:
        template = TemplateService(db).create_template(
            current_professor.id,
            name=request.name,
            content=request.content,
            description=request.description,
            variables=variables,
            category=request.category,
            is_default=request.is_default,
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return template_response(template)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        template = TemplateService(db).get_template(current_professor.id, template_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return template_response(template)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    request: UpdateTemplateRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Only provided fields are updated."""
    data = request.model_dump(exclude_unset=True)
    try:
        template = TemplateService(db).update_template(current_professor.id, template_id, **data)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return template_response(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        TemplateService(db).delete_template(current_professor.id, template_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{template_id}/duplicate", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_template(
    template_id: str,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        template = TemplateService(db).duplicate_template(current_professor.id, template_id)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return template_response(template)
