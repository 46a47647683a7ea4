"""
Recommate - Authentication Router
First-run setup, login, profile, intake questions and branding images.
"""
from typing import Any, Dict, List, Literal, Optional
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_professor
from ..database import get_db
from ..errors import RecommateError
from ..models.db_models import ProfessorDB
from ..services.professor_service import ProfessorService, professor_to_dict, MIN_PASSWORD_LENGTH

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

ImageKind = Literal["letterhead", "signature"]


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class SetupRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    title: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name is required')
        return v.strip()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class HeaderConfigModel(BaseModel):
    show_name: bool = True
    items: List[str] = []


class CustomQuestionModel(BaseModel):
    id: Optional[str] = None
    type: str = "text"
    label: str
    description: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = False
    order: Optional[int] = None
    options: Optional[List[str]] = None
    variable_name: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """All fields are optional - only provided fields are updated."""
    name: Optional[str] = None
    title: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    header_config: Optional[HeaderConfigModel] = None
    custom_questions: Optional[List[CustomQuestionModel]] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError('New password must be at least 8 characters')
        return v


class ProfessorResponse(BaseModel):
    id: str
    email: str
    name: str
    title: Optional[str] = None
    department: Optional[str] = None
    institution: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False
    has_letterhead: bool = False
    has_signature: bool = False
    header_config: Dict[str, Any]
    custom_questions: List[Dict[str, Any]] = []
    created_at: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    professor: ProfessorResponse


class SetupStatusResponse(BaseModel):
    needs_setup: bool


class MessageResponse(BaseModel):
    message: str


def _to_response(professor: ProfessorDB) -> ProfessorResponse:
    return ProfessorResponse(**professor_to_dict(professor))


def get_professor_service(db: Session = Depends(get_db)) -> ProfessorService:
    return ProfessorService(db)


# =============================================================================
# SETUP / LOGIN
# =============================================================================

@router.get("/needs-setup", response_model=SetupStatusResponse)
async def needs_setup(db: Session = Depends(get_db)):
    """Whether the initial professor account still has to be created."""
    return SetupStatusResponse(needs_setup=ProfessorService(db).needs_setup())


@router.post("/setup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def setup(request: SetupRequest, db: Session = Depends(get_db)):
    """
    Create the first professor account.
    Fails once any account exists.
    """
    try:
        result = ProfessorService(db).setup(
            email=request.email,
            password=request.password,
            name=request.name,
            title=request.title,
            department=request.department,
            institution=request.institution,
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return TokenResponse(access_token=result["token"], professor=_to_response(result["professor"]))


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate a professor and return a JWT."""
    try:
        result = ProfessorService(db).login(request.email, request.password)
    except RecommateError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(access_token=result["token"], professor=_to_response(result["professor"]))


# =============================================================================
# PROFILE ENDPOINTS
# =============================================================================

@router.get("/me", response_model=ProfessorResponse)
async def get_me(current_professor: ProfessorDB = Depends(get_current_professor)):
    return _to_response(current_professor)


@router.put("/profile", response_model=ProfessorResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    """Update profile, letterhead layout and intake questions."""
    data = request.model_dump(exclude_unset=True)
    try:
        professor = ProfessorService(db).update_profile(current_professor.id, data)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(f"Profile updated for {professor.email}: {sorted(data)}")
    return _to_response(professor)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_professor: ProfessorDB = Depends(get_current_professor),
    db: Session = Depends(get_db)
):
    try:
        ProfessorService(db).change_password(
            current_professor.id, request.current_password, request.new_password
        )
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MessageResponse(message="Password updated successfully")


# =============================================================================
# BRANDING IMAGES
# =============================================================================

@router.post("/images/{kind}", response_model=ProfessorResponse)
async def upload_image(
    kind: ImageKind,
    file: UploadFile = File(...),
    current_professor: ProfessorDB = Depends(get_current_professor),
    service: ProfessorService = Depends(get_professor_service)
):
    """Upload a letterhead or signature image (PNG, JPEG, GIF, WebP or SVG)."""
    data = await file.read()
    try:
        professor = service.upload_image(current_professor.id, kind, file.content_type, data)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return _to_response(professor)


@router.delete("/images/{kind}", response_model=ProfessorResponse)
async def delete_image(
    kind: ImageKind,
    current_professor: ProfessorDB = Depends(get_current_professor),
    service: ProfessorService = Depends(get_professor_service)
):
    try:
        professor = service.delete_image(current_professor.id, kind)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return _to_response(professor)


@router.get("/images/{kind}")
async def get_image(
    kind: ImageKind,
    current_professor: ProfessorDB = Depends(get_current_professor),
    service: ProfessorService = Depends(get_professor_service)
):
    try:
        path = service.get_image_path(current_professor.id, kind)
    except RecommateError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return FileResponse(path)
