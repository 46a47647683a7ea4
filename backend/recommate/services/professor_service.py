"""
Professor Service

Account setup, login, profile, intake questions and branding images.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..auth import hash_password, verify_password, create_access_token
from ..config import MAX_IMAGE_SIZE
from ..errors import AuthenticationError, InvalidStateError, NotFoundError, ValidationError
from ..models.db_models import ProfessorDB
from ..models.letter_variables import HEADER_ITEMS, HeaderConfig
from .letters.variables import generate_variable_name, is_valid_variable_name, SYSTEM_VARIABLE_NAMES
from .storage import FileStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
IMAGE_SUBDIR = "professor-images"
IMAGE_KINDS = ("letterhead", "signature")

QUESTION_TYPES = ("text", "textarea", "select", "multiselect", "checkbox", "date", "email", "number")
OPTION_QUESTION_TYPES = ("select", "multiselect")

# content type -> file extension
ALLOWED_IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

PROFILE_FIELDS = ("name", "title", "department", "institution", "address", "phone")


def _looks_like(content_type: str, data: bytes) -> bool:
    """Check the leading bytes agree with the declared image type."""
    head = data[:512]
    if content_type == "image/png":
        return head.startswith(b"\x89PNG\r\n\x1a\n")
    if content_type == "image/jpeg":
        return head.startswith(b"\xff\xd8\xff")
    if content_type == "image/gif":
        return head.startswith((b"GIF87a", b"GIF89a"))
    if content_type == "image/webp":
        return head[:4] == b"RIFF" and head[8:12] == b"WEBP"
    if content_type == "image/svg+xml":
        return b"<svg" in head.lower()
    return False


def professor_to_dict(professor: ProfessorDB) -> Dict[str, Any]:
    """Public profile; never includes the password hash or image paths."""
    return {
        "id": professor.id,
        "email": professor.email,
        "name": professor.name,
        "title": professor.title,
        "department": professor.department,
        "institution": professor.institution,
        "address": professor.address,
        "phone": professor.phone,
        "is_admin": professor.is_admin,
        "has_letterhead": bool(professor.letterhead_image),
        "has_signature": bool(professor.signature_image),
        "header_config": HeaderConfig.from_json(professor.header_config).to_json(),
        "custom_questions": professor.custom_questions or [],
        "created_at": professor.created_at.isoformat() if professor.created_at else None,
    }


def normalize_questions(questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Validate intake questions and fill in missing ids, order and variable names.

    Raises ValidationError on unknown types, missing labels, missing options
    for select types, and invalid or duplicate variable names.
    """
    normalized = []
    seen = set()
    for index, question in enumerate(questions or []):
        label = (question.get("label") or "").strip()
        question_type = question.get("type") or "text"
        variable_name = (question.get("variable_name") or "").strip() or generate_variable_name(label)
        key = f"questions[{index}]"

        if not label:
            raise ValidationError("Invalid question", {key: "Label is required"})
        if question_type not in QUESTION_TYPES:
            raise ValidationError("Invalid question", {key: f"Unknown question type '{question_type}'"})
        if not is_valid_variable_name(variable_name):
            raise ValidationError(
                "Invalid question",
                {key: f"Variable name '{variable_name}' must start with a letter and use a-z, 0-9 or _"},
            )
        if variable_name in SYSTEM_VARIABLE_NAMES:
            raise ValidationError("Invalid question", {key: f"'{variable_name}' is a built-in variable"})
        if variable_name in seen:
            raise ValidationError("Invalid question", {key: f"Duplicate variable name '{variable_name}'"})
        seen.add(variable_name)

        options = [str(o) for o in (question.get("options") or []) if str(o).strip()]
        if question_type in OPTION_QUESTION_TYPES and not options:
            raise ValidationError("Invalid question", {key: "Options are required for select questions"})

        entry = {
            "id": question.get("id") or f"q-{uuid4().hex[:12]}",
            "type": question_type,
            "label": label,
            "required": bool(question.get("required", False)),
            "order": question["order"] if question.get("order") is not None else index,
            "variable_name": variable_name,
        }
        for optional in ("description", "placeholder"):
            if question.get(optional):
                entry[optional] = question[optional]
        if question_type in OPTION_QUESTION_TYPES:
            entry["options"] = options
        normalized.append(entry)

    return sorted(normalized, key=lambda q: q["order"])


def normalize_header_config(config: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    unknown = [item for item in config.get("items", []) if item not in HEADER_ITEMS]
    if unknown:
        raise ValidationError("Invalid header config", {"header_config": f"Unknown items: {', '.join(unknown)}"})
    return HeaderConfig.from_json(config).to_json()


class ProfessorService:
    """Account and branding operations."""

    def __init__(self, db: Session, store: Optional[FileStore] = None):
        self.db = db
        self.store = store or FileStore()

    def _get(self, professor_id: str) -> ProfessorDB:
        professor = self.db.query(ProfessorDB).filter(ProfessorDB.id == professor_id).first()
        if not professor:
            raise NotFoundError("Professor not found")
        return professor

    # =========================================================================
    # SETUP / LOGIN
    # =========================================================================

    def needs_setup(self) -> bool:
        return self.db.query(ProfessorDB).count() == 0

    def setup(
        self,
        email: str,
        password: str,
        name: str,
        title: Optional[str] = None,
        department: Optional[str] = None,
        institution: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the first professor account. Only allowed on an empty system."""
        if not self.needs_setup():
            raise InvalidStateError("Setup already completed")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password too short", {"password": "Password must be at least 8 characters"})
        if not (name or "").strip():
            raise ValidationError("Name is required", {"name": "Name is required"})

        professor = ProfessorDB(
            id=str(uuid4()),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            is_admin=True,
            name=name.strip(),
            title=title,
            department=department,
            institution=institution,
            custom_questions=[],
        )
        self.db.add(professor)
        self.db.commit()
        self.db.refresh(professor)
        logger.info(f"Initial setup completed for {professor.email}")
        return {"token": create_access_token(professor.id, professor.email), "professor": professor}

    def login(self, email: str, password: str) -> Dict[str, Any]:
        professor = self.db.query(ProfessorDB).filter(
            ProfessorDB.email == (email or "").strip().lower()
        ).first()
        if not professor or not verify_password(password, professor.password_hash):
            raise AuthenticationError("Invalid email or password")

        logger.info(f"Professor logged in: {professor.email}")
        return {"token": create_access_token(professor.id, professor.email), "professor": professor}

    # =========================================================================
    # PROFILE
    # =========================================================================

    def get_profile(self, professor_id: str) -> ProfessorDB:
        return self._get(professor_id)

    def update_profile(self, professor_id: str, data: Dict[str, Any]) -> ProfessorDB:
        """Apply only the keys present in data."""
        professor = self._get(professor_id)

        if "name" in data and not (data["name"] or "").strip():
            raise ValidationError("Name is required", {"name": "Name is required"})

        for field_name in PROFILE_FIELDS:
            if field_name in data:
                value = data[field_name]
                setattr(professor, field_name, value.strip() if isinstance(value, str) else value)

        if "header_config" in data:
            professor.header_config = normalize_header_config(data["header_config"])
        if "custom_questions" in data:
            professor.custom_questions = normalize_questions(data["custom_questions"] or [])

        self.db.commit()
        self.db.refresh(professor)
        return professor

    def change_password(self, professor_id: str, current_password: str, new_password: str) -> None:
        professor = self._get(professor_id)
        if not verify_password(current_password, professor.password_hash):
            raise ValidationError("Current password is incorrect", {"current_password": "Incorrect password"})
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Password too short",
                {"new_password": "New password must be at least 8 characters"},
            )

        professor.password_hash = hash_password(new_password)
        self.db.commit()
        logger.info(f"Password changed for {professor.email}")

    # =========================================================================
    # BRANDING IMAGES
    # =========================================================================

    @staticmethod
    def _image_attr(kind: str) -> str:
        if kind not in IMAGE_KINDS:
            raise NotFoundError("Unknown image type")
        return f"{kind}_image"

    def upload_image(self, professor_id: str, kind: str, content_type: str, data: bytes) -> ProfessorDB:
        """Store a letterhead or signature image, replacing any previous one."""
        attr = self._image_attr(kind)
        professor = self._get(professor_id)

        extension = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
        if extension is None:
            raise ValidationError("Unsupported image type", {"file": f"File type {content_type} is not allowed"})
        if not data:
            raise ValidationError("Empty file", {"file": "File is empty"})
        if len(data) > MAX_IMAGE_SIZE:
            raise ValidationError("File too large", {"file": f"Maximum size is {MAX_IMAGE_SIZE} bytes"})
        if not _looks_like(content_type.lower(), data):
            raise ValidationError("Invalid image", {"file": "File content does not match its type"})

        filename = self.store.unique_name(f"{kind}-{professor.id}-", extension)
        path = self.store.write(IMAGE_SUBDIR, filename, data)

        previous = getattr(professor, attr)
        setattr(professor, attr, path)
        self.db.commit()
        if previous and previous != path:
            self.store.delete(previous)

        self.db.refresh(professor)
        logger.info(f"Stored {kind} image for {professor.email}")
        return professor

    def delete_image(self, professor_id: str, kind: str) -> ProfessorDB:
        attr = self._image_attr(kind)
        professor = self._get(professor_id)

        previous = getattr(professor, attr)
        setattr(professor, attr, None)
        self.db.commit()
        self.store.delete(previous)

        self.db.refresh(professor)
        return professor

    def get_image_path(self, professor_id: str, kind: str) -> str:
        attr = self._image_attr(kind)
        professor = self._get(professor_id)
        path = getattr(professor, attr)
        if not self.store.exists(path):
            raise NotFoundError(f"No {kind} image")
        return path
