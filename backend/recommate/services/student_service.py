"""
Student Intake Service

Everything a student does through an access code: check the code, fill
in their information, manage destinations and submit. Only PENDING and
SUBMITTED requests accept changes.
"""
from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..database import utcnow
from ..errors import NotFoundError, InvalidStateError, ValidationError
from ..models.db_models import (
    LetterRequestDB, DestinationDB, RequestStatus, SubmissionMethod, SubmissionStatus,
    STUDENT_EDITABLE_STATUSES,
)
from .access_code import normalize_code
from .document_service import document_to_dict

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)

# Optional request fields a student may fill in
OPTIONAL_STUDENT_FIELDS = (
    "student_phone",
    "program_applying",
    "institution_applying",
    "degree_type",
    "course_taken",
    "grade",
    "semester_year",
    "relationship_description",
    "achievements",
    "personal_statement",
    "additional_notes",
)

DESTINATION_TEXT_FIELDS = (
    "program_name",
    "recipient_name",
    "recipient_email",
    "portal_url",
    "portal_instructions",
)

BLOCKED_REASONS = {
    RequestStatus.IN_PROGRESS: "in_progress",
    RequestStatus.COMPLETED: "completed",
    RequestStatus.ARCHIVED: "archived",
}


def _clean(value: Any) -> Optional[str]:
    """Strip strings; empty becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def student_view(request: LetterRequestDB) -> Dict[str, Any]:
    """Fields of a request that the student is allowed to see."""
    return {
        "id": request.id,
        "access_code": request.access_code,
        "status": request.status.value,
        "student_name": request.student_name,
        "student_email": request.student_email,
        "student_phone": request.student_phone,
        "program_applying": request.program_applying,
        "institution_applying": request.institution_applying,
        "degree_type": request.degree_type,
        "course_taken": request.course_taken,
        "grade": request.grade,
        "semester_year": request.semester_year,
        "relationship_description": request.relationship_description,
        "achievements": request.achievements,
        "personal_statement": request.personal_statement,
        "additional_notes": request.additional_notes,
        "custom_fields": request.custom_fields or {},
        "questions": request.questions or [],
        "deadline": request.deadline.isoformat() if request.deadline else None,
        "destinations": [
            {
                "id": d.id,
                "institution_name": d.institution_name,
                "program_name": d.program_name,
                "recipient_name": d.recipient_name,
                "recipient_email": d.recipient_email,
                "portal_url": d.portal_url,
                "portal_instructions": d.portal_instructions,
                "method": d.method.value,
                "deadline": d.deadline.isoformat() if d.deadline else None,
            }
            for d in request.destinations
        ],
        "documents": [document_to_dict(d) for d in request.documents],
    }


class StudentService:
    """Access-code gated operations for students."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _find(self, code: str) -> Optional[LetterRequestDB]:
        return self.db.query(LetterRequestDB).filter(
            LetterRequestDB.access_code == normalize_code(code)
        ).first()

    def _get_editable(self, code: str) -> LetterRequestDB:
        request = self._find(code)
        if not request:
            raise NotFoundError("Request not found")
        if request.status not in STUDENT_EDITABLE_STATUSES:
            raise InvalidStateError("Request cannot be modified")
        return request

    def _get_destination(self, request: LetterRequestDB, destination_id: str) -> DestinationDB:
        destination = self.db.query(DestinationDB).filter(
            DestinationDB.id == destination_id,
            DestinationDB.request_id == request.id,
        ).first()
        if not destination:
            raise NotFoundError("Destination not found")
        return destination

    # =========================================================================
    # CODE CHECKS
    # =========================================================================

    def validate_code(self, code: str) -> Dict[str, Any]:
        request = self._find(code)
        if not request:
            return {"valid": False, "reason": "not_found"}

        if request.status not in STUDENT_EDITABLE_STATUSES:
            return {
                "valid": False,
                "status": request.status.value,
                "reason": BLOCKED_REASONS[request.status],
                "professor_email": request.professor.email if request.professor else None,
            }
        return {"valid": True, "status": request.status.value}

    def get_request_by_code(self, code: str) -> Dict[str, Any]:
        request = self._get_editable(code)
        return student_view(request)

    # =========================================================================
    # STUDENT INFO
    # =========================================================================

    def update_student_info(self, code: str, data: Dict[str, Any]) -> LetterRequestDB:
        """Name and email are required; every other field is optional."""
        request = self._get_editable(code)

        name = _clean(data.get("student_name"))
        email = _clean(data.get("student_email"))
        errors = {}
        if not name:
            errors["student_name"] = "Name is required"
        if not email or not EMAIL_PATTERN.match(email):
            errors["student_email"] = "Invalid email"
        if errors:
            raise ValidationError("Invalid student information", errors)

        request.student_name = name
        request.student_email = email
        for field_name in OPTIONAL_STUDENT_FIELDS:
            setattr(request, field_name, _clean(data.get(field_name)))

        custom_fields = data.get("custom_fields")
        if custom_fields is not None and not isinstance(custom_fields, dict):
            raise ValidationError("Invalid custom fields", {"custom_fields": "must be an object"})
        request.custom_fields = dict(custom_fields) if custom_fields else None

        self.db.commit()
        self.db.refresh(request)
        return request

    # =========================================================================
    # DESTINATIONS
    # =========================================================================

    def _validated_destination(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {name: _clean(data.get(name)) for name in DESTINATION_TEXT_FIELDS}
        values["institution_name"] = _clean(data.get("institution_name"))

        errors = {}
        try:
            values["method"] = SubmissionMethod(data.get("method"))
        except ValueError:
            errors["method"] = "Must be one of EMAIL, DOWNLOAD, PORTAL"

        if not values["institution_name"]:
            errors["institution_name"] = "Institution name is required"
        if values["recipient_email"] and not EMAIL_PATTERN.match(values["recipient_email"]):
            errors["recipient_email"] = "Invalid email"
        elif values.get("method") == SubmissionMethod.EMAIL and not values["recipient_email"]:
            errors["recipient_email"] = "Recipient email is required for email delivery"
        if values["portal_url"] and not URL_PATTERN.match(values["portal_url"]):
            errors["portal_url"] = "Portal URL must start with http:// or https://"

        if errors:
            raise ValidationError("Invalid destination", errors)

        deadline = data.get("deadline")
        if isinstance(deadline, str):
            try:
                deadline = datetime.fromisoformat(deadline) if deadline.strip() else None
            except ValueError:
                raise ValidationError("Invalid destination", {"deadline": "Invalid date"})
        values["deadline"] = deadline
        return values

    def add_destination(self, code: str, data: Dict[str, Any]) -> DestinationDB:
        request = self._get_editable(code)
        values = self._validated_destination(data)

        destination = DestinationDB(
            id=str(uuid4()),
            request_id=request.id,
            status=SubmissionStatus.PENDING,
            created_at=self.clock(),
            **values,
        )
        self.db.add(destination)

        # A student who already filled in their details is done once a destination exists
        if request.status == RequestStatus.PENDING and request.student_name and request.student_email:
            request.status = RequestStatus.SUBMITTED
            request.student_submitted_at = self.clock()
            logger.info(f"Request {request.id} auto-submitted on first destination")

        self.db.commit()
        self.db.refresh(destination)
        return destination

    def update_destination(self, code: str, destination_id: str, data: Dict[str, Any]) -> DestinationDB:
        request = self._get_editable(code)
        destination = self._get_destination(request, destination_id)

        for name, value in self._validated_destination(data).items():
            setattr(destination, name, value)

        self.db.commit()
        self.db.refresh(destination)
        return destination

    def delete_destination(self, code: str, destination_id: str) -> None:
        request = self._get_editable(code)
        destination = self._get_destination(request, destination_id)
        self.db.delete(destination)
        self.db.commit()

    # =========================================================================
    # SUBMIT
    # =========================================================================

    def submit_request(self, code: str) -> LetterRequestDB:
        request = self._get_editable(code)

        errors = {}
        if not request.student_name:
            errors["student_name"] = "Name is required"
        if not request.student_email:
            errors["student_email"] = "Email is required"
        if not request.destinations:
            errors["destinations"] = "Add at least one destination"
        if errors:
            raise ValidationError("Request is incomplete", errors)

        request.status = RequestStatus.SUBMITTED
        request.student_submitted_at = self.clock()
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Request {request.id} submitted by student")
        return request
