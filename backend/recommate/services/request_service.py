"""
Request Service

Professor-side management of letter requests: creation with an access
code, listing/search, updates, deletion and dashboard stats.
"""
from __future__ import annotations
import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..database import utcnow
from ..errors import NotFoundError
from ..models.db_models import LetterRequestDB, ProfessorDB, RequestStatus
from .access_code import generate_unique_code
from .storage import FileStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
UPCOMING_DEADLINE_DAYS = 14
UPCOMING_DEADLINE_LIMIT = 5

_UNSET = object()


class RequestService:
    """CRUD for a professor's letter requests."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        store: Optional[FileStore] = None,
    ):
        self.db = db
        self.clock = clock
        self.store = store or FileStore()

    def _get_owned(self, professor_id: str, request_id: str) -> LetterRequestDB:
        request = self.db.query(LetterRequestDB).filter(LetterRequestDB.id == request_id).first()
        if not request or request.professor_id != professor_id:
            raise NotFoundError("Request not found")
        return request

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def create_request(
        self,
        professor: ProfessorDB,
        deadline: Optional[datetime] = None,
        professor_notes: Optional[str] = None,
    ) -> LetterRequestDB:
        """New PENDING request with a fresh access code and a question snapshot."""
        request = LetterRequestDB(
            id=str(uuid4()),
            professor_id=professor.id,
            access_code=generate_unique_code(self.db),
            status=RequestStatus.PENDING,
            deadline=deadline,
            professor_notes=professor_notes,
            questions=copy.deepcopy(professor.custom_questions or []),
            code_generated_at=self.clock(),
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Created request {request.id} with code {request.access_code}")
        return request

    def list_requests(
        self,
        professor_id: str,
        status: Optional[RequestStatus] = None,
        search: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> Tuple[List[LetterRequestDB], int]:
        query = self.db.query(LetterRequestDB).filter(LetterRequestDB.professor_id == professor_id)

        if status:
            query = query.filter(LetterRequestDB.status == status)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                LetterRequestDB.student_name.ilike(pattern),
                LetterRequestDB.student_email.ilike(pattern),
                LetterRequestDB.access_code.ilike(pattern),
            ))

        total = query.count()
        requests = query.order_by(
            LetterRequestDB.deadline.is_(None),
            LetterRequestDB.deadline.asc(),
            LetterRequestDB.created_at.desc(),
        ).offset(offset).limit(limit or DEFAULT_PAGE_SIZE).all()
        return requests, total

    def get_request(self, professor_id: str, request_id: str) -> LetterRequestDB:
        return self._get_owned(professor_id, request_id)

    # =========================================================================
    # UPDATE / DELETE
    # =========================================================================

    def update_request(
        self,
        professor_id: str,
        request_id: str,
        deadline: Any = _UNSET,
        professor_notes: Any = _UNSET,
        status: Optional[RequestStatus] = None,
    ) -> LetterRequestDB:
        """Only the arguments actually passed are applied; None clears a field."""
        request = self._get_owned(professor_id, request_id)

        if deadline is not _UNSET:
            request.deadline = deadline
        if professor_notes is not _UNSET:
            request.professor_notes = professor_notes
        if status:
            request.status = status

        self.db.commit()
        self.db.refresh(request)
        return request

    def delete_request(self, professor_id: str, request_id: str) -> None:
        """Delete the request, its rows and its files (letter PDFs, documents)."""
        request = self._get_owned(professor_id, request_id)
        paths = [l.pdf_path for l in request.letters if l.pdf_path]
        paths += [d.path for d in request.documents]
        self.db.delete(request)
        self.db.commit()
        for path in paths:
            self.store.delete(path)
        logger.info(f"Deleted request {request_id}")

    def regenerate_access_code(self, professor_id: str, request_id: str) -> LetterRequestDB:
        request = self._get_owned(professor_id, request_id)
        request.access_code = generate_unique_code(self.db)
        request.code_generated_at = self.clock()
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Regenerated access code for request {request.id}")
        return request

    # =========================================================================
    # STATS
    # =========================================================================

    def get_request_stats(self, professor_id: str) -> Dict[str, Any]:
        """Counts per status plus the next few open deadlines."""
        base = self.db.query(LetterRequestDB).filter(LetterRequestDB.professor_id == professor_id)

        counts = {}
        for request_status in RequestStatus:
            counts[request_status.value] = base.filter(LetterRequestDB.status == request_status).count()

        now = self.clock()
        upcoming = base.filter(
            LetterRequestDB.deadline.isnot(None),
            LetterRequestDB.deadline >= now,
            LetterRequestDB.deadline <= now + timedelta(days=UPCOMING_DEADLINE_DAYS),
            LetterRequestDB.status != RequestStatus.COMPLETED,
        ).order_by(LetterRequestDB.deadline.asc()).limit(UPCOMING_DEADLINE_LIMIT).all()

        return {
            "total": sum(counts.values()),
            "pending": counts[RequestStatus.PENDING.value],
            "submitted": counts[RequestStatus.SUBMITTED.value],
            "in_progress": counts[RequestStatus.IN_PROGRESS.value],
            "completed": counts[RequestStatus.COMPLETED.value],
            "archived": counts[RequestStatus.ARCHIVED.value],
            "upcoming_deadlines": upcoming,
        }
