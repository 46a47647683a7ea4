"""
Document Service

Supporting documents a student attaches to their request (CV, transcript,
writing sample). Students upload and delete through the access code while
the request is PENDING or SUBMITTED; the owning professor can list and
download them at any time.

Uploads are checked by declared type and leading bytes. A batch keeps the
files that pass and reports the rest by name; it fails only when nothing
passes.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from ..config import MAX_DOCUMENT_SIZE, MAX_DOCUMENTS_PER_UPLOAD
from ..database import utcnow
from ..errors import NotFoundError, InvalidStateError, ValidationError
from ..models.db_models import DocumentDB, LetterRequestDB, STUDENT_EDITABLE_STATUSES
from .access_code import normalize_code
from .storage import FileStore

logger = logging.getLogger(__name__)

DOCUMENT_SUBDIR = "documents"

# content type -> (extension, accepted leading bytes)
DOCUMENT_TYPES: Dict[str, Tuple[str, Tuple[bytes, ...]]] = {
    "application/pdf": (".pdf", (b"%PDF",)),
    "application/msword": (".doc", (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1",)),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": (".docx", (b"PK\x03\x04",)),
    "image/png": (".png", (b"\x89PNG\r\n\x1a\n",)),
    "image/jpeg": (".jpg", (b"\xff\xd8\xff",)),
    "image/gif": (".gif", (b"GIF87a", b"GIF89a")),
}


@dataclass
class UploadedFile:
    """One file from a multipart upload."""
    filename: str
    content_type: str
    data: bytes


@dataclass
class UploadResult:
    uploaded: List[DocumentDB] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


def check_document(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Return the stored extension, or None when the file is not acceptable."""
    entry = DOCUMENT_TYPES.get((content_type or "").lower())
    if entry is None or not data or len(data) > MAX_DOCUMENT_SIZE:
        return None
    extension, signatures = entry
    if not data.startswith(signatures):
        return None
    return extension


def document_to_dict(document: DocumentDB) -> Dict[str, object]:
    return {
        "id": document.id,
        "original_name": document.original_name,
        "mime_type": document.mime_type,
        "size": document.size,
        "label": document.label,
        "description": document.description,
        "created_at": document.created_at.isoformat() if document.created_at else None,
    }


class DocumentService:
    """Student uploads and professor downloads of supporting documents."""

    def __init__(
        self,
        db: Session,
        store: Optional[FileStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.store = store or FileStore()
        self.clock = clock

    def _get_editable_request(self, code: str) -> LetterRequestDB:
        request = self.db.query(LetterRequestDB).filter(
            LetterRequestDB.access_code == normalize_code(code)
        ).first()
        if not request:
            raise NotFoundError("Request not found")
        if request.status not in STUDENT_EDITABLE_STATUSES:
            raise InvalidStateError("Request cannot be modified")
        return request

    def _get_owned_document(self, professor_id: str, document_id: str) -> DocumentDB:
        document = self.db.query(DocumentDB).filter(DocumentDB.id == document_id).first()
        if not document or document.request is None or document.request.professor_id != professor_id:
            raise NotFoundError("Document not found")
        return document

    # =========================================================================
    # STUDENT SIDE
    # =========================================================================

    def add_documents(
        self,
        code: str,
        files: List[UploadedFile],
        label: Optional[str] = None,
        description: Optional[str] = None,
    ) -> UploadResult:
        request = self._get_editable_request(code)

        if not files:
            raise ValidationError("No files uploaded", {"files": "Select at least one file"})
        if len(files) > MAX_DOCUMENTS_PER_UPLOAD:
            raise ValidationError(
                "Too many files", {"files": f"At most {MAX_DOCUMENTS_PER_UPLOAD} files per upload"}
            )

        result = UploadResult()
        for upload in files:
            extension = check_document(upload.content_type, upload.data)
            if extension is None:
                result.rejected.append(upload.filename)
                continue

            stored_name = self.store.unique_name("", extension)
            path = self.store.write(f"{DOCUMENT_SUBDIR}/{request.id}", stored_name, upload.data)

            document = DocumentDB(
                id=str(uuid4()),
                request_id=request.id,
                original_name=os.path.basename(upload.filename or stored_name),
                stored_name=stored_name,
                mime_type=upload.content_type.lower(),
                size=len(upload.data),
                path=path,
                label=(label or "").strip() or None,
                description=(description or "").strip() or None,
                created_at=self.clock(),
            )
            self.db.add(document)
            result.uploaded.append(document)

        if not result.uploaded:
            raise ValidationError("Invalid file type", {"files": ", ".join(result.rejected)})

        self.db.commit()
        for document in result.uploaded:
            self.db.refresh(document)
        logger.info(
            f"Stored {len(result.uploaded)} document(s) for request {request.id}, "
            f"rejected {len(result.rejected)}"
        )
        return result

    def delete_document(self, code: str, document_id: str) -> None:
        request = self._get_editable_request(code)
        document = self.db.query(DocumentDB).filter(
            DocumentDB.id == document_id,
            DocumentDB.request_id == request.id,
        ).first()
        if not document:
            raise NotFoundError("Document not found")

        path = document.path
        self.db.delete(document)
        self.db.commit()
        self.store.delete(path)

    # =========================================================================
    # PROFESSOR SIDE
    # =========================================================================

    def get_document(self, professor_id: str, document_id: str) -> DocumentDB:
        """Owned document whose file is still on disk."""
        document = self._get_owned_document(professor_id, document_id)
        if not self.store.exists(document.path):
            raise NotFoundError("Document file not found")
        return document
