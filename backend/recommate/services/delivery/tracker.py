"""
Delivery Tracker

Per-destination submission status:

    PENDING --send/mark_sent--> SENT --mark_confirmed--> CONFIRMED
    any --mark_failed / send error--> FAILED
    any --reset--> PENDING

Email sending is gated on the destination's own finalized letter with an
up-to-date PDF.
Manual marks work for every method.

COMPLETION RULE:
A request is COMPLETED exactly when it has at least one destination and
every destination is SENT or CONFIRMED. A COMPLETED request whose
destination is reset or failed goes back to IN_PROGRESS.
"""
from __future__ import annotations
import html
import logging
import re
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...database import utcnow
from ...errors import NotFoundError, InvalidStateError, DeliveryError
from ...models.db_models import (
    DestinationDB, LetterDB, LetterRequestDB, ProfessorDB,
    RequestStatus, SubmissionStatus, SubmissionMethod,
)
from ..pdf.service import pdf_is_current
from ..storage import FileStore
from .mailer import SmtpMailer

logger = logging.getLogger(__name__)

DELIVERED_STATUSES = (SubmissionStatus.SENT, SubmissionStatus.CONFIRMED)


def _signature_lines(professor: Optional[ProfessorDB]):
    if professor is None:
        return ["Professor"]
    lines = [professor.name or "Professor"]
    for value in (professor.title, professor.department, professor.institution):
        if value:
            lines.append(value)
    return lines


def build_cover_email(request: LetterRequestDB, destination: DestinationDB):
    """Subject, plain text and HTML bodies for a letter email."""
    student_name = request.student_name or "a student"
    recipient = destination.recipient_name or "Admissions Committee"
    program = destination.program_name or "your program"
    signature = _signature_lines(request.professor)

    subject = f"Letter of Recommendation for {student_name}"
    text = (
        f"Dear {recipient},\n\n"
        f"Please find attached a letter of recommendation for {student_name} "
        f"applying to {program} at {destination.institution_name}.\n\n"
        f"If you have any questions, please feel free to contact me.\n\n"
        f"Sincerely,\n" + "\n".join(signature)
    )
    body_html = (
        f"<p>Dear {html.escape(recipient)},</p>"
        f"<p>Please find attached a letter of recommendation for "
        f"<strong>{html.escape(student_name)}</strong> applying to "
        f"{html.escape(program)} at {html.escape(destination.institution_name)}.</p>"
        f"<p>If you have any questions, please feel free to contact me.</p>"
        f"<p>Sincerely,<br>" + "<br>".join(html.escape(line) for line in signature) + "</p>"
    )
    return subject, text, body_html


def attachment_filename(student_name: Optional[str]) -> str:
    slug = re.sub(r"\s+", "_", (student_name or "Student").strip())
    return f"Recommendation_Letter_{slug}.pdf"


class DeliveryTracker:
    """Status transitions and email dispatch for destinations."""

    def __init__(
        self,
        db: Session,
        mailer: Optional[SmtpMailer] = None,
        store: Optional[FileStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.mailer = mailer or SmtpMailer()
        self.store = store or FileStore()
        self.clock = clock

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _get_owned_destination(self, professor_id: str, destination_id: str) -> DestinationDB:
        destination = self.db.query(DestinationDB).filter(DestinationDB.id == destination_id).first()
        if not destination or destination.request is None or destination.request.professor_id != professor_id:
            raise NotFoundError("Destination not found")
        return destination

    def _get_owned_letter(self, professor_id: str, letter_id: str) -> LetterDB:
        letter = self.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
        if not letter or letter.request is None or letter.request.professor_id != professor_id:
            raise NotFoundError("Letter not found")
        return letter

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def _update_request_completion(self, request: LetterRequestDB) -> None:
        destinations = request.destinations
        all_delivered = bool(destinations) and all(d.status in DELIVERED_STATUSES for d in destinations)

        if all_delivered and request.status != RequestStatus.COMPLETED:
            request.status = RequestStatus.COMPLETED
            logger.info(f"Request {request.id} completed: all destinations delivered")
        elif not all_delivered and request.status == RequestStatus.COMPLETED:
            request.status = RequestStatus.IN_PROGRESS
            logger.info(f"Request {request.id} reopened to IN_PROGRESS")

    def _set_status(self, destination: DestinationDB, status: SubmissionStatus, **fields) -> DestinationDB:
        destination.status = status
        for name, value in fields.items():
            setattr(destination, name, value)
        self._update_request_completion(destination.request)
        self.db.commit()
        self.db.refresh(destination)
        logger.info(f"Destination {destination.id} -> {status.value}")
        return destination

    # =========================================================================
    # SENDING
    # =========================================================================

    def send_letter(self, professor_id: str, letter_id: str, destination_id: str) -> DestinationDB:
        """Email a finalized letter's PDF to an EMAIL destination."""
        letter = self._get_owned_letter(professor_id, letter_id)
        destination = self._get_owned_destination(professor_id, destination_id)

        if destination.request_id != letter.request_id:
            raise InvalidStateError("Destination does not belong to this request")
        if destination.method != SubmissionMethod.EMAIL:
            raise InvalidStateError("Destination is not configured for email")
        if not destination.recipient_email:
            raise InvalidStateError("Destination has no recipient email")
        # The master keeps [INSTITUTION]/[PROGRAM] placeholders
        if letter.destination_id != destination.id:
            raise InvalidStateError("Letter was not written for this destination")
        if not letter.is_finalized:
            raise InvalidStateError("Letter must be finalized before sending")
        if not pdf_is_current(letter, self.store):
            raise InvalidStateError("Letter PDF is missing or out of date. Generate it first.")

        request = letter.request
        subject, text, body_html = build_cover_email(request, destination)
        from_name = request.professor.name if request.professor else None

        try:
            self.mailer.send(
                to=destination.recipient_email,
                subject=subject,
                text=text,
                html=body_html,
                attachment_path=letter.pdf_path,
                attachment_name=attachment_filename(request.student_name),
                from_name=from_name,
            )
        except Exception as e:
            logger.error(f"Email to {destination.recipient_email} failed: {e}")
            self._set_status(destination, SubmissionStatus.FAILED, failure_reason=str(e) or "Unknown error")
            raise DeliveryError(f"Failed to send email: {e}") from e

        return self._set_status(
            destination,
            SubmissionStatus.SENT,
            sent_at=self.clock(),
            failure_reason=None,
        )

    # =========================================================================
    # MANUAL TRANSITIONS
    # =========================================================================

    def mark_sent(self, professor_id: str, destination_id: str) -> DestinationDB:
        destination = self._get_owned_destination(professor_id, destination_id)
        return self._set_status(destination, SubmissionStatus.SENT, sent_at=self.clock(), failure_reason=None)

    def mark_confirmed(self, professor_id: str, destination_id: str) -> DestinationDB:
        destination = self._get_owned_destination(professor_id, destination_id)
        return self._set_status(destination, SubmissionStatus.CONFIRMED, confirmed_at=self.clock())

    def mark_failed(self, professor_id: str, destination_id: str, reason: str) -> DestinationDB:
        destination = self._get_owned_destination(professor_id, destination_id)
        return self._set_status(destination, SubmissionStatus.FAILED, failure_reason=reason or "Unknown error")

    def reset(self, professor_id: str, destination_id: str) -> DestinationDB:
        destination = self._get_owned_destination(professor_id, destination_id)
        return self._set_status(
            destination,
            SubmissionStatus.PENDING,
            sent_at=None,
            confirmed_at=None,
            failure_reason=None,
        )

    def email_configured(self) -> bool:
        return self.mailer.is_configured()
