"""
Letter Version Store

Create/update/versioning logic for master and per-destination letters.

VERSION POLICY (per request + destination pair, destination NULL = master):
- no current letter        -> create version 1
- current letter is draft  -> update the same row in place, version + 1
- current letter finalized -> create a new row, version + 1 (old row kept)

STATE MACHINE (per letter row):
    [none] --generate--> DRAFT(v1)
    DRAFT --edit--> DRAFT (same version, content changed)
    DRAFT --finalize--> FINALIZED
    FINALIZED --unfinalize--> DRAFT
    FINALIZED --generate again--> DRAFT(v+1, new row)
    any --delete-all--> [none]

Finalization never changes request status; completion is owned by the
delivery tracker.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import utcnow
from ...errors import NotFoundError, InvalidStateError, ValidationError
from ...models.db_models import (
    LetterDB, LetterRequestDB, DestinationDB, TemplateDB,
    RequestStatus, GENERATABLE_STATUSES,
)
from ..storage import FileStore
from .interpolation import interpolate
from .variables import VariableResolver, PLACEHOLDER_INSTITUTION, PLACEHOLDER_PROGRAM

logger = logging.getLogger(__name__)


@dataclass
class GeneratedLetter:
    """A generated letter and the template variables that had no value."""
    letter: LetterDB
    unresolved: List[str] = field(default_factory=list)


@dataclass
class GeneratedLetters:
    """Result of generating the master plus one letter per destination."""
    master: LetterDB
    destination_letters: List[LetterDB] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)


def apply_destination_values(
    master_content: str,
    destination: DestinationDB,
    request: LetterRequestDB,
) -> str:
    """Replace master placeholders with the destination's values (request fallback)."""
    institution = destination.institution_name or request.institution_applying or ""
    program = destination.program_name or request.program_applying or ""
    content = master_content.replace(PLACEHOLDER_INSTITUTION, institution)
    return content.replace(PLACEHOLDER_PROGRAM, program)


class LetterVersionStore:
    """Owns letter rows for a professor's requests."""

    def __init__(
        self,
        db: Session,
        resolver: Optional[VariableResolver] = None,
        clock: Callable[[], datetime] = utcnow,
        store: Optional[FileStore] = None,
    ):
        self.db = db
        self.resolver = resolver or VariableResolver(db)
        self.clock = clock
        self.store = store or FileStore()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _get_owned_request(self, professor_id: str, request_id: str) -> LetterRequestDB:
        request = self.db.query(LetterRequestDB).filter(LetterRequestDB.id == request_id).first()
        if not request or request.professor_id != professor_id:
            raise NotFoundError("Request not found")
        return request

    def _get_generatable_request(self, professor_id: str, request_id: str) -> LetterRequestDB:
        request = self._get_owned_request(professor_id, request_id)
        if request.status not in GENERATABLE_STATUSES:
            raise InvalidStateError("Request must be submitted before generating letters")
        return request

    def _get_owned_template(self, professor_id: str, template_id: str) -> TemplateDB:
        template = self.db.query(TemplateDB).filter(TemplateDB.id == template_id).first()
        if not template or template.professor_id != professor_id:
            raise NotFoundError("Template not found")
        return template

    def _get_owned_letter(self, professor_id: str, letter_id: str) -> LetterDB:
        letter = self.db.query(LetterDB).filter(LetterDB.id == letter_id).first()
        if not letter or letter.request is None or letter.request.professor_id != professor_id:
            raise NotFoundError("Letter not found")
        return letter

    def current_letter(self, request_id: str, destination_id: Optional[str]) -> Optional[LetterDB]:
        """Highest-version letter for a (request, destination) pair."""
        query = self.db.query(LetterDB).filter(LetterDB.request_id == request_id)
        if destination_id is None:
            query = query.filter(LetterDB.destination_id.is_(None))
        else:
            query = query.filter(LetterDB.destination_id == destination_id)
        return query.order_by(LetterDB.version.desc()).first()

    # =========================================================================
    # VERSIONING
    # =========================================================================

    def _write_version(
        self,
        request_id: str,
        destination_id: Optional[str],
        content: str,
        template_id: Optional[str],
    ) -> LetterDB:
        """Apply the create / update-in-place / new-row policy for one pair."""
        now = self.clock()
        existing = self.current_letter(request_id, destination_id)

        if existing and not existing.is_finalized:
            existing.content = content
            existing.template_id = template_id
            existing.version = existing.version + 1
            existing.content_updated_at = now
            logger.info(
                f"Updated draft letter {existing.id} in place to v{existing.version} "
                f"(request={request_id}, destination={destination_id})"
            )
            return existing

        letter = LetterDB(
            id=str(uuid4()),
            request_id=request_id,
            destination_id=destination_id,
            template_id=template_id,
            content=content,
            version=existing.version + 1 if existing else 1,
            is_finalized=False,
            is_master=destination_id is None,
            content_updated_at=now,
        )
        self.db.add(letter)
        self.db.flush()
        logger.info(
            f"Created letter {letter.id} v{letter.version} "
            f"(request={request_id}, destination={destination_id})"
        )
        return letter

    def _interpolate_master(self, request: LetterRequestDB, template: TemplateDB):
        variables = self.resolver.resolve_for(request, use_placeholders=True)
        return interpolate(template.content, variables.as_mapping())

    # =========================================================================
    # GENERATION
    # =========================================================================

    def generate_master(self, professor_id: str, request_id: str, template_id: str) -> GeneratedLetter:
        """Generate (or re-version) the master letter with placeholder tokens."""
        request = self._get_generatable_request(professor_id, request_id)
        template = self._get_owned_template(professor_id, template_id)

        result = self._interpolate_master(request, template)
        letter = self._write_version(request.id, None, result.content, template.id)

        request.status = RequestStatus.IN_PROGRESS
        self.db.commit()
        self.db.refresh(letter)
        return GeneratedLetter(letter=letter, unresolved=result.unresolved)

    def generate_all_for_destinations(
        self,
        professor_id: str,
        request_id: str,
        template_id: str,
    ) -> GeneratedLetters:
        """Generate the master and re-interpolate the template for every destination."""
        request = self._get_generatable_request(professor_id, request_id)
        template = self._get_owned_template(professor_id, template_id)

        master_result = self._interpolate_master(request, template)
        master = self._write_version(request.id, None, master_result.content, template.id)
        unresolved = list(master_result.unresolved)

        destination_letters = []
        for destination in request.destinations:
            variables = self.resolver.resolve_for(request, destination)
            result = interpolate(template.content, variables.as_mapping())
            for name in result.unresolved:
                if name not in unresolved:
                    unresolved.append(name)
            destination_letters.append(
                self._write_version(request.id, destination.id, result.content, template.id)
            )

        request.status = RequestStatus.IN_PROGRESS
        self.db.commit()
        for letter in [master, *destination_letters]:
            self.db.refresh(letter)
        return GeneratedLetters(master=master, destination_letters=destination_letters, unresolved=unresolved)

    def sync_master_to_destinations(self, professor_id: str, request_id: str) -> List[LetterDB]:
        """
        Copy the master's current content to every destination.

        The master text is copied verbatim except for [INSTITUTION] and
        [PROGRAM], so hand edits to the master propagate without re-running
        the template.
        """
        request = self._get_owned_request(professor_id, request_id)
        master = self.get_master_letter(professor_id, request_id)
        if master is None:
            raise NotFoundError("No master letter found")

        letters = []
        for destination in request.destinations:
            content = apply_destination_values(master.content, destination, request)
            letters.append(self._write_version(request.id, destination.id, content, master.template_id))

        self.db.commit()
        for letter in letters:
            self.db.refresh(letter)
        logger.info(f"Synced master {master.id} to {len(letters)} destination(s)")
        return letters

    # =========================================================================
    # EDITING
    # =========================================================================

    def update_content(self, professor_id: str, letter_id: str, content: str) -> LetterDB:
        """Overwrite content on the same row; no version bump."""
        if content is None or not content.strip():
            raise ValidationError("Letter content is required", {"content": "must not be empty"})

        letter = self._get_owned_letter(professor_id, letter_id)
        if letter.is_finalized:
            raise InvalidStateError("Cannot edit a finalized letter")

        letter.content = content
        letter.content_updated_at = self.clock()
        self.db.commit()
        self.db.refresh(letter)
        return letter

    def finalize(self, professor_id: str, letter_id: str) -> LetterDB:
        letter = self._get_owned_letter(professor_id, letter_id)
        if letter.is_finalized:
            raise InvalidStateError("Letter is already finalized")

        letter.is_finalized = True
        self.db.commit()
        self.db.refresh(letter)
        logger.info(f"Finalized letter {letter.id} v{letter.version}")
        return letter

    def unfinalize(self, professor_id: str, letter_id: str) -> LetterDB:
        letter = self._get_owned_letter(professor_id, letter_id)
        if not letter.is_finalized:
            raise InvalidStateError("Letter is not finalized")

        letter.is_finalized = False
        self.db.commit()
        self.db.refresh(letter)
        logger.info(f"Unfinalized letter {letter.id} v{letter.version}")
        return letter

    # =========================================================================
    # DELETION
    # =========================================================================

    def delete_letter(self, professor_id: str, letter_id: str) -> None:
        """Delete one letter row and its stored PDF."""
        letter = self._get_owned_letter(professor_id, letter_id)
        pdf_path = letter.pdf_path
        self.db.delete(letter)
        self.db.commit()
        self.store.delete(pdf_path)

    def delete_all_for_request(self, professor_id: str, request_id: str) -> int:
        """Delete every letter of a request and reopen it for generation."""
        request = self._get_owned_request(professor_id, request_id)

        letters = self.db.query(LetterDB).filter(LetterDB.request_id == request.id)
        pdf_paths = [path for (path,) in letters.with_entities(LetterDB.pdf_path) if path]
        deleted = letters.delete(synchronize_session=False)

        if request.status in (RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED):
            request.status = RequestStatus.SUBMITTED

        self.db.commit()
        for path in pdf_paths:
            self.store.delete(path)
        logger.info(f"Deleted {deleted} letter(s) for request {request.id}")
        return deleted

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_letter(self, professor_id: str, letter_id: str) -> LetterDB:
        return self._get_owned_letter(professor_id, letter_id)

    def list_letters_for_request(self, professor_id: str, request_id: str) -> List[LetterDB]:
        request = self._get_owned_request(professor_id, request_id)
        return self.db.query(LetterDB).filter(
            LetterDB.request_id == request.id
        ).order_by(LetterDB.version.desc()).all()

    def get_master_letter(self, professor_id: str, request_id: str) -> Optional[LetterDB]:
        request = self._get_owned_request(professor_id, request_id)
        return self.current_letter(request.id, None)

    def get_letter_for_destination(
        self,
        professor_id: str,
        request_id: str,
        destination_id: str,
    ) -> Optional[LetterDB]:
        request = self._get_owned_request(professor_id, request_id)
        return self.current_letter(request.id, destination_id)

    def get_letters_with_destinations(self, professor_id: str, request_id: str) -> Dict[str, object]:
        """Current master plus the current letter of each destination."""
        request = self._get_owned_request(professor_id, request_id)
        by_destination = []
        for destination in request.destinations:
            letter = self.current_letter(request.id, destination.id)
            if letter is not None:
                by_destination.append(letter)
        return {
            "master": self.current_letter(request.id, None),
            "by_destination": by_destination,
        }
