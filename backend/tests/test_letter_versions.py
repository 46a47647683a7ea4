"""
Letter Version Store Tests

Verifies:
1. Versions per (request, destination) only grow, one current row at a time
2. Finalized letters refuse edits until unfinalized
3. Regenerating after finalize creates a new row and keeps the old one
4. Sync copies master prose and swaps only the placeholder tokens
5. Master + per-destination generation end to end
6. Delete-all removes letters and their PDFs and reopens the request
"""

from datetime import datetime

import pytest

from recommate.errors import NotFoundError, InvalidStateError, ValidationError
from recommate.models.db_models import LetterDB, RequestStatus
from recommate.services.letters.version_store import LetterVersionStore, apply_destination_values
from recommate.services.pdf.service import PdfService

from conftest import FakeRenderer, make_destination, make_request, make_template


@pytest.fixture
def versions(db, store):
    return LetterVersionStore(db, store=store)


@pytest.fixture
def pdfs(db, store):
    return PdfService(db, renderer=FakeRenderer(), store=store)


def _rows(db, request_id, destination_id=None):
    query = db.query(LetterDB).filter(LetterDB.request_id == request_id)
    if destination_id is None:
        query = query.filter(LetterDB.destination_id.is_(None))
    else:
        query = query.filter(LetterDB.destination_id == destination_id)
    return query.order_by(LetterDB.version).all()


# =============================================================================
# GENERATION
# =============================================================================

class TestGenerateMaster:
    """Master letter creation and versioning."""

    def test_first_generation_creates_version_one(self, db, versions, professor, submitted_request, template):
        result = versions.generate_master(professor.id, submitted_request.id, template.id)
        letter = result.letter
        assert letter.version == 1
        assert letter.is_master is True
        assert letter.destination_id is None
        assert letter.is_finalized is False
        assert letter.content == "Dear Jane, admission to [PROGRAM] at [INSTITUTION]."
        assert result.unresolved == []

    def test_generation_moves_request_in_progress(self, db, versions, professor, submitted_request, template):
        versions.generate_master(professor.id, submitted_request.id, template.id)
        db.refresh(submitted_request)
        assert submitted_request.status == RequestStatus.IN_PROGRESS

    def test_draft_regeneration_updates_in_place(self, db, versions, professor, submitted_request, template):
        """Regenerating a draft keeps the row and bumps its version."""
        first = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        first_id = first.id
        second = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        assert second.id == first_id
        assert second.version == 2
        assert len(_rows(db, submitted_request.id)) == 1

    def test_versions_never_decrease(self, db, versions, professor, submitted_request, template):
        """Repeated generation yields strictly increasing versions, single max row."""
        seen = []
        for _ in range(4):
            seen.append(versions.generate_master(professor.id, submitted_request.id, template.id).letter.version)
        assert seen == sorted(seen)
        assert len(set(seen)) == len(seen)
        rows = _rows(db, submitted_request.id)
        top = max(r.version for r in rows)
        assert sum(1 for r in rows if r.version == top) == 1

    def test_regenerate_after_finalize_creates_new_row(self, db, versions, professor, submitted_request, template):
        """Finalized rows are history; the new draft is version + 1."""
        first = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        versions.finalize(professor.id, first.id)

        second = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        assert second.id != first.id
        assert second.version == first.version + 1
        assert second.is_finalized is False

        old = versions.get_letter(professor.id, first.id)
        assert old.is_finalized is True
        assert old.version == 1
        assert [r.version for r in _rows(db, submitted_request.id)] == [1, 2]

    def test_unresolved_variables_reported(self, db, versions, professor, submitted_request):
        template = make_template(db, professor, "Hi {{student_name}}, {{favorite_color}}!", name="Typo")
        result = versions.generate_master(professor.id, submitted_request.id, template.id)
        assert result.letter.content == "Hi Jane, !"
        assert result.unresolved == ["favorite_color"]

    def test_pending_request_rejected(self, db, versions, professor, template):
        pending = make_request(db, professor, status=RequestStatus.PENDING)
        with pytest.raises(InvalidStateError):
            versions.generate_master(professor.id, pending.id, template.id)

    def test_completed_request_rejected(self, db, versions, professor, template):
        done = make_request(db, professor, status=RequestStatus.COMPLETED, student_name="Jane")
        with pytest.raises(InvalidStateError):
            versions.generate_master(professor.id, done.id, template.id)

    def test_other_professors_request_not_found(self, versions, other_professor, submitted_request, template):
        with pytest.raises(NotFoundError):
            versions.generate_master(other_professor.id, submitted_request.id, template.id)

    def test_other_professors_template_not_found(self, db, versions, professor, other_professor, submitted_request):
        foreign = make_template(db, other_professor, "{{student_name}}")
        with pytest.raises(NotFoundError):
            versions.generate_master(professor.id, submitted_request.id, foreign.id)


class TestGenerateAllForDestinations:
    """Master plus one letter per destination."""

    def test_end_to_end_two_destinations(
        self, db, versions, professor, submitted_request, template, mit_destination, stanford_destination
    ):
        result = versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)

        assert result.master.content == "Dear Jane, admission to [PROGRAM] at [INSTITUTION]."
        by_destination = {l.destination_id: l for l in result.destination_letters}
        assert by_destination[mit_destination.id].content == "Dear Jane, admission to CS at MIT."
        assert by_destination[stanford_destination.id].content == "Dear Jane, admission to EE at Stanford."
        assert all(l.is_master is False for l in result.destination_letters)

        db.refresh(submitted_request)
        assert submitted_request.status == RequestStatus.IN_PROGRESS

    def test_no_destinations_only_master(self, versions, professor, submitted_request, template):
        result = versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        assert result.destination_letters == []
        assert result.master.version == 1

    def test_each_pair_versions_independently(
        self, versions, professor, submitted_request, template, mit_destination, stanford_destination
    ):
        """Finalizing one destination letter only forks that pair."""
        first = versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        mit_letter = next(l for l in first.destination_letters if l.destination_id == mit_destination.id)
        versions.finalize(professor.id, mit_letter.id)

        second = versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        by_destination = {l.destination_id: l for l in second.destination_letters}
        assert by_destination[mit_destination.id].id != mit_letter.id
        assert by_destination[mit_destination.id].version == 2
        assert by_destination[stanford_destination.id].version == 2
        assert second.master.version == 2


class TestSyncMasterToDestinations:
    """Hand edits to the master propagate with placeholders filled in."""

    def test_placeholders_replaced_verbatim(self, db, versions, professor, submitted_request, template):
        acme = make_destination(db, submitted_request, "Acme U", "Data Science")
        master = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        edited = "<p>To [INSTITUTION]: [PROGRAM] needs her. Also [INSTITUTION]!</p>"
        versions.update_content(professor.id, master.id, edited)

        letters = versions.sync_master_to_destinations(professor.id, submitted_request.id)

        assert len(letters) == 1
        assert letters[0].destination_id == acme.id
        assert letters[0].content == "<p>To Acme U: Data Science needs her. Also Acme U!</p>"

    def test_sync_falls_back_to_request_fields(self, db, versions, professor, submitted_request, template):
        make_destination(db, submitted_request, "Acme U", None)
        versions.generate_master(professor.id, submitted_request.id, template.id)
        letters = versions.sync_master_to_destinations(professor.id, submitted_request.id)
        assert letters[0].content == "Dear Jane, admission to Fallback Program at Acme U."

    def test_sync_does_not_reinterpolate_template(self, db, versions, professor, submitted_request, template):
        """Tokens left in the master text are copied as-is."""
        make_destination(db, submitted_request, "Acme U", "DS")
        master = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        versions.update_content(professor.id, master.id, "{{student_name}} at [INSTITUTION]")
        letters = versions.sync_master_to_destinations(professor.id, submitted_request.id)
        assert letters[0].content == "{{student_name}} at Acme U"

    def test_sync_versions_existing_destination_letters(
        self, versions, professor, submitted_request, template, mit_destination
    ):
        versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        letters = versions.sync_master_to_destinations(professor.id, submitted_request.id)
        assert letters[0].version == 2

    def test_sync_without_master_fails(self, versions, professor, submitted_request, mit_destination):
        with pytest.raises(NotFoundError):
            versions.sync_master_to_destinations(professor.id, submitted_request.id)

    def test_apply_destination_values_only_touches_tokens(self, db, submitted_request):
        destination = make_destination(db, submitted_request, "Acme U", "Data Science")
        text = "[PROGRAM] [program] {INSTITUTION} [INSTITUTION]"
        assert apply_destination_values(text, destination, submitted_request) == (
            "Data Science [program] {INSTITUTION} Acme U"
        )


# =============================================================================
# EDITING
# =============================================================================

class TestEditingAndFinalize:
    """Finalize lock and content edits."""

    @pytest.fixture
    def master(self, versions, professor, submitted_request, template):
        return versions.generate_master(professor.id, submitted_request.id, template.id).letter

    def test_update_content_same_row_same_version(self, versions, professor, master):
        updated = versions.update_content(professor.id, master.id, "<p>New text</p>")
        assert updated.id == master.id
        assert updated.version == 1
        assert updated.content == "<p>New text</p>"

    def test_update_moves_content_timestamp(self, db, professor, master):
        later = datetime(2030, 1, 1, 12, 0, 0)
        store = LetterVersionStore(db, clock=lambda: later)
        updated = store.update_content(professor.id, master.id, "changed")
        assert updated.content_updated_at == later

    def test_finalized_letter_rejects_edits(self, versions, professor, master):
        versions.finalize(professor.id, master.id)
        with pytest.raises(InvalidStateError, match="finalized"):
            versions.update_content(professor.id, master.id, "nope")

    def test_unfinalize_allows_edits_again(self, versions, professor, master):
        versions.finalize(professor.id, master.id)
        versions.unfinalize(professor.id, master.id)
        updated = versions.update_content(professor.id, master.id, "allowed")
        assert updated.id == master.id
        assert updated.content == "allowed"

    def test_finalize_twice_fails(self, versions, professor, master):
        versions.finalize(professor.id, master.id)
        with pytest.raises(InvalidStateError):
            versions.finalize(professor.id, master.id)

    def test_unfinalize_draft_fails(self, versions, professor, master):
        with pytest.raises(InvalidStateError):
            versions.unfinalize(professor.id, master.id)

    def test_finalize_keeps_request_status(self, db, versions, professor, submitted_request, master):
        versions.finalize(professor.id, master.id)
        db.refresh(submitted_request)
        assert submitted_request.status == RequestStatus.IN_PROGRESS

    def test_empty_content_rejected(self, versions, professor, master):
        with pytest.raises(ValidationError):
            versions.update_content(professor.id, master.id, "   ")

    def test_other_professor_cannot_edit(self, versions, other_professor, master):
        with pytest.raises(NotFoundError):
            versions.update_content(other_professor.id, master.id, "hijack")


# =============================================================================
# DELETION AND QUERIES
# =============================================================================

class TestDeleteAndQueries:
    def test_delete_all_resets_completed_request(
        self, db, versions, professor, submitted_request, template, mit_destination, stanford_destination
    ):
        versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        submitted_request.status = RequestStatus.COMPLETED
        db.commit()

        deleted = versions.delete_all_for_request(professor.id, submitted_request.id)

        assert deleted == 3
        assert db.query(LetterDB).filter(LetterDB.request_id == submitted_request.id).count() == 0
        db.refresh(submitted_request)
        assert submitted_request.status == RequestStatus.SUBMITTED

    def test_delete_all_then_generate_starts_at_one(self, versions, professor, submitted_request, template):
        versions.generate_master(professor.id, submitted_request.id, template.id)
        versions.generate_master(professor.id, submitted_request.id, template.id)
        versions.delete_all_for_request(professor.id, submitted_request.id)
        again = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        assert again.version == 1

    def test_list_is_version_descending(self, versions, professor, submitted_request, template):
        first = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        versions.finalize(professor.id, first.id)
        versions.generate_master(professor.id, submitted_request.id, template.id)
        letters = versions.list_letters_for_request(professor.id, submitted_request.id)
        assert [l.version for l in letters] == [2, 1]

    def test_get_master_returns_highest_version(self, versions, professor, submitted_request, template):
        first = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        versions.finalize(professor.id, first.id)
        second = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        assert versions.get_master_letter(professor.id, submitted_request.id).id == second.id

    def test_get_master_none_before_generation(self, versions, professor, submitted_request):
        assert versions.get_master_letter(professor.id, submitted_request.id) is None

    def test_letters_with_destinations(
        self, versions, professor, submitted_request, template, mit_destination, stanford_destination
    ):
        versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        result = versions.get_letters_with_destinations(professor.id, submitted_request.id)
        assert result["master"].is_master is True
        assert {l.destination_id for l in result["by_destination"]} == {mit_destination.id, stanford_destination.id}

    def test_letter_for_destination(self, versions, professor, submitted_request, template, mit_destination):
        versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        letter = versions.get_letter_for_destination(professor.id, submitted_request.id, mit_destination.id)
        assert letter.content == "Dear Jane, admission to CS at MIT."

    def test_delete_single_letter(self, db, versions, professor, submitted_request, template):
        letter = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        versions.delete_letter(professor.id, letter.id)
        with pytest.raises(NotFoundError):
            versions.get_letter(professor.id, letter.id)

    def test_delete_single_letter_removes_pdf(self, versions, pdfs, store, professor, submitted_request, template):
        letter = versions.generate_master(professor.id, submitted_request.id, template.id).letter
        path = pdfs.generate_pdf(professor.id, letter.id)
        assert store.exists(path)

        versions.delete_letter(professor.id, letter.id)

        assert not store.exists(path)

    def test_delete_all_removes_pdfs(
        self, versions, pdfs, store, professor, submitted_request, template, mit_destination
    ):
        result = versions.generate_all_for_destinations(professor.id, submitted_request.id, template.id)
        paths = [
            pdfs.generate_pdf(professor.id, letter.id)
            for letter in [result.master] + result.destination_letters
        ]
        assert all(store.exists(p) for p in paths)

        versions.delete_all_for_request(professor.id, submitted_request.id)

        assert not any(store.exists(p) for p in paths)
