"""
Student Intake Tests

Verifies:
1. Access code checks and the reasons given for blocked requests
2. Student info validation (name/email required, optional fields cleaned)
3. Destination validation per submission method
4. Auto-submit on first destination and explicit submit
5. Only PENDING/SUBMITTED requests accept changes
"""

from datetime import datetime

import pytest

from recommate.errors import NotFoundError, InvalidStateError, ValidationError
from recommate.models.db_models import RequestStatus, SubmissionMethod, SubmissionStatus
from recommate.services.access_code import (
    ACCESS_CODE_ALPHABET,
    ACCESS_CODE_LENGTH,
    create_access_code,
    generate_unique_code,
    normalize_code,
)
from recommate.services.student_service import StudentService

from conftest import make_destination, make_request

NOW = datetime(2026, 10, 18, 12, 0, 0)


@pytest.fixture
def service(db):
    return StudentService(db, clock=lambda: NOW)


@pytest.fixture
def pending_request(db, professor):
    return make_request(db, professor, status=RequestStatus.PENDING, access_code="ABCD2345")


def student_info(**overrides):
    data = {"student_name": "Jane Smith", "student_email": "jane@student.edu"}
    data.update(overrides)
    return data


def email_destination(**overrides):
    data = {
        "institution_name": "MIT",
        "program_name": "CS",
        "recipient_email": "admissions@mit.edu",
        "method": "EMAIL",
    }
    data.update(overrides)
    return data


# =============================================================================
# ACCESS CODES
# =============================================================================

class TestAccessCodes:
    def test_code_shape(self):
        code = create_access_code()
        assert len(code) == ACCESS_CODE_LENGTH
        assert all(c in ACCESS_CODE_ALPHABET for c in code)

    def test_alphabet_has_no_ambiguous_characters(self):
        for c in "01OI":
            assert c not in ACCESS_CODE_ALPHABET
        assert "L" in ACCESS_CODE_ALPHABET
        assert len(ACCESS_CODE_ALPHABET) == 32

    def test_normalize(self):
        assert normalize_code("  abcd2345 ") == "ABCD2345"
        assert normalize_code(None) == ""

    def test_unique_code_exhaustion(self, db, professor, monkeypatch):
        make_request(db, professor, access_code="SAMECODE")
        monkeypatch.setattr("recommate.services.access_code.create_access_code", lambda: "SAMECODE")
        with pytest.raises(InvalidStateError, match="unique access code"):
            generate_unique_code(db)


class TestValidateCode:
    def test_valid_pending(self, service, pending_request):
        assert service.validate_code("abcd2345") == {"valid": True, "status": "PENDING"}

    def test_unknown_code(self, service):
        assert service.validate_code("ZZZZ9999") == {"valid": False, "reason": "not_found"}

    @pytest.mark.parametrize("status,reason", [
        (RequestStatus.IN_PROGRESS, "in_progress"),
        (RequestStatus.COMPLETED, "completed"),
        (RequestStatus.ARCHIVED, "archived"),
    ])
    def test_blocked_statuses(self, db, service, professor, status, reason):
        make_request(db, professor, status=status, access_code="LOCKED22")
        result = service.validate_code("LOCKED22")
        assert result["valid"] is False
        assert result["reason"] == reason
        assert result["professor_email"] == "ada@university.edu"

    def test_get_request_returns_student_view(self, service, pending_request):
        view = service.get_request_by_code("ABCD2345")
        assert view["id"] == pending_request.id
        assert view["status"] == "PENDING"
        assert view["destinations"] == []
        assert "professor_notes" not in view

    def test_get_request_blocked(self, db, service, professor):
        make_request(db, professor, status=RequestStatus.COMPLETED, access_code="DONE2345")
        with pytest.raises(InvalidStateError):
            service.get_request_by_code("DONE2345")

    def test_get_request_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_request_by_code("NOPE2345")


# =============================================================================
# STUDENT INFO
# =============================================================================

class TestUpdateStudentInfo:
    def test_saves_and_cleans_fields(self, service, pending_request):
        updated = service.update_student_info("ABCD2345", student_info(
            student_name="  Jane Smith ",
            program_applying=" PhD Mathematics ",
            grade="   ",
            custom_fields={"gpa": "3.9"},
        ))
        assert updated.student_name == "Jane Smith"
        assert updated.program_applying == "PhD Mathematics"
        assert updated.grade is None
        assert updated.custom_fields == {"gpa": "3.9"}
        assert updated.status == RequestStatus.PENDING

    def test_name_and_email_required(self, service, pending_request):
        with pytest.raises(ValidationError) as exc_info:
            service.update_student_info("ABCD2345", {"student_name": " ", "student_email": "not-an-email"})
        assert set(exc_info.value.fields) == {"student_name", "student_email"}

    def test_custom_fields_must_be_object(self, service, pending_request):
        with pytest.raises(ValidationError):
            service.update_student_info("ABCD2345", student_info(custom_fields=["a", "b"]))

    def test_in_progress_request_locked(self, db, service, professor):
        make_request(db, professor, status=RequestStatus.IN_PROGRESS, access_code="BUSY2345")
        with pytest.raises(InvalidStateError, match="cannot be modified"):
            service.update_student_info("BUSY2345", student_info())


# =============================================================================
# DESTINATIONS
# =============================================================================

class TestDestinations:
    def test_add_email_destination(self, service, pending_request):
        destination = service.add_destination("ABCD2345", email_destination())
        assert destination.method == SubmissionMethod.EMAIL
        assert destination.status == SubmissionStatus.PENDING
        assert destination.created_at == NOW

    def test_email_method_requires_recipient(self, service, pending_request):
        with pytest.raises(ValidationError) as exc_info:
            service.add_destination("ABCD2345", email_destination(recipient_email=None))
        assert "recipient_email" in exc_info.value.fields

    def test_invalid_recipient_email(self, service, pending_request):
        with pytest.raises(ValidationError):
            service.add_destination("ABCD2345", email_destination(recipient_email="admissions@"))

    def test_portal_url_scheme(self, service, pending_request):
        data = {"institution_name": "Stanford", "method": "PORTAL", "portal_url": "ftp://apply.stanford.edu"}
        with pytest.raises(ValidationError) as exc_info:
            service.add_destination("ABCD2345", data)
        assert "portal_url" in exc_info.value.fields

        data["portal_url"] = "https://apply.stanford.edu"
        assert service.add_destination("ABCD2345", data).portal_url == "https://apply.stanford.edu"

    def test_unknown_method(self, service, pending_request):
        with pytest.raises(ValidationError) as exc_info:
            service.add_destination("ABCD2345", {"institution_name": "MIT", "method": "FAX"})
        assert "method" in exc_info.value.fields

    def test_institution_required(self, service, pending_request):
        with pytest.raises(ValidationError):
            service.add_destination("ABCD2345", {"institution_name": "  ", "method": "DOWNLOAD"})

    def test_deadline_string_parsed(self, service, pending_request):
        destination = service.add_destination(
            "ABCD2345", {"institution_name": "MIT", "method": "DOWNLOAD", "deadline": "2026-12-01T00:00:00"}
        )
        assert destination.deadline == datetime(2026, 12, 1)

    def test_first_destination_auto_submits_when_info_present(self, db, service, pending_request):
        service.update_student_info("ABCD2345", student_info())
        service.add_destination("ABCD2345", email_destination())
        db.refresh(pending_request)
        assert pending_request.status == RequestStatus.SUBMITTED
        assert pending_request.student_submitted_at == NOW

    def test_destination_without_info_stays_pending(self, db, service, pending_request):
        service.add_destination("ABCD2345", email_destination())
        db.refresh(pending_request)
        assert pending_request.status == RequestStatus.PENDING

    def test_update_and_delete(self, db, service, pending_request):
        destination = service.add_destination("ABCD2345", email_destination())
        updated = service.update_destination(
            "ABCD2345", destination.id, {"institution_name": "MIT", "method": "DOWNLOAD"}
        )
        assert updated.method == SubmissionMethod.DOWNLOAD
        assert updated.recipient_email is None

        service.delete_destination("ABCD2345", destination.id)
        db.refresh(pending_request)
        assert pending_request.destinations == []

    def test_destination_of_other_request_not_found(self, db, service, professor, pending_request):
        other = make_request(db, professor, access_code="OTHR2345")
        foreign = make_destination(db, other, "Yale", "Law")
        with pytest.raises(NotFoundError):
            service.delete_destination("ABCD2345", foreign.id)


# =============================================================================
# SUBMIT
# =============================================================================

class TestSubmit:
    def test_submit_requires_info_and_destination(self, service, pending_request):
        with pytest.raises(ValidationError) as exc_info:
            service.submit_request("ABCD2345")
        assert set(exc_info.value.fields) == {"student_name", "student_email", "destinations"}

    def test_submit(self, db, professor, service):
        request = make_request(
            db, professor, status=RequestStatus.PENDING, access_code="SUBM2345",
            student_name="Jane", student_email="jane@student.edu",
        )
        make_destination(db, request, "MIT", "CS")
        submitted = service.submit_request("subm2345")
        assert submitted.status == RequestStatus.SUBMITTED
        assert submitted.student_submitted_at == NOW

    def test_submitted_request_still_editable(self, service, submitted_request):
        updated = service.update_student_info(submitted_request.access_code, student_info(student_name="Jane Doe"))
        assert updated.student_name == "Jane Doe"
        assert updated.status == RequestStatus.SUBMITTED
