"""
Request Service Tests

Verifies:
1. New requests are PENDING with a fresh access code and question snapshot
2. Listing: search, status filter, deadline ordering, pagination
3. Partial updates and access code regeneration
4. Dashboard stats
"""

from datetime import datetime, timedelta

import pytest

from recommate.errors import NotFoundError
from recommate.models.db_models import LetterRequestDB, DestinationDB, RequestStatus
from recommate.services.access_code import ACCESS_CODE_ALPHABET
from recommate.services.request_service import RequestService

from conftest import make_destination, make_request

NOW = datetime(2026, 10, 18, 9, 0, 0)


@pytest.fixture
def service(db, store):
    return RequestService(db, clock=lambda: NOW, store=store)


class TestCreate:
    def test_new_request_is_pending_with_code(self, service, professor):
        request = service.create_request(professor, deadline=NOW + timedelta(days=30), professor_notes="Strong")
        assert request.status == RequestStatus.PENDING
        assert len(request.access_code) == 8
        assert all(c in ACCESS_CODE_ALPHABET for c in request.access_code)
        assert request.code_generated_at == NOW
        assert request.professor_notes == "Strong"

    def test_questions_are_a_snapshot(self, db, service, professor):
        professor.custom_questions = [
            {"id": "q1", "type": "text", "label": "Research area", "variable_name": "research_area"},
        ]
        db.commit()
        request = service.create_request(professor)

        professor.custom_questions = []
        db.commit()
        db.refresh(request)
        assert request.questions[0]["variable_name"] == "research_area"

    def test_codes_are_unique(self, service, professor):
        codes = {service.create_request(professor).access_code for _ in range(5)}
        assert len(codes) == 5


class TestList:
    @pytest.fixture
    def requests(self, db, professor):
        return [
            make_request(db, professor, student_name="Alice Able", student_email="alice@school.edu",
                         deadline=NOW + timedelta(days=20)),
            make_request(db, professor, student_name="Bob Baker", student_email="bob@school.edu",
                         deadline=NOW + timedelta(days=3), status=RequestStatus.IN_PROGRESS),
            make_request(db, professor, student_name="Cara Cole", student_email="cara@school.edu",
                         status=RequestStatus.PENDING),
        ]

    def test_soonest_deadline_first_nulls_last(self, service, professor, requests):
        found, total = service.list_requests(professor.id)
        assert [r.student_name for r in found] == ["Bob Baker", "Alice Able", "Cara Cole"]
        assert total == 3

    def test_search_name_email_code(self, service, professor, requests):
        assert [r.student_name for r in service.list_requests(professor.id, search="ali")[0]] == ["Alice Able"]
        assert [r.student_name for r in service.list_requests(professor.id, search="BOB@")[0]] == ["Bob Baker"]
        code = requests[2].access_code
        assert [r.id for r in service.list_requests(professor.id, search=code.lower())[0]] == [requests[2].id]

    def test_status_filter(self, service, professor, requests):
        found, total = service.list_requests(professor.id, status=RequestStatus.PENDING)
        assert [r.student_name for r in found] == ["Cara Cole"]
        assert total == 1

    def test_pagination_keeps_total(self, service, professor, requests):
        found, total = service.list_requests(professor.id, limit=1, offset=1)
        assert [r.student_name for r in found] == ["Alice Able"]
        assert total == 3

    def test_only_own_requests(self, service, other_professor, requests):
        assert service.list_requests(other_professor.id) == ([], 0)


class TestUpdateAndDelete:
    def test_partial_update(self, service, professor, submitted_request):
        service.update_request(professor.id, submitted_request.id, professor_notes="Met twice")
        updated = service.update_request(professor.id, submitted_request.id, status=RequestStatus.ARCHIVED)
        assert updated.professor_notes == "Met twice"
        assert updated.status == RequestStatus.ARCHIVED

    def test_explicit_none_clears(self, service, professor, submitted_request):
        service.update_request(professor.id, submitted_request.id, deadline=NOW)
        updated = service.update_request(professor.id, submitted_request.id, deadline=None)
        assert updated.deadline is None

    def test_regenerate_code(self, service, professor, submitted_request):
        old_code = submitted_request.access_code
        updated = service.regenerate_access_code(professor.id, submitted_request.id)
        assert updated.access_code != old_code
        assert updated.code_generated_at == NOW

    def test_delete_cascades(self, db, service, professor, submitted_request, mit_destination):
        service.delete_request(professor.id, submitted_request.id)
        assert db.query(LetterRequestDB).count() == 0
        assert db.query(DestinationDB).count() == 0

    def test_other_professor_not_found(self, service, other_professor, submitted_request):
        with pytest.raises(NotFoundError):
            service.get_request(other_professor.id, submitted_request.id)
        with pytest.raises(NotFoundError):
            service.delete_request(other_professor.id, submitted_request.id)


class TestStats:
    def test_counts_and_upcoming(self, db, service, professor):
        make_request(db, professor, status=RequestStatus.PENDING, deadline=NOW + timedelta(days=2))
        make_request(db, professor, status=RequestStatus.SUBMITTED, deadline=NOW + timedelta(days=10))
        make_request(db, professor, status=RequestStatus.COMPLETED, deadline=NOW + timedelta(days=1))
        make_request(db, professor, status=RequestStatus.IN_PROGRESS, deadline=NOW + timedelta(days=40))
        make_request(db, professor, status=RequestStatus.ARCHIVED, deadline=NOW - timedelta(days=1))

        stats = service.get_request_stats(professor.id)

        assert stats["total"] == 5
        assert stats["pending"] == 1
        assert stats["submitted"] == 1
        assert stats["in_progress"] == 1
        assert stats["completed"] == 1
        assert stats["archived"] == 1
        assert [r.deadline for r in stats["upcoming_deadlines"]] == [
            NOW + timedelta(days=2),
            NOW + timedelta(days=10),
        ]

    def test_empty(self, service, professor):
        stats = service.get_request_stats(professor.id)
        assert stats["total"] == 0
        assert stats["upcoming_deadlines"] == []
