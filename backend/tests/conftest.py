"""
Shared fixtures: in-memory SQLite session and sample professor data.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recommate.auth import hash_password
from recommate.database import Base
from recommate.models.db_models import (
    ProfessorDB, LetterRequestDB, DestinationDB, TemplateDB,
    RequestStatus, SubmissionMethod, SubmissionStatus,
)
from recommate.services.pdf.renderer import RenderedDocument
from recommate.services.storage import FileStore

BASE_TIME = datetime(2026, 10, 1, 9, 0, 0)


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(tmp_path):
    return FileStore(tmp_path / "uploads")


# =============================================================================
# SAMPLE DATA
# =============================================================================

def make_professor(db, email="ada@university.edu", name="Dr. Ada Lovelace", password="password123"):
    professor = ProfessorDB(
        id=str(uuid4()),
        email=email,
        password_hash=hash_password(password),
        is_admin=True,
        name=name,
        title="Professor of Mathematics",
        department="Mathematics",
        institution="State University",
        custom_questions=[],
    )
    db.add(professor)
    db.commit()
    return professor


def make_request(db, professor, status=RequestStatus.SUBMITTED, access_code=None, **fields):
    request = LetterRequestDB(
        id=str(uuid4()),
        professor_id=professor.id,
        access_code=access_code or uuid4().hex[:8].upper(),
        status=status,
        **fields,
    )
    db.add(request)
    db.commit()
    return request


def make_destination(db, request, institution, program, offset_minutes=0, **fields):
    fields.setdefault("method", SubmissionMethod.DOWNLOAD)
    destination = DestinationDB(
        id=str(uuid4()),
        request_id=request.id,
        institution_name=institution,
        program_name=program,
        status=SubmissionStatus.PENDING,
        created_at=BASE_TIME + timedelta(minutes=offset_minutes),
        **fields,
    )
    db.add(destination)
    db.commit()
    return destination


def make_template(db, professor, content, name="Standard", **fields):
    template = TemplateDB(
        id=str(uuid4()),
        professor_id=professor.id,
        name=name,
        content=content,
        **fields,
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture
def professor(db):
    return make_professor(db)


@pytest.fixture
def other_professor(db):
    return make_professor(db, email="grace@college.edu", name="Dr. Grace Hopper")


@pytest.fixture
def submitted_request(db, professor):
    """SUBMITTED request for Jane with no destinations."""
    return make_request(
        db,
        professor,
        student_name="Jane",
        student_email="jane@student.edu",
        program_applying="Fallback Program",
        institution_applying="Fallback University",
        course_taken="MATH 201",
        grade="A",
    )


@pytest.fixture
def mit_destination(db, submitted_request):
    return make_destination(
        db, submitted_request, "MIT", "CS",
        offset_minutes=0,
        method=SubmissionMethod.EMAIL,
        recipient_name="Admissions Office",
        recipient_email="admissions@mit.edu",
    )


@pytest.fixture
def stanford_destination(db, submitted_request):
    return make_destination(db, submitted_request, "Stanford", "EE", offset_minutes=5)


@pytest.fixture
def template(db, professor):
    return make_template(db, professor, "Dear {{student_name}}, admission to {{program}} at {{institution}}.")


# =============================================================================
# FAKES
# =============================================================================

class FakeRenderer:
    """Returns a configurable page count per font size and records calls."""

    def __init__(self, pages_by_size=None, default_pages=1):
        self.pages_by_size = pages_by_size or {}
        self.default_pages = default_pages
        self.calls = []

    def render(self, html, options):
        size = None
        for candidate in self.pages_by_size:
            if f"font-size: {candidate}pt" in html:
                size = candidate
                break
        self.calls.append({"html": html, "size": size})
        pages = self.pages_by_size.get(size, self.default_pages)
        return RenderedDocument(pdf=b"%PDF-1.7 fake " + str(size).encode(), page_count=pages)


@pytest.fixture
def fake_renderer():
    return FakeRenderer()
