"""
Recommate - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, ForeignKey, Enum as SQLEnum, Boolean
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


# =============================================================================
# ENUMS
# =============================================================================

class RequestStatus(str, Enum):
    """Lifecycle of a student's letter request."""
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


# Statuses in which the student may still edit the request
STUDENT_EDITABLE_STATUSES = (RequestStatus.PENDING, RequestStatus.SUBMITTED)

# Statuses from which letters may be generated
GENERATABLE_STATUSES = (RequestStatus.SUBMITTED, RequestStatus.IN_PROGRESS)


class SubmissionStatus(str, Enum):
    """Delivery status of a single destination."""
    PENDING = "PENDING"
    SENT = "SENT"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class SubmissionMethod(str, Enum):
    """How the letter reaches the destination."""
    EMAIL = "EMAIL"
    DOWNLOAD = "DOWNLOAD"
    PORTAL = "PORTAL"


# =============================================================================
# PROFESSOR
# =============================================================================

class ProfessorDB(Base):
    """Professor account with letterhead branding."""
    __tablename__ = "professors"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Identity shown on letterhead and in the signature block
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    institution = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)

    # Branding images (paths inside UPLOAD_DIR)
    letterhead_image = Column(String(500), nullable=True)
    signature_image = Column(String(500), nullable=True)

    # {"show_name": bool, "items": ["title", "department", ...]}
    header_config = Column(JSON, nullable=True)

    # Intake questions copied onto each new request
    # Format: [{"id", "type", "label", "required", "order", "options", "variable_name"}]
    custom_questions = Column(JSON, nullable=True, default=list)

    # Relationships
    requests = relationship("LetterRequestDB", back_populates="professor", cascade="all, delete-orphan")
    templates = relationship("TemplateDB", back_populates="professor", cascade="all, delete-orphan")


# =============================================================================
# LETTER REQUEST
# =============================================================================

class LetterRequestDB(Base):
    """One student intake, gated by an access code."""
    __tablename__ = "letter_requests"

    id = Column(String(36), primary_key=True)  # UUID
    professor_id = Column(String(36), ForeignKey("professors.id", ondelete="CASCADE"), nullable=False, index=True)
    access_code = Column(String(12), unique=True, nullable=False, index=True)
    status = Column(SQLEnum(RequestStatus), default=RequestStatus.PENDING, nullable=False)

    # Student identity
    student_name = Column(String(255), nullable=True)
    student_email = Column(String(255), nullable=True)
    student_phone = Column(String(50), nullable=True)

    # Application fallbacks when a destination lacks its own values
    program_applying = Column(String(255), nullable=True)
    institution_applying = Column(String(255), nullable=True)
    degree_type = Column(String(100), nullable=True)

    # Academic history
    course_taken = Column(String(255), nullable=True)
    grade = Column(String(50), nullable=True)
    semester_year = Column(String(100), nullable=True)

    # Free-text student responses
    relationship_description = Column(Text, nullable=True)
    achievements = Column(Text, nullable=True)
    personal_statement = Column(Text, nullable=True)
    additional_notes = Column(Text, nullable=True)

    # Answers to custom questions keyed by variable name
    custom_fields = Column(JSON, nullable=True)
    # Snapshot of the professor's questions at creation time
    questions = Column(JSON, nullable=True)

    deadline = Column(DateTime, nullable=True)
    professor_notes = Column(Text, nullable=True)

    code_generated_at = Column(DateTime, default=utcnow, nullable=False)
    student_submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    professor = relationship("ProfessorDB", back_populates="requests")
    destinations = relationship(
        "DestinationDB",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="DestinationDB.created_at",
    )
    letters = relationship("LetterDB", back_populates="request", cascade="all, delete-orphan")
    documents = relationship(
        "DocumentDB",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="DocumentDB.created_at",
    )


class DestinationDB(Base):
    """Institution/program a letter must be delivered to."""
    __tablename__ = "submission_destinations"

    id = Column(String(36), primary_key=True)  # UUID
    request_id = Column(String(36), ForeignKey("letter_requests.id", ondelete="CASCADE"), nullable=False, index=True)

    institution_name = Column(String(255), nullable=False)
    program_name = Column(String(255), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_email = Column(String(255), nullable=True)
    portal_url = Column(String(1000), nullable=True)
    portal_instructions = Column(Text, nullable=True)

    method = Column(SQLEnum(SubmissionMethod), nullable=False)
    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False)
    deadline = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    request = relationship("LetterRequestDB", back_populates="destinations")
    letters = relationship("LetterDB", back_populates="destination", cascade="all, delete-orphan")


class DocumentDB(Base):
    """Supporting file uploaded by the student (CV, transcript, statement)."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)  # UUID
    request_id = Column(String(36), ForeignKey("letter_requests.id", ondelete="CASCADE"), nullable=False, index=True)

    original_name = Column(String(255), nullable=False)
    stored_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    path = Column(String(500), nullable=False)
    label = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    # Relationships
    request = relationship("LetterRequestDB", back_populates="documents")


# =============================================================================
# TEMPLATE
# =============================================================================

class TemplateDB(Base):
    """Professor-owned letter template with {{variable}} placeholders."""
    __tablename__ = "templates"

    id = Column(String(36), primary_key=True)  # UUID
    professor_id = Column(String(36), ForeignKey("professors.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    # Declared variables: [{"name", "description", "required", "category", "example"}]
    variables = Column(JSON, nullable=True)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    professor = relationship("ProfessorDB", back_populates="templates")
    letters = relationship("LetterDB", back_populates="template")


# =============================================================================
# LETTER
# =============================================================================

class LetterDB(Base):
    """
    Versioned letter artifact.

    destination_id NULL + is_master marks the master letter, which keeps
    [INSTITUTION] / [PROGRAM] placeholders. Prior versions stay as rows.
    """
    __tablename__ = "letters"

    id = Column(String(36), primary_key=True)  # UUID
    request_id = Column(String(36), ForeignKey("letter_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    destination_id = Column(String(36), ForeignKey("submission_destinations.id", ondelete="CASCADE"), nullable=True, index=True)
    template_id = Column(String(36), ForeignKey("templates.id", ondelete="SET NULL"), nullable=True)

    content = Column(Text, nullable=False)
    version = Column(Integer, default=1, nullable=False)
    is_finalized = Column(Boolean, default=False, nullable=False)
    is_master = Column(Boolean, default=False, nullable=False)

    pdf_path = Column(String(500), nullable=True)
    pdf_generated_at = Column(DateTime, nullable=True)
    # Moves only when content changes; PDF staleness is judged against it
    content_updated_at = Column(DateTime, default=utcnow, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    request = relationship("LetterRequestDB", back_populates="letters")
    destination = relationship("DestinationDB", back_populates="letters")
    template = relationship("TemplateDB", back_populates="letters")
