"""
Access Codes

8-character student access codes. The alphabet drops 0/O and 1/I
and keeps L.
"""
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import InvalidStateError
from ..models.db_models import LetterRequestDB

ACCESS_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
ACCESS_CODE_LENGTH = 8
MAX_ATTEMPTS = 10


def create_access_code() -> str:
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def generate_unique_code(db: Session) -> str:
    """Draw codes until one is unused, giving up after MAX_ATTEMPTS."""
    for _ in range(MAX_ATTEMPTS):
        code = create_access_code()
        exists = db.query(LetterRequestDB.id).filter(LetterRequestDB.access_code == code).first()
        if not exists:
            return code
    raise InvalidStateError("Failed to generate unique access code")
