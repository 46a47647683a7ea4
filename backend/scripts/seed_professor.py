#!/usr/bin/env python3
"""
Professor Seed Script
Creates a professor account, optionally with admin rights.

Usage:
    python -m scripts.seed_professor <email> <name> <password> [--admin]

Example:
    python -m scripts.seed_professor ada@university.edu "Ada Lovelace" securepassword123 --admin
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from recommate.database import SessionLocal, init_db
from recommate.models.db_models import ProfessorDB
from recommate.auth import hash_password
from recommate.services.professor_service import MIN_PASSWORD_LENGTH


def create_professor(email: str, name: str, password: str, is_admin: bool = False) -> bool:
    """Create a professor in the database, or promote an existing one to admin."""
    init_db()

    email = email.strip().lower()
    db: Session = SessionLocal()
    try:
        existing = db.query(ProfessorDB).filter(ProfessorDB.email == email).first()
        if existing:
            print(f"Error: Email '{email}' already exists.")
            if is_admin and not existing.is_admin:
                existing.is_admin = True
                db.commit()
                print(f"Upgraded existing professor '{email}' to admin.")
                return True
            return False

        professor = ProfessorDB(
            id=str(uuid4()),
            email=email,
            name=name,
            password_hash=hash_password(password),
            is_admin=is_admin,
            custom_questions=[],
        )
        db.add(professor)
        db.commit()

        print("Professor created successfully!")
        print(f"  Email: {email}")
        print(f"  Name: {name}")
        print(f"  Admin: {is_admin}")
        return True

    except Exception as e:
        print(f"Error creating professor: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    args = [a for a in sys.argv[1:] if a != "--admin"]
    if len(args) != 3:
        print(__doc__)
        sys.exit(1)

    email, name, password = args

    if len(password) < MIN_PASSWORD_LENGTH:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = create_professor(email, name, password, is_admin="--admin" in sys.argv)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
