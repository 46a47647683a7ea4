"""
Migration: Add documents table for student supporting uploads.

Rows cascade with their letter request. Files live under
UPLOAD_DIR/documents/<request_id>/.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/recommate"
)


def run_migration():
    """Create the documents table if it is missing."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_name = 'documents'
        """))

        if result.fetchone():
            print("documents table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE documents (
                    id VARCHAR(36) PRIMARY KEY,
                    request_id VARCHAR(36) NOT NULL
                        REFERENCES letter_requests(id) ON DELETE CASCADE,
                    original_name VARCHAR(255) NOT NULL,
                    stored_name VARCHAR(255) NOT NULL,
                    mime_type VARCHAR(100) NOT NULL,
                    size INTEGER NOT NULL,
                    path VARCHAR(500) NOT NULL,
                    label VARCHAR(255),
                    description TEXT,
                    created_at TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX ix_documents_request_id ON documents (request_id)
            """))
            print("Created documents table")

        conn.commit()


if __name__ == "__main__":
    run_migration()
