"""
Migration: Add content_updated_at column to letters table.

PDF staleness is judged against content_updated_at instead of updated_at,
so finalizing a letter or stamping its PDF no longer marks the PDF stale.
Existing rows are backfilled from updated_at.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/recommate"
)


def run_migration():
    """Add content_updated_at and backfill it."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT column_name
            FROM information_schema.columns
            WHERE table_name = 'letters' AND column_name = 'content_updated_at'
        """))

        if result.fetchone():
            print("content_updated_at column already exists")
        else:
            conn.execute(text("""
                ALTER TABLE letters
                ADD COLUMN content_updated_at TIMESTAMP
            """))
            print("Added content_updated_at column to letters table")

            conn.execute(text("""
                UPDATE letters
                SET content_updated_at = COALESCE(updated_at, created_at, NOW())
                WHERE content_updated_at IS NULL
            """))
            print("Backfilled content_updated_at from updated_at")

            conn.execute(text("""
                ALTER TABLE letters
                ALTER COLUMN content_updated_at SET NOT NULL
            """))
            print("Made content_updated_at NOT NULL")

        conn.commit()


if __name__ == "__main__":
    run_migration()
