"""
Migration: Add variable_name to stored custom questions.

Updates:
1. professors.custom_questions - adds variable_name derived from the label
2. letter_requests.questions    - same for the question snapshots

Questions that already carry a variable_name are left alone. Names are
deduplicated per list by appending _2, _3, ...
"""
import json
import os
import sys

from sqlalchemy import create_engine, text

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from recommate.services.letters.variables import generate_variable_name

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/recommate"
)


def migrate_questions(questions):
    """Return (questions, changed) with a variable_name on every entry."""
    if not questions:
        return questions, False

    changed = False
    used = {q.get("variable_name") for q in questions if q.get("variable_name")}
    migrated = []
    for question in questions:
        question = dict(question)
        if not question.get("variable_name"):
            base = generate_variable_name(question.get("label", ""))
            name = base
            suffix = 2
            while name in used:
                name = f"{base}_{suffix}"
                suffix += 1
            used.add(name)
            question["variable_name"] = name
            changed = True
        migrated.append(question)
    return migrated, changed


def _migrate_table(conn, table: str, column: str) -> int:
    rows = conn.execute(text(f"SELECT id, {column} FROM {table} WHERE {column} IS NOT NULL")).fetchall()
    updated = 0
    for row_id, questions in rows:
        if isinstance(questions, str):
            questions = json.loads(questions)
        migrated, changed = migrate_questions(questions)
        if changed:
            conn.execute(
                text(f"UPDATE {table} SET {column} = :questions WHERE id = :id"),
                {"questions": json.dumps(migrated), "id": row_id},
            )
            updated += 1
    return updated


def run_migration():
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        count = _migrate_table(conn, "professors", "custom_questions")
        print(f"Updated custom questions for {count} professor(s)")

        count = _migrate_table(conn, "letter_requests", "questions")
        print(f"Updated question snapshots for {count} request(s)")

        conn.commit()


if __name__ == "__main__":
    run_migration()
