"""
Migration: add subject_id and expires_at to quiz_sessions.

Sessions created before this column existed are attributed to the subject of
their first answered question, or of their first question when nothing was
answered; expires_at stays NULL for them.
"""

import os
import sqlite3


BACKFILL_SQL = """
UPDATE quiz_sessions
SET subject_id = (
    SELECT s.subject_id
    FROM quiz_answers a
    JOIN questions q ON q.id = a.question_id
    JOIN modules m ON m.id = q.module_id
    JOIN sources s ON s.id = m.source_id
    WHERE a.session_id = quiz_sessions.id
    ORDER BY (a.selected_option_id IS NULL), a.order_number
    LIMIT 1
)
WHERE subject_id IS NULL
"""


def _has_column(cursor, table: str, column: str) -> bool:
    cursor.execute(f"SELECT 1 FROM pragma_table_info('{table}') WHERE name=?", (column,))
    return cursor.fetchone() is not None


def run_migration(db_path: str | None = None) -> bool:
    """Returns True when the schema was changed."""
    db_path = db_path or os.getenv("DATABASE_URL", "sqlite:///./quizbank.db").replace("sqlite:///", "")
    conn = None
    try:
        conn = sqlite3.connect(db_path)
        cursor = conn.cursor()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='quiz_sessions'")
        if not cursor.fetchone():
            print("quiz_sessions table not found. Skipping.")
            return False

        changed = False
        if not _has_column(cursor, "quiz_sessions", "subject_id"):
            print("Adding subject_id to quiz_sessions...")
            cursor.execute(
                "ALTER TABLE quiz_sessions ADD COLUMN subject_id VARCHAR REFERENCES subjects(id) ON DELETE SET NULL"
            )
            changed = True
        if not _has_column(cursor, "quiz_sessions", "expires_at"):
            print("Adding expires_at to quiz_sessions...")
            cursor.execute("ALTER TABLE quiz_sessions ADD COLUMN expires_at DATETIME")
            changed = True

        cursor.execute(BACKFILL_SQL)
        print(f"Backfilled subject_id on {cursor.rowcount} session(s).")
        conn.commit()
        print("✓ Migration add_session_attribution completed successfully!")
        return changed

    except sqlite3.Error as e:
        print(f"Error during migration: {e}")
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    run_migration()
