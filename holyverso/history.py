from datetime import date
from typing import Optional, Set

from psycopg2.extras import RealDictCursor

HISTORY_COLUMNS = (
    "id, user_id, assigned_on, entry_kind, entry_id, version_id, shown_at, "
    "liked, liked_at, shared, shared_at, archived_at"
)


class HistoryStore:
    """Per-user daily assignments.

    At most one row exists per (user_id, assigned_on). Rows are archived by a
    reset rather than deleted, so they stay valid like/share targets while
    dropping out of the seen-set.
    """

    def __init__(self, conn):
        self.conn = conn

    def find_for_day(self, user_id: str, day: date) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT {HISTORY_COLUMNS} FROM user_verse_history WHERE user_id = %s AND assigned_on = %s",
                (user_id, day),
            )
            return cur.fetchone()

    def create_for_day(
        self, user_id: str, day: date, entry_kind: str, entry_id: int, version_id: int
    ) -> Optional[dict]:
        """Insert today's assignment; None when another request already created it."""
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO user_verse_history (user_id, assigned_on, entry_kind, entry_id, version_id)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id, assigned_on) DO NOTHING
                RETURNING {HISTORY_COLUMNS}
                """,
                (user_id, day, entry_kind, entry_id, version_id),
            )
            return cur.fetchone()

    def update_version(self, history_id: int, version_id: int) -> dict:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                UPDATE user_verse_history
                SET version_id = %s
                WHERE id = %s
                RETURNING {HISTORY_COLUMNS}
                """,
                (version_id, history_id),
            )
            return cur.fetchone()

    def seen_entry_ids(self, user_id: str, entry_kind: str) -> Set[int]:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT DISTINCT entry_id
                FROM user_verse_history
                WHERE user_id = %s AND entry_kind = %s AND archived_at IS NULL
                """,
                (user_id, entry_kind),
            )
            return {row[0] for row in cur.fetchall()}

    def find_latest_for_entry(self, user_id: str, entry_kind: str, entry_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT {HISTORY_COLUMNS}
                FROM user_verse_history
                WHERE user_id = %s AND entry_kind = %s AND entry_id = %s
                ORDER BY assigned_on DESC
                LIMIT 1
                """,
                (user_id, entry_kind, entry_id),
            )
            return cur.fetchone()

    def mark_interaction(self, history_id: int, kind: str) -> dict:
        if kind == "like":
            assignment = "liked = TRUE, liked_at = now()"
        elif kind == "share":
            assignment = "shared = TRUE, shared_at = now()"
        else:
            raise ValueError(f"unknown interaction: {kind}")
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"UPDATE user_verse_history SET {assignment} WHERE id = %s RETURNING {HISTORY_COLUMNS}",
                (history_id,),
            )
            return cur.fetchone()

    def reset(self, user_id: str) -> int:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                UPDATE user_verse_history
                SET archived_at = now()
                WHERE user_id = %s AND archived_at IS NULL
                """,
                (user_id,),
            )
            return cur.rowcount
