from typing import Callable, List, Optional

from psycopg2.extras import RealDictCursor

from holyverso.errors import AppError
from holyverso.events import log_verse_event

LIKE_WEIGHT = 1.0
SHARE_WEIGHT = 2.0
INTERACTION_KINDS = ("like", "share")

PREFERENCE_COLUMNS = "user_id, theme, like_count, share_count, score, last_interaction"


def compute_score(like_count: int, share_count: int) -> float:
    return like_count * LIKE_WEIGHT + share_count * SHARE_WEIGHT


class PreferenceStore:
    def __init__(self, conn):
        self.conn = conn

    def record(self, user_id: str, theme: str, kind: str) -> dict:
        likes = 1 if kind == "like" else 0
        shares = 1 if kind == "share" else 0
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO user_theme_preference
                  (user_id, theme, like_count, share_count, score, last_interaction)
                VALUES (%s, %s, %s, %s, %s, now())
                ON CONFLICT (user_id, theme)
                DO UPDATE SET
                  like_count = user_theme_preference.like_count + EXCLUDED.like_count,
                  share_count = user_theme_preference.share_count + EXCLUDED.share_count,
                  score = (user_theme_preference.like_count + EXCLUDED.like_count) * %s
                        + (user_theme_preference.share_count + EXCLUDED.share_count) * %s,
                  last_interaction = now()
                RETURNING {PREFERENCE_COLUMNS}
                """,
                (user_id, theme, likes, shares, compute_score(likes, shares), LIKE_WEIGHT, SHARE_WEIGHT),
            )
            return cur.fetchone()

    def top_themes(self, user_id: str, limit: int) -> List[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT {PREFERENCE_COLUMNS}
                FROM user_theme_preference
                WHERE user_id = %s
                ORDER BY score DESC, last_interaction DESC, theme
                LIMIT %s
                """,
                (user_id, limit),
            )
            return cur.fetchall()


def record_interaction(
    history_store,
    preference_store,
    load_entry: Callable[[str, int], Optional[dict]],
    user_id: str,
    entry_kind: str,
    entry_id: int,
    kind: str,
) -> dict:
    """Apply a like or share to a verse the user has already been shown."""
    if kind not in INTERACTION_KINDS:
        raise AppError("Unknown interaction", "VALIDATION_ERROR", 400)

    history = history_store.find_latest_for_entry(user_id, entry_kind, entry_id)
    if not history:
        raise AppError("Verse history not found", "HISTORY_NOT_FOUND", 404)

    history = history_store.mark_interaction(history["id"], kind)
    entry = load_entry(entry_kind, entry_id)
    theme = entry.get("theme") if entry else None
    preference = None
    if theme:
        preference = preference_store.record(user_id, theme, kind)

    log_verse_event(
        f"verse_{kind}",
        {"user_id": user_id, "entry_kind": entry_kind, "entry_id": entry_id, "theme": theme},
    )
    return {
        "entry_id": entry_id,
        "liked": bool(history.get("liked")),
        "shared": bool(history.get("shared")),
        "theme": theme,
        "score": float(preference["score"]) if preference else None,
    }
