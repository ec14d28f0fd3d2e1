from typing import List, Optional

from psycopg2.extras import RealDictCursor

from holyverso.chapter import get_chapter_payload
from holyverso.errors import AppError
from holyverso.verse_cache import resolve_entry_text

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50

SAVED_SELECT = """
SELECT
    s.id,
    s.user_id,
    s.entry_kind,
    s.entry_id,
    s.version_id,
    s.reference,
    s.text,
    s.theme,
    s.source,
    s.saved_at,
    v.api_code AS version_code,
    v.name AS version_name
FROM user_saved_verse s
JOIN bible_version v ON v.id = s.version_id
"""


class SavedVerseStore:
    def __init__(self, conn):
        self.conn = conn

    def get(self, user_id: str, entry_kind: str, entry_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                SAVED_SELECT + " WHERE s.user_id = %s AND s.entry_kind = %s AND s.entry_id = %s",
                (user_id, entry_kind, entry_id),
            )
            return cur.fetchone()

    def get_by_id(self, user_id: str, saved_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(SAVED_SELECT + " WHERE s.user_id = %s AND s.id = %s", (user_id, saved_id))
            return cur.fetchone()

    def upsert(
        self,
        user_id: str,
        entry_kind: str,
        entry_id: int,
        version_id: int,
        reference: str,
        text: str,
        theme: Optional[str],
    ) -> dict:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO user_saved_verse
                  (user_id, entry_kind, entry_id, version_id, reference, text, theme, source)
                VALUES (%s, %s, %s, %s, %s, %s, %s, 'daily_verse')
                ON CONFLICT (user_id, entry_kind, entry_id)
                DO UPDATE SET
                  version_id = EXCLUDED.version_id,
                  reference = EXCLUDED.reference,
                  text = EXCLUDED.text
                """,
                (user_id, entry_kind, entry_id, version_id, reference, text, theme),
            )
        return self.get(user_id, entry_kind, entry_id)

    def delete(self, user_id: str, entry_kind: str, entry_id: int) -> bool:
        with self.conn.cursor() as cur:
            cur.execute(
                "DELETE FROM user_saved_verse WHERE user_id = %s AND entry_kind = %s AND entry_id = %s",
                (user_id, entry_kind, entry_id),
            )
            return cur.rowcount > 0

    def list_page(self, user_id: str, cursor_row: Optional[dict], limit: int) -> List[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            if cursor_row:
                cur.execute(
                    SAVED_SELECT
                    + """
                    WHERE s.user_id = %s
                      AND (s.saved_at < %s OR (s.saved_at = %s AND s.id < %s))
                    ORDER BY s.saved_at DESC, s.id DESC
                    LIMIT %s
                    """,
                    (user_id, cursor_row["saved_at"], cursor_row["saved_at"], cursor_row["id"], limit),
                )
            else:
                cur.execute(
                    SAVED_SELECT + " WHERE s.user_id = %s ORDER BY s.saved_at DESC, s.id DESC LIMIT %s",
                    (user_id, limit),
                )
            return cur.fetchall()


def map_saved_verse(row: dict) -> dict:
    return {
        "id": row["id"],
        "entry_id": row["entry_id"],
        "entry_kind": row["entry_kind"],
        "reference": row["reference"],
        "text": row["text"],
        "version_code": row["version_code"],
        "version_name": row["version_name"],
        "theme": row.get("theme"),
        "saved_at": row["saved_at"].isoformat(),
    }


def _validate_entry_id(entry_id) -> int:
    if not isinstance(entry_id, int) or isinstance(entry_id, bool) or entry_id <= 0:
        raise AppError("Invalid verse id", "INVALID_VERSE_ID", 400)
    return entry_id


def _preferred_version(service, user_id: str) -> dict:
    settings = service.settings.get(user_id) or {}
    version_id = settings.get("preferred_version_id")
    version = service.versions.get(version_id) if version_id else None
    if not version or not version.get("is_active"):
        raise AppError(
            "No Bible version selected. Please select a Bible version in settings.",
            "NO_VERSION_SELECTED",
            400,
        )
    return version


def save_verse(service, saved_store, user_id: str, entry_id: int) -> dict:
    entry_id = _validate_entry_id(entry_id)
    entry_kind = service.selector.kind
    entry = service.load_entry(entry_kind, entry_id)
    if not entry:
        raise AppError("Library verse not found", "LIBRARY_VERSE_NOT_FOUND", 404)
    version = _preferred_version(service, user_id)
    cached, _source = resolve_entry_text(service.cache, service.client, entry, version)
    row = saved_store.upsert(
        user_id,
        entry_kind,
        entry_id,
        version["id"],
        cached["reference"],
        cached["text"],
        entry.get("theme"),
    )
    return map_saved_verse(row)


def remove_saved_verse(service, saved_store, user_id: str, entry_id: int) -> bool:
    entry_id = _validate_entry_id(entry_id)
    return saved_store.delete(user_id, service.selector.kind, entry_id)


def list_saved_verses(saved_store, user_id: str, cursor: Optional[int] = None, limit: Optional[int] = None) -> dict:
    page_size = min(limit, MAX_PAGE_SIZE) if limit and limit > 0 else DEFAULT_PAGE_SIZE
    cursor_row = None
    if cursor:
        cursor_row = saved_store.get_by_id(user_id, cursor)
        if not cursor_row:
            raise AppError("Cursor not found", "CURSOR_NOT_FOUND", 400)

    rows = saved_store.list_page(user_id, cursor_row, page_size + 1)
    has_next = len(rows) > page_size
    page = rows[:page_size]
    return {
        "items": [map_saved_verse(row) for row in page],
        "next_cursor": page[-1]["id"] if has_next else None,
    }


def get_saved_verse_chapter(service, saved_store, chapter_cache, user_id: str, entry_id: int) -> dict:
    entry_id = _validate_entry_id(entry_id)
    saved = saved_store.get(user_id, service.selector.kind, entry_id)
    if not saved:
        raise AppError("Saved verse not found", "SAVED_VERSE_NOT_FOUND", 404)
    entry = service.load_entry(saved["entry_kind"], saved["entry_id"])
    version = service.versions.get(saved["version_id"])
    if not entry or not version:
        raise AppError("Saved verse reference not found", "INVALID_REFERENCE", 400)
    return get_chapter_payload(service.client, chapter_cache, entry, version)
