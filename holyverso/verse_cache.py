from typing import Optional, Set, Tuple

from psycopg2.extras import RealDictCursor

from holyverso.bible_client import compose_verse_text
from holyverso.books import reference_for_entry, to_upstream_code
from holyverso.errors import AppError
from holyverso.events import log_verse_event

CACHE_COLUMNS = "entry_kind, entry_id, version_id, text, reference, updated_at"


class VerseCache:
    """Persistent text cache keyed by (entry_kind, entry_id, version_id).

    Rows are written only after a successful fetch and never expire; a later
    ``put`` for the same key overwrites the text in place.
    """

    def __init__(self, conn):
        self.conn = conn

    def get(self, entry_kind: str, entry_id: int, version_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT {CACHE_COLUMNS}
                FROM verse_translation
                WHERE entry_kind = %s AND entry_id = %s AND version_id = %s
                """,
                (entry_kind, entry_id, version_id),
            )
            return cur.fetchone()

    def put(self, entry_kind: str, entry_id: int, version_id: int, text: str, reference: str) -> dict:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO verse_translation (entry_kind, entry_id, version_id, text, reference)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (entry_kind, entry_id, version_id)
                DO UPDATE SET
                  text = EXCLUDED.text,
                  reference = EXCLUDED.reference,
                  updated_at = now()
                RETURNING {CACHE_COLUMNS}
                """,
                (entry_kind, entry_id, version_id, text, reference),
            )
            return cur.fetchone()

    def count(self, entry_kind: Optional[str] = None) -> int:
        with self.conn.cursor() as cur:
            if entry_kind:
                cur.execute("SELECT COUNT(*) FROM verse_translation WHERE entry_kind = %s", (entry_kind,))
            else:
                cur.execute("SELECT COUNT(*) FROM verse_translation")
            return int(cur.fetchone()[0])

    def cached_entry_ids(self, entry_kind: str, version_id: int) -> Set[int]:
        with self.conn.cursor() as cur:
            cur.execute(
                "SELECT entry_id FROM verse_translation WHERE entry_kind = %s AND version_id = %s",
                (entry_kind, version_id),
            )
            return {row[0] for row in cur.fetchall()}


def fetch_entry_text(client, entry: dict, version: dict) -> dict:
    """Fetch one entry's wording in ``version`` from upstream."""
    reference = reference_for_entry(entry, version.get("language"))

    if entry.get("translation_id") and entry.get("fallback_text"):
        if version["api_code"].lower() == entry["translation_id"].lower():
            return {"text": entry["fallback_text"], "reference": reference}

    verse_to = entry.get("verse_to")
    if verse_to == entry["verse_from"]:
        verse_to = None
    verses = client.get_verses(
        version["api_code"],
        to_upstream_code(entry["book"]),
        entry["chapter"],
        entry["verse_from"],
        verse_to,
    )
    text = compose_verse_text(verses or [])
    if not text:
        log_verse_event(
            "bible_api_empty",
            {
                "version": version["api_code"],
                "entry_kind": entry["entry_kind"],
                "entry_id": entry["entry_id"],
            },
        )
        raise AppError("No verses returned from Bible API", "BIBLE_API_EMPTY", 502)
    return {"text": text, "reference": reference}


def resolve_entry_text(cache, client, entry: dict, version: dict) -> Tuple[dict, str]:
    """Cache-or-fetch; returns the cache row and "cache" or "api"."""
    cached = cache.get(entry["entry_kind"], entry["entry_id"], version["id"])
    if cached:
        log_verse_event(
            "verse_cache_hit",
            {"entry_kind": entry["entry_kind"], "entry_id": entry["entry_id"], "version": version["api_code"]},
        )
        return cached, "cache"

    log_verse_event(
        "verse_cache_miss",
        {"entry_kind": entry["entry_kind"], "entry_id": entry["entry_id"], "version": version["api_code"]},
    )
    fetched = fetch_entry_text(client, entry, version)
    row = cache.put(entry["entry_kind"], entry["entry_id"], version["id"], fetched["text"], fetched["reference"])
    return row, "api"
