import json
import random
from pathlib import Path
from typing import Callable, Dict, List, Optional

from psycopg2.extras import RealDictCursor

from holyverso.books import create_reference_key, normalize_book_name
from holyverso.config import (
    CACHE_SIZE_THRESHOLD,
    LIBRARY_PATH,
    PREFER_CACHED_PROBABILITY,
    THEME_BIAS_PROBABILITY,
    TOP_THEMES_LIMIT,
)
from holyverso.errors import AppError
from holyverso.events import log_verse_event
from holyverso.ref_parser import validate_coordinates

ENTRY_KIND = "library"
LIBRARY_COLUMNS = "id, book, chapter, verse_from, verse_to, theme, reference_key"


class PoolExhausted(AppError):
    def __init__(self, pool_size: int):
        super().__init__(
            "All verses have already been shown",
            "VERSE_POOL_EXHAUSTED",
            409,
            details={"pool_size": pool_size},
        )


def _row_to_entry(row: dict) -> dict:
    return {
        "entry_kind": ENTRY_KIND,
        "entry_id": row["id"],
        "book": row["book"],
        "chapter": row["chapter"],
        "verse_from": row["verse_from"],
        "verse_to": row["verse_to"],
        "theme": row["theme"],
        "reference_key": row["reference_key"],
    }


def load_library_files(path: str = LIBRARY_PATH) -> List[dict]:
    """Read every ``*.json`` array in the library directory."""
    entries = []
    for file_path in sorted(Path(path).glob("*.json")):
        with open(file_path, encoding="utf-8") as f:
            items = json.load(f)
        for item in items:
            verse_from = item.get("verseFrom")
            verse_to = item.get("verseTo", verse_from)
            if not item.get("book") or not item.get("theme"):
                raise ValueError(f"{file_path.name}: entry missing book or theme: {item}")
            if not validate_coordinates(item.get("chapter"), verse_from, verse_to):
                raise ValueError(f"{file_path.name}: invalid coordinates: {item}")
            entries.append(
                {
                    "book": normalize_book_name(item["book"]),
                    "chapter": int(item["chapter"]),
                    "verse_from": int(verse_from),
                    "verse_to": int(verse_to),
                    "theme": item["theme"].strip().lower(),
                    "reference_key": create_reference_key(item["book"], item["chapter"], verse_from, verse_to),
                }
            )
    return entries


class LibraryStore:
    def __init__(self, conn):
        self.conn = conn

    def list_entries(self) -> List[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(f"SELECT {LIBRARY_COLUMNS} FROM library_verse ORDER BY id")
            return [_row_to_entry(row) for row in cur.fetchall()]

    def get_entry(self, entry_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(f"SELECT {LIBRARY_COLUMNS} FROM library_verse WHERE id = %s", (entry_id,))
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def upsert_entry(self, entry: dict) -> bool:
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO library_verse (book, chapter, verse_from, verse_to, theme, reference_key)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (reference_key)
                DO UPDATE SET theme = EXCLUDED.theme
                RETURNING (xmax = 0) AS created
                """,
                (
                    entry["book"],
                    entry["chapter"],
                    entry["verse_from"],
                    entry["verse_to"],
                    entry["theme"],
                    entry["reference_key"],
                ),
            )
            row = cur.fetchone()
        return bool(row[0]) if row else False


class VerseLibrary:
    """Curated pool held in memory for the life of the process.

    Populated from the store on first use; the pool is read-only at runtime,
    so it is never refreshed. An empty table is not remembered, so a library
    seeded after startup is picked up by the next request.
    """

    def __init__(self):
        self._entries: Optional[List[dict]] = None
        self._by_id: Dict[int, dict] = {}

    def ensure_loaded(self, store) -> List[dict]:
        if self._entries:
            return self._entries
        entries = store.list_entries()
        if not entries:
            log_verse_event("library_empty", {})
            return []
        self._by_id = {e["entry_id"]: e for e in entries}
        self._entries = entries
        log_verse_event("library_loaded", {"count": len(entries)})
        return entries

    def get(self, store, entry_id: int) -> Optional[dict]:
        self.ensure_loaded(store)
        return self._by_id.get(entry_id)


def probability(p: float, rng: random.Random) -> Callable[[], bool]:
    return lambda: rng.random() < p


def always(value: bool) -> Callable[[], bool]:
    return lambda: value


class SelectionPolicy:
    """Injectable randomness for verse selection.

    ``theme_bias`` decides whether to restrict to preferred themes,
    ``prefer_cached`` decides (above the cache threshold) whether to favour
    entries that already have cached text, and ``choose`` picks one element.
    """

    def __init__(self, theme_bias=None, prefer_cached=None, choose=None, rng=None):
        rng = rng or random.Random()
        self.theme_bias = theme_bias or probability(THEME_BIAS_PROBABILITY, rng)
        self.prefer_cached = prefer_cached or probability(PREFER_CACHED_PROBABILITY, rng)
        self.choose = choose or rng.choice


class LibrarySelector:
    kind = ENTRY_KIND

    def __init__(
        self,
        library: VerseLibrary,
        library_store,
        history_store,
        preference_store,
        verse_cache,
        policy: Optional[SelectionPolicy] = None,
        top_themes: int = TOP_THEMES_LIMIT,
        cache_threshold: int = CACHE_SIZE_THRESHOLD,
    ):
        self.library = library
        self.library_store = library_store
        self.history_store = history_store
        self.preference_store = preference_store
        self.verse_cache = verse_cache
        self.policy = policy or SelectionPolicy()
        self.top_themes = top_themes
        self.cache_threshold = cache_threshold

    def load_entry(self, entry_id: int) -> Optional[dict]:
        return self.library.get(self.library_store, entry_id)

    def _apply_cache_policy(self, unseen: List[dict], version: dict):
        cached_ids = self.verse_cache.cached_entry_ids(ENTRY_KIND, version["id"])
        if self.verse_cache.count(ENTRY_KIND) < self.cache_threshold:
            pool, branch = [e for e in unseen if e["entry_id"] not in cached_ids], "grow_cache"
        elif self.policy.prefer_cached():
            pool, branch = [e for e in unseen if e["entry_id"] in cached_ids], "prefer_cached"
        else:
            pool, branch = unseen, "any"
        if not pool:
            return unseen, f"{branch}_fallback"
        return pool, branch

    def _apply_theme_bias(self, user_id: str, pool: List[dict]):
        if not self.policy.theme_bias():
            return pool, False
        preferred = self.preference_store.top_themes(user_id, self.top_themes)
        themes = {p["theme"] for p in preferred}
        if not themes:
            return pool, False
        restricted = [e for e in pool if e["theme"] in themes]
        if not restricted:
            return pool, False
        return restricted, True

    def select(self, user_id: str, version: dict) -> dict:
        entries = self.library.ensure_loaded(self.library_store)
        if not entries:
            raise AppError("Verse library is empty", "LIBRARY_EMPTY", 503)

        seen = self.history_store.seen_entry_ids(user_id, ENTRY_KIND)
        unseen = [e for e in entries if e["entry_id"] not in seen]
        if not unseen:
            log_verse_event("verse_pool_exhausted", {"user_id": user_id, "pool_size": len(entries)})
            raise PoolExhausted(len(entries))

        pool, cache_branch = self._apply_cache_policy(unseen, version)
        pool, theme_biased = self._apply_theme_bias(user_id, pool)
        entry = self.policy.choose(pool)
        log_verse_event(
            "verse_selected",
            {
                "user_id": user_id,
                "entry_kind": ENTRY_KIND,
                "entry_id": entry["entry_id"],
                "cache_branch": cache_branch,
                "theme_biased": theme_biased,
                "candidates": len(pool),
            },
        )
        return entry
