from typing import Callable, Iterable, Optional, Tuple

from psycopg2.extras import RealDictCursor
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from holyverso.config import SEED_MAX_ATTEMPTS
from holyverso.errors import AppError, BibleApiError
from holyverso.events import log_verse_event
from holyverso.seed_client import fetch_random_seed, normalize_random_payload

ENTRY_KIND = "seed"
SEED_COLUMNS = "id, seed_hash, reference, book, chapter, verse_from, verse_to, fallback_text, translation_id"


class SeedAlreadySeen(Exception):
    pass


def _row_to_entry(row: dict) -> dict:
    return {
        "entry_kind": ENTRY_KIND,
        "entry_id": row["id"],
        "book": row["book"],
        "chapter": row["chapter"],
        "verse_from": row["verse_from"],
        "verse_to": row["verse_to"],
        "theme": None,
        "seed_hash": row["seed_hash"],
        "source_reference": row["reference"],
        "fallback_text": row["fallback_text"],
        "translation_id": row["translation_id"],
    }


class SeedStore:
    """Append-only pool of random verse references, deduplicated by hash."""

    def __init__(self, conn):
        self.conn = conn

    def get_entry(self, seed_id: int) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(f"SELECT {SEED_COLUMNS} FROM verse_seed WHERE id = %s", (seed_id,))
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def first_unseen(self, seen_ids: Iterable[int]) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                SELECT {SEED_COLUMNS}
                FROM verse_seed
                WHERE NOT (id = ANY(%s::int[]))
                ORDER BY id
                LIMIT 1
                """,
                (sorted(seen_ids),),
            )
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def insert(self, seed: dict) -> Tuple[dict, bool]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO verse_seed
                  (seed_hash, reference, book, chapter, verse_from, verse_to, fallback_text, translation_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (seed_hash) DO NOTHING
                RETURNING {SEED_COLUMNS}
                """,
                (
                    seed["seed_hash"],
                    seed["reference"],
                    seed["book"],
                    seed["chapter"],
                    seed["verse_from"],
                    seed["verse_to"],
                    seed["fallback_text"],
                    seed["translation_id"],
                ),
            )
            row = cur.fetchone()
            if row:
                return _row_to_entry(row), True
            cur.execute(f"SELECT {SEED_COLUMNS} FROM verse_seed WHERE seed_hash = %s", (seed["seed_hash"],))
            return _row_to_entry(cur.fetchone()), False


class SeedSelector:
    kind = ENTRY_KIND

    def __init__(
        self,
        seed_store,
        history_store,
        fetch_seed: Callable[[], dict] = fetch_random_seed,
        max_attempts: int = SEED_MAX_ATTEMPTS,
        wait=None,
    ):
        self.seed_store = seed_store
        self.history_store = history_store
        self.fetch_seed = fetch_seed
        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else wait_exponential(multiplier=0.2, max=2)

    def load_entry(self, entry_id: int) -> Optional[dict]:
        return self.seed_store.get_entry(entry_id)

    def _grow(self, seen: set) -> dict:
        seed = normalize_random_payload(self.fetch_seed())
        entry, created = self.seed_store.insert(seed)
        log_verse_event(
            "verse_seed_fetched",
            {"seed_hash": seed["seed_hash"], "created": created, "entry_id": entry["entry_id"]},
        )
        if entry["entry_id"] in seen:
            raise SeedAlreadySeen(seed["seed_hash"])
        return entry

    def select(self, user_id: str, version: dict) -> dict:
        seen = self.history_store.seen_entry_ids(user_id, ENTRY_KIND)
        entry = self.seed_store.first_unseen(seen)
        if entry:
            return entry

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type((SeedAlreadySeen, BibleApiError)),
        )
        try:
            for attempt in retrying:
                with attempt:
                    entry = self._grow(seen)
        except RetryError as exc:
            log_verse_event("verse_seed_unavailable", {"user_id": user_id, "attempts": self.max_attempts})
            raise AppError(
                "Verse seed temporarily unavailable",
                "VERSE_SEED_UNAVAILABLE",
                503,
            ) from exc
        return entry
