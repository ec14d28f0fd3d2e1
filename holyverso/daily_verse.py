"""Per-user daily verse orchestration.

Flow for one request: resolve the user's day and Bible version, reuse the
day's assignment when one exists (re-resolving text if the version changed),
otherwise select an unseen entry, resolve its text through the verse cache
and record the assignment.
"""
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from holyverso.chapter import get_chapter_payload
from holyverso.config import TOP_THEMES_LIMIT, VERSE_AUTO_RESET
from holyverso.errors import AppError
from holyverso.events import log_verse_event
from holyverso.library import PoolExhausted
from holyverso.preferences import record_interaction
from holyverso.user_settings import local_date_for
from holyverso.verse_cache import resolve_entry_text
from holyverso.versions import resolve_version


class DailyVerseService:
    def __init__(
        self,
        version_store,
        settings_store,
        history_store,
        verse_cache,
        preference_store,
        client,
        selector,
        entry_loaders: Optional[Dict[str, Callable[[int], Optional[dict]]]] = None,
        auto_reset: bool = VERSE_AUTO_RESET,
    ):
        self.versions = version_store
        self.settings = settings_store
        self.history = history_store
        self.cache = verse_cache
        self.preferences = preference_store
        self.client = client
        self.selector = selector
        self.entry_loaders = dict(entry_loaders or {})
        self.entry_loaders.setdefault(selector.kind, selector.load_entry)
        self.auto_reset = auto_reset

    def load_entry(self, entry_kind: str, entry_id: int) -> Optional[dict]:
        loader = self.entry_loaders.get(entry_kind)
        if loader is None:
            return None
        return loader(entry_id)

    def _ensure_text(self, entry: dict, version: dict):
        try:
            return resolve_entry_text(self.cache, self.client, entry, version)
        except AppError as exc:
            raise AppError(
                "Failed to fetch verse of the day",
                "VERSE_FETCH_FAILED",
                exc.status_code if exc.status_code in (502, 503) else 502,
                details={"cause": exc.code},
            ) from exc

    def _select(self, user_id: str, version: dict) -> dict:
        try:
            return self.selector.select(user_id, version)
        except PoolExhausted:
            if not self.auto_reset:
                raise
            archived = self.history.reset(user_id)
            log_verse_event("verse_history_auto_reset", {"user_id": user_id, "archived": archived})
            return self.selector.select(user_id, version)

    def _payload(self, day: date, version: dict, entry: dict, cached: dict, source: str, assignment: dict) -> dict:
        return {
            "date": day.isoformat(),
            "entry_id": entry["entry_id"],
            "entry_kind": entry["entry_kind"],
            "reference": cached["reference"],
            "text": cached["text"],
            "version_id": version["id"],
            "version_code": version["api_code"],
            "version_name": version["name"],
            "theme": entry.get("theme"),
            "source": source,
            "liked": bool(assignment.get("liked")),
            "shared": bool(assignment.get("shared")),
        }

    def _from_assignment(self, user_id: str, assignment: dict, version: dict, day: date) -> dict:
        entry = self.load_entry(assignment["entry_kind"], assignment["entry_id"])
        if not entry:
            raise AppError("Today's verse reference not found", "TODAY_VERSE_NOT_FOUND", 404)

        if assignment["version_id"] == version["id"]:
            cached = self.cache.get(entry["entry_kind"], entry["entry_id"], version["id"])
            if not cached:
                log_verse_event(
                    "verse_cache_missing",
                    {"user_id": user_id, "entry_id": entry["entry_id"], "version": version["api_code"]},
                )
                raise AppError("Cached verse text missing", "VERSE_CACHE_MISSING", 500)
            log_verse_event("daily_verse_reused", {"user_id": user_id, "entry_id": entry["entry_id"]})
            return self._payload(day, version, entry, cached, "cache", assignment)

        cached, source = self._ensure_text(entry, version)
        assignment = self.history.update_version(assignment["id"], version["id"])
        log_verse_event(
            "daily_verse_reversioned",
            {"user_id": user_id, "entry_id": entry["entry_id"], "version": version["api_code"]},
        )
        return self._payload(day, version, entry, cached, source, assignment)

    def get_daily_verse(
        self,
        user_id: str,
        version_id: Optional[int] = None,
        language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        settings = self.settings.get(user_id) or {}
        day = local_date_for(settings.get("timezone"), now)
        version = resolve_version(self.versions, version_id, settings.get("preferred_version_id"), language)

        assignment = self.history.find_for_day(user_id, day)
        if assignment:
            return self._from_assignment(user_id, assignment, version, day)

        entry = self._select(user_id, version)
        cached, source = self._ensure_text(entry, version)
        created = self.history.create_for_day(user_id, day, entry["entry_kind"], entry["entry_id"], version["id"])
        if created is None:
            assignment = self.history.find_for_day(user_id, day)
            log_verse_event("daily_verse_race_lost", {"user_id": user_id, "day": day.isoformat()})
            return self._from_assignment(user_id, assignment, version, day)

        log_verse_event(
            "daily_verse_assigned",
            {
                "user_id": user_id,
                "day": day.isoformat(),
                "entry_kind": entry["entry_kind"],
                "entry_id": entry["entry_id"],
                "version": version["api_code"],
                "source": source,
            },
        )
        return self._payload(day, version, entry, cached, source, created)

    def get_today_chapter(
        self, user_id: str, chapter_cache, language: Optional[str] = None, now: Optional[datetime] = None
    ) -> dict:
        """Chapter of today's verse in the version it was delivered in.

        Reads the day's assignment as stored; only a user with no assignment yet
        goes through ``get_daily_verse``.
        """
        settings = self.settings.get(user_id) or {}
        today = self.history.find_for_day(user_id, local_date_for(settings.get("timezone"), now))
        if not today:
            today = self.get_daily_verse(user_id, language=language, now=now)
        entry = self.load_entry(today["entry_kind"], today["entry_id"])
        if not entry:
            raise AppError("Invalid daily verse reference", "INVALID_REFERENCE", 400)
        version = self.versions.get(today["version_id"])
        if not version:
            raise AppError("Bible version not found", "BIBLE_VERSION_NOT_FOUND", 404)
        return get_chapter_payload(self.client, chapter_cache, entry, version)

    def like(self, user_id: str, entry_id: int) -> dict:
        return record_interaction(
            self.history, self.preferences, self.load_entry, user_id, self.selector.kind, entry_id, "like"
        )

    def share(self, user_id: str, entry_id: int) -> dict:
        return record_interaction(
            self.history, self.preferences, self.load_entry, user_id, self.selector.kind, entry_id, "share"
        )

    def theme_preferences(self, user_id: str, limit: int = TOP_THEMES_LIMIT) -> List[dict]:
        return [
            {
                "theme": row["theme"],
                "like_count": int(row["like_count"]),
                "share_count": int(row["share_count"]),
                "score": float(row["score"]),
                "last_interaction": row["last_interaction"].isoformat() if row.get("last_interaction") else None,
            }
            for row in self.preferences.top_themes(user_id, limit)
        ]

    def reset_history(self, user_id: str) -> int:
        archived = self.history.reset(user_id)
        log_verse_event("verse_history_reset", {"user_id": user_id, "archived": archived})
        return archived
