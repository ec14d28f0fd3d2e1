import time
from typing import List, Optional

import requests

from holyverso.books import build_range
from holyverso.config import (
    BIBLE_API_BASE_URL,
    BIBLE_API_SLOW_MS,
    BIBLE_API_TIMEOUT_SEC,
    USER_AGENT,
)
from holyverso.errors import BibleApiError
from holyverso.events import log_upstream_event


class BibleApiClient:
    """Thin client for the upstream verse text API.

    Every call carries a bounded timeout and either returns decoded JSON or
    raises ``BibleApiError``; nothing is retried here.
    """

    def __init__(self, base_url: str = BIBLE_API_BASE_URL, timeout: float = BIBLE_API_TIMEOUT_SEC, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def _get(self, path: str):
        url = f"{self.base_url}{path}"
        start = time.perf_counter()
        try:
            res = self.session.get(url, timeout=self.timeout)
            res.raise_for_status()
            data = res.json()
        except requests.RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            log_upstream_event(
                "bible_api_error",
                {"path": path, "status": status, "error": exc.__class__.__name__},
            )
            raise BibleApiError(f"Bible API request failed: {path}", details={"status": status}) from exc
        except ValueError as exc:
            log_upstream_event("bible_api_error", {"path": path, "error": "invalid_json"})
            raise BibleApiError(f"Bible API returned invalid JSON: {path}") from exc
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_upstream_event("bible_api_latency", {"path": path, "elapsed_ms": elapsed_ms})
        if elapsed_ms > BIBLE_API_SLOW_MS:
            log_upstream_event("bible_api_slow", {"path": path, "elapsed_ms": elapsed_ms})
        return data

    def get_versions(self) -> List[dict]:
        data = self._get("/versions")
        if not isinstance(data, list):
            raise BibleApiError("Unexpected versions payload")
        return data

    def get_books(self) -> List[dict]:
        data = self._get("/books")
        if not isinstance(data, list):
            raise BibleApiError("Unexpected books payload")
        return data

    def get_verses(
        self,
        version_code: str,
        book: str,
        chapter: int,
        verse_from: int,
        verse_to: Optional[int] = None,
    ) -> List[dict]:
        verse_range = build_range(verse_from, verse_to)
        data = self._get(f"/read/{version_code}/{book}/{chapter}/{verse_range}")
        if isinstance(data, dict):
            data = data.get("verses") or data.get("vers") or []
        if not isinstance(data, list):
            raise BibleApiError("Unexpected verses payload")
        return data

    def get_chapter(self, version_code: str, book: str, chapter: int) -> dict:
        data = self._get(f"/read/{version_code}/{book}/{chapter}")
        if isinstance(data, list):
            verses, num_chapters = data, None
        elif isinstance(data, dict):
            verses = data.get("verses") or data.get("vers") or []
            book_info = data.get("book") if isinstance(data.get("book"), dict) else {}
            num_chapters = data.get("num_chapters") or data.get("numChapters") or book_info.get("chapters")
        else:
            raise BibleApiError("Unexpected chapter payload")
        return {
            "num_chapters": num_chapters,
            "verses": [
                {
                    "number": v.get("number"),
                    "text": (v.get("verse") or v.get("text") or "").strip(),
                    "study": v.get("study"),
                }
                for v in verses
                if isinstance(v, dict)
            ],
        }


def compose_verse_text(verses: List[dict]) -> str:
    parts = []
    for v in verses:
        text = (v.get("verse") or v.get("text") or "").strip()
        if text:
            parts.append(text)
    return " ".join(parts)
