import re
from typing import Optional

import requests

from holyverso.books import build_range, normalize_book_name
from holyverso.config import (
    BIBLE_API_TIMEOUT_SEC,
    RANDOM_VERSE_API_URL,
    RANDOM_VERSE_TRANSLATION,
    USER_AGENT,
)
from holyverso.errors import BibleApiError
from holyverso.events import log_upstream_event
from holyverso.ref_parser import parse_reference

HEADERS = {"User-Agent": USER_AGENT}


def fetch_random_seed(url: str = RANDOM_VERSE_API_URL, timeout: float = BIBLE_API_TIMEOUT_SEC) -> dict:
    try:
        res = requests.get(url, headers=HEADERS, timeout=timeout)
        res.raise_for_status()
        data = res.json()
    except requests.RequestException as exc:
        log_upstream_event("random_seed_error", {"error": exc.__class__.__name__})
        raise BibleApiError("Random verse request failed") from exc
    except ValueError as exc:
        log_upstream_event("random_seed_error", {"error": "invalid_json"})
        raise BibleApiError("Random verse returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise BibleApiError("Unexpected random verse payload")
    return data


def create_seed_hash(reference: str, translation_id: Optional[str] = None) -> str:
    suffix = (translation_id or RANDOM_VERSE_TRANSLATION).strip().lower()
    return re.sub(r"\s+", "_", reference.strip().lower()) + f"_{suffix}"


def _verse_book(verse: dict) -> Optional[str]:
    for key in ("book_name", "book", "book_id"):
        value = verse.get(key)
        if value:
            return str(value).strip()
    return None


def normalize_random_payload(data: dict) -> dict:
    """Turn a random-verse payload into a seed row.

    Accepts the documented shape and looser ones: the book comes from
    ``book_name``, ``book`` or ``book_id`` of the first verse, and the
    reference label is rebuilt from the verse list when missing.
    """
    verses = [v for v in (data.get("verses") or []) if isinstance(v, dict)]
    reference = (data.get("reference") or "").strip()

    if reference:
        try:
            book_name, chapter, verse_from, verse_to = parse_reference(reference)
        except ValueError:
            reference = ""
    if not reference:
        if not verses:
            raise BibleApiError("Random verse payload has no reference", code="INVALID_REFERENCE", status_code=502)
        first, last = verses[0], verses[-1]
        book_name = _verse_book(first)
        if not book_name or first.get("chapter") is None or first.get("verse") is None:
            raise BibleApiError("Random verse payload has no reference", code="INVALID_REFERENCE", status_code=502)
        chapter = int(first["chapter"])
        verse_from = int(first["verse"])
        verse_to = int(last.get("verse") or verse_from)
        if verse_to == verse_from:
            verse_to = None
        reference = f"{book_name} {chapter}:{build_range(verse_from, verse_to)}"

    text = (data.get("text") or "").strip()
    if not text:
        text = " ".join((v.get("text") or "").strip() for v in verses if v.get("text"))
    text = " ".join(text.split())

    translation_id = (data.get("translation_id") or RANDOM_VERSE_TRANSLATION).strip().lower()
    return {
        "seed_hash": create_seed_hash(reference, translation_id),
        "reference": reference,
        "book": normalize_book_name(book_name),
        "chapter": chapter,
        "verse_from": verse_from,
        "verse_to": verse_to if verse_to is not None else verse_from,
        "fallback_text": text,
        "translation_id": translation_id,
        "translation_name": data.get("translation_name"),
    }
