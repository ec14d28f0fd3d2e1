from holyverso.books import display_name, locale_for_language, to_upstream_code
from holyverso.chapter_cache import build_cache_key
from holyverso.errors import AppError
from holyverso.events import log_verse_event


def get_chapter_payload(client, chapter_cache, entry: dict, version: dict) -> dict:
    """Full chapter containing ``entry``, served from the chapter cache when warm."""
    api_book = to_upstream_code(entry["book"])
    cache_key = build_cache_key(version["api_code"], api_book, entry["chapter"])
    cached = chapter_cache.get(cache_key)
    if cached:
        log_verse_event("chapter_cache_hit", {"key": cache_key})
        return cached

    try:
        chapter_data = client.get_chapter(version["api_code"], api_book, entry["chapter"])
    except AppError as exc:
        raise AppError("Failed to fetch chapter from Bible API", "BIBLE_API_ERROR", 502) from exc

    if not chapter_data.get("verses"):
        raise AppError("Chapter content unavailable", "BIBLE_API_EMPTY", 502)

    book_name = display_name(entry["book"], locale_for_language(version.get("language")))
    payload = {
        "book": entry["book"],
        "chapter": entry["chapter"],
        "reference": f"{book_name} {entry['chapter']}",
        "num_chapters": chapter_data.get("num_chapters"),
        "version_code": version["api_code"],
        "version_name": version["name"],
        "verses": chapter_data["verses"],
    }
    chapter_cache.set(cache_key, payload)
    log_verse_event("chapter_cache_miss", {"key": cache_key})
    return payload
