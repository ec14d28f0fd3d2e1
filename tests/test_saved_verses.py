import pytest

from fakes import FakeConn, FakeCursor, Harness
from holyverso.chapter_cache import ChapterCache
from holyverso.errors import AppError
from holyverso.saved_verses import (
    SavedVerseStore,
    get_saved_verse_chapter,
    list_saved_verses,
    remove_saved_verse,
    save_verse,
)


def _harness_with_preference():
    h = Harness()
    h.settings.update("u1", preferred_version_id=1)
    return h


def test_save_requires_explicit_preferred_version():
    h = Harness()
    with pytest.raises(AppError) as exc:
        save_verse(h.service, h.saved, "u1", 1)
    assert exc.value.code == "NO_VERSION_SELECTED"
    assert exc.value.status_code == 400


def test_save_resolves_text_through_cache():
    h = _harness_with_preference()
    saved = save_verse(h.service, h.saved, "u1", 3)
    assert saved["reference"] == "1 Corintios 13:4-7"
    assert saved["text"].startswith("rv1960:1corinthians 13:4")
    assert saved["version_code"] == "rv1960"
    assert saved["theme"] == "b"
    assert ("library", 3, 1) in h.cache.rows

    save_verse(h.service, h.saved, "u1", 3)
    assert len(h.saved.rows) == 1
    assert len(h.client.verse_calls) == 1


def test_save_unknown_entry():
    h = _harness_with_preference()
    with pytest.raises(AppError) as exc:
        save_verse(h.service, h.saved, "u1", 99)
    assert exc.value.code == "LIBRARY_VERSE_NOT_FOUND"


@pytest.mark.parametrize("bad_id", [0, -4, "7", True])
def test_invalid_verse_id(bad_id):
    h = _harness_with_preference()
    with pytest.raises(AppError) as exc:
        save_verse(h.service, h.saved, "u1", bad_id)
    assert exc.value.code == "INVALID_VERSE_ID"


def test_remove_is_idempotent():
    h = _harness_with_preference()
    save_verse(h.service, h.saved, "u1", 1)
    assert remove_saved_verse(h.service, h.saved, "u1", 1) is True
    assert remove_saved_verse(h.service, h.saved, "u1", 1) is False


def test_list_pages_newest_first():
    h = _harness_with_preference()
    for entry_id in (1, 2, 3, 4):
        save_verse(h.service, h.saved, "u1", entry_id)

    page = list_saved_verses(h.saved, "u1", limit=3)
    assert [item["entry_id"] for item in page["items"]] == [4, 3, 2]
    assert page["next_cursor"] == page["items"][-1]["id"]

    rest = list_saved_verses(h.saved, "u1", cursor=page["next_cursor"], limit=3)
    assert [item["entry_id"] for item in rest["items"]] == [1]
    assert rest["next_cursor"] is None


def test_list_limits_are_clamped():
    h = _harness_with_preference()
    save_verse(h.service, h.saved, "u1", 1)
    assert len(list_saved_verses(h.saved, "u1", limit=0)["items"]) == 1
    assert len(list_saved_verses(h.saved, "u1", limit=500)["items"]) == 1


def test_unknown_cursor():
    h = _harness_with_preference()
    with pytest.raises(AppError) as exc:
        list_saved_verses(h.saved, "u1", cursor=42)
    assert exc.value.code == "CURSOR_NOT_FOUND"


def test_saved_verse_chapter():
    h = _harness_with_preference()
    save_verse(h.service, h.saved, "u1", 4)
    chapter = get_saved_verse_chapter(h.service, h.saved, ChapterCache(ttl_sec=900), "u1", 4)
    assert chapter["reference"] == "Filipenses 4"
    assert h.client.chapter_calls == [("rv1960", "philippians", 4)]


def test_chapter_of_unsaved_verse():
    h = _harness_with_preference()
    with pytest.raises(AppError) as exc:
        get_saved_verse_chapter(h.service, h.saved, ChapterCache(ttl_sec=900), "u1", 4)
    assert exc.value.code == "SAVED_VERSE_NOT_FOUND"
    assert exc.value.status_code == 404


def test_list_page_sql_uses_keyset_cursor():
    cursor = FakeCursor(rows=[])
    store = SavedVerseStore(FakeConn(cursor))
    store.list_page("u1", {"id": 5, "saved_at": "2024-01-01T00:00:00+00:00"}, 21)
    assert "s.saved_at < %s OR (s.saved_at = %s AND s.id < %s)" in cursor.queries[0]
    assert cursor.params[0] == ("u1", "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00", 5, 21)
