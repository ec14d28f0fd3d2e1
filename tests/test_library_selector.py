import json
import random
from pathlib import Path

import pytest

from fakes import (
    FakeHistoryStore,
    FakeLibraryStore,
    FakePreferenceStore,
    FakeVerseCache,
    default_entries,
    fixed_policy,
    library_entry,
    version,
)
from holyverso.errors import AppError
from holyverso.library import (
    LibrarySelector,
    PoolExhausted,
    SelectionPolicy,
    VerseLibrary,
    always,
    load_library_files,
    probability,
)

RV = version(1, "rv1960", "Reina-Valera 1960", "es")


def _selector(entries=None, policy=None, cache_threshold=2000):
    history = FakeHistoryStore()
    preferences = FakePreferenceStore()
    cache = FakeVerseCache()
    store = FakeLibraryStore(entries if entries is not None else default_entries())
    selector = LibrarySelector(
        VerseLibrary(),
        store,
        history,
        preferences,
        cache,
        policy=policy or fixed_policy(),
        cache_threshold=cache_threshold,
    )
    return selector, history, preferences, cache, store


def _mark_seen(history, user_id, entry_id, day):
    history.create_for_day(user_id, day, "library", entry_id, 1)


def test_library_loads_once(event_log):
    selector, _, _, _, store = _selector()
    selector.select("u1", RV)
    selector.select("u1", RV)
    assert store.list_calls == 1
    assert "library_loaded" in event_log.read_text(encoding="utf-8")


def test_excludes_seen_entries():
    selector, history, _, _, _ = _selector()
    _mark_seen(history, "u1", 1, "2024-01-01")
    _mark_seen(history, "u1", 2, "2024-01-02")
    assert selector.select("u1", RV)["entry_id"] == 3


def test_exhaustion_is_reported():
    selector, history, _, _, _ = _selector()
    for i, entry_id in enumerate((1, 2, 3, 4)):
        _mark_seen(history, "u1", entry_id, f"2024-01-0{i + 1}")
    with pytest.raises(PoolExhausted) as exc:
        selector.select("u1", RV)
    assert exc.value.code == "VERSE_POOL_EXHAUSTED"
    assert exc.value.status_code == 409


def test_empty_library():
    selector, _, _, _, _ = _selector(entries=[])
    with pytest.raises(AppError) as exc:
        selector.select("u1", RV)
    assert exc.value.code == "LIBRARY_EMPTY"


def test_library_seeded_after_startup_is_picked_up():
    selector, _, _, _, store = _selector(entries=[])
    with pytest.raises(AppError):
        selector.select("u1", RV)

    store.entries.append(library_entry(5, "psalms", 23, 1, 1, "peace"))
    assert selector.select("u1", RV)["entry_id"] == 5
    assert store.list_calls == 2


def test_theme_bias_restricts_to_top_themes():
    selector, _, preferences, _, _ = _selector(policy=fixed_policy(theme_bias=True))
    preferences.record("u1", "c", "share")
    assert selector.select("u1", RV)["entry_id"] == 4


def test_theme_bias_off_ignores_preferences():
    selector, _, preferences, _, _ = _selector(policy=fixed_policy(theme_bias=False))
    preferences.record("u1", "c", "share")
    assert selector.select("u1", RV)["entry_id"] == 1


def test_theme_bias_falls_back_when_preferred_themes_are_seen():
    selector, history, preferences, _, _ = _selector(policy=fixed_policy(theme_bias=True))
    preferences.record("u1", "c", "like")
    _mark_seen(history, "u1", 4, "2024-01-01")
    assert selector.select("u1", RV)["entry_id"] == 1


def test_below_threshold_prefers_uncached_entries():
    selector, _, _, cache, _ = _selector(cache_threshold=100)
    cache.put("library", 1, RV["id"], "t", "r")
    cache.put("library", 2, RV["id"], "t", "r")
    assert selector.select("u1", RV)["entry_id"] == 3


def test_above_threshold_coin_prefers_cached_entries():
    selector, _, _, cache, _ = _selector(policy=fixed_policy(prefer_cached=True), cache_threshold=1)
    cache.put("library", 3, RV["id"], "t", "r")
    assert selector.select("u1", RV)["entry_id"] == 3


def test_above_threshold_coin_tails_uses_all_unseen():
    selector, _, _, cache, _ = _selector(policy=fixed_policy(prefer_cached=False), cache_threshold=1)
    cache.put("library", 3, RV["id"], "t", "r")
    assert selector.select("u1", RV)["entry_id"] == 1


def test_cache_policy_falls_back_when_filter_is_empty():
    selector, _, _, cache, _ = _selector(entries=[library_entry(1, "john", 3, 16)], cache_threshold=100)
    cache.put("library", 1, RV["id"], "t", "r")
    assert selector.select("u1", RV)["entry_id"] == 1


def test_probability_policy_is_seedable():
    rng = random.Random(7)
    coin = probability(0.5, rng)
    draws = [coin() for _ in range(50)]
    assert True in draws and False in draws
    assert always(True)() is True
    policy = SelectionPolicy(rng=random.Random(1))
    assert policy.choose([5]) == 5


def test_load_library_files(tmp_path):
    (tmp_path / "love.json").write_text(
        json.dumps(
            [
                {"book": "1 John", "chapter": 4, "verseFrom": 7, "verseTo": 8, "theme": " Love "},
                {"book": "john", "chapter": 3, "verseFrom": 16, "theme": "love"},
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    entries = load_library_files(str(tmp_path))
    assert entries[0] == {
        "book": "1_john",
        "chapter": 4,
        "verse_from": 7,
        "verse_to": 8,
        "theme": "love",
        "reference_key": "1_john_4_7_8",
    }
    assert entries[1]["verse_to"] == 16


def test_load_library_files_rejects_bad_coordinates(tmp_path):
    (tmp_path / "bad.json").write_text(
        json.dumps([{"book": "john", "chapter": 3, "verseFrom": 18, "verseTo": 16, "theme": "love"}]),
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        load_library_files(str(tmp_path))


def test_bundled_library_is_valid():
    entries = load_library_files(str(Path(__file__).resolve().parent.parent / "storage" / "library"))
    keys = [e["reference_key"] for e in entries]
    assert len(entries) >= 40
    assert len(keys) == len(set(keys))
    assert {"faith", "hope", "love", "peace"} <= {e["theme"] for e in entries}
