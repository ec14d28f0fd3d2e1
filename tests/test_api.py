import pytest
from fastapi.testclient import TestClient

import holyverso.main as main_mod
from fakes import FakeBibleClient, FakeConn, Harness
from holyverso.chapter_cache import ChapterCache
from holyverso.jwt_utils import issue_access_token


@pytest.fixture
def api():
    harness = Harness()
    conn = FakeConn()

    def _conn():
        yield conn

    main_mod.app.dependency_overrides[main_mod.get_conn] = _conn
    main_mod.app.dependency_overrides[main_mod.get_daily_verse_service] = lambda: harness.service
    main_mod.app.dependency_overrides[main_mod.get_saved_verse_store] = lambda: harness.saved
    main_mod.app.dependency_overrides[main_mod.get_chapter_cache] = lambda: ChapterCache(ttl_sec=900)
    main_mod.app.dependency_overrides[main_mod.get_bible_client] = lambda: harness.client
    client = TestClient(main_mod.app)
    token = issue_access_token("user-1")
    client.headers["Authorization"] = f"Bearer {token}"
    yield client, harness, conn
    main_mod.app.dependency_overrides.clear()


def test_requires_bearer_token(api):
    client, _, _ = api
    res = client.get("/v1/verse/today", headers={"Authorization": ""})
    assert res.status_code == 401
    assert res.json() == {"error": {"message": "Authentication required", "code": "AUTH_REQUIRED"}}

    res = client.get("/v1/verse/today", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_today_verse_envelope_and_commit(api):
    client, harness, conn = api
    res = client.get("/v1/verse/today")
    assert res.status_code == 200
    body = res.json()["data"]
    assert body["reference"] == "Juan 3:16"
    assert body["version_code"] == "rv1960"
    assert body["source"] == "api"
    assert conn.commits == 1

    again = client.get("/v1/verse/today").json()["data"]
    assert again["entry_id"] == body["entry_id"]
    assert again["source"] == "cache"


def test_accept_language_selects_version(api):
    client, _, _ = api
    res = client.get("/v1/verse/today", headers={"Accept-Language": "en-US,en;q=0.9"})
    assert res.json()["data"]["version_code"] == "kjv"


def test_validation_error_envelope(api):
    client, _, _ = api
    res = client.get("/v1/verse/today", params={"version_id": 0})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_upstream_failure_does_not_commit(api):
    client, harness, conn = api
    harness.service.client = FakeBibleClient(empty=True)
    res = client.get("/v1/verse/today")
    assert res.status_code == 502
    assert res.json()["error"]["code"] == "VERSE_FETCH_FAILED"
    assert conn.commits == 0


def test_like_share_and_preferences(api):
    client, _, _ = api
    res = client.post("/v1/verse/1/like")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "HISTORY_NOT_FOUND"

    entry_id = client.get("/v1/verse/today").json()["data"]["entry_id"]
    assert client.post(f"/v1/verse/{entry_id}/like").json()["data"]["score"] == 1.0
    assert client.post(f"/v1/verse/{entry_id}/share").json()["data"]["score"] == 3.0

    prefs = client.get("/v1/verse/preferences").json()["data"]
    assert prefs[0]["theme"] == "a"
    assert prefs[0]["share_count"] == 1


def test_history_reset(api):
    client, harness, _ = api
    client.get("/v1/verse/today")
    res = client.post("/v1/verse/history/reset")
    assert res.json() == {"data": {"archived": 1}}
    assert harness.history.seen_entry_ids("user-1", "library") == set()


def test_today_chapter(api):
    client, _, _ = api
    res = client.get("/v1/verse/today/chapter")
    assert res.status_code == 200
    assert res.json()["data"]["reference"] == "Juan 3"


def test_settings_roundtrip(api):
    client, _, _ = api
    assert client.get("/v1/users/me/settings").json()["data"]["preferred_version_id"] is None

    res = client.patch("/v1/users/me/settings", json={"preferred_version_id": 2, "timezone": "Europe/Madrid"})
    assert res.status_code == 200
    assert res.json()["data"]["preferred_version_id"] == 2
    assert res.json()["data"]["timezone"] == "Europe/Madrid"

    res = client.patch("/v1/users/me/settings", json={"timezone": "Nowhere/Land"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_TIMEZONE"

    res = client.patch("/v1/users/me/settings", json={"preferred_version_id": 77})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "BIBLE_VERSION_NOT_FOUND"

    res = client.patch("/v1/users/me/settings", json={"preferred_version_id": None})
    assert res.json()["data"]["preferred_version_id"] is None
    assert res.json()["data"]["timezone"] == "Europe/Madrid"


def test_versions_listing(api):
    client, _, _ = api
    data = client.get("/v1/bible/versions").json()["data"]
    assert [v["api_code"] for v in data] == ["kjv", "rv1960"]


def test_saved_verse_flow(api):
    client, _, _ = api
    res = client.post("/v1/verse/2/save")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "NO_VERSION_SELECTED"

    client.patch("/v1/users/me/settings", json={"preferred_version_id": 1})
    saved = client.post("/v1/verse/2/save").json()["data"]
    assert saved["reference"] == "Salmos 23:1"

    page = client.get("/v1/verse/saved").json()["data"]
    assert [item["entry_id"] for item in page["items"]] == [2]
    assert page["next_cursor"] is None

    assert client.get("/v1/verse/2/chapter").json()["data"]["reference"] == "Salmos 23"
    assert client.delete("/v1/verse/2/save").json() == {"data": {"deleted": True}}
    assert client.get("/v1/verse/2/chapter").status_code == 404

    res = client.post("/v1/verse/0/save")
    assert res.json()["error"]["code"] == "INVALID_VERSE_ID"


def test_unexpected_error_is_generic(api, event_log):
    client, harness, _ = api

    class _Broken:
        def get_daily_verse(self, *_args, **_kwargs):
            raise RuntimeError("secret detail")

    main_mod.app.dependency_overrides[main_mod.get_daily_verse_service] = lambda: _Broken()
    client = TestClient(main_mod.app, raise_server_exceptions=False)
    token = issue_access_token("user-1")
    res = client.get("/v1/verse/today", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 500
    assert res.json() == {"error": {"code": "INTERNAL_ERROR", "message": "Internal Server Error"}}
    assert "secret detail" not in res.text
    log = event_log.read_text(encoding="utf-8")
    assert "internal_error" in log
    assert "RuntimeError" in log


def test_today_chapter_follows_today_version(api):
    client, harness, _ = api
    headers = {"Accept-Language": "en-US,en;q=0.9"}
    assert client.get("/v1/verse/today", headers=headers).json()["data"]["version_code"] == "kjv"

    res = client.get("/v1/verse/today/chapter", headers=headers)
    assert res.json()["data"]["version_code"] == "kjv"
    res = client.get("/v1/verse/today/chapter")
    assert res.json()["data"]["version_code"] == "kjv"
    assert harness.history.rows[0]["version_id"] == 2


def test_bible_books(api):
    client, _, _ = api
    data = client.get("/v1/bible/books").json()["data"]
    assert [b["abbrev"] for b in data] == ["gn", "jn"]
    assert data[1] == {"name": "John", "abbrev": "jn", "chapters": 21, "testament": "New Testament"}


def test_bible_books_upstream_failure(api):
    client, _, _ = api
    main_mod.app.dependency_overrides[main_mod.get_bible_client] = lambda: FakeBibleClient(fail=True)
    res = client.get("/v1/bible/books")
    assert res.status_code == 502
    assert res.json()["error"]["code"] == "BIBLE_API_ERROR"


def test_widget_verse_matches_today(api):
    client, _, conn = api
    widget = client.get("/v1/widget/verse").json()["data"]
    today = client.get("/v1/verse/today").json()["data"]
    assert widget["entry_id"] == today["entry_id"]
    assert widget["version_code"] == "rv1960"
    assert conn.commits >= 1

    res = client.get("/v1/widget/verse", params={"version_id": 2})
    assert res.json()["data"]["version_code"] == "kjv"
    assert res.json()["data"]["entry_id"] == today["entry_id"]

    assert client.get("/v1/widget/verse", headers={"Authorization": ""}).status_code == 401
