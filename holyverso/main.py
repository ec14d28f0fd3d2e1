import os
import time
import traceback
from typing import Optional

import psycopg2
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from holyverso.bible_client import BibleApiClient
from holyverso.chapter_cache import build_chapter_cache
from holyverso.config import API_TITLE, API_VERSION, DB, TOP_THEMES_LIMIT, VERSE_SELECTOR
from holyverso.daily_verse import DailyVerseService
from holyverso.errors import AppError
from holyverso.events import log_api_event, reset_event_log
from holyverso.history import HistoryStore
from holyverso.jwt_utils import user_id_from_token
from holyverso.library import ENTRY_KIND as LIBRARY_KIND
from holyverso.library import LibrarySelector, LibraryStore, VerseLibrary
from holyverso.models import (
    BibleBooksResponse,
    BibleVersionsResponse,
    ChapterResponse,
    DailyVerseResponse,
    InteractionResponse,
    PreferencesResponse,
    ResetResponse,
    SavedVerseDeleteResponse,
    SavedVerseListResponse,
    SavedVerseResponse,
    UserSettingsResponse,
    UserSettingsUpdateRequest,
)
from holyverso.preferences import PreferenceStore
from holyverso.saved_verses import (
    SavedVerseStore,
    get_saved_verse_chapter,
    list_saved_verses,
    remove_saved_verse,
    save_verse,
)
from holyverso.seeds import ENTRY_KIND as SEED_KIND
from holyverso.seeds import SeedSelector, SeedStore
from holyverso.user_settings import UserSettingsStore, set_preferred_version, set_timezone
from holyverso.verse_cache import VerseCache
from holyverso.versions import VersionStore

app = FastAPI(title=API_TITLE, version=API_VERSION)

CORS_ALLOW_ALL = os.getenv("CORS_ALLOW_ALL", "1") == "1"
if CORS_ALLOW_ALL:
    allow_origins = ["*"]
else:
    raw_origins = os.getenv(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )
    allow_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

EVENT_LOG_RESET_ON_STARTUP = os.getenv("EVENT_LOG_RESET_ON_STARTUP", "0") == "1"

# process-lifetime collaborators, handed to each request through dependencies
app.state.chapter_cache = build_chapter_cache()
app.state.verse_library = VerseLibrary()
app.state.bible_client = BibleApiClient()


@app.on_event("startup")
def _reset_event_log_on_startup() -> None:
    if EVENT_LOG_RESET_ON_STARTUP:
        reset_event_log("startup")


@app.exception_handler(AppError)
def handle_app_error(_request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(HTTPException)
def handle_http_exception(_request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
def handle_validation_exception(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "invalid request",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


@app.exception_handler(Exception)
def handle_unexpected_exception(request: Request, exc: Exception):
    log_api_event(
        "internal_error",
        {
            "path": request.url.path,
            "error": exc.__class__.__name__,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        },
    )
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal Server Error"}},
    )


def get_conn():
    conn = psycopg2.connect(**DB)
    try:
        yield conn
    finally:
        conn.close()


def _get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def require_user(request: Request) -> str:
    user_id = user_id_from_token(_get_bearer_token(request))
    if not user_id:
        raise AppError("Authentication required", "AUTH_REQUIRED", 401)
    return user_id


def _primary_language(accept_language: Optional[str]) -> Optional[str]:
    if not accept_language:
        return None
    tag = accept_language.split(",")[0].split(";")[0].strip()
    return tag or None


def build_daily_verse_service(
    conn, library: VerseLibrary, client, selector_kind: str = VERSE_SELECTOR
) -> DailyVerseService:
    history = HistoryStore(conn)
    preferences = PreferenceStore(conn)
    cache = VerseCache(conn)
    library_store = LibraryStore(conn)
    seed_store = SeedStore(conn)
    if selector_kind == SEED_KIND:
        selector = SeedSelector(seed_store, history)
    else:
        selector = LibrarySelector(library, library_store, history, preferences, cache)
    return DailyVerseService(
        VersionStore(conn),
        UserSettingsStore(conn),
        history,
        cache,
        preferences,
        client,
        selector,
        entry_loaders={
            LIBRARY_KIND: lambda entry_id: library.get(library_store, entry_id),
            SEED_KIND: seed_store.get_entry,
        },
    )


def get_daily_verse_service(request: Request, conn=Depends(get_conn)) -> DailyVerseService:
    state = request.app.state
    return build_daily_verse_service(conn, state.verse_library, state.bible_client)


def get_saved_verse_store(conn=Depends(get_conn)) -> SavedVerseStore:
    return SavedVerseStore(conn)


def get_chapter_cache(request: Request):
    return request.app.state.chapter_cache


def get_bible_client(request: Request) -> BibleApiClient:
    return request.app.state.bible_client


def _settings_payload(settings: dict) -> dict:
    updated_at = settings.get("updated_at")
    return {
        "preferred_version_id": settings.get("preferred_version_id"),
        "timezone": settings.get("timezone"),
        "updated_at": updated_at.isoformat() if updated_at else None,
    }


@app.get("/v1/verse/today", response_model=DailyVerseResponse)
def get_today_verse(
    version_id: Optional[int] = Query(None, ge=1),
    accept_language: Optional[str] = Header(None),
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    start = time.perf_counter()
    verse = service.get_daily_verse(user_id, version_id=version_id, language=_primary_language(accept_language))
    conn.commit()
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    log_api_event(
        "verse_today",
        {
            "user_id": user_id,
            "entry_id": verse["entry_id"],
            "version": verse["version_code"],
            "source": verse["source"],
            "elapsed_ms": elapsed_ms,
        },
    )
    return {"data": verse}


@app.get("/v1/verse/today/chapter", response_model=ChapterResponse)
def get_today_chapter(
    accept_language: Optional[str] = Header(None),
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    chapter_cache=Depends(get_chapter_cache),
    conn=Depends(get_conn),
):
    chapter = service.get_today_chapter(user_id, chapter_cache, language=_primary_language(accept_language))
    conn.commit()
    log_api_event("verse_today_chapter", {"user_id": user_id, "reference": chapter["reference"]})
    return {"data": chapter}


@app.get("/v1/verse/preferences", response_model=PreferencesResponse)
def get_preferences(
    limit: int = Query(TOP_THEMES_LIMIT, ge=1, le=50),
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
):
    items = service.theme_preferences(user_id, limit)
    log_api_event("verse_preferences", {"user_id": user_id, "count": len(items)})
    return {"data": items}


@app.post("/v1/verse/history/reset", response_model=ResetResponse)
def reset_history(
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    archived = service.reset_history(user_id)
    conn.commit()
    log_api_event("verse_history_reset", {"user_id": user_id, "archived": archived})
    return {"data": {"archived": archived}}


@app.get("/v1/verse/saved", response_model=SavedVerseListResponse)
def get_saved_verses(
    cursor: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None),
    user_id: str = Depends(require_user),
    saved_store: SavedVerseStore = Depends(get_saved_verse_store),
):
    page = list_saved_verses(saved_store, user_id, cursor, limit)
    log_api_event("saved_verse_list", {"user_id": user_id, "count": len(page["items"])})
    return {"data": page}


@app.post("/v1/verse/{entry_id}/like", response_model=InteractionResponse)
def like_verse(
    entry_id: int,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    result = service.like(user_id, entry_id)
    conn.commit()
    log_api_event("verse_like", {"user_id": user_id, "entry_id": entry_id})
    return {"data": result}


@app.post("/v1/verse/{entry_id}/share", response_model=InteractionResponse)
def share_verse(
    entry_id: int,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    result = service.share(user_id, entry_id)
    conn.commit()
    log_api_event("verse_share", {"user_id": user_id, "entry_id": entry_id})
    return {"data": result}


@app.post("/v1/verse/{entry_id}/save", response_model=SavedVerseResponse)
def save_verse_api(
    entry_id: int,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    saved_store: SavedVerseStore = Depends(get_saved_verse_store),
    conn=Depends(get_conn),
):
    saved = save_verse(service, saved_store, user_id, entry_id)
    conn.commit()
    log_api_event("saved_verse_create", {"user_id": user_id, "entry_id": entry_id})
    return {"data": saved}


@app.delete("/v1/verse/{entry_id}/save", response_model=SavedVerseDeleteResponse)
def delete_saved_verse(
    entry_id: int,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    saved_store: SavedVerseStore = Depends(get_saved_verse_store),
    conn=Depends(get_conn),
):
    deleted = remove_saved_verse(service, saved_store, user_id, entry_id)
    conn.commit()
    log_api_event("saved_verse_delete", {"user_id": user_id, "entry_id": entry_id, "deleted": deleted})
    return {"data": {"deleted": deleted}}


@app.get("/v1/verse/{entry_id}/chapter", response_model=ChapterResponse)
def get_saved_chapter(
    entry_id: int,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    saved_store: SavedVerseStore = Depends(get_saved_verse_store),
    chapter_cache=Depends(get_chapter_cache),
):
    chapter = get_saved_verse_chapter(service, saved_store, chapter_cache, user_id, entry_id)
    log_api_event("saved_verse_chapter", {"user_id": user_id, "entry_id": entry_id})
    return {"data": chapter}


@app.get("/v1/bible/versions", response_model=BibleVersionsResponse)
def list_versions(service: DailyVerseService = Depends(get_daily_verse_service)):
    rows = service.versions.list_active()
    log_api_event("bible_versions", {"count": len(rows)})
    return {
        "data": [
            {"id": row["id"], "api_code": row["api_code"], "name": row["name"], "language": row["language"]}
            for row in rows
        ]
    }


@app.get("/v1/bible/books", response_model=BibleBooksResponse)
def list_books(
    _user_id: str = Depends(require_user),
    client: BibleApiClient = Depends(get_bible_client),
):
    books = client.get_books()
    log_api_event("bible_books", {"count": len(books)})
    return {
        "data": [
            {
                "name": book["name"],
                "abbrev": book["abbrev"],
                "chapters": book["chapters"],
                "testament": book.get("testament"),
            }
            for book in books
        ]
    }


@app.get("/v1/widget/verse", response_model=DailyVerseResponse)
def get_widget_verse(
    version_id: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    verse = service.get_daily_verse(user_id, version_id=version_id)
    conn.commit()
    log_api_event("widget_verse", {"user_id": user_id, "entry_id": verse["entry_id"], "version": verse["version_code"]})
    return {"data": verse}


@app.get("/v1/users/me/settings", response_model=UserSettingsResponse)
def get_user_settings_api(
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    settings = service.settings.get(user_id)
    conn.commit()
    log_api_event("user_settings_get", {"user_id": user_id})
    return {"data": _settings_payload(settings)}


@app.patch("/v1/users/me/settings", response_model=UserSettingsResponse)
def update_user_settings_api(
    payload: UserSettingsUpdateRequest,
    user_id: str = Depends(require_user),
    service: DailyVerseService = Depends(get_daily_verse_service),
    conn=Depends(get_conn),
):
    fields = payload.model_fields_set
    settings = service.settings.get(user_id)
    if "preferred_version_id" in fields:
        if payload.preferred_version_id is None:
            settings = service.settings.update(user_id, preferred_version_id=None)
        else:
            settings = set_preferred_version(
                service.settings, service.versions, user_id, payload.preferred_version_id
            )
    if "timezone" in fields:
        settings = set_timezone(service.settings, user_id, payload.timezone)
    conn.commit()
    log_api_event(
        "user_settings_update",
        {
            "user_id": user_id,
            "preferred_version_id": settings.get("preferred_version_id"),
            "timezone": settings.get("timezone"),
        },
    )
    return {"data": _settings_payload(settings)}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "9000"))
    uvicorn.run("holyverso.main:app", host="0.0.0.0", port=port, reload=True)
