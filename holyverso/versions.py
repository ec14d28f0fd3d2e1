from typing import List, Optional

from psycopg2.extras import RealDictCursor

from holyverso.config import DEFAULT_VERSION_CODE, DEFAULT_VERSION_NAMES
from holyverso.errors import AppError
from holyverso.events import log_verse_event

VERSION_COLUMNS = "id, api_code, name, language, is_active"


class VersionStore:
    def __init__(self, conn):
        self.conn = conn

    def _fetchone(self, query: str, params: tuple) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def get(self, version_id: int) -> Optional[dict]:
        return self._fetchone(
            f"SELECT {VERSION_COLUMNS} FROM bible_version WHERE id = %s",
            (version_id,),
        )

    def find_active_by_code(self, api_code: str) -> Optional[dict]:
        return self._fetchone(
            f"SELECT {VERSION_COLUMNS} FROM bible_version WHERE api_code = %s AND is_active",
            (api_code,),
        )

    def find_active_by_name(self, name_part: str) -> Optional[dict]:
        return self._fetchone(
            f"""
            SELECT {VERSION_COLUMNS}
            FROM bible_version
            WHERE is_active AND name ILIKE %s
            ORDER BY id
            LIMIT 1
            """,
            (f"%{name_part}%",),
        )

    def find_active_by_language(self, language: str) -> Optional[dict]:
        return self._fetchone(
            f"""
            SELECT {VERSION_COLUMNS}
            FROM bible_version
            WHERE is_active AND lower(language) LIKE %s
            ORDER BY id
            LIMIT 1
            """,
            (f"{language.lower()}%",),
        )

    def first_active(self) -> Optional[dict]:
        return self._fetchone(
            f"SELECT {VERSION_COLUMNS} FROM bible_version WHERE is_active ORDER BY id LIMIT 1",
            (),
        )

    def list_active(self) -> List[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT {VERSION_COLUMNS} FROM bible_version WHERE is_active ORDER BY name"
            )
            return cur.fetchall()

    def upsert(self, api_code: str, name: str, language: str) -> bool:
        """Insert or refresh one version; returns True when a row was created."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO bible_version (api_code, name, language, is_active)
                VALUES (%s, %s, %s, TRUE)
                ON CONFLICT (api_code)
                DO UPDATE SET
                  name = EXCLUDED.name,
                  language = EXCLUDED.language,
                  is_active = TRUE,
                  updated_at = now()
                RETURNING (xmax = 0) AS created
                """,
                (api_code, name, language),
            )
            row = cur.fetchone()
        return bool(row[0]) if row else False


def get_active_version_or_raise(store, version_id: int) -> dict:
    version = store.get(version_id)
    if not version or not version.get("is_active"):
        raise AppError("Bible version not found or inactive", "BIBLE_VERSION_NOT_FOUND", 404)
    return version


def find_default_version(store) -> Optional[dict]:
    version = store.find_active_by_code(DEFAULT_VERSION_CODE)
    if version:
        return version
    version = store.find_active_by_code(DEFAULT_VERSION_CODE.upper())
    if version:
        return version
    for name in DEFAULT_VERSION_NAMES:
        version = store.find_active_by_name(name)
        if version:
            return version
    return None


def resolve_version(
    store,
    requested_version_id: Optional[int] = None,
    preferred_version_id: Optional[int] = None,
    language: Optional[str] = None,
) -> dict:
    """Pick the effective Bible version for a request.

    An explicitly requested version must exist and be active. A deactivated
    preference falls through to the default chain: language match, the
    canonical default code, then any active version.
    """
    if requested_version_id:
        return get_active_version_or_raise(store, requested_version_id)

    if preferred_version_id:
        version = store.get(preferred_version_id)
        if version and version.get("is_active"):
            return version
        log_verse_event("preferred_version_inactive", {"version_id": preferred_version_id})

    if language:
        version = store.find_active_by_language(language.split("-")[0])
        if version:
            return version

    version = find_default_version(store) or store.first_active()
    if version:
        return version

    raise AppError(
        "No Bible version available. Please select a Bible version first.",
        "NO_ACTIVE_BIBLE_VERSION",
        400,
    )


def sync_versions(store, upstream_versions: List[dict]) -> dict:
    created = 0
    updated = 0
    skipped = 0
    for version in upstream_versions:
        code = (version.get("code") or "").strip()
        name = (version.get("name") or "").strip()
        language = (version.get("language") or "").strip()
        if not code or not name:
            skipped += 1
            log_verse_event("version_sync_skipped", {"code": code, "name": name})
            continue
        if store.upsert(code, name, language):
            created += 1
        else:
            updated += 1
    return {"total": len(upstream_versions), "created": created, "updated": updated, "skipped": skipped}
