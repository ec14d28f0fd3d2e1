from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from psycopg2.extras import RealDictCursor

from holyverso.errors import AppError

SETTINGS_COLUMNS = "user_id, preferred_version_id, timezone, updated_at"

_UNSET = object()


class UserSettingsStore:
    def __init__(self, conn):
        self.conn = conn

    def ensure(self, user_id: str) -> dict:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                """
                INSERT INTO user_settings (user_id, preferred_version_id, timezone)
                VALUES (%s, NULL, NULL)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (user_id,),
            )
            cur.execute(
                f"SELECT {SETTINGS_COLUMNS} FROM user_settings WHERE user_id = %s",
                (user_id,),
            )
            return cur.fetchone()

    def get(self, user_id: str) -> dict:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT {SETTINGS_COLUMNS} FROM user_settings WHERE user_id = %s",
                (user_id,),
            )
            row = cur.fetchone()
        if row:
            return row
        return self.ensure(user_id)

    def update(self, user_id: str, preferred_version_id=_UNSET, timezone_name=_UNSET) -> dict:
        current = self.get(user_id)
        next_version = (
            current.get("preferred_version_id") if preferred_version_id is _UNSET else preferred_version_id
        )
        next_timezone = current.get("timezone") if timezone_name is _UNSET else timezone_name
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"""
                INSERT INTO user_settings (user_id, preferred_version_id, timezone)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id)
                DO UPDATE SET
                  preferred_version_id = EXCLUDED.preferred_version_id,
                  timezone = EXCLUDED.timezone,
                  updated_at = now()
                RETURNING {SETTINGS_COLUMNS}
                """,
                (user_id, next_version, next_timezone),
            )
            return cur.fetchone()


def validate_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise AppError("Invalid timezone", "INVALID_TIMEZONE", 400, details={"timezone": name}) from exc


def local_date_for(timezone_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Calendar date at ``now`` in the user's timezone, or in UTC when unset."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if not timezone_name:
        return now.astimezone(timezone.utc).date()
    return now.astimezone(validate_timezone(timezone_name)).date()


def set_preferred_version(settings_store, version_store, user_id: str, version_id: int) -> dict:
    version = version_store.get(version_id)
    if not version:
        raise AppError("Bible version not found", "BIBLE_VERSION_NOT_FOUND", 404)
    if not version.get("is_active"):
        raise AppError("Bible version is not active", "BIBLE_VERSION_INACTIVE", 400)
    return settings_store.update(user_id, preferred_version_id=version_id)


def set_timezone(settings_store, user_id: str, timezone_name: Optional[str]) -> dict:
    cleaned = (timezone_name or "").strip() or None
    if cleaned:
        validate_timezone(cleaned)
    return settings_store.update(user_id, timezone_name=cleaned)
