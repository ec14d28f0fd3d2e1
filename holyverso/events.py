import hashlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path

EVENT_LOG_PATH = os.getenv("EVENT_LOG_PATH", "logs/events.log")
LOG_ID_SALT = os.getenv("LOG_ID_SALT", "")

# user identifiers never reach the log in clear text
_HASHED_FIELDS = ("user_id",)


def hash_user_id(user_id: str) -> str:
    return hashlib.sha256(f"{LOG_ID_SALT}{user_id}".encode("utf-8")).hexdigest()


def _event_file(mode: str):
    path = Path(EVENT_LOG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, mode, encoding="utf-8")


def _build_record(channel: str, event_type: str, payload: dict) -> dict:
    fields = dict(payload or {})
    for name in _HASHED_FIELDS:
        if fields.get(name):
            fields[name] = hash_user_id(str(fields[name]))
    return {
        "ts": datetime.now(timezone.utc).isoformat(),
        "channel": channel,
        "event_type": event_type,
        **fields,
    }


def log_event(channel: str, event_type: str, payload: dict) -> None:
    """Append one JSON line; an unwritable log never fails the caller."""
    line = json.dumps(_build_record(channel, event_type, payload), ensure_ascii=True, default=str)
    try:
        with _event_file("a") as f:
            f.write(line + "\n")
    except OSError:
        pass


def log_api_event(event_type: str, payload: dict) -> None:
    log_event("api", event_type, payload)


def log_verse_event(event_type: str, payload: dict) -> None:
    log_event("verse", event_type, payload)


def log_upstream_event(event_type: str, payload: dict) -> None:
    log_event("upstream", event_type, payload)


def reset_event_log(reason: str) -> None:
    try:
        with _event_file("w"):
            pass
    except OSError:
        return
    log_event("api", "event_log_reset", {"reason": reason})
