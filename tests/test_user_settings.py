from datetime import date, datetime, timezone

import pytest

from fakes import FakeSettingsStore, FakeVersionStore, version
from holyverso.errors import AppError
from holyverso.user_settings import local_date_for, set_preferred_version, set_timezone, validate_timezone


def _stores():
    versions = FakeVersionStore(
        [version(1, "rv1960", "Reina-Valera 1960"), version(2, "old", "Retired", is_active=False)]
    )
    return FakeSettingsStore(), versions


def test_set_preferred_version():
    settings, versions = _stores()
    row = set_preferred_version(settings, versions, "u1", 1)
    assert row["preferred_version_id"] == 1


def test_set_preferred_version_missing_or_inactive():
    settings, versions = _stores()
    with pytest.raises(AppError) as exc:
        set_preferred_version(settings, versions, "u1", 9)
    assert exc.value.status_code == 404

    with pytest.raises(AppError) as exc:
        set_preferred_version(settings, versions, "u1", 2)
    assert exc.value.code == "BIBLE_VERSION_INACTIVE"
    assert exc.value.status_code == 400


def test_set_timezone_validates_and_clears():
    settings, _ = _stores()
    assert set_timezone(settings, "u1", "Europe/Madrid")["timezone"] == "Europe/Madrid"
    assert set_timezone(settings, "u1", "  ")["timezone"] is None

    with pytest.raises(AppError) as exc:
        set_timezone(settings, "u1", "Mars/Olympus_Mons")
    assert exc.value.code == "INVALID_TIMEZONE"


def test_timezone_update_keeps_preferred_version():
    settings, versions = _stores()
    set_preferred_version(settings, versions, "u1", 1)
    row = set_timezone(settings, "u1", "UTC")
    assert row["preferred_version_id"] == 1


def test_local_date_for():
    now = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)
    assert local_date_for(None, now) == date(2024, 6, 1)
    assert local_date_for("Asia/Tokyo", now) == date(2024, 6, 2)
    assert local_date_for("America/Los_Angeles", now) == date(2024, 6, 1)
    assert local_date_for(None, datetime(2024, 6, 1, 23, 30)) == date(2024, 6, 1)


def test_validate_timezone_rejects_garbage():
    with pytest.raises(AppError):
        validate_timezone("not a zone")
