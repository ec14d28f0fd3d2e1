import pytest

import holyverso.events as events


@pytest.fixture(autouse=True)
def event_log(tmp_path, monkeypatch):
    path = tmp_path / "events.log"
    monkeypatch.setattr(events, "EVENT_LOG_PATH", str(path))
    return path
