"""Tests for ghast_ctl.history module."""

from __future__ import annotations

from datetime import datetime

from ghast_ctl.commands import IMAGE_PLACEHOLDER
from ghast_ctl.history import History


def _record(history: History, command: str = "info", **kwargs):
    values = {
        "url_before": "https://a.test",
        "url_after": "https://a.test",
        "result": {"ok": 1},
        "success": True,
    }
    values.update(kwargs)
    return history.record(command=command, **values)


class TestHistory:
    def test_starts_empty(self):
        history = History()
        assert len(history) == 0
        assert history.to_json() == []

    def test_insertion_order(self):
        history = History()
        for name in ("navigate x", "click #a", "text"):
            _record(history, name)
        assert [e.command for e in history.get_all()] == [
            "navigate x",
            "click #a",
            "text",
        ]

    def test_get_all_is_a_copy(self):
        history = History()
        _record(history)
        snapshot = history.get_all()
        _record(history)
        assert len(snapshot) == 1
        assert len(history) == 2

    def test_json_uses_camel_case(self):
        history = History()
        _record(history, url_before="about:blank", url_after="https://b.test")
        entry = history.to_json()[0]
        assert set(entry) == {
            "timestamp",
            "command",
            "urlBefore",
            "urlAfter",
            "result",
            "success",
        }
        assert entry["urlBefore"] == "about:blank"
        assert entry["urlAfter"] == "https://b.test"

    def test_timestamp_is_iso8601(self):
        entry = _record(History())
        parsed = datetime.fromisoformat(entry.timestamp)
        assert parsed.tzinfo is not None

    def test_image_result_is_placeholder(self):
        entry = _record(History(), "screenshot", result=b"\x89PNG", is_image=True)
        assert entry.result == IMAGE_PLACEHOLDER

    def test_bytes_result_is_placeholder(self):
        entry = _record(History(), "screenshot", result=b"\x89PNG")
        assert entry.result == IMAGE_PLACEHOLDER

    def test_failure_is_recorded(self):
        entry = _record(History(), "click #x", result={"error": "x"}, success=False)
        assert entry.success is False
        assert entry.result == {"error": "x"}

    def test_clear(self):
        history = History()
        _record(history)
        _record(history)
        assert history.clear() == 2
        assert len(history) == 0
