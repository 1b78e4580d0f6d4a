"""Tests for the ghast-ctl HTTP API."""

from __future__ import annotations

import time
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from ghast_ctl.app import create_app
from ghast_ctl.commands import CommandResult


@pytest.fixture
def app(session, default_config):
    return create_app(session, default_config)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


# ---------------------------------------------------------------------------
# POST /cmd
# ---------------------------------------------------------------------------


class TestCommandEndpoint:
    @pytest.mark.parametrize(
        "payload",
        [{}, {"command": ""}, {"command": 42}, {"cmd": "info"}, ["info"]],
    )
    def test_missing_or_invalid_command(self, client, payload):
        response = client.post("/cmd", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid command"}

    def test_malformed_json(self, client):
        response = client.post(
            "/cmd",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid command"}

    def test_structured_result(self, client):
        response = client.post("/cmd", json={"command": "info"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == {"url": "https://example.com", "title": "Example"}

    def test_no_data_reports_success(self, client):
        response = client.post("/cmd", json={"command": "press Enter"})
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_markup_result(self, client):
        response = client.post("/cmd", json={"command": "html"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.text == "<html><body>hi</body></html>"

    def test_image_result(self, client):
        response = client.post("/cmd", json={"command": "screenshot"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_failed_command(self, client):
        response = client.post("/cmd", json={"command": "click"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing argument: selector"}

    def test_unknown_command(self, client):
        response = client.post("/cmd", json={"command": "fly"})
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown command: fly"}

    def test_unexpected_exception_is_500(self, client, app):
        app.state.service.run = AsyncMock(side_effect=RuntimeError("kaboom"))
        response = client.post("/cmd", json={"command": "info"})
        assert response.status_code == 500
        assert response.json() == {"error": "kaboom"}

    @pytest.mark.parametrize(
        "value, expected",
        [
            (datetime(2024, 1, 1), "2024-01-01T00:00:00"),
            (float("nan"), None),
            (float("inf"), None),
        ],
    )
    def test_eval_values_json_cannot_hold(
        self, client, mock_page, value, expected
    ):
        mock_page.evaluate = AsyncMock(return_value=value)
        response = client.post("/cmd", json={"command": "eval new Date()"})
        assert response.status_code == 200
        assert response.json() == {"result": expected}
        entry = client.get("/history").json()[-1]
        assert entry["success"] is True
        assert entry["result"] == {"result": expected}

    def test_unrenderable_result_is_json_500(self, client, app):
        app.state.service.run = AsyncMock(
            return_value=CommandResult.ok({"value": float("nan")})
        )
        response = client.post("/cmd", json={"command": "info"})
        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert "error" in response.json()


# ---------------------------------------------------------------------------
# /history
# ---------------------------------------------------------------------------


class TestHistoryEndpoints:
    def test_history_lists_commands(self, client):
        client.post("/cmd", json={"command": "info"})
        client.post("/cmd", json={"command": "screenshot"})
        entries = client.get("/history").json()
        assert [e["command"] for e in entries] == ["info", "screenshot"]
        assert entries[0]["urlBefore"] == "https://example.com"
        assert entries[0]["success"] is True
        assert entries[1]["result"] == "[binary image]"

    def test_rejected_requests_are_not_recorded(self, client):
        client.post("/cmd", json={})
        assert client.get("/history").json() == []

    def test_clear_history(self, client):
        client.post("/cmd", json={"command": "info"})
        client.post("/cmd", json={"command": "fly"})
        assert client.delete("/history").json() == {"cleared": 2}
        assert client.get("/health").json()["historyEntries"] == 0


# ---------------------------------------------------------------------------
# /health and /shutdown
# ---------------------------------------------------------------------------


class TestStatusEndpoints:
    def test_health(self, client):
        client.post("/cmd", json={"command": "info"})
        assert client.get("/health").json() == {
            "status": "ok",
            "browserConnected": True,
            "historyEntries": 1,
        }

    def test_shutdown(self, client, session):
        response = client.post("/shutdown")
        assert response.status_code == 200
        assert response.json() == {"message": "Shutting down"}

        assert client.get("/health").json()["status"] == "shutting_down"
        response = client.post("/cmd", json={"command": "info"})
        assert response.status_code == 503

        deadline = time.monotonic() + 2
        while not session.closed and time.monotonic() < deadline:
            time.sleep(0.01)
        assert session.closed is True
        assert client.get("/health").json()["browserConnected"] is False
