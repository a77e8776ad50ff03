"""Tests for the HTTP surface — login, riders, leaderboard, health."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from urbantrack.api import middleware
from urbantrack.api.middleware import _check_rate_limit, _rate_buckets, _sweep_rate_buckets
from urbantrack.core.config import Settings
from urbantrack.main import create_app


def _login(client: TestClient, email: str, pseudo: str | None = None) -> dict[str, Any]:
    resp = client.post("/api/login", json={"email": email, "pseudo": pseudo})
    assert resp.status_code == 200
    return resp.json()


# ── Login ───────────────────────────────────────────────────────────


class TestLogin:
    def test_first_login(self, client: TestClient) -> None:
        body = _login(client, "ana@example.com", "Ana")
        assert body["ok"] is True
        assert body["pseudo"] == "Ana"
        assert len(body["id"]) == 10

    def test_repeat_login_returns_same_id(self, client: TestClient) -> None:
        first = _login(client, "ana@example.com", "Ana")
        second = _login(client, "ana@example.com", "Renamed")
        assert second == first

    def test_generated_pseudo(self, client: TestClient) -> None:
        assert _login(client, "anon@example.com")["pseudo"].startswith("Rider-")

    @pytest.mark.parametrize("payload", [{"email": "not-an-email"}, {}, {"email": ""}])
    def test_invalid_email(self, client: TestClient, payload: dict[str, Any]) -> None:
        resp = client.post("/api/login", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "invalid_email"}


# ── Riders and leaderboard ──────────────────────────────────────────


class TestRiders:
    def test_empty(self, client: TestClient) -> None:
        resp = client.get("/api/riders")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "riders": {}}

    def test_lists_registered_riders(self, client: TestClient) -> None:
        rider_id = _login(client, "ana@example.com", "Ana")["id"]
        riders = client.get("/api/riders").json()["riders"]
        assert riders[rider_id]["name"] == "Ana"
        assert riders[rider_id]["score"] == 0
        assert riders[rider_id]["badges"] == []


class TestLeaderboard:
    def _set_score(self, app: Any, rider_id: str, score: int, distance: float) -> None:
        store = app.state.runtime.store
        with store.locked(rider_id):
            rider = store.resolve(rider_id)
            rider.score = score
            rider.distance = distance
            store.commit(rider)

    def test_ranked_by_score(self, app: Any, client: TestClient) -> None:
        a = _login(client, "a@example.com", "A")["id"]
        b = _login(client, "b@example.com", "B")["id"]
        c = _login(client, "c@example.com", "C")["id"]
        self._set_score(app, a, 10, 1000.4)
        self._set_score(app, b, 30, 2500.0)
        self._set_score(app, c, 10, 1900.0)

        board = client.get("/api/leaderboard").json()["leaderboard"]

        assert [e["id"] for e in board] == [b, c, a]
        assert board[2] == {"id": a, "name": "A", "distance": 1000, "score": 10}

    def test_limit(self, client: TestClient) -> None:
        for i in range(3):
            _login(client, f"r{i}@example.com")
        assert len(client.get("/api/leaderboard?limit=2").json()["leaderboard"]) == 2

    def test_limit_out_of_range(self, client: TestClient) -> None:
        assert client.get("/api/leaderboard?limit=0").status_code == 422


# ── Health ──────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        _login(client, "ana@example.com")
        body = client.get("/health").json()
        assert body == {"status": "ok", "environment": "testing", "riders": 1, "observers": 0}

    def test_live(self, client: TestClient) -> None:
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_ready_before_first_save(self, client: TestClient) -> None:
        body = client.get("/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"]["persistence"] == {"status": "pending"}

    def test_ready_after_save(self, app: Any, client: TestClient) -> None:
        app.state.runtime.snapshot_worker.run()
        checks = client.get("/health/ready").json()["checks"]
        assert checks["persistence"]["status"] == "ok"

    def test_ready_reports_failed_save(self, tmp_path: Path) -> None:
        target = tmp_path / "data.json"
        target.mkdir()
        app = create_app(Settings(app_env="testing", data_file=str(target)))
        app.state.runtime.snapshot_worker.run()

        body = TestClient(app).get("/health/ready").json()

        assert body["status"] == "ready"
        assert body["checks"]["persistence"]["status"] == "error"


# ── Middleware and app wiring ───────────────────────────────────────


class TestMiddleware:
    def test_request_id_header(self, client: TestClient) -> None:
        resp = client.get("/health")
        assert resp.headers["X-Request-ID"]
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_correlation_id_echoed(self, client: TestClient) -> None:
        resp = client.get("/health", headers={"x-correlation-id": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"

    def test_rate_limit_window(self) -> None:
        key = "test:rate-limit-window"
        _rate_buckets.pop(key, None)
        assert _check_rate_limit(key, 2) == (True, 1)
        assert _check_rate_limit(key, 2) == (True, 0)
        assert _check_rate_limit(key, 2) == (False, 0)
        _rate_buckets.pop(key, None)

    def test_idle_clients_swept(self) -> None:
        now = time.time()
        _rate_buckets["test:idle"] = [now - 2 * middleware.RATE_LIMIT_WINDOW]
        _rate_buckets["test:active"] = [now]
        _sweep_rate_buckets(now)
        assert "test:idle" not in _rate_buckets
        assert "test:active" in _rate_buckets
        _rate_buckets.pop("test:active", None)

    def test_check_triggers_sweep_once_per_window(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _rate_buckets["test:gone"] = [0.0]
        monkeypatch.setattr(middleware, "_last_sweep", 0.0)
        _check_rate_limit("test:new", 5)
        assert "test:gone" not in _rate_buckets
        _rate_buckets.pop("test:new", None)


class TestAppWiring:
    def test_invalid_challenge_aborts_startup(self, tmp_path: Path) -> None:
        settings = Settings(
            app_env="testing",
            data_file=str(tmp_path / "data.json"),
            challenges=[{"id": "monthly", "period": "monthly", "targetMeters": 1000}],
        )
        with pytest.raises(ValueError):
            create_app(settings)

    def test_static_client_served(self, tmp_path: Path) -> None:
        static = tmp_path / "dist"
        static.mkdir()
        (static / "index.html").write_text("<h1>UrbanTrack</h1>")
        app = create_app(
            Settings(
                app_env="testing",
                data_file=str(tmp_path / "data.json"),
                static_dir=str(static),
            )
        )
        client = TestClient(app)

        assert "UrbanTrack" in client.get("/").text
        assert client.get("/api/riders").json()["ok"] is True
