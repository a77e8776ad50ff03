"""Tests for the /ws endpoint — snapshot, position ingestion, broadcast."""

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import BASE_TS, north_of

HOUR_MS = 3_600_000


def _login(client: TestClient, email: str = "ana@example.com", pseudo: str = "Ana") -> str:
    return client.post("/api/login", json={"email": email, "pseudo": pseudo}).json()["id"]


def _position(rider_id: str, lat: float, ts: int) -> dict:
    return {"type": "position", "payload": {"id": rider_id, "lat": lat, "lon": 3.0, "ts": ts}}


class TestWebSocket:
    def test_snapshot_on_connect(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert rider_id in snapshot["riders"]
        assert set(snapshot["challenges"]) == {"daily_1km", "weekly_5km"}
        assert "users" not in snapshot

    def test_position_broadcast_then_ack(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json(_position(rider_id, 50.0, BASE_TS))

            update = ws.receive_json()
            ack = ws.receive_json()

        assert update == {
            "type": "rider_update",
            "rider": {
                "id": rider_id,
                "name": "Ana",
                "lat": 50.0,
                "lon": 3.0,
                "distance": 0,
                "score": 0,
            },
        }
        assert ack == {"type": "ack", "result": {"accepted": True, "id": rider_id}}

    def test_flat_position_message(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "position", "id": rider_id, "lat": 50.0, "lon": 3.0})
            assert ws.receive_json()["type"] == "rider_update"
            assert ws.receive_json()["result"]["accepted"] is True

    def test_game_event_on_first_kilometer(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json(_position(rider_id, 50.0, BASE_TS))
            ws.receive_json()
            ws.receive_json()

            ws.send_json(_position(rider_id, north_of(50.0, 1001), BASE_TS + HOUR_MS))
            update = ws.receive_json()
            game = ws.receive_json()
            ack = ws.receive_json()

        assert update["rider"]["score"] == 15
        assert game["type"] == "game_event"
        assert game["kmsGained"] == 1
        assert game["newBadges"] == [{"id": "badge_1000", "label": "1 km"}]
        assert game["challengeEvents"][0]["challengeId"] == "daily_1km"
        assert ack["result"]["accepted"] is True

    def test_broadcast_reaches_other_observers(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as watcher, client.websocket_connect("/ws") as rider:
            watcher.receive_json()
            rider.receive_json()
            rider.send_json(_position(rider_id, 50.0, BASE_TS))
            assert watcher.receive_json()["type"] == "rider_update"
            assert rider.receive_json()["type"] == "rider_update"
            assert rider.receive_json()["type"] == "ack"

    def test_unknown_rider_acked_not_broadcast(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json(_position("ghost", 50.0, BASE_TS))
            assert ws.receive_json() == {
                "type": "ack",
                "result": {"accepted": False, "reason": "unknown_rider"},
            }

    def test_invalid_sample_acked(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "position", "payload": {"id": rider_id, "lat": "x"}})
            assert ws.receive_json()["result"] == {"accepted": False, "reason": "invalid"}

    def test_invalid_json(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            assert ws.receive_json() == {"type": "error", "message": "invalid_json"}
            ws.send_text("[1, 2]")
            assert ws.receive_json() == {"type": "error", "message": "invalid_json"}

    def test_unknown_type(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "teleport"})
            assert ws.receive_json() == {"type": "error", "message": "unknown_type"}

    def test_whoami(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "whoami"})
            reply = ws.receive_json()
        assert reply["type"] == "whoami"
        assert len(reply["id"]) == 10

    def test_failed_sample_keeps_connection_open(self, app, client: TestClient, monkeypatch) -> None:
        rider_id = _login(client)
        engine = app.state.runtime.engine
        real_submit = engine.submit
        calls = {"n": 0}

        def flaky_submit(payload):  # type: ignore[no-untyped-def]
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            return real_submit(payload)

        monkeypatch.setattr(engine, "submit", flaky_submit)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json(_position(rider_id, 50.0, BASE_TS))
            assert ws.receive_json() == {"type": "error", "message": "internal_error"}

            ws.send_json(_position(rider_id, 50.0, BASE_TS + 1000))
            assert ws.receive_json()["type"] == "rider_update"
            assert ws.receive_json() == {
                "type": "ack",
                "result": {"accepted": True, "id": rider_id},
            }

    def test_out_of_range_timestamp_then_valid_sample(self, client: TestClient) -> None:
        rider_id = _login(client)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json(_position(rider_id, 50.0, 10**18))
            assert ws.receive_json()["result"] == {"accepted": False, "reason": "invalid"}

            ws.send_json(_position(rider_id, 50.0, BASE_TS))
            assert ws.receive_json()["type"] == "rider_update"
            assert ws.receive_json()["result"]["accepted"] is True
