"""WebSocket endpoint — position ingestion and live broadcast.

Protocol:
    Client -> Server:
        {"type": "position", "payload": {"id": "...", "lat": 50.0, "lon": 3.0, "ts": 1000}}
        {"type": "whoami"}

    Server -> Client:
        {"type": "snapshot", "riders": {...}, "challenges": {...}}   (on connect)
        {"type": "ack", "result": {"accepted": true, "id": "..."}}
        {"type": "rider_update", "rider": {...}}
        {"type": "game_event", ...}
        {"type": "whoami", "id": "..."}
        {"type": "error", "message": "invalid_json" | "unknown_type" | "internal_error"}

Every outbound frame goes through the connection's dispatcher queue, so
the socket has a single writer.
"""

from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from urbantrack.core.logging import set_correlation_id
from urbantrack.services.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    runtime: Runtime = websocket.app.state.runtime
    dispatcher = runtime.dispatcher

    await websocket.accept()
    conn_id = uuid.uuid4().hex[:12]
    set_correlation_id(conn_id)

    snapshot = {"type": "snapshot", **runtime.store.public_snapshot()}
    dispatcher.connect(conn_id, websocket, greeting=snapshot)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                msg = None
            if not isinstance(msg, dict):
                dispatcher.send_to(conn_id, {"type": "error", "message": "invalid_json"})
                continue

            msg_type = msg.get("type")
            if msg_type == "position":
                try:
                    result = runtime.engine.submit(msg.get("payload", msg))
                except Exception:
                    # Keep the connection open for the next sample
                    logger.exception("Position processing failed on %s", conn_id)
                    dispatcher.send_to(conn_id, {"type": "error", "message": "internal_error"})
                    continue
                dispatcher.send_to(conn_id, {"type": "ack", "result": result})
            elif msg_type == "whoami":
                dispatcher.send_to(conn_id, {"type": "whoami", "id": uuid.uuid4().hex[:10]})
            else:
                dispatcher.send_to(conn_id, {"type": "error", "message": "unknown_type"})

    except WebSocketDisconnect:
        dispatcher.disconnect(conn_id)
    except Exception:
        logger.exception("WebSocket error on %s", conn_id)
        dispatcher.disconnect(conn_id)
