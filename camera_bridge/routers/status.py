"""
Índice del servicio y estado general (sesiones, visores, última foto).
"""

import time
from typing import Any

from fastapi import APIRouter

from .. import state

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {
        "service": "Glass Camera Bridge",
        "ws_viewer": "ws://<host>:8080/ws",
        "ws_device": "ws://<host>:8080/ws/device/<user_id>",
        "latest_photo": "GET http://<host>:8080/api/latest-photo",
        "photo": "GET http://<host>:8080/api/photo/<request_id>",
        "toggle_streaming": "POST http://<host>:8080/api/toggle-streaming",
        "status": "GET http://<host>:8080/api/status",
    }


@router.get("/api/status")
async def status() -> dict[str, Any]:
    """Estado del puente."""
    latest = state.photo_store.latest_overall()
    return {
        "sessions": len(state.coordinator.active_users()),
        "streaming": [u for u in state.coordinator.active_users() if state.coordinator.is_streaming(u)],
        "viewers": state.broadcaster.subscriber_count(),
        "cached_photos": len(state.photo_store),
        "dropped_presses": sum(s.dropped_presses for s in state.coordinator.sessions.values()),
        "latest_photo": {
            "user_id": latest.user_id,
            "request_id": latest.request_id,
            "size": latest.size,
            "age_ms": int(time.time() * 1000) - latest.timestamp,
        }
        if latest
        else None,
    }
