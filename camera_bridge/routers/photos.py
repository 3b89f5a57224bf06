"""
API de consulta: última foto, bytes de una foto y cambio de streaming por usuario.
La identidad del usuario llega en la cabecera X-User-Id.
"""

import logging
from typing import Any

from fastapi import APIRouter, Header, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["photos"])


class LatestPhotoResponse(BaseModel):
    requestId: str
    timestamp: int
    hasPhoto: bool = True
    isStreaming: bool


class ToggleStreamingResponse(BaseModel):
    isStreaming: bool
    message: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _not_authenticated() -> JSONResponse:
    return _error(401, "Not authenticated")


@router.get("/latest-photo")
async def latest_photo(x_user_id: str | None = Header(default=None)) -> Any:
    """Metadatos de la última foto del usuario."""
    if not x_user_id:
        return _not_authenticated()
    photo = state.photo_store.get_latest(x_user_id)
    if photo is None:
        return _error(404, "No photo available")
    return LatestPhotoResponse(
        requestId=photo.request_id,
        timestamp=photo.timestamp,
        isStreaming=state.coordinator.is_streaming(x_user_id),
    )


@router.get("/photo/{request_id}")
async def photo_data(request_id: str, x_user_id: str | None = Header(default=None)) -> Response:
    """Bytes de la foto, solo si request_id es el de la foto cacheada."""
    if not x_user_id:
        return _not_authenticated()
    photo = state.photo_store.get_photo(x_user_id, request_id)
    if photo is None:
        return _error(404, "Photo not found")
    return Response(
        content=photo.data,
        media_type=photo.mime_type,
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/toggle-streaming")
async def toggle_streaming(x_user_id: str | None = Header(default=None)) -> Any:
    if not x_user_id:
        return _not_authenticated()
    streaming = state.coordinator.toggle_streaming(x_user_id)
    if streaming is None:
        return _error(404, "No active session")
    return ToggleStreamingResponse(
        isStreaming=streaming,
        message="Streaming started" if streaming else "Streaming stopped",
    )
