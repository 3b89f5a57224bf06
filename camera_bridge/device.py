"""
Puente con el dispositivo: convierte la conexión WebSocket de las gafas en la
cámara que usa el coordinador (request_photo con timeout y emparejado por requestId).
"""

import asyncio
import json
import logging
import uuid
from typing import Any

from . import config
from .models import PhotoData
from .protocol import build_display_text, build_photo_request, parse_photo_response

logger = logging.getLogger(__name__)

DISCONNECTED_MESSAGE = "WebSocket not connected"


class DeviceError(Exception):
    """Error base del puente con el dispositivo."""


class DeviceDisconnectedError(DeviceError):
    """El dispositivo ya no está conectado (o se desconectó con la petición en curso)."""

    def __init__(self, message: str = DISCONNECTED_MESSAGE) -> None:
        super().__init__(message)


class PhotoRequestTimeout(DeviceError):
    """El dispositivo no respondió a tiempo."""


class PhotoRequestError(DeviceError):
    """El dispositivo respondió photo_error."""


class DeviceConnection:
    """Una conexión de dispositivo activa para un usuario."""

    def __init__(
        self,
        websocket: Any,
        user_id: str,
        request_timeout: float | None = None,
    ) -> None:
        self.websocket = websocket
        self.user_id = user_id
        self.request_timeout = (
            config.PHOTO_REQUEST_TIMEOUT_S if request_timeout is None else request_timeout
        )
        self._pending: dict[str, asyncio.Future] = {}
        self.closed = False
        self.close_reason: str | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise DeviceDisconnectedError()
        try:
            await self.websocket.send_text(json.dumps(message))
        except Exception as e:
            raise DeviceDisconnectedError(f"{DISCONNECTED_MESSAGE}: {e}") from e

    async def request_photo(self) -> PhotoData:
        """Pide una foto y espera la respuesta con el mismo requestId."""
        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send(build_photo_request(request_id))
            logger.debug("photo_request %s enviado a %s", request_id, self.user_id)
            return await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise PhotoRequestTimeout(
                f"Sin respuesta de foto en {self.request_timeout:.1f} s (requestId={request_id})"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    def resolve(self, data: dict[str, Any]) -> bool:
        """Entrega un photo_response a la petición pendiente. False si no hay petición con ese id."""
        future = self._pending.get(data["requestId"])
        if future is None or future.done():
            logger.warning("photo_response sin petición pendiente: %s", data["requestId"])
            return False
        try:
            photo = parse_photo_response(data)
        except ValueError as e:
            future.set_exception(PhotoRequestError(str(e)))
            return True
        future.set_result(photo)
        return True

    def fail(self, data: dict[str, Any]) -> bool:
        """Entrega un photo_error a la petición pendiente."""
        future = self._pending.get(data["requestId"])
        if future is None or future.done():
            logger.warning("photo_error sin petición pendiente: %s", data["requestId"])
            return False
        future.set_exception(PhotoRequestError(data.get("message") or "Error del dispositivo"))
        return True

    async def show_text(self, text: str, duration_ms: int = 4000) -> None:
        """Muestra texto en las gafas. Best-effort: los errores solo se loguean."""
        try:
            await self._send(build_display_text(text, duration_ms))
        except DeviceDisconnectedError as e:
            logger.debug("No se pudo mostrar texto a %s: %s", self.user_id, e)

    def close(self, reason: str = "closed") -> None:
        """Marca la conexión como cerrada y falla todas las peticiones pendientes."""
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason
        for future in self._pending.values():
            if not future.done():
                future.set_exception(DeviceDisconnectedError())
        logger.info(
            "Conexión de dispositivo cerrada para %s (%s, pendientes: %d)",
            self.user_id,
            reason,
            len(self._pending),
        )
