"""
Endpoints WebSocket: /ws (visores de fotos) y /ws/device/{user_id} (gafas).
"""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .. import state
from ..device import DeviceConnection
from ..models import PRESS_LONG
from ..protocol import validate_device_message

logger = logging.getLogger(__name__)

router = APIRouter()

MANUAL_PHOTO_TEXT = "Button pressed, about to take photo"
MANUAL_PHOTO_TEXT_MS = 4000


@router.websocket("/ws")
async def websocket_viewer(websocket: WebSocket) -> None:
    """Endpoint para los visores. Reciben un sobre {type: photo} por cada captura."""
    await websocket.accept()
    client_host = websocket.client.host if websocket.client else "unknown"
    client_count = await state.broadcaster.register_subscriber(websocket)
    logger.info("Visor conectado desde %s (total: %d)", client_host, client_count)
    try:
        # Estado actual: qué usuarios tienen el dispositivo conectado
        await websocket.send_text(
            json.dumps({"type": "status", "devices": sorted(state.devices), "viewers": client_count})
        )
        while True:
            msg = await websocket.receive_text()
            logger.debug("Mensaje de visor (ignorado): %s", msg[:100] if msg else "")
    except WebSocketDisconnect:
        pass
    finally:
        client_count = await state.broadcaster.unregister_subscriber(websocket)
        logger.info("Visor desconectado desde %s (total: %d)", client_host, client_count)


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_text(json.dumps({"type": "error", "message": message}))


async def _handle_device_message(connection: DeviceConnection, data: dict) -> None:
    msg_type = data["type"]
    user_id = connection.user_id
    if msg_type == "button_press":
        press_type = data.get("pressType", "short")
        logger.info("Botón pulsado por %s: %s, tipo: %s", user_id, data.get("buttonId"), press_type)
        if press_type != PRESS_LONG:
            await connection.show_text(MANUAL_PHOTO_TEXT, MANUAL_PHOTO_TEXT_MS)
        state.coordinator.on_button_event(user_id, press_type)
    elif msg_type == "photo_response":
        connection.resolve(data)
    elif msg_type == "photo_error":
        connection.fail(data)


@router.websocket("/ws/device/{user_id}")
async def websocket_device(websocket: WebSocket, user_id: str) -> None:
    """Endpoint para el dispositivo. Una conexión activa por usuario (la última)."""
    await websocket.accept()
    device_host = websocket.client.host if websocket.client else "unknown"
    connection = DeviceConnection(websocket, user_id)
    async with state._lock:
        old = state.devices.get(user_id)
        state.devices[user_id] = connection
    if old is not None:
        logger.info("Cerrando conexión de dispositivo anterior de %s", user_id)
        old.close("reemplazada")
        try:
            await old.websocket.close()
        except Exception as e:
            logger.debug("Error cerrando conexión anterior: %s", e)

    state.coordinator.on_session_start(user_id, connection)
    ticker = asyncio.create_task(state.coordinator.run_ticker(user_id))
    logger.info("Dispositivo de %s conectado desde %s", user_id, device_host)
    reason = "desconexión"
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("JSON inválido desde dispositivo %s: %s", user_id, raw[:100])
                await _send_error(websocket, "JSON inválido")
                continue
            ok, err = validate_device_message(data)
            if not ok:
                logger.warning("Validación fallida desde dispositivo %s: %s", user_id, err)
                await _send_error(websocket, err or "Mensaje inválido")
                continue
            await _handle_device_message(connection, data)
    except WebSocketDisconnect as e:
        reason = f"desconexión (código {e.code})"
    finally:
        ticker.cancel()
        connection.close(reason)
        async with state._lock:
            current = state.devices.get(user_id) is connection
            if current:
                del state.devices[user_id]
        if current:
            state.coordinator.on_session_stop(user_id, reason)
        logger.info("Dispositivo de %s desconectado (era %s)", user_id, device_host)
