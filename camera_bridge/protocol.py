"""
Protocolo de mensajes: dispositivo <-> servidor y sobre de foto para los visores.
"""

import base64
import binascii
import time
from typing import Any

from .models import PRESS_TYPES, CachedPhoto, PhotoData

DEVICE_MESSAGE_TYPES = ("button_press", "photo_response", "photo_error")
DEFAULT_MIME_TYPE = "image/jpeg"


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_device_message(data: dict[str, Any]) -> tuple[bool, str | None]:
    """Valida un mensaje del dispositivo: type conocido y campos obligatorios según el tipo."""
    if not isinstance(data, dict):
        return False, "El mensaje debe ser un objeto JSON"
    msg_type = data.get("type")
    if msg_type not in DEVICE_MESSAGE_TYPES:
        return False, f"type inválido: {msg_type!r}"

    if msg_type == "button_press":
        press_type = data.get("pressType", "short")
        if press_type not in PRESS_TYPES:
            return False, f"pressType inválido (debe ser {' o '.join(PRESS_TYPES)})"
        return True, None

    if not _is_non_empty_str(data.get("requestId")):
        return False, "requestId debe ser un string no vacío"

    if msg_type == "photo_response":
        if not isinstance(data.get("data"), str):
            return False, "data debe ser un string base64"
        mime_type = data.get("mimeType", DEFAULT_MIME_TYPE)
        if not _is_non_empty_str(mime_type) or "/" not in mime_type:
            return False, "mimeType inválido"
        timestamp = data.get("timestamp")
        if timestamp is not None and (isinstance(timestamp, bool) or not isinstance(timestamp, (int, float))):
            return False, "timestamp debe ser un número (epoch ms)"
        return True, None

    if not isinstance(data.get("message", ""), str):
        return False, "message debe ser un string"
    return True, None


def parse_photo_response(data: dict[str, Any]) -> PhotoData:
    """Convierte un photo_response ya validado en PhotoData. ValueError si el base64 es inválido."""
    try:
        raw = base64.b64decode(data["data"], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"data no es base64 válido: {e}") from e
    request_id = data["requestId"]
    mime_type = data.get("mimeType") or DEFAULT_MIME_TYPE
    timestamp = data.get("timestamp")
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    ext = mime_type.split("/")[1] or "jpg"
    return PhotoData(
        request_id=request_id,
        data=raw,
        mime_type=mime_type,
        filename=data.get("filename") or f"photo_{request_id}.{ext}",
        timestamp=int(timestamp),
        size=len(raw),
    )


def build_photo_envelope(photo: CachedPhoto | PhotoData) -> dict[str, Any]:
    """Sobre que reciben los visores por /ws."""
    return {
        "type": "photo",
        "data": base64.b64encode(photo.data).decode("ascii"),
        "mimeType": photo.mime_type,
        "timestamp": int(photo.timestamp),
        "size": int(photo.size),
    }


def build_photo_request(request_id: str) -> dict[str, Any]:
    return {"type": "photo_request", "requestId": request_id}


def build_display_text(text: str, duration_ms: int) -> dict[str, Any]:
    return {"type": "display_text", "text": text, "durationMs": duration_ms}
