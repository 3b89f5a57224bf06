"""
Modelos de datos: fotos recibidas del dispositivo y estado de streaming por usuario.
"""

from dataclasses import dataclass
from typing import Any

PRESS_SHORT = "short"
PRESS_LONG = "long"
PRESS_TYPES = (PRESS_SHORT, PRESS_LONG)


@dataclass(frozen=True)
class PhotoData:
    """Foto tal como la devuelve el dispositivo. timestamp en epoch ms."""

    request_id: str
    data: bytes
    mime_type: str
    filename: str
    timestamp: int
    size: int


@dataclass(frozen=True)
class CachedPhoto:
    """Última foto de un usuario (una sola por usuario)."""

    user_id: str
    request_id: str
    data: bytes
    mime_type: str
    filename: str
    timestamp: int
    size: int

    @classmethod
    def from_photo(cls, user_id: str, photo: PhotoData) -> "CachedPhoto":
        return cls(
            user_id=user_id,
            request_id=photo.request_id,
            data=photo.data,
            mime_type=photo.mime_type,
            filename=photo.filename,
            timestamp=photo.timestamp,
            size=photo.size,
        )


@dataclass(eq=False)
class UserStreamState:
    """
    Estado de una sesión activa. Se compara por identidad: una sesión nueva
    del mismo usuario es otro registro y las capturas de la anterior no lo tocan.
    """

    user_id: str
    camera: Any
    next_eligible_capture_at: float
    streaming_enabled: bool = False
    capture_in_flight: bool = False
    dropped_presses: int = 0
