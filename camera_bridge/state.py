"""
Estado compartido: caché de fotos, difusor a visores, coordinador de capturas
y conexiones de dispositivo activas.
"""

import asyncio

from .broadcaster import Broadcaster, PhotoService, PhotoStore
from .coordinator import CaptureCoordinator
from .device import DeviceConnection

photo_store = PhotoStore()
broadcaster = Broadcaster()
photo_service = PhotoService(photo_store, broadcaster)
coordinator = CaptureCoordinator(photo_service)

# Una conexión de dispositivo por usuario (la última que se conectó)
devices: dict[str, DeviceConnection] = {}
_lock = asyncio.Lock()


def reset() -> None:
    """Vuelve a un estado limpio (tests)."""
    global photo_store, broadcaster, photo_service, coordinator
    photo_store = PhotoStore()
    broadcaster = Broadcaster()
    photo_service = PhotoService(photo_store, broadcaster)
    coordinator = CaptureCoordinator(photo_service)
    devices.clear()
