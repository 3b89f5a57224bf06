"""
Caché de la última foto por usuario y difusión a los visores conectados por WebSocket.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from fastapi.websockets import WebSocketState

from . import config
from .models import CachedPhoto, PhotoData
from .protocol import build_photo_envelope
from .storage import save_photo

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "photos"


class PhotoStore:
    """Una sola foto por usuario; cada captura nueva reemplaza la anterior."""

    def __init__(self) -> None:
        self._photos: dict[str, CachedPhoto] = {}

    def cache_photo(self, user_id: str, photo: CachedPhoto | PhotoData) -> CachedPhoto:
        if not isinstance(photo, CachedPhoto):
            photo = CachedPhoto.from_photo(user_id, photo)
        self._photos[user_id] = photo
        logger.info("Foto cacheada para %s (requestId=%s, timestamp=%d)", user_id, photo.request_id, photo.timestamp)
        return photo

    def get_latest(self, user_id: str) -> CachedPhoto | None:
        return self._photos.get(user_id)

    def get_photo(self, user_id: str, request_id: str) -> CachedPhoto | None:
        """Solo devuelve la foto si request_id coincide con la cacheada."""
        photo = self._photos.get(user_id)
        if photo is None or photo.request_id != request_id:
            return None
        return photo

    def latest_overall(self) -> CachedPhoto | None:
        """La foto más reciente entre todos los usuarios."""
        return max(self._photos.values(), key=lambda p: p.timestamp, default=None)

    def __len__(self) -> int:
        return len(self._photos)


def _is_closed(ws: Any) -> bool:
    for attr in ("client_state", "application_state"):
        if getattr(ws, attr, None) == WebSocketState.DISCONNECTED:
            return True
    return False


class Broadcaster:
    """Registro de suscriptores por canal y envío best-effort a todos ellos."""

    def __init__(self) -> None:
        self._channels: dict[str, list[Any]] = {}
        self._lock = asyncio.Lock()

    async def register_subscriber(self, ws: Any, channel: str = DEFAULT_CHANNEL) -> int:
        async with self._lock:
            subscribers = self._channels.setdefault(channel, [])
            if ws not in subscribers:
                subscribers.append(ws)
            return len(subscribers)

    async def unregister_subscriber(self, ws: Any, channel: str = DEFAULT_CHANNEL) -> int:
        """Idempotente: quitar un suscriptor que ya no está no es un error."""
        async with self._lock:
            return self._remove(ws, channel)

    def _remove(self, ws: Any, channel: str) -> int:
        subscribers = self._channels.get(channel)
        if subscribers is None:
            return 0
        if ws in subscribers:
            subscribers.remove(ws)
        if not subscribers:
            del self._channels[channel]
            return 0
        return len(subscribers)

    def subscriber_count(self, channel: str = DEFAULT_CHANNEL) -> int:
        return len(self._channels.get(channel, ()))

    async def broadcast(self, photo: CachedPhoto | PhotoData, channel: str = DEFAULT_CHANNEL) -> int:
        """Envía el sobre de la foto a todos los suscriptores. Devuelve cuántos lo recibieron."""
        text = json.dumps(build_photo_envelope(photo))
        async with self._lock:
            subscribers = list(self._channels.get(channel, ()))
        dead = []
        delivered = 0
        for ws in subscribers:
            if _is_closed(ws):
                dead.append(ws)
                continue
            try:
                await ws.send_text(text)
                delivered += 1
            except Exception as e:
                logger.warning("Error enviando a suscriptor: %s", e)
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._remove(ws, channel)
            logger.info("Suscriptores eliminados: %d (quedan %d)", len(dead), self.subscriber_count(channel))
        logger.debug("Foto difundida a %d/%d suscriptores", delivered, len(subscribers))
        return delivered


class PhotoService:
    """Salida del coordinador: cachea, difunde y guarda en disco (esto último sin esperar)."""

    def __init__(
        self,
        store: PhotoStore,
        broadcaster: Broadcaster,
        photos_dir: str | Path | None = None,
        save_photos: bool | None = None,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.photos_dir = config.PHOTOS_DIR if photos_dir is None else photos_dir
        self.save_photos = config.SAVE_PHOTOS if save_photos is None else save_photos
        self._background: set[asyncio.Task] = set()

    async def handle_photo(self, user_id: str, photo: PhotoData) -> CachedPhoto:
        cached = self.store.cache_photo(user_id, photo)
        await self.broadcaster.broadcast(cached)
        if self.save_photos:
            task = asyncio.create_task(save_photo(cached, self.photos_dir))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return cached

    async def drain(self) -> None:
        """Espera las escrituras en disco pendientes (apagado y tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
