"""
Persistencia en disco de las fotos (best-effort, fuera del camino crítico).
"""

import asyncio
import logging
import re
from pathlib import Path

from .models import CachedPhoto

logger = logging.getLogger(__name__)


def _safe_component(value: str) -> str:
    cleaned = re.sub(r"[^\w.-]+", "_", value.strip())
    return cleaned.strip("._") or "user"


def photo_path(photo: CachedPhoto, photos_dir: str | Path) -> Path:
    """photos_dir/photo_<usuario>_<timestamp>.<ext>, con la extensión tomada del MIME."""
    parts = photo.mime_type.split("/", 1)
    ext = _safe_component(parts[1]) if len(parts) == 2 and parts[1] else "jpg"
    return Path(photos_dir) / f"photo_{_safe_component(photo.user_id)}_{photo.timestamp}.{ext}"


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def save_photo(photo: CachedPhoto, photos_dir: str | Path) -> Path | None:
    """Guarda la foto en un hilo aparte. Nunca propaga errores: devuelve None si falla."""
    path = photo_path(photo, photos_dir)
    try:
        await asyncio.to_thread(_write, path, photo.data)
    except Exception as e:
        logger.error("Error guardando foto en disco (%s): %s", path, e)
        return None
    logger.info("Foto guardada en disco: %s", path)
    return path
