"""
Configuración: variables de entorno del puente de cámara.
"""

import os

from dotenv import load_dotenv

load_dotenv(".env.local")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Intervalo mínimo entre capturas automáticas mientras el streaming está activo
CAPTURE_INTERVAL_MS = int(os.getenv("CAPTURE_INTERVAL_MS", "2000"))
# Periodo del tick que revisa si toca tomar otra foto
TICK_INTERVAL_S = float(os.getenv("TICK_INTERVAL_S", "1.0"))
# Tiempo máximo de espera de una respuesta de foto del dispositivo
PHOTO_REQUEST_TIMEOUT_S = float(os.getenv("PHOTO_REQUEST_TIMEOUT_S", "30"))

PHOTOS_DIR = os.getenv("PHOTOS_DIR", "photos")
SAVE_PHOTOS = _env_bool("SAVE_PHOTOS", True)
