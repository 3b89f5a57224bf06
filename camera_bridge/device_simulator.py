#!/usr/bin/env python3
"""
Simulador de gafas con cámara.
Se conecta a /ws/device/<user_id>, opcionalmente activa el streaming con una
pulsación larga, envía pulsaciones cortas cada N segundos y responde cada
photo_request con una foto (sintética o leída de disco).
"""

import argparse
import asyncio
import base64
import json
import logging
import mimetypes
import os
import random
import sys
import time
from pathlib import Path
from typing import Any

import websockets

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

RECONNECT_DELAY_S = 10
DEFAULT_URI = "ws://localhost:8080/ws/device/{user_id}"
DEFAULT_USER = "glass-sim"


def synthetic_jpeg(size: int = 2048) -> bytes:
    """Bytes con marcadores SOI/EOI de JPEG; el contenido no es una imagen real."""
    return b"\xff\xd8\xff\xe0" + os.urandom(size) + b"\xff\xd9"


class PhotoSource:
    def __init__(self, image: Path | None, fail_rate: float = 0.0, delay_s: float = 0.0) -> None:
        self.image = image
        self.fail_rate = fail_rate
        self.delay_s = delay_s
        self.mime_type = "image/jpeg"
        if image is not None:
            self.mime_type = mimetypes.guess_type(image.name)[0] or "image/jpeg"

    def read(self) -> bytes:
        if self.image is None:
            return synthetic_jpeg()
        return self.image.read_bytes()

    async def respond(self, request: dict[str, Any]) -> dict[str, Any]:
        request_id = request["requestId"]
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_rate and random.random() < self.fail_rate:
            return {"type": "photo_error", "requestId": request_id, "message": "Simulated camera error"}
        data = self.read()
        return {
            "type": "photo_response",
            "requestId": request_id,
            "data": base64.b64encode(data).decode("ascii"),
            "mimeType": self.mime_type,
            "filename": self.image.name if self.image else f"{request_id}.jpg",
            "timestamp": int(time.time() * 1000),
        }


async def press_loop(ws: Any, every_s: float) -> None:
    while True:
        await asyncio.sleep(every_s)
        await ws.send(json.dumps({"type": "button_press", "buttonId": "camera", "pressType": "short"}))
        logger.info("Pulsación corta enviada")


async def run_simulator(
    uri: str,
    source: PhotoSource,
    streaming: bool,
    press_every: float | None,
    reconnect: bool,
) -> None:
    total_photos = 0

    while True:
        presser = None
        try:
            logger.info("Conectando a %s ...", uri)
            async with websockets.connect(uri, max_size=None) as ws:
                logger.info("Conectado como dispositivo.")
                if streaming:
                    await ws.send(json.dumps({"type": "button_press", "buttonId": "camera", "pressType": "long"}))
                    logger.info("Pulsación larga enviada (streaming)")
                if press_every:
                    presser = asyncio.create_task(press_loop(ws, press_every))
                async for raw in ws:
                    if not raw or not isinstance(raw, str):
                        continue
                    try:
                        msg = json.loads(raw)
                    except json.JSONDecodeError:
                        logger.warning("JSON inválido del servidor: %s", raw[:100])
                        continue
                    msg_type = msg.get("type")
                    if msg_type == "photo_request":
                        reply = await source.respond(msg)
                        await ws.send(json.dumps(reply))
                        if reply["type"] == "photo_response":
                            total_photos += 1
                        logger.info("[#%d] %s para %s", total_photos, reply["type"], msg["requestId"])
                    elif msg_type == "display_text":
                        logger.info("Pantalla: %s (%s ms)", msg.get("text"), msg.get("durationMs"))
                    elif msg_type == "error":
                        logger.warning("Error del servidor: %s", msg.get("message"))
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Conexión cerrada: %s", e)
        except OSError as e:
            logger.warning("Error de conexión: %s", e)
        finally:
            if presser is not None:
                presser.cancel()
        if not reconnect:
            break
        logger.info("Reconectando en %s s...", RECONNECT_DELAY_S)
        await asyncio.sleep(RECONNECT_DELAY_S)


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulador de gafas con cámara para probar el puente.")
    parser.add_argument("--user", default=DEFAULT_USER, help=f"user_id de la sesión (default: {DEFAULT_USER})")
    parser.add_argument("--uri", default=None, help=f"URI del endpoint (default: {DEFAULT_URI})")
    parser.add_argument("--image", type=Path, default=None, help="Imagen a enviar en cada respuesta")
    parser.add_argument("--streaming", action="store_true", help="Activar streaming al conectar")
    parser.add_argument("--press-every", type=float, default=None, help="Pulsación corta cada N segundos")
    parser.add_argument("--delay", type=float, default=0.0, help="Latencia simulada de la cámara en segundos")
    parser.add_argument("--fail-rate", type=float, default=0.0, help="Probabilidad de responder photo_error")
    parser.add_argument(
        "--no-reconnect",
        action="store_true",
        help="No reconectar tras desconexión (por defecto reconecta a los 10 s)",
    )
    args = parser.parse_args()
    uri = args.uri or DEFAULT_URI.format(user_id=args.user)
    source = PhotoSource(args.image, fail_rate=args.fail_rate, delay_s=args.delay)
    asyncio.run(
        run_simulator(
            uri,
            source,
            streaming=args.streaming,
            press_every=args.press_every,
            reconnect=not args.no_reconnect,
        )
    )


if __name__ == "__main__":
    main()
    sys.exit(0)
