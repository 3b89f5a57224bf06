"""
Servidor FastAPI como puente entre las gafas con cámara y los visores web.
- GET /ws: visores (navegador). Reciben cada foto como sobre JSON.
- GET /ws/device/{user_id}: dispositivo. Botones, peticiones y respuestas de foto.
- GET /api/latest-photo, GET /api/photo/{request_id}, POST /api/toggle-streaming.
- GET /api/status: estado del puente.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config, state
from .routers import photos, status, websocket

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Al apagar: esperar capturas en curso y escrituras a disco pendientes
    logger.info("Apagando: esperando capturas y escrituras pendientes")
    await state.coordinator.wait_idle()
    await state.photo_service.drain()


app = FastAPI(title="Glass Camera Bridge", lifespan=lifespan)

# CORS - permitir requests desde cualquier origen
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(status.router)
app.include_router(photos.router)
app.include_router(websocket.router)


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
