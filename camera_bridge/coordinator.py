"""
Coordinador de capturas: decide cuándo pedir una foto a cada usuario.

- Pulsación larga: activa/desactiva el streaming.
- Pulsación corta: una foto, salvo que ya haya una petición en curso (se descarta).
- Tick periódico: con streaming activo, una foto cada capture_interval como mucho.

Como mucho una petición en curso por usuario. El próximo instante elegible se
avanza ANTES de pedir la foto, así que el intervalo acota la tasa de peticiones
y no la de respuestas.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Protocol

from . import config
from .device import DeviceDisconnectedError
from .models import PRESS_LONG, PhotoData, UserStreamState

logger = logging.getLogger(__name__)

DISCONNECT_MARKERS = ("WebSocket not connected", "CLOSED")


class Camera(Protocol):
    async def request_photo(self) -> PhotoData: ...


class PhotoSink(Protocol):
    async def handle_photo(self, user_id: str, photo: PhotoData) -> Any: ...


def is_disconnect_error(error: BaseException) -> bool:
    """True si el error indica que el transporte con el dispositivo se perdió."""
    if isinstance(error, DeviceDisconnectedError):
        return True
    message = str(error)
    return any(marker in message for marker in DISCONNECT_MARKERS)


class CaptureCoordinator:
    def __init__(
        self,
        sink: PhotoSink,
        capture_interval_ms: int | None = None,
        tick_interval_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sink = sink
        self.capture_interval_ms = (
            config.CAPTURE_INTERVAL_MS if capture_interval_ms is None else capture_interval_ms
        )
        self.tick_interval_s = config.TICK_INTERVAL_S if tick_interval_s is None else tick_interval_s
        self.clock = clock
        self.sessions: dict[str, UserStreamState] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Ciclo de vida de la sesión
    # ------------------------------------------------------------------

    def on_session_start(self, user_id: str, camera: Camera) -> UserStreamState:
        previous = self.sessions.get(user_id)
        if previous is not None:
            logger.info("Sesión previa de %s reemplazada", user_id)
        session = UserStreamState(
            user_id=user_id,
            camera=camera,
            next_eligible_capture_at=self.clock(),
        )
        self.sessions[user_id] = session
        logger.info("Sesión iniciada para %s", user_id)
        return session

    def on_session_stop(self, user_id: str, reason: str = "") -> None:
        session = self.sessions.pop(user_id, None)
        if session is None:
            logger.debug("on_session_stop sin sesión activa para %s", user_id)
            return
        session.streaming_enabled = False
        logger.info(
            "Sesión detenida para %s, motivo: %s (captura en curso: %s)",
            user_id,
            reason or "desconocido",
            session.capture_in_flight,
        )

    def _current(self, session: UserStreamState) -> bool:
        return self.sessions.get(session.user_id) is session

    # ------------------------------------------------------------------
    # Eventos
    # ------------------------------------------------------------------

    def on_button_event(self, user_id: str, press_type: str = "short") -> asyncio.Task | None:
        """Devuelve la tarea de captura si se lanzó una, None en otro caso."""
        session = self.sessions.get(user_id)
        if session is None:
            logger.warning("Botón de %s sin sesión activa (ignorado)", user_id)
            return None

        if press_type == PRESS_LONG:
            session.streaming_enabled = not session.streaming_enabled
            logger.info("Streaming de fotos para %s: %s", user_id, session.streaming_enabled)
            return None

        if session.capture_in_flight:
            session.dropped_presses += 1
            logger.warning("Foto manual descartada para %s: ya hay una petición en curso", user_id)
            return None

        logger.info("Petición de foto manual para %s", user_id)
        return self._dispatch(session)

    def on_tick(self, user_id: str) -> asyncio.Task | None:
        session = self.sessions.get(user_id)
        if session is None or not session.streaming_enabled:
            return None
        now = self.clock()
        if now <= session.next_eligible_capture_at or session.capture_in_flight:
            return None
        session.next_eligible_capture_at = now + self.capture_interval_ms / 1000.0
        return self._dispatch(session)

    def toggle_streaming(self, user_id: str) -> bool | None:
        """Invierte el streaming. None si el usuario no tiene sesión activa."""
        session = self.sessions.get(user_id)
        if session is None:
            return None
        session.streaming_enabled = not session.streaming_enabled
        logger.info("Streaming cambiado para %s: %s", user_id, session.streaming_enabled)
        return session.streaming_enabled

    def is_streaming(self, user_id: str) -> bool:
        session = self.sessions.get(user_id)
        return bool(session and session.streaming_enabled)

    def active_users(self) -> list[str]:
        return list(self.sessions)

    # ------------------------------------------------------------------
    # Captura
    # ------------------------------------------------------------------

    def _dispatch(self, session: UserStreamState) -> asyncio.Task:
        session.capture_in_flight = True
        task = asyncio.create_task(self._capture(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _capture(self, session: UserStreamState) -> PhotoData | None:
        """Completa una petición: siempre limpia capture_in_flight, nunca lanza."""
        user_id = session.user_id
        try:
            try:
                logger.debug("Tomando foto para %s", user_id)
                photo = await session.camera.request_photo()
                logger.info("Foto completada para %s", user_id)
            except Exception as e:
                if is_disconnect_error(e):
                    logger.warning("WebSocket desconectado para %s, se detiene el streaming", user_id)
                    session.streaming_enabled = False
                else:
                    logger.error("Falló la petición de foto para %s: %s", user_id, e)
                return None

            if not self._current(session):
                logger.info("Foto de %s descartada: la sesión ya terminó", user_id)
                return None
            # cache + difusión antes de liberar el flag: las entregas salen en orden de petición
            try:
                await self.sink.handle_photo(user_id, photo)
            except Exception as e:
                logger.error("Error procesando foto de %s: %s", user_id, e)
            return photo
        finally:
            session.capture_in_flight = False

    async def run_ticker(self, user_id: str) -> None:
        """Llama a on_tick cada tick_interval_s mientras siga viva la sesión actual."""
        session = self.sessions.get(user_id)
        if session is None:
            return
        while self._current(session):
            await asyncio.sleep(self.tick_interval_s)
            if not self._current(session):
                break
            try:
                self.on_tick(user_id)
            except Exception as e:
                logger.error("Error en captura automática para %s: %s", user_id, e)

    async def wait_idle(self) -> None:
        """Espera las capturas en curso (apagado y tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

