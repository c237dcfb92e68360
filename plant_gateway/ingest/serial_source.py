"""Fuente de ingesta continua desde el puerto serie del sensor.

La fuente es la dueña exclusiva del puerto. Si no puede abrirlo (dispositivo
ausente, permisos, ruta errónea) o el dispositivo se desconecta a mitad de
sesión, registra el error y vuelve a intentarlo según su
:class:`ReconnectPolicy`; el proceso nunca termina por ello y la ruta HTTP
sigue operativa.

Las llamadas bloqueantes de pyserial se ejecutan en hilos auxiliares con
``asyncio.to_thread``; el ensamblado, la validación y la escritura del estado
ocurren siempre en el bucle de eventos.
"""
from __future__ import annotations

import asyncio
import codecs
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import serial

from plant_gateway.ingest.framing import FrameAssembler
from plant_gateway.ingest.service import IngestPipeline
from plant_gateway.logger import logger
from plant_gateway.models import ReadingSource

SERIAL_ERRORS = (serial.SerialException, OSError)


@dataclass
class ReconnectPolicy:
    """Backoff exponencial acotado para reabrir el puerto."""

    initial_seconds: float = 1.0
    max_seconds: float = 30.0
    factor: float = 2.0
    _attempt: int = field(default=0, init=False, repr=False)

    def next_delay(self) -> float:
        delay = min(self.initial_seconds * (self.factor**self._attempt), self.max_seconds)
        if delay < self.max_seconds:
            self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0


class SerialStreamSource:
    """Lee el flujo del dispositivo y entrega frames al pipeline."""

    def __init__(
        self,
        pipeline: IngestPipeline,
        *,
        port: str,
        baudrate: int,
        read_timeout: float = 0.5,
        policy: ReconnectPolicy | None = None,
        assembler: FrameAssembler | None = None,
        opener: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.pipeline = pipeline
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.policy = policy or ReconnectPolicy()
        self.assembler = assembler or FrameAssembler()
        self._opener = opener
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._serial: Any = None
        self._task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None

    def start(self) -> asyncio.Task:
        """Lanza el bucle de lectura en el bucle de eventos actual (idempotente)."""

        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="serial-source")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._disconnect()
        logger.info("[SERIAL] Fuente serie detenida (%s)", self.port)

    async def run(self) -> None:
        logger.info("[SERIAL] Fuente serie iniciada en %s @ %s baudios", self.port, self.baudrate)
        while True:
            try:
                if await self._open():
                    await self._pump()
            except asyncio.CancelledError:
                raise
            except Exception:  # pragma: no cover - seguridad del bucle
                logger.exception("[SERIAL][ERROR] Error inesperado en la fuente serie")
            finally:
                self._disconnect()

            delay = self.policy.next_delay()
            logger.info("[SERIAL] Reintentando apertura de %s en %.1fs", self.port, delay)
            await asyncio.sleep(delay)

    async def _open(self) -> bool:
        try:
            handle = await asyncio.to_thread(
                self._opener,
                self.port,
                self.baudrate,
                timeout=self.read_timeout,
                exclusive=True,
            )
        except SERIAL_ERRORS as exc:
            logger.error("[SERIAL][ERROR] No se pudo abrir %s: %s", self.port, exc)
            return False

        self._serial = handle
        self._decoder.reset()
        self.assembler.reset()
        self.policy.reset()
        logger.info("[SERIAL] Dispositivo conectado en %s", self.port)
        return True

    async def _pump(self) -> None:
        while self._serial is not None:
            try:
                data = await asyncio.to_thread(self._read_chunk, self._serial)
            except SERIAL_ERRORS as exc:
                logger.error(
                    "[SERIAL][ERROR] Lectura fallida en %s (¿dispositivo desconectado?): %s",
                    self.port,
                    exc,
                )
                return
            if data:
                self.handle_chunk(data)

    @staticmethod
    def _read_chunk(handle: Any) -> bytes:
        # read() devuelve b"" al vencer el timeout; no indica cierre
        return handle.read(handle.in_waiting or 1)

    def handle_chunk(self, data: bytes) -> int:
        """Decodifica un trozo crudo y envía los frames completados al pipeline.

        Devuelve el número de frames candidatos emitidos.
        """

        text = self._decoder.decode(data)
        frames = self.assembler.feed(text)
        for frame in frames:
            self.pipeline.submit_quietly(frame, ReadingSource.SERIAL)
        return len(frames)

    def _disconnect(self) -> None:
        if self.assembler.reset():
            logger.warning("[SERIAL] Frame parcial descartado tras la desconexión de %s", self.port)
        self._decoder.reset()

        handle, self._serial = self._serial, None
        if handle is None:
            return
        try:
            handle.close()
        except SERIAL_ERRORS as exc:
            logger.warning("[SERIAL] Error cerrando %s: %s", self.port, exc)
        logger.warning("[SERIAL] Dispositivo desconectado de %s", self.port)
