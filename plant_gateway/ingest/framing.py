"""Reconstrucción de frames JSON a partir del flujo serie.

El dispositivo escribe objetos JSON intercalados con líneas de log en texto
libre, y el puerto los entrega troceados de forma arbitraria. El ensamblador
solo equilibra llaves: no conoce el esquema del frame, que se valida después
en :mod:`plant_gateway.ingest.parser`.
"""
from __future__ import annotations

from plant_gateway.logger import logger

OPEN_DELIMITER = "{"
CLOSE_DELIMITER = "}"


class FrameAssembler:
    """Máquina de dos estados (Idle / Accumulating) por flujo.

    En Idle (profundidad 0) se descarta todo lo que no sea ``{``. En
    Accumulating cada carácter se añade al buffer y las llaves ajustan la
    profundidad; al volver a 0 se emite el frame completo, llaves incluidas.

    Si el frame en curso supera ``max_frame_chars`` se vacía el buffer y se
    sigue contando profundidad sin acumular hasta que el frame cierra; nada de
    su interior llega a emitirse.
    """

    def __init__(self, max_frame_chars: int | None = None) -> None:
        self._buffer: list[str] = []
        self._depth = 0
        self._max_frame_chars = max_frame_chars
        # frame sobredimensionado: se siguen contando llaves sin acumular
        self._skipping = False

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def in_progress(self) -> bool:
        return self._depth > 0

    def feed(self, chunk: str) -> list[str]:
        """Consume un trozo de texto y devuelve los frames completados, en orden."""

        frames: list[str] = []
        for char in chunk:
            if self._depth == 0:
                if char == OPEN_DELIMITER:
                    self._buffer.append(char)
                    self._depth = 1
                # Idle: texto libre y "}" sueltos se ignoran.
                continue

            if char == OPEN_DELIMITER:
                self._depth += 1
            elif char == CLOSE_DELIMITER:
                self._depth -= 1

            if self._skipping:
                if self._depth == 0:
                    self._skipping = False
                continue

            self._buffer.append(char)
            if self._depth == 0:
                frames.append("".join(self._buffer))
                self._buffer.clear()
                continue

            if self._max_frame_chars and len(self._buffer) > self._max_frame_chars:
                logger.warning(
                    "[FRAME] Frame en curso supera %s caracteres; se descarta",
                    self._max_frame_chars,
                )
                self._buffer.clear()
                self._skipping = True
        return frames

    def reset(self) -> bool:
        """Descarta el frame parcial, si lo hay. Devuelve si se descartó algo."""

        discarded = bool(self._buffer) or self._skipping
        if self._buffer:
            logger.debug("[FRAME] Descartando frame parcial (%s caracteres)", len(self._buffer))
        self._buffer.clear()
        self._depth = 0
        self._skipping = False
        return discarded
