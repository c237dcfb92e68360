"""Almacén en memoria de la lectura actual.

Es el único componente autorizado a modificar el estado canónico. Solo guarda
el último valor: los suscriptores que llegan tarde se ponen al día con el
heartbeat del hub.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from plant_gateway.logger import logger
from plant_gateway.models import CanonicalPayload, CurrentState, ReadingSource

StateListener = Callable[[CanonicalPayload], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateStore:
    """Hueco único ``(payload, received_at, source)``.

    ``set`` sustituye el estado completo de una vez (``CurrentState`` es
    inmutable), de modo que ningún lector ve un payload a medio escribir.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._current: CurrentState | None = None
        self._listeners: list[StateListener] = []

    def add_listener(self, listener: StateListener) -> None:
        """Registra un callback síncrono invocado tras cada escritura."""

        self._listeners.append(listener)

    def get(self) -> CurrentState | None:
        return self._current

    def set(self, payload: CanonicalPayload, source: ReadingSource) -> CurrentState:
        """Punto único de escritura. Sustituye el estado y notifica a los listeners."""

        state = CurrentState(payload=payload, received_at=self._clock(), source=source)
        self._current = state
        logger.debug("[STATE] Estado actualizado desde %s: %s", source.value, payload.line)

        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("[STATE][ERROR] Listener %r falló tras la escritura", listener)
        return state

    def age(self, now: datetime | None = None) -> float | None:
        """Segundos transcurridos desde la última lectura aceptada."""

        current = self._current
        if current is None:
            return None
        now = now or self._clock()
        return max((now - current.received_at).total_seconds(), 0.0)
