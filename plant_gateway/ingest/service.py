"""Pipeline de ingesta común a las dos fuentes (serie y HTTP)."""
from __future__ import annotations

from plant_gateway.ingest.parser import FrameValidationError, parse_frame
from plant_gateway.logger import logger
from plant_gateway.models import CurrentState, ReadingSource
from plant_gateway.state import StateStore


class IngestPipeline:
    """Valida candidatos y los convierte en estado canónico.

    Ambas fuentes entran por aquí, así que la difusión no depende del origen:
    ``StateStore.set`` notifica al hub sea cual sea la fuente.
    """

    def __init__(self, store: StateStore) -> None:
        self.store = store
        self.accepted_frames = 0
        self.rejected_frames = 0

    def submit(self, candidate_text: str, source: ReadingSource) -> CurrentState:
        """Procesa un candidato completo.

        Lanza :class:`FrameValidationError` si el candidato no es válido; en ese
        caso el estado actual no cambia y no se difunde nada.
        """

        try:
            payload = parse_frame(candidate_text)
        except FrameValidationError as exc:
            self.rejected_frames += 1
            logger.warning(
                "[INGEST][RECHAZO] Frame descartado (origen=%s): %s",
                source.value,
                exc,
            )
            raise

        state = self.store.set(payload, source)
        self.accepted_frames += 1
        logger.info("[INGEST] Lectura aceptada desde %s: %s", source.value, payload.line)
        return state

    def submit_quietly(self, candidate_text: str, source: ReadingSource) -> CurrentState | None:
        """Igual que :meth:`submit` pero un rechazo solo queda en el log."""

        try:
            return self.submit(candidate_text, source)
        except FrameValidationError:
            return None
