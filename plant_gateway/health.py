"""Vista agregada de salud del gateway. No guarda estado propio."""
from __future__ import annotations

from typing import Any

from plant_gateway.broadcast.hub import BroadcastHub
from plant_gateway.ingest.serial_source import SerialStreamSource
from plant_gateway.ingest.service import IngestPipeline
from plant_gateway.state import StateStore


class HealthReporter:
    def __init__(
        self,
        *,
        store: StateStore,
        pipeline: IngestPipeline,
        hub: BroadcastHub,
        serial_source: SerialStreamSource | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.hub = hub
        self.serial_source = serial_source

    def snapshot(self) -> dict[str, Any]:
        """Foto de solo lectura de contadores y vivacidad."""

        current = self.store.get()
        age = self.store.age()
        return {
            "status": "ok",
            "serial_connected": bool(self.serial_source and self.serial_source.connected),
            "accepted_frames": self.pipeline.accepted_frames,
            "rejected_frames": self.pipeline.rejected_frames,
            "subscribers": self.hub.subscriber_count,
            "reading_age_seconds": round(age, 3) if age is not None else None,
            "last_source": current.source.value if current else None,
        }
