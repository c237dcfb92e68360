"""Composición de los componentes del gateway.

Fuentes → ensamblador (solo serie) → validador → StateStore → hub → suscriptores.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from plant_gateway.broadcast.hub import BroadcastHub
from plant_gateway.config import Settings
from plant_gateway.health import HealthReporter
from plant_gateway.ingest.framing import FrameAssembler
from plant_gateway.ingest.serial_source import ReconnectPolicy, SerialStreamSource
from plant_gateway.ingest.service import IngestPipeline
from plant_gateway.logger import logger
from plant_gateway.state import StateStore


class Gateway:
    """Agrupa el estado del proceso y gestiona su ciclo de vida."""

    def __init__(self, config: Settings, *, serial_opener: Callable[..., Any] | None = None) -> None:
        self.config = config
        self.store = StateStore()
        self.pipeline = IngestPipeline(self.store)
        self.hub = BroadcastHub(
            self.store,
            heartbeat_interval=config.heartbeat_interval_seconds,
            queue_size=config.subscriber_queue_size,
            send_timeout=config.subscriber_send_timeout_seconds,
        )

        self.serial_source: SerialStreamSource | None = None
        if config.serial_enabled:
            extra = {"opener": serial_opener} if serial_opener is not None else {}
            self.serial_source = SerialStreamSource(
                self.pipeline,
                port=config.serial_port,
                baudrate=config.baud_rate,
                read_timeout=config.serial_read_timeout_seconds,
                policy=ReconnectPolicy(
                    initial_seconds=config.serial_reconnect_initial_seconds,
                    max_seconds=config.serial_reconnect_max_seconds,
                    factor=config.serial_reconnect_factor,
                ),
                assembler=FrameAssembler(max_frame_chars=config.frame_max_chars),
                **extra,
            )

        self.health = HealthReporter(
            store=self.store,
            pipeline=self.pipeline,
            hub=self.hub,
            serial_source=self.serial_source,
        )

    async def start(self) -> None:
        self.hub.start()
        if self.serial_source is not None:
            self.serial_source.start()
        else:
            logger.warning("[GATEWAY][ADVERTENCIA] Fuente serie deshabilitada; solo ingesta HTTP")
        logger.info("[GATEWAY] Gateway iniciado (entorno=%s)", self.config.app_env)

    async def stop(self) -> None:
        if self.serial_source is not None:
            await self.serial_source.stop()
        await self.hub.close()
        logger.info("[GATEWAY] Gateway detenido")
