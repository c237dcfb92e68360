"""Aplicación FastAPI del gateway de sensores.

Expone `/health`, `/latest`, `/ingest` y el WebSocket `/ws`. El ciclo de vida
(fuente serie y heartbeat del hub) se gestiona en el `lifespan` de la app.
"""
from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request

from plant_gateway.api.readings import router as readings_router
from plant_gateway.config import Settings, settings
from plant_gateway.gateway import Gateway


def create_app(
    config: Settings | None = None,
    *,
    serial_opener: Callable[..., Any] | None = None,
) -> FastAPI:
    gateway = Gateway(config or settings, serial_opener=serial_opener)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    application = FastAPI(title="PlantGateway", version="0.1.0", lifespan=lifespan)
    application.state.gateway = gateway
    application.include_router(readings_router)

    @application.get("/health")
    async def healthcheck(request: Request) -> dict[str, Any]:
        """Endpoint de salud con contadores de ingesta y suscriptores."""

        return request.app.state.gateway.health.snapshot()

    return application


app = create_app()
