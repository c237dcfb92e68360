"""Endpoints de lecturas: ingesta discreta, última lectura y suscripción WebSocket."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, WebSocket, status
from starlette.requests import HTTPConnection

from plant_gateway.gateway import Gateway
from plant_gateway.ingest.parser import FrameValidationError
from plant_gateway.logger import logger
from plant_gateway.models import ReadingSource

router = APIRouter()


def _gateway(connection: HTTPConnection) -> Gateway:
    return connection.app.state.gateway


@router.post("/ingest", status_code=status.HTTP_202_ACCEPTED)
async def ingest_reading(request: Request) -> dict[str, str]:
    """Ingesta un payload canónico completo (ruta alternativa al puerto serie)."""

    body = await request.body()
    candidate = body.decode("utf-8", errors="replace")
    try:
        state = _gateway(request).pipeline.submit(candidate, ReadingSource.HTTP)
    except FrameValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return {"status": "accepted", "line": state.payload.line}


@router.get("/latest")
async def latest_reading(request: Request) -> dict[str, Any]:
    current = _gateway(request).store.get()
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sin lecturas todavía")

    return {
        **current.payload.to_wire(),
        "received_at": current.received_at.isoformat(),
        "source": current.source.value,
    }


@router.websocket("/ws")
async def subscribe_readings(websocket: WebSocket) -> None:
    """Canal de difusión. El cliente no necesita enviar nada; lo recibido se ignora."""

    await websocket.accept()
    hub = _gateway(websocket).hub
    subscription = hub.subscribe(websocket)
    client = websocket.client.host if websocket.client else "??"
    logger.debug("[API] WebSocket %s abierto desde %s", subscription.id, client)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        hub.unsubscribe(subscription)
