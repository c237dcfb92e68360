"""Entry point para lanzar el gateway.

Ejecuta este módulo con `python -m plant_gateway.main`; leerá `HOST`, `PORT`,
`SERIAL_PORT` y `BAUD_RATE` del entorno (o del `.env`) y pondrá a escuchar la
API HTTP/WebSocket mientras lee el dispositivo serie.
"""
from __future__ import annotations

import uvicorn

from plant_gateway.config import settings
from plant_gateway.logger import logger


def main() -> None:
    logger.info(
        "[GATEWAY] Escuchando en %s:%s (serie=%s @ %s)",
        settings.host,
        settings.port,
        settings.serial_port,
        settings.baud_rate,
    )
    uvicorn.run(
        "plant_gateway.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
