"""Envía una lectura al endpoint de ingesta discreta.

Útil para probar el gateway sin el dispositivo conectado.

Uso: python -m plant_gateway.scripts.submit_reading --soil 395 --temp 22.9 --hum 19.0 \
        --mq2 85 --rain 1020 --bio 513 [--url http://localhost:8080/ingest]
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

import requests

from plant_gateway.config import settings
from plant_gateway.models import Reading

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enviar una lectura al gateway")
    parser.add_argument(
        "--url",
        default=f"http://localhost:{settings.port}/ingest",
        help="URL del endpoint de ingesta",
    )
    parser.add_argument("--soil", type=int, required=True, help="Humedad del suelo")
    parser.add_argument("--temp", type=float, required=True, help="Temperatura (°C)")
    parser.add_argument("--hum", type=float, required=True, help="Humedad relativa (%%)")
    parser.add_argument("--mq2", type=int, required=True, help="Índice de gas")
    parser.add_argument("--rain", type=int, required=True, help="Índice de lluvia")
    parser.add_argument("--bio", type=int, required=True, help="Señal bioeléctrica")
    parser.add_argument("--timeout", type=float, default=5.0, help="Timeout HTTP en segundos")
    return parser.parse_args(argv)


def build_payload(args: argparse.Namespace) -> dict:
    reading = Reading(
        soil=args.soil,
        temp=args.temp,
        hum=args.hum,
        mq2=args.mq2,
        rain=args.rain,
        bio=args.bio,
    )
    return {"line": reading.to_line(), "json": reading.as_dict()}


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    payload = build_payload(args)
    try:
        response = requests.post(args.url, json=payload, timeout=args.timeout)
    except requests.RequestException as exc:
        logger.error("No se pudo contactar con %s: %s", args.url, exc)
        return 1

    if response.status_code >= 400:
        logger.error("Lectura rechazada (%s): %s", response.status_code, response.text)
        return 1

    logger.info("Lectura aceptada: %s", payload["line"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
