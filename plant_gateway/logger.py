"""Configuración global de logging.

Importar este módulo inicializa el formato y el nivel de logging una única vez
para todo el proceso. Los módulos del gateway usan ``from plant_gateway.logger
import logger`` y etiquetan sus mensajes con el componente entre corchetes
(``[SERIAL]``, ``[HUB]``...).
"""
import logging

from plant_gateway.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(str(name).strip().upper())
    if isinstance(level, int):
        return level
    return logging.INFO


logging.basicConfig(level=_resolve_level(settings.log_level), format=LOG_FORMAT)

logger = logging.getLogger("plant_gateway")
