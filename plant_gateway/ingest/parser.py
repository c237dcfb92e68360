"""Validador de frames del sensor de planta."""
from __future__ import annotations

import json
import math
from typing import Any

from pydantic import ValidationError

from plant_gateway.models import READING_FIELDS, CanonicalPayload, Reading


class FrameValidationError(ValueError):
    """Error específico para frames que no cumplen el formato canónico."""


def _require_number(readings: dict, key: str) -> int | float:
    if key not in readings:
        raise FrameValidationError(f"Campo obligatorio json.{key} ausente")
    value = readings[key]
    # bool es subclase de int pero no es un valor numérico del sensor
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FrameValidationError(f"Campo json.{key} no numérico: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise FrameValidationError(f"Campo json.{key} no finito: {value!r}")
    return value


def _decode(candidate_text: str) -> Any:
    try:
        return json.loads(candidate_text)
    except (TypeError, ValueError) as exc:
        raise FrameValidationError(f"JSON inválido: {exc}") from exc
    except RecursionError as exc:
        # json.loads no limita el anidamiento; un frame de corchetes agota la pila
        raise FrameValidationError("JSON con anidamiento excesivo") from exc


def validate(candidate_text: str) -> Reading:
    """
    Recibe el texto candidato (un objeto JSON completo) y devuelve la lectura
    normalizada, o lanza :class:`FrameValidationError` con el motivo.
    """

    document = _decode(candidate_text)
    if not isinstance(document, dict):
        raise FrameValidationError("El frame no es un objeto JSON")

    line = document.get("line")
    if not isinstance(line, str):
        raise FrameValidationError("Campo obligatorio line ausente o no es texto")

    readings = document.get("json")
    if not isinstance(readings, dict):
        raise FrameValidationError("Campo obligatorio json ausente o no es un objeto")

    unexpected = sorted(set(readings) - set(READING_FIELDS))
    if unexpected:
        raise FrameValidationError(f"Campos inesperados en json: {', '.join(unexpected)}")

    values = {key: _require_number(readings, key) for key in READING_FIELDS}

    try:
        return Reading(**values)
    except ValidationError as exc:
        # p. ej. un valor fraccionario en un campo entero
        errors = "; ".join(
            f"json.{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise FrameValidationError(f"Valores fuera de formato: {errors}") from exc


def parse_frame(candidate_text: str) -> CanonicalPayload:
    """Valida el candidato y construye el payload canónico a difundir."""

    return CanonicalPayload.from_reading(validate(candidate_text))
