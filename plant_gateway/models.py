"""Modelos de datos del gateway.

Incluye las estructuras inmutables que circulan entre componentes:
- Reading: las seis magnitudes del sensor.
- CanonicalPayload: la línea legible ``STATE;...`` más la lectura estructurada.
- CurrentState: el único hueco del StateStore (payload, instante y origen).
"""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RECORD_MARKER = "STATE"

# Orden de campos en la línea y en el JSON de salida.
READING_FIELDS: tuple[str, ...] = ("soil", "temp", "hum", "mq2", "rain", "bio")
FRACTIONAL_FIELDS = frozenset({"temp", "hum"})


class ReadingSource(str, Enum):
    SERIAL = "serial"
    HTTP = "http"


class Reading(BaseModel):
    """Lectura completa del sensor. Ningún campo es opcional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    soil: int = Field(..., description="Humedad del suelo (cuentas ADC)")
    temp: float = Field(..., description="Temperatura (°C)")
    hum: float = Field(..., description="Humedad relativa (%)")
    mq2: int = Field(..., description="Índice de gas / calidad del aire")
    rain: int = Field(..., description="Índice de lluvia")
    bio: int = Field(..., description="Señal bioeléctrica")

    def as_dict(self) -> dict[str, int | float]:
        return {name: getattr(self, name) for name in READING_FIELDS}

    def to_line(self) -> str:
        """Codificación legible delimitada por ``;`` con el marcador de registro."""

        parts = [RECORD_MARKER]
        parts.extend(f"{name}={getattr(self, name)}" for name in READING_FIELDS)
        return ";".join(parts)


class CanonicalPayload(BaseModel):
    """Unidad que se almacena y se difunde a los suscriptores."""

    model_config = ConfigDict(frozen=True)

    line: str
    reading: Reading

    @classmethod
    def from_reading(cls, reading: Reading) -> "CanonicalPayload":
        return cls(line=reading.to_line(), reading=reading)

    def to_wire(self) -> dict[str, Any]:
        return {"line": self.line, "json": self.reading.as_dict()}

    def to_wire_text(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"), ensure_ascii=False)


class CurrentState(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: CanonicalPayload
    received_at: datetime
    source: ReadingSource
