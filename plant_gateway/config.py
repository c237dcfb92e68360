"""Configuración del gateway de sensores.

Este módulo define la clase de configuración que centraliza los parámetros
principales de la aplicación. En producción, las variables se leen del entorno
(sistema o servicio). En desarrollo se puede usar un archivo `.env` en la raíz
del repositorio.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Clase de configuración para todo el gateway.

    Los valores se obtienen por orden de prioridad de Pydantic: argumentos
    directos, variables de entorno y, opcionalmente, el archivo `.env`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field("dev", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    host: str = Field("0.0.0.0", validation_alias="HOST")
    port: int = Field(8080, validation_alias="PORT")

    serial_enabled: bool = Field(True, validation_alias="SERIAL_ENABLED")
    serial_port: str = Field("/dev/ttyACM0", validation_alias="SERIAL_PORT")
    baud_rate: int = Field(115200, validation_alias="BAUD_RATE")
    serial_read_timeout_seconds: float = Field(0.5, validation_alias="SERIAL_READ_TIMEOUT_SECONDS")
    serial_reconnect_initial_ms: int = Field(1000, validation_alias="SERIAL_RECONNECT_INITIAL_MS")
    serial_reconnect_max_ms: int = Field(30000, validation_alias="SERIAL_RECONNECT_MAX_MS")
    serial_reconnect_factor: float = Field(2.0, validation_alias="SERIAL_RECONNECT_FACTOR")

    frame_max_chars: int = Field(
        4096,
        validation_alias="FRAME_MAX_CHARS",
        description="Longitud máxima de un frame en curso antes de descartarlo",
    )

    heartbeat_interval_seconds: float = Field(1.0, validation_alias="HEARTBEAT_INTERVAL_SECONDS")
    subscriber_queue_size: int = Field(32, validation_alias="SUBSCRIBER_QUEUE_SIZE")
    subscriber_send_timeout_seconds: float = Field(
        5.0, validation_alias="SUBSCRIBER_SEND_TIMEOUT_SECONDS"
    )

    @property
    def serial_reconnect_initial_seconds(self) -> float:
        """Backoff inicial de reconexión expresado en segundos."""

        return self.serial_reconnect_initial_ms / 1000.0

    @property
    def serial_reconnect_max_seconds(self) -> float:
        return self.serial_reconnect_max_ms / 1000.0


settings = Settings()
