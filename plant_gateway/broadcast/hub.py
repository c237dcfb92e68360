"""Difusión del estado actual a los suscriptores en tiempo real.

Cada suscriptor tiene su propia cola acotada y su propia tarea de envío, de
modo que un cliente lento o roto nunca frena a los demás: si su envío falla,
vence el timeout o su cola se llena, se elimina solo ese suscriptor.
"""
from __future__ import annotations

import asyncio
import contextlib
import itertools
from typing import Any, Protocol

from plant_gateway.logger import logger
from plant_gateway.models import CanonicalPayload
from plant_gateway.state import StateStore


class Transport(Protocol):
    async def send_text(self, data: str) -> None: ...


class Subscription:
    """Handle opaco devuelto por :meth:`BroadcastHub.subscribe`."""

    def __init__(self, subscription_id: int, transport: Transport, queue_size: int) -> None:
        self.id = subscription_id
        self.transport = transport
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.alive = True
        self.task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} alive={self.alive}>"


class BroadcastHub:
    def __init__(
        self,
        store: StateStore,
        *,
        heartbeat_interval: float = 1.0,
        queue_size: int = 32,
        send_timeout: float = 5.0,
    ) -> None:
        self.store = store
        self.heartbeat_interval = heartbeat_interval
        self.queue_size = queue_size
        self.send_timeout = send_timeout
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._heartbeat_task: asyncio.Task | None = None
        self._closing: set[asyncio.Task] = set()
        store.add_listener(self.publish)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, transport: Transport) -> Subscription:
        """Registra un transporte y arranca su tarea de envío.

        Si ya existe una lectura se encola de inmediato, sin esperar al
        siguiente heartbeat.
        """

        subscription = Subscription(next(self._ids), transport, self.queue_size)
        self._subscriptions[subscription.id] = subscription
        subscription.task = asyncio.create_task(
            self._sender(subscription), name=f"hub-subscriber-{subscription.id}"
        )
        logger.info(
            "[HUB] Suscriptor %s conectado (activos=%s)", subscription.id, self.subscriber_count
        )

        current = self.store.get()
        if current is not None:
            self._enqueue(subscription, current.payload.to_wire_text())
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Da de baja al suscriptor. Idempotente."""

        if self._discard(subscription):
            logger.info(
                "[HUB] Suscriptor %s desconectado (activos=%s)",
                subscription.id,
                self.subscriber_count,
            )
        task = subscription.task
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def publish(self, payload: CanonicalPayload) -> int:
        """Encola el mismo texto para todos los suscriptores registrados.

        Devuelve a cuántos suscriptores se ha encolado.
        """

        if not self._subscriptions:
            return 0
        message = payload.to_wire_text()
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if self._enqueue(subscription, message):
                delivered += 1
        return delivered

    def heartbeat(self) -> int:
        """Republica el estado actual. Sin lectura previa no hace nada."""

        current = self.store.get()
        if current is None:
            return 0
        return self.publish(current.payload)

    def start(self) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="hub-heartbeat")
            logger.info("[HUB] Heartbeat iniciado cada %.2fs", self.heartbeat_interval)

    async def close(self) -> None:
        """Detiene el heartbeat y todas las tareas de envío."""

        tasks: list[asyncio.Task] = []
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            tasks.append(self._heartbeat_task)
            self._heartbeat_task = None
        for subscription in list(self._subscriptions.values()):
            self.unsubscribe(subscription)
            if subscription.task is not None:
                tasks.append(subscription.task)
        tasks.extend(self._closing)
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("[HUB] Hub cerrado")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                self.heartbeat()
            except Exception:  # pragma: no cover - seguridad del bucle
                logger.exception("[HUB][ERROR] Error inesperado en el heartbeat")

    def _enqueue(self, subscription: Subscription, message: str) -> bool:
        if not subscription.alive:
            return False
        try:
            subscription.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "[HUB] Suscriptor %s no consume a tiempo (cola llena); se elimina",
                subscription.id,
            )
            self._drop(subscription)
            return False
        return True

    def _discard(self, subscription: Subscription) -> bool:
        subscription.alive = False
        return self._subscriptions.pop(subscription.id, None) is not None

    def _drop(self, subscription: Subscription) -> None:
        if not self._discard(subscription):
            return
        task = subscription.task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        closer = asyncio.get_running_loop().create_task(self._close_transport(subscription))
        self._closing.add(closer)
        closer.add_done_callback(self._closing.discard)

    async def _sender(self, subscription: Subscription) -> None:
        while subscription.alive:
            message = await subscription.queue.get()
            if not subscription.alive:
                return
            try:
                await asyncio.wait_for(
                    subscription.transport.send_text(message), timeout=self.send_timeout
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "[HUB] Envío fallido al suscriptor %s: %r; se elimina",
                    subscription.id,
                    exc,
                )
                self._drop(subscription)
                return

    async def _close_transport(self, subscription: Subscription) -> None:
        close: Any = getattr(subscription.transport, "close", None)
        if close is None:
            return
        try:
            await asyncio.wait_for(close(), timeout=self.send_timeout)
        except Exception as exc:
            logger.debug("[HUB] No se pudo cerrar el transporte %s: %r", subscription.id, exc)
