from __future__ import annotations

import asyncio
import json

import pytest

from plant_gateway.broadcast.hub import BroadcastHub
from plant_gateway.ingest.service import IngestPipeline
from plant_gateway.models import ReadingSource
from plant_gateway.state import StateStore


def _frame(soil: int) -> str:
    return (
        f'{{"line":"STATE","json":{{"soil":{soil},"temp":22.9,"hum":19.0,'
        '"mq2":85,"rain":1020,"bio":513}}'
    )


class RecordingTransport:
    def __init__(self) -> None:
        self.messages: list[str] = []
        self.closed = False

    async def send_text(self, data: str) -> None:
        self.messages.append(data)

    async def close(self) -> None:
        self.closed = True


class BrokenTransport(RecordingTransport):
    async def send_text(self, data: str) -> None:
        raise ConnectionResetError("cliente desaparecido")


class StuckTransport(RecordingTransport):
    async def send_text(self, data: str) -> None:
        await asyncio.Event().wait()


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condición no alcanzada a tiempo")
        await asyncio.sleep(0.005)


def _build(**kwargs) -> tuple[StateStore, IngestPipeline, BroadcastHub]:
    store = StateStore()
    hub = BroadcastHub(store, **kwargs)
    return store, IngestPipeline(store), hub


@pytest.mark.asyncio
async def test_publish_is_noop_before_first_reading() -> None:
    _, _, hub = _build()
    transport = RecordingTransport()
    hub.subscribe(transport)

    assert hub.heartbeat() == 0
    await asyncio.sleep(0.02)
    assert transport.messages == []
    await hub.close()


@pytest.mark.asyncio
async def test_accepted_frame_reaches_every_subscriber(sample_frame) -> None:
    _, pipeline, hub = _build()
    first, second = RecordingTransport(), RecordingTransport()
    hub.subscribe(first)
    hub.subscribe(second)

    pipeline.submit(sample_frame, ReadingSource.SERIAL)
    await _wait_until(lambda: first.messages and second.messages)

    assert first.messages == [sample_frame]
    assert second.messages == first.messages
    await hub.close()


@pytest.mark.asyncio
async def test_rejected_frame_is_not_broadcast() -> None:
    _, pipeline, hub = _build()
    transport = RecordingTransport()
    hub.subscribe(transport)

    pipeline.submit_quietly('{"line":"STATE","json":{}}', ReadingSource.SERIAL)
    await asyncio.sleep(0.02)

    assert transport.messages == []
    await hub.close()


@pytest.mark.asyncio
async def test_frames_are_delivered_in_acceptance_order() -> None:
    _, pipeline, hub = _build()
    transport = RecordingTransport()
    hub.subscribe(transport)

    for soil in range(1, 11):
        pipeline.submit(_frame(soil), ReadingSource.SERIAL)
    await _wait_until(lambda: len(transport.messages) == 10)

    assert [json.loads(msg)["json"]["soil"] for msg in transport.messages] == list(range(1, 11))
    await hub.close()


@pytest.mark.asyncio
async def test_heartbeat_republishes_current_state(sample_frame) -> None:
    _, pipeline, hub = _build(heartbeat_interval=0.05)
    pipeline.submit(sample_frame, ReadingSource.HTTP)
    hub.start()

    late = RecordingTransport()
    hub.subscribe(late)
    # el primer mensaje llega al suscribirse; los siguientes son heartbeats
    await _wait_until(lambda: len(late.messages) >= 3)

    assert set(late.messages) == {sample_frame}
    await hub.close()


@pytest.mark.asyncio
async def test_heartbeat_tick_sends_current_payload(sample_frame) -> None:
    store, _, hub = _build()
    transport = RecordingTransport()
    hub.subscribe(transport)
    IngestPipeline(store).submit(sample_frame, ReadingSource.SERIAL)
    await _wait_until(lambda: len(transport.messages) == 1)

    assert hub.heartbeat() == 1
    await _wait_until(lambda: len(transport.messages) == 2)
    assert transport.messages == [sample_frame, sample_frame]
    await hub.close()


@pytest.mark.asyncio
async def test_failing_subscriber_is_isolated(sample_frame) -> None:
    _, pipeline, hub = _build()
    healthy, broken = RecordingTransport(), BrokenTransport()
    hub.subscribe(healthy)
    hub.subscribe(broken)

    pipeline.submit(sample_frame, ReadingSource.SERIAL)
    await _wait_until(lambda: hub.subscriber_count == 1)
    pipeline.submit(_frame(400), ReadingSource.SERIAL)
    await _wait_until(lambda: len(healthy.messages) == 2)

    assert healthy.messages[0] == sample_frame
    assert '"soil":400' in healthy.messages[1]
    await _wait_until(lambda: broken.closed)
    await hub.close()


@pytest.mark.asyncio
async def test_backed_up_subscriber_is_dropped(sample_frame) -> None:
    _, pipeline, hub = _build(queue_size=2, send_timeout=10.0)
    healthy, stuck = RecordingTransport(), StuckTransport()
    hub.subscribe(healthy)
    hub.subscribe(stuck)

    for soil in range(1, 6):
        pipeline.submit(_frame(soil), ReadingSource.SERIAL)
        await asyncio.sleep(0.01)

    await _wait_until(lambda: len(healthy.messages) == 5)
    assert hub.subscriber_count == 1
    await hub.close()


@pytest.mark.asyncio
async def test_slow_send_times_out_and_is_dropped(sample_frame) -> None:
    _, pipeline, hub = _build(send_timeout=0.05)
    healthy, stuck = RecordingTransport(), StuckTransport()
    hub.subscribe(healthy)
    hub.subscribe(stuck)

    pipeline.submit(sample_frame, ReadingSource.SERIAL)
    await _wait_until(lambda: hub.subscriber_count == 1)

    assert healthy.messages == [sample_frame]
    await hub.close()


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent_and_stops_delivery(sample_frame) -> None:
    _, pipeline, hub = _build()
    transport = RecordingTransport()
    subscription = hub.subscribe(transport)

    hub.unsubscribe(subscription)
    hub.unsubscribe(subscription)
    pipeline.submit(sample_frame, ReadingSource.SERIAL)
    await asyncio.sleep(0.02)

    assert hub.subscriber_count == 0
    assert transport.messages == []
    assert subscription.task is not None and subscription.task.done()
    await hub.close()


@pytest.mark.asyncio
async def test_close_cancels_heartbeat_and_senders() -> None:
    _, _, hub = _build(heartbeat_interval=0.01)
    hub.start()
    subscription = hub.subscribe(RecordingTransport())

    await hub.close()

    assert hub.subscriber_count == 0
    assert subscription.task is not None and subscription.task.done()


class SelfUnsubscribingTransport(RecordingTransport):
    def __init__(self, hub: BroadcastHub) -> None:
        super().__init__()
        self.hub = hub
        self.subscription = None

    async def send_text(self, data: str) -> None:
        await super().send_text(data)
        self.hub.unsubscribe(self.subscription)


@pytest.mark.asyncio
async def test_unsubscribe_from_own_sender_ends_the_task(sample_frame) -> None:
    _, pipeline, hub = _build()
    transport = SelfUnsubscribingTransport(hub)
    subscription = hub.subscribe(transport)
    transport.subscription = subscription

    pipeline.submit(sample_frame, ReadingSource.SERIAL)
    await _wait_until(lambda: subscription.task is not None and subscription.task.done())

    assert hub.subscriber_count == 0
    assert transport.messages == [sample_frame]
    assert not subscription.task.cancelled()
    await hub.close()
