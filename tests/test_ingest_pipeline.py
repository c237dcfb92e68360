from datetime import datetime, timedelta, timezone

import pytest

from plant_gateway.ingest.parser import FrameValidationError
from plant_gateway.ingest.service import IngestPipeline
from plant_gateway.models import ReadingSource
from plant_gateway.state import StateStore


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def test_submit_stores_canonical_state(sample_frame, sample_line):
    clock = FakeClock()
    store = StateStore(clock=clock)
    pipeline = IngestPipeline(store)

    state = pipeline.submit(sample_frame, ReadingSource.SERIAL)

    assert store.get() == state
    assert state.payload.line == sample_line
    assert state.source is ReadingSource.SERIAL
    assert state.received_at == clock.now
    assert pipeline.accepted_frames == 1
    assert pipeline.rejected_frames == 0


def test_rejected_frame_leaves_previous_state_untouched(sample_frame):
    store = StateStore()
    pipeline = IngestPipeline(store)
    published = []
    store.add_listener(published.append)

    previous = pipeline.submit(sample_frame, ReadingSource.HTTP)

    with pytest.raises(FrameValidationError):
        pipeline.submit('{"line":"STATE","json":{"soil":"seco"}}', ReadingSource.HTTP)
    assert pipeline.submit_quietly("{roto}", ReadingSource.SERIAL) is None

    assert store.get() is previous
    assert len(published) == 1
    assert pipeline.accepted_frames == 1
    assert pipeline.rejected_frames == 2


def test_both_sources_produce_identical_payloads(sample_frame):
    store = StateStore()
    pipeline = IngestPipeline(store)

    from_serial = pipeline.submit(sample_frame, ReadingSource.SERIAL).payload
    from_http = pipeline.submit(sample_frame, ReadingSource.HTTP).payload

    assert from_serial == from_http
    assert from_serial.to_wire_text() == from_http.to_wire_text()


def test_listener_failure_does_not_block_other_listeners(sample_frame):
    store = StateStore()
    received = []

    def broken(_payload):
        raise RuntimeError("boom")

    store.add_listener(broken)
    store.add_listener(received.append)

    IngestPipeline(store).submit(sample_frame, ReadingSource.SERIAL)

    assert len(received) == 1
    assert store.get() is not None


def test_store_age():
    clock = FakeClock()
    store = StateStore(clock=clock)

    assert store.get() is None
    assert store.age() is None

    IngestPipeline(store).submit(
        '{"line":"","json":{"soil":1,"temp":1,"hum":1,"mq2":1,"rain":1,"bio":1}}',
        ReadingSource.HTTP,
    )
    clock.now += timedelta(seconds=2.5)

    assert store.age() == pytest.approx(2.5)


def test_deeply_nested_frame_counts_as_rejection(sample_frame):
    pipeline = IngestPipeline(StateStore())
    deep = '{"line":"STATE","json":' + "[" * 100_000 + "]" * 100_000 + "}"

    assert pipeline.submit_quietly(deep, ReadingSource.SERIAL) is None
    assert pipeline.rejected_frames == 1
    assert pipeline.submit(sample_frame, ReadingSource.SERIAL) is not None
