"""Shared fixtures for the ingestion tests."""
import pytest

from ledger_ingest.db import Database
from ledger_ingest.producer import Producer
from fakes import QUEUE_NAME, FakeClock, FakePool, InMemoryQueue, LedgerStore, RecordingTelemetry


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ledger_store():
    return LedgerStore(bindings={"g1": 42})


@pytest.fixture
def ledger_pool(ledger_store):
    return FakePool(ledger_store)


@pytest.fixture
def database(ledger_pool, sleeps):
    return Database(ledger_pool, retry_max=3, retry_delay_ms=1000, sleep=sleeps.append)


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(clock):
    q = InMemoryQueue(clock)
    q.ensure_queue(QUEUE_NAME)
    return q


@pytest.fixture
def producer(queue, telemetry):
    return Producer(queue, QUEUE_NAME, telemetry)
