"""Tests for the pgmq-backed queue."""
from datetime import datetime, timedelta, timezone

import psycopg2
import pytest

from ledger_ingest.queue.pgmq_queue import PgmqQueue
from ledger_ingest.serialization import MAX_SAFE_INTEGER
from fakes import FakePool, ScriptedStore


def make_queue(*responses):
    store = ScriptedStore(*responses)
    pool = FakePool(store)
    return PgmqQueue(pool), store, pool


class TestEnsureQueue:

    def test_creates_queue(self):
        queue, store, pool = make_queue([{"create": None}])

        queue.ensure_queue("events")

        sql, params = store.calls[0]
        assert "pgmq.create" in sql
        assert params == ("events",)
        assert pool.connections[0].commits == 1

    def test_twice_is_not_an_error(self):
        queue, store, _ = make_queue(
            [{"create": None}],
            psycopg2.ProgrammingError('relation "q_events" already exists'),
        )

        queue.ensure_queue("events")
        queue.ensure_queue("events")

        assert len(store.calls) == 2

    def test_other_errors_propagate(self):
        queue, _, pool = make_queue(psycopg2.OperationalError("permission denied for schema pgmq"))

        with pytest.raises(psycopg2.OperationalError):
            queue.ensure_queue("events")
        assert pool.in_use == 0
        assert pool.connections[0].rollbacks == 1


class TestMessages:

    def test_enqueue_returns_message_id(self):
        queue, store, _ = make_queue([{"msg_id": 11}])
        snowflake = MAX_SAFE_INTEGER + 1

        msg_id = queue.enqueue("events", {"tenant_external_id": "g1", "event": {"id": snowflake}})

        sql, params = store.calls[0]
        assert msg_id == 11
        assert "pgmq.send" in sql
        assert params[0] == "events"
        assert str(snowflake) in params[1].dumps(params[1].adapted)
        assert '"%d"' % snowflake in params[1].dumps(params[1].adapted)

    def test_read_maps_rows(self):
        enqueued = datetime(2024, 1, 1, tzinfo=timezone.utc)
        row = {
            "msg_id": 3,
            "read_ct": 1,
            "enqueued_at": enqueued,
            "vt": enqueued + timedelta(seconds=300),
            "message": {"kind": "message_create", "event": {}},
        }
        queue, store, _ = make_queue([row])

        messages = queue.read("events", 300, 10)

        assert store.calls[0][1] == ("events", 300, 10)
        assert len(messages) == 1
        assert messages[0].msg_id == 3
        assert messages[0].read_ct == 1
        assert messages[0].vt == enqueued + timedelta(seconds=300)
        assert messages[0].payload == row["message"]

    def test_read_nothing_visible(self):
        queue, _, _ = make_queue([])

        assert queue.read("events", 300, 10) == []

    def test_archive(self):
        queue, store, _ = make_queue([{"archived": True}])

        assert queue.archive("events", 3) is True
        assert "pgmq.archive" in store.calls[0][0]
        assert store.calls[0][1] == ("events", 3)

    def test_archive_unknown_message_is_not_an_error(self):
        queue, _, _ = make_queue([{"archived": False}])

        assert queue.archive("events", 404) is False

    def test_delete(self):
        queue, store, _ = make_queue([{"deleted": True}], [{"deleted": False}])

        assert queue.delete("events", 3) is True
        assert queue.delete("events", 3) is False
        assert "pgmq.delete" in store.calls[0][0]

    def test_size(self):
        queue, store, _ = make_queue([{"queue_length": 4}])

        assert queue.size("events") == 4
        assert "pgmq.metrics" in store.calls[0][0]

    def test_connections_returned(self):
        queue, _, pool = make_queue([{"msg_id": 1}], [], [{"archived": True}])

        queue.enqueue("events", {})
        queue.read("events", 300, 10)
        queue.archive("events", 1)

        assert pool.in_use == 0
        assert len(pool.returned) == 3
