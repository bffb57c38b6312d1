"""Tests for the retrying ledger gateway."""
import psycopg2
import pytest
from psycopg2.pool import PoolError

from ledger_ingest.db import Database, LedgerRecord
from ledger_ingest.serialization import MAX_SAFE_INTEGER
from fakes import FakePool, ScriptedStore


def make_db(store, sleeps, **pool_kwargs):
    pool = FakePool(store, **pool_kwargs)
    return Database(pool, retry_max=3, retry_delay_ms=1000, sleep=sleeps.append), pool


class TestExecuteRetry:
    """Retry bound and connection handling of Database.execute."""

    def test_returns_rows_on_first_attempt(self, sleeps):
        db, pool = make_db(ScriptedStore([{"id": 1}]), sleeps)

        assert db.execute("SELECT 1") == [{"id": 1}]
        assert sleeps == []
        assert pool.connections[0].commits == 1

    def test_third_attempt_result_after_two_sleeps(self, sleeps):
        store = ScriptedStore(
            psycopg2.OperationalError("connection reset"),
            psycopg2.OperationalError("timeout"),
            [{"id": 7}],
        )
        db, _ = make_db(store, sleeps)

        assert db.execute("SELECT 7") == [{"id": 7}]
        assert sleeps == [1.0, 1.0]
        assert len(store.calls) == 3

    def test_raises_last_error_without_fourth_attempt(self, sleeps):
        last = psycopg2.OperationalError("third")
        store = ScriptedStore(
            psycopg2.OperationalError("first"),
            psycopg2.OperationalError("second"),
            last,
            [{"id": 1}],
        )
        db, _ = make_db(store, sleeps)

        with pytest.raises(psycopg2.OperationalError) as exc_info:
            db.execute("SELECT 1")

        assert exc_info.value is last
        assert len(store.calls) == 3
        assert sleeps == [1.0, 1.0]

    def test_pool_exhaustion_counts_as_attempt(self, sleeps):
        db, pool = make_db(ScriptedStore([{"ok": True}]), sleeps)
        pool.getconn_errors.append(PoolError("connection pool exhausted"))

        assert db.execute("SELECT true AS ok") == [{"ok": True}]
        assert sleeps == [1.0]

    def test_exhausted_pool_surfaces_after_retries(self, sleeps):
        db, pool = make_db(ScriptedStore(), sleeps, maxconn=0)

        with pytest.raises(PoolError):
            db.execute("SELECT 1")
        assert sleeps == [1.0, 1.0]

    def test_connection_released_and_rolled_back_on_error(self, sleeps):
        store = ScriptedStore(*[psycopg2.OperationalError("down")] * 3)
        db, pool = make_db(store, sleeps)

        with pytest.raises(psycopg2.OperationalError):
            db.execute("SELECT 1")

        assert pool.in_use == 0
        assert len(pool.returned) == 3
        assert all(conn.rollbacks == 1 for conn in pool.connections)

    def test_broken_connection_is_discarded(self, sleeps):
        class ClosingStore(ScriptedStore):
            def handle(self, sql, params):
                pool.connections[-1].closed = 2
                raise psycopg2.OperationalError("server closed the connection")

        db, pool = make_db(ClosingStore(), sleeps)

        with pytest.raises(psycopg2.OperationalError):
            db.execute("SELECT 1")

        assert all(close for _, close in pool.returned)
        assert all(conn.rollbacks == 0 for conn in pool.connections)

    def test_statement_without_result_set(self, sleeps):
        db, _ = make_db(ScriptedStore(None), sleeps)

        assert db.execute("SET search_path TO ledger") == []


class TestLedgerOperations:

    def test_lookup_passes_id_as_text(self, sleeps):
        store = ScriptedStore([{"workspace_id": 42}])
        db, _ = make_db(store, sleeps)

        assert db.lookup_workspace(123456789012345678) == [{"workspace_id": 42}]
        assert store.calls[0][1] == ("123456789012345678",)

    def test_insert_without_received_at(self, sleeps):
        store = ScriptedStore([{"id": 99}])
        db, _ = make_db(store, sleeps)

        record_id = db.insert_record(LedgerRecord(67, 42, {"text": "hi"}))

        sql, params = store.calls[0]
        assert record_id == 99
        assert "received_at" not in sql
        assert params[:2] == (67, 42)
        assert params[2].adapted == {"text": "hi"}

    def test_insert_with_received_at_and_big_ints(self, sleeps):
        store = ScriptedStore([{"id": 5}])
        db, _ = make_db(store, sleeps)
        snowflake = MAX_SAFE_INTEGER + 10

        db.insert_record(LedgerRecord(67, 42, {"author_id": snowflake}, "2024-01-01T00:00:00Z"))

        sql, params = store.calls[0]
        assert "received_at" in sql
        assert params[3] == "2024-01-01T00:00:00Z"
        assert params[2].dumps(params[2].adapted) == '{"author_id": "%d"}' % snowflake

    def test_insert_without_returned_row(self, sleeps):
        db, _ = make_db(ScriptedStore([]), sleeps)

        assert db.insert_record(LedgerRecord(67, 42, {})) is None

    def test_close_closes_pool(self, sleeps):
        db, pool = make_db(ScriptedStore(), sleeps)

        db.close()

        assert pool.closed
