"""Failure handling: rollback, error wrapping and staging cleanup."""

import logging

import pytest

from bulk_models import Tag, Widget, events
from bulkops import BulkConfig, BulkOperations
from bulkops.exceptions import (
    BulkTransferError,
    InsertFailedError,
    MergeExecutionError,
    SchemaResolutionError,
    UpdateFailedError,
    UpsertFailedError,
)
from bulkops.operators.sqlite import SQLiteDialect
from conftest import count_rows, fetch_all, temp_tables


class BrokenCleanupDialect(SQLiteDialect):
    """Drops the stale staging table normally, then fails every later drop."""

    def __init__(self):
        super().__init__()
        self.drops = 0

    def drop_staging_sql(self, descriptor):
        self.drops += 1
        if self.drops == 1:
            return super().drop_staging_sql(descriptor)
        return "DROP TABLE no_such_table_anywhere"


class InterruptedDialect(SQLiteDialect):
    """Raises KeyboardInterrupt as soon as the first chunk is shipped."""

    def _transfer(self, conn, table, columns, rows):
        raise KeyboardInterrupt


class TestRollback:
    def test_duplicate_key_insert_rolls_back(self, engine, ops):
        ops.insert([Widget(id=1, name="existing")], options=BulkConfig(keep_identity=True))

        with pytest.raises(InsertFailedError) as excinfo:
            ops.insert(
                [Widget(id=10, name="new"), Widget(id=1, name="duplicate")],
                options=BulkConfig(keep_identity=True),
            )

        assert isinstance(excinfo.value.cause, BulkTransferError)
        assert excinfo.value.table == '"widgets"'
        rows = fetch_all(engine, Widget, Widget.id)
        assert [(r.id, r.name) for r in rows] == [(1, "existing")]

    def test_failed_merge_rolls_back_keyed_changes(self, engine, ops):
        ops.insert([Tag(code="a", label="first")])

        # the empty key is a placeholder, so the row reaches the insert-new
        # statement with a NULL primary key
        with pytest.raises(UpsertFailedError) as excinfo:
            ops.insert_or_update([Tag(code="a", label="changed"), Tag(code="", label="bad")])

        assert isinstance(excinfo.value.cause, MergeExecutionError)
        assert excinfo.value.__cause__ is excinfo.value.cause
        rows = fetch_all(engine, Tag, Tag.code)
        assert [(r.code, r.label) for r in rows] == [("a", "first")]

    def test_staging_dropped_after_failure(self, engine):
        with engine.connect() as conn:
            with pytest.raises(UpsertFailedError):
                BulkOperations(conn).insert_or_update([Tag(code="", label="bad")])

            assert not conn.in_transaction()
            assert "temp_tags" not in temp_tables(conn)

    def test_failure_inside_callers_transaction(self, sqlite_connector):
        engine = sqlite_connector.engine
        with engine.connect() as conn:
            trans = conn.begin()
            BulkOperations(conn).insert([Tag(code="kept", label="x")])

            with pytest.raises(UpsertFailedError):
                BulkOperations(conn).insert_or_update([Tag(code="", label="bad")])

            assert trans.is_active
            assert "temp_tags" not in temp_tables(conn)
            trans.commit()

        assert count_rows(engine, "tags") == 1


class TestInterrupts:
    def test_interrupt_rolls_back_and_releases_connection(self, engine, ops):
        ops.insert([Tag(code="a", label="first")])

        with pytest.raises(KeyboardInterrupt):
            BulkOperations(engine, dialect=InterruptedDialect()).insert_or_update(
                [Tag(code="a", label="changed")]
            )

        assert engine.pool.checkedout() == 0
        rows = fetch_all(engine, Tag, Tag.code)
        assert [(r.code, r.label) for r in rows] == [("a", "first")]

    def test_interrupt_drops_staging(self, engine):
        with engine.connect() as conn:
            with pytest.raises(KeyboardInterrupt):
                BulkOperations(conn, dialect=InterruptedDialect()).update([Tag(code="a", label="x")])

            assert not conn.in_transaction()
            assert "temp_tags" not in temp_tables(conn)

    def test_interrupt_is_logged_as_failed(self, engine, caplog):
        caplog.set_level(logging.DEBUG, logger="bulkops")

        with pytest.raises(KeyboardInterrupt):
            BulkOperations(engine, dialect=InterruptedDialect()).insert([Tag(code="a", label="x")])

        messages = [r.getMessage() for r in caplog.records if " -> " in r.getMessage()]
        assert messages[-3:] == [
            "insert: stream_data -> rollback",
            "insert: rollback -> close_connection",
            "insert: close_connection -> failed",
        ]
        assert "interrupted" in caplog.text


class TestSchemaFailures:
    @pytest.mark.parametrize(
        "method, error",
        [("update", UpdateFailedError), ("insert_or_update", UpsertFailedError)],
    )
    def test_keyed_operations_need_primary_key(self, ops, method, error):
        with pytest.raises(error) as excinfo:
            getattr(ops, method)([{"name": "a", "value": 1}], model=events)

        assert isinstance(excinfo.value.cause, SchemaResolutionError)

    def test_unmapped_records(self, ops):
        with pytest.raises(InsertFailedError) as excinfo:
            ops.insert([object()])

        assert isinstance(excinfo.value.cause, SchemaResolutionError)
        assert excinfo.value.table is None


class TestStaging:
    def test_stale_staging_table_is_replaced(self, engine):
        with engine.connect() as conn:
            conn.exec_driver_sql('CREATE TEMP TABLE "temp_tags" (junk INTEGER)')
            conn.commit()

            result = BulkOperations(conn).insert_or_update([Tag(code="a", label="x")])

            assert result.records_upserted == 1
            assert "temp_tags" not in temp_tables(conn)

    def test_cleanup_failure_is_reported_not_raised(self, engine):
        ops = BulkOperations(engine, dialect=BrokenCleanupDialect())

        result = ops.insert_or_update([Tag(code="a", label="x")])

        assert result.success
        assert "no_such_table_anywhere" in result.cleanup_error
        assert count_rows(engine, "tags") == 1


class TestLogging:
    def test_state_transitions(self, ops, caplog):
        caplog.set_level(logging.DEBUG, logger="bulkops")

        ops.insert_or_update([Tag(code="a", label="x")])

        states = [
            record.getMessage().split(" -> ")[1]
            for record in caplog.records
            if record.name == "bulkops.core.orchestrator" and " -> " in record.getMessage()
        ]
        assert states == [
            "open_connection",
            "begin_transaction",
            "resolve_schema",
            "create_staging",
            "stream_data",
            "merge",
            "drop_staging",
            "commit",
            "close_connection",
            "committed",
        ]

    def test_failure_transitions(self, ops, caplog):
        caplog.set_level(logging.DEBUG, logger="bulkops")

        with pytest.raises(UpdateFailedError):
            ops.update([{"name": "a"}], model=events)

        messages = [r.getMessage() for r in caplog.records if " -> " in r.getMessage()]
        assert messages[-3:] == [
            "update: resolve_schema -> rollback",
            "update: rollback -> close_connection",
            "update: close_connection -> failed",
        ]

    def test_sqlite_ignores_timeout(self, ops, caplog):
        caplog.set_level(logging.INFO, logger="bulkops")

        result = ops.insert([Tag(code="a", label="x")], options=BulkConfig(timeout=5))

        assert result.success
        assert "does not support statement timeouts" in caplog.text
