"""End-to-end tests for bulk operations against SQLite."""

import threading
import uuid
from datetime import datetime

import pytest
from sqlalchemy import create_engine, event

from bulk_models import Label, Pair, Tag, Token, Widget, events
from bulkops import (
    BulkConfig,
    BulkOperations,
    bulk_insert,
    bulk_insert_or_update,
    bulk_update,
)
from bulkops.exceptions import (
    BulkTransferError,
    ConfigurationError,
    InsertFailedError,
    OperationCancelledError,
    UpdateFailedError,
    UpsertFailedError,
)
from bulkops.models.descriptor import NIL_UUID
from conftest import count_rows, fetch_all, temp_tables


def make_widgets(count, start_id=0):
    return [
        Widget(
            id=start_id + i if start_id else 0,
            name=f"widget-{i}",
            price=float(i),
            created_at=datetime(2024, 1, 1 + i % 28, 12, 0),
        )
        for i in range(count)
    ]


class TestInsert:
    """Direct inserts into the target table."""

    def test_inserts_every_record(self, engine, ops):
        records = make_widgets(25)

        result = ops.insert(records)

        assert result.success
        assert result.operation == "insert"
        assert result.table == '"widgets"'
        assert result.records_streamed == 25
        assert result.records_inserted == 25
        rows = fetch_all(engine, Widget, Widget.id)
        assert len(rows) == 25
        assert [r.name for r in rows] == [r.name for r in records]
        assert rows[3].price == 3.0
        assert rows[3].created_at == datetime(2024, 1, 4, 12, 0)

    def test_identity_assigned_by_database(self, engine, ops):
        ops.insert([Widget(id=100, name="a"), Widget(id=200, name="b")])

        rows = fetch_all(engine, Widget, Widget.id)
        assert [r.id for r in rows] == [1, 2]

    def test_keep_identity_preserves_keys(self, engine, ops):
        ops.insert(
            [Widget(id=100, name="a"), Widget(id=200, name="b")],
            options=BulkConfig(keep_identity=True),
        )

        rows = fetch_all(engine, Widget, Widget.id)
        assert [(r.id, r.name) for r in rows] == [(100, "a"), (200, "b")]

    def test_small_batches(self, engine, ops):
        result = ops.insert(make_widgets(11), options=BulkConfig(batch_size=3, notify_after=2))

        assert result.records_streamed == 11
        assert count_rows(engine, "widgets") == 11

    def test_generator_input(self, engine, ops):
        records = (Widget(id=0, name=f"g{i}") for i in range(5))

        result = ops.insert(records)

        assert result.records_inserted == 5
        assert count_rows(engine, "widgets") == 5

    def test_mapping_records_with_model(self, engine, ops):
        ops.insert(
            [{"id": 0, "name": "from-dict", "price": 1.5, "created_at": None}], model=Widget
        )

        rows = fetch_all(engine, Widget, Widget.id)
        assert rows[0].name == "from-dict"
        assert rows[0].price == 1.5
        assert rows[0].created_at is None

    def test_mapping_records_require_model(self, ops):
        with pytest.raises(ConfigurationError):
            ops.insert([{"id": 0, "name": "x"}])

    def test_core_table_without_primary_key(self, engine, ops):
        result = ops.insert([{"name": "a", "value": 1}, {"name": "b", "value": 2}], model=events)

        assert result.records_inserted == 2
        assert count_rows(engine, "events") == 2

    def test_uuid_keys_written_in_storage_form(self, engine, ops):
        key = uuid.uuid4()

        ops.insert([Token(id=key, label="kept")], options=BulkConfig(keep_identity=True))

        rows = fetch_all(engine, Token, Token.label)
        assert rows[0].id == key


class TestEmptyInput:
    """Empty input never touches the database."""

    @pytest.mark.parametrize("records", [None, [], ()])
    def test_no_connection_opened(self, temp_db, records):
        engine = create_engine(f"sqlite:///{temp_db}")
        connections = []
        event.listen(engine, "connect", lambda *args: connections.append(args))

        ops = BulkOperations(engine)
        for method in (ops.insert, ops.update, ops.insert_or_update):
            result = method(records, model=Widget)
            assert result.success
            assert result.records_streamed == 0
            assert result.table is None

        assert connections == []
        engine.dispose()

    def test_empty_generator(self, ops):
        result = ops.insert_or_update(iter(()))

        assert result.records_streamed == 0


class TestUpdate:
    """Update-only merges through a staging table."""

    def test_updates_mutated_fields(self, engine, ops):
        ops.insert(make_widgets(5))
        rows = fetch_all(engine, Widget, Widget.id)
        for row in rows:
            row.name = row.name.upper()
            row.price = row.price + 100

        result = ops.update(rows)

        assert result.records_streamed == 5
        assert result.records_updated == 5
        updated = fetch_all(engine, Widget, Widget.id)
        assert [r.id for r in updated] == [r.id for r in rows]
        assert [r.name for r in updated] == [f"WIDGET-{i}" for i in range(5)]
        assert updated[2].price == 102.0

    def test_records_without_key_are_skipped(self, engine, ops):
        ops.insert([Widget(id=0, name="original")])

        ops.update([Widget(id=0, name="ghost"), Widget(id=1, name="changed")])

        rows = fetch_all(engine, Widget, Widget.id)
        assert [(r.id, r.name) for r in rows] == [(1, "changed")]

    def test_unknown_keys_change_nothing(self, engine, ops):
        ops.insert([Widget(id=0, name="original")])

        result = ops.update([Widget(id=99, name="missing")])

        assert result.records_updated == 0
        assert count_rows(engine, "widgets") == 1

    def test_composite_key(self, engine, ops):
        ops.insert(
            [Pair(left_id=1, right_code="a", value="x"), Pair(left_id=1, right_code="b", value="y")]
        )

        ops.update([Pair(left_id=1, right_code="b", value="z")])

        rows = fetch_all(engine, Pair, Pair.right_code)
        assert [r.value for r in rows] == ["x", "z"]

    def test_nothing_updatable_is_a_no_op(self, engine, ops):
        ops.insert([Label(code="a")])

        result = ops.update([Label(code="a")])

        assert result.success
        assert result.records_updated == 0

    def test_mapping_missing_a_field_is_rejected(self, engine, ops):
        ops.insert([Widget(id=1, name="keep", price=9.5)], options=BulkConfig(keep_identity=True))

        with pytest.raises(UpdateFailedError) as excinfo:
            ops.update([{"id": 1, "name": "renamed"}], model=Widget)

        assert isinstance(excinfo.value.cause, BulkTransferError)
        rows = fetch_all(engine, Widget, Widget.id)
        assert [(r.name, r.price) for r in rows] == [("keep", 9.5)]

    def test_staging_is_dropped(self, engine):
        bulk_insert(engine, make_widgets(2))
        with engine.connect() as conn:
            bulk_update(conn, fetch_all(engine, Widget, Widget.id))
            assert "temp_widgets" not in temp_tables(conn)


class TestInsertOrUpdate:
    """Split upserts: keyed rows overwrite, keyless rows are inserted."""

    def test_placeholder_and_real_keys(self, engine, ops):
        ops.insert([Widget(id=5, name="old")], options=BulkConfig(keep_identity=True))

        result = ops.insert_or_update(
            [Widget(id=0, name="a"), Widget(id=0, name="b"), Widget(id=5, name="c")]
        )

        assert result.records_streamed == 3
        assert result.records_upserted == 1
        assert result.records_inserted == 2
        rows = fetch_all(engine, Widget, Widget.id)
        assert len(rows) == 3
        assert rows[0].id == 5 and rows[0].name == "c"
        assert sorted(r.name for r in rows[1:]) == ["a", "b"]
        assert all(r.id > 5 for r in rows[1:])

    def test_mixed_batch_grows_by_keyless_count(self, engine, ops):
        ops.insert(make_widgets(4))
        existing = fetch_all(engine, Widget, Widget.id)
        for row in existing:
            row.name = f"updated-{row.id}"
        new = [Widget(id=0, name="new-1"), Widget(id=None, name="new-2")]

        ops.insert_or_update(existing + new)

        rows = fetch_all(engine, Widget, Widget.id)
        assert len(rows) == 6
        assert [r.name for r in rows[:4]] == [f"updated-{r.id}" for r in existing]
        assert {r.name for r in rows[4:]} == {"new-1", "new-2"}

    def test_keys_not_in_table_are_inserted_with_their_key(self, engine, ops):
        ops.insert_or_update([Widget(id=42, name="explicit")])

        rows = fetch_all(engine, Widget, Widget.id)
        assert [(r.id, r.name) for r in rows] == [(42, "explicit")]

    def test_idempotent_on_keyed_batch(self, engine, ops):
        records = [Widget(id=i, name=f"w{i}", price=float(i)) for i in range(1, 6)]

        ops.insert_or_update(records)
        first = [(r.id, r.name, r.price) for r in fetch_all(engine, Widget, Widget.id)]
        ops.insert_or_update(records)
        second = [(r.id, r.name, r.price) for r in fetch_all(engine, Widget, Widget.id)]

        assert first == second
        assert len(second) == 5

    def test_string_keys(self, engine, ops):
        ops.insert([Tag(code="a", label="first")])

        ops.insert_or_update([Tag(code="a", label="changed"), Tag(code="b", label="new")])

        rows = fetch_all(engine, Tag, Tag.code)
        assert [(r.code, r.label) for r in rows] == [("a", "changed"), ("b", "new")]

    def test_nil_uuid_gets_generated_key(self, engine, ops):
        existing = uuid.uuid4()
        ops.insert([Token(id=existing, label="old")], options=BulkConfig(keep_identity=True))

        ops.insert_or_update(
            [
                Token(id=existing, label="renamed"),
                Token(id=NIL_UUID, label="fresh"),
                Token(id=str(NIL_UUID), label="fresh-str"),
            ]
        )

        rows = {r.label: r.id for r in fetch_all(engine, Token, Token.label)}
        assert rows["renamed"] == existing
        assert rows["fresh"] not in (None, NIL_UUID, existing)
        assert rows["fresh-str"] not in (None, NIL_UUID, existing, rows["fresh"])
        assert "old" not in rows

    def test_nothing_updatable_ignores_conflicts(self, engine, ops):
        ops.insert([Label(code="a")])

        ops.insert_or_update([Label(code="a"), Label(code="b")])

        assert count_rows(engine, "labels") == 2

    def test_mapping_missing_a_field_is_rejected(self, engine, ops):
        ops.insert([Tag(code="a", label="first")])

        with pytest.raises(UpsertFailedError) as excinfo:
            ops.insert_or_update([{"code": "a"}, {"code": "b", "label": "new"}], model=Tag)

        assert isinstance(excinfo.value.cause, BulkTransferError)
        rows = fetch_all(engine, Tag, Tag.code)
        assert [(r.code, r.label) for r in rows] == [("a", "first")]

    def test_module_level_function(self, engine):
        result = bulk_insert_or_update(engine, [Widget(id=0, name="solo")])

        assert result.operation == "insert_or_update"
        assert result.metadata["dialect"] == "sqlite"
        assert count_rows(engine, "widgets") == 1


class TestConnectionBind:
    """A caller-owned connection is never closed and keeps its transaction."""

    def test_runs_inside_callers_transaction(self, sqlite_connector):
        engine = sqlite_connector.engine
        with engine.connect() as conn:
            trans = conn.begin()
            BulkOperations(conn).insert_or_update([Widget(id=0, name="inside")])
            assert not conn.closed
            assert "temp_widgets" not in temp_tables(conn)
            trans.rollback()

        assert count_rows(engine, "widgets") == 0

    def test_commits_without_outer_transaction(self, sqlite_connector):
        engine = sqlite_connector.engine
        with engine.connect() as conn:
            BulkOperations(conn).insert([Widget(id=0, name="a")])
            assert not conn.in_transaction()

        assert count_rows(engine, "widgets") == 1

    def test_connector_bind(self, sqlite_connector):
        result = BulkOperations(sqlite_connector).insert_or_update(
            [Widget(id=0, name="via-connector")]
        )

        assert result.records_inserted == 1
        rows = sqlite_connector.execute_query("SELECT widget_name FROM widgets")
        assert rows == [{"widget_name": "via-connector"}]


class TestCancellation:
    def test_cancelled_before_start(self, engine, ops):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(InsertFailedError) as excinfo:
            ops.insert(make_widgets(3), cancel_event=cancel)

        assert isinstance(excinfo.value.cause, OperationCancelledError)
        assert excinfo.value.operation == "insert"
        assert count_rows(engine, "widgets") == 0

    def test_cancelled_mid_stream_rolls_back(self, engine, ops):
        cancel = threading.Event()

        def records():
            for i in range(10):
                if i == 6:
                    cancel.set()
                yield Widget(id=0, name=f"w{i}")

        with pytest.raises(UpsertFailedError) as excinfo:
            ops.insert_or_update(records(), options=BulkConfig(batch_size=2), cancel_event=cancel)

        assert isinstance(excinfo.value.__cause__, OperationCancelledError)
        assert count_rows(engine, "widgets") == 0
