"""Shared fixtures for bulkops tests."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from bulk_models import Base
from bulkops import BulkOperations
from bulkops.core.schema import RecordAccessor
from bulkops.operators.sqlite import SQLiteConnector


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def engine(temp_db):
    """Plain SQLAlchemy engine over a temporary database with all tables created."""
    engine = create_engine(f"sqlite:///{temp_db}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sqlite_connector(temp_db):
    """Connected SQLite connector (transactional DDL enabled) with all tables created."""
    connector = SQLiteConnector({"database": temp_db})
    connector.connect()
    Base.metadata.create_all(connector.engine)
    yield connector
    connector.disconnect()


@pytest.fixture
def ops(engine):
    return BulkOperations(engine)


@pytest.fixture(autouse=True)
def _fresh_accessors():
    yield
    RecordAccessor.clear()


def fetch_all(engine, model, order_by):
    """Load every row of a mapped table as detached instances."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(select(model).order_by(order_by)))


def count_rows(engine, table_name):
    with engine.connect() as conn:
        return conn.exec_driver_sql(f'SELECT count(*) FROM "{table_name}"').scalar_one()


def temp_tables(conn):
    rows = conn.exec_driver_sql("SELECT name FROM sqlite_temp_master WHERE type = 'table'")
    return {row[0] for row in rows}
