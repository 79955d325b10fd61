import sqlite3

import pytest
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, build_engine, transaction
from app.models.account import Account


@pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:"])
def test_memory_database_shares_one_connection(url):
    engine = build_engine(url)
    try:
        assert isinstance(engine.pool, StaticPool)
    finally:
        engine.dispose()


def test_file_database_gives_each_session_its_own_connection(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'journal.db'}")
    try:
        assert not isinstance(engine.pool, StaticPool)
        with engine.connect() as first, engine.connect() as second:
            assert first.connection.dbapi_connection is not second.connection.dbapi_connection
    finally:
        engine.dispose()


def test_file_transaction_takes_the_write_lock_at_begin(tmp_path):
    path = tmp_path / "journal.db"
    engine = build_engine(f"sqlite:///{path}")
    Base.metadata.create_all(bind=engine)
    other = sqlite3.connect(str(path), timeout=0)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            with pytest.raises(sqlite3.OperationalError):
                other.execute("BEGIN IMMEDIATE")
            conn.rollback()
        other.execute("BEGIN IMMEDIATE")
        other.rollback()
    finally:
        other.close()
        engine.dispose()


def test_closing_one_session_keeps_another_sessions_commit(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'journal.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    reader = Session()
    writer = Session()
    try:
        assert reader.query(Account).count() == 0
        reader.close()

        with transaction(writer):
            writer.add(Account(user_id=1, name="Main"))
        writer.close()

        reader = Session()
        assert reader.query(Account).count() == 1
    finally:
        reader.close()
        writer.close()
        engine.dispose()


def test_file_database_enforces_foreign_keys(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'journal.db'}")
    try:
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    finally:
        engine.dispose()
