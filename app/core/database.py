"""
Database configuration and session management
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from sqlalchemy import create_engine, event
from sqlalchemy import text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from alembic.config import Config
from alembic.script import ScriptDirectory

from app.core.config import settings

logger = logging.getLogger(__name__)


def _is_sqlite_memory(url: URL) -> bool:
    return not url.database or url.database == ":memory:" or "mode=memory" in str(url)


def build_engine(url: str, isolation_level: Optional[str] = None, echo: bool = False) -> Engine:
    """Create an engine for the journal store.

    In-memory SQLite shares a single connection so every session sees the same
    database. File-backed SQLite gets a regular pool and takes the write lock
    when a transaction begins, so two trade closes cannot interleave.
    """
    sqlite_url = make_url(url)
    if not sqlite_url.drivername.startswith("sqlite"):
        kwargs = {"echo": echo}
        if isolation_level:
            kwargs["isolation_level"] = isolation_level
        return create_engine(url, **kwargs)

    in_memory = _is_sqlite_memory(sqlite_url)
    if in_memory:
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo
        )
    else:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo
        )

    @event.listens_for(engine, "connect")
    def _configure_sqlite_connection(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        if not in_memory:
            # pysqlite's own BEGIN is deferred; transactions are opened by the begin hook instead
            dbapi_connection.isolation_level = None

    if not in_memory:
        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# Create database engine
engine = build_engine(
    settings.DATABASE_URL,
    isolation_level=settings.DATABASE_ISOLATION_LEVEL,
    echo=settings.DATABASE_ECHO,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

async def init_db():
    """Initialize database by validating Alembic revision state."""
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"
    alembic_dir = project_root / "alembic"

    if not alembic_ini.exists() or not alembic_dir.exists():
        raise RuntimeError("Alembic configuration is missing. Cannot initialize database safely.")

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(alembic_dir))
    script = ScriptDirectory.from_config(alembic_cfg)
    heads = script.get_heads()
    if len(heads) != 1:
        raise RuntimeError("Expected a single Alembic head revision.")
    expected_head = heads[0]

    current_revision = None
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).fetchone()
            current_revision = row[0] if row else None
    except SQLAlchemyError:
        current_revision = None

    if current_revision != expected_head:
        raise RuntimeError(
            f"Database revision mismatch. Current={current_revision}, Expected={expected_head}. "
            "Run `python -m alembic upgrade head` before starting the app."
        )
    logger.info("Database revision verified at head: %s", expected_head)

def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run one journal mutation as a single unit of work.

    Commits when the block finishes and rolls back on any exception, so a
    rejected operation never leaves a partial write behind.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
