from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401
from app.core.database import Base, build_engine
from app.models.account import Account


@pytest.fixture
def db():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def accounts(db):
    main = Account(user_id=1, name="Main")
    prop = Account(user_id=1, name="Prop firm")
    archived = Account(user_id=1, name="Old broker", deleted_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
    foreign = Account(user_id=2, name="Someone else")
    db.add_all([main, prop, archived, foreign])
    db.commit()
    return SimpleNamespace(main=main.id, prop=prop.id, archived=archived.id, foreign=foreign.id)


@pytest.fixture
def position_payload(accounts):
    """Factory for order/trade create payloads on user 1's main account."""

    def make(**overrides):
        payload = {
            "account_id": accounts.main,
            "symbol": "NASDAQ",
            "direction": "BUY",
            "entry_price": "18500",
            "size": "2",
            "setup": "Opening range breakout",
            "sl_points": "50",
        }
        payload.update(overrides)
        return payload

    return make
