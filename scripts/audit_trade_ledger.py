#!/usr/bin/env python3
"""
Audit trade state against the partial exit ledger.

This script:
1. Rebuilds every trade's remaining size, average exit price and status from
   its partial exits (the ledger is the source of truth).
2. Recomputes the closing metrics of trades the ledger says are flat.
3. Reports every stored value that drifted and, with --repair, rewrites it
   (after backing up a SQLite database file).
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.database import build_engine, transaction
from app.core.timeutils import utcnow
from app.models.enums import EntityType, TradeStatus, TriggerType
from app.models.journal import Trade
from app.services.pnl import (
    ZERO,
    final_metrics,
    is_flat,
    remaining_after_exit,
    weighted_average_exit_price,
)
from app.services.status_history import StatusHistoryService

logger = logging.getLogger("audit_trade_ledger")


@dataclass
class LedgerDrift:
    trade_id: int
    user_id: int
    # field -> (stored, rebuilt)
    fields: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [f"{name}: {stored} -> {rebuilt}" for name, (stored, rebuilt) in self.fields.items()]
        return f"trade {self.trade_id}: " + ", ".join(parts)


def _same(stored: Any, rebuilt: Any) -> bool:
    if stored is None or rebuilt is None:
        return stored is rebuilt
    if isinstance(rebuilt, Decimal):
        return Decimal(stored) == rebuilt
    return stored == rebuilt


def rebuild_trade(trade: Trade) -> Dict[str, Any]:
    """Expected trade columns derived from the position and the exits alone."""
    position = trade.position
    exits = list(trade.partial_exits)

    remaining = position.size
    for partial_exit in exits:
        remaining = remaining_after_exit(remaining, partial_exit.size)

    if not exits:
        status = TradeStatus.OPEN
    elif is_flat(remaining):
        status = TradeStatus.CLOSED
    else:
        status = TradeStatus.SECURED

    expected: Dict[str, Any] = {
        "remaining_size": ZERO if is_flat(remaining) else remaining,
        "avg_exit_price": weighted_average_exit_price((e.exit_price, e.size) for e in exits),
        "status": status,
    }

    if status is TradeStatus.CLOSED:
        last = exits[-1]
        closed_at = trade.closed_at or last.exited_at
        metrics = final_metrics(
            (e.pnl for e in exits),
            entry_price=position.entry_price,
            size=position.size,
            sl_points=trade.risk_sl_points if trade.risk_sl_points is not None else position.sl_points,
            opened_at=trade.opened_at,
            closed_at=closed_at,
        )
        expected.update({
            "pnl": metrics.pnl,
            "pnl_percent": metrics.pnl_percent,
            "risk_reward": metrics.risk_reward,
            "duration_minutes": metrics.duration_minutes,
            "exit_type": trade.exit_type or last.exit_type,
            "closed_at": closed_at,
        })
    else:
        expected.update({
            "pnl": None,
            "pnl_percent": None,
            "risk_reward": None,
            "duration_minutes": None,
            "exit_type": None,
            "closed_at": None,
        })
    return expected


def audit_trade(trade: Trade) -> Optional[LedgerDrift]:
    drift = LedgerDrift(trade_id=trade.id, user_id=trade.position.owner_id)
    for name, rebuilt in rebuild_trade(trade).items():
        stored = getattr(trade, name)
        if not _same(stored, rebuilt):
            drift.fields[name] = (stored, rebuilt)
    return drift if drift.fields else None


def audit_ledger(db: Session, trade_id: Optional[int] = None) -> List[LedgerDrift]:
    query = db.query(Trade).order_by(Trade.id.asc())
    if trade_id is not None:
        query = query.filter(Trade.id == trade_id)
    drifts = []
    for trade in query.all():
        drift = audit_trade(trade)
        if drift is not None:
            drifts.append(drift)
    return drifts


def repair_ledger(db: Session, drifts: List[LedgerDrift]) -> int:
    """Write the rebuilt values back; a status change is audited as a SYSTEM transition."""
    history = StatusHistoryService(db)
    with transaction(db):
        for drift in drifts:
            trade = db.query(Trade).filter(Trade.id == drift.trade_id).with_for_update().one()
            previous_status = trade.status
            for name, (_, rebuilt) in drift.fields.items():
                setattr(trade, name, rebuilt)
            if "status" in drift.fields:
                history.record(
                    EntityType.TRADE,
                    trade.id,
                    previous_status,
                    trade.status,
                    drift.user_id,
                    TriggerType.SYSTEM,
                    details={"reason": "ledger_audit"},
                )
            logger.info(f"Repaired {drift.describe()}")
    return len(drifts)


def _backup_sqlite(database_url: str) -> Optional[Path]:
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or not url.database or url.database == ":memory:":
        return None
    db_path = Path(url.database)
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    backup_path = db_path.with_suffix(db_path.suffix + f".bak.{utcnow().strftime('%Y%m%d%H%M%S')}")
    backup_path.write_bytes(db_path.read_bytes())
    return backup_path


def main():
    parser = argparse.ArgumentParser(description="Audit trade state against the partial exit ledger")
    parser.add_argument("--db-url", default=settings.DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument("--trade-id", type=int, default=None, help="Audit a single trade")
    parser.add_argument("--repair", action="store_true", help="Rewrite drifted values")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    engine = build_engine(args.db_url)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        drifts = audit_ledger(db, trade_id=args.trade_id)
        print(f"Trades with drift: {len(drifts)}")
        for drift in drifts:
            print(f"  {drift.describe()}")

        if args.repair and drifts:
            backup_path = _backup_sqlite(args.db_url)
            if backup_path is not None:
                print(f"Backup created: {backup_path}")
            repaired = repair_ledger(db, drifts)
            print(f"Repaired trades: {repaired}")
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
