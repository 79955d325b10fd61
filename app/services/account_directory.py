"""
Read-only view of the account directory used for ownership checks
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.models.account import Account


class AccountDirectory:
    """Account lookups; soft-deleted accounts are treated as absent."""

    def __init__(self, db: Session):
        self.db = db

    def find_account_by_id(self, account_id: int) -> Optional[Account]:
        return (
            self.db.query(Account)
            .filter(Account.id == account_id, Account.deleted_at.is_(None))
            .first()
        )
