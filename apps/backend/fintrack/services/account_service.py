from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from fintrack import models, schemas
from fintrack.core.config import settings
from fintrack.core.errors import AccountNotFoundError, ConflictError
from fintrack.services.transaction_service import to_decimal

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_all(self, *, user_id: int) -> list[models.Account]:
        return (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id)
            .order_by(models.Account.id)
            .all()
        )

    def get_by_id(self, user_id: int, account_id: int) -> models.Account:
        row = (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id, models.Account.id == account_id)
            .first()
        )
        if not row:
            raise AccountNotFoundError(account_id)
        return row

    def create(self, payload: schemas.AccountCreate, *, user_id: int) -> models.Account:
        self._ensure_unique_name(user_id, payload.name)
        opening = to_decimal(payload.opening_balance)
        row = models.Account(
            user_id=user_id,
            name=payload.name,
            type=payload.type,
            currency=payload.currency or settings.DEFAULT_CURRENCY,
            opening_balance=opening,
            balance=opening,
        )
        self.db.add(row)
        self.db.flush()
        if payload.seed_opening_entry and opening != 0:
            # Informational only: the opening balance is already in ``balance``
            self.db.add(
                models.Transaction(
                    user_id=user_id,
                    account_id=row.id,
                    type=models.TxnType.INCOME if opening > 0 else models.TxnType.EXPENSE,
                    amount=abs(opening),
                    category=models.OPENING_BALANCE_CATEGORY,
                    division=models.Division.PERSONAL,
                    description=models.OPENING_BALANCE_CATEGORY,
                    date=models.now_local_naive(),
                    is_balance_neutral=True,
                )
            )
        self.db.commit()
        self.db.refresh(row)
        logger.info("account created id=%s user_id=%s opening_balance=%s", row.id, user_id, opening)
        return row

    def update(self, row: models.Account, patch: dict[str, Any]) -> models.Account:
        if not patch:
            return row
        if "name" in patch and patch["name"] != row.name:
            self._ensure_unique_name(row.user_id, patch["name"])
        for key in ("name", "type", "currency"):
            if key in patch and patch[key] is not None:
                setattr(row, key, patch[key])
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, row: models.Account) -> None:
        account_id, user_id = row.id, row.user_id
        # History is kept; transaction references are cleared by ON DELETE SET NULL
        self.db.delete(row)
        self.db.commit()
        logger.info("account deleted id=%s user_id=%s", account_id, user_id)

    def _ensure_unique_name(self, user_id: int, name: str) -> None:
        exists = (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id, models.Account.name == name)
            .first()
        )
        if exists:
            raise ConflictError("Account with same name already exists for user")
