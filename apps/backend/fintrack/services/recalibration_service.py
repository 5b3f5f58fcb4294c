from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.core.errors import AccountNotFoundError
from fintrack.services.transaction_service import (
    TransactionBalanceService,
    aggregate_account_ledger,
    ledger_net,
    to_decimal,
)

logger = logging.getLogger(__name__)


@dataclass
class RecalibrationResult:
    account: models.Account
    previous_balance: Decimal
    balance: Decimal

    @property
    def drift(self) -> Decimal:
        return self.balance - self.previous_balance


class RecalibrationService:
    """Recompute account balances from their full transaction history.

    ``balance = opening_balance + income + transfer_in - expense - transfer_out``
    over every transaction where the account is the primary account or the
    transfer destination. The stored balance is overwritten, which corrects any
    drift left behind by partial failures or manual edits. Running it twice in
    a row yields the same value.
    """

    def __init__(self, db: Session, balance_service: TransactionBalanceService | None = None) -> None:
        self.db = db
        self.balance_service = balance_service or TransactionBalanceService(db)

    def compute_balance(self, account: models.Account) -> Decimal:
        self.db.flush()
        rows = (
            self.db.query(models.Transaction)
            .filter(
                models.Transaction.user_id == account.user_id,
                or_(
                    models.Transaction.account_id == account.id,
                    models.Transaction.to_account_id == account.id,
                ),
            )
            .all()
        )
        totals = aggregate_account_ledger(rows, account.id)
        return to_decimal(account.opening_balance) + ledger_net(totals)

    def recalibrate(self, user_id: int, account_id: int) -> RecalibrationResult:
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if not account:
            raise AccountNotFoundError(account_id)
        try:
            result = self._recalibrate_one(account)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(account)
        return result

    def recalibrate_all(self, user_id: int) -> list[RecalibrationResult]:
        accounts = (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id)
            .order_by(models.Account.id)
            .all()
        )
        try:
            results = [self._recalibrate_one(account) for account in accounts]
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        for result in results:
            self.db.refresh(result.account)
        return results

    def _recalibrate_one(self, account: models.Account) -> RecalibrationResult:
        previous = to_decimal(account.balance)
        computed = self.compute_balance(account)
        self.balance_service.overwrite_balance(account.id, computed)
        result = RecalibrationResult(account=account, previous_balance=previous, balance=computed)
        if result.drift != 0:
            logger.warning(
                "recalibration corrected drift account_id=%s previous=%s balance=%s drift=%s",
                account.id,
                previous,
                computed,
                result.drift,
            )
        else:
            logger.info("recalibration account_id=%s balance=%s (no drift)", account.id, computed)
        return result
