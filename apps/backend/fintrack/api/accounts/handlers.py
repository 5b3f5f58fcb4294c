"""Account handlers mounted by ``fintrack.routers.accounts``."""

from __future__ import annotations

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.api.transactions.handlers import account_transaction_filters
from fintrack.core.config import settings
from fintrack.core.database import get_db
from fintrack.core.deps import get_current_user
from fintrack.schemas import (
    AccountCreate,
    AccountOut,
    AccountTransactionsOut,
    AccountUpdate,
    RecalibrationOut,
    TransactionFilters,
)
from fintrack.services import AccountService, RecalibrationResult, RecalibrationService, TransactionQueryService


def _recalibration_out(result: RecalibrationResult) -> RecalibrationOut:
    return RecalibrationOut(
        account=AccountOut.model_validate(result.account),
        previous_balance=float(result.previous_balance),
        drift=float(result.drift),
    )


def create_account(
    payload: AccountCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Account:
    return AccountService(db).create(payload, user_id=current_user.id)


def list_accounts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[models.Account]:
    return AccountService(db).get_all(user_id=current_user.id)


def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Account:
    return AccountService(db).get_by_id(current_user.id, account_id)


def update_account(
    account_id: int,
    payload: AccountUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Account:
    svc = AccountService(db)
    row = svc.get_by_id(current_user.id, account_id)
    return svc.update(row, payload.model_dump(exclude_unset=True))


def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    svc = AccountService(db)
    svc.delete(svc.get_by_id(current_user.id, account_id))


def get_account_transactions(
    account_id: int,
    filters: TransactionFilters = Depends(account_transaction_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> AccountTransactionsOut:
    return TransactionQueryService(db).account_transactions(
        current_user.id, account_id, filters, page=page, limit=limit
    )


def recalibrate_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> RecalibrationOut:
    result = RecalibrationService(db).recalibrate(current_user.id, account_id)
    return _recalibration_out(result)


def recalibrate_all_accounts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[RecalibrationOut]:
    return [_recalibration_out(r) for r in RecalibrationService(db).recalibrate_all(current_user.id)]
