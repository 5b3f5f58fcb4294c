"""Transaction handlers mounted by ``fintrack.routers.transactions``."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import Depends, Query, Response
from sqlalchemy.orm import Session

from fintrack import models
from fintrack.core.config import settings
from fintrack.core.database import get_db
from fintrack.core.deps import get_current_user
from fintrack.schemas import (
    CategorySummaryItem,
    PaginationOut,
    TransactionCreate,
    TransactionFilters,
    TransactionOut,
    TransactionPage,
    TransactionUpdate,
)
from fintrack.services import ReportService, TransactionLifecycleService, TransactionQueryService


def transaction_filters(
    type: Optional[models.TxnType] = Query(None),
    category: Optional[str] = Query(None),
    division: Optional[models.Division] = Query(None),
    account_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> TransactionFilters:
    return TransactionFilters(
        type=type,
        category=category,
        division=division,
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
    )


def account_transaction_filters(
    type: Optional[models.TxnType] = Query(None),
    category: Optional[str] = Query(None),
    division: Optional[models.Division] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> TransactionFilters:
    # The account comes from the path; no account_id query parameter here
    return TransactionFilters(
        type=type,
        category=category,
        division=division,
        start_date=start_date,
        end_date=end_date,
    )


def list_transactions(
    response: Response,
    filters: TransactionFilters = Depends(transaction_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> TransactionPage:
    rows, total = TransactionQueryService(db).list(current_user.id, filters, page=page, limit=limit)
    response.headers["X-Total-Count"] = str(total)
    return TransactionPage(
        transactions=[TransactionOut.model_validate(r) for r in rows],
        pagination=PaginationOut(page=page, limit=limit, total=total),
    )


def get_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Transaction:
    return TransactionQueryService(db).get(current_user.id, txn_id)


def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Transaction:
    return TransactionLifecycleService(db).create(current_user.id, payload)


def update_transaction(
    txn_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> models.Transaction:
    changes = payload.model_dump(exclude_unset=True)
    return TransactionLifecycleService(db).update(current_user.id, txn_id, changes)


def delete_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    TransactionLifecycleService(db).delete(current_user.id, txn_id)


def category_summary(
    type: Optional[models.TxnType] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[CategorySummaryItem]:
    return ReportService(db).category_summary(current_user.id, txn_type=type, start=start_date, end=end_date)
