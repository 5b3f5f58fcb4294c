from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from fintrack import models, schemas
from fintrack.core.errors import AccountNotFoundError, TransactionNotFoundError
from fintrack.services.transaction_service import aggregate_account_ledger


def apply_filters(q: Query, filters: Optional[schemas.TransactionFilters]) -> Query:
    if filters is None:
        return q
    if filters.type:
        q = q.filter(models.Transaction.type == filters.type)
    if filters.category:
        q = q.filter(models.Transaction.category == filters.category)
    if filters.division:
        q = q.filter(models.Transaction.division == filters.division)
    if filters.account_id:
        q = q.filter(models.Transaction.account_id == filters.account_id)
    if filters.start_date:
        q = q.filter(models.Transaction.date >= filters.start_date)
    if filters.end_date:
        q = q.filter(models.Transaction.date <= filters.end_date)
    return q


class TransactionQueryService:
    """Read paths over the transaction store."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int, transaction_id: int) -> models.Transaction:
        tx = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.id == transaction_id, models.Transaction.user_id == user_id)
            .first()
        )
        if not tx:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def list(
        self,
        user_id: int,
        filters: Optional[schemas.TransactionFilters] = None,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[models.Transaction], int]:
        q = apply_filters(
            self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id),
            filters,
        )
        total = q.count()
        rows = (
            q.order_by(
                models.Transaction.date.desc(),
                models.Transaction.created_at.desc(),
                models.Transaction.id.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def account_transactions(
        self,
        user_id: int,
        account_id: int,
        filters: Optional[schemas.TransactionFilters] = None,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> schemas.AccountTransactionsOut:
        """Page of one account's own records plus a ledger summary.

        The summary covers every record matching the filters (not just the
        page) and classifies transfers from this account's side of the pair.
        """
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if not account:
            raise AccountNotFoundError(account_id)

        scoped = (filters or schemas.TransactionFilters()).model_copy(update={"account_id": None})
        base = apply_filters(
            self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id),
            scoped,
        )
        own = base.filter(models.Transaction.account_id == account_id)
        total = own.count()
        rows = (
            own.order_by(
                models.Transaction.date.desc(),
                models.Transaction.created_at.desc(),
                models.Transaction.id.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        touching = base.filter(
            or_(
                models.Transaction.account_id == account_id,
                models.Transaction.to_account_id == account_id,
            )
        ).all()
        totals = aggregate_account_ledger(touching, account_id)

        return schemas.AccountTransactionsOut(
            account=schemas.AccountOut.model_validate(account),
            transactions=[schemas.TransactionOut.model_validate(r) for r in rows],
            summary=schemas.AccountLedgerSummary(
                income=float(totals["income"]),
                expense=float(totals["expense"]),
                transfer_in=float(totals["transfer_in"]),
                transfer_out=float(totals["transfer_out"]),
            ),
            pagination=schemas.PaginationOut(page=page, limit=limit, total=total),
        )
