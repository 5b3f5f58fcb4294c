from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fintrack import models, schemas
from fintrack.core.config import settings
from fintrack.core.errors import (
    AccountNotFoundError,
    DomainError,
    DomainValidationError,
    EditWindowExpiredError,
    PartialFailureError,
    TransactionNotFoundError,
)
from fintrack.services.transaction_service import TransactionBalanceService, to_decimal

logger = logging.getLogger(__name__)

# Fields a partial update may not clear
_REQUIRED_FIELDS = ("account_id", "type", "amount", "division", "description", "date")


class TransactionLifecycleService:
    """Create, update and delete transactions while keeping balances consistent.

    Each operation runs as one unit of work on the session: balance increments,
    inserts and deletes are committed together or rolled back together. Updates
    are a full reverse-then-reapply of the balance effect, never a diff, so a
    change of type (income -> transfer, ...) is handled like any other edit.

    Transfers with a destination are stored as a pair (transfer_out on the
    source, transfer_in on the destination) sharing a ``TransferGroup``. The
    balance effect of the pair is carried by the transfer_out record; editing
    or deleting either half acts on the whole pair.
    """

    def __init__(
        self,
        db: Session,
        *,
        balance_service: TransactionBalanceService | None = None,
        clock: Callable[[], datetime] | None = None,
        edit_window_hours: int | None = None,
    ) -> None:
        self.db = db
        self.balance_service = balance_service or TransactionBalanceService(db)
        self._clock = clock or models.now_local_naive
        self.edit_window_hours = edit_window_hours if edit_window_hours is not None else settings.EDIT_WINDOW_HOURS

    # ---- Lookups ---------------------------------------------------------
    def get_owned_account(self, user_id: int, account_id: Optional[int]) -> models.Account:
        if account_id is None:
            raise AccountNotFoundError(account_id)
        account = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if not account:
            raise AccountNotFoundError(account_id)
        return account

    def get(self, user_id: int, transaction_id: int) -> models.Transaction:
        tx = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.id == transaction_id, models.Transaction.user_id == user_id)
            .first()
        )
        if not tx:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def is_editable(self, tx: models.Transaction) -> bool:
        return tx.is_editable_at(self._clock(), self.edit_window_hours)

    # ---- Create ----------------------------------------------------------
    def create(self, user_id: int, payload: schemas.TransactionCreate) -> models.Transaction:
        touched: set[int] = set()
        with self._unit_of_work(touched):
            account = self.get_owned_account(user_id, payload.account_id)
            category = payload.category
            to_account: models.Account | None = None

            if payload.type == models.TxnType.TRANSFER:
                if payload.to_account_id is None:
                    raise DomainValidationError("to_account_id is required for transfers")
                if payload.to_account_id == account.id:
                    raise DomainValidationError("to_account_id must differ from account_id")
                # Unresolvable destinations fail the whole transfer; no one-sided transfers
                to_account = self.get_owned_account(user_id, payload.to_account_id)
                category = category or models.TRANSFER_CATEGORY
            elif not category:
                raise DomainValidationError("category is required for income/expense")

            tx = models.Transaction(
                user_id=user_id,
                account_id=account.id,
                to_account_id=to_account.id if to_account else None,
                type=payload.type,
                amount=to_decimal(payload.amount),
                category=category,
                division=payload.division,
                description=payload.description,
                date=payload.date or self._clock(),
                transfer_type=models.TransferType.TRANSFER_OUT if to_account else None,
            )
            if to_account:
                group = models.TransferGroup()
                self.db.add(group)
                self.db.flush()
                tx.transfer_group_id = group.id
            self.db.add(tx)
            self.db.flush()

            touched.update(self.balance_service.apply_effect(tx, 1))

            if to_account:
                self.db.add(self._build_mirror(tx, source=account))
                self.db.flush()

        self.db.refresh(tx)
        logger.info(
            "transaction created id=%s user_id=%s type=%s amount=%s accounts=%s",
            tx.id,
            user_id,
            tx.type.value,
            tx.amount,
            sorted(touched),
        )
        return tx

    # ---- Update ----------------------------------------------------------
    def update(self, user_id: int, transaction_id: int, changes: dict[str, Any]) -> models.Transaction:
        touched: set[int] = set()
        with self._unit_of_work(touched):
            tx = self.get(user_id, transaction_id)
            self._ensure_editable(tx, "edited")
            if not changes:
                return tx

            primary, mirror = self._resolve_pair(tx)
            changes = {k: v for k, v in changes.items() if not (k in _REQUIRED_FIELDS and v is None)}
            touched.update(self.balance_service.reverse_effect(primary))

            mirror_description = None
            if mirror is not None and tx.id == mirror.id:
                if changes.get("type", models.TxnType.TRANSFER) != models.TxnType.TRANSFER:
                    # Leaving the pair: the addressed record stays on its own account
                    self.db.delete(primary)
                    primary, mirror = tx, None
                else:
                    # The mirror describes the pair from the destination side
                    mirror_description = changes.pop("description", None)
                    if "account_id" in changes or "to_account_id" in changes:
                        source = changes.pop("to_account_id", primary.account_id)
                        destination = changes.pop("account_id", primary.to_account_id)
                        changes["account_id"] = source
                        changes["to_account_id"] = destination

            source_account = self._apply_changes(user_id, primary, changes)
            mirror = self._sync_mirror(primary, mirror, source_account, mirror_description)
            self.db.flush()

            touched.update(self.balance_service.apply_effect(primary, 1))
            result = tx if (tx is primary or tx is mirror) else primary

        self.db.refresh(result)
        logger.info(
            "transaction updated id=%s user_id=%s fields=%s accounts=%s",
            transaction_id,
            user_id,
            sorted(changes),
            sorted(touched),
        )
        return result

    def _apply_changes(
        self, user_id: int, tx: models.Transaction, changes: dict[str, Any]
    ) -> models.Account | None:
        """Merge ``changes`` into ``tx`` and normalize transfer fields."""
        new_type = changes.get("type", tx.type)

        if "account_id" in changes and changes["account_id"] != tx.account_id:
            tx.account_id = self.get_owned_account(user_id, changes["account_id"]).id
        if "amount" in changes:
            tx.amount = to_decimal(changes["amount"])
        for key in ("division", "description", "date"):
            if key in changes:
                setattr(tx, key, changes[key])
        if "category" in changes:
            tx.category = changes["category"]

        source_account = None
        if tx.account_id is not None:
            source_account = self.get_owned_account(user_id, tx.account_id)

        if new_type != models.TxnType.TRANSFER:
            tx.to_account_id = None
            tx.transfer_type = None
            if not tx.category:
                raise DomainValidationError("category is required for income/expense")
        else:
            to_account_id = changes.get("to_account_id", tx.to_account_id)
            if not to_account_id:
                raise DomainValidationError("to_account_id is required for transfers")
            if to_account_id == tx.account_id:
                raise DomainValidationError("to_account_id must differ from account_id")
            tx.to_account_id = self.get_owned_account(user_id, to_account_id).id
            # An unpaired transfer_in keeps its orientation
            if tx.type != models.TxnType.TRANSFER or tx.transfer_type != models.TransferType.TRANSFER_IN:
                tx.transfer_type = models.TransferType.TRANSFER_OUT
            if not tx.category:
                tx.category = models.TRANSFER_CATEGORY
        tx.type = new_type
        return source_account

    def _sync_mirror(
        self,
        primary: models.Transaction,
        mirror: models.Transaction | None,
        source_account: models.Account | None,
        mirror_description: str | None,
    ) -> models.Transaction | None:
        """Create, update or drop the transfer_in record so the pair stays whole."""
        is_paired_transfer = (
            primary.type == models.TxnType.TRANSFER
            and primary.transfer_type == models.TransferType.TRANSFER_OUT
            and primary.to_account_id is not None
        )
        if not is_paired_transfer:
            if mirror is not None:
                self.db.delete(mirror)
            if primary.type != models.TxnType.TRANSFER and primary.transfer_group_id is not None:
                group = self.db.get(models.TransferGroup, primary.transfer_group_id)
                primary.transfer_group_id = None
                if group is not None:
                    self.db.delete(group)
            return None

        if mirror is None:
            if primary.transfer_group_id is None:
                group = models.TransferGroup()
                self.db.add(group)
                self.db.flush()
                primary.transfer_group_id = group.id
            mirror = self._build_mirror(primary, source=source_account)
            self.db.add(mirror)
            return mirror

        source_changed = mirror.to_account_id != primary.account_id
        mirror.account_id = primary.to_account_id
        mirror.to_account_id = primary.account_id
        mirror.amount = primary.amount
        mirror.category = primary.category
        mirror.division = primary.division
        mirror.date = primary.date
        mirror.transfer_group_id = primary.transfer_group_id
        if mirror_description:
            mirror.description = mirror_description
        elif source_changed:
            mirror.description = self._mirror_description(source_account)
        return mirror

    # ---- Delete ----------------------------------------------------------
    def delete(self, user_id: int, transaction_id: int) -> None:
        touched: set[int] = set()
        with self._unit_of_work(touched):
            tx = self.get(user_id, transaction_id)
            self._ensure_editable(tx, "deleted")
            primary, mirror = self._resolve_pair(tx)

            touched.update(self.balance_service.reverse_effect(primary))

            group_id = primary.transfer_group_id
            if mirror is not None:
                self.db.delete(mirror)
            self.db.delete(primary)
            self.db.flush()
            if group_id is not None:
                group = self.db.get(models.TransferGroup, group_id)
                if group is not None:
                    self.db.delete(group)

        logger.info(
            "transaction deleted id=%s user_id=%s accounts=%s",
            transaction_id,
            user_id,
            sorted(touched),
        )

    # ---- Helpers ---------------------------------------------------------
    def _ensure_editable(self, tx: models.Transaction, action: str) -> None:
        if not self.is_editable(tx):
            raise EditWindowExpiredError(action, self.edit_window_hours)

    def _resolve_pair(
        self, tx: models.Transaction
    ) -> tuple[models.Transaction, models.Transaction | None]:
        """Return ``(primary, mirror)`` for ``tx``.

        The primary record carries the balance effect: the transfer_out half of
        a pair, or ``tx`` itself when it is not part of a complete pair.
        """
        if tx.type != models.TxnType.TRANSFER or tx.transfer_group_id is None:
            return tx, None
        siblings = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.transfer_group_id == tx.transfer_group_id)
            .order_by(models.Transaction.id.asc())
            .all()
        )
        out_tx = next(
            (s for s in siblings if s.transfer_type == models.TransferType.TRANSFER_OUT),
            None,
        )
        in_tx = next(
            (s for s in siblings if s.transfer_type == models.TransferType.TRANSFER_IN),
            None,
        )
        if out_tx is None or in_tx is None:
            return tx, None
        return out_tx, in_tx

    @staticmethod
    def _mirror_description(source: models.Account | None) -> str:
        source_name = source.name if source is not None else "account"
        return f"Transfer from {source_name}"

    def _build_mirror(self, tx: models.Transaction, *, source: models.Account | None) -> models.Transaction:
        return models.Transaction(
            user_id=tx.user_id,
            account_id=tx.to_account_id,
            to_account_id=tx.account_id,
            type=models.TxnType.TRANSFER,
            amount=tx.amount,
            category=tx.category or models.TRANSFER_CATEGORY,
            division=tx.division,
            description=self._mirror_description(source),
            date=tx.date,
            transfer_type=models.TransferType.TRANSFER_IN,
            transfer_group_id=tx.transfer_group_id,
            # Both halves share one edit window
            created_at=tx.created_at,
        )

    @contextmanager
    def _unit_of_work(self, touched: set[int]) -> Iterator[None]:
        """Commit on success; roll back every balance change on failure.

        If the rollback itself fails the balances of ``touched`` accounts can no
        longer be trusted and ``PartialFailureError`` is raised instead.
        """
        try:
            yield
            self.db.commit()
        except Exception as exc:
            try:
                self.db.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.error(
                    "rollback failed after %s; balances may have drifted accounts=%s",
                    type(exc).__name__,
                    sorted(touched),
                )
                raise PartialFailureError(touched) from rollback_exc
            if touched and not isinstance(exc, DomainError):
                logger.error(
                    "balance changes rolled back after %s accounts=%s",
                    type(exc).__name__,
                    sorted(touched),
                )
            raise
