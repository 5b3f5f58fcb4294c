from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterator, Literal, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from fintrack import models
from fintrack.core.errors import AccountNotFoundError

logger = logging.getLogger(__name__)

Sign = Literal[1, -1]


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def iter_balance_deltas(tx: models.Transaction) -> Iterator[tuple[int, Decimal]]:
    """Yield ``(account_id, delta)`` for applying ``tx`` once (sign=+1).

    - income adds to ``account_id``, expense subtracts from it
    - a transfer moves money out of ``account_id`` into ``to_account_id``;
      a transfer_in record describes the same movement from the destination
      side, so its directions are mirrored
    - a missing side (no destination, or a deleted account) has no effect
    - balance-neutral records yield nothing
    """
    if tx.is_balance_neutral:
        return
    magnitude = abs(to_decimal(tx.amount))
    if magnitude == 0:
        return
    if tx.type == models.TxnType.INCOME:
        if tx.account_id is not None:
            yield tx.account_id, magnitude
    elif tx.type == models.TxnType.EXPENSE:
        if tx.account_id is not None:
            yield tx.account_id, -magnitude
    elif tx.type == models.TxnType.TRANSFER:
        direction = 1 if tx.transfer_type == models.TransferType.TRANSFER_IN else -1
        if tx.account_id is not None:
            yield tx.account_id, direction * magnitude
        if tx.to_account_id is not None and tx.to_account_id != tx.account_id:
            yield tx.to_account_id, -direction * magnitude


LedgerBucket = Literal["income", "expense", "transfer_in", "transfer_out"]
LEDGER_BUCKETS: tuple[LedgerBucket, ...] = ("income", "expense", "transfer_in", "transfer_out")


def classify_for_account(
    tx: models.Transaction,
    account_id: int,
    owned_group_ids: set[int] | frozenset[int] = frozenset(),
) -> tuple[LedgerBucket, Decimal] | None:
    """Classify the effect of ``tx`` on ``account_id`` for ledger aggregation.

    ``owned_group_ids`` holds the transfer groups of records owned by the
    account: a destination-side record from such a group is the other half of
    a pair already counted through the account's own record, so it is
    skipped. Mirrors :func:`iter_balance_deltas` so recalibration and the
    mutator always agree.
    """
    if tx.is_balance_neutral:
        return None
    magnitude = abs(to_decimal(tx.amount))
    if tx.account_id == account_id:
        if tx.type == models.TxnType.INCOME:
            return "income", magnitude
        if tx.type == models.TxnType.EXPENSE:
            return "expense", magnitude
        if tx.type == models.TxnType.TRANSFER:
            if tx.transfer_type == models.TransferType.TRANSFER_IN:
                return "transfer_in", magnitude
            return "transfer_out", magnitude
        return None
    if tx.type != models.TxnType.TRANSFER or tx.to_account_id != account_id:
        return None
    if tx.transfer_group_id is not None and tx.transfer_group_id in owned_group_ids:
        return None
    if tx.transfer_type == models.TransferType.TRANSFER_IN:
        return "transfer_out", magnitude
    return "transfer_in", magnitude


def aggregate_account_ledger(
    transactions: list[models.Transaction], account_id: int
) -> dict[LedgerBucket, Decimal]:
    """Sum the per-bucket effects of ``transactions`` on one account."""
    owned_group_ids = {
        tx.transfer_group_id
        for tx in transactions
        if tx.account_id == account_id and tx.transfer_group_id is not None
    }
    totals: dict[LedgerBucket, Decimal] = {bucket: Decimal("0") for bucket in LEDGER_BUCKETS}
    for tx in transactions:
        entry = classify_for_account(tx, account_id, owned_group_ids)
        if entry is None:
            continue
        bucket, amount = entry
        totals[bucket] += amount
    return totals


def ledger_net(totals: dict[LedgerBucket, Decimal]) -> Decimal:
    return totals["income"] + totals["transfer_in"] - totals["expense"] - totals["transfer_out"]


class TransactionBalanceService:
    """Apply and reverse the balance effect of a single transaction.

    Every per-account change is issued as one ``UPDATE ... SET balance =
    balance + :delta`` so concurrent requests against the same account never
    lose an update. Nothing here commits; callers own the unit of work.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def apply_effect(self, tx: models.Transaction, sign: Sign = 1) -> list[int]:
        """Apply (``sign=1``) or reverse (``sign=-1``) the effect of ``tx``.

        Returns the ids of the accounts that were touched.
        """
        if sign not in (1, -1):
            raise ValueError("sign must be 1 or -1")
        touched: list[int] = []
        for account_id, delta in iter_balance_deltas(tx):
            self.apply_delta(account_id, sign * delta)
            touched.append(account_id)
        return touched

    def reverse_effect(self, tx: models.Transaction) -> list[int]:
        return self.apply_effect(tx, -1)

    def apply_delta(self, account_id: int, delta: Decimal) -> Decimal:
        """Atomically add ``delta`` to the stored balance and return the new value."""
        stmt = (
            update(models.Account)
            .where(models.Account.id == account_id)
            .values(balance=models.Account.balance + delta)
            .returning(models.Account.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance: Optional[Decimal] = self.db.execute(stmt).scalar_one_or_none()
        if new_balance is None:
            raise AccountNotFoundError(account_id)
        self._sync_loaded_account(account_id, new_balance)
        logger.debug("balance account_id=%s delta=%s balance=%s", account_id, delta, new_balance)
        return new_balance

    def overwrite_balance(self, account_id: int, value: Decimal) -> None:
        """Replace the stored balance outright. Reserved for recalibration."""
        stmt = (
            update(models.Account)
            .where(models.Account.id == account_id)
            .values(balance=value)
            .returning(models.Account.id)
            .execution_options(synchronize_session=False)
        )
        if self.db.execute(stmt).scalar_one_or_none() is None:
            raise AccountNotFoundError(account_id)
        self._sync_loaded_account(account_id, value)

    def _sync_loaded_account(self, account_id: int, value: Decimal) -> None:
        # Keep an already-loaded Account in step with the row without marking it dirty
        key = self.db.identity_key(models.Account, account_id)
        loaded = self.db.identity_map.get(key)
        if loaded is not None:
            set_committed_value(loaded, "balance", value)
