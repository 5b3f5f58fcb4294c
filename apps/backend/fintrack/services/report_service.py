from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, DefaultDict, Optional

from sqlalchemy.orm import Session

from fintrack import models, schemas
from fintrack.services.transaction_service import to_decimal


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(value: datetime, delta: int) -> datetime:
    total = value.year * 12 + (value.month - 1) + delta
    return value.replace(year=total // 12, month=total % 12 + 1, day=1)


def period_bounds(period: str, now: datetime) -> tuple[datetime, datetime]:
    """Calendar bounds of the week (ISO, Monday first), month or year containing ``now``."""
    today = _start_of_day(now)
    if period == "week":
        start = today - timedelta(days=today.weekday())
        end = start + timedelta(days=7)
    elif period == "year":
        start = today.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
    else:
        start = today.replace(day=1)
        end = _add_months(start, 1)
    return start, end - timedelta(microseconds=1)


_TREND_LOOKBACK_DAYS = {"week": 7, "month": 30, "year": 365}


def _bucket_key(value: datetime, group_by: str) -> str:
    if group_by == "week":
        iso = value.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    if group_by == "month":
        return value.strftime("%Y-%m")
    if group_by == "year":
        return value.strftime("%Y")
    return value.strftime("%Y-%m-%d")


class ReportService:
    """Read-only aggregates over a user's transactions.

    Balance-neutral records (seeded opening entries) never count. Transfers are
    not income or expense; only their transfer_out half is counted so a pair
    shows up once.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] | None = None) -> None:
        self.db = db
        self._clock = clock or models.now_local_naive

    def _transactions(
        self,
        user_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        txn_type: Optional[models.TxnType] = None,
        division: Optional[models.Division] = None,
    ) -> list[models.Transaction]:
        q = self.db.query(models.Transaction).filter(
            models.Transaction.user_id == user_id,
            models.Transaction.is_balance_neutral.is_(False),
        )
        if start:
            q = q.filter(models.Transaction.date >= start)
        if end:
            q = q.filter(models.Transaction.date <= end)
        if txn_type:
            q = q.filter(models.Transaction.type == txn_type)
        if division:
            q = q.filter(models.Transaction.division == division)
        return q.order_by(models.Transaction.date.asc(), models.Transaction.id.asc()).all()

    @staticmethod
    def _is_counted(tx: models.Transaction) -> bool:
        return not (tx.type == models.TxnType.TRANSFER and tx.transfer_type == models.TransferType.TRANSFER_IN)

    def dashboard_summary(
        self,
        user_id: int,
        *,
        period: str = "month",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> schemas.DashboardSummaryOut:
        if not (start and end):
            start, end = period_bounds(period, self._clock())
        income = Decimal("0")
        expense = Decimal("0")
        counts = schemas.TypeCounts()
        for tx in self._transactions(user_id, start=start, end=end):
            if not self._is_counted(tx):
                continue
            amount = to_decimal(tx.amount)
            if tx.type == models.TxnType.INCOME:
                income += amount
                counts.income += 1
            elif tx.type == models.TxnType.EXPENSE:
                expense += amount
                counts.expense += 1
            else:
                counts.transfer += 1
        return schemas.DashboardSummaryOut(
            period=period,
            start=start,
            end=end,
            income=float(income),
            expense=float(expense),
            balance=float(income - expense),
            transactions=counts,
        )

    def trend(self, user_id: int, *, period: str = "month", group_by: str = "day") -> list[schemas.TrendPoint]:
        days = _TREND_LOOKBACK_DAYS.get(period, _TREND_LOOKBACK_DAYS["month"])
        since = self._clock() - timedelta(days=days)
        buckets: DefaultDict[str, dict[str, Decimal]] = defaultdict(
            lambda: {"income": Decimal("0"), "expense": Decimal("0")}
        )
        for tx in self._transactions(user_id, start=since):
            if tx.type not in (models.TxnType.INCOME, models.TxnType.EXPENSE):
                continue
            bucket = buckets[_bucket_key(tx.date, group_by)]
            bucket[tx.type.value] += to_decimal(tx.amount)
        points: list[schemas.TrendPoint] = []
        for key in sorted(buckets):
            values = buckets[key]
            points.append(
                schemas.TrendPoint(
                    period=key,
                    income=float(values["income"]),
                    expense=float(values["expense"]),
                    balance=float(values["income"] - values["expense"]),
                )
            )
        return points

    def category_breakdown(
        self,
        user_id: int,
        *,
        txn_type: models.TxnType = models.TxnType.EXPENSE,
        division: Optional[models.Division] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> schemas.CategoryBreakdownOut:
        totals: DefaultDict[Optional[str], Decimal] = defaultdict(Decimal)
        counts: DefaultDict[Optional[str], int] = defaultdict(int)
        for tx in self._transactions(user_id, start=start, end=end, txn_type=txn_type, division=division):
            if not self._is_counted(tx):
                continue
            totals[tx.category] += to_decimal(tx.amount)
            counts[tx.category] += 1

        grand_total = sum(totals.values(), Decimal("0"))
        items: list[schemas.CategoryBreakdownItem] = []
        for category in sorted(totals, key=lambda c: (-totals[c], c or "")):
            amount = totals[category]
            share = amount / grand_total * 100 if grand_total else Decimal("0")
            items.append(
                schemas.CategoryBreakdownItem(
                    category=category,
                    total=float(amount),
                    count=counts[category],
                    percentage=round(float(share), 2),
                )
            )
        return schemas.CategoryBreakdownOut(type=txn_type, breakdown=items, total=float(grand_total))

    def division_breakdown(
        self,
        user_id: int,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[schemas.DivisionBreakdownItem]:
        income: DefaultDict[models.Division, Decimal] = defaultdict(Decimal)
        expense: DefaultDict[models.Division, Decimal] = defaultdict(Decimal)
        counts: DefaultDict[models.Division, int] = defaultdict(int)
        for tx in self._transactions(user_id, start=start, end=end):
            if not self._is_counted(tx):
                continue
            counts[tx.division] += 1
            if tx.type == models.TxnType.INCOME:
                income[tx.division] += to_decimal(tx.amount)
            elif tx.type == models.TxnType.EXPENSE:
                expense[tx.division] += to_decimal(tx.amount)
        return [
            schemas.DivisionBreakdownItem(
                division=division,
                income=float(income[division]),
                expense=float(expense[division]),
                balance=float(income[division] - expense[division]),
                transaction_count=counts[division],
            )
            for division in models.Division
            if counts[division]
        ]

    def category_summary(
        self,
        user_id: int,
        *,
        txn_type: Optional[models.TxnType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[schemas.CategorySummaryItem]:
        totals: DefaultDict[tuple[Optional[str], models.TxnType], Decimal] = defaultdict(Decimal)
        counts: DefaultDict[tuple[Optional[str], models.TxnType], int] = defaultdict(int)
        for tx in self._transactions(user_id, start=start, end=end, txn_type=txn_type):
            if not self._is_counted(tx):
                continue
            key = (tx.category, tx.type)
            totals[key] += to_decimal(tx.amount)
            counts[key] += 1
        ordered = sorted(totals, key=lambda k: (-totals[k], k[0] or "", k[1].value))
        return [
            schemas.CategorySummaryItem(category=k[0], type=k[1], total=float(totals[k]), count=counts[k])
            for k in ordered
        ]
