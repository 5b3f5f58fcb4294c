from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.config import settings
from .core.database import Base


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "Asia/Kolkata"))
except Exception:
    LOCAL_ZONE = ZoneInfo("UTC")


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column("createdAt", DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False
    )


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    profile: Mapped["UserProfile"] = relationship(back_populates="user", uselist=False)
    accounts: Mapped[list["Account"]] = relationship("Account", back_populates="user")


class UserProfile(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column("userId", ForeignKey("user.id"), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(100))
    base_currency: Mapped[str | None] = mapped_column(String(3))

    user: Mapped[User] = relationship(back_populates="profile")


class AccountType(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    SAVINGS = "savings"


class Account(Base, TimestampMixin):
    """A named balance-holding entity owned by a single user.

    ``balance`` is derived state: it must always equal ``opening_balance`` plus
    the effect of every transaction touching the account, and is written only
    by :class:`~fintrack.services.TransactionBalanceService` (relative
    increments) or :class:`~fintrack.services.RecalibrationService`.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column("userId", ForeignKey("user.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type", values_callable=_enum_values),
        nullable=False,
        default=AccountType.CASH,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=lambda: settings.DEFAULT_CURRENCY)
    opening_balance: Mapped[Decimal] = mapped_column("openingBalance", Numeric(18, 4), default=0, nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("userId", "name", name="uq_account_name"),
    )


class TxnType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransferType(str, Enum):
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"


class Division(str, Enum):
    OFFICE = "office"
    PERSONAL = "personal"


TRANSFER_CATEGORY = "Transfer"
OPENING_BALANCE_CATEGORY = "Opening Balance"


class TransferGroup(Base, TimestampMixin):
    """Links the transfer_out / transfer_in records of one movement."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column("userId", ForeignKey("user.id"), nullable=False)
    # Deleting an account keeps its history; the reference is cleared instead
    account_id: Mapped[int | None] = mapped_column("accountId", ForeignKey("account.id", ondelete="SET NULL"))
    to_account_id: Mapped[int | None] = mapped_column("toAccountId", ForeignKey("account.id", ondelete="SET NULL"))
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type", values_callable=_enum_values), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100))
    division: Mapped[Division] = mapped_column(
        SAEnum(Division, name="division", values_callable=_enum_values), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column("date", DateTime, nullable=False, default=now_local_naive)
    transfer_type: Mapped[TransferType | None] = mapped_column(
        "transferType", SAEnum(TransferType, name="transfer_type", values_callable=_enum_values)
    )
    transfer_group_id: Mapped[int | None] = mapped_column(
        "transferGroupId", ForeignKey("transfergroup.id", ondelete="SET NULL")
    )
    is_balance_neutral: Mapped[bool] = mapped_column("isBalanceNeutral", Boolean, nullable=False, default=False)

    account: Mapped["Account | None"] = relationship("Account", foreign_keys=[account_id])
    to_account: Mapped["Account | None"] = relationship("Account", foreign_keys=[to_account_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        CheckConstraint(
            '"toAccountId" IS NULL OR "accountId" IS NULL OR "toAccountId" != "accountId"',
            name="ck_transaction_distinct_accounts",
        ),
        Index("ix_transaction_user_date", "userId", "date"),
        Index("ix_transaction_user_type", "userId", "type"),
        Index("ix_transaction_user_category", "userId", "category"),
        Index("ix_transaction_account", "accountId"),
        Index("ix_transaction_to_account", "toAccountId"),
    )

    def is_editable_at(self, now: datetime, window_hours: int | None = None) -> bool:
        hours = settings.EDIT_WINDOW_HOURS if window_hours is None else window_hours
        if self.created_at is None:
            return True
        return now - self.created_at < timedelta(hours=hours)

    @property
    def is_editable(self) -> bool:
        """Computed on every access; never persisted."""
        return self.is_editable_at(now_local_naive())

    @property
    def is_transfer_in(self) -> bool:
        return self.type == TxnType.TRANSFER and self.transfer_type == TransferType.TRANSFER_IN
