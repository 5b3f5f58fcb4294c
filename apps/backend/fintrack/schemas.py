from __future__ import annotations

import datetime as dt
import math
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .models import AccountType, Division, TransferType, TxnType


ReportPeriod = Literal["week", "month", "year"]
TrendGrouping = Literal["day", "week", "month", "year"]


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


# ---- Members ------------------------------------------------------------


class MemberOut(BaseModel):
    id: int
    email: EmailStr
    is_active: bool
    display_name: str | None = None
    base_currency: str | None = None


class MemberCreate(BaseModel):
    email: EmailStr
    display_name: str | None = Field(default=None, max_length=100)
    base_currency: str | None = Field(default=None, min_length=3, max_length=3)
    is_active: bool = True


# ---- Accounts -----------------------------------------------------------


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: AccountType = AccountType.CASH
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    opening_balance: float = 0
    seed_opening_entry: bool = Field(
        default=False,
        description="Record a balance-neutral 'Opening Balance' transaction when the opening balance is nonzero",
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Account name is required")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class AccountUpdate(BaseModel):
    """Mutable account attributes. Balances are never writable from outside."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[AccountType] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)

    model_config = ConfigDict(extra="forbid")

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class AccountOut(BaseModel):
    id: int
    user_id: int
    name: str
    type: AccountType
    currency: str
    opening_balance: float
    balance: float
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class RecalibrationOut(BaseModel):
    account: AccountOut
    previous_balance: float
    drift: float


# ---- Transactions -------------------------------------------------------


class TransactionCreate(BaseModel):
    account_id: int
    type: TxnType
    amount: float = Field(gt=0)
    category: Optional[str] = Field(default=None, max_length=100)
    division: Division
    description: str = Field(min_length=1, max_length=500)
    date: Optional[dt.datetime] = None
    to_account_id: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("category", mode="before")
    @classmethod
    def blank_category(cls, v):
        return _strip_or_none(v) if isinstance(v, str) or v is None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v

    @model_validator(mode="after")
    def check_type_fields(self) -> "TransactionCreate":
        if self.type == TxnType.TRANSFER:
            if self.to_account_id is None:
                raise ValueError("to_account_id is required for transfers")
            if self.to_account_id == self.account_id:
                raise ValueError("to_account_id must differ from account_id")
        else:
            if not self.category:
                raise ValueError("category is required for income/expense")
            # A destination only makes sense for transfers
            self.to_account_id = None
        return self


class TransactionUpdate(BaseModel):
    """Partial update; only fields explicitly sent are applied."""

    account_id: Optional[int] = None
    type: Optional[TxnType] = None
    amount: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, max_length=100)
    division: Optional[Division] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    date: Optional[dt.datetime] = None
    to_account_id: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("category", mode="before")
    @classmethod
    def blank_category(cls, v):
        return _strip_or_none(v) if isinstance(v, str) or v is None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        return v


class TransactionOut(BaseModel):
    id: int
    user_id: int
    account_id: Optional[int]
    to_account_id: Optional[int]
    type: TxnType
    amount: float
    category: Optional[str]
    division: Division
    description: str
    date: dt.datetime
    transfer_type: Optional[TransferType]
    transfer_group_id: Optional[int]
    is_balance_neutral: bool
    is_editable: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionFilters(BaseModel):
    type: Optional[TxnType] = None
    category: Optional[str] = None
    division: Optional[Division] = None
    account_id: Optional[int] = None
    start_date: Optional[dt.datetime] = None
    end_date: Optional[dt.datetime] = None


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int

    @computed_field(return_type=int)
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


class TransactionPage(BaseModel):
    transactions: list[TransactionOut]
    pagination: PaginationOut


class AccountLedgerSummary(BaseModel):
    income: float = 0
    expense: float = 0
    transfer_in: float = 0
    transfer_out: float = 0

    @computed_field(return_type=float)
    def net(self) -> float:
        return self.income + self.transfer_in - self.expense - self.transfer_out


class AccountTransactionsOut(BaseModel):
    account: AccountOut
    transactions: list[TransactionOut]
    summary: AccountLedgerSummary
    pagination: PaginationOut


# ---- Reports ------------------------------------------------------------


class CategorySummaryItem(BaseModel):
    category: Optional[str]
    type: TxnType
    total: float
    count: int


class TypeCounts(BaseModel):
    income: int = 0
    expense: int = 0
    transfer: int = 0


class DashboardSummaryOut(BaseModel):
    period: str
    start: Optional[dt.datetime]
    end: Optional[dt.datetime]
    income: float
    expense: float
    balance: float
    transactions: TypeCounts


class TrendPoint(BaseModel):
    period: str
    income: float
    expense: float
    balance: float


class CategoryBreakdownItem(BaseModel):
    category: Optional[str]
    total: float
    count: int
    percentage: float


class CategoryBreakdownOut(BaseModel):
    type: TxnType
    breakdown: list[CategoryBreakdownItem]
    total: float


class DivisionBreakdownItem(BaseModel):
    division: Division
    income: float
    expense: float
    balance: float
    transaction_count: int
