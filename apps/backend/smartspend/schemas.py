from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from .models import AccountType, RecurringInterval, TransactionStatus, TxnType

T = TypeVar("T")


class ActionResult(BaseModel, Generic[T]):
    """Uniform envelope for user-triggered actions."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T | None = None) -> "ActionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str) -> "ActionResult[T]":
        return cls(success=False, error=message)


# Decimal in Python, plain number in JSON
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ===== Accounts =====

class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: AccountType = AccountType.CURRENT
    balance: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    is_default: bool = False

    model_config = ConfigDict(extra="ignore")


class AccountOut(BaseModel):
    id: int
    user_id: int
    name: str
    type: AccountType
    balance: Money
    is_default: bool
    created_at: datetime
    updated_at: datetime
    transaction_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AccountDetailOut(AccountOut):
    transactions: list["TransactionOut"] = Field(default_factory=list)


# ===== Transactions =====

class TransactionCreate(BaseModel):
    type: TxnType
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    account_id: int
    occurred_at: datetime
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    receipt_url: Optional[str] = Field(default=None, max_length=500)
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def validate_recurrence(self) -> "TransactionCreate":
        if self.is_recurring and self.recurring_interval is None:
            raise ValueError("recurring_interval is required for recurring transactions")
        if not self.is_recurring and self.recurring_interval is not None:
            raise ValueError("recurring_interval is only allowed for recurring transactions")
        return self


class TransactionUpdate(TransactionCreate):
    """Full replacement of the editable fields, as submitted by the edit form."""


class TransactionOut(BaseModel):
    id: int
    user_id: int
    account_id: int
    type: TxnType
    amount: Money
    occurred_at: datetime
    description: Optional[str]
    category: Optional[str]
    receipt_url: Optional[str]
    is_recurring: bool
    recurring_interval: Optional[RecurringInterval]
    next_recurring_date: Optional[datetime]
    last_processed: Optional[datetime]
    status: TransactionStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionsBulkDelete(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class TransactionsBulkDeleteResult(BaseModel):
    deleted: int
    deleted_ids: list[int]
    missing: list[int]
    balance_changes: dict[int, Money] = Field(default_factory=dict)


# ===== Budgets =====

class BudgetUpsert(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)


class BudgetOut(BaseModel):
    id: int
    user_id: int
    amount: Money
    last_alert_sent: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentBudgetOut(BaseModel):
    budget: Optional[BudgetOut]
    current_expenses: Money


# ===== Receipts =====

class ReceiptDraft(BaseModel):
    amount: Money
    date: datetime
    description: str
    merchant_name: str
    category: str

    @field_validator("description", "merchant_name", "category")
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


# ===== Dashboard =====

class DashboardOut(BaseModel):
    accounts: list[AccountOut]
    recent_transactions: list[TransactionOut]


# ===== Background jobs =====

class RecurringSweepResult(BaseModel):
    triggered: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0


class BudgetAlertSweepResult(BaseModel):
    checked: int = 0
    alerts_sent: int = 0
    skipped: int = 0
    failed: int = 0


class MonthlyReportSweepResult(BaseModel):
    processed: int = 0
    failed: int = 0


class MonthlyStats(BaseModel):
    month: str
    total_income: Money = Decimal("0")
    total_expenses: Money = Decimal("0")
    by_category: dict[str, Money] = Field(default_factory=dict)
    transaction_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expenses


AccountDetailOut.model_rebuild()
