from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.database import atomic
from smartspend.core.errors import Forbidden, NotFound
from smartspend.integrations.dashboard import DashboardInvalidator, LoggingDashboardInvalidator
from smartspend.utils import advance, signed_amount, to_decimal

logger = structlog.get_logger(__name__)

_EDITABLE_FIELDS = (
    "type",
    "amount",
    "account_id",
    "occurred_at",
    "description",
    "category",
    "receipt_url",
    "is_recurring",
    "recurring_interval",
)


def next_recurring_date_for(
    occurred_at: datetime,
    is_recurring: bool,
    interval: Optional[models.RecurringInterval],
) -> Optional[datetime]:
    if is_recurring and interval:
        return advance(occurred_at, interval)
    return None


class TransactionBalanceService:
    """Keep account balances consistent with the transaction log.

    Every public mutation runs as one unit of work: the row change and the
    balance change are committed together or not at all. Balances are moved
    with ``balance = balance + :delta`` so concurrent writers never overwrite
    each other's result.
    """

    def __init__(self, db: Session, invalidator: DashboardInvalidator | None = None) -> None:
        self.db = db
        self.invalidator = invalidator or LoggingDashboardInvalidator()

    # ---- Lookups ---------------------------------------------------------
    def get_account(self, user_id: int, account_id: int) -> models.Account:
        account = self.db.get(models.Account, account_id)
        if not account:
            raise NotFound("Account not found")
        if account.user_id != user_id:
            raise Forbidden("Account does not belong to this user")
        return account

    def get_transaction(self, user_id: int, txn_id: int) -> models.Transaction:
        tx = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.id == txn_id, models.Transaction.user_id == user_id)
            .first()
        )
        if not tx:
            raise NotFound("Transaction not found")
        return tx

    def list_for_user(
        self,
        user_id: int,
        *,
        account_id: int | None = None,
        txn_type: models.TxnType | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[models.Transaction]:
        """Newest first. ``start`` is inclusive, ``end`` exclusive."""
        q = self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
        if account_id is not None:
            q = q.filter(models.Transaction.account_id == account_id)
        if txn_type is not None:
            q = q.filter(models.Transaction.type == txn_type)
        if start is not None:
            q = q.filter(models.Transaction.occurred_at >= start)
        if end is not None:
            q = q.filter(models.Transaction.occurred_at < end)
        q = q.order_by(models.Transaction.occurred_at.desc(), models.Transaction.id.desc())
        if limit:
            q = q.limit(limit)
        return q.all()

    # ---- Mutations -------------------------------------------------------
    def create(self, user_id: int, data: dict[str, Any]) -> models.Transaction:
        with atomic(self.db):
            account = self.get_account(user_id, data["account_id"])
            tx = models.Transaction(
                user_id=user_id,
                account_id=account.id,
                type=data["type"],
                amount=to_decimal(data["amount"]),
                occurred_at=data["occurred_at"],
                description=data.get("description"),
                category=data.get("category"),
                receipt_url=data.get("receipt_url"),
                is_recurring=bool(data.get("is_recurring")),
                recurring_interval=data.get("recurring_interval") if data.get("is_recurring") else None,
                status=data.get("status") or models.TransactionStatus.COMPLETED,
            )
            tx.next_recurring_date = next_recurring_date_for(tx.occurred_at, tx.is_recurring, tx.recurring_interval)
            self.record(tx)
        self.db.refresh(tx)
        logger.info("transaction_created", user_id=user_id, transaction_id=tx.id, account_id=tx.account_id)
        self.invalidator.invalidate(user_id, [tx.account_id])
        return tx

    def record(self, tx: models.Transaction) -> None:
        """Insert ``tx`` and apply its signed amount to its account.

        Does not commit; callers wrap it in their own unit of work.
        """
        self.db.add(tx)
        self.db.flush()
        self.apply_delta(tx.account_id, signed_amount(tx.type, tx.amount))

    def update(self, user_id: int, txn_id: int, data: dict[str, Any]) -> models.Transaction:
        with atomic(self.db):
            tx = self.get_transaction(user_id, txn_id)
            old_account_id = tx.account_id
            old_delta = signed_amount(tx.type, tx.amount)

            new_account_id = data.get("account_id", old_account_id)
            if new_account_id != old_account_id:
                self.get_account(user_id, new_account_id)

            for key in _EDITABLE_FIELDS:
                if key in data:
                    setattr(tx, key, data[key])
            tx.amount = to_decimal(tx.amount)
            if not tx.is_recurring:
                tx.recurring_interval = None
            tx.next_recurring_date = next_recurring_date_for(tx.occurred_at, tx.is_recurring, tx.recurring_interval)
            self.db.flush()

            new_delta = signed_amount(tx.type, tx.amount)
            if new_account_id != old_account_id:
                self.apply_delta(old_account_id, -old_delta)
                self.apply_delta(new_account_id, new_delta)
            else:
                self.apply_delta(old_account_id, new_delta - old_delta)
        self.db.refresh(tx)
        logger.info("transaction_updated", user_id=user_id, transaction_id=tx.id)
        self.invalidator.invalidate(user_id, [old_account_id, new_account_id])
        return tx

    def delete(self, user_id: int, txn_id: int) -> None:
        with atomic(self.db):
            tx = self.get_transaction(user_id, txn_id)
            account_id = tx.account_id
            self.apply_delta(account_id, -signed_amount(tx.type, tx.amount))
            self.db.delete(tx)
        logger.info("transaction_deleted", user_id=user_id, transaction_id=txn_id)
        self.invalidator.invalidate(user_id, [account_id])

    def bulk_delete(self, user_id: int, ids: Iterable[int]) -> tuple[list[int], list[int], dict[int, Decimal]]:
        """Delete the caller's transactions among ``ids``.

        Returns ``(deleted_ids, missing_ids, balance_changes)`` where
        ``balance_changes`` maps each touched account to the single net
        adjustment applied to it.
        """
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return [], [], {}

        with atomic(self.db):
            rows = (
                self.db.query(models.Transaction)
                .filter(models.Transaction.user_id == user_id, models.Transaction.id.in_(unique_ids))
                .all()
            )
            found = {tx.id for tx in rows}
            missing = [txn_id for txn_id in unique_ids if txn_id not in found]

            changes: dict[int, Decimal] = defaultdict(Decimal)
            for tx in rows:
                changes[tx.account_id] -= signed_amount(tx.type, tx.amount)
            for tx in rows:
                self.db.delete(tx)
            self.db.flush()
            for account_id, change in changes.items():
                self.apply_delta(account_id, change)

        deleted = [txn_id for txn_id in unique_ids if txn_id in found]
        logger.info("transactions_bulk_deleted", user_id=user_id, deleted=len(deleted), missing=len(missing))
        if changes:
            self.invalidator.invalidate(user_id, changes.keys())
        return deleted, missing, dict(changes)

    # ---- Balance primitive ----------------------------------------------
    def apply_delta(self, account_id: int, delta: Decimal) -> None:
        if not delta:
            return
        self.db.execute(
            update(models.Account)
            .where(models.Account.id == account_id)
            .values(balance=models.Account.balance + delta)
            .execution_options(synchronize_session="fetch")
        )
