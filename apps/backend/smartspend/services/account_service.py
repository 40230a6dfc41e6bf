from __future__ import annotations

import structlog
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from smartspend import models
from smartspend.core.database import atomic
from smartspend.core.errors import InvalidRequest, NotFound
from smartspend.integrations.dashboard import DashboardInvalidator, LoggingDashboardInvalidator
from smartspend.schemas import AccountCreate
from smartspend.utils import to_decimal

logger = structlog.get_logger(__name__)


class AccountService:
    def __init__(self, db: Session, invalidator: DashboardInvalidator | None = None) -> None:
        self.db = db
        self.invalidator = invalidator or LoggingDashboardInvalidator()

    def get_all(self, *, user_id: int) -> list[tuple[models.Account, int]]:
        """Accounts of ``user_id`` with their transaction counts, oldest first."""
        counts = (
            self.db.query(models.Transaction.account_id, func.count(models.Transaction.id).label("n"))
            .filter(models.Transaction.user_id == user_id)
            .group_by(models.Transaction.account_id)
            .subquery()
        )
        rows = (
            self.db.query(models.Account, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.account_id == models.Account.id)
            .filter(models.Account.user_id == user_id)
            .order_by(models.Account.id)
            .all()
        )
        return [(account, int(n)) for account, n in rows]

    def get_by_id(self, user_id: int, account_id: int, *, with_transactions: bool = False) -> models.Account:
        q = self.db.query(models.Account).filter(
            models.Account.user_id == user_id, models.Account.id == account_id
        )
        if with_transactions:
            q = q.options(selectinload(models.Account.transactions))
        account = q.first()
        if not account:
            raise NotFound("Account not found")
        return account

    def get_default(self, user_id: int) -> models.Account | None:
        return (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id, models.Account.is_default.is_(True))
            .first()
        )

    def create(self, payload: AccountCreate, *, user_id: int) -> models.Account:
        has_accounts = (
            self.db.query(models.Account.id).filter(models.Account.user_id == user_id).first() is not None
        )
        # the first account always becomes the default one
        make_default = payload.is_default or not has_accounts
        try:
            with atomic(self.db):
                if make_default:
                    self._clear_default(user_id)
                row = models.Account(
                    user_id=user_id,
                    name=payload.name,
                    type=payload.type,
                    balance=to_decimal(payload.balance),
                    is_default=make_default,
                )
                self.db.add(row)
                self.db.flush()
        except IntegrityError as exc:
            raise InvalidRequest("Account with same name already exists") from exc
        self.db.refresh(row)
        logger.info("account_created", user_id=user_id, account_id=row.id, is_default=row.is_default)
        self.invalidator.invalidate(user_id, [row.id])
        return row

    def set_default(self, user_id: int, account_id: int) -> models.Account:
        """Make ``account_id`` the user's only default account."""
        with atomic(self.db):
            account = self.get_by_id(user_id, account_id)
            self._clear_default(user_id, keep_id=account.id)
            account.is_default = True
        self.db.refresh(account)
        logger.info("default_account_changed", user_id=user_id, account_id=account.id)
        self.invalidator.invalidate(user_id, [account.id])
        return account

    def delete(self, user_id: int, account_id: int) -> None:
        with atomic(self.db):
            account = self.get_by_id(user_id, account_id)
            # ORM cascade removes the account's transactions as well
            self.db.delete(account)
        logger.info("account_deleted", user_id=user_id, account_id=account_id)
        self.invalidator.invalidate(user_id, [account_id])

    def _clear_default(self, user_id: int, keep_id: int | None = None) -> None:
        stmt = (
            update(models.Account)
            .where(models.Account.user_id == user_id, models.Account.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(models.Account.id != keep_id)
        self.db.execute(stmt)
