from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from smartspend import models
from smartspend.core.database import atomic, run_atomic
from smartspend.core.errors import ExternalServiceError
from smartspend.integrations.mailer import Notifier
from smartspend.schemas import BudgetAlertSweepResult
from smartspend.services.account_service import AccountService
from smartspend.services.messages import budget_alert_message
from smartspend.utils import is_earlier_month, month_start, next_month_start, to_decimal

logger = structlog.get_logger(__name__)

HUNDRED = Decimal("100")


def expense_total(
    db: Session,
    *,
    user_id: int,
    account_id: int,
    start: datetime,
    end: datetime,
    end_inclusive: bool = True,
) -> Decimal:
    """Sum of EXPENSE amounts on one account with ``occurred_at`` in the window."""
    q = db.query(func.coalesce(func.sum(models.Transaction.amount), 0)).filter(
        models.Transaction.user_id == user_id,
        models.Transaction.account_id == account_id,
        models.Transaction.type == models.TxnType.EXPENSE,
        models.Transaction.occurred_at >= start,
    )
    if end_inclusive:
        q = q.filter(models.Transaction.occurred_at <= end)
    else:
        q = q.filter(models.Transaction.occurred_at < end)
    return to_decimal(q.scalar())


def used_percentage(spent: Decimal, budget_amount: Decimal) -> Decimal:
    return spent / budget_amount * HUNDRED


def should_alert(used_pct: Decimal, last_alert_sent: datetime | None, now: datetime, threshold: Decimal) -> bool:
    if used_pct < threshold:
        return False
    return last_alert_sent is None or is_earlier_month(last_alert_sent, now)


class BudgetService:
    """User-facing budget operations."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_for_user(self, user_id: int) -> models.Budget | None:
        return self.db.query(models.Budget).filter(models.Budget.user_id == user_id).first()

    def get_current(self, user_id: int, account_id: int, now: datetime) -> tuple[models.Budget | None, Decimal]:
        """The user's budget and this calendar month's expenses on ``account_id``."""
        start = month_start(now)
        spent = expense_total(
            self.db,
            user_id=user_id,
            account_id=account_id,
            start=start,
            end=next_month_start(now),
            end_inclusive=False,
        )
        return self.get_for_user(user_id), spent

    def upsert(self, user_id: int, amount: Decimal) -> models.Budget:
        def _save(db: Session) -> models.Budget:
            row = self.get_for_user(user_id)
            if row is None:
                row = models.Budget(user_id=user_id, amount=to_decimal(amount))
                db.add(row)
            else:
                row.amount = to_decimal(amount)
            db.flush()
            return row

        budget = run_atomic(self.db, _save)
        self.db.refresh(budget)
        logger.info("budget_saved", user_id=user_id, budget_id=budget.id)
        return budget


class BudgetAlertService:
    """Periodic check of every budget against its owner's default account."""

    def __init__(self, db: Session, notifier: Notifier, *, threshold: float | Decimal = 80) -> None:
        self.db = db
        self.notifier = notifier
        self.threshold = Decimal(str(threshold))

    def check_all(self, now: datetime) -> BudgetAlertSweepResult:
        result = BudgetAlertSweepResult()
        budgets = (
            self.db.query(models.Budget)
            .options(selectinload(models.Budget.user))
            .order_by(models.Budget.id)
            .all()
        )
        for budget in budgets:
            result.checked += 1
            budget_id = budget.id
            try:
                sent = self.check(budget, now)
            except Exception:
                self.db.rollback()
                result.failed += 1
                logger.exception("budget_check_failed", budget_id=budget_id)
                continue
            if sent:
                result.alerts_sent += 1
            else:
                result.skipped += 1
        logger.info("budget_sweep_finished", **result.model_dump())
        return result

    def check(self, budget: models.Budget, now: datetime) -> bool:
        """Send the threshold alert for ``budget`` if it is due. Returns whether one was sent."""
        default_account = AccountService(self.db).get_default(budget.user_id)
        if default_account is None:
            return False
        budget_amount = to_decimal(budget.amount)
        if budget_amount <= 0:
            return False

        spent = expense_total(
            self.db,
            user_id=budget.user_id,
            account_id=default_account.id,
            start=month_start(now),
            end=now,
        )
        used_pct = used_percentage(spent, budget_amount)
        if not should_alert(used_pct, budget.last_alert_sent, now, self.threshold):
            return False

        subject, body = budget_alert_message(
            budget.user.name,
            {
                "used_pct": used_pct,
                "budget_amount": budget_amount,
                "total_expenses": spent,
                "account_name": default_account.name,
            },
        )
        sent = self.notifier.send(budget.user.email, subject, body)
        if not sent.success:
            raise ExternalServiceError(f"Budget alert delivery failed: {sent.error}")

        with atomic(self.db):
            budget.last_alert_sent = now
        logger.info(
            "budget_alert_sent",
            budget_id=budget.id,
            user_id=budget.user_id,
            used_pct=f"{used_pct:.1f}",
        )
        return True
