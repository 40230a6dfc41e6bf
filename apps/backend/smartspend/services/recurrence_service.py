"""Recurring transaction sweep.

A recurring transaction is a template: each time its ``next_recurring_date``
comes due, a plain one-off copy is written to the ledger (and to the
account balance) and the template's schedule moves one interval forward.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.database import atomic
from smartspend.integrations.dashboard import DashboardInvalidator
from smartspend.schemas import RecurringSweepResult
from smartspend.services.transaction_service import TransactionBalanceService
from smartspend.utils import advance

logger = structlog.get_logger(__name__)

RECURRING_SUFFIX = "(Recurring)"


def is_due(tx: models.Transaction, now: datetime) -> bool:
    """Whether ``tx`` should be materialized at ``now``."""
    if not tx.is_recurring or tx.status != models.TransactionStatus.COMPLETED:
        return False
    if tx.next_recurring_date is None:
        return False
    return tx.next_recurring_date <= now


def materialized_description(description: str | None) -> str:
    if description:
        return f"{description} {RECURRING_SUFFIX}"
    return RECURRING_SUFFIX


class RecurrenceScheduler:
    def __init__(self, db: Session, invalidator: DashboardInvalidator | None = None) -> None:
        self.db = db
        self.balance_service = TransactionBalanceService(db, invalidator)

    def find_candidates(self, now: datetime) -> list[int]:
        """Ids of recurring transactions that may be due, across all users."""
        rows = (
            self.db.query(models.Transaction.id)
            .filter(
                models.Transaction.is_recurring.is_(True),
                models.Transaction.status == models.TransactionStatus.COMPLETED,
                or_(
                    models.Transaction.last_processed.is_(None),
                    models.Transaction.next_recurring_date <= now,
                ),
            )
            .order_by(models.Transaction.id)
            .all()
        )
        return [row.id for row in rows]

    def process(self, txn_id: int, now: datetime) -> models.Transaction | None:
        """Materialize one occurrence of ``txn_id`` if it is still due.

        Returns the new one-off transaction, or ``None`` when the template is
        gone, not due any more, or was claimed by a concurrent sweep.
        """
        with atomic(self.db):
            template = self.db.get(models.Transaction, txn_id, populate_existing=True)
            if template is None or not is_due(template, now):
                return None

            observed = template.next_recurring_date
            # Next run counts from this run, so a backlog collapses into one occurrence.
            next_date = advance(now, template.recurring_interval)
            claimed = self.db.execute(
                update(models.Transaction)
                .where(
                    models.Transaction.id == template.id,
                    models.Transaction.next_recurring_date == observed,
                )
                .values(next_recurring_date=next_date, last_processed=now)
                .execution_options(synchronize_session="fetch")
            )
            if claimed.rowcount != 1:
                return None

            occurrence = models.Transaction(
                user_id=template.user_id,
                account_id=template.account_id,
                type=template.type,
                amount=template.amount,
                occurred_at=now,
                description=materialized_description(template.description),
                category=template.category,
                is_recurring=False,
                status=models.TransactionStatus.COMPLETED,
            )
            self.balance_service.record(occurrence)

        logger.info(
            "recurring_transaction_materialized",
            template_id=txn_id,
            transaction_id=occurrence.id,
            next_recurring_date=next_date.isoformat(),
        )
        self.balance_service.invalidator.invalidate(occurrence.user_id, [occurrence.account_id])
        return occurrence

    def sweep(self, now: datetime) -> RecurringSweepResult:
        """Process every due recurring transaction; one failure never stops the rest."""
        result = RecurringSweepResult()
        candidates = self.find_candidates(now)
        result.triggered = len(candidates)
        for txn_id in candidates:
            try:
                created = self.process(txn_id, now)
            except Exception:
                result.failed += 1
                logger.exception("recurring_transaction_failed", transaction_id=txn_id)
                continue
            if created is None:
                result.skipped += 1
            else:
                result.processed += 1
        logger.info("recurring_sweep_finished", **result.model_dump())
        return result
