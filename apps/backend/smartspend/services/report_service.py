from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.errors import ExternalServiceError
from smartspend.integrations.gemini import InsightGenerator
from smartspend.integrations.mailer import Notifier
from smartspend.schemas import MonthlyReportSweepResult, MonthlyStats
from smartspend.services.messages import monthly_report_message
from smartspend.utils import month_start, next_month_start, previous_month_start, to_decimal

logger = structlog.get_logger(__name__)

FALLBACK_INSIGHTS = [
    "Your highest expense category this month might need attention.",
    "Consider setting up a budget for better financial management.",
    "Track your recurring expenses to identify potential savings.",
]

UNCATEGORIZED = "uncategorized"


def monthly_stats(db: Session, user_id: int, month: datetime) -> MonthlyStats:
    """Income/expense totals for the calendar month containing ``month``."""
    start = month_start(month)
    end = next_month_start(month)
    rows = (
        db.query(models.Transaction)
        .filter(
            models.Transaction.user_id == user_id,
            models.Transaction.occurred_at >= start,
            models.Transaction.occurred_at < end,
        )
        .all()
    )

    income = Decimal("0")
    expenses = Decimal("0")
    by_category: dict[str, Decimal] = defaultdict(Decimal)
    for tx in rows:
        amount = to_decimal(tx.amount)
        if tx.type == models.TxnType.EXPENSE:
            expenses += amount
            by_category[tx.category or UNCATEGORIZED] += amount
        else:
            income += amount

    return MonthlyStats(
        month=start.strftime("%B"),
        total_income=income,
        total_expenses=expenses,
        by_category=dict(by_category),
        transaction_count=len(rows),
    )


class MonthlyReportService:
    def __init__(self, db: Session, notifier: Notifier, insight_generator: InsightGenerator | None = None) -> None:
        self.db = db
        self.notifier = notifier
        self.insight_generator = insight_generator

    def insights_for(self, stats: MonthlyStats) -> list[str]:
        """Best effort: any generator failure falls back to the generic tips."""
        if self.insight_generator is None:
            return list(FALLBACK_INSIGHTS)
        payload = stats.model_dump(mode="json")
        payload["net"] = float(stats.net)
        try:
            insights = self.insight_generator.generate(payload)
        except Exception as exc:
            logger.warning("insight_generation_failed", month=stats.month, error=str(exc))
            return list(FALLBACK_INSIGHTS)
        if not isinstance(insights, list) or not insights or not all(isinstance(i, str) for i in insights):
            logger.warning("insight_output_malformed", month=stats.month, output_type=type(insights).__name__)
            return list(FALLBACK_INSIGHTS)
        return insights

    def send_report(self, user: models.User, now: datetime) -> MonthlyStats:
        stats = monthly_stats(self.db, user.id, previous_month_start(now))
        insights = self.insights_for(stats)
        subject, body = monthly_report_message(user.name, stats, insights)
        sent = self.notifier.send(user.email, subject, body)
        if not sent.success:
            raise ExternalServiceError(f"Monthly report delivery failed: {sent.error}")
        logger.info("monthly_report_sent", user_id=user.id, month=stats.month)
        return stats

    def send_all(self, now: datetime) -> MonthlyReportSweepResult:
        result = MonthlyReportSweepResult()
        users = self.db.query(models.User).order_by(models.User.id).all()
        for user in users:
            try:
                self.send_report(user, now)
            except Exception:
                result.failed += 1
                logger.exception("monthly_report_failed", user_id=user.id)
                continue
            result.processed += 1
        logger.info("monthly_report_sweep_finished", **result.model_dump())
        return result
