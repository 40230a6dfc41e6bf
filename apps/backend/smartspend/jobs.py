"""Scheduled sweeps.

Run from cron (or any scheduler) as::

    python -m smartspend.jobs recurring        # 0 0 * * *
    python -m smartspend.jobs budget-alerts    # 0 */6 * * *
    python -m smartspend.jobs monthly-reports  # 0 0 1 * *

The same sweeps are exposed as ``POST /api/jobs/...`` for manual triggers.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.config import settings
from smartspend.core.database import SessionLocal
from smartspend.core.deps import get_dashboard_invalidator, get_insight_generator, get_notifier
from smartspend.core.log import configure_logging
from smartspend.integrations.dashboard import DashboardInvalidator
from smartspend.integrations.gemini import InsightGenerator
from smartspend.integrations.mailer import Notifier
from smartspend.schemas import BudgetAlertSweepResult, MonthlyReportSweepResult, RecurringSweepResult
from smartspend.services import BudgetAlertService, MonthlyReportService, RecurrenceScheduler

logger = structlog.get_logger(__name__)


def run_recurring_sweep(
    db: Session,
    now: Optional[datetime] = None,
    invalidator: Optional[DashboardInvalidator] = None,
) -> RecurringSweepResult:
    return RecurrenceScheduler(db, invalidator).sweep(now or models.now_local_naive())


def run_budget_alerts(
    db: Session,
    notifier: Notifier,
    now: Optional[datetime] = None,
    threshold: Optional[float] = None,
) -> BudgetAlertSweepResult:
    if threshold is None:
        threshold = settings.BUDGET_ALERT_THRESHOLD
    svc = BudgetAlertService(db, notifier, threshold=threshold)
    return svc.check_all(now or models.now_local_naive())


def run_monthly_reports(
    db: Session,
    notifier: Notifier,
    insight_generator: Optional[InsightGenerator] = None,
    now: Optional[datetime] = None,
) -> MonthlyReportSweepResult:
    svc = MonthlyReportService(db, notifier, insight_generator)
    return svc.send_all(now or models.now_local_naive())


JOBS = ("recurring", "budget-alerts", "monthly-reports")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="smartspend.jobs", description="Run a scheduled sweep once.")
    parser.add_argument("job", choices=JOBS)
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="Pretend the sweep runs at this local time (ISO 8601)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        if args.job == "recurring":
            result = run_recurring_sweep(db, args.now, get_dashboard_invalidator())
        elif args.job == "budget-alerts":
            result = run_budget_alerts(db, get_notifier(), args.now)
        else:
            result = run_monthly_reports(db, get_notifier(), get_insight_generator(), args.now)
    finally:
        db.close()

    logger.info("job_finished", job=args.job, **result.model_dump())
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
