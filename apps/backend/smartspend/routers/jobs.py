"""Manual triggers for the scheduled sweeps.

Meant for operators and the scheduler sidecar; not user-scoped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartspend import jobs
from smartspend.core.database import get_db
from smartspend.core.deps import get_dashboard_invalidator, get_insight_generator, get_notifier, get_now
from smartspend.integrations.dashboard import DashboardInvalidator
from smartspend.integrations.gemini import InsightGenerator
from smartspend.integrations.mailer import Notifier
from smartspend.schemas import BudgetAlertSweepResult, MonthlyReportSweepResult, RecurringSweepResult


router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/recurring", response_model=RecurringSweepResult)
def trigger_recurring(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    invalidator: DashboardInvalidator = Depends(get_dashboard_invalidator),
):
    return jobs.run_recurring_sweep(db, now, invalidator)


@router.post("/budget-alerts", response_model=BudgetAlertSweepResult)
def trigger_budget_alerts(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: Notifier = Depends(get_notifier),
):
    return jobs.run_budget_alerts(db, notifier, now)


@router.post("/monthly-reports", response_model=MonthlyReportSweepResult)
def trigger_monthly_reports(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: Notifier = Depends(get_notifier),
    insight_generator: Optional[InsightGenerator] = Depends(get_insight_generator),
):
    return jobs.run_monthly_reports(db, notifier, insight_generator, now)
