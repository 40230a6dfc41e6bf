from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.database import get_db
from smartspend.core.deps import get_current_user, get_now
from smartspend.schemas import ActionResult, BudgetOut, BudgetUpsert, CurrentBudgetOut
from smartspend.services import AccountService, BudgetService


router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.get("/current", response_model=ActionResult[CurrentBudgetOut])
def get_current_budget(
    account_id: int = Query(..., description="Account whose month-to-date expenses are reported"),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    current_user: models.User = Depends(get_current_user),
):
    AccountService(db).get_by_id(current_user.id, account_id)
    budget, spent = BudgetService(db).get_current(current_user.id, account_id, now)
    data = CurrentBudgetOut(
        budget=BudgetOut.model_validate(budget) if budget else None,
        current_expenses=spent,
    )
    return {"success": True, "data": data}


@router.put("", response_model=ActionResult[BudgetOut])
def upsert_budget(
    payload: BudgetUpsert,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return {"success": True, "data": BudgetService(db).upsert(current_user.id, payload.amount)}
