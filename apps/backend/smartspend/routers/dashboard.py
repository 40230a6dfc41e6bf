from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.config import settings
from smartspend.core.database import get_db
from smartspend.core.deps import get_current_user
from smartspend.schemas import AccountOut, ActionResult, DashboardOut
from smartspend.services import AccountService, TransactionBalanceService


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=ActionResult[DashboardOut])
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    accounts = [
        AccountOut.model_validate(account).model_copy(update={"transaction_count": count})
        for account, count in AccountService(db).get_all(user_id=current_user.id)
    ]
    recent = TransactionBalanceService(db).list_for_user(
        current_user.id, limit=settings.RECENT_TRANSACTIONS_LIMIT
    )
    return {"success": True, "data": {"accounts": accounts, "recent_transactions": recent}}
