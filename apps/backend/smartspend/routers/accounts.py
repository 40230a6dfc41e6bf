from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.database import get_db
from smartspend.core.deps import get_current_user, get_dashboard_invalidator
from smartspend.integrations.dashboard import DashboardInvalidator
from smartspend.schemas import (
    AccountCreate,
    AccountDetailOut,
    AccountOut,
    ActionResult,
    TransactionOut,
)
from smartspend.services import AccountService


router = APIRouter(prefix="/accounts", tags=["accounts"])


def _service(
    db: Session = Depends(get_db),
    invalidator: DashboardInvalidator = Depends(get_dashboard_invalidator),
) -> AccountService:
    return AccountService(db, invalidator)


@router.get("", response_model=ActionResult[list[AccountOut]])
def list_accounts(
    svc: AccountService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    rows = svc.get_all(user_id=current_user.id)
    data = [
        AccountOut.model_validate(account).model_copy(update={"transaction_count": count})
        for account, count in rows
    ]
    return {"success": True, "data": data}


@router.post("", response_model=ActionResult[AccountOut], status_code=201)
def create_account(
    payload: AccountCreate,
    svc: AccountService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    return {"success": True, "data": svc.create(payload, user_id=current_user.id)}


@router.get("/{account_id}", response_model=ActionResult[AccountDetailOut])
def get_account(
    account_id: int,
    svc: AccountService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    account = svc.get_by_id(current_user.id, account_id, with_transactions=True)
    transactions = sorted(account.transactions, key=lambda t: (t.occurred_at, t.id), reverse=True)
    data = AccountDetailOut(
        **AccountOut.model_validate(account).model_dump(exclude={"transaction_count"}),
        transaction_count=len(transactions),
        transactions=[TransactionOut.model_validate(t) for t in transactions],
    )
    return {"success": True, "data": data}


@router.post("/{account_id}/default", response_model=ActionResult[AccountOut])
def set_default_account(
    account_id: int,
    svc: AccountService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    return {"success": True, "data": svc.set_default(current_user.id, account_id)}


@router.delete("/{account_id}", response_model=ActionResult[None])
def delete_account(
    account_id: int,
    svc: AccountService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    svc.delete(current_user.id, account_id)
    return {"success": True}
