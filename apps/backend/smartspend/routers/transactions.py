from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.database import get_db
from smartspend.core.deps import get_current_user, get_dashboard_invalidator, get_rate_limiter
from smartspend.core.ratelimit import RateLimiter
from smartspend.integrations.dashboard import DashboardInvalidator
from smartspend.schemas import (
    ActionResult,
    TransactionCreate,
    TransactionOut,
    TransactionsBulkDelete,
    TransactionsBulkDeleteResult,
    TransactionUpdate,
)
from smartspend.services import TransactionBalanceService


router = APIRouter(prefix="/transactions", tags=["transactions"])


def _service(
    db: Session = Depends(get_db),
    invalidator: DashboardInvalidator = Depends(get_dashboard_invalidator),
) -> TransactionBalanceService:
    return TransactionBalanceService(db, invalidator)


@router.get("", response_model=ActionResult[list[TransactionOut]])
def list_transactions(
    account_id: Optional[int] = Query(None),
    txn_type: Optional[models.TxnType] = Query(None, alias="type"),
    start: Optional[datetime] = Query(None, description="Inclusive lower bound on occurred_at"),
    end: Optional[datetime] = Query(None, description="Exclusive upper bound on occurred_at"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    svc: TransactionBalanceService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    if account_id is not None:
        svc.get_account(current_user.id, account_id)
    rows = svc.list_for_user(
        current_user.id,
        account_id=account_id,
        txn_type=txn_type,
        start=start,
        end=end,
        limit=limit,
    )
    return {"success": True, "data": rows}


@router.post("", response_model=ActionResult[TransactionOut], status_code=201)
def create_transaction(
    payload: TransactionCreate,
    svc: TransactionBalanceService = Depends(_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    current_user: models.User = Depends(get_current_user),
):
    limiter.hit(str(current_user.id))
    tx = svc.create(current_user.id, payload.model_dump())
    return {"success": True, "data": tx}


@router.post("/bulk-delete", response_model=ActionResult[TransactionsBulkDeleteResult])
def bulk_delete_transactions(
    payload: TransactionsBulkDelete,
    svc: TransactionBalanceService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    deleted, missing, changes = svc.bulk_delete(current_user.id, payload.ids)
    data = TransactionsBulkDeleteResult(
        deleted=len(deleted),
        deleted_ids=deleted,
        missing=missing,
        balance_changes=changes,
    )
    return {"success": True, "data": data}


@router.get("/{txn_id}", response_model=ActionResult[TransactionOut])
def get_transaction(
    txn_id: int,
    svc: TransactionBalanceService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    return {"success": True, "data": svc.get_transaction(current_user.id, txn_id)}


@router.put("/{txn_id}", response_model=ActionResult[TransactionOut])
def update_transaction(
    txn_id: int,
    payload: TransactionUpdate,
    svc: TransactionBalanceService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    tx = svc.update(current_user.id, txn_id, payload.model_dump())
    return {"success": True, "data": tx}


@router.delete("/{txn_id}", response_model=ActionResult[None])
def delete_transaction(
    txn_id: int,
    svc: TransactionBalanceService = Depends(_service),
    current_user: models.User = Depends(get_current_user),
):
    svc.delete(current_user.id, txn_id)
    return {"success": True}
