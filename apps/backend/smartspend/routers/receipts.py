from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from smartspend import models
from smartspend.core.deps import get_current_user, get_receipt_extractor
from smartspend.integrations.gemini import ReceiptExtractor
from smartspend.schemas import ActionResult, ReceiptDraft
from smartspend.services import ReceiptScanService


router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("/scan", response_model=ActionResult[ReceiptDraft])
def scan_receipt(
    file: UploadFile = File(...),
    extractor: ReceiptExtractor = Depends(get_receipt_extractor),
    current_user: models.User = Depends(get_current_user),
):
    """Extract a transaction draft from a receipt photo.

    ``data`` is null when the image is not recognized as a receipt; the
    client then falls back to manual entry.
    """
    image = file.file.read()
    draft = ReceiptScanService(extractor).scan(image, file.content_type or "")
    return {"success": True, "data": draft}
