from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from smartspend.core.errors import InvalidRequest
from smartspend.integrations.gemini import ReceiptExtractor
from smartspend.schemas import ReceiptDraft
from smartspend.utils import to_decimal

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("amount", "date", "description", "merchantName", "category")
ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/heic", "image/heif")
MAX_IMAGE_BYTES = 5 * 1024 * 1024


def draft_from_extraction(raw: dict[str, Any] | None) -> ReceiptDraft | None:
    """Turn extractor output into a draft, or ``None`` if anything is missing.

    A result lacking any of the five fields is indistinguishable from
    "this is not a receipt".
    """
    if not raw or any(not raw.get(field) for field in REQUIRED_FIELDS):
        return None
    try:
        return ReceiptDraft(
            amount=abs(to_decimal(raw["amount"])),
            date=datetime.fromisoformat(str(raw["date"]).replace("Z", "+00:00")),
            description=str(raw["description"]),
            merchant_name=str(raw["merchantName"]),
            category=str(raw["category"]),
        )
    except (ValueError, ValidationError) as exc:
        logger.info("receipt_fields_invalid", error=str(exc))
        return None


class ReceiptScanService:
    def __init__(self, extractor: ReceiptExtractor) -> None:
        self.extractor = extractor

    def scan(self, image: bytes, mime_type: str) -> ReceiptDraft | None:
        if mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidRequest(f"Unsupported image type: {mime_type}")
        if not image:
            raise InvalidRequest("Empty upload")
        if len(image) > MAX_IMAGE_BYTES:
            raise InvalidRequest("Image is larger than 5MB")
        draft = draft_from_extraction(self.extractor.extract(image, mime_type))
        logger.info("receipt_scanned", recognized=draft is not None)
        return draft
