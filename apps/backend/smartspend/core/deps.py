from __future__ import annotations

from datetime import datetime
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from smartspend import models
from smartspend.core.config import settings
from smartspend.core.database import get_db
from smartspend.core.errors import Unauthorized
from smartspend.core.ratelimit import FixedWindowRateLimiter, NoopRateLimiter, RateLimiter
from smartspend.integrations.dashboard import DashboardInvalidator, LoggingDashboardInvalidator
from smartspend.integrations.gemini import (
    GeminiClient,
    GeminiInsightGenerator,
    GeminiReceiptExtractor,
    InsightGenerator,
    ReceiptExtractor,
)
from smartspend.integrations.mailer import Notifier, SmtpNotifier


def get_current_user(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the caller from the ``X-User-Id`` header set by the auth gateway.

    Sign-in lives outside this service; tests override this dependency to act
    as different users.
    """
    if x_user_id is None:
        raise Unauthorized()
    user = (
        db.query(models.User)
        .filter(models.User.id == x_user_id, models.User.is_active.is_(True))
        .first()
    )
    if not user:
        raise Unauthorized("User not found")
    return user


def get_now() -> datetime:
    return models.now_local_naive()


@lru_cache(maxsize=1)
def get_gemini_client() -> GeminiClient:
    return GeminiClient(settings.GEMINI_API_KEY, settings.GEMINI_MODEL)


def get_receipt_extractor() -> ReceiptExtractor:
    return GeminiReceiptExtractor(get_gemini_client())


def get_insight_generator() -> InsightGenerator | None:
    # reports fall back to the fixed insights without a key
    if not settings.GEMINI_API_KEY:
        return None
    return GeminiInsightGenerator(get_gemini_client())


def get_notifier() -> Notifier:
    return SmtpNotifier(
        settings.SMTP_HOST,
        settings.SMTP_PORT,
        settings.EMAIL_FROM,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
    )


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_PER_MINUTE > 0:
        return FixedWindowRateLimiter(settings.RATE_LIMIT_PER_MINUTE, 60)
    return NoopRateLimiter()


def get_dashboard_invalidator() -> DashboardInvalidator:
    return LoggingDashboardInvalidator()
