from __future__ import annotations

from typing import Iterable, Protocol

import structlog

logger = structlog.get_logger(__name__)


class DashboardInvalidator(Protocol):
    def invalidate(self, user_id: int, account_ids: Iterable[int]) -> None: ...


class LoggingDashboardInvalidator:
    """Default invalidator: records which views went stale.

    Deployments with a view cache plug their own implementation in through
    ``smartspend.core.deps.get_dashboard_invalidator``.
    """

    def invalidate(self, user_id: int, account_ids: Iterable[int]) -> None:
        ids = sorted({int(a) for a in account_ids if a is not None})
        logger.debug("dashboard_invalidated", user_id=user_id, account_ids=ids)
