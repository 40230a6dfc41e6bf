"""Router aggregation.

Each feature module owns an ``APIRouter``; ``register_routers`` mounts them
all under ``/api``.
"""

from fastapi import FastAPI

from . import accounts, budgets, dashboard, jobs, receipts, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    app.include_router(accounts.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(budgets.router, prefix="/api")
    app.include_router(receipts.router, prefix="/api")
    app.include_router(dashboard.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")
