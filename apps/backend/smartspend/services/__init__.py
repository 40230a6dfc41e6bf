"""
Services package

Business logic behind the routers and the scheduled jobs.
"""

from .account_service import AccountService
from .budget_service import BudgetAlertService, BudgetService
from .receipt_service import ReceiptScanService
from .recurrence_service import RecurrenceScheduler
from .report_service import MonthlyReportService
from .transaction_service import TransactionBalanceService

__all__ = [
    "AccountService",
    "BudgetAlertService",
    "BudgetService",
    "MonthlyReportService",
    "ReceiptScanService",
    "RecurrenceScheduler",
    "TransactionBalanceService",
]
