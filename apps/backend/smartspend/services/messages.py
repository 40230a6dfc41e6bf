"""Plain-text bodies for the outgoing mails."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from smartspend.schemas import MonthlyStats


def _fmt(value: Decimal | float) -> str:
    return f"{Decimal(value):,.2f}"


def budget_alert_message(user_name: str | None, data: dict[str, Any]) -> tuple[str, str]:
    subject = f"Budget Alert for {data['account_name']}"
    body = "\n".join(
        [
            f"Hello {user_name or 'there'},",
            "",
            f"You have used {Decimal(data['used_pct']):.1f}% of your monthly budget.",
            f"Budget: {_fmt(data['budget_amount'])}",
            f"Spent so far: {_fmt(data['total_expenses'])}",
            f"Remaining: {_fmt(Decimal(data['budget_amount']) - Decimal(data['total_expenses']))}",
            f"Account: {data['account_name']}",
        ]
    )
    return subject, body


def monthly_report_message(user_name: str | None, stats: MonthlyStats, insights: list[str]) -> tuple[str, str]:
    subject = f"Your Monthly Financial Report - {stats.month}"
    lines = [
        f"Hello {user_name or 'there'},",
        "",
        f"Here is your financial summary for {stats.month}.",
        f"Total income: {_fmt(stats.total_income)}",
        f"Total expenses: {_fmt(stats.total_expenses)}",
        f"Net: {_fmt(stats.net)}",
    ]
    if stats.by_category:
        lines.append("")
        lines.append("Expenses by category:")
        for name, amount in sorted(stats.by_category.items(), key=lambda item: item[1], reverse=True):
            lines.append(f"  - {name}: {_fmt(amount)}")
    if insights:
        lines.append("")
        lines.append("Insights:")
        lines.extend(f"  * {text}" for text in insights)
    return subject, "\n".join(lines)
