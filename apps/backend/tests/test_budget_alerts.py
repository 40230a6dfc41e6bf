from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from conftest import make_user, override_now
from smartspend import models
from smartspend.services import BudgetAlertService, BudgetService
from smartspend.services.budget_service import should_alert, used_percentage


def _account(db, user_id: int, name: str = "Main", is_default: bool = True) -> models.Account:
    acc = models.Account(user_id=user_id, name=name, is_default=is_default, balance=Decimal("0"))
    db.add(acc)
    db.commit()
    return acc


def _expense(db, acc: models.Account, amount: str, when: datetime) -> None:
    db.add(
        models.Transaction(
            user_id=acc.user_id,
            account_id=acc.id,
            type=models.TxnType.EXPENSE,
            amount=Decimal(amount),
            occurred_at=when,
        )
    )
    db.commit()


def _budget(db, user_id: int, amount: str = "1000.00") -> models.Budget:
    budget = models.Budget(user_id=user_id, amount=Decimal(amount))
    db.add(budget)
    db.commit()
    return budget


def test_used_percentage_and_threshold():
    assert used_percentage(Decimal("799.99"), Decimal("1000")) < Decimal("80")
    assert used_percentage(Decimal("800.00"), Decimal("1000")) == Decimal("80")
    now = datetime(2024, 3, 10)
    assert should_alert(Decimal("80"), None, now, Decimal("80"))
    assert not should_alert(Decimal("95"), datetime(2024, 3, 1), now, Decimal("80"))
    assert should_alert(Decimal("95"), datetime(2024, 2, 29, 23, 59), now, Decimal("80"))


def test_alert_fires_once_per_month(db_session, demo_user, notifier):
    acc = _account(db_session, demo_user.id, "Everyday")
    budget = _budget(db_session, demo_user.id)
    svc = BudgetAlertService(db_session, notifier, threshold=80)

    _expense(db_session, acc, "799.99", datetime(2024, 3, 5, 12))
    result = svc.check_all(datetime(2024, 3, 10, 6))
    assert (result.checked, result.alerts_sent, result.skipped) == (1, 0, 1)
    assert notifier.sent == []

    _expense(db_session, acc, "0.01", datetime(2024, 3, 10, 7))
    fired_at = datetime(2024, 3, 10, 12)
    result = svc.check_all(fired_at)
    assert result.alerts_sent == 1
    [(to, subject, body)] = notifier.sent
    assert to == "demo@example.com"
    assert subject == "Budget Alert for Everyday"
    assert "80.0%" in body
    db_session.refresh(budget)
    assert budget.last_alert_sent == fired_at

    # still above threshold later in the month: no second mail
    _expense(db_session, acc, "150.00", datetime(2024, 3, 20))
    assert svc.check_all(datetime(2024, 3, 25)).alerts_sent == 0
    assert len(notifier.sent) == 1

    # a new month with its own overspend fires again
    _expense(db_session, acc, "900.00", datetime(2024, 4, 2))
    assert svc.check_all(datetime(2024, 4, 3)).alerts_sent == 1
    assert len(notifier.sent) == 2


def test_only_month_to_date_expenses_of_default_account_count(db_session, demo_user, notifier):
    main = _account(db_session, demo_user.id, "Main")
    side = _account(db_session, demo_user.id, "Side", is_default=False)
    _budget(db_session, demo_user.id, "100.00")

    _expense(db_session, side, "500.00", datetime(2024, 5, 3))
    _expense(db_session, main, "500.00", datetime(2024, 4, 30, 23, 59))
    _expense(db_session, main, "500.00", datetime(2024, 5, 20))  # after "now"
    db_session.add(
        models.Transaction(
            user_id=demo_user.id,
            account_id=main.id,
            type=models.TxnType.INCOME,
            amount=Decimal("500.00"),
            occurred_at=datetime(2024, 5, 4),
        )
    )
    db_session.commit()

    result = BudgetAlertService(db_session, notifier).check_all(datetime(2024, 5, 10))
    assert result.alerts_sent == 0


def test_budgets_without_default_account_or_amount_are_skipped(db_session, demo_user, notifier):
    acc = _account(db_session, demo_user.id, is_default=False)
    _budget(db_session, demo_user.id)
    _expense(db_session, acc, "999.00", datetime(2024, 6, 2))

    broke = make_user(db_session, "zero@example.com")
    zero_acc = _account(db_session, broke.id)
    _budget(db_session, broke.id, "0")
    _expense(db_session, zero_acc, "5.00", datetime(2024, 6, 2))

    result = BudgetAlertService(db_session, notifier).check_all(datetime(2024, 6, 3))
    assert (result.checked, result.alerts_sent, result.skipped, result.failed) == (2, 0, 2, 0)
    assert notifier.sent == []


def test_failed_delivery_is_counted_and_retried_next_sweep(db_session, demo_user, notifier):
    acc = _account(db_session, demo_user.id)
    budget = _budget(db_session, demo_user.id)
    _expense(db_session, acc, "950.00", datetime(2024, 7, 1))
    notifier.fail_for.add("demo@example.com")
    svc = BudgetAlertService(db_session, notifier)

    result = svc.check_all(datetime(2024, 7, 2))
    assert (result.alerts_sent, result.failed) == (0, 1)
    db_session.refresh(budget)
    assert budget.last_alert_sent is None

    notifier.fail_for.clear()
    assert svc.check_all(datetime(2024, 7, 2, 6)).alerts_sent == 1


def test_budget_alert_job_uses_configured_threshold(client, db_session, demo_user, notifier):
    acc = _account(db_session, demo_user.id)
    _budget(db_session, demo_user.id)
    _expense(db_session, acc, "850.00", datetime(2024, 8, 1))
    override_now(datetime(2024, 8, 2))

    res = client.post("/api/jobs/budget-alerts")
    assert res.status_code == 200
    assert res.json() == {"checked": 1, "alerts_sent": 1, "skipped": 0, "failed": 0}
    assert len(notifier.sent) == 1


def test_current_budget_and_upsert(client, db_session, demo_user):
    acc = _account(db_session, demo_user.id)
    _expense(db_session, acc, "40.00", datetime(2024, 9, 1))
    _expense(db_session, acc, "2.50", datetime(2024, 9, 28))  # later this month still counts
    _expense(db_session, acc, "99.00", datetime(2024, 8, 31, 23, 59))
    override_now(datetime(2024, 9, 15))

    res = client.get("/api/budgets/current", params={"account_id": acc.id})
    assert res.status_code == 200
    assert res.json()["data"] == {"budget": None, "current_expenses": 42.5}

    res = client.put("/api/budgets", json={"amount": 500})
    assert res.status_code == 200
    first_id = res.json()["data"]["id"]
    res = client.put("/api/budgets", json={"amount": 650.25})
    assert res.json()["data"]["id"] == first_id
    assert res.json()["data"]["amount"] == 650.25

    data = client.get("/api/budgets/current", params={"account_id": acc.id}).json()["data"]
    assert data["budget"]["amount"] == 650.25
    assert db_session.query(models.Budget).count() == 1


@pytest.mark.parametrize("amount", [0, -10])
def test_upsert_rejects_non_positive_amount(client, amount):
    res = client.put("/api/budgets", json={"amount": amount})
    assert res.status_code == 422
    assert res.json()["success"] is False


def test_budget_service_upsert_creates_then_updates(db_session, demo_user):
    svc = BudgetService(db_session)
    assert svc.get_for_user(demo_user.id) is None
    created = svc.upsert(demo_user.id, Decimal("10"))
    updated = svc.upsert(demo_user.id, Decimal("20"))
    assert created.id == updated.id
    assert updated.amount == Decimal("20.00")
