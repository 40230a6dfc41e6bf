from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from conftest import override_now
from smartspend import jobs, models
from smartspend.schemas import AccountCreate
from smartspend.services import AccountService, RecurrenceScheduler, TransactionBalanceService


def _setup(db, user_id: int, **txn) -> tuple[models.Account, models.Transaction]:
    acc = AccountService(db).create(AccountCreate(name="Main"), user_id=user_id)
    data = {
        "type": models.TxnType.EXPENSE,
        "amount": Decimal("1200.00"),
        "account_id": acc.id,
        "occurred_at": datetime(2024, 1, 31, 10, 0),
        "description": "Rent",
        "category": "housing",
        "is_recurring": True,
        "recurring_interval": models.RecurringInterval.MONTHLY,
    }
    data.update(txn)
    template = TransactionBalanceService(db).create(user_id, data)
    return acc, template


def _occurrences(db, template_id: int) -> list[models.Transaction]:
    return (
        db.query(models.Transaction)
        .filter(models.Transaction.id != template_id)
        .order_by(models.Transaction.id)
        .all()
    )


def test_due_template_is_materialized_once(db_session, demo_user):
    acc, template = _setup(db_session, demo_user.id)
    assert template.next_recurring_date == datetime(2024, 3, 2, 10, 0)
    now = datetime(2024, 3, 2, 12, 0)

    scheduler = RecurrenceScheduler(db_session)
    first = scheduler.sweep(now)
    second = scheduler.sweep(now)

    assert (first.triggered, first.processed, first.skipped, first.failed) == (1, 1, 0, 0)
    assert second.processed == 0

    [occurrence] = _occurrences(db_session, template.id)
    assert occurrence.description == "Rent (Recurring)"
    assert occurrence.occurred_at == now
    assert occurrence.is_recurring is False
    assert occurrence.recurring_interval is None
    assert occurrence.category == "housing"
    assert occurrence.status == models.TransactionStatus.COMPLETED

    db_session.expire_all()
    template = db_session.get(models.Transaction, template.id)
    assert template.next_recurring_date == datetime(2024, 4, 2, 12, 0)
    assert template.last_processed == now
    assert db_session.get(models.Account, acc.id).balance == Decimal("-2400.00")


def test_backdated_template_catches_up_with_one_occurrence(db_session, demo_user):
    _, template = _setup(db_session, demo_user.id, occurred_at=datetime(2024, 1, 15))
    now = datetime(2024, 5, 1)

    scheduler = RecurrenceScheduler(db_session)
    first = scheduler.sweep(now)
    second = scheduler.sweep(now)

    assert first.processed == 1
    assert (second.triggered, second.processed) == (0, 0)
    assert len(_occurrences(db_session, template.id)) == 1

    db_session.expire_all()
    template = db_session.get(models.Transaction, template.id)
    assert template.next_recurring_date == datetime(2024, 6, 1)


def test_not_yet_due_template_is_skipped(db_session, demo_user):
    _, template = _setup(db_session, demo_user.id)

    # never processed, so it is a candidate, but the date has not come yet
    result = RecurrenceScheduler(db_session).sweep(datetime(2024, 2, 15))

    assert (result.triggered, result.processed, result.skipped) == (1, 0, 1)
    assert _occurrences(db_session, template.id) == []


def test_only_completed_recurring_rows_are_candidates(db_session, demo_user):
    acc, template = _setup(db_session, demo_user.id)
    TransactionBalanceService(db_session).create(
        demo_user.id,
        {
            "type": models.TxnType.INCOME,
            "amount": Decimal("10"),
            "account_id": acc.id,
            "occurred_at": datetime(2024, 1, 1),
        },
    )
    template.status = models.TransactionStatus.PENDING
    db_session.commit()

    scheduler = RecurrenceScheduler(db_session)
    assert scheduler.find_candidates(datetime(2024, 12, 31)) == []


def test_process_rechecks_before_claiming(db_session, demo_user):
    _, template = _setup(db_session, demo_user.id, recurring_interval=models.RecurringInterval.DAILY,
                         occurred_at=datetime(2024, 3, 1, 6, 0))
    now = datetime(2024, 3, 2, 6, 0)
    scheduler = RecurrenceScheduler(db_session)

    assert scheduler.process(template.id, now) is not None
    # a stale candidate list hands the same id in again
    assert scheduler.process(template.id, now) is None
    assert scheduler.process(987654, now) is None
    assert len(_occurrences(db_session, template.id)) == 1


def test_one_failure_does_not_stop_the_sweep(db_session, demo_user, monkeypatch):
    _, bad = _setup(db_session, demo_user.id)
    good = TransactionBalanceService(db_session).create(
        demo_user.id,
        {
            "type": models.TxnType.INCOME,
            "amount": Decimal("3000"),
            "account_id": bad.account_id,
            "occurred_at": datetime(2024, 2, 25, 9, 0),
            "description": "Salary",
            "is_recurring": True,
            "recurring_interval": models.RecurringInterval.WEEKLY,
        },
    )
    scheduler = RecurrenceScheduler(db_session)
    original = scheduler.process

    def _flaky(txn_id, now):
        if txn_id == bad.id:
            raise RuntimeError("lock timeout")
        return original(txn_id, now)

    monkeypatch.setattr(scheduler, "process", _flaky)
    result = scheduler.sweep(datetime(2024, 3, 5))

    assert (result.triggered, result.processed, result.failed) == (2, 1, 1)
    [occurrence] = _occurrences(db_session, bad.id)[1:]
    assert occurrence.description == "Salary (Recurring)"


def test_recurring_job_endpoint(client, db_session, demo_user):
    _setup(db_session, demo_user.id)
    override_now(datetime(2024, 3, 3))

    res = client.post("/api/jobs/recurring")
    assert res.status_code == 200
    assert res.json() == {"triggered": 1, "processed": 1, "skipped": 0, "failed": 0}

    res = client.post("/api/jobs/recurring")
    assert res.json()["triggered"] == 0


def test_jobs_cli_runs_one_sweep(db_session, demo_user, monkeypatch):
    _setup(db_session, demo_user.id)
    monkeypatch.setattr(jobs, "SessionLocal", lambda: db_session)

    assert jobs.main(["recurring", "--now", "2024-03-03T00:00:00"]) == 0
    assert db_session.query(models.Transaction).count() == 2
