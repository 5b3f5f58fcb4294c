from __future__ import annotations

from datetime import datetime

import pytest

from fintrack import models, schemas
from fintrack.services import ReportService, TransactionLifecycleService
from fintrack.services.report_service import period_bounds


@pytest.fixture()
def ledger(db_session, demo_user, make_account):
    bank = make_account("Bank", 1000, seed_opening_entry=True)
    cash = make_account("Cash", 0)
    svc = TransactionLifecycleService(db_session)
    rows = [
        dict(account_id=bank.id, type="income", amount=3000, category="Salary", division="office", date=datetime(2024, 3, 1, 9)),
        dict(account_id=bank.id, type="expense", amount=600, category="Rent", division="personal", date=datetime(2024, 3, 2, 10)),
        dict(account_id=cash.id, type="expense", amount=250, category="Food", division="personal", date=datetime(2024, 3, 9, 13)),
        dict(account_id=bank.id, type="expense", amount=150, category="Food", division="office", date=datetime(2024, 3, 20, 19)),
        dict(account_id=bank.id, to_account_id=cash.id, type="transfer", amount=500, division="personal", date=datetime(2024, 3, 5, 8)),
    ]
    for row in rows:
        svc.create(demo_user.id, schemas.TransactionCreate(description="entry", **row))
    return bank, cash


MARCH = dict(start=datetime(2024, 3, 1), end=datetime(2024, 3, 31, 23, 59, 59))


def test_dashboard_summary_excludes_transfers_from_totals(db_session, demo_user, ledger):
    out = ReportService(db_session).dashboard_summary(demo_user.id, **MARCH)

    assert out.income == 3000
    assert out.expense == 1000
    assert out.balance == 2000
    # The pair counts once; the opening entry not at all
    assert out.transactions == schemas.TypeCounts(income=1, expense=3, transfer=1)


def test_dashboard_uses_period_bounds(db_session, demo_user, ledger):
    svc = ReportService(db_session, clock=lambda: datetime(2024, 3, 21, 12))
    out = svc.dashboard_summary(demo_user.id, period="week")

    assert out.start == datetime(2024, 3, 18)
    assert out.income == 0
    assert out.expense == 150


def test_period_bounds():
    now = datetime(2024, 2, 14, 15, 30)
    assert period_bounds("month", now)[0] == datetime(2024, 2, 1)
    assert period_bounds("month", now)[1].date() == datetime(2024, 2, 29).date()
    assert period_bounds("year", now)[0] == datetime(2024, 1, 1)
    assert period_bounds("week", now)[0] == datetime(2024, 2, 12)


def test_category_breakdown_percentages(db_session, demo_user, ledger):
    out = ReportService(db_session).category_breakdown(demo_user.id, **MARCH)

    assert out.type == models.TxnType.EXPENSE
    assert out.total == 1000
    assert [(i.category, i.total, i.count) for i in out.breakdown] == [("Rent", 600, 1), ("Food", 400, 2)]
    assert [i.percentage for i in out.breakdown] == [60.0, 40.0]
    assert sum(i.percentage for i in out.breakdown) == pytest.approx(100, abs=0.05)


def test_category_breakdown_uneven_split_sums_to_hundred(db_session, demo_user, make_account):
    acc = make_account("Wallet", 0)
    svc = TransactionLifecycleService(db_session)
    for category in ("A", "B", "C"):
        svc.create(
            demo_user.id,
            schemas.TransactionCreate(
                account_id=acc.id, type="expense", amount=10, category=category, division="personal", description=category
            ),
        )

    out = ReportService(db_session).category_breakdown(demo_user.id)

    assert [i.percentage for i in out.breakdown] == [33.33, 33.33, 33.33]
    assert sum(i.percentage for i in out.breakdown) == pytest.approx(100, abs=0.05)


def test_category_breakdown_empty(db_session, demo_user):
    out = ReportService(db_session).category_breakdown(demo_user.id, txn_type=models.TxnType.INCOME)
    assert out.breakdown == []
    assert out.total == 0


def test_division_breakdown(db_session, demo_user, ledger):
    items = {i.division: i for i in ReportService(db_session).division_breakdown(demo_user.id, **MARCH)}

    office = items[models.Division.OFFICE]
    assert (office.income, office.expense, office.balance, office.transaction_count) == (3000, 150, 2850, 2)
    personal = items[models.Division.PERSONAL]
    assert (personal.income, personal.expense, personal.balance, personal.transaction_count) == (0, 850, -850, 3)


def test_trend_groups_by_bucket(db_session, demo_user, ledger):
    svc = ReportService(db_session, clock=lambda: datetime(2024, 3, 25))

    daily = svc.trend(demo_user.id, period="month", group_by="day")
    assert [p.period for p in daily] == ["2024-03-01", "2024-03-02", "2024-03-09", "2024-03-20"]
    assert daily[0].income == 3000 and daily[0].balance == 3000

    weekly = svc.trend(demo_user.id, period="month", group_by="week")
    assert [p.period for p in weekly] == ["2024-W09", "2024-W10", "2024-W12"]
    assert weekly[0].balance == 2400

    monthly = svc.trend(demo_user.id, period="month", group_by="month")
    assert len(monthly) == 1
    assert (monthly[0].period, monthly[0].income, monthly[0].expense) == ("2024-03", 3000, 1000)

    last_week = svc.trend(demo_user.id, period="week", group_by="year")
    assert [(p.period, p.expense) for p in last_week] == [("2024", 150)]


def test_category_summary(db_session, demo_user, ledger):
    items = ReportService(db_session).category_summary(demo_user.id, **MARCH)
    summary = {(i.category, i.type): (i.total, i.count) for i in items}

    assert summary[("Food", models.TxnType.EXPENSE)] == (400, 2)
    assert summary[("Transfer", models.TxnType.TRANSFER)] == (500, 1)
    assert ("Opening Balance", models.TxnType.INCOME) not in summary
