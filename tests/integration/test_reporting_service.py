"""Integration tests for reports over persisted ledger entries"""

import pytest
from datetime import date
from decimal import Decimal
from installment_ledger.domain.exceptions import NotFoundError, ValidationError
from installment_ledger.domain.models import InstallmentStatus, LedgerFilter

TODAY = date(2024, 6, 15)


@pytest.fixture
def populated(ledger, make_installment):
    """
    M-1 (F-1): paid in April, partially paid and overdue in May, upcoming July
    M-2 (F-2): due today, maintenance charge
    """
    april = make_installment(amount_due="1000", due_date=date(2024, 4, 1))
    may = make_installment(amount_due="1000", due_date=date(2024, 5, 1))
    july = make_installment(amount_due="1000", due_date=date(2024, 7, 1))
    today = make_installment(
        amount_due="500",
        due_date=TODAY,
        file_id="F-2",
        member_id="M-2",
        plot_id="P-2",
        category_id="CAT-MC",
    )
    ledger.apply_payment(april.id, Decimal("1000"), date(2024, 4, 1), "cash")
    ledger.apply_payment(may.id, Decimal("400"), TODAY, "online", transaction_ref_no="TX-1")
    ledger.apply_payment(today.id, Decimal("50"), TODAY, "cash")
    return {"april": april, "may": may, "july": july, "today": today}


def test_member_summary(reporting, populated):
    summary = reporting.member_summary("M-1")

    assert summary.totals.count == 3
    assert summary.totals.amount_paid == Decimal("1400.00")
    assert summary.totals.balance_amount == Decimal("1600.00")
    assert summary.by_status["PAID"].count == 1
    assert summary.by_status["OVERDUE"].balance_amount == Decimal("600.00")
    assert summary.category_names == {"CAT-DP": "Down Payment"}
    assert len(summary.by_month) == 12
    assert summary.by_month["2024-05"].amount_paid == Decimal("400.00")


def test_member_summary_scoped_by_category(reporting, populated):
    summary = reporting.member_summary("M-1", flt=LedgerFilter(category_id="CAT-MC"))
    assert summary.totals.count == 0


def test_member_summary_unknown_member(reporting):
    with pytest.raises(NotFoundError):
        reporting.member_summary("M-404")


def test_dashboard(reporting, populated):
    snapshot = reporting.dashboard()

    assert snapshot.as_of == TODAY
    # 600 (May) + 1000 (July) + 450 (today)
    assert snapshot.total_outstanding == Decimal("2050.00")
    assert snapshot.collected_today == Decimal("450.00")
    assert snapshot.due_today == Decimal("450.00")
    assert snapshot.total_overdue == Decimal("600.00")
    assert snapshot.overdue_count == 1
    assert len(snapshot.recent_payments) == 3
    assert {p.member_id for p in snapshot.recent_payments} == {"M-1", "M-2"}
    assert [e.due_date for e in snapshot.upcoming_dues] == [TODAY, date(2024, 7, 1)]
    assert snapshot.top_payers[0].member_id == "M-1"
    assert snapshot.top_payers[0].amount_paid == Decimal("1400.00")


def test_dashboard_scoped_to_member(reporting, populated):
    snapshot = reporting.dashboard(flt=LedgerFilter(member_id="M-2"))

    assert snapshot.total_outstanding == Decimal("450.00")
    assert snapshot.collected_today == Decimal("50.00")
    assert [p.member_id for p in snapshot.recent_payments] == ["M-2"]


def test_dashboard_excludes_deleted(ledger, reporting, populated):
    ledger.soft_delete(populated["july"].id)
    snapshot = reporting.dashboard()
    assert snapshot.total_outstanding == Decimal("1050.00")


def test_dashboard_counts_payments_on_deleted_entries(ledger, reporting, populated):
    ledger.soft_delete(populated["today"].id)
    snapshot = reporting.dashboard()

    assert snapshot.total_outstanding == Decimal("1600.00")
    assert snapshot.collected_today == Decimal("450.00")
    assert [(t.member_id, t.amount_paid) for t in snapshot.top_payers] == [
        ("M-1", Decimal("1400.00")),
        ("M-2", Decimal("50.00")),
    ]


def test_dashboard_scoped_by_status(reporting, populated):
    snapshot = reporting.dashboard(flt=LedgerFilter(status=InstallmentStatus.OVERDUE))

    assert snapshot.total_outstanding == Decimal("600.00")
    assert snapshot.overdue_count == 1
    assert snapshot.collected_today == Decimal("400.00")
    assert [p.installment_id for p in snapshot.recent_payments] == [str(populated["may"].id)]
    assert [(t.member_id, t.amount_paid) for t in snapshot.top_payers] == [("M-1", Decimal("400.00"))]
    assert snapshot.upcoming_dues == []


def test_dashboard_scoped_by_due_dates(reporting, populated):
    snapshot = reporting.dashboard(flt=LedgerFilter(date_from=date(2024, 6, 1), date_to=date(2024, 6, 30)))

    assert snapshot.total_outstanding == Decimal("450.00")
    assert snapshot.due_today == Decimal("450.00")
    assert snapshot.overdue_count == 0
    assert snapshot.collected_today == Decimal("50.00")
    assert [p.member_id for p in snapshot.recent_payments] == ["M-2"]
    assert [(t.member_id, t.amount_paid) for t in snapshot.top_payers] == [("M-2", Decimal("50.00"))]


def test_member_summary_scoped_by_plot_dates_and_status(reporting, populated):
    assert reporting.member_summary("M-1", flt=LedgerFilter(plot_id="P-2")).totals.count == 0

    summary = reporting.member_summary("M-1", flt=LedgerFilter(date_from=date(2024, 5, 1), date_to=date(2024, 7, 31)))
    assert summary.totals.count == 2

    summary = reporting.member_summary("M-1", flt=LedgerFilter(status=InstallmentStatus.PAID))
    assert summary.totals.count == 1
    assert summary.totals.amount_paid == Decimal("1000.00")


def test_period_report(reporting, populated):
    report = reporting.period_report(date(2024, 5, 1), date(2024, 6, 30))

    assert [e.due_date for e in report.entries] == [date(2024, 5, 1), TODAY]
    assert report.totals.count == 2
    assert report.totals.total_payable == Decimal("1500.00")
    assert list(report.by_day) == [date(2024, 5, 1), TODAY]
    assert report.category_names == {"CAT-DP": "Down Payment", "CAT-MC": "Maintenance Charge"}
    assert report.by_status["OVERDUE"].count == 1
    assert report.by_status["PARTIALLY_PAID"].count == 1


def test_period_report_status_filter(reporting, populated):
    report = reporting.period_report(
        date(2024, 1, 1),
        date(2024, 12, 31),
        flt=LedgerFilter(status=InstallmentStatus.PAID),
    )
    assert [e.due_date for e in report.entries] == [date(2024, 4, 1)]


def test_period_report_rejects_inverted_range(reporting):
    with pytest.raises(ValidationError):
        reporting.period_report(date(2024, 6, 30), date(2024, 5, 1))


def test_reports_do_not_write(db, reporting, populated):
    reporting.member_summary("M-1")
    reporting.dashboard()
    reporting.period_report(date(2024, 1, 1), date(2024, 12, 31))
    assert not db.dirty
    assert not db.new
