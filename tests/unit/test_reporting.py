"""Unit tests for read-side aggregations"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from installment_ledger.domain.models import InstallmentStatus, LedgerFilter, PaymentRecord
from installment_ledger.domain.reporting import (
    build_dashboard,
    build_period_report,
    filter_entries,
    summarize_member,
)

AS_OF = date(2024, 6, 15)


@dataclass
class Entry:
    member_id: str
    due_date: date
    total_payable: Decimal
    amount_paid: Decimal = Decimal("0.00")
    status: str = "UNPAID"
    category_id: str = "CAT-DP"
    file_id: str = "F-1"
    plot_id: str = "P-1"
    installment_no: int = 1

    @property
    def balance_amount(self) -> Decimal:
        return self.total_payable - self.amount_paid


def _payment(member_id, amount, paid_date, hour):
    return PaymentRecord(
        installment_id=f"I-{member_id}-{hour}",
        member_id=member_id,
        amount=Decimal(amount),
        payment_mode="cash",
        paid_date=paid_date,
        transaction_ref_no=None,
        recorded_at=datetime(2024, 6, 15, hour),
    )


def _ledger():
    return [
        # M-1: one paid, one overdue partial, one upcoming
        Entry("M-1", date(2024, 4, 1), Decimal("1000.00"), Decimal("1000.00"), "PAID", installment_no=1),
        Entry("M-1", date(2024, 5, 1), Decimal("1000.00"), Decimal("400.00"), "PARTIALLY_PAID", installment_no=2),
        Entry("M-1", date(2024, 7, 1), Decimal("1000.00"), installment_no=3),
        # M-2: one due today, one cancelled
        Entry("M-2", date(2024, 6, 15), Decimal("500.00"), category_id="CAT-MC", file_id="F-2", plot_id="P-2"),
        Entry("M-2", date(2024, 3, 1), Decimal("700.00"), status="CANCELLED", file_id="F-2", plot_id="P-2"),
    ]


def test_filter_by_effective_status():
    entries = _ledger()
    overdue = filter_entries(entries, LedgerFilter(status=InstallmentStatus.OVERDUE), AS_OF)
    assert [(e.member_id, e.installment_no) for e in overdue] == [("M-1", 2)]


def test_filter_by_ids_and_dates():
    entries = _ledger()
    flt = LedgerFilter(member_id="M-1", date_from=date(2024, 5, 1), date_to=date(2024, 7, 1))
    assert [e.installment_no for e in filter_entries(entries, flt, AS_OF)] == [2, 3]
    assert filter_entries(entries, None, AS_OF) == entries


def test_member_summary_totals():
    summary = summarize_member("M-1", _ledger(), AS_OF, category_names={"CAT-DP": "Down Payment"})

    assert summary.totals.count == 3
    assert summary.totals.total_payable == Decimal("3000.00")
    assert summary.totals.amount_paid == Decimal("1400.00")
    assert summary.totals.balance_amount == Decimal("1600.00")
    assert summary.by_status["PAID"].count == 1
    assert summary.by_status["OVERDUE"].balance_amount == Decimal("600.00")
    assert summary.by_status["UNPAID"].count == 1
    assert summary.category_names == {"CAT-DP": "Down Payment"}


def test_member_summary_month_buckets():
    summary = summarize_member("M-1", _ledger(), AS_OF, months=3)

    # Only the 3 most recent months are bucketed, empty ones included
    assert list(summary.by_month) == ["2024-04", "2024-05", "2024-06"]
    assert summary.by_month["2024-04"].amount_paid == Decimal("1000.00")
    assert summary.by_month["2024-06"].count == 0


def test_member_summary_sum_matches_totals():
    summary = summarize_member("M-1", _ledger(), AS_OF)
    by_status_total = sum((t.balance_amount for t in summary.by_status.values()), Decimal("0"))
    assert by_status_total == summary.totals.balance_amount


def test_dashboard_snapshot():
    payments = [
        _payment("M-1", "400", date(2024, 6, 15), 9),
        _payment("M-1", "1000", date(2024, 6, 14), 8),
        _payment("M-2", "50", date(2024, 6, 15), 11),
    ]
    snapshot = build_dashboard(
        _ledger(),
        payments,
        as_of=AS_OF,
        recent_limit=2,
        upcoming_limit=5,
        top_payers_limit=1,
    )

    # Outstanding ignores PAID and CANCELLED: 600 + 1000 + 500
    assert snapshot.total_outstanding == Decimal("2100.00")
    assert snapshot.due_today == Decimal("500.00")
    assert snapshot.total_overdue == Decimal("600.00")
    assert snapshot.overdue_count == 1
    assert snapshot.collected_today == Decimal("450")
    assert [p.recorded_at.hour for p in snapshot.recent_payments] == [11, 9]
    assert [(e.member_id, e.due_date) for e in snapshot.upcoming_dues] == [
        ("M-2", date(2024, 6, 15)),
        ("M-1", date(2024, 7, 1)),
    ]
    assert [(t.member_id, t.amount_paid) for t in snapshot.top_payers] == [("M-1", Decimal("1400.00"))]


def test_dashboard_payments_agree_without_entries():
    """Payments on entries no longer in scope still count toward every payment figure"""
    payments = [_payment("M-3", "40", AS_OF, 10)]
    snapshot = build_dashboard([], payments, as_of=AS_OF)

    assert snapshot.total_outstanding == Decimal("0")
    assert snapshot.collected_today == Decimal("40")
    assert [(t.member_id, t.amount_paid) for t in snapshot.top_payers] == [("M-3", Decimal("40"))]
    assert len(snapshot.recent_payments) == 1


def test_dashboard_empty_ledger():
    snapshot = build_dashboard([], [], as_of=AS_OF)
    assert snapshot.total_outstanding == Decimal("0")
    assert snapshot.overdue_count == 0
    assert snapshot.upcoming_dues == []
    assert snapshot.top_payers == []


def test_period_report_groups():
    report = build_period_report(
        _ledger(),
        date(2024, 5, 1),
        date(2024, 6, 30),
        AS_OF,
        category_names={"CAT-DP": "Down Payment", "CAT-MC": "Maintenance Charge"},
    )

    assert [e.due_date for e in report.entries] == [date(2024, 5, 1), date(2024, 6, 15)]
    assert report.totals.count == 2
    assert report.totals.balance_amount == Decimal("1100.00")
    assert list(report.by_day) == [date(2024, 5, 1), date(2024, 6, 15)]
    assert set(report.by_category) == {"CAT-DP", "CAT-MC"}
    assert report.category_names["CAT-MC"] == "Maintenance Charge"
    assert report.by_status["OVERDUE"].count == 1
    assert report.by_status["UNPAID"].count == 1


def test_period_report_with_status_filter():
    report = build_period_report(
        _ledger(),
        date(2024, 1, 1),
        date(2024, 12, 31),
        AS_OF,
        flt=LedgerFilter(status=InstallmentStatus.CANCELLED),
    )
    assert report.totals.count == 1
    assert report.totals.total_payable == Decimal("700.00")
