"""Unit tests for status derivation and the overdue classifier"""

import pytest
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from installment_ledger.domain.models import InstallmentStatus
from installment_ledger.domain.status import classify, derive_status, is_past_due, is_terminal


@dataclass
class Entry:
    due_date: date
    status: str = "UNPAID"
    amount_paid: Decimal = Decimal("0.00")
    total_payable: Decimal = Decimal("1000.00")


def test_unpaid_past_due_is_overdue():
    entry = Entry(due_date=date(2024, 1, 10))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.OVERDUE


def test_partially_paid_past_due_is_overdue():
    entry = Entry(due_date=date(2024, 1, 10), status="PARTIALLY_PAID", amount_paid=Decimal("400.00"))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.OVERDUE


def test_paid_is_never_overdue():
    entry = Entry(due_date=date(2024, 1, 10), status="PAID", amount_paid=Decimal("1000.00"))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.PAID


def test_cancelled_is_never_overdue():
    entry = Entry(due_date=date(2024, 1, 10), status="CANCELLED")
    assert classify(entry, date(2030, 1, 1)) == InstallmentStatus.CANCELLED


def test_due_today_is_not_overdue():
    entry = Entry(due_date=date(2024, 2, 1))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.UNPAID
    assert classify(entry, datetime(2024, 2, 1, 23, 59)) == InstallmentStatus.UNPAID
    assert classify(entry, date(2024, 2, 2)) == InstallmentStatus.OVERDUE


def test_future_entry_keeps_stored_status():
    entry = Entry(due_date=date(2024, 3, 1), status="PARTIALLY_PAID", amount_paid=Decimal("1.00"))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.PARTIALLY_PAID


def test_persisted_overdue_with_future_due_date_falls_back():
    entry = Entry(due_date=date(2024, 3, 1), status="OVERDUE", amount_paid=Decimal("250.00"))
    assert classify(entry, date(2024, 2, 1)) == InstallmentStatus.PARTIALLY_PAID


def test_classify_does_not_mutate():
    entry = Entry(due_date=date(2024, 1, 10))
    classify(entry, date(2024, 2, 1))
    assert entry.status == "UNPAID"


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        ("0", "1000", InstallmentStatus.UNPAID),
        ("400", "1000", InstallmentStatus.PARTIALLY_PAID),
        ("1000", "1000", InstallmentStatus.PAID),
        ("0", "0", InstallmentStatus.UNPAID),
    ],
)
def test_derive_status(paid, total, expected):
    assert derive_status(Decimal(paid), Decimal(total)) == expected


def test_derive_status_cancelled_wins():
    assert derive_status(Decimal("400"), Decimal("1000"), cancelled=True) == InstallmentStatus.CANCELLED


def test_terminal_statuses():
    assert is_terminal("PAID")
    assert is_terminal(InstallmentStatus.CANCELLED)
    assert not is_terminal("OVERDUE")
    assert not is_terminal("UNPAID")


def test_is_past_due_uses_calendar_day():
    assert is_past_due(date(2024, 1, 31), datetime(2024, 2, 1, 0, 0, 1))
    assert not is_past_due(date(2024, 2, 1), datetime(2024, 2, 1, 0, 0, 1))
