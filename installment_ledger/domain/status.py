"""Status derivation and the overdue classifier

Stored status follows the money fields:

    UNPAID          -> PARTIALLY_PAID | PAID | CANCELLED
    PARTIALLY_PAID  -> PAID | CANCELLED
    PAID, CANCELLED -> terminal

OVERDUE is an overlay on UNPAID/PARTIALLY_PAID entries whose due date has
passed. `classify` computes it at read time; the periodic sweep may persist it,
in which case it is treated like the open status it replaced.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Union

from installment_ledger.domain.models import InstallmentStatus, TERMINAL_STATUSES
from installment_ledger.domain.money import ZERO

AsOf = Union[date, datetime]


def _as_date(as_of: AsOf) -> date:
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def derive_status(amount_paid: Decimal, total_payable: Decimal, cancelled: bool = False) -> InstallmentStatus:
    """
    Stored status as a pure function of the money fields.

    A zero-total obligation with nothing paid stays UNPAID.
    """
    if cancelled:
        return InstallmentStatus.CANCELLED
    if amount_paid <= ZERO:
        return InstallmentStatus.UNPAID
    if amount_paid == total_payable:
        return InstallmentStatus.PAID
    return InstallmentStatus.PARTIALLY_PAID


def is_terminal(status: InstallmentStatus) -> bool:
    return InstallmentStatus(status) in TERMINAL_STATUSES


def is_past_due(due_date: date, as_of: AsOf) -> bool:
    """Due strictly before the as-of calendar day (due today is not overdue)"""
    return due_date < _as_date(as_of)


def classify(entry, as_of: AsOf) -> InstallmentStatus:
    """
    Effective status of an entry at `as_of`.

    Terminal statuses win over the due-date check. Never mutates the entry.
    """
    status = InstallmentStatus(entry.status)
    if status in TERMINAL_STATUSES:
        return status
    if is_past_due(entry.due_date, as_of):
        return InstallmentStatus.OVERDUE
    if status == InstallmentStatus.OVERDUE:
        # Persisted by a sweep but the due date moved into the future
        return derive_status(entry.amount_paid, entry.total_payable)
    return status
