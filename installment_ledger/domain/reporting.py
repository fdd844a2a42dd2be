"""Read-side aggregations over ledger entries

All functions are pure and make a single pass over the entries they are given.
Entries are any objects exposing the installment fields (ORM rows or drafts).
"""

import heapq
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from installment_ledger.domain.models import (
    DashboardSnapshot,
    InstallmentStatus,
    LedgerFilter,
    MemberSummary,
    PaymentRecord,
    PeriodReport,
    TopPayer,
    Totals,
)
from installment_ledger.domain.money import ZERO
from installment_ledger.domain.status import AsOf, classify, is_terminal
from installment_ledger.utils.date_utils import month_key, recent_month_keys


def matches(entry, flt: Optional[LedgerFilter], as_of: AsOf) -> bool:
    """True when the entry passes every filter that is set"""
    if flt is None:
        return True
    if flt.member_id is not None and entry.member_id != flt.member_id:
        return False
    if flt.file_id is not None and entry.file_id != flt.file_id:
        return False
    if flt.plot_id is not None and entry.plot_id != flt.plot_id:
        return False
    if flt.category_id is not None and entry.category_id != flt.category_id:
        return False
    if flt.date_from is not None and entry.due_date < flt.date_from:
        return False
    if flt.date_to is not None and entry.due_date > flt.date_to:
        return False
    if flt.status is not None and classify(entry, as_of) != InstallmentStatus(flt.status):
        return False
    return True


def filter_entries(entries: Iterable, flt: Optional[LedgerFilter], as_of: AsOf) -> List:
    return [entry for entry in entries if matches(entry, flt, as_of)]


def summarize_member(
    member_id: str,
    entries: Iterable,
    as_of: date,
    category_names: Optional[Mapping[str, str]] = None,
    months: int = 12,
) -> MemberSummary:
    """
    Totals for one member grouped by effective status, category and due month.

    The month grouping covers the `months` most recent calendar months ending
    with as_of's month; every month appears even when empty.
    """
    totals = Totals()
    by_status: Dict[str, Totals] = defaultdict(Totals)
    by_category: Dict[str, Totals] = defaultdict(Totals)
    by_month: Dict[str, Totals] = {key: Totals() for key in recent_month_keys(as_of, months)}

    for entry in entries:
        if entry.member_id != member_id:
            continue
        totals.add(entry)
        by_status[classify(entry, as_of).value].add(entry)
        by_category[entry.category_id].add(entry)
        bucket = by_month.get(month_key(entry.due_date))
        if bucket is not None:
            bucket.add(entry)

    names = dict(category_names or {})
    return MemberSummary(
        member_id=member_id,
        totals=totals,
        by_status=dict(by_status),
        by_category=dict(by_category),
        category_names={cid: names.get(cid, cid) for cid in by_category},
        by_month=by_month,
    )


def build_dashboard(
    entries: Iterable,
    payments: Iterable[PaymentRecord],
    as_of: date,
    recent_limit: int = 10,
    upcoming_limit: int = 10,
    top_payers_limit: int = 5,
) -> DashboardSnapshot:
    """
    Snapshot of outstanding, collected, due and overdue amounts at as_of.

    `entries` are the live entries in scope. `payments` are every payment event
    in the same scope, including events on entries deleted since; collected
    today, recent payments and top payers all come from them.
    """
    outstanding = ZERO
    due_today = ZERO
    overdue = ZERO
    overdue_count = 0
    upcoming = []

    for entry in entries:
        if is_terminal(entry.status):
            continue
        outstanding += entry.balance_amount
        if entry.due_date == as_of:
            due_today += entry.balance_amount
        if classify(entry, as_of) == InstallmentStatus.OVERDUE:
            overdue += entry.balance_amount
            overdue_count += 1
        elif entry.due_date >= as_of:
            upcoming.append(entry)

    payments = list(payments)
    collected_today = ZERO
    paid_by_member: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for payment in payments:
        paid_by_member[payment.member_id] += payment.amount
        if payment.paid_date == as_of:
            collected_today += payment.amount

    top_payers = heapq.nlargest(top_payers_limit, paid_by_member.items(), key=lambda item: (item[1], item[0]))

    return DashboardSnapshot(
        as_of=as_of,
        total_outstanding=outstanding,
        collected_today=collected_today,
        due_today=due_today,
        total_overdue=overdue,
        overdue_count=overdue_count,
        recent_payments=heapq.nlargest(recent_limit, payments, key=lambda p: p.recorded_at),
        upcoming_dues=heapq.nsmallest(
            upcoming_limit, upcoming, key=lambda e: (e.due_date, e.installment_no)
        ),
        top_payers=[TopPayer(member_id=member_id, amount_paid=amount) for member_id, amount in top_payers],
    )


def build_period_report(
    entries: Iterable,
    date_from: date,
    date_to: date,
    as_of: date,
    flt: Optional[LedgerFilter] = None,
    category_names: Optional[Mapping[str, str]] = None,
) -> PeriodReport:
    """Entries due within [date_from, date_to] with totals by day, category and status"""
    matched = []
    totals = Totals()
    by_day: Dict[date, Totals] = defaultdict(Totals)
    by_category: Dict[str, Totals] = defaultdict(Totals)
    by_status: Dict[str, Totals] = defaultdict(Totals)

    for entry in entries:
        if entry.due_date < date_from or entry.due_date > date_to:
            continue
        if not matches(entry, flt, as_of):
            continue
        matched.append(entry)
        totals.add(entry)
        by_day[entry.due_date].add(entry)
        by_category[entry.category_id].add(entry)
        by_status[classify(entry, as_of).value].add(entry)

    names = dict(category_names or {})
    matched.sort(key=lambda e: (e.due_date, e.installment_no))
    return PeriodReport(
        date_from=date_from,
        date_to=date_to,
        entries=matched,
        totals=totals,
        by_day=dict(sorted(by_day.items())),
        by_category=dict(by_category),
        category_names={cid: names.get(cid, cid) for cid in by_category},
        by_status=dict(by_status),
    )
