"""Reporting engine: read-only summaries over the ledger"""

from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from installment_ledger.config import settings
from installment_ledger.domain.exceptions import ValidationError
from installment_ledger.domain.models import (
    DashboardSnapshot,
    LedgerFilter,
    MemberSummary,
    PaymentRecord,
    PeriodReport,
)
from installment_ledger.domain.references import ReferenceLookup, require_member
from installment_ledger.domain.reporting import (
    build_dashboard,
    build_period_report,
    filter_entries,
    matches,
    summarize_member,
)
from installment_ledger.infrastructure.database.models import InstallmentPayment
from installment_ledger.infrastructure.database.repositories import InstallmentRepository, PaymentRepository
from installment_ledger.services.ledger import utc_now


def to_payment_record(event: InstallmentPayment) -> PaymentRecord:
    return PaymentRecord(
        installment_id=str(event.installment_id),
        member_id=event.installment.member_id,
        amount=event.amount,
        payment_mode=event.payment_mode,
        paid_date=event.paid_date,
        transaction_ref_no=event.transaction_ref_no,
        recorded_at=event.recorded_at,
    )


class ReportingService:
    """Builds reports; never writes to the ledger"""

    def __init__(self, db: Session, lookup: ReferenceLookup, clock=utc_now):
        self.lookup = lookup
        self.clock = clock
        self.installments = InstallmentRepository(db)
        self.payments = PaymentRepository(db)

    def member_summary(
        self,
        member_id: str,
        flt: Optional[LedgerFilter] = None,
        as_of: Optional[date] = None,
    ) -> MemberSummary:
        """
        Totals for a member by status, category and due month.

        Raises:
            NotFoundError: Member does not exist
        """
        require_member(self.lookup, member_id)
        as_of = as_of or self.clock().date()
        scoped = replace(flt, member_id=member_id) if flt is not None else LedgerFilter(member_id=member_id)

        entries = filter_entries(self.installments.find(scoped), scoped, as_of)
        return summarize_member(
            member_id,
            entries,
            as_of,
            category_names=self._category_names(entry.category_id for entry in entries),
            months=settings.summary_months,
        )

    def dashboard(self, as_of: Optional[date] = None, flt: Optional[LedgerFilter] = None) -> DashboardSnapshot:
        """
        Outstanding, collected today, due today, overdue, recent payments, upcoming dues, top payers.

        Payment figures count events on deleted entries too, so lifetime totals
        and today's collections agree.
        """
        as_of = as_of or self.clock().date()
        entries = filter_entries(self.installments.find(flt), flt, as_of)
        payments = [
            to_payment_record(event)
            for event in self.payments.find(flt)
            if matches(event.installment, flt, as_of)
        ]

        return build_dashboard(
            entries,
            payments,
            as_of=as_of,
            recent_limit=settings.dashboard_recent_limit,
            upcoming_limit=settings.dashboard_upcoming_limit,
            top_payers_limit=settings.dashboard_top_payers_limit,
        )

    def period_report(
        self,
        date_from: date,
        date_to: date,
        flt: Optional[LedgerFilter] = None,
        as_of: Optional[date] = None,
    ) -> PeriodReport:
        """Entries due in [date_from, date_to] grouped by day, category and status"""
        if date_from > date_to:
            raise ValidationError("date_from must not be after date_to", field="date_from")
        as_of = as_of or self.clock().date()
        scoped = replace(flt, date_from=date_from, date_to=date_to) if flt is not None else LedgerFilter(
            date_from=date_from, date_to=date_to
        )

        entries = self.installments.find(scoped)
        return build_period_report(
            entries,
            date_from,
            date_to,
            as_of,
            flt=scoped,
            category_names=self._category_names(entry.category_id for entry in entries),
        )

    def _category_names(self, category_ids: Iterable[str]) -> Dict[str, str]:
        """Join category display names onto report keys"""
        names: Dict[str, str] = {}
        for category_id in set(category_ids):
            category = self.lookup.get_category(category_id)
            names[category_id] = category.name if category is not None else category_id
        return names
