"""Data access layer for ledger entries and payment events"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session, contains_eager

from installment_ledger.domain.models import InstallmentDraft, LedgerFilter, OPEN_STATUSES
from installment_ledger.infrastructure.database.models import Installment, InstallmentPayment

OPEN_STATUS_VALUES = [status.value for status in OPEN_STATUSES]


class InstallmentRepository:
    """Repository for installment rows"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, draft: InstallmentDraft) -> Installment:
        """Stage one installment and flush to get its ID"""
        db_installment = self._from_draft(draft)
        self.db.add(db_installment)
        self.db.flush()
        return db_installment

    def add_many(self, drafts: Iterable[InstallmentDraft]) -> List[Installment]:
        """Stage a whole schedule in the current transaction"""
        rows = [self._from_draft(draft) for draft in drafts]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def get(self, installment_id: uuid.UUID, include_deleted: bool = False) -> Optional[Installment]:
        query = self.db.query(Installment).filter(Installment.id == installment_id)
        if not include_deleted:
            query = query.filter(Installment.is_deleted.is_(False))
        return query.first()

    def get_for_update(self, installment_id: uuid.UUID) -> Optional[Installment]:
        """Fetch a live installment with a row lock held until commit"""
        return (
            self.db.query(Installment)
            .filter(Installment.id == installment_id, Installment.is_deleted.is_(False))
            .with_for_update()
            .populate_existing()
            .first()
        )

    def taken_numbers(
        self,
        file_id: str,
        category_id: str,
        numbers: Iterable[int],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Set[int]:
        """Installment numbers from `numbers` already used by live rows"""
        numbers = list(numbers)
        if not numbers:
            return set()
        query = self.db.query(Installment.installment_no).filter(
            Installment.file_id == file_id,
            Installment.category_id == category_id,
            Installment.installment_no.in_(numbers),
            Installment.is_deleted.is_(False),
        )
        if exclude_id is not None:
            query = query.filter(Installment.id != exclude_id)
        return {row[0] for row in query.all()}

    def find(self, flt: Optional[LedgerFilter] = None, include_deleted: bool = False) -> List[Installment]:
        """
        Entries matching the ID and due-date filters.

        Effective-status filtering needs the classifier and is left to the caller.
        """
        query = self.db.query(Installment)
        if not include_deleted:
            query = query.filter(Installment.is_deleted.is_(False))
        if flt is not None:
            if flt.member_id is not None:
                query = query.filter(Installment.member_id == flt.member_id)
            if flt.file_id is not None:
                query = query.filter(Installment.file_id == flt.file_id)
            if flt.plot_id is not None:
                query = query.filter(Installment.plot_id == flt.plot_id)
            if flt.category_id is not None:
                query = query.filter(Installment.category_id == flt.category_id)
            if flt.date_from is not None:
                query = query.filter(Installment.due_date >= flt.date_from)
            if flt.date_to is not None:
                query = query.filter(Installment.due_date <= flt.date_to)
        return query.order_by(Installment.due_date, Installment.installment_no).all()

    def open_due_before(self, day: date) -> List[Installment]:
        """Live, non-terminal entries due strictly before `day`"""
        return (
            self.db.query(Installment)
            .filter(
                Installment.is_deleted.is_(False),
                Installment.status.in_(OPEN_STATUS_VALUES),
                Installment.due_date < day,
            )
            .order_by(Installment.due_date, Installment.installment_no)
            .all()
        )

    def open_due_between(self, start: date, end: date) -> List[Installment]:
        """Live, non-terminal entries due within [start, end]"""
        return (
            self.db.query(Installment)
            .filter(
                Installment.is_deleted.is_(False),
                Installment.status.in_(OPEN_STATUS_VALUES),
                Installment.due_date >= start,
                Installment.due_date <= end,
            )
            .order_by(Installment.due_date, Installment.installment_no)
            .all()
        )

    @staticmethod
    def _from_draft(draft: InstallmentDraft) -> Installment:
        return Installment(
            file_id=draft.file_id,
            member_id=draft.member_id,
            plot_id=draft.plot_id,
            category_id=draft.category_id,
            installment_no=draft.installment_no,
            title=draft.title,
            obligation_type=draft.obligation_type,
            due_date=draft.due_date,
            amount_due=draft.amount_due,
            late_fee_surcharge=draft.late_fee_surcharge,
            total_payable=draft.total_payable,
            amount_paid=draft.amount_paid,
            balance_amount=draft.balance_amount,
            status=draft.status.value,
            created_by=draft.created_by,
            modified_by=draft.created_by,
        )


class PaymentRepository:
    """Repository for the append-only payment event log"""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        installment: Installment,
        amount: Decimal,
        payment_mode: str,
        paid_date: date,
        recorded_at: datetime,
        transaction_ref_no: Optional[str] = None,
        remarks: Optional[str] = None,
        recorded_by: Optional[str] = None,
    ) -> InstallmentPayment:
        """Add the next event in the installment's sequence"""
        last_seq = (
            self.db.query(func.max(InstallmentPayment.sequence_no))
            .filter(InstallmentPayment.installment_id == installment.id)
            .scalar()
        )
        event = InstallmentPayment(
            installment_id=installment.id,
            sequence_no=(last_seq or 0) + 1,
            amount=amount,
            payment_mode=payment_mode,
            paid_date=paid_date,
            transaction_ref_no=transaction_ref_no,
            remarks=remarks,
            recorded_by=recorded_by,
            recorded_at=recorded_at,
        )
        self.db.add(event)
        self.db.flush()
        return event

    def find_by_reference(self, installment_id: uuid.UUID, transaction_ref_no: str) -> Optional[InstallmentPayment]:
        return (
            self.db.query(InstallmentPayment)
            .filter(
                InstallmentPayment.installment_id == installment_id,
                InstallmentPayment.transaction_ref_no == transaction_ref_no,
            )
            .order_by(InstallmentPayment.sequence_no)
            .first()
        )

    def list_for(self, installment_id: uuid.UUID) -> List[InstallmentPayment]:
        return (
            self.db.query(InstallmentPayment)
            .filter(InstallmentPayment.installment_id == installment_id)
            .order_by(InstallmentPayment.sequence_no)
            .all()
        )

    def find(self, flt: Optional[LedgerFilter] = None) -> List[InstallmentPayment]:
        """
        Events on installments matching the ID and due-date filters, newest first.

        Events on soft-deleted installments are included. Effective-status
        filtering is left to the caller.
        """
        query = (
            self.db.query(InstallmentPayment)
            .join(Installment, InstallmentPayment.installment_id == Installment.id)
            .options(contains_eager(InstallmentPayment.installment))
        )
        if flt is not None:
            if flt.member_id is not None:
                query = query.filter(Installment.member_id == flt.member_id)
            if flt.file_id is not None:
                query = query.filter(Installment.file_id == flt.file_id)
            if flt.plot_id is not None:
                query = query.filter(Installment.plot_id == flt.plot_id)
            if flt.category_id is not None:
                query = query.filter(Installment.category_id == flt.category_id)
            if flt.date_from is not None:
                query = query.filter(Installment.due_date >= flt.date_from)
            if flt.date_to is not None:
                query = query.filter(Installment.due_date <= flt.date_to)
        return query.order_by(InstallmentPayment.recorded_at.desc(), InstallmentPayment.sequence_no.desc()).all()
