"""Ledger operations: schedules, entry maintenance, payments and sweeps

Every public method is one unit of work: preconditions are checked before any
write, the session is committed on success and rolled back on any failure.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, TypeVar, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from installment_ledger.config import settings
from installment_ledger.domain.exceptions import (
    ConcurrencyConflictError,
    DuplicateError,
    ImmutableStateError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from installment_ledger.domain.installments import generate_installment_schedule
from installment_ledger.domain.models import (
    DEFAULT_OBLIGATION_TYPE,
    Frequency,
    InstallmentDraft,
    InstallmentStatus,
    LedgerFilter,
    PaymentMode,
    SweepResult,
)
from installment_ledger.domain.money import ZERO, money, non_negative_money
from installment_ledger.domain.references import ReferenceLookup, validate_references
from installment_ledger.domain.reporting import filter_entries
from installment_ledger.domain.status import AsOf, classify, derive_status, is_terminal
from installment_ledger.infrastructure.database.models import Installment, InstallmentPayment
from installment_ledger.infrastructure.database.repositories import InstallmentRepository, PaymentRepository
from installment_ledger.infrastructure.observability.logging import log_payment, log_schedule_generated, log_sweep
from installment_ledger.infrastructure.observability.metrics import (
    installments_created_counter,
    late_fees_counter,
    ledger_errors_counter,
    overdue_marked_counter,
    record_payment,
)
from installment_ledger.utils.date_utils import started_periods

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields an administrative update may touch
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "obligation_type",
        "due_date",
        "installment_no",
        "amount_due",
        "late_fee_surcharge",
        "transaction_ref_no",
        "remarks",
    }
)
# Fields still editable once an entry is PAID or CANCELLED
SETTLED_EDITABLE_FIELDS = frozenset({"transaction_ref_no", "remarks"})
# Fields that cannot be set to null
REQUIRED_FIELDS = ("amount_due", "late_fee_surcharge", "installment_no", "due_date")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_installment_id(installment_id: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(installment_id, uuid.UUID):
        return installment_id
    try:
        return uuid.UUID(str(installment_id))
    except ValueError:
        raise NotFoundError(f"Installment {installment_id} not found", entity="installment", id=str(installment_id)) from None


def parse_installment_no(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Installment number must be an integer: {value!r}", field="installment_no") from None
    if number < 1:
        raise ValidationError("Installment number must be at least 1", field="installment_no")
    return number


def append_remark(entry: Installment, line: str) -> None:
    """Remarks are an append-only text log, one line per event"""
    line = line.strip()
    if not line:
        return
    entry.remarks = f"{entry.remarks}\n{line}" if entry.remarks else line


class LedgerService:
    """Ledger Entry Store, Payment Applier and maintenance sweeps"""

    def __init__(
        self,
        db: Session,
        lookup: ReferenceLookup,
        clock: Callable[[], datetime] = utc_now,
        max_retries: int | None = None,
    ):
        self.db = db
        self.lookup = lookup
        self.clock = clock
        self.max_retries = settings.payment_max_retries if max_retries is None else max_retries
        self.installments = InstallmentRepository(db)
        self.payments = PaymentRepository(db)

    def today(self) -> date:
        return self.clock().date()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def generate_schedule(
        self,
        file_id: str,
        member_id: str,
        plot_id: str,
        category_id: str,
        start_date: date,
        frequency: Frequency,
        count: int,
        amount_per_installment: Decimal,
        title_template: Optional[str] = None,
        obligation_type: str = DEFAULT_OBLIGATION_TYPE,
        actor: Optional[str] = None,
        first_installment_no: int = 1,
    ) -> List[Installment]:
        """
        Generate and persist a recurring schedule as one batch.

        Either every installment is written or none is.

        Raises:
            NotFoundError, ValidationError, ReferentialMismatchError: Bad input
            DuplicateError: Any installment number is already taken
        """
        with self._unit_of_work():
            drafts = generate_installment_schedule(
                self.lookup,
                file_id=file_id,
                member_id=member_id,
                plot_id=plot_id,
                category_id=category_id,
                start_date=start_date,
                frequency=frequency,
                count=count,
                amount_per_installment=amount_per_installment,
                title_template=title_template,
                obligation_type=obligation_type,
                created_by=actor,
                first_installment_no=first_installment_no,
            )
            self._check_numbers_free(file_id, category_id, [d.installment_no for d in drafts])
            rows = self._insert(drafts)

        installments_created_counter.labels(source="schedule").inc(len(rows))
        log_schedule_generated(
            file_id=file_id,
            category_id=category_id,
            count=len(rows),
            total_amount=sum((d.total_payable for d in drafts), ZERO),
            first_installment_no=first_installment_no,
        )
        return rows

    def create_installment(
        self,
        file_id: str,
        member_id: str,
        plot_id: str,
        category_id: str,
        installment_no: int,
        due_date: date,
        amount_due: Decimal,
        late_fee_surcharge: Decimal = ZERO,
        title: Optional[str] = None,
        obligation_type: str = DEFAULT_OBLIGATION_TYPE,
        actor: Optional[str] = None,
    ) -> Installment:
        """Create one installment after reference and uniqueness checks"""
        with self._unit_of_work():
            installment_no = parse_installment_no(installment_no)
            due = non_negative_money(amount_due, "amount_due")
            fee = non_negative_money(late_fee_surcharge, "late_fee_surcharge")
            validate_references(self.lookup, file_id, member_id, plot_id, category_id)
            self._check_numbers_free(file_id, category_id, [installment_no])

            total = money(due + fee)
            draft = InstallmentDraft(
                file_id=file_id,
                member_id=member_id,
                plot_id=plot_id,
                category_id=category_id,
                installment_no=installment_no,
                title=title or f"Installment {installment_no}",
                obligation_type=obligation_type,
                due_date=due_date,
                amount_due=due,
                late_fee_surcharge=fee,
                total_payable=total,
                amount_paid=ZERO,
                balance_amount=total,
                status=derive_status(ZERO, total),
                created_by=actor,
            )
            row = self._insert([draft])[0]

        installments_created_counter.labels(source="single").inc()
        logger.info(
            "Installment created",
            extra={"installment_id": str(row.id), "file_id": file_id, "installment_no": installment_no},
        )
        return row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_installment(self, installment_id: Union[str, uuid.UUID], include_deleted: bool = False) -> Installment:
        entry = self.installments.get(parse_installment_id(installment_id), include_deleted=include_deleted)
        if entry is None:
            raise NotFoundError(f"Installment {installment_id} not found", entity="installment", id=str(installment_id))
        return entry

    def list_installments(self, flt: Optional[LedgerFilter] = None, as_of: Optional[AsOf] = None) -> List[Installment]:
        """Live entries matching the filter, ordered by due date and number"""
        return filter_entries(self.installments.find(flt), flt, as_of or self.today())

    def list_by_member(self, member_id: str) -> List[Installment]:
        return self.list_installments(LedgerFilter(member_id=member_id))

    def list_by_plot(self, plot_id: str) -> List[Installment]:
        return self.list_installments(LedgerFilter(plot_id=plot_id))

    def upcoming(self, days: Optional[int] = None, as_of: Optional[date] = None) -> List[Installment]:
        """Open entries due from as_of through as_of + days"""
        days = settings.upcoming_window_days if days is None else days
        if days < 0:
            raise ValidationError("Upcoming window cannot be negative", field="days")
        start = as_of or self.today()
        return self.installments.open_due_between(start, start + timedelta(days=days))

    def overdue(self, as_of: Optional[date] = None) -> List[Installment]:
        """Entries whose effective status is OVERDUE"""
        return self.installments.open_due_before(as_of or self.today())

    def list_payments(self, installment_id: Union[str, uuid.UUID]) -> List[InstallmentPayment]:
        """Payment events of an entry in application order"""
        entry = self.get_installment(installment_id, include_deleted=True)
        return self.payments.list_for(entry.id)

    def effective_status(self, installment_id: Union[str, uuid.UUID], as_of: Optional[AsOf] = None) -> InstallmentStatus:
        return classify(self.get_installment(installment_id, include_deleted=True), as_of or self.today())

    # ------------------------------------------------------------------
    # Administrative changes
    # ------------------------------------------------------------------

    def update_installment(
        self,
        installment_id: Union[str, uuid.UUID],
        patch: Mapping[str, Any],
        actor: Optional[str] = None,
    ) -> Installment:
        """
        Apply an administrative patch.

        Settled entries (PAID, CANCELLED) only accept remarks and transaction
        reference; any other key is rejected as immutable. Money changes
        recompute total, balance and status.

        Raises:
            ValidationError: Unknown field, bad value or negative balance
            ImmutableStateError: Locked field on a settled entry
            DuplicateError: New installment number is taken
            ConcurrencyConflictError: Retries exhausted
        """
        patch = dict(patch)
        entry = self._with_retries(lambda: self._update_once(installment_id, patch, actor))
        logger.info("Installment updated", extra={"installment_id": str(entry.id), "fields": sorted(patch)})
        return entry

    def _update_once(self, installment_id: Union[str, uuid.UUID], patch: dict, actor: Optional[str]) -> Installment:
        with self._unit_of_work():
            entry = self._load_for_update(installment_id)

            if is_terminal(entry.status):
                locked = sorted(set(patch) - SETTLED_EDITABLE_FIELDS)
                if locked:
                    raise ImmutableStateError(
                        f"Installment is {entry.status}; only remarks and transaction reference can change",
                        fields=locked,
                        status=entry.status,
                    )
            unknown = sorted(set(patch) - UPDATABLE_FIELDS)
            if unknown:
                raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}", fields=unknown)
            missing = sorted(key for key in REQUIRED_FIELDS if key in patch and patch[key] is None)
            if missing:
                raise ValidationError(f"Fields cannot be cleared: {', '.join(missing)}", fields=missing)

            money_changed = "amount_due" in patch or "late_fee_surcharge" in patch
            if money_changed:
                amount_due = non_negative_money(patch.get("amount_due", entry.amount_due), "amount_due")
                late_fee = non_negative_money(
                    patch.get("late_fee_surcharge", entry.late_fee_surcharge), "late_fee_surcharge"
                )
                total = money(amount_due + late_fee)
                balance = money(total - entry.amount_paid)
                if balance < ZERO:
                    raise ValidationError(
                        "Total payable cannot drop below the amount already paid",
                        amount_paid=entry.amount_paid,
                    )
                entry.amount_due = amount_due
                entry.late_fee_surcharge = late_fee
                entry.total_payable = total
                entry.balance_amount = balance

            if "installment_no" in patch:
                number = parse_installment_no(patch["installment_no"])
                if number != entry.installment_no:
                    self._check_numbers_free(entry.file_id, entry.category_id, [number], exclude_id=entry.id)
                    entry.installment_no = number

            if "due_date" in patch:
                entry.due_date = patch["due_date"]

            if "title" in patch:
                if not patch["title"]:
                    raise ValidationError("Title cannot be empty", field="title")
                entry.title = patch["title"]

            if "obligation_type" in patch:
                entry.obligation_type = patch["obligation_type"] or DEFAULT_OBLIGATION_TYPE

            if "transaction_ref_no" in patch:
                entry.transaction_ref_no = patch["transaction_ref_no"]

            if patch.get("remarks"):
                append_remark(entry, patch["remarks"])

            if (money_changed or "due_date" in patch) and not is_terminal(entry.status):
                self._restate(entry)

            entry.modified_by = actor

        return entry

    def cancel_installment(
        self,
        installment_id: Union[str, uuid.UUID],
        actor: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Installment:
        """Cancel an open obligation without deleting it"""

        def cancel() -> Installment:
            with self._unit_of_work():
                entry = self._load_for_update(installment_id)
                if entry.status == InstallmentStatus.PAID.value:
                    raise InvalidStateError("Cannot cancel a fully paid installment", status=entry.status)
                if entry.status == InstallmentStatus.CANCELLED.value:
                    raise InvalidStateError("Installment is already cancelled", status=entry.status)
                entry.status = InstallmentStatus.CANCELLED.value
                append_remark(entry, f"{self.today().isoformat()} cancelled" + (f": {reason}" if reason else ""))
                entry.modified_by = actor
            return entry

        entry = self._with_retries(cancel)
        logger.info("Installment cancelled", extra={"installment_id": str(entry.id)})
        return entry

    def soft_delete(self, installment_id: Union[str, uuid.UUID], actor: Optional[str] = None) -> Installment:
        """
        Mark an entry deleted and cancelled. Rows are never removed.

        Raises:
            InvalidStateError: Entry is PAID
            ConcurrencyConflictError: Retries exhausted
        """

        def delete() -> Installment:
            with self._unit_of_work():
                entry = self._load_for_update(installment_id)
                if entry.status == InstallmentStatus.PAID.value:
                    raise InvalidStateError("Cannot delete a fully paid installment", status=entry.status)
                entry.is_deleted = True
                entry.deleted_at = self.clock()
                entry.status = InstallmentStatus.CANCELLED.value
                entry.modified_by = actor
            return entry

        entry = self._with_retries(delete)
        logger.info("Installment deleted", extra={"installment_id": str(entry.id)})
        return entry

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def apply_payment(
        self,
        installment_id: Union[str, uuid.UUID],
        payment_amount: Decimal,
        paid_date: date,
        payment_mode: Union[str, PaymentMode],
        transaction_ref_no: Optional[str] = None,
        remarks: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Installment:
        """
        Apply a payment to one installment.

        The row is read under a lock and written with a version check; a stale
        write is retried from a fresh read. A repeated transaction reference
        with the same amount returns the entry unchanged.

        Raises:
            NotFoundError: Entry missing or deleted
            InvalidStateError: Entry is PAID or CANCELLED
            ValidationError: Non-positive amount or amount above the balance
                (`max_allowed` carries the remaining balance)
            DuplicateError: Transaction reference reused with another amount
            ConcurrencyConflictError: Retries exhausted
        """
        installment_uuid = parse_installment_id(installment_id)
        amount = money(payment_amount)
        if amount <= ZERO:
            self._count_error(ValidationError)
            raise ValidationError("Payment amount must be greater than 0", field="payment_amount")
        try:
            mode = PaymentMode(payment_mode)
        except ValueError:
            self._count_error(ValidationError)
            raise ValidationError(f"Unknown payment mode: {payment_mode}", field="payment_mode")
        if paid_date is None:
            self._count_error(ValidationError)
            raise ValidationError("Paid date is required", field="paid_date")

        return self._with_retries(
            lambda: self._apply_payment_once(
                installment_uuid, amount, paid_date, mode, transaction_ref_no, remarks, actor
            )
        )

    def _apply_payment_once(
        self,
        installment_id: uuid.UUID,
        amount: Decimal,
        paid_date: date,
        mode: PaymentMode,
        transaction_ref_no: Optional[str],
        remarks: Optional[str],
        actor: Optional[str],
    ) -> Installment:
        with self._unit_of_work():
            entry = self._load_for_update(installment_id)

            # Replayed submission
            if transaction_ref_no:
                previous = self.payments.find_by_reference(entry.id, transaction_ref_no)
                if previous is not None:
                    if money(previous.amount) != amount:
                        raise DuplicateError(
                            f"Transaction reference {transaction_ref_no} already used for a different amount",
                            transaction_ref_no=transaction_ref_no,
                            recorded_amount=money(previous.amount),
                        )
                    logger.info(
                        "Duplicate payment submission ignored",
                        extra={"installment_id": str(entry.id), "transaction_ref_no": transaction_ref_no},
                    )
                    return entry

            if entry.status == InstallmentStatus.PAID.value:
                raise InvalidStateError("Installment is already fully paid", status=entry.status)
            if entry.status == InstallmentStatus.CANCELLED.value:
                raise InvalidStateError("Cannot pay a cancelled obligation", status=entry.status)

            remaining = money(entry.total_payable - entry.amount_paid)
            new_amount_paid = money(entry.amount_paid + amount)
            if new_amount_paid > entry.total_payable:
                raise ValidationError(
                    f"Payment of {amount} exceeds the remaining balance of {remaining}",
                    max_allowed=remaining,
                    field="payment_amount",
                )

            entry.amount_paid = new_amount_paid
            entry.balance_amount = money(entry.total_payable - new_amount_paid)
            self._restate(entry, paid_date=paid_date)
            entry.payment_mode = mode.value
            if transaction_ref_no:
                entry.transaction_ref_no = transaction_ref_no
            line = f"{paid_date.isoformat()} payment {amount} via {mode.value}"
            if transaction_ref_no:
                line += f" ref {transaction_ref_no}"
            if remarks:
                line += f": {remarks}"
            append_remark(entry, line)
            entry.modified_by = actor

            self.payments.append(
                entry,
                amount=amount,
                payment_mode=mode.value,
                paid_date=paid_date,
                recorded_at=self.clock(),
                transaction_ref_no=transaction_ref_no,
                remarks=remarks,
                recorded_by=actor,
            )

        record_payment(mode.value, amount)
        log_payment(
            installment_id=str(entry.id),
            amount=amount,
            payment_mode=mode.value,
            status=entry.status,
            balance_amount=entry.balance_amount,
            transaction_ref_no=transaction_ref_no,
        )
        return entry

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def sweep_overdue(self, as_of: Optional[date] = None) -> SweepResult:
        """
        Persist OVERDUE on open entries whose due date has passed.

        Only UNPAID and PARTIALLY_PAID entries move; re-running is a no-op.
        """
        as_of = as_of or self.today()

        def sweep() -> SweepResult:
            with self._unit_of_work():
                candidates = self.installments.open_due_before(as_of)
                updated = 0
                for entry in candidates:
                    if entry.status != InstallmentStatus.OVERDUE.value:
                        entry.status = InstallmentStatus.OVERDUE.value
                        updated += 1
                return SweepResult(examined=len(candidates), updated=updated)

        result = self._with_retries(sweep)
        overdue_marked_counter.inc(result.updated)
        log_sweep("overdue_sweep", as_of.isoformat(), result.examined, result.updated)
        return result

    def apply_late_fees(
        self,
        as_of: Optional[date] = None,
        rate: Optional[Decimal] = None,
        grace_days: Optional[int] = None,
    ) -> SweepResult:
        """
        Raise late fee surcharges on entries overdue beyond the grace period.

        Surcharge target = amount due x rate x started 30-day periods overdue.
        Surcharges only rise to the target, so re-running for the same as_of
        changes nothing.
        """
        as_of = as_of or self.today()
        rate = Decimal(str(settings.late_fee_rate if rate is None else rate))
        grace_days = settings.late_fee_grace_days if grace_days is None else grace_days
        if rate < ZERO:
            raise ValidationError("Late fee rate cannot be negative", field="rate")
        if grace_days < 0:
            raise ValidationError("Grace period cannot be negative", field="grace_days")

        def sweep() -> SweepResult:
            with self._unit_of_work():
                candidates = self.installments.open_due_before(as_of - timedelta(days=grace_days))
                updated = 0
                raised = ZERO
                for entry in candidates:
                    periods = started_periods((as_of - entry.due_date).days)
                    target = money(entry.amount_due * rate * periods)
                    if target <= entry.late_fee_surcharge:
                        continue
                    raised += target - entry.late_fee_surcharge
                    entry.late_fee_surcharge = target
                    entry.total_payable = money(entry.amount_due + target)
                    entry.balance_amount = money(entry.total_payable - entry.amount_paid)
                    updated += 1
                return SweepResult(examined=len(candidates), updated=updated, amount=money(raised))

        result = self._with_retries(sweep)
        late_fees_counter.inc(result.updated)
        log_sweep("late_fee_sweep", as_of.isoformat(), result.examined, result.updated, result.amount)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _unit_of_work(self):
        return _UnitOfWork(self)

    def _with_retries(self, operation: Callable[[], T]) -> T:
        """Run an operation, retrying on optimistic-concurrency conflicts"""
        for attempt in range(self.max_retries + 1):
            try:
                return operation()
            except StaleDataError:
                logger.warning("Concurrent update detected, retrying", extra={"attempt": attempt + 1})
        self._count_error(ConcurrencyConflictError)
        raise ConcurrencyConflictError(
            f"Installment changed concurrently; gave up after {self.max_retries + 1} attempts"
        )

    def _load_for_update(self, installment_id: Union[str, uuid.UUID]) -> Installment:
        entry = self.installments.get_for_update(parse_installment_id(installment_id))
        if entry is None:
            raise NotFoundError(f"Installment {installment_id} not found", entity="installment", id=str(installment_id))
        return entry

    def _check_numbers_free(
        self,
        file_id: str,
        category_id: str,
        numbers: List[int],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        taken = self.installments.taken_numbers(file_id, category_id, numbers, exclude_id=exclude_id)
        if taken:
            raise DuplicateError(
                f"Installment number(s) {', '.join(str(n) for n in sorted(taken))} already exist "
                f"for file {file_id} and category {category_id}",
                file_id=file_id,
                category_id=category_id,
                installment_nos=sorted(taken),
            )

    def _insert(self, drafts: List[InstallmentDraft]) -> List[Installment]:
        try:
            return self.installments.add_many(drafts)
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same number
            raise DuplicateError(
                "Installment number already exists for this file and category",
                file_id=drafts[0].file_id,
                category_id=drafts[0].category_id,
            ) from e

    def _restate(self, entry: Installment, paid_date: Optional[date] = None) -> None:
        """Recompute stored status from the money fields"""
        status = derive_status(entry.amount_paid, entry.total_payable)
        if status == InstallmentStatus.PAID:
            entry.balance_amount = ZERO
            if entry.paid_date is None:
                entry.paid_date = paid_date or self.today()
        entry.status = status.value

    @staticmethod
    def _count_error(error: type) -> None:
        ledger_errors_counter.labels(error=error.code).inc()


class _UnitOfWork:
    """Commit on success, roll back and count typed failures otherwise"""

    def __init__(self, service: LedgerService):
        self.service = service

    def __enter__(self) -> Session:
        return self.service.db

    def __exit__(self, exc_type, exc, tb) -> bool:
        db = self.service.db
        if exc_type is None:
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            return False
        db.rollback()
        if isinstance(exc, LedgerError):
            LedgerService._count_error(type(exc))
        return False
