"""/v1/installments - ledger entries, schedules and payments"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from installment_ledger.api.dependencies import get_ledger_service
from installment_ledger.api.v1.schemas import (
    CancelRequest,
    InstallmentCreateRequest,
    InstallmentSchema,
    InstallmentUpdateRequest,
    PaymentEventSchema,
    PaymentRequest,
    ScheduleRequest,
    StatusResponse,
    to_installment_schema,
)
from installment_ledger.domain.models import InstallmentStatus, LedgerFilter
from installment_ledger.services.ledger import LedgerService

router = APIRouter()


@router.post("/installments", response_model=InstallmentSchema, status_code=201)
def create_installment(body: InstallmentCreateRequest, service: LedgerService = Depends(get_ledger_service)):
    """Create a single installment"""
    entry = service.create_installment(
        file_id=body.file_id,
        member_id=body.member_id,
        plot_id=body.plot_id,
        category_id=body.category_id,
        installment_no=body.installment_no,
        due_date=body.due_date,
        amount_due=body.amount_due,
        late_fee_surcharge=body.late_fee_surcharge,
        title=body.title,
        obligation_type=body.obligation_type,
        actor=body.created_by,
    )
    return to_installment_schema(entry, service.today())


@router.post("/installments/schedule", response_model=List[InstallmentSchema], status_code=201)
def generate_schedule(body: ScheduleRequest, service: LedgerService = Depends(get_ledger_service)):
    """
    Generate a recurring schedule for a purchase file.

    All installments are created or none are.
    """
    rows = service.generate_schedule(
        file_id=body.file_id,
        member_id=body.member_id,
        plot_id=body.plot_id,
        category_id=body.category_id,
        start_date=body.start_date,
        frequency=body.frequency,
        count=body.count,
        amount_per_installment=body.amount_per_installment,
        title_template=body.title_template,
        obligation_type=body.obligation_type,
        actor=body.created_by,
        first_installment_no=body.first_installment_no,
    )
    today = service.today()
    return [to_installment_schema(row, today) for row in rows]


@router.get("/installments", response_model=List[InstallmentSchema])
def list_installments(
    member_id: Optional[str] = None,
    file_id: Optional[str] = None,
    plot_id: Optional[str] = None,
    category_id: Optional[str] = None,
    date_from: Optional[date] = Query(None, description="Due on or after"),
    date_to: Optional[date] = Query(None, description="Due on or before"),
    status: Optional[InstallmentStatus] = Query(None, description="Effective status"),
    as_of: Optional[date] = None,
    service: LedgerService = Depends(get_ledger_service),
):
    """List live installments ordered by due date"""
    as_of = as_of or service.today()
    flt = LedgerFilter(
        member_id=member_id,
        file_id=file_id,
        plot_id=plot_id,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to,
        status=status,
    )
    return [to_installment_schema(row, as_of) for row in service.list_installments(flt, as_of)]


@router.get("/installments/upcoming", response_model=List[InstallmentSchema])
def upcoming_installments(
    days: Optional[int] = Query(None, ge=0),
    as_of: Optional[date] = None,
    service: LedgerService = Depends(get_ledger_service),
):
    as_of = as_of or service.today()
    return [to_installment_schema(row, as_of) for row in service.upcoming(days, as_of)]


@router.get("/installments/overdue", response_model=List[InstallmentSchema])
def overdue_installments(as_of: Optional[date] = None, service: LedgerService = Depends(get_ledger_service)):
    as_of = as_of or service.today()
    return [to_installment_schema(row, as_of) for row in service.overdue(as_of)]


@router.get("/installments/{installment_id}", response_model=InstallmentSchema)
def get_installment(installment_id: str, service: LedgerService = Depends(get_ledger_service)):
    return to_installment_schema(service.get_installment(installment_id), service.today())


@router.patch("/installments/{installment_id}", response_model=InstallmentSchema)
def update_installment(
    installment_id: str,
    body: InstallmentUpdateRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """Administrative update; settled entries only accept remarks and transaction reference"""
    patch = body.model_dump(exclude_unset=True)
    actor = patch.pop("modified_by", None)
    entry = service.update_installment(installment_id, patch, actor=actor)
    return to_installment_schema(entry, service.today())


@router.delete("/installments/{installment_id}", response_model=InstallmentSchema)
def delete_installment(
    installment_id: str,
    deleted_by: Optional[str] = None,
    service: LedgerService = Depends(get_ledger_service),
):
    """Soft-delete; paid installments cannot be deleted"""
    entry = service.soft_delete(installment_id, actor=deleted_by)
    return to_installment_schema(entry, service.today())


@router.post("/installments/{installment_id}/cancel", response_model=InstallmentSchema)
def cancel_installment(
    installment_id: str,
    body: CancelRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    entry = service.cancel_installment(installment_id, actor=body.modified_by, reason=body.reason)
    return to_installment_schema(entry, service.today())


@router.post("/installments/{installment_id}/payments", response_model=InstallmentSchema)
def apply_payment(
    installment_id: str,
    body: PaymentRequest,
    service: LedgerService = Depends(get_ledger_service),
):
    """
    Apply a payment.

    Over-payments are rejected with the maximum allowed amount in the error body.
    """
    entry = service.apply_payment(
        installment_id,
        payment_amount=body.payment_amount,
        paid_date=body.paid_date,
        payment_mode=body.payment_mode,
        transaction_ref_no=body.transaction_ref_no,
        remarks=body.remarks,
        actor=body.recorded_by,
    )
    return to_installment_schema(entry, service.today())


@router.get("/installments/{installment_id}/payments", response_model=List[PaymentEventSchema])
def list_payments(installment_id: str, service: LedgerService = Depends(get_ledger_service)):
    return [
        PaymentEventSchema(
            sequence_no=event.sequence_no,
            amount=event.amount,
            payment_mode=event.payment_mode,
            paid_date=event.paid_date,
            transaction_ref_no=event.transaction_ref_no,
            remarks=event.remarks,
            recorded_by=event.recorded_by,
            recorded_at=event.recorded_at,
        )
        for event in service.list_payments(installment_id)
    ]


@router.get("/installments/{installment_id}/status", response_model=StatusResponse)
def installment_status(
    installment_id: str,
    as_of: Optional[date] = None,
    service: LedgerService = Depends(get_ledger_service),
):
    """Stored status and effective status (with the overdue overlay)"""
    as_of = as_of or service.today()
    entry = service.get_installment(installment_id, include_deleted=True)
    return StatusResponse(
        installment_id=str(entry.id),
        status=entry.status,
        effective_status=service.effective_status(entry.id, as_of),
        as_of=as_of,
    )
