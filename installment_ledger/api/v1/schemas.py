"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from installment_ledger.domain.models import DEFAULT_OBLIGATION_TYPE, Frequency, InstallmentStatus, PaymentMode, Totals
from installment_ledger.domain.status import classify


class InstallmentCreateRequest(BaseModel):
    """Request body for POST /v1/installments"""

    file_id: str = Field(..., min_length=1)
    member_id: str = Field(..., min_length=1)
    plot_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    installment_no: int = Field(..., ge=1)
    due_date: date
    amount_due: Decimal = Field(..., ge=0)
    late_fee_surcharge: Decimal = Field(Decimal("0"), ge=0)
    title: Optional[str] = None
    obligation_type: str = DEFAULT_OBLIGATION_TYPE
    created_by: Optional[str] = None


class ScheduleRequest(BaseModel):
    """Request body for POST /v1/installments/schedule"""

    file_id: str = Field(..., min_length=1)
    member_id: str = Field(..., min_length=1)
    plot_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    start_date: date
    frequency: Frequency
    count: int = Field(..., ge=1, le=600)
    amount_per_installment: Decimal = Field(..., ge=0)
    title_template: Optional[str] = None
    obligation_type: str = DEFAULT_OBLIGATION_TYPE
    first_installment_no: int = Field(1, ge=1)
    created_by: Optional[str] = None


class InstallmentUpdateRequest(BaseModel):
    """Request body for PATCH /v1/installments/{id}; only sent fields change"""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    obligation_type: Optional[str] = None
    due_date: Optional[date] = None
    installment_no: Optional[int] = Field(None, ge=1)
    amount_due: Optional[Decimal] = Field(None, ge=0)
    late_fee_surcharge: Optional[Decimal] = Field(None, ge=0)
    transaction_ref_no: Optional[str] = None
    remarks: Optional[str] = None
    modified_by: Optional[str] = None


class PaymentRequest(BaseModel):
    """Request body for POST /v1/installments/{id}/payments"""

    payment_amount: Decimal = Field(..., gt=0)
    paid_date: date
    payment_mode: PaymentMode
    transaction_ref_no: Optional[str] = None
    remarks: Optional[str] = None
    recorded_by: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None
    modified_by: Optional[str] = None


class LateFeeRequest(BaseModel):
    as_of: Optional[date] = None
    rate: Optional[Decimal] = Field(None, ge=0)
    grace_days: Optional[int] = Field(None, ge=0)


class InstallmentSchema(BaseModel):
    """Single installment as stored in the ledger"""

    id: str
    file_id: str
    member_id: str
    plot_id: str
    category_id: str
    installment_no: int
    title: str
    obligation_type: str
    due_date: date
    amount_due: Decimal
    late_fee_surcharge: Decimal
    total_payable: Decimal
    amount_paid: Decimal
    balance_amount: Decimal
    status: InstallmentStatus
    effective_status: InstallmentStatus
    paid_date: Optional[date] = None
    payment_mode: Optional[str] = None
    transaction_ref_no: Optional[str] = None
    remarks: Optional[str] = None
    created_by: Optional[str] = None
    modified_by: Optional[str] = None
    is_deleted: bool = False


class PaymentEventSchema(BaseModel):
    """One entry of an installment's payment log"""

    sequence_no: int
    amount: Decimal
    payment_mode: str
    paid_date: date
    transaction_ref_no: Optional[str] = None
    remarks: Optional[str] = None
    recorded_by: Optional[str] = None
    recorded_at: datetime


class StatusResponse(BaseModel):
    installment_id: str
    status: InstallmentStatus
    effective_status: InstallmentStatus
    as_of: date


class SweepResponse(BaseModel):
    examined: int
    updated: int
    amount: Decimal


class TotalsSchema(BaseModel):
    count: int
    total_payable: Decimal
    amount_paid: Decimal
    balance_amount: Decimal


class MemberSummaryResponse(BaseModel):
    """Response for GET /v1/reports/members/{member_id}"""

    member_id: str
    totals: TotalsSchema
    by_status: Dict[str, TotalsSchema]
    by_category: Dict[str, TotalsSchema]
    category_names: Dict[str, str]
    by_month: Dict[str, TotalsSchema]


class PaymentRecordSchema(BaseModel):
    installment_id: str
    member_id: str
    amount: Decimal
    payment_mode: str
    paid_date: date
    transaction_ref_no: Optional[str] = None
    recorded_at: datetime


class TopPayerSchema(BaseModel):
    member_id: str
    amount_paid: Decimal


class DashboardResponse(BaseModel):
    """Response for GET /v1/reports/dashboard"""

    as_of: date
    total_outstanding: Decimal
    collected_today: Decimal
    due_today: Decimal
    total_overdue: Decimal
    overdue_count: int
    recent_payments: List[PaymentRecordSchema]
    upcoming_dues: List[InstallmentSchema]
    top_payers: List[TopPayerSchema]


class PeriodReportResponse(BaseModel):
    """Response for GET /v1/reports/period"""

    date_from: date
    date_to: date
    entries: List[InstallmentSchema]
    totals: TotalsSchema
    by_day: Dict[date, TotalsSchema]
    by_category: Dict[str, TotalsSchema]
    category_names: Dict[str, str]
    by_status: Dict[str, TotalsSchema]


def to_installment_schema(entry, as_of: date) -> InstallmentSchema:
    """Serialize a ledger row with its effective status at as_of"""
    return InstallmentSchema(
        id=str(entry.id),
        file_id=entry.file_id,
        member_id=entry.member_id,
        plot_id=entry.plot_id,
        category_id=entry.category_id,
        installment_no=entry.installment_no,
        title=entry.title,
        obligation_type=entry.obligation_type,
        due_date=entry.due_date,
        amount_due=entry.amount_due,
        late_fee_surcharge=entry.late_fee_surcharge,
        total_payable=entry.total_payable,
        amount_paid=entry.amount_paid,
        balance_amount=entry.balance_amount,
        status=entry.status,
        effective_status=classify(entry, as_of),
        paid_date=entry.paid_date,
        payment_mode=entry.payment_mode,
        transaction_ref_no=entry.transaction_ref_no,
        remarks=entry.remarks,
        created_by=entry.created_by,
        modified_by=entry.modified_by,
        is_deleted=entry.is_deleted,
    )


def to_totals_schema(totals: Totals) -> TotalsSchema:
    return TotalsSchema(
        count=totals.count,
        total_payable=totals.total_payable,
        amount_paid=totals.amount_paid,
        balance_amount=totals.balance_amount,
    )
