"""GET /v1/reports/* - member summaries, dashboard and period reports"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from installment_ledger.api.dependencies import get_reporting_service
from installment_ledger.api.v1.schemas import (
    DashboardResponse,
    MemberSummaryResponse,
    PaymentRecordSchema,
    PeriodReportResponse,
    TopPayerSchema,
    to_installment_schema,
    to_totals_schema,
)
from installment_ledger.domain.models import InstallmentStatus, LedgerFilter
from installment_ledger.services.reporting import ReportingService

router = APIRouter()


def _filter(
    member_id: Optional[str] = None,
    file_id: Optional[str] = None,
    plot_id: Optional[str] = None,
    category_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[InstallmentStatus] = None,
) -> LedgerFilter:
    return LedgerFilter(
        member_id=member_id,
        file_id=file_id,
        plot_id=plot_id,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to,
        status=status,
    )


@router.get("/reports/members/{member_id}", response_model=MemberSummaryResponse)
def member_summary(
    member_id: str,
    file_id: Optional[str] = None,
    plot_id: Optional[str] = None,
    category_id: Optional[str] = None,
    date_from: Optional[date] = Query(None, description="First due date included"),
    date_to: Optional[date] = Query(None, description="Last due date included"),
    status: Optional[InstallmentStatus] = None,
    as_of: Optional[date] = None,
    service: ReportingService = Depends(get_reporting_service),
):
    """
    Totals for one member.

    Returns:
        Overall totals plus breakdowns by effective status, category and due month
    """
    summary = service.member_summary(
        member_id,
        flt=_filter(member_id, file_id, plot_id, category_id, date_from, date_to, status),
        as_of=as_of,
    )
    return MemberSummaryResponse(
        member_id=summary.member_id,
        totals=to_totals_schema(summary.totals),
        by_status={key: to_totals_schema(value) for key, value in summary.by_status.items()},
        by_category={key: to_totals_schema(value) for key, value in summary.by_category.items()},
        category_names=summary.category_names,
        by_month={key: to_totals_schema(value) for key, value in summary.by_month.items()},
    )


@router.get("/reports/dashboard", response_model=DashboardResponse)
def dashboard(
    member_id: Optional[str] = None,
    file_id: Optional[str] = None,
    plot_id: Optional[str] = None,
    category_id: Optional[str] = None,
    date_from: Optional[date] = Query(None, description="First due date included"),
    date_to: Optional[date] = Query(None, description="Last due date included"),
    status: Optional[InstallmentStatus] = None,
    as_of: Optional[date] = None,
    service: ReportingService = Depends(get_reporting_service),
):
    snapshot = service.dashboard(
        as_of=as_of,
        flt=_filter(member_id, file_id, plot_id, category_id, date_from, date_to, status),
    )

    return DashboardResponse(
        as_of=snapshot.as_of,
        total_outstanding=snapshot.total_outstanding,
        collected_today=snapshot.collected_today,
        due_today=snapshot.due_today,
        total_overdue=snapshot.total_overdue,
        overdue_count=snapshot.overdue_count,
        recent_payments=[
            PaymentRecordSchema(
                installment_id=p.installment_id,
                member_id=p.member_id,
                amount=p.amount,
                payment_mode=p.payment_mode,
                paid_date=p.paid_date,
                transaction_ref_no=p.transaction_ref_no,
                recorded_at=p.recorded_at,
            )
            for p in snapshot.recent_payments
        ],
        upcoming_dues=[to_installment_schema(entry, snapshot.as_of) for entry in snapshot.upcoming_dues],
        top_payers=[TopPayerSchema(member_id=t.member_id, amount_paid=t.amount_paid) for t in snapshot.top_payers],
    )


@router.get("/reports/period", response_model=PeriodReportResponse)
def period_report(
    date_from: date = Query(..., description="First due date included"),
    date_to: date = Query(..., description="Last due date included"),
    member_id: Optional[str] = None,
    file_id: Optional[str] = None,
    plot_id: Optional[str] = None,
    category_id: Optional[str] = None,
    status: Optional[InstallmentStatus] = None,
    as_of: Optional[date] = None,
    service: ReportingService = Depends(get_reporting_service),
):
    report = service.period_report(
        date_from,
        date_to,
        flt=_filter(member_id, file_id, plot_id, category_id, status=status),
        as_of=as_of,
    )
    report_as_of = as_of or service.clock().date()
    return PeriodReportResponse(
        date_from=report.date_from,
        date_to=report.date_to,
        entries=[to_installment_schema(entry, report_as_of) for entry in report.entries],
        totals=to_totals_schema(report.totals),
        by_day={key: to_totals_schema(value) for key, value in report.by_day.items()},
        by_category={key: to_totals_schema(value) for key, value in report.by_category.items()},
        category_names=report.category_names,
        by_status={key: to_totals_schema(value) for key, value in report.by_status.items()},
    )
