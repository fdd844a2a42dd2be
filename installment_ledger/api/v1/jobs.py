"""POST /v1/jobs/* - scheduled maintenance sweeps"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from installment_ledger.api.dependencies import get_ledger_service
from installment_ledger.api.v1.schemas import LateFeeRequest, SweepResponse
from installment_ledger.services.ledger import LedgerService

router = APIRouter()


@router.post("/jobs/overdue-sweep", response_model=SweepResponse)
def run_overdue_sweep(as_of: Optional[date] = None, service: LedgerService = Depends(get_ledger_service)):
    """
    Persist OVERDUE on open installments past their due date.

    Safe to re-run: a second run for the same date updates nothing.
    """
    result = service.sweep_overdue(as_of)
    return SweepResponse(examined=result.examined, updated=result.updated, amount=result.amount)


@router.post("/jobs/late-fees", response_model=SweepResponse)
def run_late_fees(body: LateFeeRequest, service: LedgerService = Depends(get_ledger_service)):
    result = service.apply_late_fees(as_of=body.as_of, rate=body.rate, grace_days=body.grace_days)
    return SweepResponse(examined=result.examined, updated=result.updated, amount=result.amount)
