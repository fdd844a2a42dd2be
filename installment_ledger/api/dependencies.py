"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from installment_ledger.domain.references import ReferenceLookup
from installment_ledger.infrastructure.clients.reference import HttpReferenceLookup
from installment_ledger.infrastructure.database.session import get_db
from installment_ledger.services.ledger import LedgerService
from installment_ledger.services.reporting import ReportingService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_reference_lookup() -> ReferenceLookup:
    """Provide reference lookup client instance"""
    return HttpReferenceLookup()


def get_ledger_service(
    db: Session = Depends(get_db),
    lookup: ReferenceLookup = Depends(get_reference_lookup),
) -> LedgerService:
    return LedgerService(db, lookup)


def get_reporting_service(
    db: Session = Depends(get_db),
    lookup: ReferenceLookup = Depends(get_reference_lookup),
) -> ReportingService:
    return ReportingService(db, lookup)
