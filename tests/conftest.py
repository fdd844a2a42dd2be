"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from installment_ledger.api.dependencies import get_ledger_service, get_reference_lookup, get_reporting_service
from installment_ledger.api.main import create_app
from installment_ledger.domain.models import CategoryRecord, FileRecord, MemberRecord, PlotRecord
from installment_ledger.infrastructure.clients.reference import InMemoryReferenceLookup
from installment_ledger.infrastructure.database.models import Base
from installment_ledger.infrastructure.database.session import build_engine, get_db, init_db
from installment_ledger.services.ledger import LedgerService
from installment_ledger.services.reporting import ReportingService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Every service in the tests sees the same "now"
FIXED_NOW = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    init_db(engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_session(db: Session) -> Generator[Session, None, None]:
    """Second session on the test database, for concurrent-writer tests"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def lookup() -> InMemoryReferenceLookup:
    """
    Reference data for two members.

    F-1: member M-1, plot P-1
    F-2: member M-2, plot P-2
    Categories: CAT-DP (down payment), CAT-MC (maintenance), CAT-OLD (inactive)
    """
    lookup = InMemoryReferenceLookup()
    lookup.add_member(MemberRecord(id="M-1"))
    lookup.add_member(MemberRecord(id="M-2"))
    lookup.add_member(MemberRecord(id="M-INACTIVE", is_active=False))
    lookup.add_plot(PlotRecord(id="P-1"))
    lookup.add_plot(PlotRecord(id="P-2"))
    lookup.add_file(FileRecord(id="F-1", member_id="M-1", plot_id="P-1"))
    lookup.add_file(FileRecord(id="F-2", member_id="M-2", plot_id="P-2"))
    lookup.add_file(FileRecord(id="F-INACTIVE", member_id="M-INACTIVE", plot_id="P-1"))
    lookup.add_category(CategoryRecord(id="CAT-DP", name="Down Payment"))
    lookup.add_category(CategoryRecord(id="CAT-MC", name="Maintenance Charge"))
    lookup.add_category(CategoryRecord(id="CAT-OLD", name="Legacy Levy", is_active=False))
    return lookup


@pytest.fixture
def ledger(db: Session, lookup: InMemoryReferenceLookup) -> LedgerService:
    return LedgerService(db, lookup, clock=fixed_clock)


@pytest.fixture
def reporting(db: Session, lookup: InMemoryReferenceLookup) -> ReportingService:
    return ReportingService(db, lookup, clock=fixed_clock)


@pytest.fixture
def make_installment(ledger: LedgerService):
    """Factory for single installments on F-1 / CAT-DP"""
    counter = {"n": 0}

    def _make(
        amount_due="1000",
        due_date: date = date(2024, 7, 1),
        file_id: str = "F-1",
        member_id: str = "M-1",
        plot_id: str = "P-1",
        category_id: str = "CAT-DP",
        installment_no: int | None = None,
        late_fee_surcharge="0",
    ):
        counter["n"] += 1
        return ledger.create_installment(
            file_id=file_id,
            member_id=member_id,
            plot_id=plot_id,
            category_id=category_id,
            installment_no=installment_no or counter["n"],
            due_date=due_date,
            amount_due=Decimal(amount_due),
            late_fee_surcharge=Decimal(late_fee_surcharge),
        )

    return _make


@pytest.fixture
def client(db: Session, lookup: InMemoryReferenceLookup) -> TestClient:
    """Create FastAPI test client with test database and reference data"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_ledger_service(session: Session = Depends(get_db)) -> LedgerService:
        return LedgerService(session, lookup, clock=fixed_clock)

    def override_reporting_service(session: Session = Depends(get_db)) -> ReportingService:
        return ReportingService(session, lookup, clock=fixed_clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reference_lookup] = lambda: lookup
    app.dependency_overrides[get_ledger_service] = override_ledger_service
    app.dependency_overrides[get_reporting_service] = override_reporting_service
    return TestClient(app)
