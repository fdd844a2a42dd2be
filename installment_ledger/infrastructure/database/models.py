"""SQLAlchemy ORM models for the installment ledger"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    false,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from installment_ledger.domain.models import DEFAULT_OBLIGATION_TYPE, InstallmentStatus

Base = declarative_base()

MONEY = Numeric(12, 2, asdecimal=True)


class Installment(Base):
    """One scheduled obligation within a purchase file's payment plan"""

    __tablename__ = "installment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    file_id = Column(String(64), nullable=False, index=True)
    member_id = Column(String(64), nullable=False, index=True)
    plot_id = Column(String(64), nullable=False, index=True)
    category_id = Column(String(64), nullable=False, index=True)
    installment_no = Column(Integer, nullable=False)

    title = Column(Text, nullable=False)
    obligation_type = Column(String(64), nullable=False, default=DEFAULT_OBLIGATION_TYPE)
    due_date = Column(Date, nullable=False, index=True)

    amount_due = Column(MONEY, nullable=False)
    late_fee_surcharge = Column(MONEY, nullable=False, default=0)
    total_payable = Column(MONEY, nullable=False)
    amount_paid = Column(MONEY, nullable=False, default=0)
    balance_amount = Column(MONEY, nullable=False)

    status = Column(String(20), nullable=False, default=InstallmentStatus.UNPAID.value, index=True)
    paid_date = Column(Date, nullable=True)
    payment_mode = Column(String(20), nullable=True)
    transaction_ref_no = Column(String(128), nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(String(64), nullable=True)
    modified_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency: every UPDATE is conditional on the loaded version
    version = Column(Integer, nullable=False)

    payments = relationship(
        "InstallmentPayment",
        back_populates="installment",
        order_by="InstallmentPayment.sequence_no",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # Installment numbers are unique per file and category among live rows
        Index(
            "uq_installment_file_category_no",
            "file_id",
            "category_id",
            "installment_no",
            unique=True,
            postgresql_where=is_deleted == false(),
            sqlite_where=is_deleted == false(),
        ),
        Index("ix_installment_member_due", "member_id", "due_date"),
        Index("ix_installment_status_due", "status", "due_date"),
    )


class InstallmentPayment(Base):
    """Append-only payment event applied to an installment"""

    __tablename__ = "installment_payment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    installment_id = Column(Uuid, ForeignKey("installment.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_no = Column(Integer, nullable=False)
    amount = Column(MONEY, nullable=False)
    payment_mode = Column(String(20), nullable=False)
    paid_date = Column(Date, nullable=False, index=True)
    transaction_ref_no = Column(String(128), nullable=True, index=True)
    remarks = Column(Text, nullable=True)
    recorded_by = Column(String(64), nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False)

    installment = relationship("Installment", back_populates="payments")

    __table_args__ = (
        Index("uq_installment_payment_seq", "installment_id", "sequence_no", unique=True),
    )
